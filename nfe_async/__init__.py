from .async_response import (
    AsyncResponse,
    CreationResult,
    Immediate,
    Pending,
    extract_invoice_id,
    parse_creation_response,
)
from .client import NfeClient
from .config import carregar_config, criar_config
from .exceptions import (
    ErrorKind,
    NfeError,
    error_from_http_response,
    error_from_network,
    is_kind,
    is_nfe_error,
)
from .flow_status import (
    FlowStatus,
    TERMINAL_FLOW_STATES,
    is_failure,
    is_success,
    is_terminal,
)
from .models import InvoiceStatus, NfeConfig, RetryConfig, ServiceInvoice
from .polling import (
    PollingOptions,
    apoll,
    create_polling_config,
    poll,
    poll_with_retries,
)
from .service_invoices import ServiceInvoicesResource
from .transport import HttpClient, HttpResponse

__all__ = [
    "AsyncResponse",
    "CreationResult",
    "Immediate",
    "Pending",
    "extract_invoice_id",
    "parse_creation_response",
    "NfeClient",
    "carregar_config",
    "criar_config",
    "ErrorKind",
    "NfeError",
    "error_from_http_response",
    "error_from_network",
    "is_kind",
    "is_nfe_error",
    "FlowStatus",
    "TERMINAL_FLOW_STATES",
    "is_failure",
    "is_success",
    "is_terminal",
    "InvoiceStatus",
    "NfeConfig",
    "RetryConfig",
    "ServiceInvoice",
    "PollingOptions",
    "apoll",
    "create_polling_config",
    "poll",
    "poll_with_retries",
    "ServiceInvoicesResource",
    "HttpClient",
    "HttpResponse",
]
