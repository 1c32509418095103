import logging
import time
from collections.abc import Mapping
from typing import Callable

from pydantic import ValidationError

from .async_response import CreationResult, Immediate, parse_creation_response
from .exceptions import configuration_error, invoice_processing_error
from .flow_status import is_failure, is_terminal
from .log import salvar_resposta_api
from .models import InvoiceStatus, ServiceInvoice
from .polling import CallbackErro, PollingOptions, poll
from .transport import HttpClient

# (tentativa, flowStatus) -> None
CallbackProgresso = Callable[[int, str | None], None]


def _nota_da_resposta(dados, status: int | None = None) -> ServiceInvoice:
    if not isinstance(dados, Mapping):
        raise configuration_error(
            "Resposta inesperada: corpo da nota nao e um objeto JSON",
            {"status": status, "body": dados},
        )
    try:
        return ServiceInvoice.from_api(dict(dados))
    except ValidationError as e:
        raise configuration_error(f"Nota invalida na resposta: {e}", {"status": status, "body": dados}) from e


class ServiceInvoicesResource:
    """NFS-e: criacao assincrona (202 + polling) e consulta de estado."""

    def __init__(self, http: HttpClient, polling: PollingOptions | None = None,
                 log_dir: str | None = None, clock=time.monotonic, sleep=time.sleep):
        self.http = http
        self.polling = polling or PollingOptions()
        self.log_dir = log_dir
        self._clock = clock
        self._sleep = sleep

    @staticmethod
    def _path(company_id: str, invoice_id: str | None = None) -> str:
        path = f"/companies/{company_id}/serviceinvoices"
        return f"{path}/{invoice_id}" if invoice_id else path

    def _auditar(self, payload, operacao: str, identificador: str) -> None:
        if self.log_dir:
            arquivo = salvar_resposta_api(payload, operacao, identificador, self.log_dir)
            logging.info("Resposta %s gravada em %s", operacao, arquivo)

    def create(self, company_id: str, data: dict) -> CreationResult:
        """Envia a nota (POST unico, sem retry) e devolve Immediate(corpo) ou Pending(AsyncResponse)."""
        resp = self.http.post(self._path(company_id), data)
        self._auditar(resp.data, "criacao", company_id)
        return parse_creation_response(resp)

    def retrieve(self, company_id: str, invoice_id: str) -> ServiceInvoice:
        resp = self.http.get(self._path(company_id, invoice_id))
        return _nota_da_resposta(resp.data, resp.status)

    def get_status(self, company_id: str, invoice_id: str) -> InvoiceStatus:
        invoice = self.retrieve(company_id, invoice_id)
        status = invoice.flow_status or "unknown"
        return InvoiceStatus(
            status=status,
            invoice=invoice,
            is_complete=is_terminal(status),
            is_failed=is_failure(status),
        )

    def create_and_wait(
        self,
        company_id: str,
        data: dict,
        polling: PollingOptions | None = None,
        on_poll: CallbackProgresso | None = None,
        on_error: CallbackErro | None = None,
    ) -> ServiceInvoice:
        """Cria a nota e aguarda um estado terminal.

        Issued/Cancelled -> devolve a nota. IssueFailed/CancelFailed -> NfeError
        INVOICE_PROCESSING com a mensagem do servidor (flowMessage). Timeout do
        polling e erros da sonda sobem inalterados.
        """
        resultado = self.create(company_id, data)
        if isinstance(resultado, Immediate):
            return _nota_da_resposta(resultado.entity)

        invoice_id = resultado.response.invoice_id
        logging.info("Nota %s em processamento, aguardando estado terminal", invoice_id)

        def _progresso(tentativa: int, invoice: ServiceInvoice) -> None:
            if on_poll is not None:
                on_poll(tentativa, invoice.flow_status)

        opcoes = polling or self.polling
        invoice = poll(
            lambda: self.retrieve(company_id, invoice_id),
            lambda inv: is_terminal(inv.flow_status),
            **opcoes.as_kwargs(),
            on_poll=_progresso,
            on_error=on_error,
            clock=self._clock,
            sleep=self._sleep,
        )

        if is_failure(invoice.flow_status):
            self._auditar(invoice.model_dump(by_alias=True), "falha", invoice_id)
            raise invoice_processing_error(
                invoice.flow_message or f"Invoice processing failed: {invoice.flow_status}",
                {
                    "invoice_id": invoice_id,
                    "flow_status": invoice.flow_status,
                    "flow_message": invoice.flow_message,
                    "invoice": invoice.model_dump(by_alias=True),
                },
            )
        return invoice
