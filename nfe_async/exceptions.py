from enum import Enum
from typing import Any

import requests


class ErrorKind(str, Enum):
    """Discriminante estavel de NfeError (sobrevive a JSON e pickle)."""

    VALIDATION = "ValidationError"
    AUTHENTICATION = "AuthenticationError"
    NOT_FOUND = "NotFoundError"
    CONFLICT = "ConflictError"
    RATE_LIMIT = "RateLimitError"
    SERVER = "ServerError"
    CONNECTION = "ConnectionError"
    TIMEOUT = "TimeoutError"
    CONFIGURATION = "ConfigurationError"
    POLLING_TIMEOUT = "PollingTimeoutError"
    INVOICE_PROCESSING = "InvoiceProcessingError"
    API = "NfeError"


_MENSAGEM_PADRAO = {
    ErrorKind.VALIDATION: "Invalid request data",
    ErrorKind.AUTHENTICATION: "Invalid API key or authentication failed",
    ErrorKind.NOT_FOUND: "Resource not found",
    ErrorKind.CONFLICT: "Resource conflict",
    ErrorKind.RATE_LIMIT: "Rate limit exceeded",
    ErrorKind.SERVER: "Internal server error",
    ErrorKind.CONNECTION: "Connection error",
    ErrorKind.TIMEOUT: "Request timeout",
    ErrorKind.CONFIGURATION: "SDK configuration error",
    ErrorKind.POLLING_TIMEOUT: "Polling timeout - operation still in progress",
    ErrorKind.INVOICE_PROCESSING: "Invoice processing failed",
    ErrorKind.API: "NFE.io API error",
}

_MENSAGEM_HTTP = {
    400: "Invalid request data",
    401: "Invalid API key or authentication failed",
    403: "Access forbidden",
    404: "Resource not found",
    409: "Resource conflict",
    429: "Rate limit exceeded",
    500: "Internal server error",
    502: "Bad gateway",
    503: "Service unavailable",
    504: "Gateway timeout",
}


class NfeError(Exception):
    """Erro unico do SDK; o tipo concreto e dado por `kind`, nao pela classe.

    Os chamadores devem ramificar por `err.kind` (ou `is_kind`) em vez de
    `isinstance`, o que continua valendo depois de serializar o erro.
    """

    def __init__(self, kind: ErrorKind | str, message: str | None = None,
                 code: int | None = None, details: Any = None):
        kind = ErrorKind(kind)
        message = message or _MENSAGEM_PADRAO[kind]
        super().__init__(message)
        self._kind = kind
        self.message = message
        self.code = code
        self.details = details

    @property
    def kind(self) -> ErrorKind:
        return self._kind

    @property
    def raw(self) -> Any:
        return self.details

    def __reduce__(self):
        return (NfeError, (self._kind.value, self.message, self.code, self.details))

    def __eq__(self, other):
        if not isinstance(other, NfeError):
            return NotImplemented
        return (self.kind, self.message, self.code, self.details) == (
            other.kind, other.message, other.code, other.details
        )

    def __hash__(self):
        # details fica de fora: pode ser dict
        return hash((self._kind, self.message, self.code))

    def __repr__(self) -> str:
        return f"NfeError(kind={self._kind.value!r}, message={self.message!r}, code={self.code!r})"

    def to_dict(self) -> dict:
        details = self.details
        if isinstance(details, BaseException):
            details = repr(details)
        return {
            "type": self._kind.value,
            "message": self.message,
            "code": self.code,
            "details": details,
        }

    @classmethod
    def from_dict(cls, dados: dict) -> "NfeError":
        return cls(dados["type"], dados.get("message"), dados.get("code"), dados.get("details"))


def is_nfe_error(error: object) -> bool:
    return isinstance(error, NfeError)


def is_kind(error: object, kind: ErrorKind | str) -> bool:
    """True se `error` e um NfeError do tipo `kind`."""
    return isinstance(error, NfeError) and error.kind == kind


def error_from_http_response(status: int, data: Any = None, message: str | None = None) -> NfeError:
    """Classifica uma resposta HTTP de erro (status nao-2xx) em um NfeError."""
    mensagem = message or _MENSAGEM_HTTP.get(status, f"HTTP {status} error")
    if status == 400:
        kind = ErrorKind.VALIDATION
    elif status == 401:
        kind = ErrorKind.AUTHENTICATION
    elif status == 404:
        kind = ErrorKind.NOT_FOUND
    elif status == 409:
        kind = ErrorKind.CONFLICT
    elif status == 429:
        kind = ErrorKind.RATE_LIMIT
    elif 500 <= status < 600:
        kind = ErrorKind.SERVER
    elif 400 <= status < 500:
        kind = ErrorKind.VALIDATION
    else:
        kind = ErrorKind.API
    return NfeError(kind, mensagem, status, data)


def error_from_network(error: BaseException) -> NfeError:
    """Classifica uma excecao de transporte (sem resposta HTTP)."""
    if isinstance(error, requests.exceptions.Timeout) or "timeout" in str(error).lower():
        return NfeError(ErrorKind.TIMEOUT, "Request timeout", details=error)
    return NfeError(ErrorKind.CONNECTION, "Network connection failed", details=error)


def configuration_error(message: str, details: Any = None) -> NfeError:
    return NfeError(ErrorKind.CONFIGURATION, message, details=details)


def polling_timeout_error(message: str, details: Any = None) -> NfeError:
    return NfeError(ErrorKind.POLLING_TIMEOUT, message, 408, details)


def invoice_processing_error(message: str, details: Any = None) -> NfeError:
    return NfeError(ErrorKind.INVOICE_PROCESSING, message, details=details)
