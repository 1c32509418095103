"""Interpretacao da resposta de criacao: 201 (nota pronta) ou 202 + Location (processamento adiado)."""
from dataclasses import dataclass
from typing import Any, Literal
from urllib.parse import urlsplit

from .exceptions import configuration_error
from .transport import HttpResponse


STATUS_IMEDIATO = frozenset({200, 201})
STATUS_ADIADO = 202


@dataclass(frozen=True, slots=True)
class AsyncResponse:
    location: str
    invoice_id: str
    status: Literal["pending"] = "pending"


@dataclass(frozen=True, slots=True)
class Immediate:
    entity: Any
    kind: Literal["immediate"] = "immediate"


@dataclass(frozen=True, slots=True)
class Pending:
    response: AsyncResponse
    kind: Literal["pending"] = "pending"


CreationResult = Immediate | Pending


def location_path(location: str, base_url: str = "") -> str:
    """Reduz uma URL absoluta a path+query relativo a `base_url`.

    O prefixo de versao da base (ex.: /v1) e removido para nao duplicar na URL final.
    """
    partes = urlsplit(location)
    if partes.scheme and partes.netloc:
        path = partes.path + (f"?{partes.query}" if partes.query else "")
    else:
        path = location if location.startswith("/") else f"/{location}"
    prefixo = urlsplit(base_url).path.rstrip("/")
    if prefixo and path.startswith(prefixo + "/"):
        path = path[len(prefixo):]
    return path


def extract_invoice_id(location: str) -> str:
    """Ultimo segmento nao-vazio do path de `location`."""
    path = urlsplit(location or "").path
    segmentos = [s for s in path.split("/") if s]
    if not segmentos:
        raise configuration_error(
            f"Nao foi possivel extrair o id da nota do header Location: '{location}'",
            {"location": location},
        )
    return segmentos[-1]


def parse_creation_response(resp: HttpResponse) -> CreationResult:
    if resp.status in STATUS_IMEDIATO:
        return Immediate(resp.data)

    if resp.status == STATUS_ADIADO:
        location = resp.header("location")
        if not location:
            raise configuration_error(
                "Resposta 202 sem header Location: contrato do servidor invalido",
                {"status": resp.status, "headers": dict(resp.headers), "body": resp.data},
            )
        return Pending(AsyncResponse(location=location, invoice_id=extract_invoice_id(location)))

    raise configuration_error(
        f"Resposta inesperada na criacao: HTTP {resp.status}",
        {"status": resp.status, "body": resp.data},
    )
