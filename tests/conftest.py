import json

import pytest
import requests
from requests.structures import CaseInsensitiveDict

from nfe_async.models import NfeConfig, RetryConfig
from nfe_async.polling import PollingOptions


COMPANY_ID = "company-123"
INVOICE_ID = "invoice-456"
LOCATION = f"/v1/companies/{COMPANY_ID}/serviceinvoices/{INVOICE_ID}"


class RelogioFalso:
    """Relogio + sleep controlados: sleep avanca o tempo e registra a espera."""

    def __init__(self, inicio: float = 1000.0):
        self.agora = inicio
        self.esperas: list[float] = []

    def __call__(self) -> float:
        return self.agora

    def sleep(self, segundos: float) -> None:
        self.esperas.append(segundos)
        self.agora += segundos


def resposta(status: int, corpo=None, headers: dict | None = None,
             content_type: str = "application/json") -> requests.Response:
    """Monta um requests.Response real, sem rede."""
    resp = requests.Response()
    resp.status_code = status
    resp.headers = CaseInsensitiveDict(headers or {})
    if corpo is None:
        resp._content = b""
    elif isinstance(corpo, bytes):
        resp._content = corpo
        resp.headers.setdefault("content-type", content_type)
    elif isinstance(corpo, str) and content_type != "application/json":
        resp._content = corpo.encode()
        resp.headers.setdefault("content-type", content_type)
    else:
        resp._content = json.dumps(corpo).encode()
        resp.headers.setdefault("content-type", content_type)
    resp.encoding = "utf-8"
    return resp


@pytest.fixture
def relogio():
    return RelogioFalso()


@pytest.fixture
def config():
    return NfeConfig(
        api_key="chave-teste",
        base_url="https://api.nfe.io/v1",
        retry=RetryConfig(max_retries=3, base_delay=1.0, max_delay=30.0, backoff_multiplier=2.0),
        polling=PollingOptions(),
        version="9.9.9",
    )
