import logging
import platform
import random
import sys
import time
from dataclasses import dataclass, field
from typing import Any

import requests
from requests.structures import CaseInsensitiveDict

from .exceptions import ErrorKind, NfeError, error_from_http_response, error_from_network
from .models import NfeConfig, RetryConfig


# POST (criacao de nota) nunca e repetido: repetir pode emitir o documento fiscal duas vezes.
METODOS_IDEMPOTENTES = frozenset({"GET", "PUT", "DELETE"})
_TIPOS_REPETIVEIS = frozenset({
    ErrorKind.RATE_LIMIT, ErrorKind.SERVER, ErrorKind.CONNECTION, ErrorKind.TIMEOUT,
})


@dataclass(frozen=True, slots=True)
class HttpResponse:
    data: Any
    status: int
    headers: CaseInsensitiveDict = field(default_factory=CaseInsensitiveDict)

    def header(self, nome: str) -> str | None:
        return self.headers.get(nome)


def calcular_espera(tentativa: int, retry: RetryConfig, aleatorio=random.random) -> float:
    """Espera antes do retry n (0-based): base * mult**n + jitter de ate 10%, com teto max_delay."""
    exponencial = retry.base_delay * (retry.backoff_multiplier ** tentativa)
    jitter = aleatorio() * 0.1 * exponencial
    return min(exponencial + jitter, retry.max_delay)


def deve_repetir(metodo: str, erro: NfeError) -> bool:
    return metodo.upper() in METODOS_IDEMPOTENTES and erro.kind in _TIPOS_REPETIVEIS


def _extrair_mensagem(dados: Any, status: int) -> str:
    if isinstance(dados, dict):
        for campo in ("message", "error", "detail", "details"):
            if isinstance(dados.get(campo), str):
                return dados[campo]
    if isinstance(dados, str) and dados.strip():
        return dados
    return f"HTTP {status} error"


def _ler_corpo(resp: requests.Response) -> Any:
    if not resp.content:
        return None
    content_type = resp.headers.get("content-type", "")
    if "application/json" in content_type:
        try:
            return resp.json()
        except ValueError:
            return resp.text
    if "application/pdf" in content_type or "application/xml" in content_type:
        return resp.content
    return resp.text


class HttpClient:
    """Transporte HTTP do SDK sobre requests.Session.

    GET/PUT/DELETE sao repetidos em 429, 5xx e falhas de rede com backoff
    exponencial limitado (RetryConfig). POST e enviado uma unica vez.
    Respostas nao-2xx viram NfeError; 2xx (inclusive 202) voltam como HttpResponse.
    """

    def __init__(self, config: NfeConfig, session: requests.Session | None = None,
                 sleep=time.sleep):
        self.config = config
        self.session = session if session is not None else requests.Session()
        self._sleep = sleep

    def get(self, path: str, params: dict | None = None) -> HttpResponse:
        return self._request("GET", path, params=params)

    def post(self, path: str, data: Any = None) -> HttpResponse:
        return self._request("POST", path, data=data)

    def put(self, path: str, data: Any = None) -> HttpResponse:
        return self._request("PUT", path, data=data)

    def delete(self, path: str) -> HttpResponse:
        return self._request("DELETE", path)

    def close(self) -> None:
        self.session.close()

    def build_url(self, path: str) -> str:
        return f"{self.config.base_url.rstrip('/')}/{path.lstrip('/')}"

    @property
    def user_agent(self) -> str:
        return f"nfe-async/{self.config.version} python/{platform.python_version()} ({sys.platform})"

    def _headers(self, data: Any) -> dict:
        headers = {
            "Authorization": self.config.api_key,
            "Accept": "application/json",
            "User-Agent": self.user_agent,
        }
        if data is not None:
            headers["Content-Type"] = "application/json"
        return headers

    def _request(self, metodo: str, path: str, params: dict | None = None, data: Any = None) -> HttpResponse:
        url = self.build_url(path)
        if params:
            params = {k: v for k, v in params.items() if v is not None}
        retry = self.config.retry
        tentativa = 0
        while True:
            try:
                return self._executar(metodo, url, params, data)
            except NfeError as e:
                if tentativa >= retry.max_retries or not deve_repetir(metodo, e):
                    raise
                espera = calcular_espera(tentativa, retry)
                tentativa += 1
                logging.warning(
                    "%s %s falhou (%s), retry %d/%d em %.2fs",
                    metodo, path, e.kind.value, tentativa, retry.max_retries, espera,
                )
                self._sleep(espera)

    def _executar(self, metodo: str, url: str, params: dict | None, data: Any) -> HttpResponse:
        try:
            resp = self.session.request(
                metodo,
                url,
                params=params or None,
                json=data,
                headers=self._headers(data),
                timeout=self.config.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise error_from_network(e) from e

        corpo = _ler_corpo(resp)
        if resp.status_code >= 400:
            raise error_from_http_response(
                resp.status_code, corpo, _extrair_mensagem(corpo, resp.status_code)
            )
        return HttpResponse(data=corpo, status=resp.status_code, headers=CaseInsensitiveDict(resp.headers))
