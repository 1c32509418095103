import logging
import platform
import time
from typing import Any, Callable

import requests

from .async_response import location_path
from .config import carregar_config, criar_config
from .exceptions import NfeError
from .flow_status import is_terminal
from .models import NfeConfig
from .polling import poll
from .service_invoices import ServiceInvoicesResource
from .transport import HttpClient


def _flow_status_terminal(dados: Any) -> bool:
    return isinstance(dados, dict) and is_terminal(dados.get("flowStatus"))


class NfeClient:
    """Ponto de entrada do SDK.

    A configuracao e um valor explicito (NfeConfig) passado na construcao;
    sem ele, e montada por carregar_config() a partir do ambiente e dos overrides.
    """

    def __init__(self, config: NfeConfig | None = None, *, session: requests.Session | None = None,
                 clock=time.monotonic, sleep=time.sleep, **overrides):
        self.config = config if config is not None else carregar_config(**overrides)
        self._session = session
        self._clock = clock
        self._sleep = sleep
        self._montar()

    def _montar(self) -> None:
        self.http = HttpClient(self.config, session=self._session, sleep=self._sleep)
        self.service_invoices = ServiceInvoicesResource(
            self.http,
            polling=self.config.polling,
            log_dir=self.config.log_dir,
            clock=self._clock,
            sleep=self._sleep,
        )

    def update_config(self, **alteracoes) -> NfeConfig:
        """Gera um novo NfeConfig com as alteracoes e reconstroi transporte e recursos."""
        self.config = criar_config(**{**self.config.model_dump(), **alteracoes})
        if self._session is None:
            self.http.close()
        self._montar()
        return self.config

    def poll_until_complete(
        self,
        location: str,
        is_complete: Callable[[Any], bool] | None = None,
        **opcoes,
    ) -> Any:
        """Faz polling de uma Location devolvida num 202 ate o recurso ficar pronto.

        Sem `is_complete`, o recurso esta pronto quando flowStatus e terminal.
        `opcoes` aceita os parametros de poll() (timeout, initial_delay, on_poll...).
        """
        path = location_path(location, self.config.base_url)
        kwargs = {**self.config.polling.as_kwargs(), "clock": self._clock, "sleep": self._sleep, **opcoes}
        return poll(
            lambda: self.http.get(path).data,
            is_complete or _flow_status_terminal,
            **kwargs,
        )

    def health_check(self) -> dict:
        try:
            self.http.get("/companies", params={"pageCount": 1})
            return {"status": "ok"}
        except NfeError as e:
            logging.warning("Health check falhou: %s", e)
            return {
                "status": "error",
                "details": {
                    "error": e.message,
                    "type": e.kind.value,
                    "config": {
                        "base_url": self.config.base_url,
                        "environment": self.config.environment,
                        "has_api_key": bool(self.config.api_key),
                    },
                },
            }

    def get_client_info(self) -> dict:
        return {
            "version": self.config.version,
            "python_version": platform.python_version(),
            "environment": self.config.environment,
            "base_url": self.config.base_url,
            "has_api_key": bool(self.config.api_key),
        }

    def close(self) -> None:
        self.http.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
