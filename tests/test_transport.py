"""Testes para transport.py — retry somente em metodos idempotentes."""
import logging
from unittest.mock import MagicMock

import pytest
import requests

from nfe_async.exceptions import ErrorKind, NfeError
from nfe_async.models import RetryConfig
from nfe_async.transport import HttpClient, calcular_espera, deve_repetir

from .conftest import resposta


@pytest.fixture
def session():
    return MagicMock(spec=requests.Session)


@pytest.fixture
def dormir():
    return MagicMock()


@pytest.fixture
def http(config, session, dormir):
    return HttpClient(config, session=session, sleep=dormir)


class TestRequisicao:
    def test_get_monta_url_e_headers(self, http, session):
        session.request.return_value = resposta(200, {"id": "x"})
        resp = http.get("/companies/c1/serviceinvoices/x")

        assert resp.status == 200
        assert resp.data == {"id": "x"}
        args, kwargs = session.request.call_args
        assert args == ("GET", "https://api.nfe.io/v1/companies/c1/serviceinvoices/x")
        assert kwargs["headers"]["Authorization"] == "chave-teste"
        assert kwargs["headers"]["Accept"] == "application/json"
        assert kwargs["headers"]["User-Agent"].startswith("nfe-async/9.9.9 python/")
        assert "Content-Type" not in kwargs["headers"]
        assert kwargs["timeout"] == 30.0

    def test_post_envia_json(self, http, session):
        session.request.return_value = resposta(201, {"id": "x"})
        http.post("companies/c1/serviceinvoices", {"servicesAmount": 10})
        args, kwargs = session.request.call_args
        assert args[1] == "https://api.nfe.io/v1/companies/c1/serviceinvoices"
        assert kwargs["json"] == {"servicesAmount": 10}
        assert kwargs["headers"]["Content-Type"] == "application/json"

    def test_params_none_descartados(self, http, session):
        session.request.return_value = resposta(200, [])
        http.get("/companies", params={"pageCount": 1, "pageIndex": None})
        assert session.request.call_args.kwargs["params"] == {"pageCount": 1}

    def test_202_devolvido_com_headers(self, http, session):
        session.request.return_value = resposta(202, None, {"Location": "/v1/x/ABC"})
        resp = http.post("/x", {})
        assert resp.status == 202
        assert resp.data is None
        assert resp.header("location") == "/v1/x/ABC"

    def test_corpo_pdf_em_bytes(self, http, session):
        session.request.return_value = resposta(200, b"%PDF-1.4", content_type="application/pdf")
        assert http.get("/x/pdf").data == b"%PDF-1.4"

    def test_corpo_texto(self, http, session):
        session.request.return_value = resposta(200, "ok", content_type="text/plain")
        assert http.get("/x").data == "ok"


class TestErros:
    def test_404_vira_not_found_com_mensagem_do_corpo(self, http, session, dormir):
        session.request.return_value = resposta(404, {"message": "Nota nao encontrada"})
        with pytest.raises(NfeError) as exc:
            http.get("/x")
        assert exc.value.kind == ErrorKind.NOT_FOUND
        assert exc.value.message == "Nota nao encontrada"
        assert exc.value.details == {"message": "Nota nao encontrada"}
        assert session.request.call_count == 1
        dormir.assert_not_called()

    def test_mensagem_texto(self, http, session):
        session.request.return_value = resposta(400, "payload invalido", content_type="text/plain")
        with pytest.raises(NfeError, match="payload invalido"):
            http.get("/x")

    def test_mensagem_fallback(self, http, session):
        session.request.return_value = resposta(409, {"outro": 1})
        with pytest.raises(NfeError, match="HTTP 409 error"):
            http.get("/x")

    def test_timeout_de_rede(self, http, session):
        session.request.side_effect = requests.exceptions.ReadTimeout("read timed out")
        with pytest.raises(NfeError) as exc:
            http.post("/x", {})
        assert exc.value.kind == ErrorKind.TIMEOUT
        assert isinstance(exc.value.__cause__, requests.exceptions.ReadTimeout)


class TestRetry:
    def test_get_repete_em_5xx(self, http, session, dormir):
        session.request.side_effect = [resposta(503), resposta(502), resposta(200, {"ok": True})]
        assert http.get("/x").data == {"ok": True}
        assert session.request.call_count == 3
        assert dormir.call_count == 2

    def test_get_repete_em_429(self, http, session):
        session.request.side_effect = [resposta(429), resposta(200, {})]
        http.get("/x")
        assert session.request.call_count == 2

    def test_get_repete_em_falha_de_rede(self, http, session):
        session.request.side_effect = [requests.exceptions.ConnectionError("reset"), resposta(200, {})]
        http.get("/x")
        assert session.request.call_count == 2

    def test_limite_de_retries(self, http, session, dormir):
        session.request.return_value = resposta(500)
        with pytest.raises(NfeError) as exc:
            http.get("/x")
        assert exc.value.kind == ErrorKind.SERVER
        assert exc.value.code == 500
        assert session.request.call_count == 4  # 1 + max_retries
        assert dormir.call_count == 3

    @pytest.mark.parametrize("metodo", ["put", "delete"])
    def test_put_delete_repetem(self, http, session, metodo):
        session.request.side_effect = [resposta(500), resposta(200, {})]
        getattr(http, metodo)("/x")
        assert session.request.call_count == 2

    @pytest.mark.parametrize("falha", [
        resposta(500),
        resposta(503),
        resposta(429),
        requests.exceptions.ConnectionError("reset"),
        requests.exceptions.ReadTimeout("timeout"),
    ])
    def test_post_nunca_repete(self, http, session, dormir, falha):
        session.request.side_effect = [falha, resposta(201, {"id": "x"})]
        with pytest.raises(NfeError):
            http.post("/companies/c1/serviceinvoices", {"servicesAmount": 10})
        assert session.request.call_count == 1
        dormir.assert_not_called()

    def test_4xx_nao_repete(self, http, session):
        session.request.return_value = resposta(400, {"message": "x"})
        with pytest.raises(NfeError):
            http.get("/x")
        assert session.request.call_count == 1

    def test_retry_logado(self, http, session, caplog):
        session.request.side_effect = [resposta(500), resposta(200, {})]
        with caplog.at_level(logging.WARNING):
            http.get("/x")
        assert any("retry 1/3" in r.message for r in caplog.records)

    def test_max_retries_zero(self, config, session, dormir):
        cfg = config.model_copy(update={"retry": RetryConfig(max_retries=0)})
        http = HttpClient(cfg, session=session, sleep=dormir)
        session.request.return_value = resposta(500)
        with pytest.raises(NfeError):
            http.get("/x")
        assert session.request.call_count == 1


class TestCalcularEspera:
    def test_exponencial_sem_jitter(self):
        retry = RetryConfig(base_delay=1.0, backoff_multiplier=2.0, max_delay=30.0)
        assert [calcular_espera(n, retry, aleatorio=lambda: 0.0) for n in range(4)] == [1.0, 2.0, 4.0, 8.0]

    def test_jitter_ate_10_porcento(self):
        retry = RetryConfig(base_delay=1.0, backoff_multiplier=2.0, max_delay=30.0)
        assert calcular_espera(2, retry, aleatorio=lambda: 1.0) == pytest.approx(4.4)

    def test_teto(self):
        retry = RetryConfig(base_delay=1.0, backoff_multiplier=2.0, max_delay=5.0)
        assert calcular_espera(10, retry) == 5.0

    def test_deve_repetir(self):
        assert deve_repetir("GET", NfeError(ErrorKind.SERVER))
        assert not deve_repetir("POST", NfeError(ErrorKind.SERVER))
        assert not deve_repetir("GET", NfeError(ErrorKind.NOT_FOUND))
