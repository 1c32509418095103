import configparser
import os

from pydantic import ValidationError

from .exceptions import configuration_error
from .models import NfeConfig, RetryConfig
from .polling import PollingOptions


SECAO_PADRAO = "nfeio"

# variavel de ambiente -> campo de NfeConfig
VARIAVEIS_AMBIENTE = {
    "NFE_API_KEY": "api_key",
    "NFE_ENVIRONMENT": "environment",
    "NFE_BASE_URL": "base_url",
    "NFE_TIMEOUT": "timeout",
    "NFE_ASYNC_LOG_DIR": "log_dir",
}

_CAMPOS_RETRY = ("max_retries", "base_delay", "max_delay", "backoff_multiplier")
_CAMPOS_POLLING = ("timeout", "initial_delay", "max_delay", "backoff_factor")


def _ler_secao(config_file: str, secao: str) -> dict:
    config = configparser.ConfigParser(inline_comment_prefixes=("#", ";"))
    if not config.read(config_file):
        raise configuration_error(f"Arquivo de configuracao '{config_file}' nao encontrado.")
    if not config.has_section(secao):
        raise configuration_error(
            f"Secao [{secao}] nao encontrada em {config_file}. "
            f"Secoes disponiveis: {', '.join(config.sections()) or 'nenhuma'}"
        )
    valores = dict(config[secao])

    # secoes auxiliares [<secao>.retry] e [<secao>.polling]
    for sufixo, campos in (("retry", _CAMPOS_RETRY), ("polling", _CAMPOS_POLLING)):
        nome = f"{secao}.{sufixo}"
        if config.has_section(nome):
            valores[sufixo] = {c: config[nome][c] for c in campos if config[nome].get(c)}
    return valores


def criar_config(**valores) -> NfeConfig:
    """Valida valores e constroi NfeConfig; erros viram NfeError CONFIGURATION."""
    if not valores.get("api_key"):
        raise configuration_error(
            "API key is required. Pass api_key or set the NFE_API_KEY environment variable.",
            {"configField": "api_key"},
        )
    try:
        if isinstance(valores.get("retry"), dict):
            valores["retry"] = RetryConfig(**valores["retry"])
        if isinstance(valores.get("polling"), dict):
            valores["polling"] = PollingOptions(**valores["polling"])
        return NfeConfig(**valores)
    except ValidationError as e:
        raise configuration_error(f"Configuracao invalida: {e}", e.errors()) from e


def carregar_config(config_file: str | None = None, secao: str = SECAO_PADRAO, **overrides) -> NfeConfig:
    """Monta NfeConfig: arquivo INI (se dado), depois ambiente, depois overrides explicitos."""
    valores: dict = {}
    if config_file:
        valores.update(_ler_secao(config_file, secao))
    for variavel, campo in VARIAVEIS_AMBIENTE.items():
        valor = os.environ.get(variavel)
        if valor:
            valores[campo] = valor
    valores.update({k: v for k, v in overrides.items() if v is not None})
    return criar_config(**valores)
