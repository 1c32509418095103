import json
import logging
import os
from datetime import datetime, timedelta, timezone

LOG_RETENCAO_DIAS = 7

_BRT = timezone(timedelta(hours=-3))


def _agora_brt() -> datetime:
    """Retorna o datetime atual no fuso BRT (UTC-3)."""
    return datetime.now(_BRT)


def _limpar_logs_antigos(log_dir: str):
    limite = _agora_brt() - timedelta(days=LOG_RETENCAO_DIAS)
    for nome in os.listdir(log_dir):
        caminho = os.path.join(log_dir, nome)
        if os.path.isfile(caminho):
            modificado = datetime.fromtimestamp(os.path.getmtime(caminho), _BRT)
            if modificado < limite:
                try:
                    os.remove(caminho)
                except OSError as e:
                    logging.warning("Nao foi possivel remover log %s: %s", caminho, e)


def salvar_resposta_api(payload, operacao: str, identificador: str, log_dir: str) -> str:
    """Grava a resposta da API em <log_dir>/<operacao>-<id>-<timestamp>.json e retorna o caminho."""
    os.makedirs(log_dir, exist_ok=True)
    _limpar_logs_antigos(log_dir)
    timestamp = _agora_brt().strftime("%Y%m%d-%H%M%S")
    sufixo = f"-{identificador}" if identificador else ""
    arquivo = os.path.join(log_dir, f"{operacao}{sufixo}-{timestamp}.json")
    if isinstance(payload, bytes):
        payload = payload.decode("utf-8", errors="replace")
    with open(arquivo, "w") as f:
        f.write(json.dumps(payload, indent=2, ensure_ascii=False, default=str) + "\n")
    return arquivo
