from enum import Enum


class FlowStatus(str, Enum):
    """Etapas de processamento de uma NFS-e no NFE.io (campo flowStatus)."""

    CANCEL_FAILED = "CancelFailed"
    ISSUE_FAILED = "IssueFailed"
    ISSUED = "Issued"
    CANCELLED = "Cancelled"
    PULL_FROM_CITY_HALL = "PullFromCityHall"
    WAITING_CALCULATE_TAXES = "WaitingCalculateTaxes"
    WAITING_DEFINE_RPS_NUMBER = "WaitingDefineRpsNumber"
    WAITING_SEND = "WaitingSend"
    WAITING_SEND_CANCEL = "WaitingSendCancel"
    WAITING_RETURN = "WaitingReturn"
    WAITING_DOWNLOAD = "WaitingDownload"


SUCCESS_FLOW_STATES = frozenset({FlowStatus.ISSUED, FlowStatus.CANCELLED})
FAILURE_FLOW_STATES = frozenset({FlowStatus.ISSUE_FAILED, FlowStatus.CANCEL_FAILED})
TERMINAL_FLOW_STATES = SUCCESS_FLOW_STATES | FAILURE_FLOW_STATES


def parse_flow_status(valor) -> FlowStatus | None:
    """Converte valor bruto em FlowStatus; None se desconhecido."""
    if isinstance(valor, FlowStatus):
        return valor
    try:
        return FlowStatus(valor)
    except ValueError:
        return None


def is_terminal(status) -> bool:
    """True somente para Issued, IssueFailed, Cancelled e CancelFailed.

    Valores desconhecidos (ou None) contam como intermediarios: continua o polling.
    """
    return parse_flow_status(status) in TERMINAL_FLOW_STATES


def is_success(status) -> bool:
    return parse_flow_status(status) in SUCCESS_FLOW_STATES


def is_failure(status) -> bool:
    return parse_flow_status(status) in FAILURE_FLOW_STATES
