from dataclasses import dataclass
from importlib.metadata import version, PackageNotFoundError
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .flow_status import FlowStatus, parse_flow_status
from .polling import PollingOptions


DEFAULT_BASE_URL = "https://api.nfe.io/v1"


def versao_sdk() -> str:
    try:
        return version("nfe-async")
    except PackageNotFoundError:
        return "0.0.0"


class RetryConfig(BaseModel):
    """Retry do transporte (somente metodos idempotentes). Independente do polling."""

    model_config = ConfigDict(frozen=True)

    max_retries: int = Field(default=3, ge=0)
    base_delay: float = Field(default=1.0, ge=0)
    max_delay: float = Field(default=30.0, ge=0)
    backoff_multiplier: float = Field(default=2.0, ge=1)


class NfeConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    api_key: str
    environment: Literal["production", "development"] = "production"
    base_url: str = DEFAULT_BASE_URL
    timeout: float = Field(default=30.0, gt=0)  # segundos, por requisicao
    retry: RetryConfig = Field(default_factory=RetryConfig)
    polling: PollingOptions = Field(default_factory=PollingOptions)
    version: str = Field(default_factory=versao_sdk)
    log_dir: str | None = None

    @field_validator("api_key")
    @classmethod
    def validar_api_key(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("api_key vazia")
        return v

    @field_validator("base_url")
    @classmethod
    def normalizar_base_url(cls, v: str) -> str:
        return v.rstrip("/")


class ServiceInvoice(BaseModel):
    """NFS-e como devolvida pelo NFE.io; campos nao mapeados ficam em model_extra."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str | None = None
    flow_status: str | None = Field(default=None, alias="flowStatus")
    flow_message: str | None = Field(default=None, alias="flowMessage")
    status: str | None = None
    number: int | str | None = None

    @property
    def flow_status_enum(self) -> FlowStatus | None:
        return parse_flow_status(self.flow_status)

    @classmethod
    def from_api(cls, dados) -> "ServiceInvoice":
        if isinstance(dados, ServiceInvoice):
            return dados
        return cls.model_validate(dados or {})


@dataclass(frozen=True, slots=True)
class InvoiceStatus:
    status: str
    invoice: ServiceInvoice
    is_complete: bool
    is_failed: bool
