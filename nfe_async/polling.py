"""Motor generico de polling com backoff exponencial.

O motor nao sabe o que significa "pronto": a condicao de parada chega como
`is_complete`. Cada chamada de `poll()` tem seu proprio PollState (tentativa,
espera atual, instante de inicio), que avanca por funcoes puras; o driver so
chama a sonda, consulta o relogio e dorme. Relogio e sleep sao injetaveis.

Todas as duracoes sao em segundos.
"""
import asyncio
import logging
import time
from dataclasses import dataclass, replace
from typing import Any, Awaitable, Callable, Iterator, TypeVar

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .exceptions import ErrorKind, NfeError, polling_timeout_error

T = TypeVar("T")

DEFAULT_TIMEOUT = 120.0
DEFAULT_INITIAL_DELAY = 1.0
DEFAULT_MAX_DELAY = 10.0
DEFAULT_BACKOFF_FACTOR = 1.5

# (tentativa, resultado) -> None
CallbackPoll = Callable[[int, Any], None]
# (erro, tentativa) -> True para continuar o polling
CallbackErro = Callable[[Exception, int], bool]


@dataclass(frozen=True, slots=True)
class PollState:
    attempt: int
    delay: float
    started_at: float


def start(initial_delay: float, now: float) -> PollState:
    return PollState(attempt=0, delay=initial_delay, started_at=now)


def next_attempt(state: PollState) -> PollState:
    return replace(state, attempt=state.attempt + 1)


def check_deadline(state: PollState, now: float, timeout: float) -> float:
    """Retorna o tempo decorrido ou lanca POLLING_TIMEOUT se a proxima espera estourar o prazo."""
    elapsed = now - state.started_at
    if elapsed + state.delay > timeout:
        elapsed_ms = int(elapsed * 1000)
        raise polling_timeout_error(
            f"Polling timeout exceeded after {state.attempt} attempts ({elapsed_ms}ms)",
            {"attempts": state.attempt, "elapsed_ms": elapsed_ms, "timeout": timeout},
        )
    return elapsed


def advance(state: PollState, backoff_factor: float, max_delay: float) -> PollState:
    return replace(state, delay=min(state.delay * backoff_factor, max_delay))


def backoff_delays(initial_delay: float, backoff_factor: float, max_delay: float, n: int) -> Iterator[float]:
    """Sequencia das n primeiras esperas: min(initial_delay * backoff_factor**i, max_delay)."""
    delay = initial_delay
    for _ in range(n):
        yield delay
        delay = min(delay * backoff_factor, max_delay)


class PollingOptions(BaseModel):
    model_config = ConfigDict(frozen=True)

    timeout: float = Field(default=DEFAULT_TIMEOUT, gt=0)
    initial_delay: float = Field(default=DEFAULT_INITIAL_DELAY, gt=0)
    max_delay: float = Field(default=DEFAULT_MAX_DELAY, gt=0)
    backoff_factor: float = Field(default=DEFAULT_BACKOFF_FACTOR, ge=1)

    @model_validator(mode="after")
    def _validar_max_delay(self) -> "PollingOptions":
        if self.max_delay < self.initial_delay:
            raise ValueError(
                f"max_delay ({self.max_delay}) deve ser >= initial_delay ({self.initial_delay})"
            )
        return self

    def as_kwargs(self) -> dict:
        return self.model_dump()


def create_polling_config(timeout: float) -> PollingOptions:
    """Configuracao tipica para um prazo total: espera maxima de 10% do prazo (teto 10s)."""
    max_delay = min(DEFAULT_MAX_DELAY, timeout / 10)
    return PollingOptions(
        timeout=timeout,
        initial_delay=min(DEFAULT_INITIAL_DELAY, max_delay),
        max_delay=max_delay,
        backoff_factor=DEFAULT_BACKOFF_FACTOR,
    )


def poll(
    fn: Callable[[], T],
    is_complete: Callable[[T], bool],
    *,
    timeout: float = DEFAULT_TIMEOUT,
    initial_delay: float = DEFAULT_INITIAL_DELAY,
    max_delay: float = DEFAULT_MAX_DELAY,
    backoff_factor: float = DEFAULT_BACKOFF_FACTOR,
    on_poll: CallbackPoll | None = None,
    on_error: CallbackErro | None = None,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Chama `fn` ate `is_complete(resultado)` ou ate o prazo `timeout`.

    - A primeira tentativa nunca espera.
    - Um resultado completo e devolvido antes de qualquer checagem de prazo.
    - Erro de `fn`: se `on_error(erro, tentativa)` devolver True, segue para a
      proxima tentativa (mesmo orcamento de tempo); caso contrario o erro
      original e relancado sem embrulho.
    - Antes de cada espera, se decorrido + espera > timeout, lanca NfeError
      POLLING_TIMEOUT com `attempts` e `elapsed_ms` em details.

    O motor nao faz retry de transporte; isso fica com o HttpClient.
    """
    estado = start(initial_delay, clock())
    while True:
        estado = next_attempt(estado)
        try:
            resultado = fn()
        except Exception as e:
            if on_error is None or not on_error(e, estado.attempt):
                raise
            logging.warning("Polling: erro tolerado na tentativa %d: %s", estado.attempt, e)
        else:
            if on_poll is not None:
                on_poll(estado.attempt, resultado)
            if is_complete(resultado):
                logging.debug("Polling: concluido na tentativa %d", estado.attempt)
                return resultado

        check_deadline(estado, clock(), timeout)
        logging.debug("Polling: tentativa %d incompleta, aguardando %.3fs", estado.attempt, estado.delay)
        sleep(estado.delay)
        estado = advance(estado, backoff_factor, max_delay)


async def apoll(
    fn: Callable[[], Awaitable[T]],
    is_complete: Callable[[T], bool],
    *,
    timeout: float = DEFAULT_TIMEOUT,
    initial_delay: float = DEFAULT_INITIAL_DELAY,
    max_delay: float = DEFAULT_MAX_DELAY,
    backoff_factor: float = DEFAULT_BACKOFF_FACTOR,
    on_poll: CallbackPoll | None = None,
    on_error: CallbackErro | None = None,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Versao asyncio de `poll()` para sondas corrotina; mesmo contrato.

    Varias chamadas concorrentes (asyncio.gather) sao independentes: cada uma
    tem seu PollState. Cancelar a task interrompe a espera, nao a sonda em voo.
    """
    estado = start(initial_delay, clock())
    while True:
        estado = next_attempt(estado)
        try:
            resultado = await fn()
        except Exception as e:
            if on_error is None or not on_error(e, estado.attempt):
                raise
            logging.warning("Polling: erro tolerado na tentativa %d: %s", estado.attempt, e)
        else:
            if on_poll is not None:
                on_poll(estado.attempt, resultado)
            if is_complete(resultado):
                logging.debug("Polling: concluido na tentativa %d", estado.attempt)
                return resultado

        check_deadline(estado, clock(), timeout)
        await sleep(estado.delay)
        estado = advance(estado, backoff_factor, max_delay)


def poll_with_retries(
    fn: Callable[[], T],
    is_complete: Callable[[T], bool],
    max_attempts: int,
    delay: float,
    *,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Polling simples: intervalo fixo, numero fixo de tentativas, sem backoff."""
    for tentativa in range(1, max_attempts + 1):
        resultado = fn()
        if is_complete(resultado):
            return resultado
        if tentativa < max_attempts:
            sleep(delay)
    raise NfeError(
        ErrorKind.API,
        f"Polling failed after {max_attempts} attempts",
        details={"attempts": max_attempts, "delay": delay},
    )
