# retry.py
import enum
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from dispatch import Scheduler
from net import HTTPFailure, Outcome, Request, Transport, TransportFailure

log = logging.getLogger(__name__)

RATE_LIMITED = 429


class Classification(enum.Enum):
    TERMINAL = "terminal"
    RETRYABLE = "retryable"


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 3
    base_interval_ms: int = 100

    def __post_init__(self):
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries}")
        if self.base_interval_ms <= 0:
            raise ValueError(f"base_interval_ms must be > 0, got {self.base_interval_ms}")


def classify(outcome: Outcome) -> Classification:
    if isinstance(outcome, TransportFailure):
        return Classification.RETRYABLE
    if isinstance(outcome, HTTPFailure):
        code = outcome.status_code
        if code == RATE_LIMITED or 500 <= code <= 599:
            return Classification.RETRYABLE
    return Classification.TERMINAL


def backoff_delay_ms(attempt: int, base_interval_ms: int) -> int:
    """attempt 0 -> base, 1 -> base*2, 2 -> base*4 ..."""
    return base_interval_ms * (2 ** attempt)


class RetryCoordinator:
    """
    Drives one logical request until a terminal outcome or until the retry
    budget is spent.

    Outcomes are always handled on `scheduler`, so `completion` runs exactly
    once, on the scheduler's execution context, and never from inside start().
    Budget exhaustion is delivered as the last outcome, same shape as any
    other failure.
    """

    ATTEMPTING = "attempting"
    WAITING = "waiting"
    DONE = "done"

    def __init__(
        self,
        transport: Transport,
        scheduler: Scheduler,
        request: Request,
        completion: Callable[[Outcome], None],
        policy: Optional[RetryPolicy] = None,
    ):
        self._transport = transport
        self._scheduler = scheduler
        self.request = request
        self.policy = policy or RetryPolicy()
        self._completion = completion
        self.attempt = 0
        self.calls = 0
        self.state: Optional[str] = None

    def start(self) -> "RetryCoordinator":
        if self.state is not None:
            raise RuntimeError("coordinator already started")
        self._send()
        return self

    @property
    def done(self) -> bool:
        return self.state == self.DONE

    def _send(self) -> None:
        if self.state == self.DONE:
            return
        self.state = self.ATTEMPTING
        self.calls += 1
        attempt = self.attempt
        try:
            self._transport.send(
                self.request,
                lambda outcome: self._scheduler.call_soon(self._on_outcome, attempt, outcome),
            )
        except Exception as e:
            log.exception(f"[RETRY] transport raised for {self.request.url}")
            self._scheduler.call_soon(self._on_outcome, attempt, TransportFailure(e))

    def _on_outcome(self, attempt: int, outcome: Outcome) -> None:
        if self.state != self.ATTEMPTING or attempt != self.attempt:
            log.debug(f"[RETRY] {self.request.url} dropped late outcome for attempt={attempt}")
            return

        if classify(outcome) is Classification.TERMINAL:
            self._finish(outcome)
            return

        next_attempt = attempt + 1
        if next_attempt > self.policy.max_retries:
            log.error(
                f"[RETRY] {self.request.url} giving up after {self.calls} calls: {outcome.error}"
            )
            self._finish(outcome)
            return

        delay_ms = backoff_delay_ms(attempt, self.policy.base_interval_ms)
        log.warning(
            f"[RETRY] {self.request.url} failed attempt={attempt}: {outcome.error}, "
            f"retry {next_attempt}/{self.policy.max_retries} in {delay_ms}ms"
        )
        self.attempt = next_attempt
        self.state = self.WAITING
        self._scheduler.call_later(delay_ms / 1000.0, self._send)

    def _finish(self, outcome: Outcome) -> None:
        self.state = self.DONE
        self._completion(outcome)


def send_with_retry(
    transport: Transport,
    scheduler: Scheduler,
    request: Request,
    completion: Callable[[Outcome], None],
    policy: Optional[RetryPolicy] = None,
) -> RetryCoordinator:
    return RetryCoordinator(transport, scheduler, request, completion, policy).start()
