# net.py
import logging
import threading
import concurrent.futures
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, List, Mapping, Optional, Protocol, Sequence, Union

import requests
from requests.structures import CaseInsensitiveDict

log = logging.getLogger(__name__)


class ButtonError(Exception):
    pass


class TransportError(ButtonError):
    """No response was received (DNS, TLS, connectivity, timeout)."""


class HTTPStatusError(ButtonError):
    def __init__(self, status_code: int, body: Optional[bytes] = None):
        super().__init__(f"HTTP {status_code}")
        self.status_code = status_code
        self.body = body


@dataclass(frozen=True)
class Request:
    url: str
    headers: Mapping[str, str] = field(default_factory=dict)
    body: Optional[bytes] = None
    method: str = field(default="POST", init=False)

    def __post_init__(self):
        # 大小写不敏感 + 只读
        object.__setattr__(self, "headers", MappingProxyType(CaseInsensitiveDict(self.headers)))

    def header(self, name: str) -> Optional[str]:
        return self.headers.get(name)


@dataclass(frozen=True)
class Success:
    body: bytes = b""
    status_code: int = 200

    ok = True

    @property
    def error(self) -> Optional[ButtonError]:
        return None


@dataclass(frozen=True)
class HTTPFailure:
    status_code: int
    body: Optional[bytes] = None

    ok = False

    @property
    def error(self) -> ButtonError:
        return HTTPStatusError(self.status_code, self.body)


@dataclass(frozen=True)
class TransportFailure:
    cause: BaseException

    ok = False
    body = None

    @property
    def error(self) -> ButtonError:
        if isinstance(self.cause, ButtonError):
            return self.cause
        err = TransportError(str(self.cause) or type(self.cause).__name__)
        err.__cause__ = self.cause
        return err


Outcome = Union[Success, HTTPFailure, TransportFailure]
OutcomeCallback = Callable[[Outcome], None]


class Transport(Protocol):
    def send(self, request: Request, on_outcome: OutcomeCallback) -> None: ...


def _log_worker_error(request: Request, fut: concurrent.futures.Future) -> None:
    # on_outcome 在 worker 线程里抛错时，Future 里的异常没人取，这里记下来
    err = fut.exception()
    if err is not None:
        log.error(
            f"[NET] {request.method} {request.url} outcome delivery raised: {err!r}",
            exc_info=(type(err), err, err.__traceback__),
        )


def outcome_from_status(status_code: int, body: Optional[bytes]) -> Outcome:
    # 2xx/3xx 都算拿到了正常响应
    if status_code < 400:
        return Success(body or b"", status_code)
    return HTTPFailure(status_code, body)


class RequestsTransport:
    """
    One network call per send(), executed on a worker pool.
    The session is shared across calls; no state is kept between calls.
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        timeout: float = 10.0,
        max_workers: int = 4,
    ):
        self.sess = session or requests.Session()
        self.timeout = timeout
        self._pool = concurrent.futures.ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="button-net"
        )

    def send(self, request: Request, on_outcome: OutcomeCallback) -> None:
        try:
            fut = self._pool.submit(self._do, request, on_outcome)
        except RuntimeError as e:
            # pool already shut down
            log.error(f"[NET] {request.method} {request.url} not sent: {e}")
            on_outcome(TransportFailure(e))
            return
        fut.add_done_callback(lambda f: _log_worker_error(request, f))

    def _do(self, request: Request, on_outcome: OutcomeCallback) -> None:
        on_outcome(self._call(request))

    def _call(self, request: Request) -> Outcome:
        try:
            r = self.sess.request(
                request.method,
                request.url,
                headers=dict(request.headers),
                data=request.body,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            log.warning(f"[NET] {request.method} {request.url} failed: {e}")
            return TransportFailure(e)
        except Exception as e:
            # 例如 header 里有 latin-1 编不了的字符
            log.exception(f"[NET] {request.method} {request.url} failed unexpectedly")
            return TransportFailure(e)
        log.debug(f"[NET] {request.method} {request.url} -> {r.status_code}")
        return outcome_from_status(r.status_code, r.content)

    def close(self) -> None:
        self._pool.shutdown(wait=False)
        self.sess.close()


Script = Union[Sequence[Outcome], Callable[[Request, int], Outcome]]


class ScriptedTransport:
    """
    In-memory transport for tests.

    `script` is either a list of outcomes (consumed in order, the last one
    repeats) or a callable (request, call_number) -> Outcome. With a scheduler
    the outcome arrives after `latency` seconds of scheduler time.
    """

    def __init__(self, script: Script, scheduler: Any = None, latency: float = 0.0):
        if not callable(script) and not script:
            raise ValueError("script needs at least one outcome")
        self._script = script
        self._scheduler = scheduler
        self.latency = latency
        self.requests: List[Request] = []
        self._lock = threading.Lock()

    @property
    def calls(self) -> int:
        with self._lock:
            return len(self.requests)

    def send(self, request: Request, on_outcome: OutcomeCallback) -> None:
        with self._lock:
            n = len(self.requests)
            self.requests.append(request)
        if callable(self._script):
            outcome = self._script(request, n)
        else:
            outcome = self._script[min(n, len(self._script) - 1)]

        if self._scheduler is None:
            on_outcome(outcome)
        else:
            self._scheduler.call_later(self.latency, on_outcome, outcome)
