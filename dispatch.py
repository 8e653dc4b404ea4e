# dispatch.py
import heapq
import itertools
import logging
import threading
import concurrent.futures
from typing import Any, Callable, List, Protocol, Set, Tuple

log = logging.getLogger(__name__)


class Scheduler(Protocol):
    def call_soon(self, fn: Callable[..., Any], *args: Any) -> None: ...

    def call_later(self, delay: float, fn: Callable[..., Any], *args: Any) -> None: ...


class DispatchQueue:
    """
    Serial execution context: every callback runs on one worker thread,
    in the order it was handed over. Delayed callbacks wait on a timer
    thread and are handed over when due, so the caller is never blocked.
    """

    def __init__(self, name: str = "button-dispatch"):
        self.name = name
        self._worker = concurrent.futures.ThreadPoolExecutor(
            max_workers=1, thread_name_prefix=name
        )
        self._timers: Set[threading.Timer] = set()
        self._lock = threading.Lock()
        self._closed = False

    def call_soon(self, fn: Callable[..., Any], *args: Any) -> None:
        # close() 之后来的回调可能来自别的线程，只记日志不抛
        with self._lock:
            if self._closed:
                self._dropped(fn)
                return
            try:
                self._worker.submit(self._run, fn, args)
            except RuntimeError:
                self._dropped(fn)

    def _dropped(self, fn: Callable[..., Any]) -> None:
        log.warning(f"[DISPATCH] {self.name} is closed, dropped {getattr(fn, '__name__', fn)}")

    def call_later(self, delay: float, fn: Callable[..., Any], *args: Any) -> None:
        if delay <= 0:
            self.call_soon(fn, *args)
            return

        def _fire():
            with self._lock:
                self._timers.discard(t)
                if self._closed:
                    return
            self.call_soon(fn, *args)

        t = threading.Timer(delay, _fire)
        t.daemon = True
        with self._lock:
            if self._closed:
                self._dropped(fn)
                return
            self._timers.add(t)
        t.start()

    def _run(self, fn: Callable[..., Any], args: Tuple[Any, ...]) -> None:
        try:
            fn(*args)
        except Exception:
            # 不让单个回调的异常拖垮队列
            log.exception(f"[DISPATCH] callback {getattr(fn, '__name__', fn)} raised")

    def close(self, wait: bool = True) -> None:
        with self._lock:
            self._closed = True
            timers = list(self._timers)
            self._timers.clear()
        for t in timers:
            t.cancel()
        self._worker.shutdown(wait=wait)


class ManualScheduler:
    """
    Deterministic scheduler on a virtual clock (seconds).
    Nothing runs until run_pending/advance/run_until_idle is called.
    """

    def __init__(self):
        self.now = 0.0
        self.delays: List[float] = []
        self._queue: List[Tuple[float, int, Callable[..., Any], Tuple[Any, ...]]] = []
        self._seq = itertools.count()

    def call_soon(self, fn: Callable[..., Any], *args: Any) -> None:
        heapq.heappush(self._queue, (self.now, next(self._seq), fn, args))

    def call_later(self, delay: float, fn: Callable[..., Any], *args: Any) -> None:
        self.delays.append(delay)
        heapq.heappush(self._queue, (self.now + max(delay, 0.0), next(self._seq), fn, args))

    @property
    def pending(self) -> int:
        return len(self._queue)

    def run_pending(self) -> int:
        """Run everything due at the current virtual time."""
        ran = 0
        while self._queue and self._queue[0][0] <= self.now:
            _, _, fn, args = heapq.heappop(self._queue)
            fn(*args)
            ran += 1
        return ran

    def advance(self, seconds: float) -> int:
        target = self.now + seconds
        ran = 0
        while self._queue and self._queue[0][0] <= target:
            due, _, fn, args = heapq.heappop(self._queue)
            self.now = max(self.now, due)
            fn(*args)
            ran += 1
        self.now = target
        return ran

    def run_until_idle(self, max_steps: int = 100_000) -> int:
        ran = 0
        while self._queue:
            if ran >= max_steps:
                raise RuntimeError(f"scheduler still busy after {max_steps} callbacks")
            due, _, fn, args = heapq.heappop(self._queue)
            self.now = max(self.now, due)
            fn(*args)
            ran += 1
        return ran
