"""Keyed single-flight: concurrent calls for the same key share one execution."""
import threading
from typing import Callable, Generic, Optional, TypeVar

T = TypeVar("T")


class _Call(Generic[T]):
    def __init__(self) -> None:
        self.done = threading.Event()
        self.result: Optional[T] = None
        self.error: Optional[BaseException] = None


class SingleFlight(Generic[T]):
    """Coalesce concurrent calls per key.

    The first caller for a key runs ``fn``; callers arriving while it runs
    block until it finishes and receive the same result (or the same
    exception). Once the call completes the key is forgotten, so a later
    call runs ``fn`` again; callers are expected to check their own cache
    first.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._calls: dict[str, _Call[T]] = {}

    def do(self, key: str, fn: Callable[[], T]) -> T:
        with self._lock:
            call = self._calls.get(key)
            leader = call is None
            if leader:
                call = _Call()
                self._calls[key] = call

        if not leader:
            call.done.wait()
            if call.error is not None:
                raise call.error
            return call.result  # type: ignore[return-value]

        try:
            call.result = fn()
            return call.result
        except BaseException as exc:
            call.error = exc
            raise
        finally:
            with self._lock:
                del self._calls[key]
            call.done.set()

    def in_flight(self, key: str) -> bool:
        with self._lock:
            return key in self._calls
