"""Single-flight request tracking for ask / draw"""
import threading
from contextlib import contextmanager
from enum import Enum

from datachat.components.errors import RequestPending


class RequestState(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class SingleFlight:
    """Allows at most one in-flight request of a kind; a second is rejected."""

    def __init__(self, name: str):
        self.name = name
        self.state = RequestState.IDLE
        self._lock = threading.Lock()

    @contextmanager
    def request(self):
        with self._lock:
            if self.state is RequestState.PENDING:
                raise RequestPending(f"A {self.name} request is already running")
            self.state = RequestState.PENDING
        try:
            yield self
        finally:
            # left pending only if the body raised
            if self.state is RequestState.PENDING:
                self.state = RequestState.FAILED

    def succeed(self) -> None:
        self.state = RequestState.SUCCEEDED

    def fail(self) -> None:
        self.state = RequestState.FAILED
