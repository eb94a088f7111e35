import threading
from typing import Optional


class ShutdownSignal:
    """
    Single-fire cancellation signal shared by every reloadr component.

    Firing is idempotent: only the first ``fire`` call wins and records its
    error, later calls are ignored and return False. Once fired the signal
    never resets.
    """

    def __init__(self):
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._error = None

    def fire(self, error: Optional[BaseException] = None) -> bool:
        with self._lock:
            if self._event.is_set():
                return False
            self._error = error
            self._event.set()
            return True

    def is_set(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._event.wait(timeout)

    @property
    def error(self) -> Optional[BaseException]:
        """The error that fired the signal, None for a clean stop."""
        return self._error
