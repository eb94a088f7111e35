"""What the watch loop does with accepted changes and backend errors."""

import logging
from abc import ABC, abstractmethod

from .constants import SEPARATOR, WATCH_ERR_MSG
from .errors import WatchError
from .models import AcceptedChangeEvent

log = logging.getLogger(__name__)


class ChangeResponder(ABC):
    @abstractmethod
    def on_change(self, reloadr, event: AcceptedChangeEvent):
        ...

    @abstractmethod
    def on_error(self, reloadr, error: WatchError):
        ...


class Responder(ChangeResponder):
    """Rebuilds and restarts the program on every accepted change."""

    def on_change(self, reloadr, event: AcceptedChangeEvent):
        log.info(SEPARATOR)
        log.info("Change detected --> %s", event.path)
        reloadr.run_cycle()
        if not reloadr.terminated:
            log.info("Watching for changes...")

    def on_error(self, reloadr, error: WatchError):
        reloadr.terminate(WatchError(WATCH_ERR_MSG % error))


class RecordingResponder(ChangeResponder):
    """
    Records what it is told and does nothing else.

    With ``stop_on_error`` a backend error also stops reloadr, which is what
    the watch-only mode wants; tests leave it off.
    """

    def __init__(self, stop_on_error: bool = False):
        self.stop_on_error = stop_on_error
        self.changes = []
        self.errors = []

    @property
    def change_detected(self) -> bool:
        return bool(self.changes)

    def on_change(self, reloadr, event: AcceptedChangeEvent):
        self.changes.append(event)
        log.info("Change detected --> %s", event.path)

    def on_error(self, reloadr, error: WatchError):
        self.errors.append(error)
        if self.stop_on_error:
            reloadr.terminate(WatchError(WATCH_ERR_MSG % error))
