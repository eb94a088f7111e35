"""Directory watching and change filtering on top of watchdog."""

import logging
import os
import queue
import time
from typing import Callable, Dict, List, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .constants import WATCHDOG_EVENT_KINDS, ChangeKind
from .errors import WatchError
from .models import AcceptedChangeEvent, RawChangeEvent, WatchSession
from .utils import has_watched_suffix, walk_dirs

log = logging.getLogger(__name__)


class ChangeFilter:
    """
    Decides whether a raw event is an accepted change.

    Only called from the watch loop, which makes it the single owner of
    ``session.last_accepted``.
    """

    def __init__(self, session: WatchSession, clock: Callable[[], float] = time.monotonic):
        self.session = session
        self.clock = clock

    def is_relevant(self, event: RawChangeEvent) -> bool:
        if event.is_directory or event.kind is not ChangeKind.WRITE:
            return False
        return has_watched_suffix(event.path, self.session.watch_exts)

    def accept(self, event: RawChangeEvent) -> Optional[AcceptedChangeEvent]:
        if not self.is_relevant(event):
            return None

        now = self.clock()
        last = self.session.last_accepted
        if last is not None and now - last <= self.session.debounce:
            return None

        self.session.last_accepted = now
        return AcceptedChangeEvent(path=event.path, accepted_at=now)


class _QueueingHandler(FileSystemEventHandler):
    """Forwards every watchdog event onto a queue, untouched apart from typing."""

    def __init__(self, events: "queue.Queue[RawChangeEvent]"):
        super().__init__()
        self.events = events

    def on_any_event(self, event: FileSystemEvent):
        path = event.src_path
        if isinstance(path, bytes):
            path = os.fsdecode(path)
        kind = WATCHDOG_EVENT_KINDS.get(event.event_type, ChangeKind.OTHER)
        self.events.put(RawChangeEvent(path=path, kind=kind, is_directory=event.is_directory))


class DirectoryWatcher:
    """
    Registers every directory below ``session.root`` with a watchdog observer.

    Each directory is scheduled on its own, non-recursively, so directories
    created after ``start`` are not picked up. Raw events land on ``events``,
    backend failures on ``errors``; the watch loop reads both.
    """

    def __init__(self, session: WatchSession, observer_factory: Callable = Observer):
        self.session = session
        self.filter = ChangeFilter(session)
        self.events: "queue.Queue[RawChangeEvent]" = queue.Queue()
        self.errors: "queue.Queue[WatchError]" = queue.Queue()
        self._observer_factory = observer_factory
        self._observer = None
        self._handler = _QueueingHandler(self.events)
        self._watches: Dict[str, object] = {}
        self._stopping = False
        self._failed = False

    @property
    def watched_dirs(self) -> List[str]:
        return sorted(self._watches.copy())

    def start(self):
        self._observer = self._observer_factory()
        root = os.path.abspath(self.session.root)
        if not os.path.isdir(root):
            raise WatchError(f"Unable to watch {root}: not a directory")

        # a running observer starts each emitter inside schedule(), so a
        # directory that cannot be watched fails right here
        self._observer.start()

        for path in walk_dirs(root):
            try:
                self._watches[path] = self._observer.schedule(
                    self._handler, path, recursive=False
                )
            except OSError as e:
                if path == root:
                    raise WatchError(f"Unable to watch {root}", e) from e
                log.warning("Unable to watch %s: %s", path, e)

        log.debug("Watching %d directories under %s", len(self._watches), root)

    def unwatch(self, path: str):
        """De-register one directory. Raises KeyError if it was never watched."""
        watch = self._watches.pop(os.path.abspath(path))
        self._observer.unschedule(watch)

    def poll(self, timeout: float) -> Optional[RawChangeEvent]:
        """Next raw event, or None if nothing arrived within ``timeout``."""
        try:
            raw = self.events.get(timeout=timeout)
        except queue.Empty:
            self.check_backend()
            return None
        if raw.is_directory and raw.kind in (ChangeKind.REMOVE, ChangeKind.RENAME):
            self._forget(raw.path)
        return raw

    def _forget(self, path: str):
        """Drop the watches on a removed or renamed directory and anything below it."""
        path = os.path.abspath(path)
        prefix = path + os.sep
        for watched in [p for p in self._watches if p == path or p.startswith(prefix)]:
            watch = self._watches.pop(watched)
            try:
                self._observer.unschedule(watch)
            except KeyError:
                # watchdog already dropped an emitter that stopped itself
                pass
            log.debug("Stopped watching removed directory %s", watched)

    def next_error(self) -> Optional[WatchError]:
        try:
            return self.errors.get_nowait()
        except queue.Empty:
            return None

    def check_backend(self):
        """
        Queue a single WatchError if the observer or the root's emitter died.

        An emitter below the root stops on its own when its directory is
        deleted; that directory is simply forgotten.
        """
        if self._failed or self._stopping or self._observer is None:
            return
        root = os.path.abspath(self.session.root)
        dead = not self._observer.is_alive()
        for emitter in list(self._observer.emitters):
            if emitter.is_alive():
                continue
            path = os.path.abspath(emitter.watch.path)
            if path == root:
                dead = True
            else:
                self._forget(path)
        if dead:
            self._failed = True
            self.errors.put(WatchError("file notification backend stopped unexpectedly"))

    def stop(self):
        self._stopping = True
        if self._observer is None:
            return
        self._observer.stop()
        if self._observer.is_alive():
            self._observer.join()
