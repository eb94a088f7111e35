"""The watch -> build -> kill -> run loop."""

import logging
import threading
from typing import Optional

from .builder import Builder
from .config import ReloadrConfig
from .constants import (
    BUILD_INSTALL_ERR_MSG,
    POLL_INTERVAL,
    SEPARATOR,
    VERSION,
    ChangeKind,
    CycleState,
)
from .errors import FatalError, ReloadrError, RunLaunchError
from .models import WatchSession
from .responders import ChangeResponder, Responder
from .shutdown import ShutdownSignal
from .supervisor import ProcessSupervisor
from .utils import split_lines
from .watcher import DirectoryWatcher

log = logging.getLogger(__name__)


class Reloadr:
    """
    Rebuilds and restarts one program whenever its sources change.

    Everything that touches the build or the managed process runs on the
    ``reloadr-watch`` thread. The thread that calls ``start`` only waits for
    the shutdown signal.
    """

    def __init__(
        self,
        config: ReloadrConfig,
        responder: Optional[ChangeResponder] = None,
        builder: Optional[Builder] = None,
        supervisor: Optional[ProcessSupervisor] = None,
        watcher: Optional[DirectoryWatcher] = None,
        shutdown: Optional[ShutdownSignal] = None,
        build_on_start: bool = True,
    ):
        self.config = config
        self.app_name = config.app_name
        self.responder = responder or Responder()
        self.builder = builder or Builder(config.build_command, config.resolved_build_dir())
        self.supervisor = supervisor or ProcessSupervisor(
            config.app_name, config.resolved_run_command()
        )
        self.session = WatchSession(
            root=config.watch_path,
            watch_exts=tuple(config.watch_exts),
            debounce=config.debounce,
        )
        self.watcher = watcher or DirectoryWatcher(self.session)
        self.shutdown = shutdown or ShutdownSignal()
        self.state = CycleState.IDLE
        self.build_on_start = build_on_start
        self._thread = None

    @property
    def terminated(self) -> bool:
        return self.state is CycleState.TERMINATED or self.shutdown.is_set()

    def terminate(self, error: Optional[FatalError] = None) -> bool:
        """
        Fire the shutdown signal. Only the first call has any effect.

        Returns True if this call is the one that stopped reloadr.
        """
        fired = self.shutdown.fire(error)
        if fired:
            log.debug("Shutdown signalled by %s", error.stage if error else "operator")
        return fired

    def run_cycle(self) -> CycleState:
        """
        One build -> kill -> start pass.

        The previous instance is killed whatever the build's outcome, so a
        broken build leaves nothing running until the next good one.
        """
        if self.terminated:
            return self.state

        self.state = CycleState.BUILDING
        try:
            result = self.builder.build()
        except FatalError as e:
            self.terminate(e)
            self.state = CycleState.TERMINATED
            return self.state

        if not result.success:
            log.error(BUILD_INSTALL_ERR_MSG, self.app_name)
            for line in split_lines(result.output):
                log.error("%s: %s", self.app_name, line)

        self.state = CycleState.KILLING_PREVIOUS
        try:
            self.supervisor.kill_current()
        except FatalError as e:
            self.terminate(e)
            self.state = CycleState.TERMINATED
            return self.state

        if not result.success or self.terminated:
            self.state = CycleState.SKIP_START
        else:
            self.state = CycleState.STARTING
            try:
                self.supervisor.start_new()
            except RunLaunchError as e:
                log.error("%s (%s)", e, e.__cause__)

        self.state = CycleState.TERMINATED if self.terminated else CycleState.IDLE
        return self.state

    def watch(self):
        """Body of the watch thread: register, build once, then follow changes."""
        try:
            self.watcher.start()
        except FatalError as e:
            self.terminate(e)
            self.state = CycleState.TERMINATED
            self.watcher.stop()
            return

        try:
            if self.build_on_start:
                self.run_cycle()
            while not self.shutdown.is_set():
                error = self.watcher.next_error()
                if error is not None:
                    self.responder.on_error(self, error)
                    continue

                raw = self.watcher.poll(POLL_INTERVAL)
                if raw is None or self.shutdown.is_set():
                    continue
                event = self.watcher.filter.accept(raw)
                if event is not None:
                    self.responder.on_change(self, event)
                elif raw.is_directory and raw.kind is ChangeKind.CREATE:
                    log.debug("New directory %s is not watched", raw.path)
        finally:
            if not self.shutdown.is_set():
                self.terminate()
            self.state = CycleState.TERMINATED
            self._stop_managed()
            self.watcher.stop()

    def _stop_managed(self, pump_timeout: float = 1.0):
        try:
            self.supervisor.kill_current()
        except ReloadrError as e:
            log.error("%s", e)
            return
        # let the last lines of output drain before the final message
        managed = self.supervisor.current
        if managed is not None:
            for thread in managed.threads:
                thread.join(pump_timeout)

    def banner(self):
        log.info("-- RELOADR v%s --", VERSION)
        log.info(SEPARATOR)
        log.info("Running and watching for changes...")
        log.info("On: %s files.", " ".join(self.session.watch_exts))
        log.info(SEPARATOR)

    def start(self, wait_interval: float = 0.5) -> Optional[BaseException]:
        """
        Run until a fatal error or Ctrl+C.

        Returns the error that stopped reloadr, or None for a clean stop.
        """
        self._thread = threading.Thread(target=self.watch, name="reloadr-watch", daemon=True)
        self.banner()
        self._thread.start()
        try:
            while not self.shutdown.wait(wait_interval):
                pass
        except KeyboardInterrupt:
            log.info("Interrupted, shutting down...")
            self.terminate()
        self._thread.join()

        error = self.shutdown.error
        if error is not None:
            log.error("ERROR - %s stage failed: %s", error.stage, error)
        return error
