import logging
import subprocess
import threading
from typing import Callable, Optional, Sequence

from .constants import KILL_INSTANCE_ERR_MSG, START_APP_ERR_MSG, ProcessState
from .errors import KillError, RunLaunchError
from .utils import split_lines

log = logging.getLogger(__name__)


def _print_line(line: str):
    print(line, flush=True)


class SubprocessProcessBackend:
    def spawn(self, command: Sequence[str]) -> subprocess.Popen:
        return subprocess.Popen(
            list(command),
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            encoding="utf-8",
            errors="replace",
        )

    def wait(self, process: subprocess.Popen):
        return process.wait()

    def kill(self, process: subprocess.Popen):
        process.kill()


class ManagedProcess:
    """One spawned instance of the managed program."""

    def __init__(self, name: str, process: subprocess.Popen):
        self.name = name
        self.process = process
        self.killed = False
        self.threads = []

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def state(self) -> ProcessState:
        if self.killed:
            return ProcessState.KILLED
        if self.process.poll() is None:
            return ProcessState.RUNNING
        return ProcessState.EXITED

    def is_running(self) -> bool:
        return self.state is ProcessState.RUNNING

    def __repr__(self):
        return f"ManagedProcess(name={self.name!r}, pid={self.pid}, state={self.state.value})"


class ProcessSupervisor:
    """
    Owns the single current instance of the managed program.

    ``kill_current`` and ``start_new`` must be called from one thread (the
    watch loop); the output pumps and the wait thread never touch the
    current handle.
    """

    def __init__(
        self,
        name: str,
        command: Sequence[str],
        backend=None,
        output: Callable[[str], None] = _print_line,
    ):
        self.name = name
        self.command = list(command)
        self.backend = backend or SubprocessProcessBackend()
        self.output = output
        self._current: Optional[ManagedProcess] = None

    @property
    def current(self) -> Optional[ManagedProcess]:
        return self._current

    def is_running(self) -> bool:
        return self._current is not None and self._current.is_running()

    def kill_current(self):
        """
        Kill the current instance if it is still alive and reap it.

        Raises KillError if a live instance could not be killed; after that
        there is no telling how many instances are running.
        """
        managed = self._current
        if managed is None or not managed.is_running():
            return

        try:
            self.backend.kill(managed.process)
            self.backend.wait(managed.process)
        except OSError as e:
            raise KillError(KILL_INSTANCE_ERR_MSG % self.name, e) from e

        managed.killed = True
        log.debug("Killed %s (pid %s)", self.name, managed.pid)

    def start_new(self) -> ManagedProcess:
        """
        Spawn a new instance and stream its output in the background.

        Returns as soon as the process is spawned. Raises RunLaunchError if
        it could not be spawned, in which case no instance is current.
        """
        if self.is_running():
            self.kill_current()
        self._current = None
        try:
            process = self.backend.spawn(self.command)
        except OSError as e:
            raise RunLaunchError(START_APP_ERR_MSG % self.name) from e

        managed = ManagedProcess(self.name, process)
        managed.threads = [
            self._spawn_thread("stdout", self._pump_stdout, managed),
            self._spawn_thread("stderr", self._pump_stderr, managed),
            self._spawn_thread("wait", self._wait, managed),
        ]
        self._current = managed
        log.info("( %s ) - Started and running...", self.name)
        return managed

    def _spawn_thread(self, role: str, target, managed: ManagedProcess) -> threading.Thread:
        thread = threading.Thread(
            target=target,
            args=(managed,),
            name=f"{self.name}-{managed.pid}-{role}",
            daemon=True,
        )
        thread.start()
        return thread

    def _pump_stdout(self, managed: ManagedProcess):
        with managed.process.stdout as stream:
            for line in stream:
                self.output(f"{managed.name}: {line.rstrip()}")

    def _pump_stderr(self, managed: ManagedProcess):
        # stderr is held back until the program closes it, then dumped at once
        with managed.process.stderr as stream:
            errors = stream.read()
        lines = split_lines(errors)
        if lines:
            log.warning(START_APP_ERR_MSG, managed.name)
            for line in lines:
                self.output(f"{managed.name}: {line}")

    def _wait(self, managed: ManagedProcess):
        # The exit status is ignored on purpose: a server killed for a restart
        # and one that crashed look the same from here.
        self.backend.wait(managed.process)
        log.debug("%s (pid %s) exited", managed.name, managed.pid)
