from .builder import Builder
from .config import ReloadrConfig
from .constants import VERSION as __version__
from .errors import (
    BuildLaunchError,
    FatalError,
    KillError,
    ReloadrError,
    RunLaunchError,
    WatchError,
)
from .models import AcceptedChangeEvent, BuildResult, RawChangeEvent, WatchSession
from .orchestrator import Reloadr
from .responders import ChangeResponder, RecordingResponder, Responder
from .shutdown import ShutdownSignal
from .supervisor import ManagedProcess, ProcessSupervisor
from .watcher import ChangeFilter, DirectoryWatcher

__all__ = [
    "AcceptedChangeEvent",
    "BuildLaunchError",
    "BuildResult",
    "Builder",
    "ChangeFilter",
    "ChangeResponder",
    "DirectoryWatcher",
    "FatalError",
    "KillError",
    "ManagedProcess",
    "ProcessSupervisor",
    "RawChangeEvent",
    "RecordingResponder",
    "Reloadr",
    "ReloadrConfig",
    "ReloadrError",
    "Responder",
    "RunLaunchError",
    "ShutdownSignal",
    "WatchError",
    "WatchSession",
]
