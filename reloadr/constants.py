from enum import Enum

VERSION = "0.1.0"

DEFAULT_WATCH_PATH = "."
DEFAULT_WATCH_EXTS = [".go", ".html", ".tpl", ".tmpl"]
DEFAULT_DEBOUNCE_MS = 250
DEFAULT_BUILD_COMMAND = ["go", "install"]

# How long the watch loop blocks on the event queue before re-checking
# the shutdown signal and the backend's health.
POLL_INTERVAL = 0.05

SEPARATOR = "-" * 50

KILL_INSTANCE_ERR_MSG = (
    "Unable to kill the previous instance of application ( %s ). "
    "Please manually kill the application instance and try again. "
    "Reloadr has terminated as a result."
)
BUILD_INSTALL_ERR_MSG = "Unable to build/install application: ( %s )"
BUILD_LAUNCH_ERR_MSG = 'Unable to execute "%s". Reloadr will now terminate.'
START_APP_ERR_MSG = "Unable to start application: ( %s )"
WATCH_ERR_MSG = "Detecting file changes: %s. Reloadr has now terminated."


class ChangeKind(str, Enum):
    WRITE = "write"
    CREATE = "create"
    REMOVE = "remove"
    RENAME = "rename"
    OTHER = "other"


# watchdog event_type -> ChangeKind
WATCHDOG_EVENT_KINDS = {
    "modified": ChangeKind.WRITE,
    "created": ChangeKind.CREATE,
    "deleted": ChangeKind.REMOVE,
    "moved": ChangeKind.RENAME,
}


class CycleState(str, Enum):
    IDLE = "idle"
    BUILDING = "building"
    KILLING_PREVIOUS = "killing_previous"
    STARTING = "starting"
    SKIP_START = "skip_start"
    TERMINATED = "terminated"


class ProcessState(str, Enum):
    ABSENT = "absent"
    RUNNING = "running"
    EXITED = "exited"
    KILLED = "killed"
