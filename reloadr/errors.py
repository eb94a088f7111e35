class ReloadrError(Exception):
    """Base class for every error raised by reloadr."""


class FatalError(ReloadrError):
    """An error after which reloadr cannot keep its guarantees and must stop.

    ``stage`` names the part of the pipeline that failed, so the final
    message tells the operator where things went wrong.
    """

    stage = "unknown"

    def __init__(self, message: str, cause: Exception = None):
        super().__init__(message)
        self.cause = cause

    def __str__(self):
        message = super().__str__()
        if self.cause is not None:
            return f"{message} ({self.cause})"
        return message


class BuildLaunchError(FatalError):
    stage = "build"


class KillError(FatalError):
    stage = "kill"


class WatchError(FatalError):
    stage = "watch"


class RunLaunchError(ReloadrError):
    """The managed program could not be started. Watching continues."""
