from dataclasses import dataclass
from typing import Optional, Tuple

from .constants import ChangeKind


@dataclass
class WatchSession:
    """State of one watch session: what is watched and when it last fired."""

    root: str
    watch_exts: Tuple[str, ...]
    debounce: float  # seconds
    last_accepted: Optional[float] = None


@dataclass(frozen=True)
class RawChangeEvent:
    path: str
    kind: ChangeKind
    is_directory: bool = False


@dataclass(frozen=True)
class AcceptedChangeEvent:
    """A write that passed both the extension and the debounce filter."""

    path: str
    accepted_at: float


@dataclass
class BuildResult:
    success: bool
    output: str = ""
    returncode: Optional[int] = None

