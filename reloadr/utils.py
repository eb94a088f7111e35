import os
from typing import Iterable, Iterator, Optional


def app_name_from_dir(path: Optional[str] = None) -> str:
    """
    Derive the program name from a directory name.

    ``go install`` names the binary after its source directory, so the
    directory's basename is what ends up on ``PATH``.
    """
    path = os.path.abspath(path or os.getcwd())
    return os.path.basename(path.rstrip(os.sep)) or path


def has_watched_suffix(path: str, exts: Iterable[str]) -> bool:
    """Exact, case-sensitive suffix match against the watched extensions."""
    return any(path.endswith(ext) for ext in exts)


def walk_dirs(root: str) -> Iterator[str]:
    """
    Yield ``root`` and every directory below it.

    Symlinked directories are neither yielded nor descended into.
    """
    root = os.path.abspath(root)
    for dirpath, dirnames, _ in os.walk(root, followlinks=False):
        # prune symlinks so os.walk does not list them on the next level
        dirnames[:] = [
            d for d in dirnames if not os.path.islink(os.path.join(dirpath, d))
        ]
        yield dirpath


def split_lines(text: str):
    """Split captured output into lines, dropping surrounding blank space."""
    text = text.strip()
    if not text:
        return []
    return text.split("\n")
