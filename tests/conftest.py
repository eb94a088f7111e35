import sys
import time

import pytest

from reloadr.config import ReloadrConfig

# A stand-in for a long-running server: says hello, then idles.
LONG_RUNNING = [sys.executable, "-c", "import time\nprint('up', flush=True)\ntime.sleep(60)"]


@pytest.fixture
def watch_tree(tmp_path):
    """watch_dir/dir1/dir2/dir3, returned root first."""
    base = tmp_path / "watch_dir"
    dirs = [base, base / "dir1", base / "dir1" / "dir2", base / "dir1" / "dir2" / "dir3"]
    dirs[-1].mkdir(parents=True)
    return [str(d) for d in dirs]


@pytest.fixture
def make_config(tmp_path):
    def _make(**kwargs):
        kwargs.setdefault("app_name", "testapp")
        kwargs.setdefault("watch_path", str(tmp_path))
        kwargs.setdefault("build_dir", str(tmp_path))
        kwargs.setdefault("run_command", LONG_RUNNING)
        return ReloadrConfig(**kwargs)

    return _make


@pytest.fixture
def wait_for():
    def _wait_for(predicate, timeout=2.0, interval=0.01):
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if predicate():
                return True
            time.sleep(interval)
        return predicate()

    return _wait_for
