import os
import shutil
import threading
import time
from unittest.mock import MagicMock

import pytest

from reloadr.constants import ChangeKind
from reloadr.errors import WatchError
from reloadr.models import RawChangeEvent, WatchSession
from reloadr.orchestrator import Reloadr
from reloadr.responders import RecordingResponder, Responder
from reloadr.watcher import ChangeFilter, DirectoryWatcher


class FakeClock:
    def __init__(self, now=100.0):
        self.now = now

    def __call__(self):
        return self.now


def _session(exts=(".txt",), debounce=0.25, root="."):
    return WatchSession(root=root, watch_exts=tuple(exts), debounce=debounce)


def _write(path, kind=ChangeKind.WRITE, is_directory=False):
    return RawChangeEvent(path=path, kind=kind, is_directory=is_directory)


class TestChangeFilter:
    """Tests for extension and debounce filtering."""

    def test_accepts_first_matching_write(self):
        """Should accept the first write to a watched extension."""
        clock = FakeClock()
        f = ChangeFilter(_session(), clock=clock)

        event = f.accept(_write("src/main.txt"))

        assert event is not None
        assert event.path == "src/main.txt"
        assert event.accepted_at == 100.0
        assert f.session.last_accepted == 100.0

    def test_duplicate_within_window_is_dropped(self):
        """Should collapse two writes closer together than the window."""
        clock = FakeClock()
        f = ChangeFilter(_session(), clock=clock)

        assert f.accept(_write("a.txt")) is not None
        clock.now += 0.1
        assert f.accept(_write("a.txt")) is None

    def test_writes_further_apart_than_window_both_accepted(self):
        """Should accept a second write once the window has passed."""
        clock = FakeClock()
        f = ChangeFilter(_session(), clock=clock)

        assert f.accept(_write("a.txt")) is not None
        clock.now += 0.3
        assert f.accept(_write("a.txt")) is not None

    def test_window_boundary_is_exclusive(self):
        """Should require strictly more than the window to elapse."""
        clock = FakeClock()
        f = ChangeFilter(_session(debounce=0.25), clock=clock)

        f.accept(_write("a.txt"))
        clock.now += 0.25
        assert f.accept(_write("a.txt")) is None

    def test_dropped_event_does_not_extend_window(self):
        """Should measure the window from the last accepted trigger only."""
        clock = FakeClock()
        f = ChangeFilter(_session(debounce=0.25), clock=clock)

        f.accept(_write("a.txt"))
        clock.now += 0.2
        assert f.accept(_write("a.txt")) is None
        clock.now += 0.1
        assert f.accept(_write("a.txt")) is not None

    def test_burst_yields_one_event(self):
        """Should accept exactly one of many instantaneous duplicates."""
        f = ChangeFilter(_session(), clock=FakeClock())

        accepted = [f.accept(_write("a.txt")) for _ in range(20)]

        assert len([e for e in accepted if e is not None]) == 1

    @pytest.mark.parametrize(
        "exts, path",
        [
            ((".txt",), "notes.md"),
            ((".go",), "main.go.swp"),
            ((".go", ".html"), "index.htm"),
            ((".txt",), "README.TXT"),
            ((".tmpl",), "tmpl"),
        ],
    )
    def test_unwatched_extension_never_accepted(self, exts, path):
        """Should ignore writes to files whose suffix is not watched."""
        f = ChangeFilter(_session(exts=exts), clock=FakeClock())

        assert f.accept(_write(path)) is None
        assert f.session.last_accepted is None

    @pytest.mark.parametrize(
        "kind", [ChangeKind.CREATE, ChangeKind.REMOVE, ChangeKind.RENAME, ChangeKind.OTHER]
    )
    def test_non_write_events_ignored(self, kind):
        """Should only react to content modifications."""
        f = ChangeFilter(_session(), clock=FakeClock())

        assert f.accept(_write("a.txt", kind=kind)) is None

    def test_directory_write_ignored(self):
        """Should ignore modification events on directories."""
        f = ChangeFilter(_session(), clock=FakeClock())

        assert f.accept(_write("dir.txt", is_directory=True)) is None

    def test_any_listed_extension_matches(self):
        """Should accept a suffix matching any one of several extensions."""
        clock = FakeClock()
        f = ChangeFilter(_session(exts=(".go", ".html", ".tpl")), clock=clock)

        assert f.accept(_write("views/index.html")) is not None


class TestDirectoryWatcher:
    """Tests for directory registration."""

    def test_registers_every_directory(self, watch_tree):
        """Should register the root and each nested directory."""
        watcher = DirectoryWatcher(_session(root=watch_tree[0]))
        watcher.start()
        try:
            for path in watch_tree:
                watcher.unwatch(path)
            assert watcher.watched_dirs == []
        finally:
            watcher.stop()

    def test_files_are_not_registered(self, watch_tree):
        """Should register directories only."""
        file_path = os.path.join(watch_tree[1], "main.txt")
        with open(file_path, "w") as f:
            f.write("x")

        watcher = DirectoryWatcher(_session(root=watch_tree[0]))
        watcher.start()
        try:
            assert watcher.watched_dirs == sorted(watch_tree)
            with pytest.raises(KeyError):
                watcher.unwatch(file_path)
        finally:
            watcher.stop()

    def test_unwatch_twice_raises(self, watch_tree):
        """Should refuse to de-register a directory that is no longer watched."""
        watcher = DirectoryWatcher(_session(root=watch_tree[0]))
        watcher.start()
        try:
            watcher.unwatch(watch_tree[2])
            with pytest.raises(KeyError):
                watcher.unwatch(watch_tree[2])
        finally:
            watcher.stop()

    @pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks not supported")
    def test_symlinked_directories_skipped(self, watch_tree, tmp_path):
        """Should not register or descend into symlinked directories."""
        outside = tmp_path / "outside"
        outside.mkdir()
        link = os.path.join(watch_tree[0], "link")
        os.symlink(str(outside), link)

        watcher = DirectoryWatcher(_session(root=watch_tree[0]))
        watcher.start()
        try:
            assert link not in watcher.watched_dirs
            assert len(watcher.watched_dirs) == 4
        finally:
            watcher.stop()

    def test_missing_root_raises_watch_error(self, tmp_path):
        """Should fail to start when the root does not exist."""
        watcher = DirectoryWatcher(_session(root=str(tmp_path / "missing")))
        try:
            with pytest.raises(WatchError):
                watcher.start()
        finally:
            watcher.stop()

    def test_dead_backend_reported_once(self, tmp_path):
        """Should queue a single WatchError when the observer dies."""
        observer = MagicMock()
        observer.is_alive.return_value = False
        observer.emitters = set()

        watcher = DirectoryWatcher(_session(root=str(tmp_path)), observer_factory=lambda: observer)
        watcher.start()
        watcher.check_backend()
        watcher.check_backend()

        assert isinstance(watcher.next_error(), WatchError)
        assert watcher.next_error() is None

    def test_stopped_backend_not_reported(self, tmp_path):
        """Should not treat a deliberate stop as a backend failure."""
        observer = MagicMock()
        observer.is_alive.return_value = False
        observer.emitters = set()

        watcher = DirectoryWatcher(_session(root=str(tmp_path)), observer_factory=lambda: observer)
        watcher.start()
        watcher.stop()
        watcher.check_backend()

        assert watcher.next_error() is None

    def test_dead_subdirectory_emitter_forgotten(self, watch_tree):
        """Should drop a deleted directory's watch instead of failing."""
        observer = MagicMock()
        observer.is_alive.return_value = True
        gone = MagicMock()
        gone.is_alive.return_value = False
        gone.watch.path = watch_tree[3]
        observer.emitters = {gone}

        watcher = DirectoryWatcher(_session(root=watch_tree[0]), observer_factory=lambda: observer)
        watcher.start()
        watcher.check_backend()

        assert watcher.next_error() is None
        assert watch_tree[3] not in watcher.watched_dirs
        assert watch_tree[2] in watcher.watched_dirs

    def test_dead_root_emitter_is_fatal(self, watch_tree):
        """Should report a backend failure when the root stops being watched."""
        observer = MagicMock()
        observer.is_alive.return_value = True
        root = MagicMock()
        root.is_alive.return_value = False
        root.watch.path = watch_tree[0]
        observer.emitters = {root}

        watcher = DirectoryWatcher(_session(root=watch_tree[0]), observer_factory=lambda: observer)
        watcher.start()
        watcher.check_backend()

        assert isinstance(watcher.next_error(), WatchError)

    def test_removed_directory_event_unwatches_subtree(self, watch_tree):
        """Should forget a removed directory and everything below it."""
        observer = MagicMock()
        observer.emitters = set()
        watcher = DirectoryWatcher(_session(root=watch_tree[0]), observer_factory=lambda: observer)
        watcher.start()

        watcher.events.put(_write(watch_tree[2], kind=ChangeKind.REMOVE, is_directory=True))
        raw = watcher.poll(0.1)

        assert raw.kind is ChangeKind.REMOVE
        assert watcher.watched_dirs == sorted(watch_tree[:2])


def _detect_change(make_config, wait_for, watch_root, file_path):
    # the file exists before watching starts, so only the write is seen
    with open(file_path, "w") as f:
        f.write("")

    responder = RecordingResponder()
    reloadr = Reloadr(
        make_config(watch_path=watch_root, watch_exts=[".txt"]),
        responder=responder,
        build_on_start=False,
    )
    thread = threading.Thread(target=reloadr.watch, daemon=True)
    thread.start()
    time.sleep(0.1)  # give the watcher a chance to start up

    written_at = time.monotonic()
    with open(file_path, "w") as f:
        f.write("new")

    try:
        assert wait_for(lambda: responder.change_detected, timeout=2.0)
        time.sleep(0.1)  # any duplicate notifications would land by now
    finally:
        reloadr.terminate()
        thread.join(timeout=5)

    # accepted_at comes from the same monotonic clock
    latency = responder.changes[0].accepted_at - written_at
    return responder, latency


class TestChangeDetection:
    """End-to-end tests with a real filesystem backend."""

    def test_detects_change(self, watch_tree, make_config, wait_for):
        """Should report exactly one change for one write at the root."""
        file_path = os.path.join(watch_tree[0], "test_file.txt")
        responder, latency = _detect_change(make_config, wait_for, watch_tree[0], file_path)

        assert len(responder.changes) == 1
        assert latency < 0.2
        assert os.path.basename(responder.changes[0].path) == "test_file.txt"

    def test_detects_nested_change(self, watch_tree, make_config, wait_for):
        """Should report a write deep inside the tree."""
        file_path = os.path.join(watch_tree[3], "test_file.txt")
        responder, latency = _detect_change(make_config, wait_for, watch_tree[0], file_path)

        assert len(responder.changes) == 1
        assert latency < 0.2

    def test_unwatched_extension_not_reported(self, watch_tree, make_config):
        """Should stay quiet for writes to files with other extensions."""
        file_path = os.path.join(watch_tree[0], "test_file.md")
        with open(file_path, "w") as f:
            f.write("")

        responder = RecordingResponder()
        reloadr = Reloadr(
            make_config(watch_path=watch_tree[0], watch_exts=[".txt"]),
            responder=responder,
            build_on_start=False,
        )
        thread = threading.Thread(target=reloadr.watch, daemon=True)
        thread.start()
        time.sleep(0.1)

        with open(file_path, "w") as f:
            f.write("new")
        time.sleep(0.3)

        reloadr.terminate()
        thread.join(timeout=5)
        assert responder.changes == []

    def test_deleting_subdirectory_keeps_running(self, watch_tree, make_config, wait_for):
        """Should keep watching after a watched subdirectory is deleted."""
        reloadr = Reloadr(
            make_config(watch_path=watch_tree[0], watch_exts=[".txt"]),
            responder=Responder(),
            build_on_start=False,
        )
        thread = threading.Thread(target=reloadr.watch, daemon=True)
        thread.start()
        time.sleep(0.1)

        shutil.rmtree(watch_tree[3])
        try:
            assert wait_for(lambda: watch_tree[3] not in reloadr.watcher.watched_dirs)
            time.sleep(0.5)  # several backend health checks pass in this time
            assert reloadr.shutdown.error is None
            assert not reloadr.terminated
        finally:
            reloadr.terminate()
            thread.join(timeout=5)
