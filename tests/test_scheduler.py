import os
import threading

from layoutest_lib.scheduler import FileWatcher, RefreshScheduler


def test_latest_request_wins():
    started = threading.Event()
    release = threading.Event()
    runs, published = [], []

    def run(payload):
        runs.append(payload)
        if payload == "a":
            started.set()
            release.wait(5)
        return f"ran {payload}"

    scheduler = RefreshScheduler(run, published.append)
    try:
        scheduler.request("a")
        assert started.wait(5)
        scheduler.request("b")
        scheduler.request("c")
        release.set()
        assert scheduler.wait_idle(5)
    finally:
        scheduler.close()

    assert runs == ["a", "c"]
    assert published == [None, None, "ran c"]
    assert scheduler.latest == "ran c"


def test_crashing_run_publishes_nothing():
    published = []

    def run(payload):
        raise RuntimeError("boom")

    scheduler = RefreshScheduler(run, published.append)
    try:
        scheduler.request("x")
        assert scheduler.wait_idle(5)
    finally:
        scheduler.close()

    assert published == [None, None]
    assert not scheduler.worker.is_alive()


def test_file_watcher_reports_changes(tmp_path, mocker):
    source = tmp_path / "planner.lua"
    source.write_text("return {}")
    on_change = mocker.Mock()
    watcher = FileWatcher(str(tmp_path), on_change)

    assert watcher.poll() is False

    stat = source.stat()
    os.utime(source, (stat.st_atime + 10, stat.st_mtime + 10))
    assert watcher.poll() is True
    on_change.assert_called_once()
    assert list(on_change.call_args[0][0]) == [str(source)]

    (tmp_path / "notes.txt").write_text("ignored")
    assert watcher.poll() is False

    source.unlink()
    assert watcher.poll() is True
    assert on_change.call_count == 2
