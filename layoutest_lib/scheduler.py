# --- layoutest_lib/scheduler.py ---
"""
Re-running layouts in the background.

RefreshScheduler runs one layout at a time on a worker thread. Requests land
in a single slot, so only the latest one is run, and a result superseded by a
newer request is dropped instead of published. FileWatcher polls the
pipeline's sources and requests a refresh when they change.
"""
import fnmatch
import logging
import os
import threading
import time
from typing import Any, Callable, Dict, Optional

log = logging.getLogger("layoutest.watch")


class RefreshScheduler:
    """
    Single-slot, latest-request-wins runner.

    Args:
        run: Called on the worker thread with a request payload; returns the
            outcome to publish.
        on_result: Receives ``None`` when a run starts (the previous result
            is discarded) and the outcome when a run finishes, unless a newer
            request arrived in between.
        debounce: Seconds to wait after waking so bursts of requests collapse
            into one run.
    """

    def __init__(
        self,
        run: Callable[[Any], Any],
        on_result: Callable[[Optional[Any]], None],
        debounce: float = 0.0,
    ):
        self._run = run
        self._on_result = on_result
        self._debounce = debounce
        self._cond = threading.Condition()
        self._pending: Any = None
        self._has_pending = False
        self._generation = 0
        self._closed = False
        self._idle = threading.Event()
        self._idle.set()
        self.latest: Optional[Any] = None
        self.worker = threading.Thread(target=self._process_requests, daemon=True)
        self.worker.start()

    def request(self, payload: Any):
        """Replaces any waiting request with ``payload``."""
        with self._cond:
            self._generation += 1
            self._pending = payload
            self._has_pending = True
            self._idle.clear()
            self._cond.notify()
        log.debug("Refresh requested (generation %d).", self._generation)

    def _next_request(self):
        with self._cond:
            while not self._has_pending and not self._closed:
                self._cond.wait()
            if self._closed:
                return None, None
        if self._debounce:
            time.sleep(self._debounce)
        with self._cond:
            payload, generation = self._pending, self._generation
            self._pending = None
            self._has_pending = False
        return payload, generation

    def _deliver(self, outcome: Optional[Any], generation: int) -> bool:
        with self._cond:
            if generation != self._generation:
                log.debug("Discarding result of superseded generation %d.", generation)
                return False
            self.latest = outcome
        self._on_result(outcome)
        return True

    def _process_requests(self):
        """Worker thread: runs the latest request, publishes unless superseded."""
        while True:
            payload, generation = self._next_request()
            if generation is None:
                log.debug("Scheduler closed, stopping worker thread.")
                break
            self._deliver(None, generation)
            try:
                outcome = self._run(payload)
            except Exception as e:
                log.error("Layout run crashed: %s", e, exc_info=True)
                outcome = None
            self._deliver(outcome, generation)
            with self._cond:
                if not self._has_pending:
                    self._idle.set()

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Blocks until no request is waiting or running."""
        return self._idle.wait(timeout)

    def close(self, timeout: float = 2.0):
        with self._cond:
            self._closed = True
            self._cond.notify()
        self.worker.join(timeout=timeout)


class FileWatcher:
    """Polls the files of a directory matching a pattern for modification."""

    def __init__(
        self,
        directory: str,
        on_change: Callable[[Dict[str, float]], None],
        pattern: str = "*.lua",
        interval: float = 0.5,
    ):
        self.directory = directory
        self.pattern = pattern
        self.interval = interval
        self._on_change = on_change
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._mtimes = self.snapshot()

    def snapshot(self) -> Dict[str, float]:
        mtimes = {}
        try:
            with os.scandir(self.directory) as it:
                for entry in it:
                    if entry.is_file() and fnmatch.fnmatch(entry.name, self.pattern):
                        mtimes[entry.path] = entry.stat().st_mtime
        except FileNotFoundError:
            log.warning("Watched directory disappeared: %s", self.directory)
        return mtimes

    def poll(self) -> bool:
        """Checks once; calls ``on_change`` with the changed files, if any."""
        current = self.snapshot()
        changed = {
            path: mtime
            for path, mtime in current.items()
            if self._mtimes.get(path) != mtime
        }
        removed = set(self._mtimes) - set(current)
        self._mtimes = current
        if changed or removed:
            log.info("Pipeline sources changed: %s", ", ".join(sorted(set(changed) | removed)))
            self._on_change(changed)
            return True
        return False

    def _watch(self):
        while not self._stop.wait(self.interval):
            self.poll()

    def start(self):
        self._thread = threading.Thread(target=self._watch, daemon=True)
        self._thread.start()
        log.info("Watching %s for %s", self.directory, self.pattern)

    def stop(self):
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=2)
