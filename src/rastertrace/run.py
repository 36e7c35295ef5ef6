"""
Per-stage run state.

A PipelineRun carries the cancellation token, progress and preview
batching for one stage execution. Every long loop in the stages calls
`checkpoint()` so cancellation is observed promptly.
"""

import threading
import time

from rastertrace.errors import Cancelled
from rastertrace.host import Host


class CancellationToken:
    """Explicit, thread-safe cancellation flag."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    @property
    def is_cancelled(self):
        return self._event.is_set()

    def raise_if_cancelled(self, stage_name=None):
        if self._event.is_set():
            raise Cancelled(stage_name)


class PipelineRun:
    """State of one stage execution."""

    def __init__(self, stage_name="", token=None, host=None, yield_sleep=0.0, preview_batch=20):
        self.stage_name = stage_name
        self.token = token or CancellationToken()
        self.host = host or Host()
        self.yield_sleep = yield_sleep
        self.preview_batch = max(1, preview_batch)
        self._progress = 0
        self._started = time.perf_counter()
        self._pending = []

    @property
    def progress(self):
        return self._progress

    @property
    def elapsed(self):
        """Seconds since the stage started."""
        return time.perf_counter() - self._started

    def set_progress(self, value):
        """Report progress; values below the current one are ignored."""
        value = int(max(0, min(100, value)))
        if value > self._progress:
            self._progress = value
            self.host.progress(value)

    def report(self, done, total):
        if total > 0:
            self.set_progress(100.0 * done / total)

    def checkpoint(self):
        """Yield briefly, then raise Cancelled if cancellation was requested."""
        time.sleep(self.yield_sleep)
        self.token.raise_if_cancelled(self.stage_name)

    def message(self, text):
        self.host.message(text)

    def publish(self, paths):
        """Queue partial results; they reach the host in batches."""
        self._pending.extend(paths)
        if len(self._pending) >= self.preview_batch:
            self.flush_preview()

    def flush_preview(self):
        if self._pending:
            self.host.preview(list(self._pending))
            self._pending = []
