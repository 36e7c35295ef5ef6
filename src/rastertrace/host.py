"""
Host application boundary.

The pipeline never touches widgets or the document; everything it needs to
tell the outside world goes through a Host. The base class only logs, so a
bare Host is enough for scripts and tests.
"""

from rastertrace.tracer import get_tracer


class Host:
    """Callbacks the pipeline makes into the host application."""

    def progress(self, value):
        """Progress of the active stage as an int in [0, 100]."""

    def message(self, text):
        """Human readable progress or diagnostic text."""
        get_tracer().event(text, level="DEBUG")

    def preview(self, paths):
        """A batch of partial results for live preview."""

    def record_undo(self, previous, paths, stage_name, results):
        """Undo boundary, called once per completed stage."""

    def stage_done(self, stage_name, paths, success):
        """The stage finished; `paths` is the list the host should now show."""


class RecordingHost(Host):
    """
    Host that keeps every callback it receives.

    Used by tests to inspect stage outcomes.
    """

    def __init__(self):
        self.progress_values = []
        self.messages = []
        self.previews = []
        self.undo_records = []
        self.finished = []

    def progress(self, value):
        self.progress_values.append(value)

    def message(self, text):
        super().message(text)
        self.messages.append(text)

    def preview(self, paths):
        self.previews.append(list(paths))

    def record_undo(self, previous, paths, stage_name, results):
        self.undo_records.append((list(previous), list(paths), stage_name, list(results)))

    def stage_done(self, stage_name, paths, success):
        self.finished.append((stage_name, list(paths), success))
