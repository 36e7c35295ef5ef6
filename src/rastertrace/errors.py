"""
Exception types for the tracing pipeline.

Stages raise these; the pipeline runner turns them into failed stage
reports and restores the previous path list.
"""


class RasterTraceError(Exception):
    """Base class for all pipeline errors."""


class UnsupportedRasterFormat(RasterTraceError):
    """The raster's pixel encoding cannot be mapped to a channel layout."""

    def __init__(self, shape, dtype):
        self.shape = tuple(shape)
        self.dtype = str(dtype)
        super().__init__(f"Unsupported raster format: shape={self.shape} dtype={self.dtype}")


class Cancelled(RasterTraceError):
    """Raised at a checkpoint once cancellation has been requested."""

    def __init__(self, stage_name=None):
        self.stage_name = stage_name
        message = f"Stage cancelled: {stage_name}" if stage_name else "Stage cancelled"
        super().__init__(message)


class InvariantViolation(RasterTraceError):
    """A path operation found the data in a state that should be impossible."""


class EmptyPathError(InvariantViolation):
    """An operation that needs segments was invoked on an empty path."""

    def __init__(self, operation):
        self.operation = operation
        super().__init__(f"{operation} requires a non-empty path")


class MissingMoveError(InvariantViolation):
    """A drawing or close segment was added before any move."""

    def __init__(self, kind):
        self.kind = kind
        super().__init__(f"{kind} segment encountered before any move")


class StageBusyError(RasterTraceError):
    """A stage was requested while another stage is still running."""

    def __init__(self, active, requested):
        self.active = active
        self.requested = requested
        super().__init__(f"Cannot start '{requested}' while '{active}' is running")
