"""
Pydantic data models for rastertrace reports and path records.

Vector paths themselves are plain objects (see geometry.path_model); these
models are the validated, serialisable view used for stage reports,
debug dumps and the command line output. Content-based IDs keep the
output deterministic.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from rastertrace.geometry.path_model import Segment, SegmentKind, VectorPath, WindingRule


class SegmentRecord(BaseModel):
    """One serialised path segment."""
    kind: SegmentKind
    end: List[float] = Field(..., min_length=2, max_length=2)
    controls: List[List[float]] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")


class PathRecord(BaseModel):
    """A serialised vector path."""
    path_id: str
    segments: List[SegmentRecord] = Field(default_factory=list)
    winding_rule: WindingRule = WindingRule.NONZERO
    filled: bool = False
    line_width: float = Field(default=1.0, ge=0.0)
    closed: bool = False
    bbox: List[float] = Field(default_factory=lambda: [0.0, 0.0, 0.0, 0.0])

    model_config = ConfigDict(extra="forbid")


class StageReport(BaseModel):
    """Outcome of one stage execution."""
    stage: str
    success: bool
    cancelled: bool = False
    error: Optional[str] = None
    input_count: int = 0
    output_count: int = 0
    result_count: int = 0
    elapsed_ms: float = 0.0
    finished_at: datetime = Field(default_factory=datetime.now)
    details: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(extra="forbid")


class TraceDocument(BaseModel):
    """Paths and stage reports written by the command line."""
    source_path: str = ""
    width: int = 0
    height: int = 0
    paths: List[PathRecord] = Field(default_factory=list)
    reports: List[StageReport] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")


def generate_path_id(path, round_digits=2):
    """
    Generate deterministic path ID from segment coordinates.

    Rounds coordinates to avoid floating point instability.
    """
    if path.is_empty:
        return "path_empty"
    return f"path_{path.content_hash(round_digits)}"


def path_to_record(path):
    """Convert a VectorPath into a PathRecord."""
    segments = [
        SegmentRecord(
            kind=segment.kind,
            end=list(segment.end),
            controls=[list(c) for c in segment.controls],
        )
        for segment in path
    ]
    bbox = list(path.bounds()) if not path.is_empty else [0.0, 0.0, 0.0, 0.0]
    return PathRecord(
        path_id=generate_path_id(path),
        segments=segments,
        winding_rule=path.winding_rule,
        filled=path.filled,
        line_width=path.line_width,
        closed=path.is_closed,
        bbox=bbox,
    )


def record_to_path(record):
    """Rebuild a VectorPath from a PathRecord."""
    path = VectorPath(winding_rule=record.winding_rule, filled=record.filled, line_width=record.line_width)
    for segment in record.segments:
        path.add(Segment(segment.kind, tuple(segment.end), tuple(tuple(c) for c in segment.controls)))
    return path
