"""
Vector path model.

A path is an ordered list of segments. Segments are a closed set of kinds
(move, line, quadratic, cubic, close) and never store their start point:
the start of segment i is the end of segment i-1. Coordinates use the
raster convention with the y axis pointing down.
"""

import hashlib
import math
from dataclasses import dataclass
from enum import Enum

import numpy as np

from rastertrace.errors import EmptyPathError, InvariantViolation, MissingMoveError
from rastertrace.geometry import bezier

# Extent given to an axis-aligned bounding box side of zero length.
DEGENERATE_EXTENT = 1.0


class SegmentKind(str, Enum):
    MOVE = "move"
    LINE = "line"
    QUAD = "quad"
    CUBIC = "cubic"
    CLOSE = "close"


class WindingRule(str, Enum):
    NONZERO = "nonzero"
    EVEN_ODD = "evenodd"


class Direction(str, Enum):
    CLOCKWISE = "clockwise"
    COUNTER_CLOCKWISE = "counterclockwise"
    UNSET = "unset"


@dataclass(frozen=True)
class Segment:
    """
    One path segment.

    `end` is the segment's end point. QUAD carries one control point and
    CUBIC two; CLOSE ends at the start of the loop it closes.
    """
    kind: SegmentKind
    end: tuple
    controls: tuple = ()

    @property
    def is_drawing(self):
        return self.kind in (SegmentKind.LINE, SegmentKind.QUAD, SegmentKind.CUBIC)

    def as_kind(self, kind):
        """Same end point, different kind (controls are dropped)."""
        return Segment(kind, self.end)

    def reversed_from(self, start):
        """The segment drawn backwards, ending at `start`."""
        if self.kind == SegmentKind.CUBIC:
            return Segment(SegmentKind.CUBIC, tuple(start), (self.controls[1], self.controls[0]))
        if self.kind == SegmentKind.QUAD:
            return Segment(SegmentKind.QUAD, tuple(start), self.controls)
        return Segment(SegmentKind.LINE, tuple(start))


def _pt(x, y):
    return (float(x), float(y))


def move_to(x, y):
    return Segment(SegmentKind.MOVE, _pt(x, y))


def line_to(x, y):
    return Segment(SegmentKind.LINE, _pt(x, y))


def quad_to(cx, cy, x, y):
    return Segment(SegmentKind.QUAD, _pt(x, y), (_pt(cx, cy),))


def cubic_to(c1x, c1y, c2x, c2y, x, y):
    return Segment(SegmentKind.CUBIC, _pt(x, y), (_pt(c1x, c1y), _pt(c2x, c2y)))


def close_to(x, y):
    return Segment(SegmentKind.CLOSE, _pt(x, y))


def _cubic_controls(start, segment):
    """Control points of a curve segment as a cubic."""
    if segment.kind == SegmentKind.QUAD:
        return bezier.quad_to_cubic(start, segment.controls[0], segment.end)
    return segment.controls


def segment_length(start, segment, flatness=1.0):
    """Length of a segment drawn from `start`."""
    kind = segment.kind
    if kind == SegmentKind.MOVE or start is None:
        return 0.0
    if kind in (SegmentKind.LINE, SegmentKind.CLOSE):
        return math.hypot(segment.end[0] - start[0], segment.end[1] - start[1])
    if kind in (SegmentKind.QUAD, SegmentKind.CUBIC):
        c1, c2 = _cubic_controls(start, segment)
        return bezier.cubic_length(start, c1, c2, segment.end, flatness)
    raise InvariantViolation(f"unknown segment kind {kind}")


def segment_polyline(start, segment, flatness=1.0):
    """Flattened points of a segment, excluding its start point."""
    kind = segment.kind
    if kind in (SegmentKind.QUAD, SegmentKind.CUBIC):
        c1, c2 = _cubic_controls(start, segment)
        pts = bezier.flatten_cubic(start, c1, c2, segment.end, flatness)
        return [tuple(p) for p in pts[1:]]
    return [segment.end]


class VectorPath:
    """
    A path owning its segment list.

    The cached direction is cleared by every mutation.
    """

    def __init__(self, segments=None, winding_rule=WindingRule.NONZERO, filled=False, line_width=1.0):
        self._segments = []
        self.winding_rule = winding_rule
        self.filled = filled
        self.line_width = line_width
        self._direction = Direction.UNSET
        for segment in segments or ():
            self.add(segment)

    # ---------------------------------------------------------------- basics

    def __len__(self):
        return len(self._segments)

    def __iter__(self):
        return iter(self._segments)

    def __getitem__(self, index):
        return self._segments[index]

    def __eq__(self, other):
        if not isinstance(other, VectorPath):
            return NotImplemented
        return (self._segments == other._segments
                and self.winding_rule == other.winding_rule
                and self.filled == other.filled
                and self.line_width == other.line_width)

    __hash__ = None

    def __repr__(self):
        return self.summary()

    def summary(self):
        return (f"VectorPath(segments={len(self._segments)},closed={self.is_closed},"
                f"filled={self.filled},rule={self.winding_rule.value})")

    @property
    def segments(self):
        return tuple(self._segments)

    @property
    def is_empty(self):
        return not self._segments

    @property
    def is_closed(self):
        return bool(self._segments) and self._segments[-1].kind == SegmentKind.CLOSE

    @property
    def has_sub_paths(self):
        """True when a close precedes the final segment."""
        return any(s.kind == SegmentKind.CLOSE for s in self._segments[:-1])

    def copy(self, segments=None):
        """A new path with the same attributes (and optionally other segments)."""
        return VectorPath(
            self._segments if segments is None else segments,
            winding_rule=self.winding_rule,
            filled=self.filled,
            line_width=self.line_width,
        )

    # -------------------------------------------------------------- mutation

    def _invalidate(self):
        self._direction = Direction.UNSET

    def _loop_start(self):
        for segment in reversed(self._segments):
            if segment.kind == SegmentKind.MOVE:
                return segment.end
        raise MissingMoveError(SegmentKind.CLOSE.value)

    def add(self, segment):
        """Append a segment, enforcing that the path starts with a move."""
        if not self._segments and segment.kind != SegmentKind.MOVE:
            raise MissingMoveError(segment.kind.value)
        if segment.kind == SegmentKind.CLOSE:
            segment = Segment(SegmentKind.CLOSE, self._loop_start())
        self._segments.append(segment)
        self._invalidate()
        return self

    def move_to(self, x, y):
        return self.add(move_to(x, y))

    def line_to(self, x, y):
        return self.add(line_to(x, y))

    def quad_to(self, cx, cy, x, y):
        return self.add(quad_to(cx, cy, x, y))

    def curve_to(self, c1x, c1y, c2x, c2y, x, y):
        return self.add(cubic_to(c1x, c1y, c2x, c2y, x, y))

    def close(self):
        return self.add(Segment(SegmentKind.CLOSE, None))

    def replace(self, index, segment):
        """Replace segment `index`; the first segment must stay a move."""
        if index == 0 and segment.kind != SegmentKind.MOVE:
            raise MissingMoveError(segment.kind.value)
        self._segments[index] = segment
        self._invalidate()

    def remove(self, index):
        """Remove segment `index`; a following drawing segment cannot become first."""
        if not self._segments:
            raise EmptyPathError("remove")
        removed = self._segments.pop(index)
        if self._segments and self._segments[0].kind != SegmentKind.MOVE:
            self._segments.insert(0, removed)
            raise MissingMoveError(self._segments[1].kind.value)
        self._invalidate()
        return removed

    def _set_segments(self, segments):
        rebuilt = VectorPath(segments)
        self._segments = rebuilt._segments
        self._invalidate()

    def append(self, other, connect=False, weld=False):
        """
        Append another path's segments to this one.

        With `connect` the other path's leading move becomes a line from
        this path's end. With `weld` the leading move is dropped so the
        other path's first drawing segment starts at this path's end.
        Closes are re-linked to the loop start of the combined path.
        """
        incoming = list(other)
        if not incoming:
            return self
        if self._segments:
            if weld:
                incoming = incoming[1:]
            elif connect:
                incoming[0] = incoming[0].as_kind(SegmentKind.LINE)
        for segment in incoming:
            self.add(segment)
        return self

    def prepend(self, other, connect=False, weld=False):
        """Put another path's segments in front of this one's."""
        combined = other.copy()
        combined.append(self, connect=connect, weld=weld)
        self._set_segments(combined._segments)
        return self

    # ------------------------------------------------------------ structure

    def start_of(self, index):
        """Start point of segment `index` (None for the first segment)."""
        if index <= 0:
            return None
        return self._segments[index - 1].end

    def first_point(self):
        if not self._segments:
            raise EmptyPathError("first_point")
        return self._segments[0].end

    def last_point(self):
        if not self._segments:
            raise EmptyPathError("last_point")
        return self._segments[-1].end

    def sub_ranges(self):
        """
        Index ranges of the sub-paths.

        Returns a list of (start, end, closed) tuples where `start` is a
        move and `end` is either a close or the last segment before the
        next move.
        """
        ranges = []
        start = None
        for i, segment in enumerate(self._segments):
            if segment.kind == SegmentKind.MOVE:
                if start is not None:
                    ranges.append((start, i - 1, False))
                start = i
            elif segment.kind == SegmentKind.CLOSE:
                ranges.append((start, i, True))
                start = None
            elif start is None:
                # drawing after a close continues from the closed loop's start
                start = i - 1
        if start is not None and start < len(self._segments):
            ranges.append((start, len(self._segments) - 1, False))
        return ranges

    def loop_ranges(self):
        """(start, end) ranges of the closed loops."""
        return [(s, e) for s, e, closed in self.sub_ranges() if closed]

    def points(self):
        """End points of all segments, in order."""
        return [s.end for s in self._segments]

    def vertices(self, start=0, end=None):
        """
        End points of segments start..end as an (n, 2) array.

        A trailing close, and a last vertex equal to the loop start, are
        dropped so closed loops list each vertex once.
        """
        if end is None:
            end = len(self._segments) - 1
        segs = self._segments[start:end + 1]
        if segs and segs[-1].kind == SegmentKind.CLOSE:
            segs = segs[:-1]
            if len(segs) > 1 and segs[-1].end == segs[0].end:
                segs = segs[:-1]
        return np.array([s.end for s in segs], dtype=float).reshape(-1, 2)

    def polyline(self, start=0, end=None, flatness=1.0):
        """Flattened points of segments start..end (curves sampled)."""
        if end is None:
            end = len(self._segments) - 1
        pts = []
        for i in range(start, end + 1):
            segment = self._segments[i]
            if segment.kind == SegmentKind.MOVE or i == start:
                pts.append(segment.end)
            else:
                pts.extend(segment_polyline(self._segments[i - 1].end, segment, flatness))
        return np.array(pts, dtype=float).reshape(-1, 2)

    def sub_path(self, start, end):
        """Copy of segments start..end as a path starting with a move."""
        if not self._segments:
            raise EmptyPathError("sub_path")
        segs = list(self._segments[start:end + 1])
        if segs and segs[0].kind != SegmentKind.MOVE:
            origin = self.start_of(start)
            if segs[0].kind == SegmentKind.CLOSE or origin is None:
                segs[0] = segs[0].as_kind(SegmentKind.MOVE)
            else:
                segs.insert(0, move_to(*origin))
        return self.copy(segs)

    # -------------------------------------------------------------- measure

    def length(self, flatness=1.0):
        """Total drawn length; a close counts as a line back to its loop start."""
        if not self._segments:
            raise EmptyPathError("length")
        total = 0.0
        for i, segment in enumerate(self._segments):
            total += segment_length(self.start_of(i), segment, flatness)
        return total

    def bounds(self):
        """
        Approximate bounding box (min_x, min_y, max_x, max_y).

        Only end points are used; control points are ignored. A side of
        zero length is widened to DEGENERATE_EXTENT around its centre.
        """
        if not self._segments:
            raise EmptyPathError("bounds")
        pts = np.array(self.points(), dtype=float)
        min_x, min_y = pts.min(axis=0)
        max_x, max_y = pts.max(axis=0)
        if max_x - min_x <= 0:
            min_x -= DEGENERATE_EXTENT / 2
            max_x += DEGENERATE_EXTENT / 2
        if max_y - min_y <= 0:
            min_y -= DEGENERATE_EXTENT / 2
            max_y += DEGENERATE_EXTENT / 2
        return (float(min_x), float(min_y), float(max_x), float(max_y))

    def bounds_area(self):
        min_x, min_y, max_x, max_y = self.bounds()
        return (max_x - min_x) * (max_y - min_y)

    def start_gradient(self, index):
        """Direction vector of segment `index` at its start."""
        if not self._segments:
            raise EmptyPathError("start_gradient")
        segment = self._segments[index]
        start = self.start_of(index)
        if segment.kind == SegmentKind.MOVE or start is None:
            return (0.0, 0.0)
        if segment.kind in (SegmentKind.QUAD, SegmentKind.CUBIC):
            c1, c2 = _cubic_controls(start, segment)
            return bezier.start_tangent(start, c1, c2, segment.end)
        return (segment.end[0] - start[0], segment.end[1] - start[1])

    def end_gradient(self, index):
        """Direction vector of segment `index` at its end."""
        if not self._segments:
            raise EmptyPathError("end_gradient")
        segment = self._segments[index]
        start = self.start_of(index)
        if segment.kind == SegmentKind.MOVE or start is None:
            return (0.0, 0.0)
        if segment.kind in (SegmentKind.QUAD, SegmentKind.CUBIC):
            c1, c2 = _cubic_controls(start, segment)
            return bezier.end_tangent(start, c1, c2, segment.end)
        return (segment.end[0] - start[0], segment.end[1] - start[1])

    def to_polygons(self, flatness=1.0):
        """Flattened rings, one per sub-path with at least three points."""
        rings = []
        for start, end, _ in self.sub_ranges():
            pts = self.polyline(start, end, flatness)
            if len(pts) > 1 and np.allclose(pts[0], pts[-1]):
                pts = pts[:-1]
            if len(pts) >= 3:
                rings.append(pts)
        return rings

    def signed_area(self, flatness=1.0):
        """Shoelace area summed over the rings (positive is clockwise on screen)."""
        total = 0.0
        for ring in self.to_polygons(flatness):
            total += polygon_signed_area(ring)
        return total

    @property
    def direction(self):
        if self._direction == Direction.UNSET and self._segments:
            area = self.signed_area()
            if area > 0:
                self._direction = Direction.CLOCKWISE
            elif area < 0:
                self._direction = Direction.COUNTER_CLOCKWISE
        return self._direction

    def to_region(self, flatness=1.0):
        from rastertrace.geometry.region import Region
        return Region.from_path(self, flatness)

    def contains_point(self, x, y):
        """Whether (x, y) lies inside the path's filled shape."""
        return self.to_region().contains_point(x, y)

    # -------------------------------------------------------------- derived

    def reversed(self):
        """
        The path drawn backwards.

        Each sub-path is reversed on its own; closed loops keep their start
        point and stay closed.
        """
        result = self.copy([])
        for start, end, closed in self.sub_ranges():
            segs = self._segments[start:end + 1]
            origin = segs[0].end
            drawing = segs[1:-1] if closed else segs[1:]
            ends = [origin] + [s.end for s in drawing]
            if closed:
                result.add(move_to(*origin))
                if ends[-1] != origin:
                    result.add(line_to(*ends[-1]))
                for k in range(len(drawing) - 1, -1, -1):
                    result.add(drawing[k].reversed_from(ends[k]))
                result.add(Segment(SegmentKind.CLOSE, None))
            else:
                result.add(move_to(*ends[-1]))
                for k in range(len(drawing) - 1, -1, -1):
                    result.add(drawing[k].reversed_from(ends[k]))
        return result

    def content_hash(self, round_digits=2):
        """Deterministic hash of the rounded segment data."""
        parts = []
        for segment in self._segments:
            coords = [segment.end] + list(segment.controls)
            rounded = [(round(x, round_digits), round(y, round_digits)) for x, y in coords]
            parts.append(f"{segment.kind.value}{rounded}")
        return hashlib.sha256(";".join(parts).encode()).hexdigest()[:12]


def polygon_signed_area(points):
    """Shoelace signed area of a ring given as an (n, 2) array."""
    pts = np.asarray(points, dtype=float)
    if len(pts) < 3:
        return 0.0
    x = pts[:, 0]
    y = pts[:, 1]
    return 0.5 * float(np.dot(x, np.roll(y, -1)) - np.dot(np.roll(x, -1), y))


def polyline_path(points, closed=False, **attrs):
    """Build a path of lines through `points`."""
    path = VectorPath(**attrs)
    pts = [tuple(map(float, p)) for p in points]
    if not pts:
        return path
    path.move_to(*pts[0])
    for p in pts[1:]:
        path.line_to(*p)
    if closed:
        path.close()
    return path
