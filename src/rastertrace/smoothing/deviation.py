"""
Area deviation between a traced polyline and a replacement shape.

The deviation of a candidate is the area enclosed between the original
polyline and the candidate (their symmetric difference) divided by the
number of polyline points.
"""

import math
from dataclasses import dataclass
from functools import total_ordering

import numpy as np
from shapely.geometry import LineString
from shapely.ops import polygonize, unary_union

from rastertrace.geometry.path_model import SegmentKind


@total_ordering
@dataclass(eq=False)
class DeviationResult:
    """
    A candidate replacement for points start..end of a run.

    Ordered by delta, then length, then shape with lines first.
    """
    shape: SegmentKind
    start: int
    end: int
    length: float
    delta: float
    angle: float
    flatness: float = 0.0
    stationary_deviation: float = 0.0
    controls: tuple = ()
    end_point: tuple = None

    def sort_key(self):
        return (self.delta, self.length, 0 if self.shape == SegmentKind.LINE else 1)

    def __eq__(self, other):
        if not isinstance(other, DeviationResult):
            return NotImplemented
        return self.sort_key() == other.sort_key()

    def __lt__(self, other):
        if not isinstance(other, DeviationResult):
            return NotImplemented
        return self.sort_key() < other.sort_key()

    @property
    def is_curve(self):
        return self.shape == SegmentKind.CUBIC


def enclosed_area(polyline, replacement):
    """
    Area between a polyline and a replacement sharing its end points.

    The polyline followed by the reversed replacement forms one closed
    ring; noding it splits crossings into faces whose areas are summed.
    """
    a = np.asarray(polyline, dtype=float)
    b = np.asarray(replacement, dtype=float)
    ring = np.vstack([a, b[::-1], a[:1]])
    if len(ring) < 4:
        return 0.0
    noded = unary_union(LineString(ring))
    return float(sum(face.area for face in polygonize(noded)))


def deviation(polyline, replacement):
    """Enclosed area per polyline point."""
    count = len(polyline)
    if count == 0:
        return 0.0
    return enclosed_area(polyline, replacement) / count


def line_result(points, start, end):
    """Straight chord candidate for points start..end."""
    span = np.asarray(points[start:end + 1], dtype=float)
    p0, p1 = span[0], span[-1]
    return DeviationResult(
        shape=SegmentKind.LINE,
        start=start,
        end=end,
        length=float(np.linalg.norm(p1 - p0)),
        delta=deviation(span, np.array([p0, p1])),
        angle=math.atan2(p1[1] - p0[1], p1[0] - p0[0]),
        end_point=tuple(float(v) for v in p1),
    )


def polyline_extrema(points):
    """
    Local axis extrema of a polyline.

    Vertices where x or y changes direction, plus both ends.
    """
    pts = np.asarray(points, dtype=float)
    extrema = [pts[0]]
    for axis in (0, 1):
        values = pts[:, axis]
        last_sign = 0
        for i in range(1, len(values)):
            d = values[i] - values[i - 1]
            sign = int(np.sign(d))
            if sign == 0:
                continue
            if last_sign and sign != last_sign:
                extrema.append(pts[i - 1])
            last_sign = sign
    extrema.append(pts[-1])
    return np.array(extrema)


def stationary_deviation(curve_points, polyline):
    """
    Largest distance from a curve stationary point to the nearest
    polyline extremum (0 when the curve has none).
    """
    if not curve_points:
        return 0.0
    extrema = polyline_extrema(polyline)
    worst = 0.0
    for p in curve_points:
        nearest = float(np.min(np.linalg.norm(extrema - np.asarray(p), axis=1)))
        worst = max(worst, nearest)
    return worst
