"""
Bezier curve helpers.

Evaluation, flattening, tangents and stationary points for quadratic and
cubic curves given as plain (x, y) tuples or numpy arrays.
"""

import math

import numpy as np


def _bernstein(i, t):
    """Compute Bernstein basis polynomial value B_i,3(t)."""
    if i == 0:
        return (1 - t) ** 3
    elif i == 1:
        return 3 * (1 - t) ** 2 * t
    elif i == 2:
        return 3 * (1 - t) * t ** 2
    else:
        return t ** 3


def evaluate_cubic(p0, c1, c2, p3, t):
    """Evaluate a cubic Bezier at parameter t (scalar or array)."""
    t = np.asarray(t, dtype=float)[..., None]
    return (_bernstein(0, t) * np.asarray(p0, dtype=float)
            + _bernstein(1, t) * np.asarray(c1, dtype=float)
            + _bernstein(2, t) * np.asarray(c2, dtype=float)
            + _bernstein(3, t) * np.asarray(p3, dtype=float))


def quad_to_cubic(p0, c, p2):
    """Elevate a quadratic Bezier to the equivalent cubic control points."""
    p0 = np.asarray(p0, dtype=float)
    c = np.asarray(c, dtype=float)
    p2 = np.asarray(p2, dtype=float)
    c1 = p0 + 2.0 * (c - p0) / 3.0
    c2 = p2 + 2.0 * (c - p2) / 3.0
    return tuple(c1), tuple(c2)


def sample_count(p0, c1, c2, p3, flatness=1.0, minimum=4, maximum=64):
    """
    Number of flattening samples for a cubic.

    Grows with the square root of the control polygon length over the
    flatness so that long, bent curves get more points.
    """
    pts = np.array([p0, c1, c2, p3], dtype=float)
    polygon_length = float(np.sum(np.linalg.norm(np.diff(pts, axis=0), axis=1)))
    if flatness <= 0:
        return maximum
    n = int(math.ceil(math.sqrt(polygon_length / flatness) * 2))
    return max(minimum, min(maximum, n))


def flatten_cubic(p0, c1, c2, p3, flatness=1.0, count=None):
    """
    Flatten a cubic into a polyline.

    Returns an (n, 2) array including both end points.
    """
    if count is None:
        count = sample_count(p0, c1, c2, p3, flatness)
    t = np.linspace(0.0, 1.0, count + 1)
    return evaluate_cubic(p0, c1, c2, p3, t)


def cubic_length(p0, c1, c2, p3, flatness=1.0):
    """Approximate arc length of a cubic from its flattened polyline."""
    pts = flatten_cubic(p0, c1, c2, p3, flatness)
    return float(np.sum(np.linalg.norm(np.diff(pts, axis=0), axis=1)))


def start_tangent(p0, c1, c2, p3):
    """Direction of the curve leaving p0 (falls back along degenerate controls)."""
    for q in (c1, c2, p3):
        d = (q[0] - p0[0], q[1] - p0[1])
        if d[0] != 0 or d[1] != 0:
            return d
    return (0.0, 0.0)


def end_tangent(p0, c1, c2, p3):
    """Direction of the curve arriving at p3."""
    for q in (c2, c1, p0):
        d = (p3[0] - q[0], p3[1] - q[1])
        if d[0] != 0 or d[1] != 0:
            return d
    return (0.0, 0.0)


def tangent_divergence(p0, c1, c2, p3):
    """
    Angle between the start and end tangents, in radians.

    Zero for a curve whose controls sit on the chord direction, growing
    as the curve bends.
    """
    a = start_tangent(p0, c1, c2, p3)
    b = end_tangent(p0, c1, c2, p3)
    return abs(angle_between(a, b))


def angle_between(a, b):
    """Signed angle from vector a to vector b in (-pi, pi]."""
    if (a[0] == 0 and a[1] == 0) or (b[0] == 0 and b[1] == 0):
        return 0.0
    return normalize_angle(math.atan2(b[1], b[0]) - math.atan2(a[1], a[0]))


def normalize_angle(angle):
    """Wrap an angle into (-pi, pi]."""
    while angle <= -math.pi:
        angle += 2 * math.pi
    while angle > math.pi:
        angle -= 2 * math.pi
    return angle


def _quadratic_roots(a, b, c):
    """Real roots of a*t^2 + b*t + c restricted to the open interval (0, 1)."""
    roots = []
    if abs(a) < 1e-12:
        if abs(b) > 1e-12:
            roots.append(-c / b)
    else:
        disc = b * b - 4 * a * c
        if disc >= 0:
            sq = math.sqrt(disc)
            roots.extend([(-b + sq) / (2 * a), (-b - sq) / (2 * a)])
    return sorted(t for t in roots if 1e-9 < t < 1 - 1e-9)


def stationary_points(p0, c1, c2, p3):
    """
    Points where the curve's x or y derivative vanishes.

    These are the local extrema of the curve along the axes, returned as a
    list of (x, y) tuples in parameter order.
    """
    pts = np.array([p0, c1, c2, p3], dtype=float)
    ts = []
    for axis in (0, 1):
        a0, a1, a2, a3 = pts[:, axis]
        # derivative coefficients of the cubic in power form
        a = 3 * (-a0 + 3 * a1 - 3 * a2 + a3)
        b = 6 * (a0 - 2 * a1 + a2)
        c = 3 * (a1 - a0)
        ts.extend(_quadratic_roots(a, b, c))
    ts = sorted(ts)
    return [tuple(evaluate_cubic(p0, c1, c2, p3, t)) for t in ts]


def line_intersection(p, dp, q, dq):
    """
    Intersection of the infinite lines p + s*dp and q + u*dq.

    Returns None when the lines are parallel.
    """
    cross = dp[0] * dq[1] - dp[1] * dq[0]
    if abs(cross) < 1e-12:
        return None
    wx = q[0] - p[0]
    wy = q[1] - p[1]
    s = (wx * dq[1] - wy * dq[0]) / cross
    return (p[0] + s * dp[0], p[1] + s * dp[1])
