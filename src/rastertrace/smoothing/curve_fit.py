"""
Cubic curve fitting by simplex search.

The end points of the curve are fixed to the run's ends; the four control
point coordinates are refined with scipy's Nelder-Mead minimiser, starting
from a five-vertex simplex of geometric guesses, to minimise the area
deviation from the traced points.
"""

import math

import numpy as np
from scipy.optimize import minimize

from rastertrace.geometry import bezier
from rastertrace.geometry.path_model import SegmentKind
from rastertrace.smoothing.deviation import DeviationResult, deviation, stationary_deviation


def _unit(vector):
    norm = np.linalg.norm(vector)
    if norm == 0:
        return np.zeros(2)
    return vector / norm


def end_tangents(points):
    """Tangent directions at both ends from the gradients at 1/3 and 2/3."""
    pts = np.asarray(points, dtype=float)
    n = len(pts)
    first = max(1, n // 3)
    second = min(n - 2, (2 * n) // 3)
    return _unit(pts[first] - pts[0]), _unit(pts[-1] - pts[second])


def initial_simplex(points, simplex_delta):
    """
    Five starting control-point vectors (c1x, c1y, c2x, c2y).

    Tangent seed, both controls at the middle point, the tangent
    intersection elevated by 2/3, controls half a chord along the
    tangents, and the straight chord.
    """
    pts = np.asarray(points, dtype=float)
    p0, p3 = pts[0], pts[-1]
    chord = float(np.linalg.norm(p3 - p0))
    t0, t1 = end_tangents(pts)

    seed = np.concatenate([p0 + t0 * chord / 3.0, p3 - t1 * chord / 3.0])

    middle = pts[len(pts) // 2]
    degenerate = np.concatenate([middle, middle])

    crossing = bezier.line_intersection(p0, t0, p3, t1)
    if crossing is None:
        crossing = (p0 + p3) / 2.0
    crossing = np.asarray(crossing, dtype=float)
    # keep a far-off intersection from throwing the simplex away
    if np.linalg.norm(crossing - (p0 + p3) / 2.0) > 2.0 * max(chord, 1.0):
        crossing = middle
    elevated = np.concatenate([p0 + 2.0 * (crossing - p0) / 3.0, p3 + 2.0 * (crossing - p3) / 3.0])

    offset = np.concatenate([p0 + t0 * chord / 2.0, p3 - t1 * chord / 2.0])
    straight = np.concatenate([p0 + (p3 - p0) / 3.0, p0 + 2.0 * (p3 - p0) / 3.0])

    simplex = np.array([seed, degenerate, elevated, offset, straight])

    # a flat simplex cannot explore all four coordinates
    if np.linalg.matrix_rank(simplex[1:] - simplex[0]) < 4:
        scale = simplex_delta * max(chord, 1.0)
        for i in range(1, 5):
            simplex[i, i - 1] += scale
    return simplex


def _curve_points(p0, p3, controls, count):
    return bezier.flatten_cubic(p0, controls[:2], controls[2:], p3, count=count)


def fit_cubic(run, points, config):
    """
    Best cubic through the run's end points.

    Returns (c1, c2, delta). The minimiser's callback is a cancellation
    checkpoint.
    """
    pts = np.asarray(points, dtype=float)
    p0, p3 = pts[0], pts[-1]
    count = max(16, 2 * len(pts))

    def objective(x):
        return deviation(pts, _curve_points(p0, p3, x, count))

    simplex = initial_simplex(pts, config.simplex_delta)
    result = minimize(
        objective,
        simplex[0],
        method="Nelder-Mead",
        callback=lambda xk: run.checkpoint(),
        options={
            "initial_simplex": simplex,
            "maxiter": config.max_iterations,
            "maxfev": config.max_function_evals,
            "xatol": config.tol_x,
            "fatol": config.tol_fun,
        },
    )
    x = result.x
    return (float(x[0]), float(x[1])), (float(x[2]), float(x[3])), float(objective(x))


def curve_result(run, points, start, end, config):
    """Cubic candidate for points start..end."""
    span = np.asarray(points[start:end + 1], dtype=float)
    p0, p3 = span[0], span[-1]
    c1, c2, delta = fit_cubic(run, span, config)
    start_tangent = bezier.start_tangent(p0, c1, c2, p3)
    return DeviationResult(
        shape=SegmentKind.CUBIC,
        start=start,
        end=end,
        length=bezier.cubic_length(p0, c1, c2, p3, config.flatness),
        delta=delta,
        angle=math.atan2(start_tangent[1], start_tangent[0]),
        flatness=bezier.tangent_divergence(p0, c1, c2, p3),
        stationary_deviation=stationary_deviation(bezier.stationary_points(p0, c1, c2, p3), span),
        controls=(c1, c2),
        end_point=(float(p3[0]), float(p3[1])),
    )
