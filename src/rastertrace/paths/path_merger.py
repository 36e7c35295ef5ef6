"""
Proximity-based path welding.

Two kinds of pair merge:

- open paths whose end points lie within the threshold are welded end to
  end (the second path is reversed when that brings the ends together)
- closed, unfilled, line-only loops drawn in opposite directions that run
  alongside each other are joined along their longest shared stretch,
  which is cut out of the result

The scan restarts after every merge until no pair qualifies.
"""

import math

from rastertrace.geometry.path_model import Direction, SegmentKind, line_to, polyline_path
from rastertrace.tracer import get_tracer, trace


def _distance(p, q):
    return math.hypot(p[0] - q[0], p[1] - q[1])


def _is_simple_open(path):
    return (not path.is_empty and len(path) > 1
            and not any(s.kind == SegmentKind.CLOSE for s in path)
            and sum(1 for s in path if s.kind == SegmentKind.MOVE) == 1)


def _is_line_loop(path):
    if path.filled or path.has_sub_paths or not path.is_closed:
        return False
    return all(s.kind in (SegmentKind.LINE, SegmentKind.CLOSE) for s in path.segments[1:])


def _weld(a, first, second):
    """`first` then `second` joined by a line, carrying a's attributes."""
    joined = first.copy().append(second, weld=True)
    join = len(first)
    if join < len(joined) and joined[join].kind != SegmentKind.LINE:
        joined.replace(join, line_to(*joined[join].end))
    return a.copy(joined.segments)


def merge_open(a, b, threshold):
    """
    Weld two open paths at their closest end points.

    Returns the welded path, or None when no end pair is below the
    threshold. The result has len(a) + len(b) - 1 segments and the join
    is always a line.
    """
    a_start, a_end = a.first_point(), a.last_point()
    b_start, b_end = b.first_point(), b.last_point()

    candidates = [
        (_distance(a_end, b_start), "end_start"),
        (_distance(a_start, b_end), "start_end"),
        (_distance(a_end, b_end), "end_end"),
        (_distance(a_start, b_start), "start_start"),
    ]
    distance, pairing = min(candidates, key=lambda c: c[0])
    if distance >= threshold:
        return None

    if pairing == "end_start":
        return _weld(a, a, b)
    if pairing == "start_end":
        return _weld(a, b, a)
    if pairing == "end_end":
        return _weld(a, a, b.reversed())
    return _weld(a, b.reversed(), a)


def shared_run(a, b, threshold):
    """
    Longest stretch where a walks forwards while b walks backwards.

    Returns (i, j, length) such that a[i + k] is within the threshold of
    b[j - k] for k < length, indices taken cyclically.
    """
    n, m = len(a), len(b)
    best = (0, 0, 0)
    limit = min(n, m)
    for i in range(n):
        for j in range(m):
            k = 0
            while k < limit and _distance(a[(i + k) % n], b[(j - k) % m]) <= threshold:
                k += 1
            if k > best[2]:
                best = (i, j, k)
    return best


def merge_loops(a, b, threshold):
    """
    Join two opposite line loops along their shared border.

    The shared stretch is cut out and the rest of both loops welded into
    one loop drawn in a's direction. Returns None when the loops do not
    qualify.
    """
    if not (_is_line_loop(a) and _is_line_loop(b)):
        return None
    if Direction.UNSET in (a.direction, b.direction) or a.direction == b.direction:
        return None

    # walk b with a's winding so a shared border runs against a
    va = [tuple(p) for p in a.vertices()]
    vb = [tuple(p) for p in b.reversed().vertices()]
    n, m = len(va), len(vb)
    i, j, length = shared_run(va, vb, threshold)
    if length < 2 or length >= min(n, m):
        return None

    points = [va[(i + length - 1 + t) % n] for t in range(n - length + 2)]
    points += [vb[(j + 1 + t) % m] for t in range(m - length)]
    if len(points) < 3:
        return None

    return polyline_path(points, closed=True, winding_rule=a.winding_rule,
                         filled=a.filled, line_width=a.line_width)


def merge_pair(a, b, threshold):
    if _is_simple_open(a) and _is_simple_open(b):
        return merge_open(a, b, threshold)
    if a.is_closed and b.is_closed:
        return merge_loops(a, b, threshold)
    return None


@trace(label="merge_paths")
def merge_paths(run, paths, config):
    """
    Weld nearby paths until no pair is within `delta_threshold`.

    Returns a new list; merged paths take the first path's attributes and
    position in the list.
    """
    tracer = get_tracer()
    result = list(paths)
    initial = len(result)
    merges = 0

    changed = True
    while changed:
        changed = False
        for i in range(len(result)):
            for j in range(i + 1, len(result)):
                merged = merge_pair(result[i], result[j], config.delta_threshold)
                if merged is not None:
                    result[i] = merged
                    del result[j]
                    merges += 1
                    changed = True
                    run.publish([merged])
                    break
            run.checkpoint()
            if changed:
                break
        run.report(merges, max(1, initial - 1))

    run.flush_preview()
    tracer.event(f"Merged {merges} pairs: {initial} -> {len(result)} paths")
    return result
