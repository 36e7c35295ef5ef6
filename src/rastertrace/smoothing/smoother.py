"""
Stair-step smoothing.

Scanned boundaries are long sequences of tiny axis-aligned steps. Runs of
short lines are replaced, span by span, with a straight chord or a fitted
cubic whenever the replacement stays within the area deviation budget.
"""

import numpy as np

from rastertrace.geometry.path_model import SegmentKind, cubic_to, line_to
from rastertrace.smoothing.curve_fit import curve_result
from rastertrace.smoothing.deviation import line_result
from rastertrace.tracer import get_tracer, trace

# Direction reversals allowed inside one run.
MAX_BENDS = 2


def _sign(value):
    return (value > 0) - (value < 0)


def find_runs(path, tiny_step_threshold):
    """
    Runs of short consecutive lines.

    Returns a list of (first, last, bends) where first..last are segment
    indices of LINE segments shorter than the threshold and bends holds
    the run-relative point indices where x or y reverses. A run holds at
    most MAX_BENDS reversals and at least two segments.
    """
    runs = []
    first = None
    bends = []
    signs = [0, 0]

    def flush(last):
        if first is not None and last - first >= 1:
            runs.append((first, last, list(bends)))

    for i, segment in enumerate(path):
        start = path.start_of(i)
        short = False
        if segment.kind == SegmentKind.LINE and start is not None:
            dx = segment.end[0] - start[0]
            dy = segment.end[1] - start[1]
            short = dx * dx + dy * dy < tiny_step_threshold ** 2

        if not short:
            flush(i - 1)
            first = None
            continue

        if first is None:
            first = i
            bends = []
            signs = [_sign(dx), _sign(dy)]
            continue

        reversal = False
        for axis, d in enumerate((dx, dy)):
            s = _sign(d)
            if s and signs[axis] and s != signs[axis]:
                reversal = True
            if s:
                signs[axis] = s

        if reversal:
            if len(bends) >= MAX_BENDS:
                flush(i - 1)
                first = i
                bends = []
                signs = [_sign(dx), _sign(dy)]
                continue
            bends.append(i - first)

    flush(len(path) - 1)
    return runs


class Smoother:
    """
    Span search over one run of points.

    Candidate lists are memoised per (start, end) for the lifetime of the
    instance, which covers one smoothing invocation.
    """

    def __init__(self, run, config):
        self.run = run
        self.config = config
        self.memo = {}
        self.results = []

    def candidates(self, points, start, end, key):
        memo_key = (key, start, end)
        if memo_key in self.memo:
            return self.memo[memo_key]

        found = [line_result(points, start, end)]
        if self.config.curve_fitting and end - start + 1 >= self.config.min_bezier_samples:
            found.append(curve_result(self.run, points, start, end, self.config))
        self.memo[memo_key] = found
        self.run.checkpoint()
        return found

    def select(self, pool):
        """Pick the winning candidate from a pool, or None."""
        config = self.config
        lines = [c for c in pool if not c.is_curve and c.delta <= config.max_deviation]
        curves = [c for c in pool if c.is_curve and c.delta <= config.max_deviation]
        if lines:
            curves = [c for c in curves if c.flatness >= config.bezier_gradient_threshold]

        candidates = lines + curves
        if not candidates:
            return None

        best = min(candidates)
        long_enough = [c for c in candidates
                       if c.length >= config.length_threshold and c.delta <= best.delta + config.threshold_diff]
        if long_enough:
            best = max(long_enough, key=lambda c: (c.length, -c.delta))

        if not best.is_curve:
            rivals = [c for c in curves
                      if c.delta <= best.delta + config.curve_threshold_diff
                      and c.stationary_deviation <= config.stationary_threshold
                      and c.length >= best.length]
            if rivals:
                best = min(rivals)
        return best

    def best_from(self, points, start, bends, key):
        """Best replacement starting at `start`, or None."""
        last = len(points) - 1
        if last - start < 2:
            return None

        span = last - start
        samples = sorted({last, start + span // 4, start + span // 2, start + (3 * span) // 4})
        samples = [j for j in samples if j >= start + 2]

        anchor = samples[0]
        for j in samples:
            if self.select(self.candidates(points, start, j, key)) is not None:
                anchor = j

        window = max(1, span // 4)
        ends = set(range(min(last, anchor + window), max(start + 2, anchor - window) - 1, -1))
        ends.update(b for b in bends if start + 2 <= b <= last)

        pool = []
        for j in sorted(ends, reverse=True):
            pool.extend(self.candidates(points, start, j, key))
        return self.select(pool)

    def smooth_run(self, points, bends, key):
        """Replacement segments for a run's points (excluding the first)."""
        segments = []
        i = 0
        last = len(points) - 1
        while i < last:
            best = self.best_from(points, i, bends, key)
            if best is None:
                segments.append(line_to(*points[i + 1]))
                i += 1
                continue
            if best.is_curve:
                (c1x, c1y), (c2x, c2y) = best.controls
                segments.append(cubic_to(c1x, c1y, c2x, c2y, *best.end_point))
            else:
                segments.append(line_to(*best.end_point))
            self.results.append(best)
            i = best.end
        return segments

    def smooth_path(self, path, index):
        runs = find_runs(path, self.config.tiny_step_threshold)
        if not runs:
            return path

        segments = []
        cursor = 0
        for first, last, bends in runs:
            segments.extend(path.segments[cursor:first])
            start = path.start_of(first)
            points = np.array([start] + [path[k].end for k in range(first, last + 1)], dtype=float)
            segments.extend(self.smooth_run(points, bends, (index, first)))
            cursor = last + 1
        segments.extend(path.segments[cursor:])
        return path.copy(segments)


@trace(label="smooth_paths")
def smooth_paths(run, paths, config):
    """
    Replace stair-stepped line runs with chords and cubics.

    Args:
        run: PipelineRun for progress and cancellation
        paths: list of VectorPath
        config: SmoothConfig

    Returns:
        (paths, results) where results are the accepted DeviationResults
    """
    tracer = get_tracer()
    smoother = Smoother(run, config)
    result = []

    for i, path in enumerate(paths):
        smoothed = smoother.smooth_path(path, i)
        result.append(smoothed)
        run.publish([smoothed])
        run.report(i + 1, len(paths))
        run.checkpoint()

    run.flush_preview()
    curves = sum(1 for r in smoother.results if r.is_curve)
    tracer.event(f"Smoothed {len(paths)} paths: {len(smoother.results)} replacements, {curves} curves")
    return result, smoother.results
