"""
Collinear line collapsing.

Consecutive LINE segments pointing the same way (within an angular
tolerance) are folded into one by extending the earlier line; zero-length
lines are dropped. Passes repeat until nothing changes, so optimizing an
optimized path is a no-op.
"""

from rastertrace.geometry.bezier import angle_between
from rastertrace.geometry.path_model import SegmentKind, line_to
from rastertrace.tracer import get_tracer, trace

# Lines shorter than this (squared) are removed.
MIN_LENGTH_SQ = 1e-6


def _collapse_pass(segments, gradient_epsilon):
    out = []
    changed = False
    for segment in segments:
        if segment.kind == SegmentKind.LINE and out:
            start = out[-1].end
            dx = segment.end[0] - start[0]
            dy = segment.end[1] - start[1]
            if dx * dx + dy * dy < MIN_LENGTH_SQ:
                changed = True
                continue

            previous = out[-1]
            if previous.kind == SegmentKind.LINE and len(out) >= 2:
                origin = out[-2].end
                gradient = (previous.end[0] - origin[0], previous.end[1] - origin[1])
                if abs(angle_between(gradient, (dx, dy))) < gradient_epsilon:
                    out[-1] = line_to(*segment.end)
                    changed = True
                    continue

        out.append(segment)
    return out, changed


def optimize_path(path, gradient_epsilon):
    """Return a copy of `path` with collinear runs collapsed."""
    segments = list(path)
    changed = True
    while changed:
        segments, changed = _collapse_pass(segments, gradient_epsilon)
    return path.copy(segments)


@trace(label="optimize_lines")
def optimize_lines(run, paths, config):
    """
    Collapse collinear line runs in every path.

    Args:
        run: PipelineRun for progress and cancellation
        paths: list of VectorPath
        config: OptimizeConfig

    Returns:
        New list of paths, same order and count
    """
    tracer = get_tracer()
    result = []
    before = 0
    after = 0

    for i, path in enumerate(paths):
        optimized = optimize_path(path, config.gradient_epsilon)
        before += len(path)
        after += len(optimized)
        result.append(optimized)
        run.publish([optimized])
        run.report(i + 1, len(paths))
        run.checkpoint()

    run.flush_preview()
    tracer.event(f"Optimized {len(paths)} paths: segments {before} -> {after}")
    return result
