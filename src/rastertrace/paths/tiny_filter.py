"""Removal of paths too small to matter."""

from rastertrace.tracer import get_tracer, trace


@trace(label="remove_tiny_paths")
def remove_tiny_paths(run, paths, config):
    """Drop paths whose approximate bounding area is below the threshold, keeping order."""
    tracer = get_tracer()
    kept = []

    for i, path in enumerate(paths):
        if not path.is_empty and path.bounds_area() >= config.area_threshold:
            kept.append(path)
        run.report(i + 1, len(paths))
        run.checkpoint()

    tracer.event(f"Removed {len(paths) - len(kept)} of {len(paths)} paths below area {config.area_threshold}")
    return kept
