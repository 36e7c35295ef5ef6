"""
Thick-trace line detection.

Filled shapes that are really drawn strokes are replaced by their
centerline with a line width. Each closed path is grouped into an
even-depth container and its direct holes, then:

1. no hole: the ring is paired with itself (two sides of one stroke)
2. one hole: the outer ring is paired with the hole (a closed stroke)
3. several holes: the closest two holes are joined across the wall
   between them, the wall becomes a line and the rest is reprocessed
4. invalid loop geometry: spike search on the outer ring

When nothing convincing is found the shape is kept as it was.
"""

import numpy as np
from shapely.geometry import Point, Polygon
from shapely.ops import unary_union

from rastertrace.geometry.path_model import polyline_path
from rastertrace.geometry.region import Region, ring_polygon
from rastertrace.lines import correspondence as corr
from rastertrace.lines.spikes import bulge_spans, find_spikes, merge_close_spikes
from rastertrace.paths.line_optimizer import optimize_path
from rastertrace.paths.subpath_splitter import compute_containment, find_sub_paths
from rastertrace.tracer import get_tracer, trace

# Angular tolerance used to collapse centerline samples into lines.
CENTERLINE_EPSILON = 0.05


def _line_path(points, width, closed=False):
    path = polyline_path(points, closed=closed, filled=False, line_width=width)
    return optimize_path(path, CENTERLINE_EPSILON)


def _ring(coords):
    pts = np.asarray(coords, dtype=float)
    if len(pts) > 1 and np.allclose(pts[0], pts[-1]):
        pts = pts[:-1]
    return pts


def _filled(polygon):
    return Region(polygon).to_paths(filled=True)


class LineDetector:
    """
    Recursive detection over one group of loops.

    `results` collects the LineFit records of every accepted pairing.
    """

    def __init__(self, run, config):
        self.run = run
        self.config = config
        self.results = []

    # ----------------------------------------------------------- single ring

    def lineify_loop(self, ring, depth=0):
        """
        Centerline for a hole-free ring.

        Returns a list of paths, or None when no line was found.
        """
        self.run.checkpoint()
        pairing = corr.rotational_correspondence(ring, self.config)
        if pairing is None:
            return None

        if corr.accepts(pairing, self.config):
            core = pairing.core()
            points = ([pairing.side_a[0]]
                      + list(pairing.midpoints[core])
                      + [pairing.side_a[-1]])
            width = corr.stroke_width(pairing.trimmed_mean, self.config)
            self.results.extend(pairing.fits())
            return [_line_path(points, width)]

        return self.spike_search(pairing, depth)

    def spike_search(self, pairing, depth):
        """Cut the pairing at its spikes; good runs become lines, bulges recurse."""
        if depth >= self.config.max_depth:
            return None

        spikes = find_spikes(pairing, self.config.delta_threshold)
        if not spikes:
            return None
        spikes = merge_close_spikes(spikes, pairing, self.config.return_point_distance)
        spans = bulge_spans(spikes, pairing, self.config)

        last = len(pairing.deltas) - 1
        plan = []
        cursor = 0
        for start, end in spans:
            if start > cursor:
                plan.append((cursor, start - 1, False))
            plan.append((start, end, True))
            cursor = end + 1
        if cursor <= last:
            plan.append((cursor, last, False))

        # bulges are only worth reprocessing once a line was found
        good = {}
        for start, end, is_bulge in plan:
            if not is_bulge:
                piece = self._good_run(pairing, start, end)
                if piece is not None:
                    good[start] = piece
        if not good:
            return None

        pieces = []
        for start, end, is_bulge in plan:
            if is_bulge:
                pieces.extend(self._bulge(pairing, start, end, depth))
            elif start in good:
                pieces.append(good[start])
        return pieces

    def _good_run(self, pairing, start, end):
        """Centerline piece for pairs start..end, or None for noise."""
        last = len(pairing.deltas) - 1
        lo = start + pairing.trim if start == 0 else start
        hi = end - pairing.trim if end == last else end
        # a run no longer than its caps is a corner, not a stroke
        if hi - lo + 1 <= pairing.trim:
            return None

        deltas = pairing.deltas[lo:hi + 1]
        if self.config.check_intersections and float(deltas.var()) > self.config.variance_threshold:
            return None

        points = list(pairing.midpoints[lo:hi + 1])
        if start == 0:
            points.insert(0, pairing.side_a[0])
        if end == last:
            points.append(pairing.side_a[-1])
        if corr.polyline_length(points) < self.config.min_stub_length:
            return None

        fits = pairing.fits(core_only=False)[lo:hi + 1]
        self.results.extend(fits)
        return _line_path(points, corr.stroke_width(float(deltas.mean()), self.config))

    def _bulge(self, pairing, start, end, depth):
        ring = np.vstack([pairing.side_a[start:end + 1], pairing.side_b[start:end + 1][::-1]])
        polygon = ring_polygon(ring)
        if polygon.is_empty or polygon.area < self.config.min_region_area:
            return []
        return self.detect_polygon(polygon, depth + 1, keep=True)

    # ------------------------------------------------------------- polygons

    def detect_polygon(self, polygon, depth=0, keep=False):
        """
        Lines for a shapely polygon or multipolygon.

        With `keep`, shapes without a line come back as filled paths;
        otherwise None signals that nothing was found.
        """
        self.run.checkpoint()
        parts = Region(polygon).polygons()
        if not parts:
            return [] if keep else None

        found = False
        result = []
        for part in parts:
            paths = None
            if depth <= self.config.max_depth:
                holes = list(part.interiors)
                outer = _ring(part.exterior.coords)
                if not holes:
                    paths = self.lineify_loop(outer, depth)
                elif len(holes) == 1:
                    paths = self.lineify_donut(outer, _ring(holes[0].coords))
                else:
                    paths = self.weld_holes(part, depth)
            if paths is None:
                result.extend(_filled(part))
            else:
                found = True
                result.extend(paths)

        if not found and not keep:
            return None
        return result

    def lineify_donut(self, outer, inner):
        pairing = corr.donut_correspondence(outer, inner, self.config)
        if pairing is None or not corr.accepts(pairing, self.config):
            return None
        width = corr.stroke_width(pairing.trimmed_mean, self.config)
        self.results.extend(pairing.fits())
        return [_line_path(pairing.midpoints, width, closed=True)]

    def weld_holes(self, polygon, depth):
        """
        Join the two closest holes across the wall between them.

        The wall's centerline is emitted and the shape, now with one hole
        fewer, is processed again one level deeper.
        """
        if depth >= self.config.max_depth:
            return None

        limit = 2.0 * self.config.delta_threshold
        holes = [Polygon(h) for h in polygon.interiors]
        best = None
        for i in range(len(holes)):
            for j in range(i + 1, len(holes)):
                distance = holes[i].distance(holes[j])
                if distance <= limit and (best is None or distance < best[0]):
                    best = (distance, i, j)
        if best is None:
            return None

        _, i, j = best
        run_a = border_run(holes[i], holes[j], limit, self.config)
        run_b = border_run(holes[j], holes[i], limit, self.config)
        if len(run_a) < 2 or len(run_b) < 2:
            return None

        pairing = corr.wall_correspondence(run_a, run_b, self.config.sample_spacing)
        if pairing.mean > self.config.delta_threshold:
            return None
        self.results.extend(pairing.fits(core_only=False))
        wall = _line_path(pairing.midpoints, corr.stroke_width(pairing.mean, self.config))

        bridge = ring_polygon(np.vstack([pairing.side_a, pairing.side_b[::-1]]))
        joined = unary_union([holes[i], holes[j], bridge])
        others = [h for k, h in enumerate(holes) if k not in (i, j)]
        rebuilt = Polygon(polygon.exterior).difference(unary_union([joined] + others))

        self.run.message(f"Joined holes {i} and {j} across a wall of {pairing.mean * 2:.1f}")
        return [wall] + self.detect_polygon(rebuilt, depth + 1, keep=True)


def border_run(hole, other, limit, config):
    """
    Longest stretch of `hole`'s boundary within `limit` of `other`.

    Returns the resampled points of that stretch in ring order.
    """
    ring = _ring(hole.exterior.coords)
    count = corr.even_sample_count(corr.ring_perimeter(ring), config.sample_spacing, config.max_samples)
    samples = corr.resample_ring(ring, count)
    boundary = other.exterior
    near = np.array([boundary.distance(Point(p)) <= limit for p in samples])
    if near.all():
        return samples
    if not near.any():
        return samples[:0]

    # rotate so the ring starts outside the run, then find the longest run
    shift = int(np.flatnonzero(~near)[0])
    rolled = np.roll(near, -shift)
    best = (0, 0)
    k = 0
    while k < count:
        if rolled[k]:
            start = k
            while k < count and rolled[k]:
                k += 1
            if k - start > best[1] - best[0]:
                best = (start, k)
        else:
            k += 1
    indices = (np.arange(best[0], best[1]) + shift) % count
    return samples[indices]


def loop_groups(run, path):
    """
    Even-depth loops with their direct interiors.

    Returns a list of (outer, holes, members) where outer and holes are
    point arrays and members are the SubPaths involved.
    """
    subpaths = find_sub_paths(path)
    compute_containment(run, subpaths)
    groups = []
    for subpath in subpaths:
        level = subpath.level(subpaths)
        if level % 2:
            continue
        children = [subpaths[i] for i in sorted(subpath.interior)
                    if subpaths[i].level(subpaths) == level + 1]
        outer = _ring(subpath.parent.polyline(subpath.start, subpath.end))
        holes = [_ring(c.parent.polyline(c.start, c.end)) for c in children]
        groups.append((outer, holes, [subpath] + children))
    return groups


def _members_path(path, members):
    result = path.copy([])
    for subpath in members:
        result.append(subpath.to_path())
    return result


def detect_group(detector, path, outer, holes, members):
    """Lines for one group, or the group's original loops when none is found."""
    polygon = Polygon(outer, holes) if len(outer) >= 3 else Polygon()
    if polygon.is_valid and not polygon.is_empty:
        paths = detector.detect_polygon(polygon)
    else:
        paths = detector.lineify_loop(outer) if len(outer) >= 3 else None
    if paths is None:
        return [_members_path(path, members)]
    return paths


def process_open(path, config):
    """Stub filter and width assignment for an open path."""
    if path.is_empty or path.length() < config.min_stub_length:
        return None
    result = path.copy()
    result.filled = False
    if config.fixed_width is not None:
        result.line_width = float(config.fixed_width)
    return result


@trace(label="detect_lines")
def detect_lines(run, paths, config):
    """
    Replace filled stroke shapes with centerlines.

    Args:
        run: PipelineRun for progress and cancellation
        paths: list of VectorPath
        config: DetectConfig

    Returns:
        (paths, results) where results are the LineFit records of every
        accepted pairing
    """
    tracer = get_tracer()
    detector = LineDetector(run, config)
    result = []

    for i, path in enumerate(paths):
        if not path.loop_ranges():
            processed = process_open(path, config)
            if processed is not None:
                result.append(processed)
        elif not path.filled:
            result.append(path)
        else:
            for outer, holes, members in loop_groups(run, path):
                produced = detect_group(detector, path, outer, holes, members)
                result.extend(produced)
                run.publish(produced)
        run.report(i + 1, len(paths))
        run.checkpoint()

    run.flush_preview()
    lines = sum(1 for p in result if not p.filled)
    tracer.event(f"Detected {lines} lines from {len(paths)} paths, fits={len(detector.results)}")
    return result, detector.results
