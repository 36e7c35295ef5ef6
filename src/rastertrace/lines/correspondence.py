"""
Two-sided trace correspondence.

A drawn stroke scanned as a filled region has two long sides running
alongside each other. Pairing every boundary sample on one side with its
partner on the other gives, per pair, a midpoint (on the centerline) and a
half-distance delta (half the stroke width). The rotational offset that
minimises the mean delta is taken as the pairing.
"""

import math
from dataclasses import dataclass, field

import numpy as np

from rastertrace.geometry.bezier import angle_between
from rastertrace.geometry.path_model import polygon_signed_area

MIN_SAMPLES = 8


@dataclass
class LineFit:
    """One correspondence pair."""
    delta: float
    index_a: int
    index_b: int
    point_a: tuple
    point_b: tuple

    @property
    def midpoint(self):
        return ((self.point_a[0] + self.point_b[0]) / 2.0, (self.point_a[1] + self.point_b[1]) / 2.0)


@dataclass
class Correspondence:
    """
    Pairing of two sample sequences.

    side_a[k] is paired with side_b[k]. `trim` pairs at each end are caps
    and are left out of the trimmed statistics.
    """
    side_a: np.ndarray
    side_b: np.ndarray
    index_a: np.ndarray
    index_b: np.ndarray
    step: float
    offset: int = 0
    trim: int = 0
    closed: bool = False
    deltas: np.ndarray = field(init=False)
    midpoints: np.ndarray = field(init=False)

    def __post_init__(self):
        self.deltas = np.linalg.norm(self.side_a - self.side_b, axis=1) / 2.0
        self.midpoints = (self.side_a + self.side_b) / 2.0

    def __len__(self):
        return len(self.deltas)

    @property
    def mean(self):
        return float(self.deltas.mean())

    def core(self):
        """Slice of the pairs left after trimming the caps."""
        n = len(self.deltas)
        if self.trim <= 0 or 2 * self.trim >= n:
            return slice(0, n)
        return slice(self.trim, n - self.trim)

    @property
    def trimmed_mean(self):
        return float(self.deltas[self.core()].mean())

    @property
    def variance(self):
        return float(self.deltas[self.core()].var())

    def fits(self, core_only=True):
        indices = range(len(self.deltas))[self.core()] if core_only else range(len(self.deltas))
        return [
            LineFit(
                delta=float(self.deltas[k]),
                index_a=int(self.index_a[k]),
                index_b=int(self.index_b[k]),
                point_a=tuple(float(v) for v in self.side_a[k]),
                point_b=tuple(float(v) for v in self.side_b[k]),
            )
            for k in indices
        ]


def ring_perimeter(points):
    pts = np.asarray(points, dtype=float)
    closed = np.vstack([pts, pts[:1]])
    return float(np.sum(np.linalg.norm(np.diff(closed, axis=0), axis=1)))


def even_sample_count(perimeter, spacing, max_samples):
    """An even number of samples close to perimeter / spacing."""
    count = int(round(perimeter / max(spacing, 1e-9)))
    upper = max_samples - (max_samples % 2)
    count = max(MIN_SAMPLES, min(upper, count))
    if count % 2:
        count += 1
    return count


def resample_ring(points, count, phase=0.0):
    """
    Resample a closed ring at `count` points evenly spaced by arc length.

    `phase` shifts the first sample by that fraction of a step.
    """
    pts = np.asarray(points, dtype=float)
    closed = np.vstack([pts, pts[:1]])
    cumulative = np.concatenate([[0.0], np.cumsum(np.linalg.norm(np.diff(closed, axis=0), axis=1))])
    perimeter = cumulative[-1]
    step = perimeter / count
    s = (np.arange(count) + phase) * step
    x = np.interp(s, cumulative, closed[:, 0])
    y = np.interp(s, cumulative, closed[:, 1])
    return np.column_stack([x, y])


def resample_polyline(points, count):
    """Resample an open polyline at `count` points including both ends."""
    pts = np.asarray(points, dtype=float)
    cumulative = np.concatenate([[0.0], np.cumsum(np.linalg.norm(np.diff(pts, axis=0), axis=1))])
    s = np.linspace(0.0, cumulative[-1], count)
    x = np.interp(s, cumulative, pts[:, 0])
    y = np.interp(s, cumulative, pts[:, 1])
    return np.column_stack([x, y])


def polyline_length(points):
    pts = np.asarray(points, dtype=float)
    if len(pts) < 2:
        return 0.0
    return float(np.sum(np.linalg.norm(np.diff(pts, axis=0), axis=1)))


def turning_angles(points):
    """Signed turning angle at each vertex of a closed ring."""
    pts = np.asarray(points, dtype=float)
    incoming = pts - np.roll(pts, 1, axis=0)
    outgoing = np.roll(pts, -1, axis=0) - pts
    return np.array([angle_between(a, b) for a, b in zip(incoming, outgoing)])


def find_bends(points, radius):
    """
    Indices of local turning extrema.

    A vertex is a bend when its absolute turning angle is non-zero and the
    largest within `radius` samples on either side.
    """
    turns = np.abs(turning_angles(points))
    n = len(turns)
    bends = []
    for i in range(n):
        if turns[i] < 1e-6:
            continue
        window = [turns[(i + d) % n] for d in range(-radius, radius + 1)]
        if turns[i] >= max(window):
            bends.append(i)
    return bends


def _cyclic_distance(i, j, n):
    d = abs(i - j) % n
    return min(d, n - d)


def rotational_correspondence(points, config):
    """
    Pair the two halves of a closed ring.

    The ring is resampled by arc length at phase 0 and at half a step. For
    each start offset s, sample s + k is paired with sample s - k for
    k = 0..N/2. The offset with the lowest mean delta wins; offsets within
    `tie_tolerance` of it prefer the one nearest a bend.

    Returns a Correspondence, or None for a ring too small to sample.
    """
    pts = np.asarray(points, dtype=float)
    if len(pts) < 3:
        return None
    perimeter = ring_perimeter(pts)
    if perimeter <= 0:
        return None

    count = even_sample_count(perimeter, config.sample_spacing, config.max_samples)
    half = count // 2
    step = perimeter / count
    k = np.arange(half + 1)
    offsets = np.arange(count)

    candidates = []
    samples_by_phase = []
    for phase_index, phase in enumerate((0.0, 0.5)):
        samples = resample_ring(pts, count, phase)
        samples_by_phase.append(samples)
        ia = (offsets[:, None] + k[None, :]) % count
        ib = (offsets[:, None] - k[None, :]) % count
        deltas = np.linalg.norm(samples[ia] - samples[ib], axis=2) / 2.0
        means = deltas.mean(axis=1)
        for s in offsets:
            candidates.append((float(means[s]), phase_index, int(s)))

    best_mean = min(c[0] for c in candidates)
    tied = [c for c in candidates if c[0] <= best_mean + config.tie_tolerance]

    if len(tied) > 1:
        bends = [find_bends(samples, config.bend_search_radius) for samples in samples_by_phase]

        def bend_distance(candidate):
            phase_bends = bends[candidate[1]]
            if not phase_bends:
                return count
            return min(_cyclic_distance(candidate[2], b, count) for b in phase_bends)

        choice = min(tied, key=lambda c: (bend_distance(c), c[0]))
    else:
        choice = tied[0]

    _, phase_index, s = choice
    samples = samples_by_phase[phase_index]
    index_a = (s + k) % count
    index_b = (s - k) % count
    result = Correspondence(samples[index_a], samples[index_b], index_a, index_b, step, offset=s)
    median = float(np.median(result.deltas))
    result.trim = int(math.ceil(median / step)) if step > 0 else 0
    return result


def _same_orientation(outer, inner):
    if polygon_signed_area(outer) * polygon_signed_area(inner) < 0:
        return inner[::-1].copy()
    return inner


def donut_correspondence(outer, inner, config):
    """
    Pair an outer ring with the single hole it surrounds.

    Both rings are resampled to the same count with the same orientation;
    the hole's rotational offset with the lowest mean delta wins.
    """
    outer = np.asarray(outer, dtype=float)
    inner = _same_orientation(outer, np.asarray(inner, dtype=float))
    if len(outer) < 3 or len(inner) < 3:
        return None

    perimeter = (ring_perimeter(outer) + ring_perimeter(inner)) / 2.0
    count = even_sample_count(perimeter, config.sample_spacing, config.max_samples)
    outer_samples = resample_ring(outer, count)
    k = np.arange(count)

    best = None
    for phase in (0.0, 0.5):
        inner_samples = resample_ring(inner, count, phase)
        for s in range(count):
            ib = (k + s) % count
            mean = float(np.mean(np.linalg.norm(outer_samples - inner_samples[ib], axis=1))) / 2.0
            if best is None or mean < best[0]:
                best = (mean, inner_samples, s)

    _, inner_samples, s = best
    ib = (k + s) % count
    return Correspondence(outer_samples, inner_samples[ib], k, ib, perimeter / count, offset=s, closed=True)


def wall_correspondence(side_a, side_b, spacing):
    """
    Pair two open runs facing each other across a wall.

    The second run is flipped when that brings its start next to the
    first run's start; both are resampled to a common count.
    """
    a = np.asarray(side_a, dtype=float)
    b = np.asarray(side_b, dtype=float)
    if np.linalg.norm(a[0] - b[0]) > np.linalg.norm(a[0] - b[-1]):
        b = b[::-1]
    length = max(polyline_length(a), polyline_length(b))
    count = max(2, int(round(length / max(spacing, 1e-9))) + 1)
    ra = resample_polyline(a, count)
    rb = resample_polyline(b, count)
    k = np.arange(count)
    return Correspondence(ra, rb, k, k, length / max(1, count - 1))


def stroke_width(mean_delta, config):
    """Width from a mean half-distance, with rounding and fixed-width options."""
    if config.fixed_width is not None:
        return float(config.fixed_width)
    width = 2.0 * mean_delta
    if config.round_relative and config.width_round_step > 0:
        step = config.width_round_step
        width = math.ceil((width - 1e-6) / step) * step
    return width


def accepts(correspondence, config):
    """Whether a pairing is convincing enough to become one line."""
    if correspondence.trimmed_mean > config.delta_threshold:
        return False
    if config.check_intersections and correspondence.variance > config.variance_threshold:
        return False
    return True
