"""
Spike detection on a correspondence.

Where the pairing of two sides breaks down (a junction, a blob, a bend
the pairing could not follow) the per-pair delta jumps above the
threshold. Contiguous runs of such pairs are spikes; the stretch between
two spikes that belong together is a bulge that gets reprocessed on its
own.
"""

import math
from dataclasses import dataclass, replace

import numpy as np

from rastertrace.geometry.bezier import normalize_angle


@dataclass
class Spike:
    """
    An excursion of the pairing.

    `index` may be a half index when two spikes were merged with equally
    long neighbours.
    """
    index: float
    start: int
    end: int
    midpoint: tuple
    length: float
    diagonal_length: float
    angle_before: float
    angle_after: float

    @property
    def turn(self):
        return abs(normalize_angle(self.angle_after - self.angle_before))


def _direction(vector):
    if vector[0] == 0 and vector[1] == 0:
        return 0.0
    return math.atan2(vector[1], vector[0])


def _midpoint_at(midpoints, index):
    lo = int(math.floor(index))
    hi = int(math.ceil(index))
    return tuple(float(v) for v in (midpoints[lo] + midpoints[hi]) / 2.0)


def _as_index(value):
    return int(value) if float(value).is_integer() else float(value)


def find_spikes(correspondence, threshold):
    """Contiguous runs of pairs whose delta exceeds the threshold."""
    deltas = correspondence.deltas
    midpoints = correspondence.midpoints
    last = len(deltas) - 1
    step = correspondence.step
    spikes = []

    above = np.concatenate([[False], deltas > threshold, [False]])
    edges = np.flatnonzero(np.diff(above.astype(np.int8)))
    for start, stop in zip(edges[::2], edges[1::2]):
        end = int(stop) - 1
        start = int(start)
        index = _as_index((start + end) / 2.0)
        before = midpoints[start] - midpoints[max(0, start - 2)]
        after = midpoints[min(last, end + 2)] - midpoints[end]
        diagonal = float(np.linalg.norm(correspondence.side_a[start] - correspondence.side_b[end]))
        spikes.append(Spike(
            index=index,
            start=start,
            end=end,
            midpoint=_midpoint_at(midpoints, index),
            length=(end - start + 1) * step,
            diagonal_length=diagonal,
            angle_before=_direction(before),
            angle_after=_direction(after),
        ))
    return spikes


def merge_close_spikes(spikes, correspondence, return_point_distance):
    """
    Fold spikes separated by less than `return_point_distance`.

    The merged spike keeps the index of the one with the longer good
    neighbour run, or the half-way index when both are equal.
    """
    if len(spikes) < 2:
        return list(spikes)

    step = correspondence.step
    total = len(correspondence.deltas)
    merged = [spikes[0]]

    for i, spike in enumerate(spikes[1:], start=1):
        current = merged[-1]
        gap = (spike.start - current.end) * step
        if gap >= return_point_distance:
            merged.append(spike)
            continue

        previous_end = merged[-2].end + 1 if len(merged) > 1 else 0
        next_start = spikes[i + 1].start if i + 1 < len(spikes) else total
        before = current.start - previous_end
        after = next_start - (spike.end + 1)
        if before > after:
            index = current.index
        elif after > before:
            index = spike.index
        else:
            index = _as_index((current.index + spike.index) / 2.0)

        merged[-1] = replace(
            current,
            index=index,
            end=spike.end,
            midpoint=_midpoint_at(correspondence.midpoints, index),
            length=(spike.end - current.start + 1) * step,
            diagonal_length=max(current.diagonal_length, spike.diagonal_length),
            angle_after=spike.angle_after,
        )

    return merged


def score_pair(a, b, total, step, config):
    """Lower is better."""
    midway = ((a.index + b.index) / 2.0) / max(1, total - 1)
    inclination = abs(normalize_angle(b.angle_after - a.angle_before))
    average_length = (a.length + b.length) / 2.0
    average_angle = (a.turn + b.turn) / 2.0
    gap = max(step, (b.start - a.end) * step)
    return (config.weight_midway * abs(0.5 - midway)
            + config.weight_inclination * inclination
            + config.weight_length * average_length
            + config.weight_angle * average_angle
            + config.weight_distance / gap)


def best_spike_pair(spikes, correspondence, config):
    total = len(correspondence.deltas)
    best = None
    for i in range(len(spikes)):
        for j in range(i + 1, len(spikes)):
            score = score_pair(spikes[i], spikes[j], total, correspondence.step, config)
            if best is None or score < best[0]:
                best = (score, spikes[i], spikes[j])
    return best[1], best[2]


def bulge_spans(spikes, correspondence, config):
    """
    Inclusive pair-index spans to reprocess as bulges.

    With more than two spikes the best scoring pair spans one bulge and
    the spikes outside it stand alone; otherwise each spike is a bulge.
    """
    if len(spikes) <= 2:
        return [(s.start, s.end) for s in spikes]

    a, b = best_spike_pair(spikes, correspondence, config)
    spans = [(a.start, b.end)]
    for spike in spikes:
        if spike.end < a.start or spike.start > b.end:
            spans.append((spike.start, spike.end))
    return sorted(spans)
