"""Tests for stair-step smoothing."""

import numpy as np
import pytest


def _staircase(steps):
    """Unit steps right then down from the origin, as an open path."""
    from rastertrace.geometry.path_model import VectorPath

    path = VectorPath().move_to(0, 0)
    for k in range(steps):
        path.line_to(k + 1, k)
        path.line_to(k + 1, k + 1)
    return path


class TestDeviation:
    """Tests for area deviation."""

    def test_triangle_area(self):
        """A single corner against its chord encloses half a unit square."""
        from rastertrace.smoothing.deviation import deviation, enclosed_area

        polyline = [(0, 0), (1, 0), (1, 1)]
        chord = [(0, 0), (1, 1)]

        assert enclosed_area(polyline, chord) == pytest.approx(0.5)
        assert deviation(polyline, chord) == pytest.approx(0.5 / 3)

    def test_crossing_counts_both_sides(self):
        """A zig-zag crossing its chord counts the area on both sides."""
        from rastertrace.smoothing.deviation import enclosed_area

        polyline = [(0, 0), (1, 1), (3, -1), (4, 0)]
        chord = [(0, 0), (4, 0)]

        assert enclosed_area(polyline, chord) == pytest.approx(2.0)

    def test_ordering(self):
        """Results order by delta, then length, lines before curves."""
        from rastertrace.geometry.path_model import SegmentKind
        from rastertrace.smoothing.deviation import DeviationResult

        line = DeviationResult(SegmentKind.LINE, 0, 4, length=5.0, delta=0.1, angle=0.0)
        curve = DeviationResult(SegmentKind.CUBIC, 0, 4, length=5.0, delta=0.1, angle=0.0)
        better = DeviationResult(SegmentKind.CUBIC, 0, 4, length=9.0, delta=0.05, angle=0.0)

        assert min([curve, line]) is line
        assert min([curve, line, better]) is better

    def test_polyline_extrema(self):
        """Turning points along either axis are extrema."""
        from rastertrace.smoothing.deviation import polyline_extrema

        extrema = polyline_extrema([(0, 0), (1, 2), (2, 3), (3, 2), (4, 0)])
        assert len(extrema) == 3
        assert any(np.allclose(p, (2, 3)) for p in extrema)

    def test_stationary_deviation(self):
        """Curve extrema are measured against the nearest polyline extremum."""
        from rastertrace.smoothing.deviation import stationary_deviation

        polyline = [(0, 0), (1, 2), (2, 3), (3, 2), (4, 0)]

        assert stationary_deviation([], polyline) == 0.0
        assert stationary_deviation([(2, 3)], polyline) == pytest.approx(0.0)
        assert stationary_deviation([(2, 4)], polyline) == pytest.approx(1.0)


class TestFindRuns:
    """Tests for run discovery."""

    def test_staircase_is_one_run(self):
        """Monotone unit steps form a single run without bends."""
        from rastertrace.smoothing.smoother import find_runs

        runs = find_runs(_staircase(5), 3.0)
        assert runs == [(1, 10, [])]

    def test_long_segments_break_runs(self):
        """A segment at or over the threshold ends a run."""
        from rastertrace.geometry.path_model import VectorPath
        from rastertrace.smoothing.smoother import find_runs

        path = VectorPath().move_to(0, 0).line_to(10, 0).line_to(11, 0).line_to(11, 1).line_to(30, 1)
        assert find_runs(path, 3.0) == [(2, 3, [])]

    def test_reversals_limit_run(self):
        """A third reversal starts a new run."""
        from rastertrace.geometry.path_model import polyline_path
        from rastertrace.smoothing.smoother import find_runs

        path = polyline_path([(0, 0), (1, 0), (1, 1), (0, 1), (0, 2), (1, 2), (1, 3), (0, 3)])
        assert find_runs(path, 3.0) == [(1, 6, [2, 4])]


class TestSelect:
    """Tests for candidate selection."""

    def test_long_candidate_preferred_within_margin(self, run, default_config):
        """A long span close enough to the best delta beats a short better one."""
        from rastertrace.geometry.path_model import SegmentKind
        from rastertrace.smoothing.deviation import DeviationResult
        from rastertrace.smoothing.smoother import Smoother

        short = DeviationResult(SegmentKind.LINE, 0, 4, length=5.0, delta=0.1, angle=0.0)
        long = DeviationResult(SegmentKind.LINE, 0, 12, length=12.0, delta=0.15, angle=0.0)
        smoother = Smoother(run, default_config.smooth)

        assert smoother.select([short, long]) is long

    def test_over_budget_rejected(self, run, default_config):
        """Candidates above the deviation budget never win."""
        from rastertrace.geometry.path_model import SegmentKind
        from rastertrace.smoothing.deviation import DeviationResult
        from rastertrace.smoothing.smoother import Smoother

        bad = DeviationResult(SegmentKind.LINE, 0, 4, length=5.0, delta=0.9, angle=0.0)
        assert Smoother(run, default_config.smooth).select([bad]) is None

    def test_flat_curve_loses_to_line(self, run, default_config):
        """A curve that is nearly straight is dropped when a line qualifies."""
        from rastertrace.geometry.path_model import SegmentKind
        from rastertrace.smoothing.deviation import DeviationResult
        from rastertrace.smoothing.smoother import Smoother

        line = DeviationResult(SegmentKind.LINE, 0, 6, length=6.0, delta=0.2, angle=0.0)
        curve = DeviationResult(SegmentKind.CUBIC, 0, 6, length=6.0, delta=0.01, angle=0.0, flatness=0.01)
        assert Smoother(run, default_config.smooth).select([line, curve]) is line


class TestCurveFit:
    """Tests for the simplex curve fit."""

    def test_initial_simplex_shape(self, default_config):
        """The simplex has five vertices spanning four dimensions."""
        from rastertrace.smoothing.curve_fit import initial_simplex

        points = [(0, 0), (1, 0), (2, 0), (3, 0), (4, 0)]
        simplex = initial_simplex(points, default_config.smooth.simplex_delta)

        assert simplex.shape == (5, 4)
        assert np.linalg.matrix_rank(simplex[1:] - simplex[0]) == 4

    def test_curve_no_worse_than_chord(self, run, default_config):
        """On an arc the fitted cubic deviates no more than the straight chord."""
        from rastertrace.smoothing.curve_fit import curve_result
        from rastertrace.smoothing.deviation import line_result

        t = np.linspace(0, np.pi, 13)
        points = np.column_stack([10 - 10 * np.cos(t), 5 * np.sin(t)])
        last = len(points) - 1

        curve = curve_result(run, points, 0, last, default_config.smooth)
        line = line_result(points, 0, last)

        assert curve.is_curve
        assert curve.delta <= line.delta
        assert curve.end_point == pytest.approx((20.0, 0.0), abs=1e-9)


class TestSmoothPaths:
    """Tests for the stage function."""

    def test_staircase_becomes_chord(self, run, default_config):
        """A diagonal staircase is replaced by one line."""
        from rastertrace.smoothing.smoother import smooth_paths

        default_config.smooth.curve_fitting = False
        paths, results = smooth_paths(run, [_staircase(10)], default_config.smooth)

        smoothed = paths[0]
        assert len(smoothed) == 2
        assert smoothed.last_point() == (10.0, 10.0)
        assert all(r.delta <= default_config.smooth.max_deviation for r in results)

    def test_scanned_disc(self, run, default_config):
        """With lines only, a scanned disc keeps its area with far fewer segments."""
        import cv2
        from rastertrace.scan.region_scanner import scan_image
        from rastertrace.smoothing.smoother import smooth_paths

        img = np.full((40, 40, 3), 255, dtype=np.uint8)
        cv2.circle(img, (20, 20), 12, (0, 0, 0), -1)
        scanned = scan_image(run, img, default_config.scan)

        default_config.smooth.curve_fitting = False
        paths, results = smooth_paths(run, scanned, default_config.smooth)

        before = scanned[0].to_region().area
        after = paths[0].to_region().area
        assert paths[0].is_closed
        assert len(paths[0]) < len(scanned[0])
        assert abs(after - before) / before < 0.1
        assert all(r.delta <= default_config.smooth.max_deviation for r in results)

    def test_scanned_disc_with_curves(self, run, default_config):
        """Curve fitting on a scanned disc emits cubics within the deviation bound."""
        import cv2
        from rastertrace.geometry import bezier
        from rastertrace.geometry.path_model import SegmentKind
        from rastertrace.paths.line_optimizer import optimize_lines
        from rastertrace.scan.region_scanner import scan_image
        from rastertrace.smoothing.deviation import enclosed_area
        from rastertrace.smoothing.smoother import smooth_paths

        img = np.full((60, 60, 3), 255, dtype=np.uint8)
        cv2.circle(img, (30, 30), 20, (0, 0, 0), -1)
        scanned = optimize_lines(run, scan_image(run, img, default_config.scan), default_config.optimize)

        config = default_config.smooth
        assert config.curve_fitting
        paths, results = smooth_paths(run, scanned, config)

        smoothed = paths[0]
        cubics = [s for s in smoothed if s.kind == SegmentKind.CUBIC]
        assert cubics
        assert all(r.delta <= config.max_deviation for r in results)

        # every output segment ends on a vertex of the input polyline
        original = [s.end for s in scanned[0]]
        cursor = 0
        for k in range(1, len(smoothed)):
            segment = smoothed[k]
            j = original.index(segment.end, cursor + 1)
            if segment.kind == SegmentKind.CUBIC:
                span = np.array(original[cursor:j + 1], dtype=float)
                (c1, c2) = segment.controls
                fitted = [r for r in results if r.is_curve and r.controls == (c1, c2)]
                assert fitted
                result = fitted[0]
                assert result.end - result.start + 1 == len(span)

                curve = bezier.flatten_cubic(span[0], c1, c2, span[-1], count=max(16, 2 * len(span)))
                assert enclosed_area(span, curve) <= result.delta * len(span) + 1e-6
            cursor = j

    def test_paths_without_runs_unchanged(self, run, default_config, make_rect):
        """Paths made of long segments pass through."""
        from rastertrace.smoothing.smoother import smooth_paths

        rect = make_rect(0, 0, 20, 20)
        paths, results = smooth_paths(run, [rect], default_config.smooth)

        assert paths == [rect]
        assert results == []
