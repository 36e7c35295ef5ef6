"""Tests for proximity-based path welding."""

import pytest


def _line(*points):
    from rastertrace.geometry.path_model import polyline_path
    return polyline_path(points)


class TestMergeOpen:
    """Tests for welding open paths."""

    def test_end_to_start(self):
        """Ends 1.4 apart weld into one path with one segment fewer."""
        from rastertrace.paths.path_merger import merge_open

        a = _line((0, 0), (10, 0))
        b = _line((11.4, 0), (20, 0))
        merged = merge_open(a, b, 2.0)

        assert merged is not None
        assert len(merged) == len(a) + len(b) - 1
        assert merged.first_point() == (0.0, 0.0)
        assert merged.last_point() == (20.0, 0.0)

    def test_end_to_end_reverses_second(self):
        """When the ends meet the second path is drawn backwards."""
        from rastertrace.paths.path_merger import merge_open

        a = _line((0, 0), (10, 0))
        b = _line((20, 0), (11, 0))
        merged = merge_open(a, b, 2.0)

        assert merged.last_point() == (20.0, 0.0)
        assert len(merged) == 3

    def test_start_to_start(self):
        """Two paths starting near each other join at their starts."""
        from rastertrace.paths.path_merger import merge_open

        a = _line((0, 0), (10, 0))
        b = _line((0, 1), (0, 10))
        merged = merge_open(a, b, 2.0)

        assert merged.first_point() == (0.0, 10.0)
        assert merged.last_point() == (10.0, 0.0)

    def test_too_far(self):
        """Ends at the threshold or beyond do not merge."""
        from rastertrace.paths.path_merger import merge_open

        a = _line((0, 0), (10, 0))
        b = _line((12, 0), (20, 0))
        assert merge_open(a, b, 2.0) is None

    def test_inputs_untouched(self):
        """The welded path is a new object."""
        from rastertrace.paths.path_merger import merge_open

        a = _line((0, 0), (10, 0))
        b = _line((10.5, 0), (20, 0))
        merge_open(a, b, 2.0)

        assert len(a) == 2
        assert len(b) == 2

    def test_curve_join_becomes_line(self):
        """A path starting with a curve is joined by a line."""
        from rastertrace.geometry.path_model import SegmentKind, VectorPath
        from rastertrace.paths.path_merger import merge_open

        a = _line((0, 0), (10, 0))
        b = VectorPath().move_to(11.4, 0).curve_to(15, 5, 20, 5, 25, 0).line_to(30, 0)

        merged = merge_open(a, b, 2.0)
        assert merged[2].kind == SegmentKind.LINE
        assert merged[2].end == (25.0, 0.0)
        assert merged[3].kind == SegmentKind.LINE
        assert len(merged) == len(a) + len(b) - 1

        flipped = merge_open(a, b.reversed(), 2.0)
        assert flipped[2].kind == SegmentKind.LINE
        assert flipped.last_point() == (30.0, 0.0)

    def test_curve_join_when_prepending(self):
        """A curve ending at a's start is welded with a line too."""
        from rastertrace.geometry.path_model import SegmentKind, VectorPath
        from rastertrace.paths.path_merger import merge_open

        a = _line((0, 0), (10, 0))
        b = VectorPath().move_to(-20, 0).curve_to(-15, 5, -5, 5, -1, 0)

        merged = merge_open(a, b, 2.0)
        assert merged.first_point() == (-20.0, 0.0)
        assert merged[1].kind == SegmentKind.CUBIC
        assert merged[2].kind == SegmentKind.LINE
        assert merged[2].end == (10.0, 0.0)


class TestMergeLoops:
    """Tests for joining loops along a shared border."""

    def test_opposite_neighbours_join(self, make_rect):
        """Two side by side loops drawn in opposite directions become one."""
        from rastertrace.paths.path_merger import merge_loops

        a = make_rect(0, 0, 10, 10, filled=False)
        b = make_rect(10, 0, 10, 10, filled=False).reversed()
        merged = merge_loops(a, b, 2.0)

        assert merged is not None
        assert merged.is_closed
        assert merged.to_region().area == pytest.approx(200.0)
        assert merged.direction == a.direction

    def test_same_direction_never_merged(self, make_rect):
        """Loops drawn the same way are left alone."""
        from rastertrace.paths.path_merger import merge_loops

        a = make_rect(0, 0, 10, 10, filled=False)
        b = make_rect(10, 0, 10, 10, filled=False)
        assert merge_loops(a, b, 2.0) is None

    def test_filled_loops_never_merged(self, make_rect):
        """Only unfilled outlines take part."""
        from rastertrace.paths.path_merger import merge_loops

        a = make_rect(0, 0, 10, 10)
        b = make_rect(10, 0, 10, 10).reversed()
        assert merge_loops(a, b, 2.0) is None

    def test_mixed_pair_never_merged(self, make_rect):
        """An open path and a closed loop are not merged."""
        from rastertrace.paths.path_merger import merge_pair

        loop = make_rect(0, 0, 10, 10, filled=False)
        line = _line((0, 0), (-10, 0))
        assert merge_pair(loop, line, 2.0) is None
        assert merge_pair(line, loop, 2.0) is None


class TestMergePaths:
    """Tests for the stage function."""

    def test_chain_welds_fully(self, run, default_config):
        """Three segments in a row end up as one path."""
        from rastertrace.paths.path_merger import merge_paths

        paths = [_line((0, 0), (10, 0)), _line((21, 0), (30, 0)), _line((11, 0), (20, 0))]
        merged = merge_paths(run, paths, default_config.merge)

        assert len(merged) == 1
        assert merged[0].length() == pytest.approx(30.0, abs=2.5)

    def test_second_run_changes_nothing(self, run, default_config):
        """Merging the merged list again keeps the same count."""
        from rastertrace.paths.path_merger import merge_paths

        paths = [
            _line((0, 0), (10, 0)),
            _line((11, 0), (20, 0)),
            _line((0, 50), (10, 50)),
            _line((40, 40), (40, 50)),
        ]
        first = merge_paths(run, paths, default_config.merge)
        second = merge_paths(run, first, default_config.merge)

        assert len(first) == 3
        assert len(second) == len(first)

    def test_count_never_grows(self, run, default_config, make_rect):
        """Unmergeable input comes back unchanged."""
        from rastertrace.paths.path_merger import merge_paths

        paths = [make_rect(0, 0, 5, 5), make_rect(50, 50, 5, 5)]
        assert merge_paths(run, paths, default_config.merge) == paths
