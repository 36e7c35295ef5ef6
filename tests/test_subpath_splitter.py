"""Tests for sub-path splitting."""

import pytest


def _nested(make_rect):
    """Outer square, a reversed hole and an island inside the hole."""
    path = make_rect(0, 0, 30, 30)
    path.append(make_rect(5, 5, 20, 20).reversed())
    path.append(make_rect(10, 10, 10, 10))
    return path


class TestContainment:
    """Tests for loop discovery and nesting."""

    def test_levels(self, run, make_rect):
        """Nesting depth counts enclosing loops."""
        from rastertrace.paths.subpath_splitter import compute_containment, find_sub_paths

        subpaths = find_sub_paths(_nested(make_rect))
        graph = compute_containment(run, subpaths)

        assert [s.level(subpaths) for s in subpaths] == [0, 1, 2]
        assert graph.has_edge(0, 1)
        assert graph.has_edge(1, 2)
        assert not graph.has_edge(2, 1)

    def test_small_loops_filtered(self, make_rect):
        """A loop is dropped only when both its size and area are small."""
        from rastertrace.paths.subpath_splitter import find_sub_paths

        path = make_rect(0, 0, 30, 30)
        path.append(make_rect(40, 40, 1, 1))

        assert len(find_sub_paths(path)) == 2
        assert len(find_sub_paths(path, min_size=5, min_area=10.0)) == 1
        assert len(find_sub_paths(path, min_size=5, min_area=0.5)) == 2


class TestPolicies:
    """Tests for the three regrouping policies."""

    def test_split_all(self, run, default_config, make_rect):
        """Every loop becomes its own unfilled path."""
        from rastertrace.paths.subpath_splitter import split_path

        default_config.split.policy = "split_all"
        parts = split_path(run, _nested(make_rect), default_config.split)

        assert len(parts) == 3
        assert not any(p.filled for p in parts)
        assert all(p.is_closed and not p.has_sub_paths for p in parts)

    def test_even_interior(self, run, default_config, make_rect):
        """Even-depth loops keep their direct holes as even-odd paths."""
        from rastertrace.geometry.path_model import WindingRule
        from rastertrace.paths.subpath_splitter import split_path

        parts = split_path(run, _nested(make_rect), default_config.split)

        assert len(parts) == 2
        assert all(p.winding_rule == WindingRule.EVEN_ODD for p in parts)
        assert len(parts[0].loop_ranges()) == 2
        assert len(parts[1].loop_ranges()) == 1
        assert parts[0].to_region().area == pytest.approx(900 - 400)
        assert parts[1].to_region().area == pytest.approx(100)

    def test_exterior_only(self, run, default_config, make_rect):
        """An outermost loop takes everything it contains."""
        from rastertrace.paths.subpath_splitter import split_path

        default_config.split.policy = "exterior_only"
        path = _nested(make_rect)
        path.append(make_rect(50, 0, 5, 5))
        parts = split_path(run, path, default_config.split)

        assert len(parts) == 2
        assert len(parts[0].loop_ranges()) == 3
        assert len(parts[1].loop_ranges()) == 1

    def test_unknown_policy(self, run, default_config, make_rect):
        """An unknown policy name is rejected."""
        from rastertrace.paths.subpath_splitter import split_path

        default_config.split.policy = "odd_only"
        with pytest.raises(ValueError):
            split_path(run, _nested(make_rect), default_config.split)

    def test_open_tail_passes_through(self, run, default_config, make_rect):
        """An open run after the last close is kept as an unfilled path."""
        from rastertrace.paths.subpath_splitter import split_path

        path = make_rect(0, 0, 10, 10)
        path.move_to(50, 50).line_to(60, 60)
        default_config.split.policy = "split_all"
        parts = split_path(run, path, default_config.split)

        assert len(parts) == 2
        assert not parts[1].is_closed
        assert parts[1].first_point() == (50.0, 50.0)


class TestSplitStage:
    """Tests for the stage over scanned input."""

    def test_scanned_frame_area_conserved(self, run, default_config, frame_image):
        """Splitting a scanned frame keeps its filled area."""
        from rastertrace.paths.subpath_splitter import split_sub_paths
        from rastertrace.scan.region_scanner import scan_image

        scanned = scan_image(run, frame_image, default_config.scan)
        parts = split_sub_paths(run, scanned, default_config.split)

        assert len(parts) == 1
        assert parts[0].to_region().area == pytest.approx(scanned[0].to_region().area)

    def test_two_blobs_split_apart(self, run, default_config, two_blobs_image):
        """Separate shapes become separate paths."""
        from rastertrace.paths.subpath_splitter import split_sub_paths
        from rastertrace.scan.region_scanner import scan_image

        scanned = scan_image(run, two_blobs_image, default_config.scan)
        parts = split_sub_paths(run, scanned, default_config.split)

        assert len(scanned) == 1
        assert len(parts) == 2
        assert all(p.filled for p in parts)

    def test_open_paths_unchanged(self, run, default_config):
        """Paths without a close pass through."""
        from rastertrace.geometry.path_model import VectorPath
        from rastertrace.paths.subpath_splitter import split_sub_paths

        path = VectorPath().move_to(0, 0).line_to(5, 5)
        assert split_sub_paths(run, [path], default_config.split) == [path]
