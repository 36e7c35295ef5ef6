"""Tests for path records and artifact writing."""

import json
import os

import pytest


class TestPathRecords:
    """Tests for converting paths to and from records."""

    def test_record_fields(self, make_rect):
        """Records carry attributes, closure and bounds."""
        from rastertrace.models import path_to_record

        record = path_to_record(make_rect(1, 2, 3, 4))

        assert record.path_id.startswith("path_")
        assert record.filled
        assert record.closed
        assert record.bbox == [1.0, 2.0, 4.0, 6.0]
        assert record.segments[0].kind.value == "move"
        assert record.segments[-1].kind.value == "close"

    def test_ids_deterministic(self, make_rect):
        """Equal geometry gives the same ID; different geometry does not."""
        from rastertrace.models import generate_path_id

        assert generate_path_id(make_rect(0, 0, 5, 5)) == generate_path_id(make_rect(0, 0, 5, 5))
        assert generate_path_id(make_rect(0, 0, 5, 5)) != generate_path_id(make_rect(0, 0, 5, 6))

    def test_empty_path_id(self):
        """An empty path has a fixed ID."""
        from rastertrace.geometry.path_model import VectorPath
        from rastertrace.models import generate_path_id

        assert generate_path_id(VectorPath()) == "path_empty"

    def test_record_rebuilds_curves(self):
        """A record with a cubic rebuilds the same path."""
        from rastertrace.geometry.path_model import VectorPath, WindingRule
        from rastertrace.models import path_to_record, record_to_path

        path = VectorPath(winding_rule=WindingRule.EVEN_ODD, line_width=2.5)
        path.move_to(0, 0).curve_to(1, 2, 3, 2, 4, 0).line_to(4, 4).close()

        assert record_to_path(path_to_record(path)) == path

    def test_extra_fields_rejected(self):
        """Records forbid unknown fields."""
        from pydantic import ValidationError
        from rastertrace.models import PathRecord

        with pytest.raises(ValidationError):
            PathRecord(path_id="x", colour="red")

    def test_stage_report_serialises(self, temp_dir):
        """Stage reports dump to JSON with a timestamp."""
        from rastertrace.io.save_artifacts import save_json
        from rastertrace.models import StageReport

        report = StageReport(stage="scan", success=True, input_count=0, output_count=1)
        out = os.path.join(temp_dir, "report.json")
        save_json(report, out)

        with open(out, encoding="utf-8") as f:
            data = json.load(f)
        assert data["stage"] == "scan"
        assert "finished_at" in data


class TestSvgOutput:
    """Tests for SVG rendering."""

    def test_path_data(self):
        """Segments map onto SVG path commands."""
        from rastertrace.geometry.path_model import VectorPath
        from rastertrace.io.save_artifacts import path_to_svg_d

        path = VectorPath().move_to(0, 0).line_to(1, 0).curve_to(1, 1, 2, 1, 2, 0).close()
        d = path_to_svg_d(path, precision=0)

        assert d == "M 0,0 L 1,0 C 1,1 2,1 2,0 Z"

    def test_fill_and_stroke(self, make_rect):
        """Filled paths use their winding rule, lines their width."""
        from rastertrace.geometry.path_model import WindingRule, polyline_path
        from rastertrace.io.save_artifacts import paths_to_svg

        shape = make_rect(0, 0, 10, 10)
        shape.winding_rule = WindingRule.EVEN_ODD
        line = polyline_path([(0, 20), (10, 20)], line_width=3.0)
        svg = paths_to_svg([shape, line], 40, 30).tostring()

        assert 'fill-rule="evenodd"' in svg
        assert 'stroke-width="3.0"' in svg

    def test_debug_writer_disabled(self, temp_dir, make_rect):
        """A disabled writer leaves the directory alone."""
        from rastertrace.io.save_artifacts import DebugArtifactWriter

        writer = DebugArtifactWriter(temp_dir, enabled=False)
        writer.save_stage("scan", [make_rect(0, 0, 5, 5)], 10, 10)

        assert not os.path.exists(os.path.join(temp_dir, "debug"))

    def test_debug_writer_stage(self, temp_dir, make_rect, bar_image):
        """An enabled writer dumps JSON, SVG and an overlay per stage."""
        from rastertrace.io.save_artifacts import DebugArtifactWriter

        writer = DebugArtifactWriter(temp_dir, enabled=True)
        writer.save_stage("scan", [make_rect(4, 5, 12, 3)], 24, 16, base_img=bar_image)

        stage_dir = os.path.join(temp_dir, "debug", "scan")
        assert os.path.exists(os.path.join(stage_dir, "paths.json"))
        assert os.path.exists(os.path.join(stage_dir, "preview.svg"))
        assert os.path.exists(os.path.join(stage_dir, "overlay.png"))
