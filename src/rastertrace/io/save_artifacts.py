"""
Artifact saving utilities for rastertrace.

Handles writing debug images, JSON path dumps and SVG previews of vector
paths.
"""

import json
import os

import cv2
import numpy as np
import svgwrite

from rastertrace.geometry.path_model import SegmentKind
from rastertrace.models import path_to_record
from rastertrace.tracer import get_tracer


def ensure_dir(path):
    """Create directory if it does not exist."""
    if path:
        os.makedirs(path, exist_ok=True)


def get_debug_dir(out_dir, stage_name):
    """
    Get the debug directory path for a stage.

    Creates the directory if it does not exist.
    """
    debug_dir = os.path.join(out_dir, "debug", stage_name)
    ensure_dir(debug_dir)
    return debug_dir


def save_image(img, path, max_edge=None):
    """
    Save an image to disk.

    Optionally downscales to max_edge while preserving aspect ratio.
    Converts RGB to BGR for OpenCV.
    """
    tracer = get_tracer()

    if max_edge and max(img.shape[:2]) > max_edge:
        scale = max_edge / max(img.shape[:2])
        new_size = (int(img.shape[1] * scale), int(img.shape[0] * scale))
        img = cv2.resize(img, new_size, interpolation=cv2.INTER_AREA)

    if len(img.shape) == 3 and img.shape[2] == 3:
        img_bgr = cv2.cvtColor(img, cv2.COLOR_RGB2BGR)
    else:
        img_bgr = img

    ensure_dir(os.path.dirname(path))
    cv2.imwrite(path, img_bgr)
    tracer.event(f"Saved image: {path}")


def save_json(data, path, indent=2):
    """
    Save a dictionary or Pydantic model to JSON.
    """
    tracer = get_tracer()

    ensure_dir(os.path.dirname(path))

    if hasattr(data, "model_dump"):
        data = data.model_dump(mode="json")

    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=indent, default=str)

    tracer.event(f"Saved JSON: {path}")


def save_svg(svg_content, path):
    """
    Save SVG content to file.
    """
    tracer = get_tracer()

    ensure_dir(os.path.dirname(path))

    if hasattr(svg_content, "tostring"):
        content = svg_content.tostring()
    else:
        content = str(svg_content)

    with open(path, "w", encoding="utf-8") as f:
        f.write(content)

    tracer.event(f"Saved SVG: {path}")


def path_to_svg_d(path, precision=2):
    """SVG path data for a VectorPath."""
    def fmt(point):
        return f"{point[0]:.{precision}f},{point[1]:.{precision}f}"

    parts = []
    for segment in path:
        if segment.kind == SegmentKind.MOVE:
            parts.append(f"M {fmt(segment.end)}")
        elif segment.kind == SegmentKind.LINE:
            parts.append(f"L {fmt(segment.end)}")
        elif segment.kind == SegmentKind.QUAD:
            parts.append(f"Q {fmt(segment.controls[0])} {fmt(segment.end)}")
        elif segment.kind == SegmentKind.CUBIC:
            c1, c2 = segment.controls
            parts.append(f"C {fmt(c1)} {fmt(c2)} {fmt(segment.end)}")
        else:
            parts.append("Z")
    return " ".join(parts)


def paths_to_svg(paths, width, height, fill_color="black", stroke_color="black"):
    """
    Render paths into an svgwrite Drawing.

    Filled paths use their winding rule; unfilled paths are stroked with
    their line width.
    """
    dwg = svgwrite.Drawing(size=(f"{width}px", f"{height}px"))
    dwg.viewbox(0, 0, width, height)

    group = dwg.g(id="paths")
    for path in paths:
        if path.is_empty:
            continue
        record_id = path_to_record(path).path_id
        if path.filled:
            element = dwg.path(
                d=path_to_svg_d(path),
                id=record_id,
                fill=fill_color,
                fill_rule="evenodd" if path.winding_rule.value == "evenodd" else "nonzero",
                stroke="none",
            )
        else:
            element = dwg.path(
                d=path_to_svg_d(path),
                id=record_id,
                fill="none",
                stroke=stroke_color,
                stroke_width=path.line_width,
                stroke_linecap="round",
                stroke_linejoin="round",
            )
        group.add(element)
    dwg.add(group)

    return dwg


def draw_paths_overlay(base_img, paths, fill_color=(255, 0, 0), line_color=(0, 160, 0), alpha=0.5):
    """
    Draw paths over an RGB image.

    Filled paths are blended in with their flattened rings; unfilled paths
    are drawn as polylines at their line width.
    """
    if len(base_img.shape) == 2:
        canvas = cv2.cvtColor(base_img, cv2.COLOR_GRAY2RGB)
    else:
        canvas = base_img[:, :, :3].copy()
    if canvas.dtype != np.uint8:
        canvas = np.clip(canvas, 0, 255).astype(np.uint8)

    fill_layer = canvas.copy()
    for path in paths:
        if path.is_empty:
            continue
        if path.filled:
            rings = [np.round(r).astype(np.int32) for r in path.to_polygons()]
            if rings:
                cv2.fillPoly(fill_layer, rings, fill_color)
        else:
            for start, end, closed in path.sub_ranges():
                pts = np.round(path.polyline(start, end)).astype(np.int32)
                if len(pts) >= 2:
                    thickness = max(1, int(round(path.line_width)))
                    cv2.polylines(canvas, [pts], isClosed=closed, color=line_color, thickness=thickness)

    return cv2.addWeighted(fill_layer, alpha, canvas, 1 - alpha, 0)


class DebugArtifactWriter:
    """
    Helper class to manage debug artifact writing for a run.

    Handles creation of debug directories and provides convenience methods
    for saving path dumps, previews and overlays per stage.
    """

    def __init__(self, out_dir, enabled=True, max_edge=1600):
        self.out_dir = out_dir
        self.enabled = enabled
        self.max_edge = max_edge

    def get_stage_dir(self, stage_name):
        """Get the debug directory for a stage."""
        return get_debug_dir(self.out_dir, stage_name)

    def save_image(self, img, stage_name, filename):
        """Save an image artifact."""
        if not self.enabled:
            return
        path = os.path.join(self.get_stage_dir(stage_name), filename)
        save_image(img, path, max_edge=self.max_edge)

    def save_json(self, data, stage_name, filename):
        """Save a JSON artifact."""
        if not self.enabled:
            return
        path = os.path.join(self.get_stage_dir(stage_name), filename)
        save_json(data, path)

    def save_svg(self, svg_content, stage_name, filename):
        """Save an SVG artifact."""
        if not self.enabled:
            return
        path = os.path.join(self.get_stage_dir(stage_name), filename)
        save_svg(svg_content, path)

    def save_stage(self, stage_name, paths, width, height, base_img=None):
        """Dump a stage's paths as JSON, an SVG preview and an optional overlay."""
        if not self.enabled:
            return
        records = [path_to_record(p).model_dump(mode="json") for p in paths]
        self.save_json({"stage": stage_name, "paths": records}, stage_name, "paths.json")
        self.save_svg(paths_to_svg(paths, width, height), stage_name, "preview.svg")
        if base_img is not None:
            self.save_image(draw_paths_overlay(base_img, paths), stage_name, "overlay.png")
