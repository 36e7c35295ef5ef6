"""
Region scan: raster pixels matching a colour into boundary paths.

The image is walked in blocks. Each matching pixel contributes its unit
square, merged per row run, so the accumulated region is exact in pixel
coordinates (pixel (c, r) covers [c, c+1] x [r, r+1]).
"""

import math

import numpy as np
from shapely.geometry import box
from shapely.ops import unary_union

from rastertrace.io.load_image import classify_raster
from rastertrace.geometry.region import Region
from rastertrace.tracer import get_tracer, trace

COLOUR_SCALE = math.sqrt(3) * 255.0


def match_mask(image, foreground, fuzz):
    """
    Boolean mask of opaque pixels within `fuzz` of the foreground colour.

    The distance is Euclidean in RGB normalised to [0, 1].
    Raises UnsupportedRasterFormat for layouts classify_raster rejects.
    """
    rgb, opaque = classify_raster(image)
    colour = np.asarray(foreground, dtype=float).reshape(1, 1, 3)
    distance = np.linalg.norm(rgb - colour, axis=2) / COLOUR_SCALE
    return (distance <= fuzz) & opaque


def row_runs(mask, x, y, width, height):
    """Unit-height boxes covering each run of matches in a cell."""
    boxes = []
    cell = mask[y:y + height, x:x + width]
    for r in range(cell.shape[0]):
        row = np.concatenate(([0], cell[r].astype(np.int8), [0]))
        edges = np.flatnonzero(np.diff(row))
        for start, end in zip(edges[::2], edges[1::2]):
            boxes.append(box(x + start, y + r, x + end, y + r + 1))
    return boxes


def _halves(origin, size):
    half = size // 2
    if half == 0:
        return [(origin, size)]
    return [(origin, half), (origin + half, size - half)]


def scan_cell(mask, x, y, width, height, restriction, boxes):
    """
    Collect match boxes for one cell, honouring an optional restriction.

    Cells covered by the restriction are tested whole, cells outside it are
    skipped and straddling cells are quartered until they are single
    pixels, which count when the restriction holds their centre.
    """
    if restriction is None or restriction.contains_rect(x, y, width, height):
        boxes.extend(row_runs(mask, x, y, width, height))
        return

    if not restriction.intersects_rect(x, y, width, height):
        return

    if width == 1 and height == 1:
        if mask[y, x] and restriction.contains_point(x + 0.5, y + 0.5):
            boxes.append(box(x, y, x + 1, y + 1))
        return

    for cy, ch in _halves(y, height):
        for cx, cw in _halves(x, width):
            scan_cell(mask, cx, cy, cw, ch, restriction, boxes)


@trace(label="scan_image")
def scan_image(run, image, config, region=None):
    """
    Scan a raster into the boundary paths of the matching region.

    Args:
        run: PipelineRun for progress and cancellation
        image: numpy raster (grey, grey+alpha, RGB or RGBA)
        config: ScanConfig
        region: optional Region restricting the scanned area

    Returns:
        List with one filled NONZERO path holding all loops, or an empty list
    """
    tracer = get_tracer()

    mask = match_mask(image, config.foreground, config.fuzz)
    height, width = mask.shape
    block_w = max(1, int(config.block_width))
    block_h = max(1, int(config.block_height))

    tracer.event(f"Scanning {width}x{height} in {block_w}x{block_h} blocks, matches={int(mask.sum())}")

    columns = range(0, width, block_w)
    rows = range(0, height, block_h)
    total = len(columns) * len(rows)
    done = 0
    accumulated = Region()

    with tracer.span("blocks", module="region_scanner"):
        for by in rows:
            row_geometries = []
            for bx in columns:
                boxes = []
                bw = min(block_w, width - bx)
                bh = min(block_h, height - by)
                scan_cell(mask, bx, by, bw, bh, region, boxes)
                if boxes:
                    row_geometries.append(unary_union(boxes))
                done += 1
                run.report(done, total)
                run.checkpoint()
            if row_geometries:
                accumulated.add(unary_union(row_geometries))

    paths = accumulated.to_paths(filled=True)
    run.publish(paths)
    run.flush_preview()

    tracer.event(f"Scan produced {len(paths)} paths, area={accumulated.area:.0f}")
    return paths
