"""
Two-dimensional area capability backed by shapely.

Regions support the boolean operations the pipeline needs (union,
intersection, subtraction), containment tests and conversion back into
closed vector paths.
"""

import numpy as np
from shapely.geometry import MultiPolygon, Point, Polygon, box
from shapely.geometry.polygon import orient
from shapely.ops import unary_union
from shapely.validation import make_valid

from rastertrace.geometry.path_model import VectorPath, WindingRule, polygon_signed_area


def _polygonal(geometry):
    """Keep only the polygonal parts of a geometry."""
    if geometry.is_empty:
        return Polygon()
    if isinstance(geometry, (Polygon, MultiPolygon)):
        return geometry
    parts = [g for g in getattr(geometry, "geoms", []) if isinstance(g, (Polygon, MultiPolygon))]
    if not parts:
        return Polygon()
    return unary_union(parts)


def ring_polygon(points):
    """A valid polygon for a possibly self-intersecting ring."""
    pts = np.asarray(points, dtype=float)
    if len(pts) < 3:
        return Polygon()
    polygon = Polygon(pts)
    if not polygon.is_valid:
        polygon = _polygonal(make_valid(polygon))
    return polygon


def simplify_ring(coords, tolerance=1e-9):
    """
    Drop repeated and collinear vertices from a ring.

    The ring is given without its closing duplicate. Reversals (spikes)
    are kept.
    """
    pts = [tuple(p) for p in coords]
    changed = True
    while changed and len(pts) > 3:
        changed = False
        kept = []
        n = len(pts)
        for i in range(n):
            prev = kept[-1] if kept else pts[i - 1]
            cur = pts[i]
            nxt = pts[(i + 1) % n]
            if cur == prev:
                changed = True
                continue
            ax, ay = cur[0] - prev[0], cur[1] - prev[1]
            bx, by = nxt[0] - cur[0], nxt[1] - cur[1]
            cross = ax * by - ay * bx
            dot = ax * bx + ay * by
            if abs(cross) <= tolerance and dot > 0:
                changed = True
                continue
            kept.append(cur)
        pts = kept
    return pts


class Region:
    """Immutable-style wrapper around a polygonal shapely geometry."""

    def __init__(self, geometry=None):
        self._geometry = _polygonal(geometry) if geometry is not None else Polygon()

    @classmethod
    def from_rect(cls, x, y, width, height):
        return cls(box(x, y, x + width, y + height))

    @classmethod
    def from_polygon(cls, points):
        return cls(ring_polygon(points))

    @classmethod
    def from_path(cls, path, flatness=1.0):
        """
        Area filled by a path under its winding rule.

        Even-odd paths fold their rings with symmetric difference. Non-zero
        paths take the orientation of the largest ring as filling and
        subtract rings drawn the other way.
        """
        rings = path.to_polygons(flatness)
        if not rings:
            return cls()
        polygons = [ring_polygon(r) for r in rings]

        if path.winding_rule == WindingRule.EVEN_ODD:
            geometry = Polygon()
            for polygon in polygons:
                geometry = geometry.symmetric_difference(polygon)
            return cls(geometry)

        areas = [polygon_signed_area(r) for r in rings]
        dominant = areas[int(np.argmax(np.abs(areas)))]
        filling = [p for p, a in zip(polygons, areas) if a * dominant >= 0]
        holes = [p for p, a in zip(polygons, areas) if a * dominant < 0]
        geometry = unary_union(filling)
        if holes:
            geometry = geometry.difference(unary_union(holes))
        return cls(geometry)

    @property
    def geometry(self):
        return self._geometry

    def summary(self):
        bounds = self.bounds()
        bounds_str = ",".join(f"{b:.1f}" for b in bounds) if bounds else ""
        return f"Region(area={self.area:.1f},bounds=[{bounds_str}])"

    def __repr__(self):
        return self.summary()

    # ------------------------------------------------------------ algebra

    def union(self, other):
        return Region(self._geometry.union(_geom(other)))

    def intersect(self, other):
        return Region(self._geometry.intersection(_geom(other)))

    def subtract(self, other):
        return Region(self._geometry.difference(_geom(other)))

    def add(self, other):
        """Union another region or geometry into this one in place."""
        self._geometry = _polygonal(self._geometry.union(_geom(other)))
        return self

    # -------------------------------------------------------------- tests

    @property
    def is_empty(self):
        return self._geometry.is_empty

    @property
    def area(self):
        return float(self._geometry.area)

    def bounds(self):
        if self._geometry.is_empty:
            return None
        return tuple(float(b) for b in self._geometry.bounds)

    def is_singular(self):
        """True for a single polygon without holes."""
        geometry = self._geometry
        return isinstance(geometry, Polygon) and not geometry.is_empty and len(geometry.interiors) == 0

    def polygons(self):
        geometry = self._geometry
        if geometry.is_empty:
            return []
        if isinstance(geometry, Polygon):
            return [geometry]
        return list(geometry.geoms)

    def contains_point(self, x, y):
        return self._geometry.contains(Point(x, y))

    def contains_rect(self, x, y, width, height):
        return self._geometry.covers(box(x, y, x + width, y + height))

    def intersects_rect(self, x, y, width, height):
        """True when the rectangle's interior overlaps the region's interior."""
        if self._geometry.is_empty:
            return False
        return self._geometry.relate_pattern(box(x, y, x + width, y + height), "T********")

    # ---------------------------------------------------------- boundaries

    def to_paths(self, filled=True):
        """
        Boundary of the region as vector paths.

        All loops go into one non-zero path: exteriors and holes are
        oriented oppositely and collinear vertices are removed. An empty
        region gives no paths.
        """
        polygons = self.polygons()
        if not polygons:
            return []

        path = VectorPath(winding_rule=WindingRule.NONZERO, filled=filled)
        for polygon in polygons:
            polygon = orient(polygon, sign=1.0)
            for ring in [polygon.exterior] + list(polygon.interiors):
                coords = simplify_ring(list(ring.coords)[:-1])
                if len(coords) < 3:
                    continue
                path.move_to(*coords[0])
                for x, y in coords[1:]:
                    path.line_to(x, y)
                path.close()

        if path.is_empty:
            return []
        return [path]


def _geom(other):
    if isinstance(other, Region):
        return other.geometry
    return other
