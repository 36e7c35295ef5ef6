"""
Sub-path splitting.

A compound path is cut at every close into loops, the loops are arranged
into a containment forest and then regrouped by one of three policies:

- split_all: every loop becomes its own unfilled path
- even_interior: each loop at even depth is joined with its direct
  interiors into an even-odd path, giving hole semantics
- exterior_only: each outermost container is joined with everything it
  transitively contains; free loops pass through
"""

import networkx as nx
from shapely.geometry import Point

from rastertrace.geometry.path_model import WindingRule
from rastertrace.geometry.region import ring_polygon
from rastertrace.tracer import get_tracer, trace

POLICIES = ("split_all", "even_interior", "exterior_only")


class SubPath:
    """A closed loop of a parent path, given by its segment index range."""

    def __init__(self, parent, start, end):
        self.parent = parent
        self.start = start
        self.end = end
        self.interior = set()
        self.exterior = set()
        self._level = None
        self._polygon = None

    def __repr__(self):
        return f"SubPath({self.start}..{self.end}, level={self._level})"

    @property
    def start_point(self):
        return self.parent[self.start].end

    @property
    def vertex_count(self):
        return len(self.parent.vertices(self.start, self.end))

    def to_path(self, **attrs):
        path = self.parent.sub_path(self.start, self.end)
        for name, value in attrs.items():
            setattr(path, name, value)
        return path

    def bounds_area(self):
        return self.parent.sub_path(self.start, self.end).bounds_area()

    @property
    def polygon(self):
        if self._polygon is None:
            pts = self.parent.polyline(self.start, self.end)
            if len(pts) > 1 and tuple(pts[0]) == tuple(pts[-1]):
                pts = pts[:-1]
            self._polygon = ring_polygon(pts)
        return self._polygon

    def contains(self, other):
        polygon = self.polygon
        return not polygon.is_empty and polygon.contains(Point(other.start_point))

    def level(self, subpaths):
        """Nesting depth: 0 for outermost loops."""
        if self._level is None:
            if not self.exterior:
                self._level = 0
            else:
                self._level = 1 + max(subpaths[i].level(subpaths) for i in self.exterior)
        return self._level


def find_sub_paths(path, min_size=0, min_area=0.0):
    """
    Closed loops of a path.

    A loop is discarded only when it has fewer than `min_size` vertices and
    its bounding area is below `min_area`.
    """
    subpaths = []
    for start, end in path.loop_ranges():
        subpath = SubPath(path, start, end)
        if subpath.vertex_count < min_size and subpath.bounds_area() < min_area:
            continue
        subpaths.append(subpath)
    return subpaths


def compute_containment(run, subpaths):
    """
    Build the containment graph.

    Edge i -> j means loop i contains the start of loop j. An edge is only
    added when the opposite one is absent, so the graph stays acyclic for
    pairs. Interior and exterior sets on the loops mirror the edges.
    """
    graph = nx.DiGraph()
    graph.add_nodes_from(range(len(subpaths)))

    for i, outer in enumerate(subpaths):
        for j, inner in enumerate(subpaths):
            if i == j or graph.has_edge(j, i):
                continue
            if outer.contains(inner):
                graph.add_edge(i, j)
                outer.interior.add(j)
                inner.exterior.add(i)
        run.checkpoint()

    return graph


def _compound(parent, loops, **attrs):
    result = parent.copy([])
    for subpath in loops:
        result.append(subpath.to_path())
    for name, value in attrs.items():
        setattr(result, name, value)
    return result


def _split_all(path, subpaths, graph):
    return [s.to_path(filled=False) for s in subpaths]


def _even_interior(path, subpaths, graph):
    result = []
    for subpath in subpaths:
        level = subpath.level(subpaths)
        if level % 2:
            continue
        children = [subpaths[i] for i in sorted(subpath.interior)
                    if subpaths[i].level(subpaths) == level + 1]
        result.append(_compound(path, [subpath] + children, winding_rule=WindingRule.EVEN_ODD))
    return result


def _exterior_only(path, subpaths, graph):
    result = []
    for i, subpath in enumerate(subpaths):
        if subpath.exterior:
            continue
        if not subpath.interior:
            result.append(subpath.to_path())
            continue
        members = [subpath] + [subpaths[k] for k in sorted(nx.descendants(graph, i))]
        result.append(_compound(path, members))
    return result


_POLICY_FUNCS = {
    "split_all": _split_all,
    "even_interior": _even_interior,
    "exterior_only": _exterior_only,
}


def split_path(run, path, config):
    """Split one path by the configured policy."""
    if config.policy not in _POLICY_FUNCS:
        raise ValueError(f"Unknown split policy: {config.policy}")

    subpaths = find_sub_paths(path, config.min_loop_size, config.min_loop_area)
    graph = compute_containment(run, subpaths)
    result = _POLICY_FUNCS[config.policy](path, subpaths, graph)

    # an open tail after the last close passes through on its own
    ranges = path.sub_ranges()
    if ranges and not ranges[-1][2]:
        start, end, _ = ranges[-1]
        if end > start:
            tail = path.sub_path(start, end)
            tail.filled = False
            result.append(tail)

    return result


@trace(label="split_sub_paths")
def split_sub_paths(run, paths, config):
    """
    Split compound paths into loops regrouped by policy.

    Paths without a close pass through unchanged.
    """
    tracer = get_tracer()
    result = []

    for k, path in enumerate(paths):
        if path.loop_ranges():
            parts = split_path(run, path, config)
        else:
            parts = [path]
        result.extend(parts)
        run.publish(parts)
        run.report(k + 1, len(paths))
        run.checkpoint()

    run.flush_preview()
    tracer.event(f"Split {len(paths)} paths into {len(result)} ({config.policy})")
    return result
