"""Exact geometry primitives for label scoring and crossing detection.

Pure functions over ``Point`` and ``Bounds``; no diagram state.
"""

from typing import Iterable, List, Sequence, Tuple

from bpmn_layout.models.diagram import Bounds, Point

Segment = Tuple[Point, Point]

# Cohen-Sutherland outcodes
_LEFT = 1
_RIGHT = 2
_TOP = 4
_BOTTOM = 8


def rects_overlap(a: Bounds, b: Bounds) -> bool:
    """True only for a non-zero-area intersection.

    Rectangles that share an edge or a corner do not overlap.
    """
    return (
        a.x < b.x + b.width
        and a.x + a.width > b.x
        and a.y < b.y + b.height
        and a.y + a.height > b.y
    )


def rects_nearby(a: Bounds, b: Bounds, margin: float) -> bool:
    """True when the rectangles overlap or are closer than ``margin``."""
    return rects_overlap(a, Bounds(
        x=b.x - margin, y=b.y - margin, width=b.width + 2 * margin, height=b.height + 2 * margin
    ))


def _outcode(x: float, y: float, rect: Bounds) -> int:
    code = 0
    if x < rect.x:
        code |= _LEFT
    elif x > rect.x + rect.width:
        code |= _RIGHT
    if y < rect.y:
        code |= _TOP
    elif y > rect.y + rect.height:
        code |= _BOTTOM
    return code


def segment_intersects_rect(p1: Point, p2: Point, rect: Bounds) -> bool:
    """Test whether segment p1-p2 touches or passes through a rectangle.

    Cohen-Sutherland clipping: the segment is clipped against each rectangle
    edge until it is either trivially inside (hit) or trivially on one outer
    side (miss). Handles horizontal, vertical, diagonal and degenerate
    segments exactly. Rectangle borders count as inside.
    """
    x0, y0, x1, y1 = p1.x, p1.y, p2.x, p2.y
    code0 = _outcode(x0, y0, rect)
    code1 = _outcode(x1, y1, rect)
    x_min, x_max = rect.x, rect.x + rect.width
    y_min, y_max = rect.y, rect.y + rect.height

    while True:
        if not (code0 | code1):
            return True
        if code0 & code1:
            return False

        code_out = code0 or code1
        if code_out & _BOTTOM:
            x = x0 + (x1 - x0) * (y_max - y0) / (y1 - y0)
            y = y_max
        elif code_out & _TOP:
            x = x0 + (x1 - x0) * (y_min - y0) / (y1 - y0)
            y = y_min
        elif code_out & _RIGHT:
            y = y0 + (y1 - y0) * (x_max - x0) / (x1 - x0)
            x = x_max
        else:
            y = y0 + (y1 - y0) * (x_min - x0) / (x1 - x0)
            x = x_min

        if code_out == code0:
            x0, y0 = x, y
            code0 = _outcode(x0, y0, rect)
        else:
            x1, y1 = x, y
            code1 = _outcode(x1, y1, rect)


def _cross(o: Point, a: Point, b: Point) -> float:
    return (a.x - o.x) * (b.y - o.y) - (a.y - o.y) * (b.x - o.x)


def segments_intersect(a1: Point, a2: Point, b1: Point, b2: Point) -> bool:
    """Proper crossing of two segments.

    Touching at an endpoint or running collinear does not count, so flows
    that share a source or target are never reported as crossing.
    """
    d1 = _cross(b1, b2, a1)
    d2 = _cross(b1, b2, a2)
    d3 = _cross(a1, a2, b1)
    d4 = _cross(a1, a2, b2)
    return ((d1 > 0 > d2) or (d1 < 0 < d2)) and ((d3 > 0 > d4) or (d3 < 0 < d4))


def segments_of(points: Sequence[Point]) -> List[Segment]:
    """Consecutive segments of a polyline."""
    return [(points[i], points[i + 1]) for i in range(len(points) - 1)]


def polylines_cross(a: Sequence[Point], b: Sequence[Point]) -> bool:
    for a1, a2 in segments_of(a):
        for b1, b2 in segments_of(b):
            if segments_intersect(a1, a2, b1, b2):
                return True
    return False


def polyline_midpoint(points: Sequence[Point]) -> Point:
    """Point halfway along a polyline by length."""
    if not points:
        raise ValueError("Empty polyline has no midpoint")
    if len(points) == 1:
        return points[0]
    lengths = [
        ((b.x - a.x) ** 2 + (b.y - a.y) ** 2) ** 0.5 for a, b in segments_of(points)
    ]
    half = sum(lengths) / 2
    for (a, b), length in zip(segments_of(points), lengths):
        if half <= length and length > 0:
            t = half / length
            return Point(x=a.x + (b.x - a.x) * t, y=a.y + (b.y - a.y) * t)
        half -= length
    return points[-1]


def orthogonal_route(source: Bounds, target: Bounds) -> List[Point]:
    """Manhattan route between two shapes.

    Leaves the source on the side facing the target and enters the target on
    the opposite side, with one vertical (or horizontal) jog in the middle.
    """
    sc, tc = source.center, target.center
    if target.x >= source.right or target.right <= source.x:
        forward = target.x >= source.right
        start = Point(x=source.right if forward else source.x, y=sc.y)
        end = Point(x=target.x if forward else target.right, y=tc.y)
        if start.y == end.y:
            return [start, end]
        mid_x = (start.x + end.x) / 2
        return [start, Point(x=mid_x, y=start.y), Point(x=mid_x, y=end.y), end]

    downward = tc.y >= sc.y
    start = Point(x=sc.x, y=source.bottom if downward else source.y)
    end = Point(x=tc.x, y=target.y if downward else target.bottom)
    if start.x == end.x:
        return [start, end]
    mid_y = (start.y + end.y) / 2
    return [start, Point(x=start.x, y=mid_y), Point(x=end.x, y=mid_y), end]


def translate_points(points: Iterable[Point], dx: float, dy: float) -> List[Point]:
    return [Point(x=p.x + dx, y=p.y + dy) for p in points]
