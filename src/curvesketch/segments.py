from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from beartype import beartype
from jaxtyping import jaxtyped

from .model import Curve, segment_count
from .types import NpNodePoints, NpPathPoints, NpStraightFlags, Point2

LENGTH_STEPS = 10


@dataclass(frozen=True)
class Segment:
    """One span between consecutive nodes.

    Straight spans carry no control points; curved spans are cubic Beziers
    (p1, cp1, cp2, p2).
    """

    p1: np.ndarray
    p2: np.ndarray
    cp1: np.ndarray | None = None
    cp2: np.ndarray | None = None

    @property
    def straight(self) -> bool:
        return self.cp1 is None

    def point_at(self, t: float) -> np.ndarray:
        if self.cp1 is None or self.cp2 is None:
            return self.p1 + (self.p2 - self.p1) * t
        return cubic_bezier_point(t, self.p1, self.cp1, self.cp2, self.p2)

    def length(self, steps: int = LENGTH_STEPS) -> float:
        """Exact for straight spans, chord sum over `steps` sub-steps otherwise."""
        if self.straight:
            return float(np.linalg.norm(self.p2 - self.p1))
        return polyline_length(self.flatten(steps))

    def flatten(self, steps: int = LENGTH_STEPS) -> np.ndarray:
        if self.straight:
            return np.stack([self.p1, self.p2])
        ts = np.linspace(0.0, 1.0, max(int(steps), 1) + 1)
        return cubic_bezier_points(ts, self.p1, self.cp1, self.cp2, self.p2)


def cubic_bezier_point(
    t: float,
    p0: np.ndarray,
    c1: np.ndarray,
    c2: np.ndarray,
    p3: np.ndarray,
) -> np.ndarray:
    u = 1.0 - t
    return (u**3) * p0 + 3.0 * (u**2) * t * c1 + 3.0 * u * (t**2) * c2 + (t**3) * p3


def cubic_bezier_points(
    ts: np.ndarray,
    p0: np.ndarray,
    c1: np.ndarray,
    c2: np.ndarray,
    p3: np.ndarray,
) -> np.ndarray:
    """Vectorised Bernstein evaluation: ts (T,) -> (T,2)."""
    t = np.asarray(ts, dtype=np.float64)[:, None]
    u = 1.0 - t
    return (u**3) * p0 + 3.0 * (u**2) * t * c1 + 3.0 * u * (t**2) * c2 + (t**3) * p3


def polyline_length(points: np.ndarray) -> float:
    if points.shape[0] < 2:
        return 0.0
    return float(np.sum(np.linalg.norm(points[1:] - points[:-1], axis=1)))


@jaxtyped(typechecker=beartype)
def catmull_rom_controls(
    p0: Point2,
    p1: Point2,
    p2: Point2,
    p3: Point2,
) -> tuple[np.ndarray, np.ndarray]:
    """Catmull-Rom to Bezier control points for the span p1 -> p2."""
    c1 = p1 + (p2 - p0) / 6.0
    c2 = p2 - (p3 - p1) / 6.0
    return c1, c2


@jaxtyped(typechecker=beartype)
def curve_segment(
    points: NpNodePoints,
    straight: NpStraightFlags,
    index: int,
    closed: bool,
) -> Segment:
    """Concrete geometry of segment `index` (node index -> index+1).

    Closed curves (3+ nodes) wrap their neighbours. Open curves clamp the
    missing predecessor of the first span to p1, and pin cp2 of the last
    span to the midpoint of p1 and p2 so the curve cannot overshoot the end.
    """
    n = points.shape[0]
    count = segment_count(n, closed)
    if not 0 <= index < count:
        raise ValueError(f"segment index {index} out of range for {count} segments")

    i1 = index % n
    i2 = (index + 1) % n
    p1 = points[i1]
    p2 = points[i2]
    if straight[i1]:
        return Segment(p1, p2)

    if closed and n >= 3:
        p0 = points[(index - 1) % n]
        p3 = points[(index + 2) % n]
        c1, c2 = catmull_rom_controls(p0, p1, p2, p3)
        return Segment(p1, p2, c1, c2)

    p0 = points[index - 1] if index > 0 else p1
    p3 = points[index + 2] if index + 2 < n else p2
    c1, c2 = catmull_rom_controls(p0, p1, p2, p3)
    if index == n - 2:
        c2 = 0.5 * (p1 + p2)
    return Segment(p1, p2, c1, c2)


@jaxtyped(typechecker=beartype)
def node_segments(
    points: NpNodePoints,
    straight: NpStraightFlags,
    closed: bool,
) -> list[Segment]:
    return [
        curve_segment(points, straight, i, closed)
        for i in range(segment_count(points.shape[0], closed))
    ]


def curve_segments(curve: Curve) -> list[Segment]:
    """All segments of a curve, in node order."""
    return node_segments(curve.points(), curve.straight_flags(), curve.closed)


@jaxtyped(typechecker=beartype)
def flatten_segments(
    segments: list[Segment],
    steps: int = LENGTH_STEPS,
) -> NpPathPoints:
    """Polyline through every segment, each curved span split into `steps`."""
    if not segments:
        return np.zeros((0, 2), dtype=np.float64)
    parts = [segments[0].p1[None, :]]
    for seg in segments:
        parts.append(seg.flatten(steps)[1:])
    return np.concatenate(parts, axis=0)
