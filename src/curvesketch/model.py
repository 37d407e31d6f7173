from __future__ import annotations

import itertools
import math
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Iterator, TypeAlias

import numpy as np

NodeHandle: TypeAlias = int
CurveHandle: TypeAlias = int

# Handles are never reused, so a stale handle cannot alias a newer node.
_node_ids = itertools.count(1)
_curve_ids = itertools.count(1)


def new_node_id() -> NodeHandle:
    return next(_node_ids)


def new_curve_id() -> CurveHandle:
    return next(_curve_ids)


class NodeNotFoundError(LookupError):
    """A node handle does not name any node of the current drawing."""


class CurveNotFoundError(LookupError):
    """A curve handle does not name any curve of the current drawing."""


def as_position(position: tuple[float, float] | np.ndarray) -> tuple[float, float]:
    x, y = (float(v) for v in position)
    if not (math.isfinite(x) and math.isfinite(y)):
        raise ValueError(f"position must be finite, got ({x}, {y})")
    return (x, y)


@dataclass(frozen=True)
class Node:
    """User-placed control point.

    `straight_to_next` governs the segment starting here and ending at the
    next node of the curve (wrapping for closed curves).
    """

    position: tuple[float, float]
    radius: float = 10.0
    straight_to_next: bool = False
    id: NodeHandle = field(default_factory=new_node_id)

    def moved(self, position: tuple[float, float]) -> Node:
        return replace(self, position=position)

    def contains(self, x: float, y: float) -> bool:
        px, py = self.position
        r = self.radius
        return (px - r) < x < (px + r) and (py - r) < y < (py + r)


def segment_count(n_nodes: int, closed: bool) -> int:
    if n_nodes < 2:
        return 0
    if closed and n_nodes >= 3:
        return n_nodes
    return n_nodes - 1


@dataclass(frozen=True)
class Curve:
    nodes: tuple[Node, ...] = ()
    closed: bool = False
    id: CurveHandle = field(default_factory=new_curve_id)

    def __len__(self) -> int:
        return len(self.nodes)

    @property
    def is_cyclic(self) -> bool:
        """Closed and long enough for the closing segment to exist."""
        return self.closed and len(self.nodes) >= 3

    @property
    def n_segments(self) -> int:
        return segment_count(len(self.nodes), self.closed)

    def points(self) -> np.ndarray:
        """(N,2) float64 node positions."""
        return np.asarray(
            [n.position for n in self.nodes], dtype=np.float64
        ).reshape(-1, 2)

    def straight_flags(self) -> np.ndarray:
        return np.asarray([n.straight_to_next for n in self.nodes], dtype=bool)

    def index_of(self, handle: NodeHandle) -> int | None:
        for i, node in enumerate(self.nodes):
            if node.id == handle:
                return i
        return None

    def with_nodes(self, nodes: tuple[Node, ...]) -> Curve:
        return replace(self, nodes=nodes)


@dataclass(frozen=True)
class CurveSet:
    """Immutable drawing state; every edit produces a new CurveSet."""

    curves: tuple[Curve, ...] = ()

    def __len__(self) -> int:
        return len(self.curves)

    def __iter__(self) -> Iterator[Curve]:
        return iter(self.curves)

    def __getitem__(self, index: int) -> Curve:
        return self.curves[index]

    @property
    def current(self) -> Curve | None:
        return self.curves[-1] if self.curves else None

    def locate(self, handle: NodeHandle) -> tuple[int, int]:
        """Return (curve index, node index) of a node handle."""
        for ci, curve in enumerate(self.curves):
            ni = curve.index_of(handle)
            if ni is not None:
                return ci, ni
        raise NodeNotFoundError(f"no node with handle {handle}")

    def node(self, handle: NodeHandle) -> Node:
        ci, ni = self.locate(handle)
        return self.curves[ci].nodes[ni]

    def curve_index(self, handle: CurveHandle) -> int:
        for ci, curve in enumerate(self.curves):
            if curve.id == handle:
                return ci
        raise CurveNotFoundError(f"no curve with handle {handle}")

    def curve(self, handle: CurveHandle) -> Curve:
        return self.curves[self.curve_index(handle)]

    def with_curve(self, index: int, curve: Curve) -> CurveSet:
        curves = list(self.curves)
        curves[index] = curve
        return CurveSet(tuple(curves))

    def appended(self, curve: Curve) -> CurveSet:
        return CurveSet(self.curves + (curve,))

    def without_curve(self, index: int) -> CurveSet:
        return CurveSet(self.curves[:index] + self.curves[index + 1 :])


class RejectionReason(str, Enum):
    SELF_INTERSECTION = "SELF_INTERSECTION"
    CROSS_CURVE_INTERSECTION = "CROSS_CURVE_INTERSECTION"
    INVALID_STATE = "INVALID_STATE"
