from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from beartype import beartype
from jaxtyping import jaxtyped

from .model import Curve, CurveSet, RejectionReason
from .types import NpSegmentEnds, NpSegmentMask, NpSegmentStarts, Point2

# Every edit path validates the straight node-to-node chord of each segment,
# whether the segment is drawn straight or curved.


def _cross(u: np.ndarray, v: np.ndarray) -> np.ndarray:
    return u[..., 0] * v[..., 1] - u[..., 1] * v[..., 0]


def _sign(d: np.ndarray, tol: np.ndarray) -> np.ndarray:
    return np.where(np.abs(d) <= tol, 0, np.sign(d)).astype(np.int8)


@jaxtyped(typechecker=beartype)
def segments_intersect_many(
    a: Point2,
    b: Point2,
    starts: NpSegmentStarts,
    ends: NpSegmentEnds,
    eps: float = 1e-9,
) -> NpSegmentMask:
    """Test segment a-b against S segments starts[k]-ends[k].

    True where the two cross transversally, or are collinear with an
    overlap of positive length. Touching at an endpoint (including a T
    junction) is not an intersection.
    """
    if starts.shape[0] == 0:
        return np.zeros((0,), dtype=bool)
    u = b - a
    v = ends - starts
    len_u = float(np.linalg.norm(u))
    len_v = np.linalg.norm(v, axis=-1)
    scale = len_u + len_v
    tol = eps * scale * scale

    s1 = _sign(_cross(v, a - starts), tol)
    s2 = _sign(_cross(v, b - starts), tol)
    s3 = _sign(_cross(u, starts - a), tol)
    s4 = _sign(_cross(u, ends - a), tol)
    transversal = (s1 * s2 == -1) & (s3 * s4 == -1)

    collinear = (s1 == 0) & (s2 == 0) & (s3 == 0) & (s4 == 0)
    uu = float(np.dot(u, u))
    if uu <= 0.0:
        return transversal
    tc = np.sum((starts - a) * u, axis=-1) / uu
    td = np.sum((ends - a) * u, axis=-1) / uu
    lo = np.maximum(np.minimum(tc, td), 0.0)
    hi = np.minimum(np.maximum(tc, td), 1.0)
    overlap = (hi - lo) * len_u > eps * scale
    return transversal | (collinear & overlap)


def segments_intersect(
    a: np.ndarray,
    b: np.ndarray,
    c: np.ndarray,
    d: np.ndarray,
) -> bool:
    starts = np.asarray(c, dtype=np.float64).reshape(1, 2)
    ends = np.asarray(d, dtype=np.float64).reshape(1, 2)
    hit = segments_intersect_many(
        np.asarray(a, dtype=np.float64), np.asarray(b, dtype=np.float64), starts, ends
    )
    return bool(hit[0])


def chords(curve: Curve) -> tuple[np.ndarray, np.ndarray]:
    """(S,2) start and end points of every segment, in segment order."""
    P = curve.points()
    n = P.shape[0]
    idx = np.arange(curve.n_segments)
    if n == 0:
        return P, P
    return P[idx], P[(idx + 1) % n]


def are_neighbours(curve: Curve, i: int, j: int) -> bool:
    """Segments of one curve that share a node (or are the same segment)."""
    n = len(curve)
    return i == j or (i + 1) % n == j or (j + 1) % n == i


def shared_node(curve: Curve, i: int, j: int) -> int | None:
    """Index of the node two distinct segments of one curve meet at."""
    if i == j:
        return None
    n = len(curve)
    if (i + 1) % n == j:
        return j
    if (j + 1) % n == i:
        return i
    return None


def folds_back(curve: Curve, i: int, j: int, eps: float = 1e-9) -> bool:
    """Neighbouring segments that leave their shared node in the same
    direction, so they overlap along a line beyond that node."""
    s = shared_node(curve, i, j)
    if s is None:
        return False
    P = curve.points()
    n = P.shape[0]
    p = P[s]
    a = P[(i + 1) % n] if i == s else P[i]
    b = P[(j + 1) % n] if j == s else P[j]
    u = a - p
    v = b - p
    len_u = float(np.linalg.norm(u))
    len_v = float(np.linalg.norm(v))
    scale = len_u + len_v
    if min(len_u, len_v) <= eps * scale:
        return False
    collinear = abs(float(_cross(u, v))) <= eps * scale * scale
    return collinear and float(np.dot(u, v)) > 0.0


def touching_segments(curve: Curve, node_index: int) -> list[int]:
    """Indices of the (at most two) segments that end or start at a node."""
    n = len(curve)
    if n < 2:
        return []
    cyclic = curve.is_cyclic
    out: list[int] = []
    if node_index > 0 or cyclic:
        out.append((node_index - 1) % n)
    if node_index < n - 1 or cyclic:
        out.append(node_index)
    return out


@dataclass(frozen=True)
class Conflict:
    """Where a validation failed: segment `segment` of curve `curve` hits
    segment `other_segment` of curve `other_curve`."""

    reason: RejectionReason
    curve: int
    segment: int
    other_curve: int
    other_segment: int

    @property
    def message(self) -> str:
        if self.reason is RejectionReason.SELF_INTERSECTION:
            where = "within the same curve"
        else:
            where = "with another curve"
        return (
            f"Intersection detected {where}: segment {self.segment} of curve "
            f"{self.curve} crosses segment {self.other_segment} of curve "
            f"{self.other_curve}."
        )


def _first_hit(hits: np.ndarray, offset: int = 0) -> int | None:
    found = np.flatnonzero(hits)
    return offset + int(found[0]) if found.size else None


def _self_hits(curve: Curve, seg: int, starts: np.ndarray, ends: np.ndarray) -> np.ndarray:
    """Segments of the same curve that segment `seg` intersects.

    Neighbours may only meet at their shared node; they hit when they fold
    back over each other.
    """
    hits = segments_intersect_many(starts[seg], ends[seg], starts, ends)
    for j in range(starts.shape[0]):
        if are_neighbours(curve, seg, j):
            hits[j] = folds_back(curve, seg, j)
    return hits


def _self_hit(curve_set: CurveSet, ci: int, seg: int) -> Conflict | None:
    curve = curve_set[ci]
    starts, ends = chords(curve)
    j = _first_hit(_self_hits(curve, seg, starts, ends))
    if j is None:
        return None
    return Conflict(RejectionReason.SELF_INTERSECTION, ci, seg, ci, j)


def _cross_hit(curve_set: CurveSet, ci: int, seg: int) -> Conflict | None:
    starts, ends = chords(curve_set[ci])
    for oi, other in enumerate(curve_set):
        if oi == ci:
            continue
        o_starts, o_ends = chords(other)
        j = _first_hit(segments_intersect_many(starts[seg], ends[seg], o_starts, o_ends))
        if j is not None:
            return Conflict(RejectionReason.CROSS_CURVE_INTERSECTION, ci, seg, oi, j)
    return None


def check_segments(
    curve_set: CurveSet,
    curve_index: int,
    segments: list[int],
) -> Conflict | None:
    """Test the given segments of one curve against everything else.

    Same-curve checks run first (neighbours only where they fold back),
    then checks against every segment of every other curve.
    """
    for seg in segments:
        hit = _self_hit(curve_set, curve_index, seg)
        if hit is not None:
            return hit
    for seg in segments:
        hit = _cross_hit(curve_set, curve_index, seg)
        if hit is not None:
            return hit
    return None


def check_add(curve_set: CurveSet, curve_index: int) -> Conflict | None:
    """Validate a tentative state whose curve `curve_index` just gained its
    last node."""
    curve = curve_set[curve_index]
    return check_segments(curve_set, curve_index, touching_segments(curve, len(curve) - 1))


def check_move(curve_set: CurveSet, curve_index: int, node_index: int) -> Conflict | None:
    """Validate a tentative state in which one node has been moved."""
    curve = curve_set[curve_index]
    return check_segments(curve_set, curve_index, touching_segments(curve, node_index))


def find_self_intersection(curve_set: CurveSet, curve_index: int) -> Conflict | None:
    """Full pairwise check of one curve's segments."""
    curve = curve_set[curve_index]
    starts, ends = chords(curve)
    S = starts.shape[0]
    for i in range(S):
        j = _first_hit(_self_hits(curve, i, starts, ends)[i + 1 :], i + 1)
        if j is not None:
            return Conflict(RejectionReason.SELF_INTERSECTION, curve_index, i, curve_index, j)
    return None


def find_cross_intersection(curve_set: CurveSet, curve_index: int) -> Conflict | None:
    """Every segment of one curve against every segment of every other curve."""
    for seg in range(curve_set[curve_index].n_segments):
        hit = _cross_hit(curve_set, curve_index, seg)
        if hit is not None:
            return hit
    return None


def check_close(curve_set: CurveSet, curve_index: int) -> Conflict | None:
    """Validate a tentative state in which curve `curve_index` was just closed."""
    curve = curve_set[curve_index]
    closing = len(curve) - 1
    hit = _self_hit(curve_set, curve_index, closing)
    if hit is None:
        hit = find_self_intersection(curve_set, curve_index)
    if hit is None:
        hit = _cross_hit(curve_set, curve_index, closing)
    if hit is None:
        hit = find_cross_intersection(curve_set, curve_index)
    return hit


def find_conflict(curve_set: CurveSet) -> Conflict | None:
    """Non-incremental check of the whole drawing."""
    for ci in range(len(curve_set)):
        hit = find_self_intersection(curve_set, ci)
        if hit is not None:
            return hit
    for ci in range(len(curve_set)):
        hit = find_cross_intersection(curve_set, ci)
        if hit is not None:
            return hit
    return None
