from __future__ import annotations

import numpy as np
from beartype import beartype
from jaxtyping import jaxtyped

from ..utils import debug_helpers
from .model import Curve
from .segments import LENGTH_STEPS, Segment, node_segments
from .types import NpNodePoints, NpPathPoints, NpSpans, NpStraightFlags

MIN_POINTS = 2


def segment_lengths(
    segments: list[Segment],
    steps: int = LENGTH_STEPS,
) -> np.ndarray:
    return np.asarray([seg.length(steps) for seg in segments], dtype=np.float64)


@jaxtyped(typechecker=beartype)
def resample_nodes(
    points: NpNodePoints,
    straight: NpStraightFlags,
    closed: bool,
    n_points: int,
    *,
    steps: int = LENGTH_STEPS,
) -> NpPathPoints:
    """Resample a mixed straight/curved node path to `n_points` samples
    spaced evenly by traveled distance.

    The first sample is the first node exactly. Open paths end exactly on the
    last node. Closed paths (3+ nodes) wrap: samples run k = 1 .. n_points-1
    at spacing total/(n_points-1), so the final sample sits at the end of the
    closing segment and repeats the first sample up to rounding. A
    rasterizer that also walks the wrap-around span sees a zero-length pair.

    Within a segment the distance fraction is used directly as the Bezier
    parameter, which is only approximately arc-length uniform on curved
    spans; the error is bounded by the `steps` used to estimate lengths.
    """
    n = points.shape[0]
    if n < 2:
        return np.zeros((0, 2), dtype=np.float64)
    n_points = max(int(n_points), MIN_POINTS)

    segments = node_segments(points, straight, closed)
    cyclic = closed and n >= 3
    lengths = segment_lengths(segments, steps)
    total = float(lengths.sum())
    if total <= 0.0:
        debug_helpers.log_once(
            "resample_zero_length", "resample: path has zero length"
        )
    spacing = total / (n_points - 1)

    out = np.empty((n_points, 2), dtype=np.float64)
    out[0] = points[0]
    last_k = n_points if cyclic else n_points - 1

    accumulated = 0.0
    current = 0
    n_seg = len(segments)
    for k in range(1, last_k):
        target = k * spacing
        while current < n_seg - 1 and accumulated + lengths[current] < target:
            accumulated += lengths[current]
            current += 1
        seg_len = lengths[current]
        seg_t = (target - accumulated) / seg_len if seg_len > 0.0 else 0.0
        seg_t = min(max(seg_t, 0.0), 1.0)
        out[k] = segments[current].point_at(seg_t)

    if not cyclic:
        out[-1] = points[-1]
    debug_helpers.log_points("resample", out)
    return out


def resample_curve(
    curve: Curve,
    n_points: int,
    *,
    steps: int = LENGTH_STEPS,
) -> np.ndarray:
    return resample_nodes(
        curve.points(),
        curve.straight_flags(),
        curve.closed,
        int(n_points),
        steps=int(steps),
    )


def curve_length(curve: Curve, *, steps: int = LENGTH_STEPS) -> float:
    """Total traveled length, measured the same way the resampler measures it."""
    if len(curve) < 2:
        return 0.0
    segments = node_segments(curve.points(), curve.straight_flags(), curve.closed)
    return float(segment_lengths(segments, steps).sum())


@jaxtyped(typechecker=beartype)
def discretize(
    samples: NpPathPoints,
    ratio: float,
    closed: bool,
) -> NpSpans:
    """Split a resampled path into separate spans with gaps.

    Span i runs from sample i towards sample i+1 (sample 0 for the closing
    span of a closed path) and keeps only its leading `ratio` fraction.
    Returns (K,2,2) start/end pairs.
    """
    if not 0.0 < ratio <= 1.0:
        raise ValueError("ratio must be in (0, 1]")
    m = samples.shape[0]
    if m < 2:
        return np.zeros((0, 2, 2), dtype=np.float64)
    starts = samples
    ends = np.roll(samples, -1, axis=0)
    if not closed:
        starts = starts[:-1]
        ends = ends[:-1]
    tips = starts + (ends - starts) * ratio
    return np.stack([starts, tips], axis=1)
