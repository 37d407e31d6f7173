from __future__ import annotations

import math
from typing import Iterable, NamedTuple

import numpy as np
from beartype import beartype
from jaxtyping import jaxtyped

from .model import Curve
from .resample import resample_curve
from .segments import LENGTH_STEPS
from .types import NpPathPoints


class GridCell(NamedTuple):
    x: int
    y: int
    angle: float


def cell_of(point: Iterable[float], cell_size: float) -> tuple[int, int]:
    px, py = point
    return int(math.floor(px / cell_size)), int(math.floor(py / cell_size))


def cell_center(cell: GridCell | tuple[int, int], cell_size: float) -> tuple[float, float]:
    return (cell[0] + 0.5) * cell_size, (cell[1] + 0.5) * cell_size


def cell_orientation_tip(cell: GridCell, cell_size: float) -> tuple[float, float]:
    """End point of the direction stroke drawn from a cell's centre."""
    cx, cy = cell_center(cell, cell_size)
    reach = 0.4 * cell_size
    return cx + math.cos(cell.angle) * reach, cy + math.sin(cell.angle) * reach


def _line_cells(
    start: np.ndarray,
    end: np.ndarray,
    cell_size: float,
    cells: dict[tuple[int, int], GridCell],
) -> None:
    d = end - start
    angle = math.atan2(float(d[1]), float(d[0]))
    # One sample per unit of the dominant axis, endpoints included.
    steps = max(int(math.ceil(float(np.max(np.abs(d))))), 1)
    t = np.linspace(0.0, 1.0, steps + 1)[:, None]
    samples = start + d * t
    ij = np.floor(samples / cell_size).astype(np.int64)
    for gx, gy in ij:
        key = (int(gx), int(gy))
        if key not in cells:
            cells[key] = GridCell(key[0], key[1], angle)


@jaxtyped(typechecker=beartype)
def rasterize_path(
    path: NpPathPoints,
    cell_size: float,
    closed: bool,
    cells: dict[tuple[int, int], GridCell] | None = None,
) -> list[GridCell]:
    """Cells visited by a polyline, each tagged with the direction of the
    span that first reached it (first writer wins, in path order).

    A closed path also walks the span from its last sample back to the first.
    Pass `cells` to merge into an existing coverage map.
    """
    if not math.isfinite(cell_size) or cell_size <= 0:
        raise ValueError("cell_size must be finite and > 0")
    if cells is None:
        cells = {}
    m = path.shape[0]
    if m < 2:
        return list(cells.values())
    for i in range(m - 1):
        _line_cells(path[i], path[i + 1], cell_size, cells)
    if closed:
        _line_cells(path[-1], path[0], cell_size, cells)
    return list(cells.values())


def rasterize_curve(
    curve: Curve,
    cell_size: float,
    n_points: int,
    *,
    steps: int = LENGTH_STEPS,
) -> list[GridCell]:
    path = resample_curve(curve, n_points, steps=steps)
    return rasterize_path(path, float(cell_size), curve.is_cyclic)


def rasterize_curves(
    curves: Iterable[Curve],
    cell_size: float,
    n_points: int,
    *,
    steps: int = LENGTH_STEPS,
) -> list[GridCell]:
    """Coverage of a whole drawing; earlier curves win shared cells."""
    cells: dict[tuple[int, int], GridCell] = {}
    for curve in curves:
        if len(curve) < 2:
            continue
        path = resample_curve(curve, n_points, steps=steps)
        rasterize_path(path, float(cell_size), curve.is_cyclic, cells)
    return list(cells.values())
