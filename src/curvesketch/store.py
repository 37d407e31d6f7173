from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

import numpy as np

from ..utils import debug
from . import intersect
from .config import DrawingConfig
from .model import (
    Curve,
    CurveHandle,
    CurveSet,
    Node,
    NodeHandle,
    RejectionReason,
    as_position,
)
from .raster import GridCell, rasterize_curve, rasterize_curves
from .resample import discretize, resample_curve


@dataclass(frozen=True)
class EditResult:
    """Outcome of an edit request.

    `state` is the committed CurveSet: the new one when accepted, the
    unchanged one when rejected.
    """

    state: CurveSet
    rejection: RejectionReason | None = None
    message: str = ""

    @property
    def accepted(self) -> bool:
        return self.rejection is None


class CurveStore:
    """Owns the drawing and applies edits only when they keep it
    intersection-free.

    Every edit builds a complete tentative CurveSet, validates it and then
    either swaps it in or drops it, so a rejected edit leaves no trace.
    """

    def __init__(self, config: DrawingConfig | None = None) -> None:
        self._config = config if config is not None else DrawingConfig()
        self._state = CurveSet()
        self.pending_new_curve = False
        self._selection: NodeHandle | None = None
        self._original_position: tuple[float, float] | None = None
        self._cache: dict[tuple[CurveHandle, str], tuple[tuple[Any, ...], Any]] = {}

    @property
    def state(self) -> CurveSet:
        return self._state

    @property
    def config(self) -> DrawingConfig:
        return self._config

    @property
    def selection(self) -> NodeHandle | None:
        return self._selection

    @property
    def original_position(self) -> tuple[float, float] | None:
        return self._original_position

    def configure(self, **changes: Any) -> DrawingConfig:
        self._config = self._config.with_changes(**changes)
        self._cache.clear()
        return self._config

    # -- edits -----------------------------------------------------------

    def begin_new_curve(self) -> None:
        self.pending_new_curve = True

    def add_node(
        self,
        position: tuple[float, float] | np.ndarray,
        straight: bool | None = None,
    ) -> EditResult:
        """Append a node to the current curve, or start a new curve when one
        was requested, none exists yet, or the current curve is closed."""
        pos = as_position(position)
        node = Node(
            position=pos,
            radius=float(self._config.node_radius),
            straight_to_next=(
                self._config.straight_mode if straight is None else bool(straight)
            ),
        )
        current = self._state.current
        if self.pending_new_curve or current is None or current.closed:
            proposed = self._state.appended(Curve(nodes=(node,)))
        else:
            proposed = self._state.with_curve(
                len(self._state) - 1, current.with_nodes(current.nodes + (node,))
            )
        ci = len(proposed) - 1
        conflict = intersect.check_add(proposed, ci)
        if conflict is not None:
            return self._reject(conflict.reason, conflict.message, "add_node")
        self.pending_new_curve = False
        return self._commit(proposed, [proposed[ci].id], f"add_node {node.id} at {pos}")

    def close_current_curve(self) -> EditResult:
        current = self._state.current
        if current is None or len(current) < 3:
            return self._reject(
                RejectionReason.INVALID_STATE,
                "A curve needs at least 3 nodes to be closed.",
                "close_current_curve",
            )
        if current.closed:
            return self._reject(
                RejectionReason.INVALID_STATE,
                "The current curve is already closed.",
                "close_current_curve",
            )
        ci = len(self._state) - 1
        proposed = self._state.with_curve(ci, Curve(current.nodes, True, current.id))
        conflict = intersect.check_close(proposed, ci)
        if conflict is not None:
            return self._reject(conflict.reason, conflict.message, "close_current_curve")
        return self._commit(proposed, [current.id], f"close_current_curve {current.id}")

    def select_node(self, handle: NodeHandle) -> Node:
        """Start a drag: remember where the node was."""
        node = self._state.node(handle)
        self._selection = handle
        self._original_position = node.position
        return node

    def clear_selection(self) -> None:
        self._selection = None
        self._original_position = None

    def preview_move(
        self,
        handle: NodeHandle,
        position: tuple[float, float] | np.ndarray,
    ) -> CurveSet:
        """Tentative drawing with the node at `position`; nothing is committed."""
        ci, ni = self._state.locate(handle)
        return self._moved(ci, ni, as_position(position))

    def move_node(
        self,
        handle: NodeHandle,
        position: tuple[float, float] | np.ndarray,
    ) -> EditResult:
        """Finish a drag of the selected node. Ends the drag either way."""
        ci, ni = self._state.locate(handle)
        pos = as_position(position)
        if self._selection != handle:
            return self._reject(
                RejectionReason.INVALID_STATE,
                "Only the selected node can be moved.",
                "move_node",
            )
        proposed = self._moved(ci, ni, pos)
        conflict = intersect.check_move(proposed, ci, ni)
        self.clear_selection()
        if conflict is not None:
            return self._reject(
                conflict.reason,
                f"{conflict.message} The node has been reverted to its original position.",
                "move_node",
            )
        return self._commit(proposed, [proposed[ci].id], f"move_node {handle} to {pos}")

    def delete_node(self, handle: NodeHandle) -> CurveSet:
        """Remove a node; an emptied curve disappears, and a closed curve left
        with fewer than 3 nodes is reopened."""
        ci, ni = self._state.locate(handle)
        curve = self._state[ci]
        nodes = curve.nodes[:ni] + curve.nodes[ni + 1 :]
        if not nodes:
            proposed = self._state.without_curve(ci)
        else:
            proposed = self._state.with_curve(
                ci, Curve(nodes, curve.closed and len(nodes) >= 3, curve.id)
            )
        if self._selection == handle:
            self.clear_selection()
        return self._commit(proposed, [curve.id], f"delete_node {handle}").state

    def node_at(self, x: float, y: float) -> NodeHandle | None:
        """Hit-test: first node whose radius box contains (x, y)."""
        for curve in self._state:
            for node in curve.nodes:
                if node.contains(x, y):
                    return node.id
        return None

    # -- reads -----------------------------------------------------------

    def resample(self, curve: CurveHandle, n_points: int | None = None) -> np.ndarray:
        n = self._config.num_points if n_points is None else int(n_points)
        c = self._state.curve(curve)
        return self._cached(
            (curve, "resample"),
            (n,),
            lambda: resample_curve(c, n, steps=self._config.length_steps),
        ).copy()

    def rasterize(
        self,
        curve: CurveHandle,
        cell_size: float | None = None,
        n_points: int | None = None,
    ) -> list[GridCell]:
        size = self._config.cell_size if cell_size is None else float(cell_size)
        n = self._config.num_points if n_points is None else int(n_points)
        c = self._state.curve(curve)
        return list(
            self._cached(
                (curve, "rasterize"),
                (size, n),
                lambda: rasterize_curve(c, size, n, steps=self._config.length_steps),
            )
        )

    def rasterize_all(
        self,
        cell_size: float | None = None,
        n_points: int | None = None,
    ) -> list[GridCell]:
        size = self._config.cell_size if cell_size is None else float(cell_size)
        n = self._config.num_points if n_points is None else int(n_points)
        return rasterize_curves(self._state, size, n, steps=self._config.length_steps)

    def discretize(self, curve: CurveHandle, n_points: int | None = None) -> np.ndarray:
        c = self._state.curve(curve)
        samples = self.resample(curve, n_points)
        return discretize(samples, float(self._config.segment_length_ratio), c.is_cyclic)

    # -- internals -------------------------------------------------------

    def _moved(self, ci: int, ni: int, pos: tuple[float, float]) -> CurveSet:
        curve = self._state[ci]
        nodes = list(curve.nodes)
        nodes[ni] = nodes[ni].moved(pos)
        return self._state.with_curve(ci, curve.with_nodes(tuple(nodes)))

    def _cached(
        self,
        key: tuple[CurveHandle, str],
        params: tuple[Any, ...],
        compute: Callable[[], Any],
    ) -> Any:
        # One entry per (curve, kind): asking with other params replaces it.
        entry = self._cache.get(key)
        if entry is None or entry[0] != params:
            entry = (params, compute())
            self._cache[key] = entry
        return entry[1]

    def _invalidate(self, curves: list[CurveHandle]) -> None:
        stale = set(curves)
        for key in [k for k in self._cache if k[0] in stale]:
            del self._cache[key]

    def _commit(self, proposed: CurveSet, touched: list[CurveHandle], what: str) -> EditResult:
        self._state = proposed
        self._invalidate(touched)
        debug.log(f"commit {what}: {len(proposed)} curve(s)")
        if debug.is_verbose():
            conflict = intersect.find_conflict(proposed)
            if conflict is not None:
                debug.log(f"drawing check after {what}: {conflict.message}")
        return EditResult(proposed)

    def _reject(self, reason: RejectionReason, message: str, what: str) -> EditResult:
        debug.log(f"reject {what}: {reason.value} {message}")
        return EditResult(self._state, reason, message)
