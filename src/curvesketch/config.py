from __future__ import annotations

import math
from dataclasses import asdict, dataclass, fields, replace
from typing import Any, Mapping


@dataclass(frozen=True)
class DrawingConfig:
    """Settings the drawing front end exposes.

    num_points: default resample count per curve (>= 2).
    cell_size: grid cell size in world units (> 0).
    node_radius: hit-test radius stamped on new nodes (>= 0).
    straight_mode: drawing mode used when add_node gets no explicit flag.
    segment_length_ratio: fraction of each span kept by the discretized view.
    length_steps: sub-steps used to estimate the length of a curved span.
    """

    num_points: int = 20
    cell_size: float = 20.0
    node_radius: float = 10.0
    straight_mode: bool = False
    segment_length_ratio: float = 1.0
    length_steps: int = 10

    def __post_init__(self) -> None:
        if self.num_points < 2:
            raise ValueError("num_points must be >= 2")
        if not math.isfinite(self.cell_size) or self.cell_size <= 0:
            raise ValueError("cell_size must be finite and > 0")
        if not math.isfinite(self.node_radius) or self.node_radius < 0:
            raise ValueError("node_radius must be finite and >= 0")
        if not 0.0 < self.segment_length_ratio <= 1.0:
            raise ValueError("segment_length_ratio must be in (0, 1]")
        if self.length_steps < 1:
            raise ValueError("length_steps must be >= 1")

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> DrawingConfig:
        known = {f.name for f in fields(cls)}
        kwargs: dict[str, Any] = {}
        for key, value in values.items():
            if key not in known:
                continue
            default = getattr(cls, key)
            if isinstance(default, bool):
                kwargs[key] = _as_bool(value)
            else:
                kwargs[key] = type(default)(value)
        return cls(**kwargs)

    def with_changes(self, **changes: Any) -> DrawingConfig:
        return replace(self, **changes)

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)
