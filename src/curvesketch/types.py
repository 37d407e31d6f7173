from __future__ import annotations

from typing import TypeAlias

import numpy as np
from jaxtyping import Bool, Float

Point2: TypeAlias = Float[np.ndarray, "2"]
NpNodePoints: TypeAlias = Float[np.ndarray, "N 2"]
NpStraightFlags: TypeAlias = Bool[np.ndarray, "N"]
NpPathPoints: TypeAlias = Float[np.ndarray, "M 2"]
NpSegmentStarts: TypeAlias = Float[np.ndarray, "S 2"]
NpSegmentEnds: TypeAlias = Float[np.ndarray, "S 2"]
NpSegmentMask: TypeAlias = Bool[np.ndarray, "S"]
NpSpans: TypeAlias = Float[np.ndarray, "K 2 2"]
