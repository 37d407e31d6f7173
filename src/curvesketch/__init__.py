from . import config, intersect, model, raster, resample, segments, store
from .config import DrawingConfig
from .model import (
    Curve,
    CurveNotFoundError,
    CurveSet,
    Node,
    NodeNotFoundError,
    RejectionReason,
)
from .store import CurveStore, EditResult

__all__ = [
    "config",
    "model",
    "segments",
    "resample",
    "intersect",
    "raster",
    "store",
    "Curve",
    "CurveNotFoundError",
    "CurveSet",
    "CurveStore",
    "DrawingConfig",
    "EditResult",
    "Node",
    "NodeNotFoundError",
    "RejectionReason",
]
