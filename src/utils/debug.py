from __future__ import annotations

import os

_TRUTHY = {"1", "true", "yes", "on"}

_verbose = os.environ.get("CURVESKETCH_VERBOSE", "").strip().lower() in _TRUTHY


def set_verbose(enabled: bool) -> None:
    global _verbose
    _verbose = enabled


def is_verbose() -> bool:
    return _verbose


def log(message: str) -> None:
    if _verbose:
        print(f"[curvesketch] {message}")
