from __future__ import annotations

import os
from typing import Optional


def read_float_env(name: str, default: float, allow_zero: bool = False) -> float:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    if value > 0 or (allow_zero and value == 0):
        return value
    return default


def read_int_env(name: str, default: int, allow_zero: bool = False) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    if value > 0 or (allow_zero and value == 0):
        return value
    return default


def read_bool_env(name: str, default: bool) -> bool:
    raw = (os.getenv(name) or "").strip().lower()
    if not raw:
        return default
    if raw in {"1", "true", "yes", "on"}:
        return True
    if raw in {"0", "false", "no", "off"}:
        return False
    return default


def read_str_env(name: str, default: Optional[str] = None) -> Optional[str]:
    raw = (os.getenv(name) or "").strip()
    return raw or default


def read_language_env(name: str, default: str) -> str:
    raw = (os.getenv(name) or "").strip().lower()
    if not raw:
        return default
    # Browser-style tags ("es-ES") collapse to the primary subtag.
    return raw.split("-")[0].split("_")[0] or default


def read_threshold_map_env(name: str, default: dict[str, float]) -> dict[str, float]:
    """Parse ``"en=0.75,it=0.6"`` into a language -> threshold map.

    Entries that are malformed or outside [0, 1] are skipped; the result
    always starts from ``default``.
    """
    merged = dict(default)
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return merged
    for item in raw.split(","):
        code, sep, value = item.partition("=")
        code = code.strip().lower()
        if not sep or not code:
            continue
        try:
            threshold = float(value)
        except ValueError:
            continue
        if 0.0 <= threshold <= 1.0:
            merged[code] = threshold
    return merged
