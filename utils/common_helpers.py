import math
from typing import Any, Optional

import httpx


def safe_float(x: Any) -> Optional[float]:
    """float(x), or None for missing/unparsable/NaN/inf values."""
    if x is None or isinstance(x, bool):
        return None
    try:
        v = float(x)
    except (TypeError, ValueError):
        return None
    if math.isnan(v) or math.isinf(v):
        return None
    return v


def safe_int(x: Any, default: int) -> int:
    try:
        v = int(x)
    except (TypeError, ValueError):
        return default
    return v if v > 0 else default


def safe_json(resp: httpx.Response) -> Any:
    try:
        return resp.json()
    except ValueError:
        return None


def to_minor_units(price: float, decimals: int = 2) -> int:
    """67000.50 -> 6700050 (cents)."""
    return int(round(price * (10 ** decimals)))
