from __future__ import annotations

from typing import Any, Optional, Union
import math
import uuid
from datetime import datetime, timezone

import pandas as pd

from agrotrade.errors import ValidationError

Number = Union[int, float]


def is_valid_number(v: Optional[float]) -> bool:
    """Check if value is a real, finite number (not None/NaN/inf)."""
    try:
        return v is not None and math.isfinite(float(v))
    except (TypeError, ValueError, OverflowError):
        return False


def parse_number(value: Any, field: str) -> float:
    """Parse an int, float or numeric string; reject anything else."""
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise ValidationError(f"{field} must be a number")
    try:
        parsed = pd.to_numeric(value.strip() if isinstance(value, str) else value, errors="coerce")
    except (TypeError, ValueError, OverflowError):
        raise ValidationError(f"{field} must be a number") from None
    if not is_valid_number(parsed):
        raise ValidationError(f"{field} must be a number")
    return float(parsed)


def format_price(v: Number) -> str:
    """Render a price the way the web client shows it: 50.0 -> '50', 62.5 -> '62.5'."""
    v = float(v)
    return str(int(v)) if v.is_integer() else repr(v)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_aware_utc(v: Optional[Union[str, datetime]]) -> datetime:
    """Convert input to an aware UTC datetime."""
    if v is None:
        return utc_now()
    if isinstance(v, datetime):
        return v.astimezone(timezone.utc) if v.tzinfo else v.replace(tzinfo=timezone.utc)
    ts = pd.to_datetime(v, errors="coerce", utc=True)
    if pd.isna(ts):
        raise ValueError(f"Invalid timestamp: {v!r}")
    return ts.to_pydatetime()


def new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex}"
