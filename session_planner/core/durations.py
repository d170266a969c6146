from __future__ import annotations

import math
import re
from typing import Optional

from session_planner.core.model import DEFAULT_DURATION_HOURS


_HOURS_RE = re.compile(r"\s*(\d+(?:\.\d+)?)\s*(?:h|hr|hrs|hour|hours)?\s*", re.IGNORECASE)


def parse_hours(text: Optional[str]) -> Optional[float]:
    """Parse a free-text estimate such as "3h" or "2.5 hours".

    Returns None when the text does not look like an hour count, or names
    more hours than a float can hold.
    """
    if text is None:
        return None
    m = _HOURS_RE.fullmatch(text)
    if not m:
        return None
    hours = float(m.group(1))
    if not math.isfinite(hours):
        return None
    return hours


def hours_or_default(text: Optional[str]) -> float:
    hours = parse_hours(text)
    return DEFAULT_DURATION_HOURS if hours is None else hours


def format_hours(hours: float) -> str:
    """Presentation form: 6.0 -> "6h", 1.5 -> "1.5h". Rounds to 2 decimals."""
    if not math.isfinite(hours):
        return "unknown"
    rounded = round(hours, 2)
    if rounded == int(rounded):
        return f"{int(rounded)}h"
    return f"{rounded:g}h"
