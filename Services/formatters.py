# Services/formatters.py
import math
from datetime import datetime
from typing import Optional, Union

CURRENCY_PREFIX = "ETB"


def format_currency(value: Optional[Union[int, float]]) -> str:
    """Format a number as an ETB amount, e.g. ``ETB 1,234,567``.

    Anything that is not a finite number renders as ``ETB 0``.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return f"{CURRENCY_PREFIX} 0"
    if isinstance(value, float):
        if not math.isfinite(value):
            return f"{CURRENCY_PREFIX} 0"
        if value.is_integer():
            value = int(value)
        else:
            return f"{CURRENCY_PREFIX} {value:,.3f}".rstrip("0").rstrip(".")
    return f"{CURRENCY_PREFIX} {value:,}"


def format_date(value: Union[str, datetime, None]) -> str:
    """Format an ISO date string or datetime as ``January 5, 2024``."""
    if value is None:
        return ""
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return value
    return f"{value.strftime('%B')} {value.day}, {value.year}"
