"""
Numeric Parsing Utilities

Exchanges send prices and volumes as strings ("29000.00"), numbers, or
occasionally garbage (empty strings, nulls, "NaN"). A plain ``float()``
call would either raise or silently produce NaN, which then poisons every
average computed downstream.

These helpers turn anything that is not a finite number into ``None`` so
that the validator can report it as missing data.
"""

import math
from typing import Any, Optional


def parse_number(value: Any) -> Optional[float]:
    """
    Parse a wire value into a finite float.

    Returns:
        The float value, or None if the value is missing, non-numeric,
        NaN or infinite.

    Examples:
        >>> parse_number("29000.5")
        29000.5
        >>> parse_number("") is None
        True
        >>> parse_number("NaN") is None
        True
    """
    if value is None or isinstance(value, bool):
        return None

    try:
        number = float(value)
    except (TypeError, ValueError):
        return None

    if not math.isfinite(number):
        return None

    return number


def parse_count(value: Any, default: int = 0) -> int:
    """
    Parse a wire value into a non-negative count (trade counts).

    Anything unparseable or negative falls back to ``default``.

    Examples:
        >>> parse_count("1523")
        1523
        >>> parse_count(None)
        0
    """
    number = parse_number(value)
    if number is None or number < 0:
        return default
    return int(number)
