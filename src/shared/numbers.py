"""Parsing helpers for numeric fields read back from the metadata column.

The storage layer may hand back cents either as JSON numbers or as strings,
so every reader goes through these instead of checking types ad hoc.
"""

import math
import re

_DIGITS = re.compile(r"^\d+$")


def parse_positive_number(value: object) -> int | float | None:
    """Return ``value`` when it is a positive number, else ``None``.

    Positive ints and finite floats are returned unchanged, fractional ones
    included. Strings count only when made of digits and are parsed as ints.
    Booleans, negatives, zero and anything else yield ``None``.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    if isinstance(value, float):
        return value if math.isfinite(value) and value > 0 else None
    if isinstance(value, str) and _DIGITS.match(value):
        parsed = int(value)
        return parsed if parsed > 0 else None
    return None


def has_positive_number(value: object) -> bool:
    return parse_positive_number(value) is not None


def to_number(value: object) -> float | None:
    """Lenient number coercion: finite numbers and numeric strings, else ``None``."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value if math.isfinite(value) else None
    if isinstance(value, str):
        try:
            parsed = float(value)
        except ValueError:
            return None
        return parsed if math.isfinite(parsed) else None
    return None


def to_cents(value: object) -> int | None:
    number = to_number(value)
    return None if number is None else int(round(number))
