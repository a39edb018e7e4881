"""
numeric.py — Numeric normalizer shared by every engine component.

Every external numeric input goes through ``sanitize_number`` so that
malformed values (locale strings, blanks, None, NaN) degrade to a fallback
instead of propagating NaN/Infinity or raising.
"""

import math
import re
from typing import Any, Optional

from cee_engine.config import ALLOWED_TVA_RATES, DEFAULT_TVA_RATE, HOST_EQUALITY_TOLERANCE

# Leading number, same prefix rule as a JS parseFloat
_NUMBER_PREFIX = re.compile(r"[-+]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][-+]?\d+)?")
_WHITESPACE = re.compile(r"\s+")

_TRUTHY_STRINGS = {"true", "t", "1", "oui", "yes", "on"}


def _parse_decimal_string(text: str) -> Optional[float]:
    """Parse '12,5', '12.5', '1 234,5' or '45 €/m²' into a float (None if not numeric)."""
    compact = _WHITESPACE.sub("", text).replace(",", ".", 1)
    match = _NUMBER_PREFIX.match(compact)
    if not match:
        return None
    try:
        value = float(match.group(0))
    except ValueError:
        return None
    return value if math.isfinite(value) else None


def sanitize_number(value: Any, fallback: Any = 0.0) -> Any:
    """
    Coerce ``value`` into a finite float.

    Returns ``value`` itself when it is a finite number, the parsed value when
    it is a string holding a number (``.`` or ``,`` decimal separator), and
    ``fallback`` for everything else. Never raises.
    """
    # bool is an int subclass but never a quantity
    if isinstance(value, bool):
        return fallback
    if isinstance(value, (int, float)):
        number = float(value)
        return number if math.isfinite(number) else fallback
    if isinstance(value, str):
        parsed = _parse_decimal_string(value)
        return parsed if parsed is not None else fallback
    return fallback


def to_positive(value: Any) -> Optional[float]:
    """Return the sanitized value when strictly positive, else None."""
    number = sanitize_number(value, None)
    if number is None or number <= 0:
        return None
    return number


def to_boolean(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in _TRUTHY_STRINGS
    return False


def normalize_tva_rate(rate: Any, fallback: float = DEFAULT_TVA_RATE) -> float:
    """Return ``rate`` when it belongs to the VAT whitelist, ``fallback`` otherwise."""
    number = sanitize_number(rate, None)
    if number is not None and number in ALLOWED_TVA_RATES:
        return number
    return fallback


def compute_ttc(amount_ht: Any, tva_rate: Any) -> float:
    """
    Tax-inclusive amount from a tax-exclusive amount and a VAT rate (percent).

        amount_ttc = amount_ht * (1 + tva_rate / 100)
    """
    ht = sanitize_number(amount_ht)
    rate = sanitize_number(tva_rate)
    return ht * (1 + rate / 100)


def safe_ratio(numerator: float, denominator: float) -> float:
    """numerator / denominator, or 0 when the denominator is not positive."""
    return numerator / denominator if denominator > 0 else 0.0


def numbers_are_close(a: Any, b: Any, tolerance: float = HOST_EQUALITY_TOLERANCE) -> bool:
    """
    Host-side redundant-write check: True when two figures differ by less than
    ``tolerance``. The engine formulas never use this.
    """
    return abs(sanitize_number(a) - sanitize_number(b)) < tolerance
