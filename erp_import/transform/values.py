from __future__ import annotations

import math
import re
from datetime import date

from erp_import.models.row_data import CanonicalValue
from erp_import.models.schema_models import FieldKind

"""Raw string -> canonical value conversion.

transform_value() never raises. Unusable input degrades to None (dates,
empty cells), 0.0 (currency, numbers) or the trimmed text. Every conversion is
idempotent: feeding a canonical value back in returns it unchanged.
"""

__all__ = [
    "to_currency",
    "to_date",
    "to_digits",
    "to_number",
    "transform_value",
]

_DMY = re.compile(r"(\d{2})([/-])(\d{2})\2(\d{4})")
_ISO = re.compile(r"\d{4}-\d{2}-\d{2}")
_CURRENCY_NOISE = re.compile(r"R\$|\$|€|\s")
_NON_DIGIT = re.compile(r"\D")
_GROUPED_DOTS = re.compile(r"-?\d{1,3}(?:\.\d{3})+")


def _valid_date(year: int, month: int, day: int) -> bool:
    try:
        date(year, month, day)
    except ValueError:
        return False
    return True


def to_date(text: str) -> str | None:
    """DD/MM/YYYY or DD-MM-YYYY -> YYYY-MM-DD; ISO input is kept as is."""
    if _ISO.fullmatch(text):
        year, month, day = (int(p) for p in text.split("-"))
        return text if _valid_date(year, month, day) else None
    m = _DMY.fullmatch(text)
    if m is None:
        return None
    day, month, year = m.group(1), m.group(3), m.group(4)
    if not _valid_date(int(year), int(month), int(day)):
        return None
    return f"{year}-{month}-{day}"


def _finite(text: str) -> float | None:
    try:
        value = float(text)
    except ValueError:
        return None
    return value if math.isfinite(value) else None


def to_currency(text: str) -> float:
    """Parse a money amount in Brazilian (1.234,56) or point-decimal (1,234.56) notation.

    The separator that appears last is the decimal one. Without a comma, dots
    in thousand groups (1.234.567, 12.000) are grouping, not decimal.
    """
    cleaned = _CURRENCY_NOISE.sub("", text)
    if "," in cleaned and cleaned.rfind(",") > cleaned.rfind("."):
        cleaned = cleaned.replace(".", "").replace(",", ".")
    elif "," not in cleaned and (cleaned.count(".") > 1 or _GROUPED_DOTS.fullmatch(cleaned)):
        cleaned = cleaned.replace(".", "")
    else:
        cleaned = cleaned.replace(",", "")
    value = _finite(cleaned)
    return round(value, 2) if value is not None else 0.0


def to_number(text: str) -> float:
    value = _finite(text.replace(",", ".", 1))
    return value if value is not None else 0.0


def to_digits(text: str) -> str | None:
    digits = _NON_DIGIT.sub("", text)
    return digits or None


def transform_value(value: CanonicalValue | int, kind: FieldKind) -> CanonicalValue:
    """Convert one cell to its canonical value for a field of ``kind``."""
    if value is None:
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if kind in (FieldKind.CURRENCY, FieldKind.NUMBER):
            return float(value) if math.isfinite(value) else 0.0
        value = str(value)

    text = str(value).strip()
    if not text:
        return None

    if kind is FieldKind.DATE:
        return to_date(text)
    if kind is FieldKind.CURRENCY:
        return to_currency(text)
    if kind is FieldKind.NUMBER:
        return to_number(text)
    if kind is FieldKind.DOCUMENT:
        return to_digits(text)
    return text
