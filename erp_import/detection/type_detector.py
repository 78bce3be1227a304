from __future__ import annotations

from collections.abc import Iterable

import numpy as np
import pandas as pd

from erp_import.models.schema_models import PrimitiveType
from erp_import.parsing.reader import ParsedTable

"""Column type detection.

A column is sampled (first SAMPLE_SIZE non-empty values) and tested for
date, currency and number in that order. The first type matched by at least
ACCEPTANCE_RATIO of the sample wins; otherwise the column is text.
"""

__all__ = [
    "ACCEPTANCE_RATIO",
    "SAMPLE_SIZE",
    "detect_column_type",
    "detect_table_types",
]

SAMPLE_SIZE = 100
ACCEPTANCE_RATIO = 0.8

DATE_PATTERN = r"\d{2}/\d{2}/\d{4}|\d{4}-\d{2}-\d{2}"
# Optional symbol, thousands grouped with '.', mandatory decimal comma (R$ 1.234,56)
CURRENCY_PATTERN = r"(?:R\$|\$|€)?-?\d{1,3}(?:\.\d{3})*,\d{2}"


def _sample(values: Iterable[str | None]) -> list[str]:
    sample: list[str] = []
    for v in values:
        if v is None:
            continue
        text = str(v).strip()
        if text:
            sample.append(text)
            if len(sample) == SAMPLE_SIZE:
                break
    return sample


def _numeric_mask(series: pd.Series) -> pd.Series:
    normalized = series.str.replace(",", ".", n=1, regex=False)
    numbers = pd.to_numeric(normalized, errors="coerce").to_numpy(dtype=float)
    return pd.Series(np.isfinite(numbers), index=series.index)


def detect_column_type(values: Iterable[str | None]) -> PrimitiveType:
    """Classify a column from its values.

    Args:
        values: Raw column values; empty strings and None are ignored

    Returns:
        PrimitiveType.TEXT for an empty sample
    """
    sample = _sample(values)
    if not sample:
        return PrimitiveType.TEXT

    series = pd.Series(sample, dtype=object)
    if series.str.fullmatch(DATE_PATTERN).mean() >= ACCEPTANCE_RATIO:
        return PrimitiveType.DATE
    compact = series.str.replace(r"\s+", "", regex=True)
    if compact.str.fullmatch(CURRENCY_PATTERN).mean() >= ACCEPTANCE_RATIO:
        return PrimitiveType.CURRENCY
    if _numeric_mask(series).mean() >= ACCEPTANCE_RATIO:
        return PrimitiveType.NUMBER
    return PrimitiveType.TEXT


def detect_table_types(table: ParsedTable) -> dict[str, PrimitiveType]:
    """Detected type of every column, keyed by header."""
    return {header: detect_column_type(table.column(header)) for header in table.headers}
