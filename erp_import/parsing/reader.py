from __future__ import annotations

import csv
import io
import logging
import re
from dataclasses import dataclass

import pandas as pd

from erp_import.models.row_data import RawRow

"""Delimited text reader.

The first non-blank line is the header row; every following non-blank line is
a data row. The delimiter (comma or semicolon) is chosen from the header line.
Double quotes enclose fields that contain the delimiter. Rows shorter than the
header are padded with empty strings, longer rows lose their extra fields.

Parsing goes through pandas with every column read as text and NA detection
off, so values reach the type detector exactly as exported. Every non-blank
line is exactly one row: when an unbalanced quote makes pandas join lines,
the data lines are split again one by one with split_line().
"""

__all__ = [
    "ParseError",
    "ParsedTable",
    "detect_delimiter",
    "parse_text",
    "split_line",
]

logger = logging.getLogger(__name__)

_ZERO_WIDTH = re.compile("[\u200b-\u200d\ufeff]")


class ParseError(Exception):
    """Raised when the input has no usable header line or cannot be tokenized."""


@dataclass(frozen=True)
class ParsedTable:
    headers: tuple[str, ...]
    rows: tuple[RawRow, ...]
    delimiter: str

    def column(self, header: str) -> list[str]:
        return [row.get(header) for row in self.rows]

    def __len__(self) -> int:
        return len(self.rows)


def detect_delimiter(first_line: str) -> str:
    """Semicolon only when it appears strictly more often than comma."""
    return ";" if first_line.count(";") > first_line.count(",") else ","


def _clean_cell(value: object) -> str:
    if pd.isna(value):
        return ""
    return _ZERO_WIDTH.sub("", str(value)).strip()


def _unique_headers(raw: list[str]) -> list[str]:
    """Give blank and repeated headers distinct names so rows can be keyed by header."""
    seen: dict[str, int] = {}
    headers: list[str] = []
    for position, name in enumerate(raw, start=1):
        base = name or f"column_{position}"
        count = seen.get(base, 0)
        seen[base] = count + 1
        headers.append(base if count == 0 else f"{base}.{count}")
    return headers


def split_line(line: str, delimiter: str) -> list[str]:
    """Split one line; ``"`` toggles quoted mode and is dropped, an open quote ends at the line end.

    >>> split_line('100,"R$ 10,00', ",")
    ['100', 'R$ 10,00']
    """
    cells: list[str] = []
    current: list[str] = []
    quoted = False
    for ch in line:
        if ch == '"':
            quoted = not quoted
        elif ch == delimiter and not quoted:
            cells.append("".join(current))
            current = []
        else:
            current.append(ch)
    cells.append("".join(current))
    return cells


def _read_frame(text: str, delimiter: str, width: int | None) -> pd.DataFrame:
    options: dict[str, object] = dict(
        sep=delimiter,
        header=None,
        dtype=str,
        keep_default_na=False,
        na_filter=False,
        skip_blank_lines=True,
        skipinitialspace=True,
        quotechar='"',
        engine="python",
        index_col=False,
    )
    if width is not None:
        options["names"] = list(range(width))
        options["on_bad_lines"] = lambda bad: bad[:width]
    try:
        return pd.read_csv(io.StringIO(text), **options)
    except (pd.errors.ParserError, csv.Error) as e:
        raise ParseError(f"cannot tokenize input: {e}") from e


def parse_text(text: str) -> ParsedTable:
    """Parse raw export text into headers plus equal-width data rows.

    Raises:
        ParseError: no non-blank line exists, or quoting cannot be tokenized
    """
    if text.startswith("\ufeff"):
        text = text[1:]
    lines = [line.strip() for line in text.splitlines()]
    lines = [line for line in lines if line]
    if not lines:
        raise ParseError("input has no header or data lines")

    delimiter = detect_delimiter(lines[0])

    header_frame = _read_frame(lines[0], delimiter, width=None)
    headers = _unique_headers([_clean_cell(v) for v in header_frame.iloc[0].tolist()])
    width = len(headers)

    rows: list[RawRow] = []
    for row_index, raw in enumerate(_data_records(lines[1:], delimiter, width)):
        cells = [_clean_cell(v) for v in raw[:width]]
        cells += [""] * (width - len(cells))
        rows.append(RawRow(row_index=row_index, values=dict(zip(headers, cells))))

    return ParsedTable(headers=tuple(headers), rows=tuple(rows), delimiter=delimiter)


def _data_records(body: list[str], delimiter: str, width: int) -> list[list[object]]:
    """One record per data line."""
    if not body:
        return []
    try:
        frame = _read_frame("\n".join(body), delimiter, width=width)
        records = [list(r) for r in frame.itertuples(index=False, name=None)]
    except ParseError as e:
        logger.warning(f"{e}; splitting data lines one by one")
        return [split_line(line, delimiter) for line in body]
    if len(records) != len(body):
        logger.warning(
            f"unbalanced quotes: {len(body)} data lines read as {len(records)} rows; "
            "splitting data lines one by one"
        )
        return [split_line(line, delimiter) for line in body]
    return records
