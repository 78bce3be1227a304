from __future__ import annotations

from ..models.processing_result import ImportReport

"""Human-readable rendering of an ImportReport.

render_summary_line() produces the single SUMMARY line printed at the end of
every CLI run; render_error_lines() the bounded per-row error list below it.
"""

__all__ = [
    "format_seconds",
    "render_error_lines",
    "render_summary_line",
]


def format_seconds(value: float) -> str:
    """Whole numbers without decimals, tiny numbers without scientific notation.

    >>> format_seconds(2.0), format_seconds(0.0005), format_seconds(1.25)
    ('2', '0.0005', '1.25')
    """
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if value < 0.01:
        return f"{value:.6f}".rstrip("0").rstrip(".")
    return str(round(value, 3))


def render_summary_line(report: ImportReport) -> str:
    """Render the SUMMARY line for one import job.

    Format:
    SUMMARY destination={d} rows={n} inserted={i} updated={u} duplicates={dup}
    invalid={inv} failed={f} elapsed_sec={s}

    A cancelled job gets a trailing ``cancelled=1``.
    """
    line = (
        f"SUMMARY destination={report.destination.value} "
        f"rows={report.total_rows} "
        f"inserted={report.inserted_count} "
        f"updated={report.updated_rows} "
        f"duplicates={report.duplicate_rows} "
        f"invalid={report.invalid_rows} "
        f"failed={report.failed_count} "
        f"elapsed_sec={format_seconds(report.elapsed_seconds)}"
    )
    if report.outcome.cancelled:
        line += " cancelled=1"
    return line


def render_error_lines(report: ImportReport) -> list[str]:
    lines = list(report.errors)
    hidden = report.error_count - len(report.errors)
    if hidden > 0:
        lines.append(f"... and {hidden} more (see error log)")
    return lines
