from __future__ import annotations

import statistics
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime

from .schema_models import Destination

"""Result models for an import job.

ImportOutcome is what the batch loader produces; ImportReport wraps it with
the row counts, timings and the bounded error list shown to the user.
"""

__all__ = [
    "BatchStatsAccumulator",
    "FailedRow",
    "ImportOutcome",
    "ImportReport",
]


@dataclass(frozen=True)
class FailedRow:
    """A row whose insert failed. ``raw`` keeps the original input strings."""
    row_index: int
    error: str
    raw: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ImportOutcome:
    """Aggregate result of the batch loader."""
    inserted_count: int
    failed_rows: list[FailedRow] = field(default_factory=list)
    total_batches: int = 0
    completed_batches: int = 0
    cancelled: bool = False

    @property
    def failed_count(self) -> int:
        return len(self.failed_rows)


@dataclass(frozen=True)
class ImportReport:
    """Final per-job result handed back to the caller."""
    file_name: str
    destination: Destination
    table: str
    total_rows: int
    outcome: ImportOutcome
    invalid_rows: int  # rows excluded by the validator
    duplicate_rows: int  # valid rows excluded as already stored
    confidence: float
    start_time: datetime
    end_time: datetime
    elapsed_seconds: float
    updated_rows: int = 0  # stored records whose merge field was extended
    errors: list[str] = field(default_factory=list)  # bounded, see error_list_limit
    error_count: int = 0  # total messages before bounding
    total_batches: int = 0
    avg_batch_seconds: float = 0.0
    p95_batch_seconds: float = 0.0

    @property
    def inserted_count(self) -> int:
        return self.outcome.inserted_count

    @property
    def failed_count(self) -> int:
        return self.outcome.failed_count

    @property
    def not_attempted(self) -> int:
        """Rows left unprocessed because the job was cancelled."""
        return (
            self.total_rows
            - self.invalid_rows
            - self.duplicate_rows
            - self.inserted_count
            - self.failed_count
        )

    @property
    def fully_loaded(self) -> bool:
        return self.inserted_count == self.total_rows and not self.outcome.cancelled


class BatchStatsAccumulator:
    """Collects per-batch insert timings and summarizes them."""

    def __init__(self) -> None:
        self.batch_times: list[float] = []

    def add_batch_time(self, elapsed_seconds: float) -> None:
        self.batch_times.append(elapsed_seconds)

    def get_stats(self) -> tuple[int, float, float]:
        """Calculate batch statistics.

        Returns:
            tuple: (total_batches, avg_batch_seconds, p95_batch_seconds)
        """
        if not self.batch_times:
            return (0, 0.0, 0.0)

        total_batches = len(self.batch_times)
        avg_batch_seconds = statistics.mean(self.batch_times)

        if total_batches == 1:
            p95_batch_seconds = self.batch_times[0]
        else:
            # 19th of 20 inclusive quantiles is the 95th percentile
            p95_batch_seconds = statistics.quantiles(
                self.batch_times, n=20, method="inclusive"
            )[18]

        return (total_batches, avg_batch_seconds, p95_batch_seconds)
