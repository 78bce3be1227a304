from __future__ import annotations

from datetime import UTC, datetime

import pytest

from erp_import.models.processing_result import (
    BatchStatsAccumulator,
    FailedRow,
    ImportOutcome,
    ImportReport,
)
from erp_import.models.schema_models import Destination

"""Unit tests for the import result models and batch timing statistics."""


def _report(outcome: ImportOutcome, total_rows: int, invalid: int = 0, duplicates: int = 0) -> ImportReport:
    now = datetime.now(UTC)
    return ImportReport(
        file_name="clientes.csv",
        destination=Destination.CUSTOMERS,
        table="clientes",
        total_rows=total_rows,
        outcome=outcome,
        invalid_rows=invalid,
        duplicate_rows=duplicates,
        confidence=0.8,
        start_time=now,
        end_time=now,
        elapsed_seconds=0.0,
    )


class TestImportOutcome:

    def test_defaults(self):
        outcome = ImportOutcome(inserted_count=0)
        assert outcome.failed_rows == []
        assert outcome.failed_count == 0
        assert outcome.cancelled is False

    def test_failed_count(self):
        outcome = ImportOutcome(
            inserted_count=2,
            failed_rows=[FailedRow(3, "boom"), FailedRow(4, "boom")],
        )
        assert outcome.failed_count == 2

    def test_frozen(self):
        outcome = ImportOutcome(inserted_count=1)
        with pytest.raises(AttributeError):
            outcome.inserted_count = 2  # type: ignore[misc]


class TestImportReport:

    def test_fully_loaded(self):
        report = _report(ImportOutcome(inserted_count=5), total_rows=5)
        assert report.fully_loaded is True
        assert report.not_attempted == 0

    def test_partial_load_counts(self):
        outcome = ImportOutcome(inserted_count=2, failed_rows=[FailedRow(7, "value too long")])
        report = _report(outcome, total_rows=6, invalid=2, duplicates=1)
        assert report.inserted_count == 2
        assert report.failed_count == 1
        assert report.not_attempted == 0
        assert report.fully_loaded is False

    def test_cancelled_rows_are_not_attempted(self):
        outcome = ImportOutcome(inserted_count=2, total_batches=3, completed_batches=1, cancelled=True)
        report = _report(outcome, total_rows=6)
        assert report.not_attempted == 4
        assert report.fully_loaded is False

    def test_empty_file_is_fully_loaded(self):
        assert _report(ImportOutcome(inserted_count=0), total_rows=0).fully_loaded is True


class TestBatchStatsAccumulator:

    def test_empty(self):
        assert BatchStatsAccumulator().get_stats() == (0, 0.0, 0.0)

    def test_single_batch(self):
        acc = BatchStatsAccumulator()
        acc.add_batch_time(0.4)
        assert acc.get_stats() == (1, 0.4, 0.4)

    def test_multiple_batches(self):
        acc = BatchStatsAccumulator()
        for t in [0.1, 0.2, 0.3, 0.4, 0.5]:
            acc.add_batch_time(t)
        total, avg, p95 = acc.get_stats()
        assert total == 5
        assert avg == pytest.approx(0.3)
        assert 0.4 <= p95 <= 0.5
