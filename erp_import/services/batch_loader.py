from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from erp_import.db.store import RecordStore, StoreError, StoreUnavailableError
from erp_import.models.processing_result import FailedRow, ImportOutcome
from erp_import.models.row_data import TransformedRow

"""Sequential batched loading.

Rows are cut into fixed-size batches and inserted one batch at a time. A
failed batch (error result or StoreError) marks all of its rows failed and
loading continues with the next batch. StoreUnavailableError stops the job
with ImportAborted, which carries what was loaded so far.

Cancellation is cooperative: the token is checked before each batch, never
while one is in flight.
"""

__all__ = [
    "DEFAULT_BATCH_SIZE",
    "BatchMetrics",
    "CancelToken",
    "ImportAborted",
    "ProgressCallback",
    "load_batches",
]

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 100

ProgressCallback = Callable[[int, str], None]


class ImportAborted(Exception):
    """The store became unreachable mid-job. ``outcome`` holds the partial result."""

    def __init__(self, message: str, outcome: ImportOutcome) -> None:
        super().__init__(message)
        self.outcome = outcome


class CancelToken:
    """Thread-safe cancellation flag shared between a job and its host."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


@dataclass(frozen=True)
class BatchMetrics:
    """Timing of a single insert_many call."""
    batch_size: int
    elapsed_seconds: float
    start_time: float
    end_time: float


def _insert(
    store: RecordStore,
    table: str,
    batch: Sequence[TransformedRow],
    metrics_callback: Callable[[BatchMetrics], None] | None,
) -> str | None:
    """Insert one batch; return the store's error message or None."""
    start_time = time.time()
    try:
        result = store.insert_many(table, [r.record() for r in batch])
    except StoreError as e:
        return str(e)
    finally:
        end_time = time.time()
        if metrics_callback is not None:
            metrics_callback(BatchMetrics(
                batch_size=len(batch),
                elapsed_seconds=end_time - start_time,
                start_time=start_time,
                end_time=end_time,
            ))
    return result.error


def _retry_rows(
    store: RecordStore,
    table: str,
    batch: Sequence[TransformedRow],
    metrics_callback: Callable[[BatchMetrics], None] | None,
) -> tuple[int, list[FailedRow]]:
    inserted = 0
    failed: list[FailedRow] = []
    for row in batch:
        error = _insert(store, table, [row], metrics_callback)
        if error is None:
            inserted += 1
        else:
            failed.append(FailedRow(row_index=row.row_index, error=error, raw=row.raw))
    return inserted, failed


def load_batches(
    rows: Sequence[TransformedRow],
    store: RecordStore,
    table: str,
    *,
    batch_size: int = DEFAULT_BATCH_SIZE,
    progress: ProgressCallback | None = None,
    cancel: CancelToken | None = None,
    retry_rows: bool = False,
    metrics_callback: Callable[[BatchMetrics], None] | None = None,
) -> ImportOutcome:
    """Insert ``rows`` into ``table`` batch by batch.

    Args:
        rows: Validated, non-duplicate rows
        store: Target store
        table: Destination table name
        batch_size: Rows per insert call
        progress: Called after every batch with (percent of batches done, message)
        cancel: Checked before each batch
        retry_rows: Re-insert the rows of a failed batch one at a time so only
            the offending rows are reported
        metrics_callback: Receives BatchMetrics for every insert call

    Raises:
        ImportAborted: the store became unreachable
    """
    if batch_size < 1:
        raise ValueError(f"batch_size must be positive: {batch_size}")

    batches = [rows[i:i + batch_size] for i in range(0, len(rows), batch_size)]
    total = len(batches)
    inserted = 0
    failed: list[FailedRow] = []
    completed = 0

    def outcome(cancelled: bool = False) -> ImportOutcome:
        return ImportOutcome(
            inserted_count=inserted,
            failed_rows=list(failed),
            total_batches=total,
            completed_batches=completed,
            cancelled=cancelled,
        )

    for i, batch in enumerate(batches):
        if cancel is not None and cancel.cancelled:
            logger.info(f"import cancelled after {completed} of {total} batches")
            return outcome(cancelled=True)

        try:
            error = _insert(store, table, batch, metrics_callback)
            if error is not None and retry_rows:
                logger.warning(f"batch {i + 1}/{total} failed ({error}); retrying rows one by one")
                ok, bad = _retry_rows(store, table, batch, metrics_callback)
                inserted += ok
                failed.extend(bad)
            elif error is not None:
                logger.warning(f"batch {i + 1}/{total} failed: {error}")
                failed.extend(FailedRow(row_index=r.row_index, error=error, raw=r.raw) for r in batch)
            else:
                inserted += len(batch)
        except StoreUnavailableError as e:
            raise ImportAborted(f"store unavailable during batch {i + 1}/{total}: {e}", outcome()) from e

        completed += 1
        logger.debug(f"batch {i + 1}/{total} done ({len(batch)} rows)")
        if progress is not None:
            progress(round((i + 1) / total * 100), f"Imported batch {i + 1} of {total}")

    return outcome()
