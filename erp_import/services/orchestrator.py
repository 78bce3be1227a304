from __future__ import annotations

import logging
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from types import MappingProxyType

from ..db.store import RecordStore, StoreError, StoreUnavailableError
from ..detection.classifier import ClassificationAmbiguity, classify_headers
from ..detection.type_detector import detect_table_types
from ..logging.error_log import ErrorLogBuffer, ErrorRecord
from ..mapping.column_mapper import apply_mapping_override, map_columns
from ..models.config_models import ImportConfig
from ..models.mapping_result import MappingResult
from ..models.processing_result import BatchStatsAccumulator, ImportOutcome, ImportReport
from ..models.row_data import CanonicalValue, DuplicateFlag, TransformedRow, ValidationOutcome
from ..models.schema_models import Destination, PrimitiveType, SchemaDefinition
from ..parsing.reader import ParsedTable, parse_text
from ..schema.registry import get_schema
from ..transform.validator import transform_row, validate_row
from .batch_loader import BatchMetrics, CancelToken, ImportAborted, ProgressCallback, load_batches
from .duplicates import detect_duplicates, key_is_document
from .record_merge import MergeUpdate, plan_merge_updates

"""Import job orchestration.

ImportSession owns everything one job produces: the parsed table, detected
column types, the current mapping and the error log buffer. Nothing is kept
at module level, so sessions can run side by side.

Typical flow::

    session = ImportSession(text, config, file_name="vendas.csv")
    suggestion = session.suggest()            # classify + map
    session.apply_override({"Cliente": "NomeCli"})
    preview = session.preview(store)
    updates = session.merge_updates(store)   # phones new to stored customers
    report = session.run(store, progress=bar)

Only ParseError (from the constructor) and ImportAborted (store unreachable)
are raised from a normal run. Row-level problems end up in the report and in
the error log.
"""

__all__ = [
    "MappingSuggestion",
    "PreviewRow",
    "ImportSession",
    "run_import",
]

logger = logging.getLogger(__name__)

VALIDATION_ERROR = "VALIDATION_ERROR"
DUPLICATE_CONFLICT = "DUPLICATE_CONFLICT"
STORE_ERROR = "STORE_ERROR"
STORE_UNAVAILABLE = "STORE_UNAVAILABLE"
PARSE_ERROR = "PARSE_ERROR"


@dataclass(frozen=True)
class MappingSuggestion:
    """What the engine proposes before anything is written."""
    destination: Destination
    confidence: float
    header_to_field: Mapping[str, str]
    column_types: Mapping[str, PrimitiveType]
    scores: Mapping[str, float] = field(default_factory=dict)  # best score per mapped header
    ambiguity: ClassificationAmbiguity | None = None
    destination_scores: Mapping[Destination, float] = field(default_factory=dict)

    @property
    def unmapped_headers(self) -> list[str]:
        return [h for h in self.column_types if h not in self.header_to_field]


@dataclass(frozen=True)
class PreviewRow:
    row_index: int
    values: Mapping[str, CanonicalValue]
    valid: bool
    errors: list[str]
    is_duplicate: bool
    duplicate_reason: str | None = None


def _row_message(row_index: int, message: str) -> str:
    return f"row {row_index + 1}: {message}"


class ImportSession:
    """State of one import job, from raw text to ImportReport.

    Raises:
        ParseError: the text has no usable header line
    """

    def __init__(
        self,
        text: str,
        config: ImportConfig | None = None,
        *,
        file_name: str = "<upload>",
        error_log: ErrorLogBuffer | None = None,
    ) -> None:
        self.config = config or ImportConfig()
        self.file_name = file_name
        self.error_log = error_log if error_log is not None else ErrorLogBuffer(self.config.logs_directory)
        self.table_data: ParsedTable = parse_text(text)
        self.column_types: dict[str, PrimitiveType] = detect_table_types(self.table_data)
        self.mapping: MappingResult | None = None
        self.suggestion: MappingSuggestion | None = None
        logger.debug(
            f"parsed {self.file_name}: {len(self.table_data)} rows, "
            f"{len(self.headers)} columns, delimiter '{self.table_data.delimiter}'"
        )

    @property
    def headers(self) -> tuple[str, ...]:
        return self.table_data.headers

    @property
    def schema(self) -> SchemaDefinition:
        return get_schema(self._require_mapping().destination)

    @property
    def table(self) -> str:
        return self.config.table_for(self._require_mapping().destination)

    def suggest(self, destination: Destination | str | None = None) -> MappingSuggestion:
        """Classify the headers and propose a mapping.

        With an explicit ``destination`` the classifier's choice is overridden
        and the suggestion is reported with confidence 1.0.
        """
        classification = classify_headers(
            self.headers, low_confidence_threshold=self.config.low_confidence_threshold
        )
        if destination is not None and Destination(destination) != classification.destination:
            chosen = Destination(destination)
            confidence = 1.0
            ambiguity = None
            logger.info(
                f"destination overridden: {chosen.value} (classifier suggested "
                f"{classification.destination.value})"
            )
        else:
            chosen = classification.destination
            confidence = classification.confidence
            ambiguity = classification.ambiguity

        mapping, scores = map_columns(
            self.headers,
            get_schema(chosen),
            self.column_types,
            min_score=self.config.min_mapping_score,
            confidence=confidence,
        )
        self.mapping = mapping
        self.suggestion = MappingSuggestion(
            destination=chosen,
            confidence=confidence,
            header_to_field=MappingProxyType(dict(mapping.header_to_field)),
            column_types=MappingProxyType(dict(self.column_types)),
            scores=MappingProxyType(scores),
            ambiguity=ambiguity,
            destination_scores=MappingProxyType(dict(classification.scores)),
        )
        return self.suggestion

    def apply_override(
        self,
        override: Mapping[str, str | None],
        destination: Destination | str | None = None,
    ) -> MappingResult:
        """Merge caller edits into the current suggestion.

        Headers named in ``override`` take the given field (None or "" unmaps
        them). A field taken this way is released from whichever other header
        the suggestion had given it to.

        Raises:
            MappingError: unknown header or field
        """
        if self.mapping is None or (
            destination is not None and Destination(destination) != self.mapping.destination
        ):
            self.suggest(destination)
        current = self._require_mapping()
        taken = {f for f in override.values() if f}
        merged: dict[str, str | None] = {
            h: f
            for h, f in current.header_to_field.items()
            if h not in override and f not in taken
        }
        merged.update(override)
        self.mapping = apply_mapping_override(
            get_schema(current.destination), merged, self.headers, confidence=current.confidence
        )
        return self.mapping

    def transform(self) -> list[TransformedRow]:
        mapping = self._require_mapping()
        schema = get_schema(mapping.destination)
        return [transform_row(r, mapping, schema) for r in self.table_data.rows]

    def validate(self) -> list[ValidationOutcome]:
        mapping = self._require_mapping()
        schema = get_schema(mapping.destination)
        return [validate_row(r, mapping, schema) for r in self.table_data.rows]

    def check_duplicates(
        self,
        store: RecordStore,
        rows: list[TransformedRow] | None = None,
    ) -> list[DuplicateFlag]:
        """Existence check for ``rows`` (default: every row of the file)."""
        if rows is None:
            rows = self.transform()
        return detect_duplicates(
            rows,
            self.schema,
            store,
            self.table,
            chunk_size=self.config.existence_chunk_size,
            in_file=self.config.flag_in_file_duplicates,
        )

    def merge_updates(
        self,
        store: RecordStore,
        rows: list[TransformedRow] | None = None,
    ) -> list[MergeUpdate]:
        """Merge-field updates for stored records matched by ``rows`` (default: every row)."""
        if not self.config.merge_existing_records:
            return []
        if rows is None:
            rows = self.transform()
        return plan_merge_updates(
            rows, self.schema, store, self.table, chunk_size=self.config.existence_chunk_size
        )

    def preview(self, store: RecordStore, rows: int | None = None) -> list[PreviewRow]:
        """First ``rows`` rows (default ``preview_rows``) with validation and duplicate flags."""
        n = self.config.preview_rows if rows is None else rows
        mapping = self._require_mapping()
        schema = get_schema(mapping.destination)
        raw_rows = self.table_data.rows[:n]
        transformed = [transform_row(r, mapping, schema) for r in raw_rows]
        outcomes = [validate_row(r, mapping, schema) for r in raw_rows]
        flags = self.check_duplicates(store, transformed)
        return [
            PreviewRow(
                row_index=t.row_index,
                values=t.values,
                valid=o.valid,
                errors=list(o.errors),
                is_duplicate=d.is_duplicate,
                duplicate_reason=d.reason,
            )
            for t, o, d in zip(transformed, outcomes, flags)
        ]

    def run(
        self,
        store: RecordStore,
        progress: ProgressCallback | None = None,
        cancel: CancelToken | None = None,
    ) -> ImportReport:
        """Validate, de-duplicate and load every row.

        Raises:
            ImportAborted: the store became unreachable; ``outcome`` holds what was loaded
        """
        start_time = datetime.now(UTC)
        t0 = time.perf_counter()
        mapping = self._require_mapping()
        destination = mapping.destination
        table = self.table

        transformed = self.transform()
        outcomes = self.validate()
        messages: list[tuple[int, str]] = []

        valid_rows: list[TransformedRow] = []
        for row, outcome in zip(transformed, outcomes):
            if outcome.valid:
                valid_rows.append(row)
                continue
            for error in outcome.errors:
                messages.append((row.row_index, error))
                self._record(row.row_index, VALIDATION_ERROR, error)

        try:
            flags = self.check_duplicates(store, valid_rows)
        except StoreUnavailableError as e:
            self._record(-1, STORE_UNAVAILABLE, str(e))
            raise ImportAborted(
                f"store unavailable during duplicate check: {e}", ImportOutcome(inserted_count=0)
            ) from e

        loadable: list[TransformedRow] = []
        duplicate_rows: list[TransformedRow] = []
        for row, flag in zip(valid_rows, flags):
            if flag.is_duplicate:
                duplicate_rows.append(row)
                messages.append((row.row_index, flag.reason or "duplicate"))
                self._record(row.row_index, DUPLICATE_CONFLICT, flag.reason or "duplicate")
            else:
                loadable.append(row)
        duplicates = len(duplicate_rows)
        updated = self._apply_merge_updates(store, duplicate_rows, messages) if duplicate_rows else 0

        stats = BatchStatsAccumulator()

        def on_metrics(metrics: BatchMetrics) -> None:
            stats.add_batch_time(metrics.elapsed_seconds)

        logger.info(
            f"loading {len(loadable)} of {len(transformed)} rows into {table} "
            f"({len(transformed) - len(valid_rows)} invalid, {duplicates} duplicate)"
        )
        try:
            result = load_batches(
                loadable,
                store,
                table,
                batch_size=self.config.batch_size,
                progress=progress,
                cancel=cancel,
                retry_rows=self.config.retry_failed_batch_rows,
                metrics_callback=on_metrics,
            )
        except ImportAborted as e:
            self._record(-1, STORE_UNAVAILABLE, str(e))
            for failed in e.outcome.failed_rows:
                self._record(failed.row_index, STORE_ERROR, failed.error)
            raise

        for failed in result.failed_rows:
            messages.append((failed.row_index, failed.error))
            self._record(failed.row_index, STORE_ERROR, failed.error)

        end_time = datetime.now(UTC)
        elapsed = time.perf_counter() - t0
        _, avg_batch, p95_batch = stats.get_stats()
        messages.sort(key=lambda m: m[0])
        limit = self.config.error_list_limit

        report = ImportReport(
            file_name=self.file_name,
            destination=destination,
            table=table,
            total_rows=len(transformed),
            outcome=result,
            invalid_rows=len(transformed) - len(valid_rows),
            duplicate_rows=duplicates,
            updated_rows=updated,
            confidence=mapping.confidence,
            start_time=start_time,
            end_time=end_time,
            elapsed_seconds=elapsed,
            errors=[_row_message(i, m) for i, m in messages[:limit]],
            error_count=len(messages),
            total_batches=result.total_batches,
            avg_batch_seconds=avg_batch,
            p95_batch_seconds=p95_batch,
        )
        logger.info(
            f"{self.file_name}: inserted={report.inserted_count} updated={report.updated_rows} "
            f"failed={report.failed_count} batches={result.completed_batches}/{result.total_batches}"
        )
        return report

    def _apply_merge_updates(
        self,
        store: RecordStore,
        rows: list[TransformedRow],
        messages: list[tuple[int, str]],
    ) -> int:
        """Write merge updates for duplicate ``rows``; returns the number of records updated.

        A failed update is reported against the rows that contributed to it;
        a failed read skips merging for this job.

        Raises:
            ImportAborted: the store became unreachable
        """
        schema = self.schema
        table = self.table
        updated = 0
        try:
            try:
                updates = self.merge_updates(store, rows)
            except StoreError as e:
                logger.warning(f"record merge skipped: {e}")
                self._record(-1, STORE_ERROR, str(e))
                return 0
            for update in updates:
                result = store.update_by_key(
                    table,
                    schema.natural_key,
                    update.key,
                    {update.field: update.new_value},
                    digits_only=key_is_document(schema),
                )
                if not result.ok:
                    for row_index in update.row_indices:
                        messages.append((row_index, result.error))
                        self._record(row_index, STORE_ERROR, result.error)
                    continue
                updated += result.updated_rows
                logger.info(
                    f"{schema.natural_key} {update.key}: {update.field} "
                    f"'{update.old_value}' -> '{update.new_value}'"
                )
        except StoreUnavailableError as e:
            self._record(-1, STORE_UNAVAILABLE, str(e))
            raise ImportAborted(
                f"store unavailable during record merge: {e}", ImportOutcome(inserted_count=0)
            ) from e
        return updated

    def _require_mapping(self) -> MappingResult:
        if self.mapping is None:
            self.suggest()
        if self.mapping is None:
            raise RuntimeError("suggest() left no mapping in place")
        return self.mapping

    def _record(self, row_index: int, error_type: str, message: str) -> None:
        destination = self.mapping.destination.value if self.mapping is not None else ""
        row = row_index + 1 if row_index >= 0 else -1
        self.error_log.append(ErrorRecord.create(
            file=self.file_name,
            destination=destination,
            row=row,
            error_type=error_type,
            message=message,
        ))


def run_import(
    text: str,
    store: RecordStore,
    config: ImportConfig | None = None,
    *,
    destination: Destination | str | None = None,
    mapping: Mapping[str, str | None] | None = None,
    file_name: str = "<upload>",
    progress: ProgressCallback | None = None,
    cancel: CancelToken | None = None,
    error_log: ErrorLogBuffer | None = None,
) -> ImportReport:
    """One-shot import: suggest, apply ``mapping`` edits if any, run, flush the error log."""
    session = ImportSession(text, config, file_name=file_name, error_log=error_log)
    try:
        session.suggest(destination)
        if mapping:
            session.apply_override(mapping)
        return session.run(store, progress=progress, cancel=cancel)
    finally:
        session.error_log.flush()
