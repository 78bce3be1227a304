from __future__ import annotations

import argparse
import os
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import pandas as pd
import yaml
from dotenv import load_dotenv

from erp_import.config.loader import DEFAULT_CONFIG_PATH, ConfigError, default_config, load_config
from erp_import.db.postgres_store import PostgresStore, connect
from erp_import.db.store import InMemoryStore, RecordStore, StoreError, StoreUnavailableError
from erp_import.logging.error_log import ErrorLogBuffer, ErrorRecord
from erp_import.logging.init import log_summary, setup_logging
from erp_import.models.config_models import ImportConfig
from erp_import.models.mapping_result import MappingError
from erp_import.models.schema_models import Destination
from erp_import.parsing.reader import ParseError
from erp_import.schema.registry import all_schemas
from erp_import.services.batch_loader import ImportAborted
from erp_import.services.orchestrator import PARSE_ERROR, ImportSession, MappingSuggestion
from erp_import.services.progress import BatchProgressBar
from erp_import.services.summary import render_error_lines, render_summary_line

"""CLI entrypoint.

    python -m erp_import.cli FILE [--destination D] [--mapping M.yml]
                                  [--config PATH] [--inspect] [--debug]

Exit codes:
    0  every row of the file was inserted (or --inspect finished)
    2  the job ran but some rows were skipped, failed, or it was cancelled
    1  fatal: unreadable input, bad config or mapping, store unavailable
"""

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env with python-dotenv.

    override=True lets .env values replace variables already set in the
    process, so the connection settings in .env always win.
    """
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="ERP export -> database importer")
    p.add_argument("file", type=Path, help="Delimited text export (comma or semicolon)")
    p.add_argument(
        "--destination",
        choices=[d.value for d in Destination],
        help="Skip classification and load into this destination",
    )
    p.add_argument("--mapping", type=Path, help="YAML file of header: field overrides")
    p.add_argument("--config", type=Path, help=f"Config file (default {DEFAULT_CONFIG_PATH})")
    p.add_argument("--inspect", action="store_true", help="Print mapping suggestion and preview then exit")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    return p.parse_args(argv)


def _resolve_config(explicit: Path | None, logger) -> ImportConfig:
    if explicit is not None:
        return load_config(explicit)
    if DEFAULT_CONFIG_PATH.exists():
        return load_config(DEFAULT_CONFIG_PATH)
    logger.debug(f"{DEFAULT_CONFIG_PATH} not found -> using defaults")
    return default_config()


def _load_mapping_file(path: Path) -> dict[str, str | None]:
    """Read a ``header: field`` YAML mapping. Empty values unmap the header."""
    if not path.exists():
        raise MappingError(f"mapping file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise MappingError(f"invalid mapping yaml: {e}") from e
    if not isinstance(data, dict):
        raise MappingError(f"mapping root must be a mapping, got {type(data).__name__}")
    mapping: dict[str, str | None] = {}
    for header, field_name in data.items():
        if field_name is not None and not isinstance(field_name, str):
            raise MappingError(f"mapping for '{header}' must be a field name")
        mapping[str(header)] = field_name
    return mapping


@contextmanager
def _open_store(cfg: ImportConfig, logger) -> Iterator[tuple[RecordStore, str]]:
    """Yield (store, mode).

    DISABLE_DB_CONNECT=1 selects an empty in-memory store (mock mode);
    otherwise a PostgreSQL connection is required.
    """
    if os.getenv("DISABLE_DB_CONNECT") == "1":
        logger.debug("DB connect disabled via DISABLE_DB_CONNECT=1 -> mock mode")
        unique_keys = {cfg.table_for(s.destination): s.natural_key for s in all_schemas()}
        yield InMemoryStore(unique_keys=unique_keys), "mock"
        return
    with connect(cfg.database) as conn:
        yield PostgresStore(conn), "live"


def _print_suggestion(suggestion: MappingSuggestion, header_to_field) -> None:
    print(f"destination: {suggestion.destination.value} (confidence {suggestion.confidence:.2f})")
    for header, column_type in suggestion.column_types.items():
        target = header_to_field.get(header, "-")
        score = suggestion.scores.get(header)
        score_str = f" score={score:.1f}" if score is not None else ""
        print(f"  {header} [{column_type.value}] -> {target}{score_str}")


def _print_preview(session: ImportSession, store: RecordStore) -> None:
    preview = session.preview(store)
    if not preview:
        print("preview: no data rows")
        return
    records = []
    for p in preview:
        record = {"row": p.row_index + 1, **p.values}
        record["valid"] = p.valid
        record["duplicate"] = p.is_duplicate
        records.append(record)
    frame = pd.DataFrame.from_records(records)
    print(frame.to_string(index=False))
    for p in preview:
        for message in p.errors:
            print(f"  row {p.row_index + 1}: {message}")
        if p.duplicate_reason:
            print(f"  row {p.row_index + 1}: {p.duplicate_reason}")


def main(argv: list[str] | None = None) -> int:
    # None only when run as a script; tests pass an explicit list
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    logger = setup_logging(debug=args.debug)
    if args.debug:
        logger.debug("debug mode enabled")

    _load_env_file(Path(".env"), override=True)

    try:
        cfg = _resolve_config(args.config, logger)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    path: Path = args.file
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.error(f"cannot read {path}: {e}")
        return EXIT_FATAL

    error_log = ErrorLogBuffer(cfg.logs_directory)
    try:
        return _run(args, cfg, path, text, error_log, logger)
    finally:
        log_path = error_log.flush()
        if log_path is not None:
            logger.info(f"error log written: {log_path}")


def _run(args, cfg: ImportConfig, path: Path, text: str, error_log: ErrorLogBuffer, logger) -> int:
    try:
        session = ImportSession(text, cfg, file_name=path.name, error_log=error_log)
    except ParseError as e:
        error_log.append(ErrorRecord.create(
            file=path.name, destination=args.destination or "", row=-1, error_type=PARSE_ERROR, message=str(e)
        ))
        logger.error(f"parse: {e}")
        return EXIT_FATAL

    try:
        suggestion = session.suggest(args.destination)
        if args.mapping is not None:
            session.apply_override(_load_mapping_file(args.mapping))
    except MappingError as e:
        logger.error(f"mapping: {e}")
        return EXIT_FATAL

    logger.info(
        f"{path.name}: {len(session.table_data)} rows -> {suggestion.destination.value} "
        f"(confidence {suggestion.confidence:.2f})"
    )

    try:
        with _open_store(cfg, logger) as (store, mode):
            logger.info(f"mode={mode} table={session.table}")
            if args.inspect:
                _print_suggestion(suggestion, session.mapping.header_to_field)
                _print_preview(session, store)
                return EXIT_SUCCESS_ALL
            with BatchProgressBar(description=path.name) as bar:
                report = session.run(store, progress=bar)
    except ImportAborted as e:
        logger.error(f"aborted: {e} (inserted before abort: {e.outcome.inserted_count})")
        return EXIT_FATAL
    except (StoreUnavailableError, StoreError) as e:
        logger.error(f"store: {e}")
        return EXIT_FATAL

    # log_summary adds the "SUMMARY " label itself
    log_summary(render_summary_line(report).removeprefix("SUMMARY "))
    for line in render_error_lines(report):
        logger.warning(line)

    return EXIT_SUCCESS_ALL if report.fully_loaded else EXIT_PARTIAL_FAILURE


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
