from __future__ import annotations

import json
from pathlib import Path

import psycopg2
import pytest

from erp_import.cli.__main__ import EXIT_FATAL, EXIT_PARTIAL_FAILURE, EXIT_SUCCESS_ALL, main
from erp_import.logging.init import reset_logging

"""CLI runs in mock mode (DISABLE_DB_CONNECT=1) against files in a temp workdir."""

CLEAN_CUSTOMERS = (
    "Nome;CNPJ;Município\n"
    "Loja Alfa;12.345.678/0001-90;Curitiba\n"
    "Loja Beta;98.765.432/0001-10;Londrina\n"
)


@pytest.fixture()
def mock_mode(monkeypatch, temp_workdir: Path) -> Path:
    monkeypatch.setenv("DISABLE_DB_CONNECT", "1")
    reset_logging()
    yield temp_workdir
    reset_logging()


def _write(workdir: Path, name: str, text: str) -> Path:
    path = workdir / "data" / name
    path.write_text(text, encoding="utf-8")
    return path


def test_clean_file_exits_zero(mock_mode: Path, capsys) -> None:
    path = _write(mock_mode, "clientes.csv", CLEAN_CUSTOMERS)
    code = main([str(path)])
    out = capsys.readouterr().out
    assert code == EXIT_SUCCESS_ALL
    assert "mode=mock table=clientes" in out
    summary = [line for line in out.splitlines() if line.startswith("SUMMARY ")]
    assert len(summary) == 1
    assert "destination=customers rows=2 inserted=2" in summary[0]
    assert not list((mock_mode / "logs").glob("errors-*.log"))


def test_invalid_row_exits_two_and_writes_error_log(
    mock_mode: Path, customers_csv: str, capsys
) -> None:
    path = _write(mock_mode, "clientes.csv", customers_csv)
    code = main([str(path)])
    out = capsys.readouterr().out
    assert code == EXIT_PARTIAL_FAILURE
    assert "invalid=1" in out
    assert 'WARN row 3: Required field "Nome" is empty' in out

    logs = list((mock_mode / "logs").glob("errors-*.log"))
    assert len(logs) == 1
    record = json.loads(logs[0].read_text(encoding="utf-8").splitlines()[0])
    assert record["file"] == "clientes.csv"
    assert record["row"] == 3
    assert record["error_type"] == "VALIDATION_ERROR"
    assert "error log written" in out


def test_empty_file_is_fatal(mock_mode: Path, capsys) -> None:
    path = _write(mock_mode, "vazio.csv", "")
    assert main([str(path)]) == EXIT_FATAL
    assert "ERROR parse:" in capsys.readouterr().out
    logs = list((mock_mode / "logs").glob("errors-*.log"))
    assert json.loads(logs[0].read_text(encoding="utf-8"))["error_type"] == "PARSE_ERROR"


def test_missing_input_file_is_fatal(mock_mode: Path, capsys) -> None:
    assert main([str(mock_mode / "data" / "nope.csv")]) == EXIT_FATAL
    assert "cannot read" in capsys.readouterr().out


def test_missing_explicit_config_is_fatal(mock_mode: Path, capsys) -> None:
    path = _write(mock_mode, "clientes.csv", CLEAN_CUSTOMERS)
    assert main([str(path), "--config", "config/missing.yml"]) == EXIT_FATAL
    assert "config file not found" in capsys.readouterr().out


def test_default_config_file_is_used(mock_mode: Path, write_config: Path, capsys) -> None:
    path = _write(mock_mode, "clientes.csv", CLEAN_CUSTOMERS)
    assert main([str(path), "--debug"]) == EXIT_SUCCESS_ALL
    out = capsys.readouterr().out
    assert "DEBUG debug mode enabled" in out
    # batch_size 2 from the config -> one batch for two rows
    assert "batches=1/1" in out


def test_mapping_file_overrides(mock_mode: Path, capsys) -> None:
    path = _write(mock_mode, "clientes.csv", CLEAN_CUSTOMERS)
    mapping = mock_mode / "config" / "mapping.yml"
    mapping.write_text("Município: CIDADE\n", encoding="utf-8")
    assert main([str(path), "--mapping", str(mapping)]) == EXIT_FATAL
    assert "does not exist in destination" in capsys.readouterr().out

    mapping.write_text("Município:\n", encoding="utf-8")
    assert main([str(path), "--mapping", str(mapping)]) == EXIT_SUCCESS_ALL


def test_bad_mapping_file_is_fatal(mock_mode: Path, capsys) -> None:
    path = _write(mock_mode, "clientes.csv", CLEAN_CUSTOMERS)
    mapping = mock_mode / "config" / "mapping.yml"
    mapping.write_text("- not\n- a mapping\n", encoding="utf-8")
    assert main([str(path), "--mapping", str(mapping)]) == EXIT_FATAL
    assert "mapping root must be a mapping" in capsys.readouterr().out


def test_inspect_prints_suggestion_and_preview(mock_mode: Path, sales_csv: str, capsys) -> None:
    path = _write(mock_mode, "vendas.csv", sales_csv)
    assert main([str(path), "--inspect"]) == EXIT_SUCCESS_ALL
    out = capsys.readouterr().out
    assert "destination: sales (confidence 1.00)" in out
    assert "Nota [number] -> Número da Nota Fiscal" in out
    assert "2023-12-25" in out
    assert "SUMMARY" not in out


def test_destination_flag(mock_mode: Path, capsys) -> None:
    path = _write(mock_mode, "itens.csv", "Descr. Produto,Cód. Referência\nParafuso,PX-10\n")
    assert main([str(path), "--destination", "catalog"]) == EXIT_SUCCESS_ALL
    assert "destination=catalog" in capsys.readouterr().out


def test_database_unreachable_is_fatal(monkeypatch, temp_workdir: Path, capsys) -> None:
    monkeypatch.delenv("DISABLE_DB_CONNECT", raising=False)
    monkeypatch.setenv("DATABASE_URL", "postgresql://nobody@127.0.0.1:1/none")

    def fail(dsn):
        raise psycopg2.OperationalError("could not connect to server")

    monkeypatch.setattr(psycopg2, "connect", fail)
    reset_logging()
    path = _write(temp_workdir, "clientes.csv", CLEAN_CUSTOMERS)
    try:
        assert main([str(path)]) == EXIT_FATAL
    finally:
        reset_logging()
    assert "cannot connect to PostgreSQL" in capsys.readouterr().out
