from __future__ import annotations

from pathlib import Path

import pytest

from erp_import.db.store import InMemoryStore
from erp_import.logging.error_log import ErrorLogBuffer
from erp_import.models.config_models import ImportConfig
from erp_import.models.schema_models import Destination
from erp_import.services.orchestrator import ImportSession, run_import
from erp_import.services.summary import render_summary_line

"""End-to-end import through the in-memory store.

Parses a raw export, classifies and maps it, validates, de-duplicates against
existing rows and loads the rest in batches.
"""

KEY = "Número da Nota Fiscal"


def test_short_sales_headers_end_to_end(sales_csv: str, sales_store: InMemoryStore, temp_workdir: Path):
    session = ImportSession(sales_csv, ImportConfig(batch_size=1), file_name="vendas.csv")
    suggestion = session.suggest()
    assert suggestion.destination == Destination.SALES
    assert suggestion.confidence == 1.0
    assert suggestion.destination_scores[Destination.CUSTOMERS] == 0
    assert suggestion.destination_scores[Destination.CATALOG] == 0
    # Intentional: several sales fields carry the "valor" keyword, and name
    # similarity breaks the tie in favour of "Valor do IPI", not "total".
    assert dict(suggestion.header_to_field) == {
        "Nota": KEY,
        "Data": "Data de Emissao da NF",
        "Valor": "Valor do IPI",
    }

    flags = session.check_duplicates(sales_store)
    assert [f.is_duplicate for f in flags] == [True, False, True]

    progress: list[tuple[int, str]] = []
    report = session.run(sales_store, progress=lambda p, m: progress.append((p, m)))
    assert report.inserted_count == 1
    assert report.duplicate_rows == 2
    assert progress == [(100, "Imported batch 1 of 1")]

    stored = sales_store.rows("vendas")
    assert stored[-1] == {
        KEY: "101",
        "Data de Emissao da NF": "2023-12-26",
        "Valor do IPI": 20.0,
    }
    assert render_summary_line(report).startswith(
        "SUMMARY destination=sales rows=3 inserted=1 updated=0 duplicates=2 invalid=0 failed=0"
    )


def test_semicolon_customers_export(customers_csv: str, temp_workdir: Path):
    store = InMemoryStore(unique_keys={"clientes": "CNPJ"})
    buf = ErrorLogBuffer(temp_workdir / "logs")
    report = run_import(customers_csv, store, ImportConfig(), file_name="clientes.csv", error_log=buf)
    assert report.destination == Destination.CUSTOMERS
    assert report.invalid_rows == 1
    assert report.inserted_count == 2
    assert [r["Município"] for r in store.rows("clientes")] == ["Curitiba", "Londrina"]
    assert list((temp_workdir / "logs").glob("errors-*.log"))


def test_second_run_finds_everything_already_loaded(customers_csv: str, temp_workdir: Path):
    store = InMemoryStore(unique_keys={"clientes": "CNPJ"})
    cfg = ImportConfig(logs_directory=str(temp_workdir / "logs"))
    first = run_import(customers_csv, store, cfg)
    second = run_import(customers_csv, store, cfg)
    assert first.inserted_count == 2
    assert second.inserted_count == 0
    assert second.duplicate_rows == 2
    assert second.failed_count == 0


def test_in_file_duplicates_when_enabled(temp_workdir: Path):
    text = "CNPJ;Nome\n11.111.111/0001-11;Alfa\n11111111000111;Alfa bis\n"
    store = InMemoryStore(unique_keys={"clientes": "CNPJ"})
    cfg = ImportConfig(flag_in_file_duplicates=True, logs_directory=str(temp_workdir / "logs"))
    report = run_import(text, store, cfg, destination="customers")
    assert report.inserted_count == 1
    assert report.duplicate_rows == 1
    assert "duplicated within the file" in report.errors[0]


def test_failed_batch_rows_retried_one_by_one(temp_workdir: Path):
    # without in-file checks the unique key rejects the whole batch
    text = "CNPJ;Nome\n1;A\n2;B\n1;C\n3;D\n"
    cfg = ImportConfig(batch_size=4, logs_directory=str(temp_workdir / "logs"))
    plain = run_import(text, InMemoryStore(unique_keys={"clientes": "CNPJ"}), cfg, destination="customers")
    assert plain.inserted_count == 0
    assert plain.failed_count == 4

    retry_cfg = ImportConfig(
        batch_size=4, retry_failed_batch_rows=True, logs_directory=str(temp_workdir / "logs")
    )
    retried = run_import(text, InMemoryStore(unique_keys={"clientes": "CNPJ"}), retry_cfg, destination="customers")
    assert retried.inserted_count == 3
    assert [f.row_index for f in retried.outcome.failed_rows] == [2]
    assert retried.errors == ['row 3: duplicate key value violates unique constraint on "CNPJ": 1']


@pytest.mark.parametrize("delimiter", [",", ";"])
def test_catalog_export(delimiter: str, temp_workdir: Path):
    header = delimiter.join(["Descr. Produto", "Cód. Referência", "Peso Bruto Kg"])
    row = delimiter.join(["Parafuso", "PX-10", "1.5"])
    store = InMemoryStore()
    report = run_import(
        f"{header}\n{row}\n",
        store,
        ImportConfig(logs_directory=str(temp_workdir / "logs")),
        destination="catalog",
    )
    assert report.destination == Destination.CATALOG
    assert store.rows("itens") == [
        {"Descr. Produto": "Parafuso", "Cód. Referência": "PX-10", "Peso Bruto Kg": 1.5}
    ]


def test_reimport_with_new_phone_updates_stored_customer(customers_csv: str, temp_workdir: Path):
    store = InMemoryStore(unique_keys={"clientes": "CNPJ"})
    cfg = ImportConfig(logs_directory=str(temp_workdir / "logs"))
    run_import(customers_csv, store, cfg)

    again = customers_csv.replace("(41) 3333-0000", "(41) 9988-7766")
    report = run_import(again, store, cfg)
    assert report.inserted_count == 0
    assert report.duplicate_rows == 2
    assert report.updated_rows == 1
    assert store.rows("clientes")[0]["Telefone"] == "(41) 3333-0000/(41) 9988-7766"
    assert "inserted=0 updated=1 duplicates=2" in render_summary_line(report)
