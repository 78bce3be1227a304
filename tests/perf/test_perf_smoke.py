from __future__ import annotations

import time
from pathlib import Path

from erp_import.db.store import InMemoryStore
from erp_import.models.config_models import ImportConfig
from erp_import.services.orchestrator import run_import

"""Performance smoke test: a few thousand sales rows through the in-memory store."""

ROWS = 5_000


def _sales_export(rows: int) -> str:
    lines = ["Número da Nota Fiscal;Data de Emissao da NF;Quantidade;total;CIDADE"]
    for i in range(rows):
        lines.append(f"{100_000 + i};{(i % 28) + 1:02d}/03/2024;{i % 7 + 1};R$ 1.{i % 1000:03d},50;Curitiba")
    return "\n".join(lines) + "\n"


def test_perf_smoke(tmp_path: Path):
    text = _sales_export(ROWS)
    store = InMemoryStore(unique_keys={"vendas": "Número da Nota Fiscal"})
    cfg = ImportConfig(batch_size=500, logs_directory=str(tmp_path / "logs"))

    start = time.perf_counter()
    report = run_import(text, store, cfg, file_name="vendas.csv")
    elapsed = time.perf_counter() - start

    assert report.inserted_count == ROWS
    assert report.total_batches == ROWS // 500
    assert store.insert_calls == ROWS // 500
    # lenient so CI stays green on slow runners
    assert elapsed < 30, f"import too slow: {elapsed:.3f}s"
    assert ROWS / elapsed > 200
