# Shared pytest fixtures
from __future__ import annotations

import tempfile
from pathlib import Path

import pytest

from erp_import.db.store import InMemoryStore
from erp_import.logging.init import reset_logging


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """batch_size: 2
existence_chunk_size: 50
preview_rows: 3
error_list_limit: 10
logs_directory: ./logs
tables:
  sales: vendas
  customers: clientes
  catalog: itens
database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: appdb
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "import.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def sales_csv() -> str:
    return (
        "Nota,Data,Valor\n"
        '100,25/12/2023,"R$ 10,00"\n'
        '101,26/12/2023,"R$ 20,00"\n'
        '100,27/12/2023,"R$ 5,00"\n'
    )


@pytest.fixture()
def customers_csv() -> str:
    return (
        "Nome;CNPJ;Município;Telefone\n"
        "Loja Alfa;12.345.678/0001-90;Curitiba;(41) 3333-0000\n"
        "Loja Beta;98.765.432/0001-10;Londrina;(43) 3222-1111\n"
        ";11.111.111/0001-11;Maringá;\n"
    )


@pytest.fixture()
def sales_store() -> InMemoryStore:
    """Store where invoice "100" already exists."""
    store = InMemoryStore(unique_keys={"vendas": "Número da Nota Fiscal"})
    store.seed("vendas", [{"Número da Nota Fiscal": "100"}])
    return store


@pytest.fixture()
def clean_logging():
    reset_logging()
    yield
    reset_logging()
