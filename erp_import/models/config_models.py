from __future__ import annotations

from dataclasses import dataclass, field

from .schema_models import Destination

"""Config dataclasses for the ERP export import engine.

The loader in erp_import.config.loader builds these from config/import.yml;
every key is optional and falls back to the defaults declared here.
"""

DEFAULT_TABLES: dict[Destination, str] = {
    Destination.SALES: "vendas",
    Destination.CUSTOMERS: "clientes",
    Destination.CATALOG: "itens",
}


@dataclass(frozen=True)
class DatabaseConfig:
    """Database connection configuration.

    Used as fallback when environment variables are not set.
    Environment variables take precedence over these values.
    """
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class ImportConfig:
    """Root configuration object for an import job."""
    batch_size: int = 100  # rows per insert call
    existence_chunk_size: int = 100  # keys per existence query
    min_mapping_score: float = 5.0  # header left unmapped at or below this score
    low_confidence_threshold: float = 0.3  # classification below this is reported as ambiguous
    preview_rows: int = 5
    error_list_limit: int = 20  # per-row messages kept in the report
    flag_in_file_duplicates: bool = False
    merge_existing_records: bool = True  # fold new phones into stored customers
    retry_failed_batch_rows: bool = False
    tables: dict[Destination, str] = field(default_factory=lambda: dict(DEFAULT_TABLES))
    logs_directory: str = "./logs"
    database: DatabaseConfig = field(default_factory=DatabaseConfig)

    def table_for(self, destination: Destination) -> str:
        return self.tables.get(destination, DEFAULT_TABLES[destination])
