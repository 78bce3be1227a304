from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""ErrorRecord model for the JSON Lines error log.

One record per rejected row (validation, duplicate, store failure) plus
job-level records with row=-1 when no specific row applies.
"""

__all__ = [
    "ErrorRecord",
]


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        file: Name of the imported file
        destination: Destination id (sales / customers / catalog)
        row: 1-based data row number. -1 for job-level errors
        error_type: Error classification in UPPER_SNAKE_CASE format
        message: Human-readable description (store message for STORE_ERROR)
    """
    timestamp: str
    file: str
    destination: str
    row: int
    error_type: str
    message: str

    @staticmethod
    def create(file: str, destination: str, row: int, error_type: str, message: str) -> ErrorRecord:
        """Create a new ErrorRecord stamped with the current UTC time."""
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            file=file,
            destination=destination,
            row=row,
            error_type=error_type,
            message=message,
        )

    def to_json_line(self) -> str:
        return json.dumps(asdict(self), ensure_ascii=False)
