from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence

from erp_import.mapping.similarity import (
    EXACT_MATCH_SCORE,
    KEYWORD_MULTIPLIER,
    MIN_ACCEPTANCE_SCORE,
    MODERATE_NAME_MULTIPLIER,
    MODERATE_NAME_SIMILARITY,
    STRONG_NAME_MULTIPLIER,
    STRONG_NAME_SIMILARITY,
    TYPE_COMPATIBILITY_BONUS,
    best_keyword_similarity,
    normalize_name,
    similarity,
)
from erp_import.models.mapping_result import MappingError, MappingResult
from erp_import.models.schema_models import CanonicalField, PrimitiveType, SchemaDefinition

"""Header -> canonical field assignment for a chosen destination.

Greedy: headers are visited in input order and each takes the best-scoring
field not yet claimed. A header whose name equals a field name (after
normalization) is reserved for that field before the greedy pass, so an exact
header always wins its field no matter where it sits in the header row.

The result is a suggestion; apply_mapping_override() replaces it with a
caller-edited mapping after checking headers and fields exist.
"""

__all__ = [
    "apply_mapping_override",
    "map_columns",
    "score_field",
]

logger = logging.getLogger(__name__)


def score_field(
    header: str,
    canonical: CanonicalField,
    column_type: PrimitiveType | None = None,
) -> float:
    """Combined match score of one header against one canonical field."""
    if normalize_name(header) == normalize_name(canonical.name):
        score = EXACT_MATCH_SCORE
    else:
        score = 0.0
        name_sim = similarity(header, canonical.name)
        if name_sim > STRONG_NAME_SIMILARITY:
            score += name_sim * STRONG_NAME_MULTIPLIER
        elif name_sim > MODERATE_NAME_SIMILARITY:
            score += name_sim * MODERATE_NAME_MULTIPLIER

    score += best_keyword_similarity(header, canonical.keywords) * KEYWORD_MULTIPLIER

    if column_type is not None and column_type in canonical.accepted_types:
        score += TYPE_COMPATIBILITY_BONUS
    return score


def map_columns(
    headers: Sequence[str],
    schema: SchemaDefinition,
    column_types: Mapping[str, PrimitiveType] | None = None,
    min_score: float = MIN_ACCEPTANCE_SCORE,
    confidence: float = 0.0,
) -> tuple[MappingResult, dict[str, float]]:
    """Suggest a one-to-one mapping of ``headers`` onto ``schema``.

    Args:
        headers: Input headers in file order
        schema: Destination schema chosen by the classifier (or the caller)
        column_types: Detected type per header, used for the compatibility bonus
        min_score: Headers whose best score is not above this stay unmapped
        confidence: Classification confidence carried into the result

    Returns:
        (MappingResult, best score per mapped header)
    """
    column_types = column_types or {}
    by_name = {normalize_name(f.name): f.name for f in schema.fields}

    # Exact names are reserved up front; the first header wins a repeated name
    reserved: dict[str, str] = {}
    for header in headers:
        field_name = by_name.get(normalize_name(header))
        if field_name is not None and field_name not in reserved.values():
            reserved[header] = field_name

    claimed = set(reserved.values())
    header_to_field: dict[str, str] = {}
    scores: dict[str, float] = {}

    for header in headers:
        if header in reserved:
            field_name = reserved[header]
            header_to_field[header] = field_name
            scores[header] = score_field(header, schema.get_field(field_name), column_types.get(header))
            continue

        best_field: str | None = None
        best_score = 0.0
        for canonical in schema.fields:
            if canonical.name in claimed:
                continue
            score = score_field(header, canonical, column_types.get(header))
            if score > best_score:
                best_field, best_score = canonical.name, score

        if best_field is not None and best_score > min_score:
            header_to_field[header] = best_field
            scores[header] = best_score
            claimed.add(best_field)
        else:
            logger.debug("header '%s' left unmapped (best score %.2f)", header, best_score)

    result = MappingResult(
        destination=schema.destination,
        header_to_field=header_to_field,
        confidence=confidence,
    )
    return result, scores


def apply_mapping_override(
    schema: SchemaDefinition,
    override: Mapping[str, str | None],
    headers: Sequence[str],
    confidence: float = 1.0,
) -> MappingResult:
    """Build a MappingResult from a caller-edited header -> field map.

    A value of None or "" leaves the header unmapped.

    Raises:
        MappingError: unknown header, unknown field, or a field assigned twice
    """
    known_headers = set(headers)
    header_to_field: dict[str, str] = {}
    for header, field_name in override.items():
        if header not in known_headers:
            raise MappingError(f"header '{header}' is not present in the input")
        if not field_name:
            continue
        if not schema.has_field(field_name):
            raise MappingError(
                f"field '{field_name}' does not exist in destination '{schema.destination.value}'"
            )
        header_to_field[header] = field_name
    return MappingResult(
        destination=schema.destination,
        header_to_field=header_to_field,
        confidence=confidence,
    )
