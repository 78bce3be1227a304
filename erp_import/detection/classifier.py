from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from erp_import.mapping.similarity import (
    MODERATE_NAME_SIMILARITY,
    STRONG_NAME_SIMILARITY,
    best_keyword_similarity,
    normalize_name,
    similarity,
)
from erp_import.models.schema_models import Destination, SchemaDefinition
from erp_import.schema.registry import all_schemas

"""Destination classifier.

Every header is scored against every canonical field of every schema and the
points are summed per destination. The highest total wins; ties go to the
schema registered first. Confidence is the winner's margin over the runner-up
relative to the winner's score, so a near-tie reports a value close to 0.

A low confidence never blocks the job: it is returned as a
ClassificationAmbiguity notice for the caller to confirm or override.
"""

__all__ = [
    "CLASSIFIER_EXACT_POINTS",
    "CLASSIFIER_KEYWORD_WEIGHT",
    "CLASSIFIER_MODERATE_POINTS",
    "CLASSIFIER_STRONG_POINTS",
    "Classification",
    "ClassificationAmbiguity",
    "classify_headers",
    "score_destination",
]

logger = logging.getLogger(__name__)

CLASSIFIER_EXACT_POINTS = 10.0
CLASSIFIER_STRONG_POINTS = 5.0
CLASSIFIER_MODERATE_POINTS = 2.0
# Keywords only nudge the total; field names decide.
CLASSIFIER_KEYWORD_WEIGHT = 0.2


@dataclass(frozen=True)
class ClassificationAmbiguity:
    """Informational notice: the chosen destination barely beat the runner-up."""
    destination: Destination
    confidence: float
    runner_up: Destination | None

    @property
    def message(self) -> str:
        runner = self.runner_up.value if self.runner_up else "none"
        return (
            f"destination '{self.destination.value}' chosen with low confidence "
            f"{self.confidence:.2f} (runner-up: {runner})"
        )


@dataclass(frozen=True)
class Classification:
    destination: Destination
    confidence: float
    scores: dict[Destination, float] = field(default_factory=dict)
    ambiguity: ClassificationAmbiguity | None = None


def _header_points(header: str, schema: SchemaDefinition) -> float:
    normalized = normalize_name(header)
    points = 0.0
    for f in schema.fields:
        if normalized and normalized == normalize_name(f.name):
            points += CLASSIFIER_EXACT_POINTS
        else:
            sim = similarity(header, f.name)
            if sim > STRONG_NAME_SIMILARITY:
                points += CLASSIFIER_STRONG_POINTS
            elif sim > MODERATE_NAME_SIMILARITY:
                points += CLASSIFIER_MODERATE_POINTS
        points += CLASSIFIER_KEYWORD_WEIGHT * best_keyword_similarity(header, f.keywords)
    return points


def score_destination(headers: Sequence[str], schema: SchemaDefinition) -> float:
    """Aggregate fit of a header set to one schema."""
    return sum(_header_points(h, schema) for h in headers)


def classify_headers(
    headers: Sequence[str],
    low_confidence_threshold: float = 0.3,
    schemas: Sequence[SchemaDefinition] | None = None,
) -> Classification:
    """Pick the destination that best fits ``headers``.

    Args:
        headers: Input header row
        low_confidence_threshold: Confidence below this attaches a ClassificationAmbiguity
        schemas: Candidate schemas in tie-break order (default: the registry)

    Returns:
        Classification with per-destination scores and confidence in [0, 1]
    """
    candidates = tuple(schemas) if schemas is not None else all_schemas()
    scores = {s.destination: score_destination(headers, s) for s in candidates}

    # max() keeps the first of equal scores, i.e. registry order
    winner = max(scores, key=lambda d: scores[d])
    top = scores[winner]
    others = [d for d in scores if d != winner]
    runner_up = max(others, key=lambda d: scores[d]) if others else None
    second = scores[runner_up] if runner_up is not None else 0.0
    confidence = min((top - second) / top, 1.0) if top > 0 else 0.0

    ambiguity = None
    if confidence < low_confidence_threshold:
        ambiguity = ClassificationAmbiguity(
            destination=winner, confidence=confidence, runner_up=runner_up
        )
        logger.warning(ambiguity.message)
    logger.debug(
        "classification scores: %s",
        ", ".join(f"{d.value}={s:.1f}" for d, s in scores.items()),
    )
    return Classification(
        destination=winner, confidence=confidence, scores=scores, ambiguity=ambiguity
    )
