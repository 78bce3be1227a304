from __future__ import annotations

import re
import unicodedata
from collections.abc import Iterable

"""Text normalization and similarity scoring for header matching.

All weights and thresholds used by the classifier and the column mapper live
here so the heuristic can be tuned in one place. Their relative order is what
matters: exact name > token overlap with the field name > keyword overlap >
type compatibility.
"""

__all__ = [
    "EXACT_MATCH_SCORE",
    "EXACT_SIMILARITY",
    "KEYWORD_MULTIPLIER",
    "MIN_ACCEPTANCE_SCORE",
    "MODERATE_NAME_MULTIPLIER",
    "MODERATE_NAME_SIMILARITY",
    "STRONG_NAME_MULTIPLIER",
    "STRONG_NAME_SIMILARITY",
    "TYPE_COMPATIBILITY_BONUS",
    "best_keyword_similarity",
    "normalize_name",
    "similarity",
    "tokenize",
]

# Mapper score for a header whose normalized text equals the field name.
EXACT_MATCH_SCORE = 100.0

# similarity() result for two strings that normalize to the same text.
EXACT_SIMILARITY = 10.0
# Per-token weights inside similarity(); ratios are taken over the field's tokens.
EXACT_TOKEN_WEIGHT = 5.0
OVERLAP_WEIGHT = 2.0
PARTIAL_TOKEN_CREDIT = 0.5
# Tokens shorter than this carry no signal ("de", "da", "nf").
MIN_TOKEN_LENGTH = 3

# Name similarity bands and their multipliers in the mapper score.
STRONG_NAME_SIMILARITY = 5.0
MODERATE_NAME_SIMILARITY = 2.0
STRONG_NAME_MULTIPLIER = 10.0
MODERATE_NAME_MULTIPLIER = 5.0

KEYWORD_MULTIPLIER = 2.0
TYPE_COMPATIBILITY_BONUS = 1.0

# A header is left unmapped unless its best score is strictly above this.
MIN_ACCEPTANCE_SCORE = 5.0

_WHITESPACE = re.compile(r"\s+")


def normalize_name(text: str) -> str:
    """Casefold, strip diacritics and collapse whitespace.

    >>> normalize_name("  Número   da NOTA ")
    'numero da nota'
    """
    decomposed = unicodedata.normalize("NFD", text)
    stripped = "".join(ch for ch in decomposed if unicodedata.category(ch) != "Mn")
    return _WHITESPACE.sub(" ", stripped.casefold()).strip()


def tokenize(text: str) -> list[str]:
    return [t for t in normalize_name(text).split(" ") if len(t) >= MIN_TOKEN_LENGTH]


def similarity(header: str, target: str) -> float:
    """Token overlap score of ``header`` against ``target``.

    Every (target token, header token) pair is compared: identical tokens
    count fully, tokens where one contains the other count half. Both counts
    are divided by the number of target tokens, so a long field name needs a
    proportionally richer header to score high. Equal normalized strings
    score EXACT_SIMILARITY.
    """
    a = normalize_name(header)
    b = normalize_name(target)
    if not a or not b:
        return 0.0
    if a == b:
        return EXACT_SIMILARITY

    header_tokens = tokenize(a)
    target_tokens = tokenize(b)
    if not header_tokens or not target_tokens:
        return 0.0

    exact = 0.0
    matched = 0.0
    for token in target_tokens:
        for h in header_tokens:
            if h == token:
                exact += 1
                matched += 1
            elif token in h or h in token:
                matched += PARTIAL_TOKEN_CREDIT

    n = len(target_tokens)
    return exact / n * EXACT_TOKEN_WEIGHT + matched / n * OVERLAP_WEIGHT


def best_keyword_similarity(header: str, keywords: Iterable[str]) -> float:
    return max((similarity(header, k) for k in keywords), default=0.0)
