"""Heuristic response scoring: quality, relevance and coherence.

Each scorer is a pure function returning an int in [0, 100]. Quality and
coherence start from a baseline of 50 and apply additive adjustments;
relevance is bag-of-words recall against the expected-behavior text.
These are auditable heuristics, not model-graded judgments.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

BASELINE = 50

# Code fences, headers, bold/italic, bullets, numbered lists.
MARKDOWN_RE = re.compile(r"```|#|\*\*|\*|-\s|\d+\.")
WORD_SPLIT_RE = re.compile(r"\W+", re.ASCII)
SENTENCE_SPLIT_RE = re.compile(r"[.!?]+")
CAPITALIZED_RE = re.compile(r"^[A-Z]")

CONNECTORS: tuple[str, ...] = (
    "however",
    "therefore",
    "additionally",
    "furthermore",
    "moreover",
    "consequently",
    "thus",
    "hence",
)


@dataclass(frozen=True)
class QualityScores:
    """All three heuristic scores for one response."""

    quality: int
    relevance: int
    coherence: int


def _clamp(score: float) -> int:
    return int(max(0, min(100, score)))


def calculate_quality_score(response: str, response_time_ms: float) -> int:
    """Score length, latency, structure and completeness of a response.

    Args:
        response: The full response text.
        response_time_ms: Wall-clock time to receive the whole response.

    Returns:
        Score in [0, 100].
    """
    score = BASELINE

    length = len(response)
    if 100 < length < 2000:
        score += 20
    elif 2000 <= length < 5000:
        score += 10
    elif length < 50:
        score -= 20
    elif length > 10000:
        score -= 10

    # Fast is good, instant is suspicious
    if 1000 < response_time_ms < 10000:
        score += 15
    elif response_time_ms < 500:
        score -= 10
    elif response_time_ms > 30000:
        score -= 15

    if MARKDOWN_RE.search(response):
        score += 10

    ends_abruptly = response.endswith("...") or len(response.strip()) < 50
    if not ends_abruptly:
        score += 5

    return _clamp(score)


def _significant_words(text: str) -> list[str]:
    return [w for w in WORD_SPLIT_RE.split(text.lower()) if len(w) > 3]


def calculate_relevance_score(response: str, expected_behavior: str | None) -> int:
    """Share of expected-behavior words (longer than 3 chars) found in the response.

    Returns 0 when there is no expected text or it has no significant words.
    """
    if not expected_behavior:
        return 0

    expected_words = _significant_words(expected_behavior)
    if not expected_words:
        return 0

    response_words = set(_significant_words(response))
    matches = sum(1 for word in expected_words if word in response_words)
    # Half-up rounding; matches is never negative
    return _clamp(int(matches / len(expected_words) * 100 + 0.5))


def calculate_coherence_score(response: str) -> int:
    """Score sentence length, vocabulary variety, capitalization and flow."""
    score = BASELINE

    sentences = [s for s in SENTENCE_SPLIT_RE.split(response) if s.strip()]
    if sentences:
        avg_sentence_length = sum(len(s) for s in sentences) / len(sentences)
        if 20 < avg_sentence_length < 150:
            score += 20

    # Leading or trailing punctuation leaves an empty token; it counts as a word
    words = WORD_SPLIT_RE.split(response.lower())
    unique_ratio = len(set(words)) / len(words)
    if unique_ratio > 0.5:
        score += 15
    elif unique_ratio < 0.3:
        score -= 15

    if CAPITALIZED_RE.match(response):
        score += 10

    lowered = response.lower()
    if any(connector in lowered for connector in CONNECTORS):
        score += 5

    return _clamp(score)


def score_response(
    response: str,
    response_time_ms: float,
    expected_behavior: str | None = None,
) -> QualityScores:
    """Compute quality, relevance and coherence for one response."""
    return QualityScores(
        quality=calculate_quality_score(response, response_time_ms),
        relevance=calculate_relevance_score(response, expected_behavior),
        coherence=calculate_coherence_score(response),
    )
