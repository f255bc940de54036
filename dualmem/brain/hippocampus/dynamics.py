"""Retrieval Dynamics - ranking, usage and decay for knowledge nodes.

Implements the System 1 retrieval model that tracks:
- last_accessed: When was this node last retrieved?
- access_count: How many times has it been retrieved?
- confidence: How much do we trust it?

These metrics drive the ranking score

    w1 * similarity + w2 * confidence + w3 * usage - w4 * age

and the eviction score ``confidence * recency * log(1 + access_count)``.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from datetime import datetime, timezone

import numpy as np

_TOKEN_RE = re.compile(r"[a-z0-9_]+")


def cosine_similarity(embedding1: list[float], embedding2: list[float]) -> float:
    """Compute cosine similarity between two embeddings.

    Returns 0.0 for empty, zero-norm or mismatched vectors.
    """
    if not embedding1 or not embedding2 or len(embedding1) != len(embedding2):
        return 0.0

    vec1 = np.asarray(embedding1, dtype=float)
    vec2 = np.asarray(embedding2, dtype=float)

    norm1 = np.linalg.norm(vec1)
    norm2 = np.linalg.norm(vec2)
    if norm1 == 0 or norm2 == 0:
        return 0.0

    return float(np.dot(vec1, vec2) / (norm1 * norm2))


def centroid(embeddings: list[list[float]]) -> list[float]:
    """Mean vector of equally sized embeddings (empty if none)."""
    vectors = [e for e in embeddings if e]
    if not vectors:
        return []
    return np.mean(np.asarray(vectors, dtype=float), axis=0).tolist()


def weighted_average(embeddings: list[list[float]], weights: list[float]) -> list[float]:
    """Weighted mean vector; falls back to the plain centroid on zero weight."""
    pairs = [(e, w) for e, w in zip(embeddings, weights) if e]
    if not pairs:
        return []
    total = sum(w for _, w in pairs)
    if total <= 0:
        return centroid([e for e, _ in pairs])
    matrix = np.asarray([e for e, _ in pairs], dtype=float)
    w = np.asarray([w for _, w in pairs], dtype=float)
    return (w @ matrix / total).tolist()


def tokenize(text: str) -> set[str]:
    return set(_TOKEN_RE.findall(text.lower()))


def lexical_similarity(query: str, text: str) -> float:
    """Jaccard overlap of word tokens, used when no embedding is given."""
    query_tokens = tokenize(query)
    text_tokens = tokenize(text)
    if not query_tokens or not text_tokens:
        return 0.0
    return len(query_tokens & text_tokens) / len(query_tokens | text_tokens)


def _ensure_aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def days_between(earlier: datetime, later: datetime) -> float:
    """Non-negative number of days from ``earlier`` to ``later``."""
    delta = _ensure_aware(later) - _ensure_aware(earlier)
    return max(delta.total_seconds() / 86400, 0.0)


@dataclass
class RankingWeights:
    """Weights for the System 1 ranking score."""

    similarity: float = 0.5
    confidence: float = 0.2
    usage: float = 0.2
    age: float = 0.1

    def __post_init__(self) -> None:
        """Validate weights sum to 1.0."""
        total = self.similarity + self.confidence + self.usage + self.age
        if not (0.99 <= total <= 1.01):
            raise ValueError(f"Weights must sum to 1.0, got {total}")


class RetrievalDynamics:
    """Handles ranking and decay calculations for knowledge nodes.

    This class encapsulates the logic for:
    - Computing recency and age from time since last access
    - Computing sub-linear usage scores from access counts
    - Combining them into ranking and eviction scores
    - Decaying confidence over time
    """

    def __init__(
        self,
        weights: RankingWeights | None = None,
        decay_half_life_days: float = 30.0,
    ) -> None:
        """Initialize retrieval dynamics.

        Args:
            weights: Weights for the ranking score components
            decay_half_life_days: Half-life for recency decay (default 30 days)
        """
        self.weights = weights or RankingWeights()
        self.decay_half_life_days = decay_half_life_days

    def compute_recency(self, last_accessed: datetime, now: datetime) -> float:
        """Recency between 0.0 and 1.0, halving every half-life."""
        days = days_between(last_accessed, now)
        # 0.693 is ln(2)
        return math.exp(-0.693 * days / self.decay_half_life_days)

    def compute_age(self, last_accessed: datetime, now: datetime) -> float:
        """Age penalty between 0.0 (just accessed) and 1.0."""
        return 1.0 - self.compute_recency(last_accessed, now)

    def compute_usage(self, access_count: int, max_access_count: int) -> float:
        """Sub-linear usage score between 0.0 and 1.0."""
        if max_access_count <= 0:
            return 0.0
        return math.log1p(access_count) / math.log1p(max_access_count)

    def compute_rank(
        self,
        similarity: float,
        confidence: float,
        usage: float,
        age: float,
    ) -> float:
        return (
            self.weights.similarity * similarity
            + self.weights.confidence * confidence
            + self.weights.usage * usage
            - self.weights.age * age
        )

    def compute_eviction_score(
        self,
        confidence: float,
        last_accessed: datetime,
        access_count: int,
        now: datetime,
    ) -> tuple[float, float]:
        """Sort key used to pick eviction victims (lowest goes first).

        The primary score is ``confidence * recency * log(1 + count)``;
        never-accessed nodes all score zero, so ``confidence * recency``
        orders them.
        """
        recency = self.compute_recency(last_accessed, now)
        return (confidence * recency * math.log1p(access_count), confidence * recency)

    @staticmethod
    def decay(value: float, rate: float, days: float, floor: float = 0.1) -> float:
        """Exponentially decay ``value`` by ``rate`` per day, never below floor."""
        if value <= floor:
            return value
        return max(value * math.exp(-rate * days), floor)
