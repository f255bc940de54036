"""Prefrontal module - Deliberate Evaluation (System 2).

The prefrontal cortex is responsible for:
- Executive functions
- Planning and decision making
- Judging the quality of one's own reasoning

In Dualmem, this module handles:
- Pluggable code and reasoning quality scorers
- Evidence aggregation for decision nodes
- Read-only decision tree evaluation
"""

from .decisions import aggregate_confidence, evaluate_tree
from .scoring import (
    CodeQualityScorer,
    HeuristicCodeScorer,
    HeuristicReasoningScorer,
    ReasoningQualityScorer,
    ReasoningQualityWeights,
)

__all__ = [
    "CodeQualityScorer",
    "HeuristicCodeScorer",
    "HeuristicReasoningScorer",
    "ReasoningQualityScorer",
    "ReasoningQualityWeights",
    "aggregate_confidence",
    "evaluate_tree",
]
