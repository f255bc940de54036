"""Decision Evaluation - evidence aggregation and tree traversal."""

from __future__ import annotations

from typing import Any

from ...domain.models import (
    DecisionNode,
    DecisionResult,
    DecisionTree,
    Evidence,
    EvidenceType,
)

EVIDENCE_TYPE_WEIGHTS: dict[EvidenceType, float] = {
    EvidenceType.EMPIRICAL: 1.0,
    EvidenceType.USER_FEEDBACK: 0.9,
    EvidenceType.THEORETICAL: 0.7,
    EvidenceType.HEURISTIC: 0.5,
}

# Score of a node that has no evidence yet
NEUTRAL_STRENGTH = 0.5


def aggregate_confidence(evidence: list[Evidence]) -> float:
    """Noisy-OR over weighted evidence.

    ``1 - prod(1 - strength * type_weight)``: every piece of evidence
    raises confidence, with diminishing returns. No evidence gives the
    neutral 0.5.
    """
    if not evidence:
        return NEUTRAL_STRENGTH
    disbelief = 1.0
    for item in evidence:
        disbelief *= 1.0 - item.strength * EVIDENCE_TYPE_WEIGHTS[item.type]
    return min(max(1.0 - disbelief, 0.0), 1.0)


def evidence_strength(node: DecisionNode) -> float:
    if not node.evidence:
        return NEUTRAL_STRENGTH
    return sum(e.strength for e in node.evidence) / len(node.evidence)


def node_order(node_id: str) -> tuple[int, str]:
    """Sort key for node ids by creation index (``n9999`` before ``n10000``)."""
    digits = node_id[1:]
    return (int(digits) if digits.isdigit() else -1, node_id)


def condition_matches(node: DecisionNode, context: dict[str, Any]) -> bool:
    """All of the node's condition pairs must be present in the context."""
    return all(
        key in context and context[key] == value
        for key, value in node.condition.items()
    )


def evaluate_tree(tree: DecisionTree, context: dict[str, Any]) -> DecisionResult:
    """Walk from the root, taking the best eligible child at each level.

    A child is eligible when its condition matches the context. The best
    child has the highest ``confidence * evidence_strength``; ties go to
    the lowest node id. The walk stops at a node with no eligible
    children. The tree is not modified.
    """
    node = tree.nodes[tree.root_id]
    path = [node.id]
    score = node.confidence * evidence_strength(node)

    while True:
        eligible = [
            tree.nodes[child_id]
            for child_id in node.children
            if child_id in tree.nodes and condition_matches(tree.nodes[child_id], context)
        ]
        if not eligible:
            break
        node = min(
            eligible,
            key=lambda n: (-(n.confidence * evidence_strength(n)), node_order(n.id)),
        )
        score = node.confidence * evidence_strength(node)
        path.append(node.id)

    return DecisionResult(
        tree_id=tree.id,
        path=path,
        leaf_id=node.id,
        leaf_kind=node.kind,
        description=node.description,
        confidence=score,
    )
