"""Hippocampus module - Fast Retrieval (System 1).

The hippocampus is crucial for:
- Encoding new memories
- Rapid, associative recall
- Forgetting what is no longer used

In Dualmem, this module handles:
- Ranking knowledge nodes by similarity, confidence, usage and age
- Usage scoring for eviction
- Confidence decay
- The concept graph arena and its clusters
"""

from .dynamics import RankingWeights, RetrievalDynamics, cosine_similarity
from .graph import ConceptGraph

__all__ = ["ConceptGraph", "RankingWeights", "RetrievalDynamics", "cosine_similarity"]
