"""Brain-inspired cognitive modules for Dualmem.

This package organizes the algorithms behind the two memory systems
using neuroscience-inspired naming:

## Module Structure

### hippocampus/ - Fast Retrieval (System 1)
- Similarity/confidence/usage/age ranking
- Usage-based eviction scoring and decay
- Concept graph arena and clustering

### neocortex/ - Pattern Recognition (System 1)
- Code pattern extraction and merging
- Anti-pattern detection
- Best practices and templates

### prefrontal/ - Deliberate Evaluation (System 2)
- Code and reasoning quality scoring
- Evidence-weighted decision trees

## Design Philosophy

The stores in ``domain/services`` own state and locking; the modules
here are the calculations they delegate to:

- **Hippocampus**: What do we recall first, and what do we forget?
- **Neocortex**: What recurs, and what should be avoided?
- **Prefrontal**: How good was the reasoning, and what should we decide?
"""

from .hippocampus import ConceptGraph, RetrievalDynamics
from .neocortex import PatternLibrary
from .prefrontal import HeuristicCodeScorer, HeuristicReasoningScorer

__all__ = [
    "ConceptGraph",
    "HeuristicCodeScorer",
    "HeuristicReasoningScorer",
    "PatternLibrary",
    "RetrievalDynamics",
]
