"""Neocortex module - Pattern Recognition & Abstraction.

The neocortex is responsible for:
- Higher-order cognitive functions
- Pattern recognition and generalization
- Recognising what not to do

In Dualmem, this module handles:
- Code pattern extraction and near-duplicate merging
- Anti-pattern detection
- Best practice and template registries
"""

from .patterns import PatternLibrary, default_anti_patterns

__all__ = ["PatternLibrary", "default_anti_patterns"]
