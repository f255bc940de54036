"""Domain services for Dualmem.

- System1Store: fast, similarity-ranked memory
- System2Store: deliberate reasoning memory
- DualMemoryEngine: query routing, caching and event ingestion
- MemoryCoordinator: synchronization, optimization and conflicts
"""

from .coordinator import MemoryCoordinator
from .engine import DualMemoryEngine, StrategyDecision
from .system1 import System1Store
from .system2 import System2Store

__all__ = [
    "DualMemoryEngine",
    "MemoryCoordinator",
    "StrategyDecision",
    "System1Store",
    "System2Store",
]
