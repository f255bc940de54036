"""Configuration settings for Dualmem."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

from .domain.models.enums import CacheStrategy, ConflictStrategy


@dataclass
class System1Config:
    """Fast, pattern-matching store settings."""

    max_knowledge_nodes: int = 10000
    embedding_dimension: int = 384  # 0 disables the dimension check
    access_decay_rate: float = 0.05  # per day
    decay_half_life_days: float = 30.0
    reinforcement_step: float = 0.02
    pattern_merge_threshold: float = 0.9
    compression_threshold: float = 0.97
    cluster_similarity_threshold: float = 0.9
    max_command_history: int = 500
    max_sessions: int = 1000
    session_retention_days: int = 30
    anti_pattern_confidence_floor: float = 0.5
    seed_default_anti_patterns: bool = True


@dataclass
class System2Config:
    """Deliberate, reasoning-trace store settings."""

    max_reasoning_traces: int = 1000
    quality_threshold: float = 0.7
    max_reflections: int = 1000


@dataclass
class CoordinatorConfig:
    """Cross-layer coordinator settings."""

    sync_interval: float = 5.0  # seconds
    optimization_interval: float = 300.0  # seconds
    conflict_resolution_strategy: ConflictStrategy = ConflictStrategy.BALANCED
    learning_rate: float = 0.15
    adaptation_threshold: float = 0.7
    audit_retention: int = 100
    automation_risk_threshold: float = 3.0
    latency_target_ms: float = 100.0
    behavior_window: int = 50


@dataclass
class PerformanceConfig:
    """Query routing, caching and event-queue settings."""

    cache_ttl: float = 600.0  # seconds
    cache_strategy: CacheStrategy = CacheStrategy.LRU
    max_cache_entries: int = 1000
    cache_cleanup_interval: float = 300.0
    maintenance_interval: float = 900.0
    batch_size: int = 10
    drain_interval: float = 0.5
    strategy_margin: float = 0.2
    system1_blend_weight: float = 0.4
    system2_blend_weight: float = 0.6
    single_system_latency_ms: float = 50.0


@dataclass
class Config:
    """Dualmem configuration."""

    # Data storage
    data_dir: Path = field(default_factory=lambda: Path.home() / ".dualmem")
    snapshot_name: str = "dualmem_snapshot.json"
    persist_snapshots: bool = False

    log_level: str = "INFO"

    system1: System1Config = field(default_factory=System1Config)
    system2: System2Config = field(default_factory=System2Config)
    coordinator: CoordinatorConfig = field(default_factory=CoordinatorConfig)
    performance: PerformanceConfig = field(default_factory=PerformanceConfig)

    @property
    def snapshot_path(self) -> Path:
        """Get the full snapshot path."""
        return self.data_dir / self.snapshot_name

    def section(self, name: str) -> Any:
        """Return a config section by name, or None if there is no such section."""
        if name not in SECTION_NAMES:
            return None
        return getattr(self, name)

    @classmethod
    def from_env(cls) -> Config:
        """Load configuration from environment variables."""
        data_dir_str = os.environ.get("DUALMEM_DATA_DIR")
        data_dir = Path(data_dir_str) if data_dir_str else Path.home() / ".dualmem"

        return cls(
            data_dir=data_dir,
            snapshot_name=os.environ.get(
                "DUALMEM_SNAPSHOT_NAME", "dualmem_snapshot.json"
            ),
            persist_snapshots=os.environ.get("DUALMEM_PERSIST", "0").lower()
            in ("1", "true", "yes"),
            log_level=os.environ.get("DUALMEM_LOG_LEVEL", "INFO"),
            system1=System1Config(
                max_knowledge_nodes=int(
                    os.environ.get("DUALMEM_MAX_KNOWLEDGE_NODES", "10000")
                ),
                embedding_dimension=int(
                    os.environ.get("DUALMEM_EMBEDDING_DIMENSION", "384")
                ),
                pattern_merge_threshold=float(
                    os.environ.get("DUALMEM_PATTERN_MERGE_THRESHOLD", "0.9")
                ),
            ),
            system2=System2Config(
                max_reasoning_traces=int(
                    os.environ.get("DUALMEM_MAX_REASONING_TRACES", "1000")
                ),
                quality_threshold=float(
                    os.environ.get("DUALMEM_QUALITY_THRESHOLD", "0.7")
                ),
            ),
            coordinator=CoordinatorConfig(
                sync_interval=float(os.environ.get("DUALMEM_SYNC_INTERVAL", "5")),
                optimization_interval=float(
                    os.environ.get("DUALMEM_OPTIMIZATION_INTERVAL", "300")
                ),
                conflict_resolution_strategy=ConflictStrategy(
                    os.environ.get("DUALMEM_CONFLICT_STRATEGY", "balanced")
                ),
            ),
            performance=PerformanceConfig(
                cache_ttl=float(os.environ.get("DUALMEM_CACHE_TTL", "600")),
                cache_strategy=CacheStrategy(
                    os.environ.get("DUALMEM_CACHE_STRATEGY", "lru")
                ),
            ),
        )


SECTION_NAMES = ("system1", "system2", "coordinator", "performance")


def section_field_names(section: Any) -> set[str]:
    """Names of the fields a config section accepts."""
    return {f.name for f in fields(section)}


# Fields a hot reload must keep in range
_POSITIVE_FIELDS = frozenset(
    {
        "max_knowledge_nodes",
        "max_command_history",
        "max_sessions",
        "session_retention_days",
        "decay_half_life_days",
        "max_reasoning_traces",
        "max_reflections",
        "sync_interval",
        "optimization_interval",
        "audit_retention",
        "latency_target_ms",
        "behavior_window",
        "max_cache_entries",
        "cache_cleanup_interval",
        "maintenance_interval",
        "batch_size",
        "drain_interval",
        "single_system_latency_ms",
    }
)
_NON_NEGATIVE_FIELDS = frozenset(
    {"embedding_dimension", "access_decay_rate", "cache_ttl", "automation_risk_threshold"}
)
_UNIT_FIELDS = frozenset(
    {
        "reinforcement_step",
        "pattern_merge_threshold",
        "compression_threshold",
        "cluster_similarity_threshold",
        "anti_pattern_confidence_floor",
        "quality_threshold",
        "learning_rate",
        "adaptation_threshold",
        "strategy_margin",
        "system1_blend_weight",
        "system2_blend_weight",
    }
)


def check_field_bounds(name: str, value: Any) -> None:
    """Raise ValueError if ``value`` is out of range for field ``name``."""
    if name in _POSITIVE_FIELDS and not value > 0:
        raise ValueError(f"must be greater than 0, got {value}")
    if name in _NON_NEGATIVE_FIELDS and not value >= 0:
        raise ValueError(f"must not be negative, got {value}")
    if name in _UNIT_FIELDS and not 0 <= value <= 1:
        raise ValueError(f"must be between 0 and 1, got {value}")


# Module-level config instance
_config: Config | None = None


def get_config() -> Config:
    """Get the global config instance."""
    global _config
    if _config is None:
        _config = Config.from_env()
    return _config


def reset_config() -> None:
    """Reset the config (for testing)."""
    global _config
    _config = None
