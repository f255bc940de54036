"""Unit tests for configuration."""

from __future__ import annotations

from pathlib import Path

from dualmem.config import Config, get_config, reset_config, section_field_names
from dualmem.domain.models import CacheStrategy, ConflictStrategy


class TestConfig:
    def test_defaults(self):
        """Defaults match the documented values."""
        config = Config()

        assert config.persist_snapshots is False
        assert config.system1.max_knowledge_nodes == 10000
        assert config.system2.quality_threshold == 0.7
        assert config.coordinator.conflict_resolution_strategy == ConflictStrategy.BALANCED
        assert config.performance.cache_strategy == CacheStrategy.LRU
        assert config.performance.cache_ttl == 600.0

    def test_snapshot_path(self, temp_data_dir):
        """The snapshot lives in the data directory."""
        config = Config(data_dir=temp_data_dir, snapshot_name="state.json")
        assert config.snapshot_path == temp_data_dir / "state.json"

    def test_section_lookup(self):
        """Sections are found by name; anything else is None."""
        config = Config()

        assert config.section("performance") is config.performance
        assert config.section("data_dir") is None
        assert "cache_ttl" in section_field_names(config.performance)


class TestFromEnv:
    def test_reads_environment(self, monkeypatch, temp_data_dir):
        """Environment variables override defaults."""
        monkeypatch.setenv("DUALMEM_DATA_DIR", str(temp_data_dir))
        monkeypatch.setenv("DUALMEM_PERSIST", "true")
        monkeypatch.setenv("DUALMEM_LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("DUALMEM_MAX_KNOWLEDGE_NODES", "50")
        monkeypatch.setenv("DUALMEM_QUALITY_THRESHOLD", "0.8")
        monkeypatch.setenv("DUALMEM_CONFLICT_STRATEGY", "system1_priority")
        monkeypatch.setenv("DUALMEM_CACHE_STRATEGY", "lfu")

        config = Config.from_env()

        assert config.data_dir == Path(temp_data_dir)
        assert config.persist_snapshots is True
        assert config.log_level == "DEBUG"
        assert config.system1.max_knowledge_nodes == 50
        assert config.system2.quality_threshold == 0.8
        assert config.coordinator.conflict_resolution_strategy == ConflictStrategy.SYSTEM1_PRIORITY
        assert config.performance.cache_strategy == CacheStrategy.LFU

    def test_persistence_off_by_default(self, monkeypatch):
        """Snapshots stay off unless enabled."""
        monkeypatch.delenv("DUALMEM_PERSIST", raising=False)
        assert Config.from_env().persist_snapshots is False


class TestGlobalConfig:
    def test_cached_until_reset(self):
        """The global config is built once until reset."""
        reset_config()
        first = get_config()

        assert get_config() is first
        reset_config()
        assert get_config() is not first
        reset_config()
