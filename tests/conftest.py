"""Pytest fixtures for Dualmem tests."""

from __future__ import annotations

import os
import tempfile
from collections.abc import Generator
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from dualmem.config import Config, System1Config, reset_config
from dualmem.container import Container, reset_container


class FakeClock:
    """Deterministic clock shared by every component under test."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def temp_data_dir() -> Generator[Path, None, None]:
    """Create a temporary data directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def test_config(temp_data_dir: Path) -> Generator[Config, None, None]:
    """Create a test configuration with small embeddings."""
    config = Config(
        data_dir=temp_data_dir,
        snapshot_name="test_snapshot.json",
        system1=System1Config(embedding_dimension=4),
    )
    yield config


@pytest.fixture
def container(test_config: Config, clock: FakeClock) -> Generator[Container, None, None]:
    """Create a test container with isolated dependencies."""
    # Reset any global state
    reset_config()
    reset_container()

    container = Container.create(test_config, clock=clock)
    yield container

    # Cleanup
    container.close()
    reset_container()
    reset_config()


@pytest.fixture(autouse=True)
def set_test_env(temp_data_dir: Path) -> Generator[None, None, None]:
    """Set environment variables for tests."""
    old_env = os.environ.get("DUALMEM_DATA_DIR")
    os.environ["DUALMEM_DATA_DIR"] = str(temp_data_dir)
    yield
    if old_env:
        os.environ["DUALMEM_DATA_DIR"] = old_env
    else:
        os.environ.pop("DUALMEM_DATA_DIR", None)
