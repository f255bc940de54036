"""Unit tests for server module helpers."""

from __future__ import annotations

from datetime import datetime, timezone

from dualmem.domain.models import CommandHistory, MemoryResponse, ResponseSource
from dualmem.server import _format_response, _serialize

NOW = datetime(2024, 1, 1, tzinfo=timezone.utc)


class TestSerialize:
    """Tests for _serialize helper function."""

    def test_model_to_dict(self):
        """Models become JSON-friendly dicts."""
        result = _serialize(CommandHistory(command="ls", last_used=NOW))

        assert result["command"] == "ls"
        assert result["last_used"] == "2024-01-01T00:00:00Z"

    def test_nested_containers(self):
        """Lists and dicts are walked recursively."""
        entry = CommandHistory(command="ls", last_used=NOW)

        result = _serialize({"items": [entry], "count": 1})

        assert result["count"] == 1
        assert result["items"][0]["command"] == "ls"

    def test_scalars_unchanged(self):
        """Plain values pass through."""
        assert _serialize("text") == "text"
        assert _serialize(None) is None


class TestFormatResponse:
    """Tests for _format_response helper function."""

    def test_successful_response(self):
        """A response without error is a success."""
        response = MemoryResponse(
            data=[CommandHistory(command="ls", last_used=NOW)],
            source=ResponseSource.BOTH,
            confidence=0.123456,
            latency_ms=1.23456,
        )

        result = _format_response(response)

        assert result["success"] is True
        assert result["source"] == "both"
        assert result["confidence"] == 0.123
        assert result["latency_ms"] == 1.235
        assert result["data"][0]["command"] == "ls"

    def test_degraded_response(self):
        """A response with an error is reported as a failure."""
        response = MemoryResponse(source=ResponseSource.SYSTEM1, error="index corrupted")

        result = _format_response(response)

        assert result["success"] is False
        assert result["error"] == "index corrupted"
        assert result["data"] == []
