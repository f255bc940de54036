"""MCP Server for Dualmem."""

from __future__ import annotations

import logging
from typing import Any

from mcp.server.fastmcp import FastMCP
from pydantic import BaseModel

from .container import get_container
from .domain.exceptions import DualMemError

logger = logging.getLogger(__name__)


# =============================================================================
# Helper Functions
# =============================================================================


def _serialize(item: Any) -> Any:
    """Convert models (and lists of them) into JSON-friendly values."""
    if isinstance(item, BaseModel):
        return item.model_dump(mode="json")
    if isinstance(item, (list, tuple)):
        return [_serialize(i) for i in item]
    if isinstance(item, dict):
        return {k: _serialize(v) for k, v in item.items()}
    return item


def _format_response(response) -> dict[str, Any]:
    """Format a MemoryResponse for API output."""
    return {
        "success": response.error is None,
        "source": response.source.value,
        "confidence": round(response.confidence, 3),
        "latency_ms": round(response.latency_ms, 3),
        "cached": response.cached,
        "suggestions": response.suggestions,
        "error": response.error,
        "data": _serialize(response.data),
    }


# =============================================================================
# Server Setup
# =============================================================================

SERVER_INSTRUCTIONS = """\
Dualmem is a two-layer memory for coding sessions.

- System 1 answers fast: knowledge, code patterns, preferences.
- System 2 answers carefully: reasoning traces, quality, enhancements.

Store what happened with `dm_store_event` (or `dm_learn` for an
input/output outcome), ask with `dm_query` / `dm_recall`, and use
`dm_statistics` to see how both layers are doing.
"""

mcp = FastMCP(
    "dualmem",
    instructions=SERVER_INSTRUCTIONS,
)


# =============================================================================
# Tools
# =============================================================================


@mcp.tool(name="dm_ping")
def ping() -> dict[str, Any]:
    """Health check - verify Dualmem is running."""
    return {"status": "ok", "message": "Dualmem is operational"}


@mcp.tool(name="dm_store_event")
def store_event(
    kind: str,
    data: dict[str, Any] | None = None,
    reasoning: str | None = None,
    confidence: float = 0.8,
    tags: list[str] | None = None,
    source: str = "mcp",
) -> dict[str, Any]:
    """Queue a memory event for background processing.

    Args:
        kind: Event kind (code_generation, bug_fix, quality_improvement,
            team_interaction, learning_update, pattern_recognition, mode_change).
        data: Event payload.
        reasoning: Why it happened, if known.
        confidence: Confidence of the emitter (0-1).
        tags: Tags; ``knowledge`` also creates a knowledge node.
        source: Name of the emitting collaborator.
    """
    engine = get_container().engine
    try:
        event = engine.store(
            {
                "kind": kind,
                "data": data or {},
                "reasoning": reasoning,
                "metadata": {"confidence": confidence, "tags": tags or [], "source": source},
            }
        )
    except DualMemError as e:
        return {"success": False, "error": str(e)}
    return {"success": True, "event_id": event.id, "queue_size": engine.queue_size}


@mcp.tool(name="dm_query")
def query(
    query_type: str,
    query: str = "",
    context: dict[str, Any] | None = None,
    urgency: str = "medium",
    limit: int = 10,
) -> dict[str, Any]:
    """Query memory; the engine decides which layer answers.

    Args:
        query_type: knowledge, pattern, reasoning, quality or preference.
        query: Free-text query.
        context: Filters such as language, framework, domain or code.
        urgency: low, medium, high or critical.
        limit: Maximum number of results.
    """
    try:
        response = get_container().engine.query(
            {
                "type": query_type,
                "query": query,
                "context": context or {},
                "urgency": urgency,
                "limit": limit,
            }
        )
    except DualMemError as e:
        return {"success": False, "error": str(e)}
    return _format_response(response)


@mcp.tool(name="dm_learn")
def learn(
    input: str,
    output: str,
    context: dict[str, Any] | None = None,
    success: bool = True,
) -> dict[str, Any]:
    """Record the outcome of a request.

    Successful outcomes with a ``language`` in context are turned into
    code patterns straight away.
    """
    try:
        event = get_container().engine.learn(input, output, context or {}, success)
    except DualMemError as e:
        return {"success": False, "error": str(e)}
    return {"success": True, "event_id": event.id}


@mcp.tool(name="dm_recall")
def recall(query: str, query_type: str = "knowledge", limit: int = 10) -> dict[str, Any]:
    """Return raw hits for a query."""
    try:
        results = get_container().engine.recall(query, query_type, limit)
    except DualMemError as e:
        return {"success": False, "error": str(e)}
    return {"success": True, "results": _serialize(results)}


@mcp.tool(name="dm_statistics")
def statistics() -> dict[str, Any]:
    """Summaries of System 1, System 2, performance and coordination."""
    container = get_container()
    stats = container.engine.get_statistics()
    stats["coordination"] = container.coordinator.get_metrics().model_dump(mode="json")
    return {"success": True, **_serialize(stats)}


@mcp.tool(name="dm_synchronize")
def synchronize() -> dict[str, Any]:
    """Run one cross-layer synchronization now."""
    report = get_container().coordinator.run_sync_cycle()
    return {"success": report.success, **report.model_dump(mode="json")}


@mcp.tool(name="dm_optimize")
def optimize() -> dict[str, Any]:
    """Run one optimization and conflict-resolution cycle now."""
    result = get_container().coordinator.run_optimization_cycle()
    return {"success": True, **_serialize(result)}
