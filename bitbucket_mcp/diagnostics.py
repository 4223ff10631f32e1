from __future__ import annotations

from typing import Any, Dict

from bitbucket_mcp import config
from bitbucket_mcp.metrics import _metrics_snapshot

_LEVELS = {
    "CRITICAL": 50,
    "ERROR": 40,
    "WARNING": 30,
    "CHAT": 25,
    "INFO": 20,
    "DETAILED": config.DETAILED_LEVEL,
    "DEBUG": 10,
}


def get_recent_server_logs(limit: int = 100, min_level: str = "INFO") -> Dict[str, Any]:
    """Return recent in-memory server logs, newest first.

    Only records from the bitbucket_mcp logger namespace are captured.

    Notes:
        - If MCP_LOG_RECORD_CAPACITY <= 0, in-memory log capture is unbounded.
        - If limit <= 0, returns all available filtered logs.
    """

    min_level_upper = (min_level or "INFO").upper()
    min_level_value = _LEVELS.get(min_level_upper, _LEVELS["INFO"])

    filtered = [
        r
        for r in config.LOG_RECORD_HANDLER.records
        if _LEVELS.get(str(r.get("level", "INFO")).upper(), 20) >= min_level_value
    ]
    filtered.reverse()

    capacity = config.LOG_RECORD_CAPACITY
    limit_int = int(limit)
    if limit_int <= 0:
        limit_int = len(filtered)
    if capacity > 0:
        limit_int = min(capacity, limit_int)
    limit_int = max(1, limit_int)

    return {
        "limit": limit_int,
        "capacity": None if capacity <= 0 else capacity,
        "min_level": min_level_upper,
        "logs": filtered[:limit_int],
        "total_available": len(filtered),
    }


def get_server_diagnostics(limit: int = 100) -> Dict[str, Any]:
    """Metrics snapshot plus the most recent log records."""

    return {
        "metrics": _metrics_snapshot(),
        "server_logs": get_recent_server_logs(limit=limit, min_level="INFO"),
    }


__all__ = ["get_recent_server_logs", "get_server_diagnostics"]
