"""Configuration and logging helpers for the Bitbucket MCP server."""

from __future__ import annotations

import logging
import os
from collections import deque

# Custom log levels
# ------------------------------------------------------------------------------
#
# CHAT: user-facing progress messages (branch created, commit submitted).
# DETAILED: more than INFO, less noisy than full DEBUG.

DETAILED_LEVEL = 15
CHAT_LEVEL = 25


def _install_custom_log_levels() -> None:
    if not hasattr(logging, "DETAILED"):
        logging.addLevelName(DETAILED_LEVEL, "DETAILED")
        setattr(logging, "DETAILED", DETAILED_LEVEL)

    if not hasattr(logging, "CHAT"):
        logging.addLevelName(CHAT_LEVEL, "CHAT")
        setattr(logging, "CHAT", CHAT_LEVEL)

    # logger.chat(...), logger.detailed(...)
    if not hasattr(logging.Logger, "detailed"):
        def detailed(self: logging.Logger, msg, *args, **kwargs):
            if self.isEnabledFor(DETAILED_LEVEL):
                self._log(DETAILED_LEVEL, msg, args, **kwargs)
        logging.Logger.detailed = detailed  # type: ignore[attr-defined]

    if not hasattr(logging.Logger, "chat"):
        def chat(self: logging.Logger, msg, *args, **kwargs):
            if self.isEnabledFor(CHAT_LEVEL):
                self._log(CHAT_LEVEL, msg, args, **kwargs)
        logging.Logger.chat = chat  # type: ignore[attr-defined]


def _resolve_log_level(level_name: str | None) -> int:
    if not level_name:
        return logging.INFO

    name = str(level_name).strip().upper()
    if not name:
        return logging.INFO

    if name.lstrip("-").isdigit():
        return int(name)

    if name == "DETAILED":
        return DETAILED_LEVEL
    if name == "CHAT":
        return CHAT_LEVEL

    return getattr(logging, name, logging.INFO)


def _parse_branch_list(raw: str | None) -> frozenset[str]:
    """Parse a comma separated branch list, ignoring blanks."""

    if not raw:
        return frozenset()
    return frozenset(part.strip() for part in raw.split(",") if part.strip())


def _env_str(name: str, default: str | None = None) -> str | None:
    value = os.environ.get(name)
    if value is None:
        return default
    value = value.strip()
    return value or default


_install_custom_log_levels()

# Configuration and globals
# ------------------------------------------------------------------------------

BITBUCKET_API_BASE = os.environ.get("BITBUCKET_API_BASE", "https://api.bitbucket.org/2.0")
BITBUCKET_WEB_BASE = os.environ.get("BITBUCKET_WEB_BASE", "https://bitbucket.org")

# Checked in order; the first one that is set wins (even when blank).
BITBUCKET_TOKEN_ENV_VARS = ("BITBUCKET_TOKEN", "BITBUCKET_ACCESS_TOKEN")

BITBUCKET_WORKSPACE = _env_str("BITBUCKET_WORKSPACE")
BITBUCKET_REPOSITORY = _env_str("BITBUCKET_REPOSITORY")
BITBUCKET_BASE_BRANCH = _env_str("BITBUCKET_BASE_BRANCH", "main")
BITBUCKET_PROTECTED_BRANCHES = _parse_branch_list(os.environ.get("BITBUCKET_PROTECTED_BRANCHES"))
BITBUCKET_COMMIT_AUTHOR = _env_str("BITBUCKET_COMMIT_AUTHOR")

# Server-side page size for branch and directory listings (Bitbucket caps it at 100).
BITBUCKET_PAGE_LEN = int(os.environ.get("BITBUCKET_PAGE_LEN", "100"))

HTTPX_TIMEOUT = float(os.environ.get("HTTPX_TIMEOUT", 60))

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
LOG_STYLE = os.environ.get("LOG_STYLE", "color").lower()

LOG_FORMAT = os.environ.get(
    "LOG_FORMAT",
    "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)

# In-memory records end up in tool payloads, so keep them uncolored.
LOG_FORMAT_PLAIN = os.environ.get("LOG_FORMAT_PLAIN", LOG_FORMAT)


class _ColorFormatter(logging.Formatter):
    """Level-colored formatter for stderr logs."""

    _C = {
        "DEBUG": "\x1b[36m",  # cyan
        "DETAILED": "\x1b[36m",  # cyan
        "INFO": "\x1b[32m",  # green
        "CHAT": "\x1b[34m",  # blue
        "WARNING": "\x1b[33m",  # yellow
        "ERROR": "\x1b[31m",  # red
        "CRITICAL": "\x1b[35m",  # magenta
        "RESET": "\x1b[0m",
    }

    def __init__(self, fmt: str, *, use_color: bool) -> None:
        super().__init__(fmt)
        self._use_color = bool(use_color)

    def format(self, record: logging.LogRecord) -> str:  # pragma: no cover - formatting
        levelname = record.levelname
        if self._use_color and levelname in self._C:
            record.levelname = f"{self._C[levelname]}{levelname}{self._C['RESET']}"
        try:
            return super().format(record)
        finally:
            record.levelname = levelname


def _configure_logging() -> None:
    # Avoid reconfiguring during module reloads.
    root = logging.getLogger()
    if getattr(root, "_bitbucket_mcp_configured", False):
        return

    use_color = LOG_STYLE in {"color", "ansi", "colored"}

    # stdout carries the MCP stdio transport, so logs go to stderr.
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(_ColorFormatter(LOG_FORMAT, use_color=use_color))

    logging.basicConfig(
        level=_resolve_log_level(LOG_LEVEL),
        handlers=[console_handler],
        force=True,
    )

    for noisy in (
        "mcp",
        "mcp.server",
        "mcp.server.lowlevel.server",
        "httpx",
        "httpcore",
    ):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    setattr(root, "_bitbucket_mcp_configured", True)


_configure_logging()

BASE_LOGGER = logging.getLogger("bitbucket_mcp")
BITBUCKET_LOGGER = logging.getLogger("bitbucket_mcp.bitbucket_client")
TOOLS_LOGGER = logging.getLogger("bitbucket_mcp.tools")

LOG_RECORD_CAPACITY = int(os.environ.get("MCP_LOG_RECORD_CAPACITY", "500"))


class _InMemoryLogHandler(logging.Handler):
    """Capture recent log records in memory for diagnostics."""

    def __init__(self, capacity: int = 500) -> None:
        super().__init__(level=DETAILED_LEVEL)
        self._capacity = int(capacity)
        self._formatter = logging.Formatter(LOG_FORMAT_PLAIN)
        if self._capacity <= 0:
            self._records: list[dict[str, object]] = []
        else:
            self._records = deque(maxlen=max(1, self._capacity))

    @property
    def records(self) -> list[dict[str, object]]:
        return list(self._records)

    def clear(self) -> None:
        self._records.clear()

    def emit(self, record: logging.LogRecord) -> None:
        if not record.name.startswith("bitbucket_mcp"):
            return

        try:
            message = self._formatter.format(record)
        except Exception:  # noqa: BLE001
            message = record.getMessage()

        self._records.append(
            {
                "logger": record.name,
                "level": record.levelname,
                "message": message,
                "created": record.created,
                "tool_name": getattr(record, "tool_name", None),
                "repo": getattr(record, "repo", None),
                "branch": getattr(record, "branch", None),
                "path": getattr(record, "path", None),
                "status_code": getattr(record, "status_code", None),
                "duration_ms": getattr(record, "duration_ms", None),
                "event": getattr(record, "event", None),
            }
        )


# Module reloads must not stack buffers on the shared logger.
for _old in [h for h in BASE_LOGGER.handlers if type(h).__name__ == "_InMemoryLogHandler"]:
    BASE_LOGGER.removeHandler(_old)

LOG_RECORD_HANDLER = _InMemoryLogHandler(capacity=LOG_RECORD_CAPACITY)
BASE_LOGGER.addHandler(LOG_RECORD_HANDLER)

__all__ = [
    "BASE_LOGGER",
    "BITBUCKET_API_BASE",
    "BITBUCKET_BASE_BRANCH",
    "BITBUCKET_COMMIT_AUTHOR",
    "BITBUCKET_LOGGER",
    "BITBUCKET_PAGE_LEN",
    "BITBUCKET_PROTECTED_BRANCHES",
    "BITBUCKET_REPOSITORY",
    "BITBUCKET_TOKEN_ENV_VARS",
    "BITBUCKET_WEB_BASE",
    "BITBUCKET_WORKSPACE",
    "CHAT_LEVEL",
    "DETAILED_LEVEL",
    "HTTPX_TIMEOUT",
    "LOG_RECORD_CAPACITY",
    "LOG_RECORD_HANDLER",
    "TOOLS_LOGGER",
]
