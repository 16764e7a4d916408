"""Settings consumed by setup_logging().

Each field falls back to a QORTEX_LOG_* environment variable, so the CLI
and embedding applications can switch formatter, destination or verbosity
without code changes. Library code stays quiet (WARNING) until told
otherwise.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field


def _env(name: str, default: str | None = None) -> str | None:
    return os.environ.get(name, default)


@dataclass
class ObservabilityConfig:
    """Formatter, destination and level for langchain-qortex logs.

    Attributes:
        log_formatter: Registered formatter name, "structlog" or "stdlib".
        log_destination: Registered destination name, "stderr" or "jsonl".
        log_level: Root level name, e.g. "DEBUG" to see every MCP tool call.
        log_format: "json" lines, or "console" for human-readable output.
        jsonl_path: File for the "jsonl" destination.
    """

    log_formatter: str = field(default_factory=lambda: _env("QORTEX_LOG_FORMATTER", "structlog"))
    log_destination: str = field(default_factory=lambda: _env("QORTEX_LOG_DESTINATION", "stderr"))
    log_level: str = field(default_factory=lambda: _env("QORTEX_LOG_LEVEL", "WARNING"))
    log_format: str = field(default_factory=lambda: _env("QORTEX_LOG_FORMAT", "json"))
    jsonl_path: str | None = field(default_factory=lambda: _env("QORTEX_LOG_PATH"))
