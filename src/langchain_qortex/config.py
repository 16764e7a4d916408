"""Store configuration: YAML file + env var overrides.

Priority: explicit constructor argument > env var > YAML file > default.
Env vars use the QORTEX_ prefix (e.g. QORTEX_INDEX_NAME=docs).
YAML file default: ~/.qortex/langchain.yaml (override with
QORTEX_LANGCHAIN_CONFIG).

Example YAML:

    server_command: uvx
    server_args: [qortex, mcp-serve]
    index_name: docs
    domain: security
    feedback_source: my-app
    env:
      QORTEX_VEC: sqlite
"""

from __future__ import annotations

import os
import shlex
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

_DEFAULT_PATH = "~/.qortex/langchain.yaml"

_ENV_VARS = {
    "server_command": "QORTEX_SERVER_COMMAND",
    "server_args": "QORTEX_SERVER_ARGS",
    "index_name": "QORTEX_INDEX_NAME",
    "domain": "QORTEX_DOMAIN",
    "feedback_source": "QORTEX_FEEDBACK_SOURCE",
}


def _default_path() -> Path:
    return Path(os.environ.get("QORTEX_LANGCHAIN_CONFIG", _DEFAULT_PATH)).expanduser()


def _as_args(value: Any, origin: str) -> list[str]:
    if isinstance(value, str):
        return shlex.split(value)
    if isinstance(value, list):
        return [str(v) for v in value]
    raise ValueError(f"{origin}: server_args must be a list or a string, got {value!r}")


@dataclass
class QortexStoreConfig:
    """Connection and naming settings for QortexVectorStore."""

    # How to spawn the qortex MCP server (stdio transport)
    server_command: str = "uvx"
    server_args: list[str] = field(default_factory=lambda: ["qortex", "mcp-serve"])
    # Merged over the current process environment for the spawned server
    env: dict[str, str] | None = None

    index_name: str = "default"
    domain: str = "default"
    feedback_source: str = "langchain"

    @classmethod
    def load(cls, path: Path | None = None) -> QortexStoreConfig:
        """Load config from YAML file, then override with env vars."""
        file_path = path or _default_path()
        kwargs: dict[str, Any] = {}

        if file_path.exists():
            raw = yaml.safe_load(file_path.read_text()) or {}
            if not isinstance(raw, dict):
                raise ValueError(f"{file_path}: expected a mapping, got {type(raw).__name__}")
            known = {f.name for f in fields(cls)}
            for key, value in raw.items():
                if key not in known:
                    continue
                if key == "server_args":
                    kwargs[key] = _as_args(value, str(file_path))
                elif key == "env":
                    if not isinstance(value, dict):
                        raise ValueError(f"{file_path}: env must be a mapping")
                    kwargs[key] = {str(k): str(v) for k, v in value.items()}
                else:
                    kwargs[key] = str(value)

        for name, env_key in _ENV_VARS.items():
            if env_key not in os.environ:
                continue
            raw_value = os.environ[env_key]
            kwargs[name] = _as_args(raw_value, env_key) if name == "server_args" else raw_value

        return cls(**kwargs)

    def replace(self, **overrides: Any) -> QortexStoreConfig:
        """Return a copy with every non-None override applied."""
        values = {f.name: getattr(self, f.name) for f in fields(self)}
        values.update({k: v for k, v in overrides.items() if v is not None})
        return type(self)(**values)
