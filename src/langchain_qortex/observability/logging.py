"""Structured logging for langchain-qortex.

Two independent choices, both picked by name from ObservabilityConfig:

    formatter    how a record becomes text: "structlog" (default) or "stdlib"
    destination  where the text goes: "stderr" (default) or "jsonl"

setup_logging() builds one handler from the pair and installs it on the
root logger. The package's own modules only ever call get_logger(), which
accepts structlog-style calls (logger.debug("mcp.call_tool", tool=...))
whether or not logging has been set up. Setup belongs to applications and
the langchain-qortex CLI.

Third-party strategies plug in by name:

    from langchain_qortex.observability import register_destination
    register_destination("datadog", DatadogDestination)
"""

from __future__ import annotations

import json
import logging
import sys
from functools import partialmethod
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

import structlog

if TYPE_CHECKING:
    from langchain_qortex.observability.config import ObservabilityConfig

DEFAULT_JSONL_PATH = "~/.qortex/langchain-qortex.jsonl"


@runtime_checkable
class LogFormatter(Protocol):
    """Builds the logging.Formatter for the handler and hands out loggers."""

    def setup(self, config: ObservabilityConfig) -> logging.Formatter: ...

    def get_logger(self, name: str, **kwargs: Any) -> Any: ...


@runtime_checkable
class LogDestination(Protocol):
    """Owns the logging.Handler that ships formatted records somewhere."""

    def create_handler(self, formatter: logging.Formatter) -> logging.Handler: ...

    def shutdown(self) -> None: ...


# =============================================================================
# Loggers that take keyword arguments without structlog
# =============================================================================


class _KwargsLogger:
    """Wraps a stdlib logger so call sites can pass event fields as kwargs.

    The fields ride on the LogRecord as ``_fields``; both formatters below
    know to read them.
    """

    def __init__(self, logger: logging.Logger) -> None:
        self._logger = logger

    def _emit(self, level: int, event: str, exc_info: Any = None, **fields: Any) -> None:
        if not self._logger.isEnabledFor(level):
            return
        if exc_info is True:
            exc_info = sys.exc_info()
        record = self._logger.makeRecord(
            self._logger.name, level, "(unknown)", 0, event, (), exc_info or None
        )
        record._fields = fields  # type: ignore[attr-defined]
        self._logger.handle(record)

    debug = partialmethod(_emit, logging.DEBUG)
    info = partialmethod(_emit, logging.INFO)
    warning = partialmethod(_emit, logging.WARNING)
    error = partialmethod(_emit, logging.ERROR)

    def exception(self, event: str, **fields: Any) -> None:
        fields.setdefault("exc_info", True)
        self._emit(logging.ERROR, event, **fields)


def _record_fields(record: logging.LogRecord | None) -> dict[str, Any]:
    return getattr(record, "_fields", None) or {}


# =============================================================================
# Formatters
# =============================================================================


def _lift_record_fields(logger: Any, method_name: str, event_dict: dict) -> dict:
    """structlog processor: copy _KwargsLogger fields into the event."""
    for key, value in _record_fields(event_dict.get("_record")).items():
        event_dict.setdefault(key, value)
    return event_dict


def _shared_processors() -> list:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]


class StructlogFormatter:
    """Renders structlog events and plain stdlib records the same way."""

    def setup(self, config: ObservabilityConfig) -> logging.Formatter:
        renderer = (
            structlog.dev.ConsoleRenderer()
            if config.log_format == "console"
            else structlog.processors.JSONRenderer()
        )
        structlog.configure(
            processors=[
                structlog.stdlib.filter_by_level,
                *_shared_processors(),
                structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
            ],
            wrapper_class=structlog.stdlib.BoundLogger,
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )
        return structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=[_lift_record_fields, *_shared_processors()],
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )

    def get_logger(self, name: str, **kwargs: Any) -> Any:
        return structlog.get_logger(name, **kwargs)


class _JsonLineFormatter(logging.Formatter):
    """One JSON object per record: timestamp, level, logger, event, fields."""

    def format(self, record: logging.LogRecord) -> str:
        line: dict[str, Any] = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%SZ"),
            "level": record.levelname.lower(),
            "logger": record.name,
            "event": record.getMessage(),
            **_record_fields(record),
        }
        if record.exc_info and record.exc_info[1] is not None:
            line["exception"] = self.formatException(record.exc_info)
        return json.dumps(line, default=str)


class StdlibFormatter:
    """stdlib-only rendering, for hosts that configure structlog themselves."""

    console_format = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"

    def setup(self, config: ObservabilityConfig) -> logging.Formatter:
        if config.log_format == "console":
            return logging.Formatter(self.console_format, datefmt="%Y-%m-%dT%H:%M:%S")
        return _JsonLineFormatter()

    def get_logger(self, name: str, **kwargs: Any) -> Any:
        return _KwargsLogger(logging.getLogger(name))


# =============================================================================
# Destinations
# =============================================================================


class StderrDestination:
    """Writes to whatever sys.stderr is when the handler is created."""

    def __init__(self, config: ObservabilityConfig | None = None) -> None:
        pass

    def create_handler(self, formatter: logging.Formatter) -> logging.Handler:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(formatter)
        return handler

    def shutdown(self) -> None:
        pass


class JsonlFileDestination:
    """Appends to QORTEX_LOG_PATH, or ~/.qortex/langchain-qortex.jsonl."""

    def __init__(self, config: ObservabilityConfig) -> None:
        self.path = Path(config.jsonl_path or DEFAULT_JSONL_PATH).expanduser()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._handler: logging.FileHandler | None = None

    def create_handler(self, formatter: logging.Formatter) -> logging.Handler:
        self._handler = logging.FileHandler(self.path, mode="a", encoding="utf-8")
        self._handler.setFormatter(formatter)
        return self._handler

    def shutdown(self) -> None:
        if self._handler is not None:
            self._handler.close()
            self._handler = None


# =============================================================================
# Registries and setup
# =============================================================================

_FORMATTERS: dict[str, type] = {"structlog": StructlogFormatter, "stdlib": StdlibFormatter}
_DESTINATIONS: dict[str, type] = {"stderr": StderrDestination, "jsonl": JsonlFileDestination}


def register_formatter(name: str, cls: type) -> None:
    """Make a LogFormatter class selectable as log_formatter=name."""
    _FORMATTERS[name] = cls


def register_destination(name: str, cls: type) -> None:
    """Make a LogDestination class selectable as log_destination=name.

    The class is called with the ObservabilityConfig.
    """
    _DESTINATIONS[name] = cls


def _lookup(registry: dict[str, type], kind: str, name: str) -> type:
    try:
        return registry[name]
    except KeyError:
        raise ValueError(
            f"Unknown log {kind}: {name!r}. Available: {sorted(registry)}. "
            f"Add one with register_{kind}()."
        ) from None


def _level(name: str) -> int:
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else logging.WARNING


class _Active:
    formatter: LogFormatter | None = None
    destination: LogDestination | None = None


def setup_logging(config: ObservabilityConfig) -> None:
    """Install the configured formatter x destination on the root logger.

    Calling it again swaps the handler it installed before and leaves any
    other root handlers alone.
    """
    formatter = _lookup(_FORMATTERS, "formatter", config.log_formatter)()
    destination = _lookup(_DESTINATIONS, "destination", config.log_destination)(config)

    handler = destination.create_handler(formatter.setup(config))
    handler._qortex_managed = True  # type: ignore[attr-defined]

    root = logging.getLogger()
    for old in [h for h in root.handlers if getattr(h, "_qortex_managed", False)]:
        root.removeHandler(old)
    root.addHandler(handler)
    root.setLevel(_level(config.log_level))

    if _Active.destination is not None:
        _Active.destination.shutdown()
    _Active.formatter, _Active.destination = formatter, destination


def get_logger(name: str = "", **kwargs: Any) -> Any:
    """A logger taking ``event, **fields``, from the active formatter if any."""
    if _Active.formatter is None:
        return _KwargsLogger(logging.getLogger(name))
    return _Active.formatter.get_logger(name, **kwargs)


def shutdown_logging() -> None:
    """Close the active destination and forget the active formatter."""
    if _Active.destination is not None:
        _Active.destination.shutdown()
    _Active.formatter = _Active.destination = None
