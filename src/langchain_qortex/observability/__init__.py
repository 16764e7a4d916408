"""langchain-qortex observability: structured logging.

Public API:
    get_logger(name)             -- Get a structured logger
    setup_logging(cfg)           -- Wire formatter x destination to the root logger
    shutdown_logging()           -- Flush and close the active destination
    register_formatter(n, cls)   -- Register custom LogFormatter
    register_destination(n, cls) -- Register custom LogDestination
"""

from langchain_qortex.observability.config import ObservabilityConfig
from langchain_qortex.observability.logging import (
    LogDestination,
    LogFormatter,
    get_logger,
    register_destination,
    register_formatter,
    setup_logging,
    shutdown_logging,
)

__all__ = [
    "ObservabilityConfig",
    "get_logger",
    "setup_logging",
    "shutdown_logging",
    "LogFormatter",
    "LogDestination",
    "register_formatter",
    "register_destination",
]
