"""CLI error handling and decorators."""

from __future__ import annotations

import functools
from typing import Any, Callable

import typer

from langchain_qortex.client import QortexToolError
from langchain_qortex.observability import get_logger

logger = get_logger(__name__)


def handle_error(msg: str) -> None:
    """Print an error message and exit."""
    typer.echo(f"Error: {msg}", err=True)
    raise typer.Exit(1)


def server_errors(f: Callable) -> Callable:
    """Decorator turning server and transport failures into a clean exit.

    Tool errors print the server's message. Anything else (spawn failure,
    dropped connection, bad JSON) prints its type too, so a missing `uvx`
    doesn't look like a qortex error.
    """

    @functools.wraps(f)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return f(*args, **kwargs)
        except typer.Exit:
            raise
        except QortexToolError as err:
            handle_error(f"{err.tool}: {err}")
        except Exception as err:
            logger.debug("cli.failed", command=f.__name__, exc_info=True)
            handle_error(f"{type(err).__name__}: {err}")

    return wrapper
