"""langchain-qortex CLI -- typer-based command interface.

Commands:
    langchain-qortex dogfood          Full LangChain workflow against a real server
    langchain-qortex status           Server health and capabilities
    langchain-qortex domains          Knowledge domains and their sizes
    langchain-qortex rules            Projected rules
    langchain-qortex explore <node>   A concept's graph neighborhood
"""

from __future__ import annotations

from typing import Optional

import typer

from langchain_qortex.cli import dogfood, graph
from langchain_qortex.cli._config import CliSettings
from langchain_qortex.cli._errors import handle_error
from langchain_qortex.config import QortexStoreConfig
from langchain_qortex.observability import ObservabilityConfig, setup_logging

app = typer.Typer(
    name="langchain-qortex",
    help="Drive a qortex MCP server through the LangChain VectorStore adapter.",
    no_args_is_help=True,
)


@app.callback()
def main_callback(
    ctx: typer.Context,
    server_command: Optional[str] = typer.Option(
        None, "--server-command", help="Executable that starts the qortex MCP server."
    ),
    server_arg: Optional[list[str]] = typer.Option(
        None, "--server-arg", help="Server argument (repeatable). Replaces the default args."
    ),
    index_name: Optional[str] = typer.Option(None, "--index-name", help="Vector index name."),
    domain: Optional[str] = typer.Option(None, "--domain", help="Default search domain."),
    log_level: Optional[str] = typer.Option(
        None, "--log-level", help="Log level (DEBUG, INFO, WARNING, ...)."
    ),
) -> None:
    """Resolve global options and configure logging."""
    obs = ObservabilityConfig()
    if log_level:
        obs.log_level = log_level.upper()
    setup_logging(obs)

    try:
        store_config = QortexStoreConfig.load()
    except ValueError as err:
        handle_error(str(err))
        return

    ctx.obj = CliSettings(
        server_command=server_command,
        server_args=list(server_arg) if server_arg else None,
        index_name=index_name,
        domain=domain,
        store_config=store_config,
    )


app.command("dogfood")(dogfood.dogfood)
app.command("status")(graph.status)
app.command("domains")(graph.domains)
app.command("rules")(graph.rules)
app.command("explore")(graph.explore)


def main() -> None:
    """Entry point for the langchain-qortex CLI."""
    app()
