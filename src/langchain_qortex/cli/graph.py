"""CLI commands that read from a running qortex server.

status, domains, rules, explore. Each spawns the server, runs one tool,
prints the result, and disconnects.
"""

from __future__ import annotations

import json
from typing import Optional

import typer

from langchain_qortex.cli._config import CliSettings, open_store
from langchain_qortex.cli._errors import handle_error, server_errors


def _echo_json(data: object) -> None:
    typer.echo(json.dumps(data, indent=2, default=str))


@server_errors
def status(
    ctx: typer.Context,
    as_json: bool = typer.Option(False, "--json", help="Print raw JSON."),
) -> None:
    """Show server health and active capabilities."""
    settings: CliSettings = ctx.obj
    store = open_store(settings)
    try:
        result = store.status()
    finally:
        store.close()

    if as_json:
        _echo_json(result)
        return
    for key, value in result.items():
        typer.echo(f"{key:<18} {value}")


@server_errors
def domains(
    ctx: typer.Context,
    as_json: bool = typer.Option(False, "--json", help="Print raw JSON."),
) -> None:
    """List knowledge domains and their sizes."""
    settings: CliSettings = ctx.obj
    store = open_store(settings)
    try:
        result = store.domains()
    finally:
        store.close()

    if as_json:
        _echo_json(result)
        return
    if not result:
        typer.echo("No domains.")
        return
    typer.echo(f"{'DOMAIN':<24} {'CONCEPTS':>8} {'EDGES':>8} {'RULES':>8}")
    for d in result:
        typer.echo(
            f"{d.get('name', ''):<24} {d.get('concept_count', 0):>8} "
            f"{d.get('edge_count', 0):>8} {d.get('rule_count', 0):>8}"
        )


@server_errors
def rules(
    ctx: typer.Context,
    domain: Optional[list[str]] = typer.Option(None, "--domain", "-d", help="Filter by domain."),
    concept: Optional[list[str]] = typer.Option(None, "--concept", "-c", help="Filter by concept id."),
    category: Optional[list[str]] = typer.Option(None, "--category", help="Filter by category."),
    derived: bool = typer.Option(True, "--derived/--no-derived", help="Include derived rules."),
    min_confidence: float = typer.Option(0.0, "--min-confidence", help="Minimum confidence."),
    as_json: bool = typer.Option(False, "--json", help="Print raw JSON."),
) -> None:
    """List rules from the knowledge graph."""
    settings: CliSettings = ctx.obj
    store = open_store(settings)
    try:
        result = store.get_rules(
            domains=domain or None,
            concept_ids=concept or None,
            categories=category or None,
            include_derived=derived,
            min_confidence=min_confidence,
        )
    finally:
        store.close()

    if as_json:
        _echo_json(result)
        return
    found = result.get("rules", [])
    typer.echo(f"{len(found)} rules across {result.get('domain_count', 0)} domains")
    for r in found:
        typer.echo(f"  [{r['confidence']:.2f}] {r['id']} ({r['domain']}/{r['category']}): {r['text']}")


@server_errors
def explore(
    ctx: typer.Context,
    node_id: str = typer.Argument(..., help="Concept id, e.g. from search metadata['node_id']."),
    depth: int = typer.Option(1, "--depth", min=1, max=3, help="Hops to traverse."),
    as_json: bool = typer.Option(False, "--json", help="Print raw JSON."),
) -> None:
    """Show a concept's graph neighborhood."""
    settings: CliSettings = ctx.obj
    store = open_store(settings)
    try:
        result = store.explore(node_id, depth=depth)
    finally:
        store.close()

    if result is None:
        handle_error(f"Node not found: {node_id}")
        return
    if as_json:
        _echo_json(result)
        return

    node = result["node"]
    typer.echo(f"{node['name']} [{node['id']}] ({node['domain']})")
    typer.echo(f"  {node['description']}")
    typer.echo(f"\nEdges ({len(result['edges'])}):")
    for e in result["edges"]:
        typer.echo(f"  {e['source_id']} -{e['relation_type']}-> {e['target_id']}")
    typer.echo(f"\nNeighbors ({len(result['neighbors'])}):")
    for n in result["neighbors"]:
        typer.echo(f"  {n['id']}: {n['name']}")
    typer.echo(f"\nRules ({len(result['rules'])}):")
    for r in result["rules"]:
        typer.echo(f"  {r['id']}: {r['text']}")
