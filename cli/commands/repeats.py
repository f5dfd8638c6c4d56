"""REPEATS commands: propose relationships, sweep, repair and inspect families."""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Optional, TypeVar

import typer

from catalog.db import get_connection, init_db
from catalog.db.models import RepeatStatus
from catalog.errors import RepeatsError
from catalog.repeats import RepeatsEngine
from catalog.store import SqliteGraphStore

T = TypeVar("T")

repeats_app = typer.Typer(help="REPEATS relationship operations.", no_args_is_help=True)


def _run_engine(action: Callable[[RepeatsEngine], Awaitable[T]]) -> T:
    """Open the DB, run *action* against a fresh engine, and close the DB."""
    conn = get_connection()
    init_db(conn)
    try:
        return asyncio.run(action(RepeatsEngine(SqliteGraphStore(conn))))
    except RepeatsError as exc:
        typer.echo(f"[error] {exc.message}")
        raise typer.Exit(1) from exc
    finally:
        conn.close()


def _edges(label: str, edges: list[Any]) -> None:
    for e in edges:
        typer.echo(f"  {label}: {e.source} -> {e.target}")


@repeats_app.command("propose")
def repeats_propose(
    a: str = typer.Argument(..., help="Jingle proposed as the repeat."),
    b: str = typer.Argument(..., help="Jingle proposed as the original."),
) -> None:
    """Record that A repeats B (the direction may be corrected)."""
    result = _run_engine(lambda engine: engine.propose_repeat(a, b))
    flag = " (corrected)" if result.corrected else ""
    typer.echo(f"[repeats propose] {result.source} REPEATS {result.target}{flag}")
    typer.echo(f"  reason: {result.reason}")
    if result.ambiguous:
        typer.echo("  warning: direction could not be decided, proposed orientation kept")
    _edges("deleted", result.deleted_edges)
    _edges("updated", result.updated_edges)


@repeats_app.command("sweep")
def repeats_sweep(
    jingle_id: Optional[str] = typer.Argument(None, help="Jingle to check (omit for all)."),
) -> None:
    """Normalise jingles that hold both inbound and outbound REPEATS edges."""
    if jingle_id:
        violating = _run_engine(lambda engine: engine.sweep_node(jingle_id))
        state = "normalised" if violating else "already consistent"
        typer.echo(f"[repeats sweep] {jingle_id}: {state}")
        return
    swept = _run_engine(lambda engine: engine.sweep_all())
    typer.echo(f"[repeats sweep] Swept {len(swept)} jingle(s).")
    for node_id in swept:
        typer.echo(f"  {node_id}")


@repeats_app.command("repair")
def repeats_repair(
    max_passes: Optional[int] = typer.Option(None, help="Maximum sweep passes."),
) -> None:
    """Collapse multi-hop REPEATS chains until the graph is consistent."""
    report = _run_engine(lambda engine: engine.repair_graph(max_passes=max_passes))
    typer.echo(
        f"[repeats repair] passes={report.passes}  deleted={len(report.deleted_edges)}  "
        f"updated={len(report.updated_edges)}"
    )
    if not report.converged:
        typer.echo(f"[repeats repair] Still violating: {', '.join(report.remaining)}")
        raise typer.Exit(1)


@repeats_app.command("family")
def repeats_family(jingle_id: str = typer.Argument(..., help="Any member of the family.")) -> None:
    """Show the original of a jingle and all of its repeats."""
    members = _run_engine(lambda engine: engine.list_family(jingle_id))
    if not members:
        typer.echo(f"[repeats family] {jingle_id} has no repeats.")
        return
    for j in members:
        state = j.publication_date.date().isoformat() if j.publication_date else "Inedito"
        typer.echo(f"  {j.id}  [{state}]  {j.title!r}")


@repeats_app.command("confirm")
def repeats_confirm(
    source: str = typer.Argument(...),
    target: str = typer.Argument(...),
    draft: bool = typer.Option(False, "--draft", help="Move back to DRAFT instead."),
) -> None:
    """Mark the edge SOURCE -> TARGET as CONFIRMED."""
    status = RepeatStatus.DRAFT if draft else RepeatStatus.CONFIRMED
    edge = _run_engine(lambda engine: engine.set_status(source, target, status))
    typer.echo(f"[repeats confirm] {edge.source_id} -> {edge.target_id}: {edge.status.value}")
