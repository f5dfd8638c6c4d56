"""Jingle commands: add and list catalog entries."""

from __future__ import annotations

import sqlite3
from datetime import datetime
from typing import Optional

import typer

from catalog.db import get_connection, init_db
from catalog.db.jingles import create_jingle, list_jingles

jingle_app = typer.Typer(help="Jingle operations.", no_args_is_help=True)


@jingle_app.command("add")
def jingle_add(
    title: str = typer.Option("", help="Jingle title."),
    published: Optional[datetime] = typer.Option(
        None, "--published", help="Publication date of its Fabrica (omit for Inedito)."
    ),
    jingle_id: Optional[str] = typer.Option(None, "--id", help="Explicit jingle id."),
) -> None:
    """Create a new jingle."""
    conn = get_connection()
    init_db(conn)
    try:
        jingle = create_jingle(conn, title=title, publication_date=published, jingle_id=jingle_id)
    except sqlite3.IntegrityError as exc:
        typer.echo(f"[error] Jingle already exists: {jingle_id}")
        raise typer.Exit(1) from exc
    finally:
        conn.close()
    state = jingle.publication_date.date().isoformat() if jingle.publication_date else "Inedito"
    typer.echo(f"[jingle add] Created jingle: {jingle.id}  title={jingle.title!r}  {state}")


@jingle_app.command("list")
def jingle_list() -> None:
    """List all jingles."""
    conn = get_connection()
    init_db(conn)
    jingles = list_jingles(conn)
    conn.close()
    if not jingles:
        typer.echo("[jingle list] No jingles found.")
        return
    for j in jingles:
        state = j.publication_date.date().isoformat() if j.publication_date else "Inedito"
        typer.echo(f"  {j.id}  [{state}]  {j.title!r}")
