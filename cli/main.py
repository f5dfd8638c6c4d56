"""Jingle catalog CLI, the entry-point for catalog operations.

Usage:
    python cli/main.py --help

Command groups:
    db        → database setup
    jingle    → add / list jingles                      (cli/commands/jingle.py)
    repeats   → propose REPEATS relationships, sweep,   (cli/commands/repeats.py)
                repair, inspect families
"""

from __future__ import annotations

import sys
from pathlib import Path

# Ensure the project root is on sys.path so that `from catalog.xxx import ...`
# works when the CLI is invoked as `python cli/main.py` from any directory.
_ROOT = Path(__file__).resolve().parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

from typing import Optional

import typer

from catalog.config import settings
from catalog.db import get_connection, init_db
from catalog.logging import configure_logging
from cli.commands.jingle import jingle_app
from cli.commands.repeats import repeats_app

app = typer.Typer(
    name="catalog",
    help="Jingle catalog CLI.",
    no_args_is_help=True,
)


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Override LOG_LEVEL."),
) -> None:
    configure_logging(level=log_level)


# ---------------------------------------------------------------------------
# DB commands
# ---------------------------------------------------------------------------
db_app = typer.Typer(help="Database operations.", no_args_is_help=True)
app.add_typer(db_app, name="db")


@db_app.command("init")
def db_init() -> None:
    """Initialise the SQLite database (create tables if they do not exist)."""
    conn = get_connection()
    init_db(conn)
    conn.close()
    typer.echo(f"[db init] Database ready at {settings.db_path}")


app.add_typer(jingle_app, name="jingle")
app.add_typer(repeats_app, name="repeats")


# ---------------------------------------------------------------------------
# Entry-point
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    app()
