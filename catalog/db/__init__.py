"""Database layer package.

Public re-exports so callers can write::

    from catalog.db import get_connection, init_db
"""

from catalog.db.connection import get_connection
from catalog.db.migrations import init_db

__all__ = ["get_connection", "init_db"]
