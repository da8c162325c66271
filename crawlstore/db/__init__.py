"""Database layer package.

Public re-exports so callers can write::

    from crawlstore.db import get_connection, init_db
"""

from crawlstore.db.connection import get_connection, transaction
from crawlstore.db.migrations import init_db

__all__ = ["get_connection", "init_db", "transaction"]
