"""PostgreSQL access."""

from cip.db.client import check_connection, db_cursor, get_connection
from cip.db.store import PostgresStore

__all__ = ["PostgresStore", "check_connection", "db_cursor", "get_connection"]
