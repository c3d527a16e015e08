"""Database connection helpers."""

from contextlib import contextmanager
from typing import Any, Iterator, Optional

import psycopg
from psycopg.rows import dict_row

from cip.config import Settings


def get_connection(settings: Optional[Settings] = None) -> psycopg.Connection[Any]:
    """Open a connection that returns rows as dicts."""
    settings = settings or Settings()
    return psycopg.connect(settings.get_database_url(), row_factory=dict_row)


@contextmanager
def db_cursor(settings: Optional[Settings] = None) -> Iterator[psycopg.Cursor[Any]]:
    """Yield a cursor with automatic commit/rollback."""
    conn = get_connection(settings)
    try:
        with conn.cursor() as cursor:
            yield cursor
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def check_connection(settings: Optional[Settings] = None) -> str:
    """Return the server version string, raising when unreachable."""
    with db_cursor(settings) as cursor:
        cursor.execute("select version() as version")
        row = cursor.fetchone()
    return str(row["version"]) if row else ""
