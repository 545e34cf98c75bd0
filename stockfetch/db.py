"""PostgreSQL connection helpers."""
from __future__ import annotations

from contextlib import contextmanager
from typing import Generator

import psycopg2
from psycopg2.extensions import connection as PGConnection


@contextmanager
def get_conn(dsn: str) -> Generator[PGConnection, None, None]:
    """Open a connection, commit on success and always close it."""
    conn = psycopg2.connect(dsn)
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()
