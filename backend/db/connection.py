"""
db/connection.py
-----------------
psycopg2 ThreadedConnectionPool shared by the API process and scripts.

Usage:
    from db.connection import get_conn
    from db.repositories import itinerary_repo

    with get_conn() as conn:
        itinerary_repo.save_itinerary(conn, itinerary_id, rows)

get_conn() commits on clean exit and rolls back on exception, which is what
makes an itinerary save (delete + re-insert of every row) all-or-nothing.

Environment variables (set in config.py):
    POSTGRES_HOST       default: localhost
    POSTGRES_PORT       default: 5432
    POSTGRES_DB         default: tripstitch
    POSTGRES_USER       default: tripstitch_user
    POSTGRES_PASSWORD   default: tripstitch_pass
    POSTGRES_MIN_CONN   default: 1
    POSTGRES_MAX_CONN   default: 10
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

import psycopg2
import psycopg2.pool

import config

logger = logging.getLogger(__name__)

_pool: psycopg2.pool.ThreadedConnectionPool | None = None


def get_pool() -> psycopg2.pool.ThreadedConnectionPool:
    """Singleton pool, built from config on first use."""
    global _pool
    if _pool is None or _pool.closed:
        _pool = psycopg2.pool.ThreadedConnectionPool(
            minconn=config.POSTGRES_MIN_CONN,
            maxconn=config.POSTGRES_MAX_CONN,
            host=config.POSTGRES_HOST,
            port=config.POSTGRES_PORT,
            dbname=config.POSTGRES_DB,
            user=config.POSTGRES_USER,
            password=config.POSTGRES_PASSWORD,
        )
    return _pool


@contextmanager
def get_conn() -> Iterator:
    """Borrow a connection for one transaction."""
    pool = get_pool()
    conn = pool.getconn()
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        pool.putconn(conn)


def ping() -> bool:
    """True if Postgres answers SELECT 1; used by the health endpoint."""
    try:
        with get_conn() as conn, conn.cursor() as cur:
            cur.execute("SELECT 1")
            return cur.fetchone() == (1,)
    except psycopg2.Error as exc:
        logger.warning("Postgres ping failed: %s", exc)
        return False


def close_pool() -> None:
    """Close every pooled connection (application shutdown)."""
    global _pool
    if _pool is not None and not _pool.closed:
        _pool.closeall()
    _pool = None
