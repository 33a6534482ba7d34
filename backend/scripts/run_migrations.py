#!/usr/bin/env python
"""
scripts/run_migrations.py
--------------------------
Applies db/schema.sql to the configured Postgres database.

Usage:
    python scripts/run_migrations.py [--dry-run]      (after pip install -e .)

Exit codes:
    0 — schema applied (or dry-run completed)
    1 — connection failed or SQL error

Environment variables:
    POSTGRES_HOST, POSTGRES_PORT, POSTGRES_DB, POSTGRES_USER, POSTGRES_PASSWORD
    (same vars used by db/connection.py)

All statements run in one transaction.  Re-running is idempotent: every
CREATE uses IF NOT EXISTS.
"""

from __future__ import annotations

import argparse
import pathlib
import re
import sys

import psycopg2

import config

SCHEMA_FILE = pathlib.Path(__file__).resolve().parent.parent / "db" / "schema.sql"


def read_statements(path: pathlib.Path = SCHEMA_FILE) -> list[str]:
    """Schema file split into executable statements, comments removed."""
    if not path.exists():
        raise FileNotFoundError(f"SQL file not found: {path}")
    sql = path.read_text(encoding="utf-8")
    sql = re.sub(r"/\*.*?\*/", "", sql, flags=re.DOTALL)
    sql = re.sub(r"--[^\n]*", "", sql)
    return [s.strip() for s in sql.split(";") if s.strip()]


def run(dry_run: bool = False) -> int:
    statements = read_statements()

    print(f"[migrations] SQL file   : {SCHEMA_FILE}")
    print(f"[migrations] Statements : {len(statements)}")
    print(f"[migrations] Target DB  : {config.POSTGRES_DB} @ "
          f"{config.POSTGRES_HOST}:{config.POSTGRES_PORT}")

    if dry_run:
        print("[migrations] DRY-RUN — no changes applied.")
        for i, stmt in enumerate(statements, 1):
            print(f"  [{i:03d}] {stmt[:80].replace(chr(10), ' ')}...")
        return len(statements)

    conn = psycopg2.connect(
        host=config.POSTGRES_HOST,
        port=config.POSTGRES_PORT,
        dbname=config.POSTGRES_DB,
        user=config.POSTGRES_USER,
        password=config.POSTGRES_PASSWORD,
    )
    conn.autocommit = False
    try:
        with conn.cursor() as cur:
            for i, stmt in enumerate(statements, 1):
                try:
                    cur.execute(stmt)
                except psycopg2.Error as exc:
                    print(f"  [✗] Statement {i} failed: {exc.pgerror or exc}")
                    raise
                print(f"  [✓] {stmt[:60].replace(chr(10), ' ')}")
        conn.commit()
        print(f"[migrations] Done — {len(statements)} statements applied.")
    except Exception:
        conn.rollback()
        print("[migrations] ROLLED BACK due to error.")
        raise
    finally:
        conn.close()
    return len(statements)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Apply the Postgres schema.")
    parser.add_argument("--dry-run", action="store_true",
                        help="Print statements without executing them.")
    args = parser.parse_args()
    try:
        run(dry_run=args.dry_run)
    except Exception as exc:
        print(f"[migrations] ERROR: {exc}", file=sys.stderr)
        sys.exit(1)
