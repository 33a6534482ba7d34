"""
db/repositories/itinerary_repo.py
-----------------------------------
Persistence adapter for one itinerary: the `itineraries` header row, the
ordered `itinerary_destinations` rows and the four per-day overlay tables.

Schema: db/schema.sql

Row shapes match modules/persistence/row_codec.py; this module never builds
or interprets snapshots.

All functions accept a psycopg2 connection object.
Commit/rollback is managed by the caller via db.connection.get_conn(), so
save_itinerary()'s delete-then-insert runs as one transaction.
"""

from __future__ import annotations

from typing import Any

# overlay kind value → (table, value columns)
OVERLAY_TABLES: dict[str, tuple[str, tuple[str, ...]]] = {
    "sightseeing": ("itinerary_day_sightseeing", ("items",)),
    "lodging":     ("itinerary_day_lodging",     ("lodging", "is_manual")),
    "dining":      ("itinerary_day_dining",      ("items",)),
    "notes":       ("itinerary_day_notes",       ("notes",)),
}

DESTINATION_COLUMNS: tuple[str, ...] = (
    "destination_id", "order_index", "destination", "nights",
    "discover", "manual_discover", "food",
    "hotel", "hotel_is_manual", "transport", "notes",
)


def _fetch_dicts(cur) -> list[dict]:
    cols = [d[0] for d in cur.description]
    return [dict(zip(cols, row)) for row in cur.fetchall()]


# ── itineraries table ──────────────────────────────────────────────────────────

def get_itinerary_header(conn, itinerary_id: str) -> dict | None:
    sql = """
        SELECT itinerary_id, user_id, title, start_date, duration, updated_at
        FROM itineraries
        WHERE itinerary_id = %s
    """
    with conn.cursor() as cur:
        cur.execute(sql, (itinerary_id,))
        rows = _fetch_dicts(cur)
    return rows[0] if rows else None


def list_itineraries(conn, user_id: str) -> list[dict]:
    """Headers of every itinerary owned by a user, most recently saved first."""
    sql = """
        SELECT itinerary_id, user_id, title, start_date, duration, updated_at
        FROM itineraries
        WHERE user_id = %s
        ORDER BY updated_at DESC
    """
    with conn.cursor() as cur:
        cur.execute(sql, (user_id,))
        return _fetch_dicts(cur)


def delete_itinerary(conn, itinerary_id: str) -> bool:
    """Delete an itinerary; child rows go with it (ON DELETE CASCADE)."""
    with conn.cursor() as cur:
        cur.execute("DELETE FROM itineraries WHERE itinerary_id = %s", (itinerary_id,))
        return cur.rowcount > 0


# ── Full itinerary load / save ────────────────────────────────────────────────

def load_itinerary(conn, itinerary_id: str) -> dict | None:
    """
    Read everything needed to build a snapshot.

    Returns None if the itinerary does not exist, else
        {"header": {...}, "destinations": [...], "overlays": {kind: [...]}}
    with destinations ordered by order_index and overlay rows by day_index.
    """
    header = get_itinerary_header(conn, itinerary_id)
    if header is None:
        return None

    with conn.cursor() as cur:
        cur.execute(
            f"SELECT {', '.join(DESTINATION_COLUMNS)} FROM itinerary_destinations "
            "WHERE itinerary_id = %s ORDER BY order_index ASC",
            (itinerary_id,),
        )
        destinations = _fetch_dicts(cur)

        overlays: dict[str, list[dict]] = {}
        for kind, (table, columns) in OVERLAY_TABLES.items():
            cur.execute(
                f"SELECT day_index, {', '.join(columns)} FROM {table} "
                "WHERE itinerary_id = %s ORDER BY day_index ASC",
                (itinerary_id,),
            )
            overlays[kind] = _fetch_dicts(cur)

    return {"header": header, "destinations": destinations, "overlays": overlays}


def save_itinerary(conn, itinerary_id: str, rows: dict[str, Any]) -> None:
    """
    Full replacement of one itinerary's rows.

    `rows` is the output of row_codec.snapshot_to_rows().  The header is
    upserted (an existing owner is kept when the session carries none);
    destination and overlay rows are deleted and re-inserted.
    """
    header = rows["header"]
    with conn.cursor() as cur:
        cur.execute(
            """
            INSERT INTO itineraries (itinerary_id, user_id, title, start_date, duration, updated_at)
            VALUES (%s, %s, %s, %s, %s, NOW())
            ON CONFLICT (itinerary_id) DO UPDATE SET
                user_id    = COALESCE(EXCLUDED.user_id, itineraries.user_id),
                title      = EXCLUDED.title,
                start_date = EXCLUDED.start_date,
                duration   = EXCLUDED.duration,
                updated_at = NOW()
            """,
            (
                itinerary_id,
                header.get("user_id"),
                header.get("title") or "",
                header["start_date"],
                header["duration"],
            ),
        )

        cur.execute("DELETE FROM itinerary_destinations WHERE itinerary_id = %s", (itinerary_id,))
        for table, _ in OVERLAY_TABLES.values():
            cur.execute(f"DELETE FROM {table} WHERE itinerary_id = %s", (itinerary_id,))

        destinations = rows.get("destinations", [])
        if destinations:
            placeholders = ", ".join(["%s"] * (len(DESTINATION_COLUMNS) + 1))
            cur.executemany(
                f"INSERT INTO itinerary_destinations (itinerary_id, {', '.join(DESTINATION_COLUMNS)}) "
                f"VALUES ({placeholders})",
                [(itinerary_id, *(d[c] for c in DESTINATION_COLUMNS)) for d in destinations],
            )

        for kind, (table, columns) in OVERLAY_TABLES.items():
            overlay_rows = rows.get("overlays", {}).get(kind, [])
            if not overlay_rows:
                continue
            placeholders = ", ".join(["%s"] * (len(columns) + 2))
            cur.executemany(
                f"INSERT INTO {table} (itinerary_id, day_index, {', '.join(columns)}) "
                f"VALUES ({placeholders})",
                [
                    (itinerary_id, r["day_index"], *(r[c] for c in columns))
                    for r in overlay_rows
                ],
            )
