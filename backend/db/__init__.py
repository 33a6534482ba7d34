"""
db/
----
Storage layer for tripstitch.

  PostgreSQL (psycopg2) — the persistent itinerary store
    tables: itineraries, itinerary_destinations,
            itinerary_day_sightseeing, itinerary_day_lodging,
            itinerary_day_dining, itinerary_day_notes
    schema: db/schema.sql
    apply:  python scripts/run_migrations.py

  Redis (redis-py) — unsaved editing drafts
    itinerary_draft:{itinerary_id}   TTL = DRAFT_TTL (24 h)

Public exports:
    from db import get_conn, get_redis
    from db.repositories import itinerary_repo
"""

from db.connection import get_conn, close_pool
from db.redis_client import get_redis

__all__ = ["get_conn", "close_pool", "get_redis"]
