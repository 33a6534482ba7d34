"""
db/redis_client.py
-------------------
redis-py client — singleton plus helpers for the editing-draft key schema.

Key schema:

  itinerary_draft:{itinerary_id}
       Type : String (JSON)
       TTL  : DRAFT_TTL (default 86,400 s = 24 hours; reset on each write)
       Value: raw snapshot dict (row_codec.snapshot_to_dict) of an editing
              session that has not been saved to Postgres yet

Environment variables (set in config.py):
    REDIS_HOST        default: localhost
    REDIS_PORT        default: 6379
    REDIS_DB          default: 0
    REDIS_PASSWORD    default: ""  (empty = no auth)
    DRAFT_TTL         default: 86400
"""

from __future__ import annotations

import json
from typing import Any

import redis

import config

# Module-level singleton; initialised lazily on first call to get_redis()
_client: redis.Redis | None = None


def get_redis() -> redis.Redis:
    """Return the singleton Redis client, creating it on first call."""
    global _client
    if _client is None:
        kwargs: dict[str, Any] = {
            "host":             config.REDIS_HOST,
            "port":             config.REDIS_PORT,
            "db":               config.REDIS_DB,
            "decode_responses": True,
        }
        if config.REDIS_PASSWORD:
            kwargs["password"] = config.REDIS_PASSWORD
        _client = redis.Redis(**kwargs)
    return _client


# ── Editing drafts ─────────────────────────────────────────────────────────────

def _draft_key(itinerary_id: str) -> str:
    return f"itinerary_draft:{itinerary_id}"


def set_draft(itinerary_id: str, draft: dict[str, Any], client: redis.Redis | None = None) -> None:
    """Write (or overwrite) a draft and reset its TTL."""
    r = client or get_redis()
    r.setex(_draft_key(itinerary_id), config.DRAFT_TTL, json.dumps(draft, default=str))


def get_draft(itinerary_id: str, client: redis.Redis | None = None) -> dict | None:
    """Return the stored draft, or None if absent / expired."""
    r = client or get_redis()
    raw = r.get(_draft_key(itinerary_id))
    return json.loads(raw) if raw else None


def delete_draft(itinerary_id: str, client: redis.Redis | None = None) -> bool:
    """Drop a draft (called after a successful save)."""
    r = client or get_redis()
    return bool(r.delete(_draft_key(itinerary_id)))
