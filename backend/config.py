"""
config.py
---------
Central configuration for the tripstitch backend.
All secrets loaded from environment variables — never hard-coded.
"""

import os
from pathlib import Path

# Load .env from the backend directory (if it exists) so env vars in that file
# are picked up by os.getenv() below.  Won't override vars already set in the shell.
from dotenv import load_dotenv

_env_path = Path(__file__).parent / ".env"
if _env_path.exists():
    load_dotenv(_env_path, override=False)


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


# ── Itinerary editing ─────────────────────────────────────────────────────────
# Nights given to a freshly added (empty) destination.
DEFAULT_NIGHTS: int = int(os.getenv("DEFAULT_NIGHTS", "1"))

# Separator used when destination aggregate fields are persisted as one string
# e.g. discover = "Colosseum, Trevi Fountain"
AGGREGATE_SEPARATOR: str = os.getenv("AGGREGATE_SEPARATOR", ",")

# Debounce window for background overlay loads (seconds)
LOAD_DEBOUNCE_SECONDS: float = float(os.getenv("LOAD_DEBOUNCE_SECONDS", "0.3"))

# ── Observability ─────────────────────────────────────────────────────────────
# JSONL mutation logs, one file per editing session
LOGS_DIR: Path = Path(os.getenv("LOGS_DIR", str(Path(__file__).resolve().parent / "logs")))

# ── Search provider (sightseeing / dining suggestions) ───────────────────────
# Stub mode returns deterministic names; no external API calls are made.
# Set USE_STUB_PLACES=false and supply GOOGLE_PLACES_API_KEY for live lookups.
USE_STUB_PLACES: bool = _flag("USE_STUB_PLACES", "true")
GOOGLE_PLACES_API_KEY: str = os.getenv("GOOGLE_PLACES_API_KEY", "")
GOOGLE_PLACES_TEXT_SEARCH_URL: str = os.getenv(
    "GOOGLE_PLACES_TEXT_SEARCH_URL",
    "https://maps.googleapis.com/maps/api/place/textsearch/json",
)
PLACES_MAX_RESULTS: int = int(os.getenv("PLACES_MAX_RESULTS", "5"))
PLACES_REQUEST_TIMEOUT: int = int(os.getenv("PLACES_REQUEST_TIMEOUT", "10"))

# ── PostgreSQL ────────────────────────────────────────────────────────────────
# Schema defined in db/schema.sql
# Apply with: python scripts/run_migrations.py
POSTGRES_HOST: str     = os.getenv("POSTGRES_HOST",     "localhost")
POSTGRES_PORT: int     = int(os.getenv("POSTGRES_PORT", "5432"))
POSTGRES_DB: str       = os.getenv("POSTGRES_DB",       "tripstitch")
POSTGRES_USER: str     = os.getenv("POSTGRES_USER",     "tripstitch_user")
POSTGRES_PASSWORD: str = os.getenv("POSTGRES_PASSWORD", "tripstitch_pass")
POSTGRES_MIN_CONN: int = int(os.getenv("POSTGRES_MIN_CONN", "1"))
POSTGRES_MAX_CONN: int = int(os.getenv("POSTGRES_MAX_CONN", "10"))

# ── Redis ─────────────────────────────────────────────────────────────────────
# Unsaved editing drafts: itinerary_draft:{itinerary_id}
REDIS_HOST: str        = os.getenv("REDIS_HOST",     "localhost")
REDIS_PORT: int        = int(os.getenv("REDIS_PORT", "6379"))
REDIS_DB: int          = int(os.getenv("REDIS_DB",   "0"))
REDIS_PASSWORD: str    = os.getenv("REDIS_PASSWORD", "")
# TTL (seconds), reset on every draft write
DRAFT_TTL: int         = int(os.getenv("DRAFT_TTL",  "86400"))    # 24 hours
