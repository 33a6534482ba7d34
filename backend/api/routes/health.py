"""
api/routes/health.py
--------------------
Health-check endpoint — used by load balancers, Docker health probes, etc.
"""
from __future__ import annotations

from fastapi import APIRouter

router = APIRouter()


@router.get("/health", summary="Health check")
def health(deep: bool = False) -> dict:
    """200 OK while the service runs; ?deep=true also pings Postgres."""
    body = {"status": "ok", "service": "tripstitch-backend"}
    if deep:
        from db.connection import ping
        body["postgres"] = "ok" if ping() else "unreachable"
    return body
