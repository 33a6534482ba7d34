"""
api/server.py
-------------
FastAPI application entry point.

Run dev server:
    cd backend
    uvicorn api.server:app --reload --port 8000

Endpoints:
    GET  /v1/health
    GET  /v1/itineraries?user_id=...
    POST /v1/itineraries/sessions
    GET  /v1/itineraries/sessions/{session_id}
    GET  /v1/itineraries/sessions/{session_id}/days/{day_index}
    POST /v1/itineraries/sessions/{session_id}/save
    PUT  /v1/itineraries/sessions/{session_id}/draft
    POST /v1/itineraries/sessions/{session_id}/open
    POST /v1/itineraries/sessions/{session_id}/suggestions
    POST /v1/itineraries/sessions/{session_id}/reload
    DELETE /v1/itineraries/{itinerary_id}
    POST /v1/edits/{session_id}/{nights|destinations|delete|move|lodging|content|overlay|overlay/clear}
"""
from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.routes import edits, health, itinerary

app = FastAPI(
    title="tripstitch Itinerary Editor API",
    version="1.0.0",
    description=(
        "Day-by-day editing of multi-stop trips: nights, destinations and "
        "per-day sightseeing / lodging / dining / notes stay aligned."
    ),
    docs_url="/docs",
    redoc_url="/redoc",
)

# Allow the frontend (any origin during development)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router,     prefix="/v1",             tags=["Health"])
app.include_router(itinerary.router,  prefix="/v1/itineraries", tags=["Itineraries"])
app.include_router(edits.router,      prefix="/v1/edits",       tags=["Edits"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("api.server:app", host="0.0.0.0", port=8000, reload=True)
