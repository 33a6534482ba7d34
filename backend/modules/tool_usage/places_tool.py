"""
modules/tool_usage/places_tool.py
-----------------------------------
Search-provider boundary for sightseeing and dining suggestions.

Stub mode  (USE_STUB_PLACES=true)  — deterministic names, no network.
Live mode  (USE_STUB_PLACES=false) — Google Places Text Search:
    GET GOOGLE_PLACES_TEXT_SEARCH_URL?query=<kind phrase> in <destination>&key=...

Whatever the mode, suggest() returns final display strings.  Callers store
them as overlay values; provider ids never reach the itinerary.
"""

from __future__ import annotations

import logging

import requests

import config
from schemas.itinerary import OverlayKind

logger = logging.getLogger(__name__)

# Text-search phrase per overlay kind
_QUERY_PHRASES: dict[OverlayKind, str] = {
    OverlayKind.SIGHTSEEING: "top sights",
    OverlayKind.DINING:      "best restaurants",
}

_STUB_SUFFIXES: dict[OverlayKind, tuple[str, ...]] = {
    OverlayKind.SIGHTSEEING: ("Old Town", "Cathedral", "City Museum", "Central Park", "Viewpoint"),
    OverlayKind.DINING:      ("Trattoria", "Market Hall", "Street Food Lane", "Bistro", "Harbour Grill"),
}


class PlacesTool:
    """Returns up to PLACES_MAX_RESULTS place names for a destination."""

    def __init__(
        self,
        use_stub: bool | None = None,
        api_key: str | None = None,
        max_results: int | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self.use_stub = config.USE_STUB_PLACES if use_stub is None else use_stub
        self.api_key = config.GOOGLE_PLACES_API_KEY if api_key is None else api_key
        self.max_results = max_results or config.PLACES_MAX_RESULTS
        self._http = session or requests.Session()

    def suggest(self, destination_name: str, kind: OverlayKind) -> list[str]:
        if kind not in _QUERY_PHRASES:
            raise ValueError(f"No suggestions for overlay kind {kind.value!r}")
        destination = destination_name.strip()
        if not destination:
            return []
        if self.use_stub:
            return [f"{destination} {s}" for s in _STUB_SUFFIXES[kind]][: self.max_results]
        return self._text_search(f"{_QUERY_PHRASES[kind]} in {destination}")

    # ── live mode ────────────────────────────────────────────────────────────

    def _text_search(self, query: str) -> list[str]:
        if not self.api_key:
            raise RuntimeError(
                "GOOGLE_PLACES_API_KEY is not set. Export it or set USE_STUB_PLACES=true."
            )
        try:
            resp = self._http.get(
                config.GOOGLE_PLACES_TEXT_SEARCH_URL,
                params={"query": query, "key": self.api_key},
                timeout=config.PLACES_REQUEST_TIMEOUT,
            )
            resp.raise_for_status()
            data = resp.json()
        except requests.RequestException as exc:
            raise RuntimeError(f"Google Places text search failed for {query!r}: {exc}") from exc

        status = data.get("status", "OK")
        if status not in ("OK", "ZERO_RESULTS"):
            raise RuntimeError(
                f"Google Places text search returned status={status!r}: "
                f"{data.get('error_message', '')}"
            )

        names: list[str] = []
        for item in data.get("results", []):
            name = (item.get("name") or "").strip()
            if name and name not in names:
                names.append(name)
            if len(names) >= self.max_results:
                break
        logger.debug("Places text search %r -> %d result(s)", query, len(names))
        return names
