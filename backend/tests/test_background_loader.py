from contextlib import contextmanager
from unittest.mock import MagicMock

from schemas.itinerary import OverlayEntry, OverlayKind
from modules.session.background_loader import (
    DebouncedLoader,
    repository_fetch,
    suggestion_fetch,
)
from modules.tool_usage.places_tool import PlacesTool

NOTES = OverlayKind.NOTES


class FakeTimer:
    """Stands in for threading.Timer; fires only when told to."""

    created: list["FakeTimer"] = []

    def __init__(self, delay, fn):
        self.delay = delay
        self.fn = fn
        self.cancelled = False
        self.started = False
        self.daemon = False
        FakeTimer.created.append(self)

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        if not self.cancelled:
            self.fn()


def _loader(editor, fetch):
    FakeTimer.created = []
    return DebouncedLoader(editor, fetch, delay=0.3, timer_factory=FakeTimer)


def test_rapid_triggers_collapse_into_one_fetch(editor):
    fetch = MagicMock(return_value={NOTES: [OverlayEntry(0, "loaded")]})
    loader = _loader(editor, fetch)

    for _ in range(3):
        loader.trigger()
    assert [t.cancelled for t in FakeTimer.created] == [True, True, False]

    for timer in FakeTimer.created:
        timer.fire()
    fetch.assert_called_once()
    assert editor.get_overlay(NOTES, 0) == "loaded"
    assert not loader.pending


def test_edit_during_fetch_discards_result(editor):
    def fetch(ticket):
        editor.set_overlay(NOTES, 0, "typed meanwhile")
        return {NOTES: [OverlayEntry(0, "stale")]}

    loader = _loader(editor, fetch)
    loader.trigger()
    assert loader.flush() == []
    assert editor.get_overlay(NOTES, 0) == "typed meanwhile"


def test_fetch_failure_is_recorded(editor):
    loader = _loader(editor, MagicMock(side_effect=RuntimeError("provider down")))
    loader.trigger()
    assert loader.flush() == []
    assert isinstance(loader.last_error, RuntimeError)
    assert editor.snapshot.edit_count == 0


def test_cancel_drops_pending_load(editor):
    fetch = MagicMock()
    loader = _loader(editor, fetch)
    loader.trigger()
    loader.cancel()
    assert loader.flush() == []
    fetch.assert_not_called()


def test_repository_fetch_skips_malformed_rows(editor):
    repo = MagicMock()
    repo.load_itinerary.return_value = {
        "header": {},
        "destinations": [],
        "overlays": {
            "notes": [{"day_index": 1, "notes": "saved"}, {"day_index": 2, "notes": None}],
        },
    }

    @contextmanager
    def conn_factory():
        yield object()

    results = repository_fetch(conn_factory, repo=repo)(editor.issue_load())
    assert results == {NOTES: [OverlayEntry(1, "saved")]}


def test_suggestions_fill_only_unset_days_without_seed(editor):
    editor.set_overlay(OverlayKind.SIGHTSEEING, 3, ("Doge's Palace",))
    fetch = suggestion_fetch(PlacesTool(use_stub=True, max_results=2), kinds=(OverlayKind.SIGHTSEEING,))
    loader = _loader(editor, fetch)
    loader.trigger()

    assert loader.flush() == [OverlayKind.SIGHTSEEING]
    assert editor.get_overlay(OverlayKind.SIGHTSEEING, 0) == ("Rome Old Town", "Rome Cathedral")
    assert editor.get_overlay(OverlayKind.SIGHTSEEING, 3) == ("Doge's Palace",)
    assert editor.get_overlay(OverlayKind.SIGHTSEEING, 4) == ("Venice Old Town", "Venice Cathedral")


def test_saved_suggestions_land_in_discover_not_manual(editor):
    editor.set_overlay(OverlayKind.SIGHTSEEING, 3, ("Doge's Palace",))
    fetch = suggestion_fetch(PlacesTool(use_stub=True, max_results=2), kinds=(OverlayKind.SIGHTSEEING,))
    loader = _loader(editor, fetch)
    loader.trigger()
    loader.flush()

    rome, venice = editor.to_rows()["destinations"]
    assert rome["discover"] == "Rome Old Town, Rome Cathedral"
    assert rome["manual_discover"] == ""
    assert venice["discover"] == "Venice Old Town, Venice Cathedral"
    assert venice["manual_discover"] == "Doge's Palace"
