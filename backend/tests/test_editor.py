from datetime import date
from unittest.mock import MagicMock

import pytest

from schemas.itinerary import OverlayEntry, OverlayKind
from modules.schedule.reconciliation import MutationRejected
from modules.session.editor import ItineraryEditor, PersistenceValidationError
from tests.conftest import make_snapshot

NOTES = OverlayKind.NOTES


def test_queries_follow_the_current_snapshot(editor):
    assert editor.total_days == 5
    assert editor.get_destination_day_range(1) == (3, 5)

    editor.change_nights(0, 5)
    assert editor.total_days == 7
    assert editor.get_destination_day_range(1) == (5, 7)
    assert editor.project_days()[6].date == date(2025, 6, 7)


def test_rejected_mutation_leaves_state_and_is_logged(editor, logger):
    before = editor.snapshot
    with pytest.raises(MutationRejected):
        editor.change_nights(0, -3)
    assert editor.snapshot is before

    events = [r["event_type"] for r in logger.read("edit_test")]
    assert events == ["SESSION_OPEN", "MUTATION_REJECTED"]


def test_mutations_are_logged_with_hashes(editor, logger):
    editor.propagate_lodging(0, "Hotel A")
    editor.append_destination("Florence", nights=2)

    records = [r for r in logger.read("edit_test") if r["event_type"] == "STATE_MUTATION"]
    assert [r["payload"]["mutation"]["kind"] for r in records] == [
        "lodging_propagation", "insert_destination",
    ]
    assert records[0]["payload"]["after_hash"] == records[1]["payload"]["before_hash"]
    assert len(editor.history) == 2


def test_day_view_merges_explicit_and_seeded_values(editor):
    editor.edit_destination(0, auto_sightseeing=("Colosseum",))
    editor.set_overlay(NOTES, 1, "Vatican tickets 9:00")

    day = editor.day_view(1)
    assert day["destination"] == "Rome"
    assert day["sightseeing"] == ["Colosseum"]
    assert not day["sightseeing_explicit"]
    assert day["notes"] == "Vatican tickets 9:00"
    assert day["notes_explicit"]
    with pytest.raises(IndexError):
        editor.day_view(5)


def test_load_applies_when_nothing_changed(editor):
    ticket = editor.issue_load()
    assert editor.apply_load(ticket, NOTES, [OverlayEntry(0, "loaded")])
    assert editor.get_overlay(NOTES, 0) == "loaded"
    assert editor.snapshot.edit_count == 0


def test_load_discarded_after_local_edit(editor, logger):
    ticket = editor.issue_load()
    editor.set_overlay(NOTES, 0, "typed by user")

    assert not editor.apply_load(ticket, NOTES, [OverlayEntry(0, "stale")])
    assert editor.get_overlay(NOTES, 0) == "typed by user"
    discarded = [r for r in logger.read("edit_test") if r["event_type"] == "LOAD_DISCARDED"]
    assert discarded[0]["payload"]["why"] == "local_edits_since_issue"


def test_load_discarded_after_switching_itinerary(editor):
    ticket = editor.issue_load()
    editor.open(make_snapshot(("Paris", 2), itinerary_id="trip-2"))

    assert not editor.apply_load(ticket, NOTES, [OverlayEntry(0, "for trip-1")])
    assert not editor.snapshot.store(NOTES).has(0)
    assert editor.generation == 1


def test_newer_load_wins_over_older_one(editor):
    first = editor.issue_load()
    editor.open(make_snapshot(("Rome", 3), ("Venice", 2)))
    second = editor.issue_load()

    assert editor.apply_load(second, NOTES, [OverlayEntry(0, "second")])
    assert not editor.apply_load(first, NOTES, [OverlayEntry(0, "first")])
    assert editor.get_overlay(NOTES, 0) == "second"


def test_save_writes_validated_rows(editor):
    repo = MagicMock()
    conn = object()
    summary = editor.save(conn, repo=repo)

    repo.save_itinerary.assert_called_once()
    args = repo.save_itinerary.call_args.args
    assert args[0] is conn
    assert args[1] == "trip-1"
    assert [d["destination"] for d in args[2]["destinations"]] == ["Rome", "Venice"]
    assert summary["destinations"] == 2


def test_save_refuses_unnamed_destination(editor):
    editor.append_destination()
    repo = MagicMock()
    with pytest.raises(PersistenceValidationError) as err:
        editor.save(object(), repo=repo)
    assert any("destination must not be empty" in e for e in err.value.errors)
    repo.save_itinerary.assert_not_called()


def test_store_failure_keeps_in_memory_state(editor):
    editor.change_nights(1, 4)
    repo = MagicMock()
    repo.save_itinerary.side_effect = RuntimeError("connection reset")
    with pytest.raises(RuntimeError):
        editor.save(object(), repo=repo)
    assert editor.destinations[1].nights == 4


def test_new_trip_factory(logger):
    editor = ItineraryEditor.new_trip(date(2025, 9, 1), "Lisbon", itinerary_id="t-new", logger=logger)
    assert editor.total_days == 1
    assert editor.destinations[0].name == "Lisbon"
    assert editor.snapshot.itinerary_id == "t-new"
