import json

import pytest

from schemas.itinerary import Destination, OverlayEntry, OverlayKind
from modules.observability.replay import replay_session
from modules.persistence.row_codec import compute_snapshot_hash
from modules.schedule.mutations import (
    ChangeNights,
    EditDestination,
    InsertDestination,
    SetOverlay,
    mutation_from_dict,
)


def _record_session(editor):
    editor.change_nights(0, 4)
    editor.insert_destination(1, Destination(destination_id="florence", name="Florence", nights=2))
    editor.propagate_lodging(0, "Hotel A")
    editor.edit_destination(2, dining=("Harry's Bar",))
    editor.set_overlay(OverlayKind.SIGHTSEEING, 5, ("Uffizi",))
    ticket = editor.issue_load()
    editor.apply_load(ticket, OverlayKind.NOTES, [OverlayEntry(0, "from store")])
    editor.move_destination(2, 0)
    editor.clear_overlay(OverlayKind.SIGHTSEEING, 2 + 5)


def test_replay_reproduces_final_state(editor, logger):
    _record_session(editor)
    final = replay_session("edit_test", logs_dir=logger.logs_dir, verbose=False)
    assert final.same_state(editor.snapshot)
    assert compute_snapshot_hash(final) == compute_snapshot_hash(editor.snapshot)


def test_replay_detects_tampered_log(editor, logger):
    _record_session(editor)
    logger.close()
    path = logger.logs_dir / "edit_test.jsonl"
    records = [json.loads(line) for line in path.read_text().splitlines()]
    for rec in records:
        if rec["event_type"] == "STATE_MUTATION":
            rec["payload"]["after_hash"] = "0" * 64
            break
    path.write_text("\n".join(json.dumps(r) for r in records) + "\n")

    with pytest.raises(RuntimeError, match="REPLAY_DIVERGENCE"):
        replay_session("edit_test", logs_dir=logger.logs_dir, verbose=False)


def test_replay_unknown_session(tmp_path):
    with pytest.raises(FileNotFoundError):
        replay_session("never-logged", logs_dir=tmp_path, verbose=False)


@pytest.mark.parametrize("mutation", [
    ChangeNights(1, 3),
    InsertDestination(0, Destination(destination_id="x", name="X", nights=2, dining=("a", "b"))),
    EditDestination(0, {"notes": "n", "dining": ("a",)}),
    SetOverlay(OverlayKind.DINING, 2, ("Trattoria",), is_manual=True),
])
def test_mutation_dict_form_round_trips(mutation):
    data = json.loads(json.dumps(mutation.to_dict()))
    rebuilt = mutation_from_dict(data)
    assert rebuilt.kind is mutation.kind
    assert rebuilt.to_dict() == mutation.to_dict()
