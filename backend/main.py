"""
main.py
--------
tripstitch entry point.

Run:
  python main.py                     scripted editing session, prints the calendar
  python main.py --replay <sid>      re-apply a logged session and verify hashes
  python main.py --serve             start the API (uvicorn, port 8000)

The scripted session exercises every edit the API exposes: nights changes,
insert/delete/move of destinations, lodging propagation and per-day
overrides, followed by the save-time aggregation of each destination.
"""

from __future__ import annotations

import json
import sys
from datetime import date

from schemas.itinerary import OverlayKind
from modules.persistence.row_codec import snapshot_to_rows
from modules.session.editor import ItineraryEditor


def run_demo(start: date = date(2025, 6, 1)) -> ItineraryEditor:
    """Build a three-stop trip the way a user would in the calendar UI."""
    editor = ItineraryEditor.new_trip(start, "Rome")
    editor.change_nights(0, 3)
    editor.edit_destination(0, auto_sightseeing=("Colosseum", "Pantheon"), dining=("Roscioli",))
    editor.propagate_lodging(0, "Hotel Artemide", is_manual=True)
    editor.set_overlay(OverlayKind.SIGHTSEEING, 1, ("Vatican Museums",))
    editor.set_overlay(OverlayKind.NOTES, 2, "Train to Florence at 17:10")

    editor.append_destination("Florence", nights=2)
    editor.append_destination("Venice", nights=2)
    editor.propagate_lodging(2, "Ca' Sagredo")

    # Rome grows by one day: Florence and Venice days shift, Rome's lodging carries over
    editor.change_nights(0, 4)
    # Florence and Venice swap; Venice keeps its lodging on its own days
    editor.move_destination(2, 1)
    return editor


def _print_calendar(editor: ItineraryEditor) -> None:
    width = 72
    print("═" * width)
    print(f"  ITINERARY {editor.snapshot.itinerary_id}  ({editor.total_days} days)")
    print("═" * width)
    for day in editor.project_days():
        dest = editor.destinations[day.owner_position]
        marker = "▶" if day.is_first_day_of_owner else " "
        print(f" {marker} Day {day.day_index + 1:>2}  {day.date.isoformat()}  {dest.name or '(unnamed)'}")
        for kind in OverlayKind:
            value = editor.get_overlay(kind, day.day_index)
            if not value:
                continue
            shown = ", ".join(value) if kind.is_list else value
            flag = "*" if editor.is_explicit(kind, day.day_index) else " "
            print(f"        {flag}{kind.value:<12} {shown}")
    print("═" * width)
    print("  * = set on that day; others inherit the destination default")
    print()


if __name__ == "__main__":
    if "--replay" in sys.argv:
        from modules.observability.replay import replay_session
        _replay_idx = sys.argv.index("--replay")
        if _replay_idx + 1 >= len(sys.argv):
            print("Usage: python main.py --replay <session_id>")
            sys.exit(1)
        replay_session(sys.argv[_replay_idx + 1])
        sys.exit(0)

    if "--serve" in sys.argv:
        import uvicorn
        uvicorn.run("api.server:app", host="0.0.0.0", port=8000)
        sys.exit(0)

    editor = run_demo()
    _print_calendar(editor)

    print("SAVE ROWS (JSON):")
    print(json.dumps(snapshot_to_rows(editor.snapshot)["destinations"], indent=2))
    print(f"\nSession log: {editor.session_id}  (python main.py --replay {editor.session_id})")
