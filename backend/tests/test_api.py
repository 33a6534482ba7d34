from contextlib import contextmanager
from unittest.mock import MagicMock

import pytest
import redis
from fastapi.testclient import TestClient

from api.routes import itinerary as itinerary_routes
from api.server import app
from db.repositories import itinerary_repo

client = TestClient(app)


@pytest.fixture
def session_id():
    resp = client.post("/v1/itineraries/sessions", json={
        "start_date": "2025-06-01", "first_destination": "Rome",
    })
    assert resp.status_code == 200
    return resp.json()["session_id"]


@pytest.fixture
def fake_conn(monkeypatch):
    @contextmanager
    def _get_conn():
        yield object()
    monkeypatch.setattr(itinerary_routes, "get_conn", _get_conn)


def _edit(sid, action, **body):
    return client.post(f"/v1/edits/{sid}/{action}", json=body)


def test_health():
    assert client.get("/v1/health").json()["status"] == "ok"


def test_new_trip_requires_start_date():
    assert client.post("/v1/itineraries/sessions", json={}).status_code == 422
    bad = client.post("/v1/itineraries/sessions", json={"start_date": "01/06/2025"})
    assert bad.status_code == 422


def test_unknown_session_is_404():
    assert client.get("/v1/itineraries/sessions/nope").status_code == 404
    assert _edit("nope", "nights", position=0, nights=2).status_code == 404


def test_edit_flow_keeps_days_aligned(session_id):
    _edit(session_id, "nights", position=0, nights=3)
    _edit(session_id, "destinations", name="Venice", nights=2)
    _edit(session_id, "overlay", overlay="notes", day_index=3, value="Gondola at 18:00")
    body = _edit(session_id, "nights", position=0, nights=5).json()

    assert body["total_days"] == 7
    assert [d["name"] for d in body["destinations"]] == ["Rome", "Venice"]
    assert body["destinations"][1]["first_day"] == 5
    assert [d["position"] for d in body["days"]] == [0, 0, 0, 0, 0, 1, 1]

    day = client.get(f"/v1/itineraries/sessions/{session_id}/days/5").json()
    assert day["notes"] == "Gondola at 18:00"
    assert day["destination"] == "Venice"


def test_lodging_propagation_and_override(session_id):
    _edit(session_id, "nights", position=0, nights=3)
    _edit(session_id, "lodging", position=0, name="Hotel A")
    _edit(session_id, "overlay", overlay="lodging", day_index=2, value="Hotel B", is_manual=True)

    lodging = [
        client.get(f"/v1/itineraries/sessions/{session_id}/days/{i}").json()["lodging"]
        for i in range(3)
    ]
    assert lodging == ["Hotel A", "Hotel A", "Hotel B"]


def test_list_overlay_and_clear(session_id):
    _edit(session_id, "content", position=0, changes={"auto_sightseeing": ["Colosseum"]})
    _edit(session_id, "overlay", overlay="sightseeing", day_index=0, value=[])
    day = client.get(f"/v1/itineraries/sessions/{session_id}/days/0").json()
    assert day["sightseeing"] == []
    assert day["sightseeing_explicit"]

    _edit(session_id, "overlay/clear", overlay="sightseeing", day_index=0)
    day = client.get(f"/v1/itineraries/sessions/{session_id}/days/0").json()
    assert day["sightseeing"] == ["Colosseum"]


def test_rejections_map_to_422(session_id):
    resp = _edit(session_id, "delete", position=0)
    assert resp.status_code == 422
    assert resp.json()["detail"]["reason"] == "LAST_DESTINATION"

    assert _edit(session_id, "nights", position=0, nights=-1).status_code == 422
    assert _edit(session_id, "overlay", overlay="weather", day_index=0, value="x").status_code == 422
    assert _edit(session_id, "content", position=0, changes={"nights": 4}).status_code == 422


def test_move_destination(session_id):
    _edit(session_id, "destinations", name="Venice")
    body = _edit(session_id, "move", from_position=1, to_position=0).json()
    assert [d["name"] for d in body["destinations"]] == ["Venice", "Rome"]


def test_day_outside_trip_is_404(session_id):
    assert client.get(f"/v1/itineraries/sessions/{session_id}/days/9").status_code == 404


def test_save(session_id, fake_conn, monkeypatch):
    save = MagicMock()
    monkeypatch.setattr(itinerary_repo, "save_itinerary", save)

    resp = client.post(f"/v1/itineraries/sessions/{session_id}/save")
    assert resp.status_code == 200
    assert resp.json()["saved"]["destinations"] == 1
    save.assert_called_once()


def test_save_with_unnamed_destination_is_422(session_id, fake_conn, monkeypatch):
    save = MagicMock()
    monkeypatch.setattr(itinerary_repo, "save_itinerary", save)
    _edit(session_id, "destinations")

    resp = client.post(f"/v1/itineraries/sessions/{session_id}/save")
    assert resp.status_code == 422
    save.assert_not_called()


def test_open_stored_itinerary(fake_conn, monkeypatch):
    monkeypatch.setattr(itinerary_repo, "load_itinerary", lambda conn, iid: {
        "header": {"itinerary_id": iid, "start_date": "2025-06-01"},
        "destinations": [{"destination_id": "r", "order_index": 0, "destination": "Rome", "nights": 2}],
        "overlays": {"notes": [{"day_index": 1, "notes": "saved note"}]},
    })
    body = client.post("/v1/itineraries/sessions", json={"itinerary_id": "trip-7"}).json()
    assert body["itinerary_id"] == "trip-7"
    day = client.get(f"/v1/itineraries/sessions/{body['session_id']}/days/1").json()
    assert day["notes"] == "saved note"


def test_open_missing_itinerary_is_404(fake_conn, monkeypatch):
    monkeypatch.setattr(itinerary_repo, "load_itinerary", lambda conn, iid: None)
    assert client.post("/v1/itineraries/sessions", json={"itinerary_id": "gone"}).status_code == 404


def test_draft_round_trip(session_id, monkeypatch):
    drafts = {}
    monkeypatch.setattr(itinerary_routes, "set_draft", lambda iid, d: drafts.__setitem__(iid, d))
    monkeypatch.setattr(itinerary_routes, "get_draft", lambda iid: drafts.get(iid))

    _edit(session_id, "nights", position=0, nights=4)
    assert client.put(f"/v1/itineraries/sessions/{session_id}/draft").status_code == 200
    itinerary_id = client.get(f"/v1/itineraries/sessions/{session_id}").json()["itinerary_id"]

    resumed = client.post("/v1/itineraries/sessions", json={
        "itinerary_id": itinerary_id, "from_draft": True,
    }).json()
    assert resumed["total_days"] == 4
    assert resumed["session_id"] != session_id


def test_draft_cache_down_is_503(session_id, monkeypatch):
    def _down(*args):
        raise redis.ConnectionError("refused")
    monkeypatch.setattr(itinerary_routes, "set_draft", _down)
    assert client.put(f"/v1/itineraries/sessions/{session_id}/draft").status_code == 503


def test_new_trip_owner_is_saved_and_listable(fake_conn, monkeypatch):
    save = MagicMock()
    monkeypatch.setattr(itinerary_repo, "save_itinerary", save)
    body = client.post("/v1/itineraries/sessions", json={
        "start_date": "2025-06-01", "first_destination": "Rome",
        "user_id": "u-42", "title": "Italy in June",
    }).json()
    assert body["user_id"] == "u-42"

    client.post(f"/v1/itineraries/sessions/{body['session_id']}/save")
    header = save.call_args.args[2]["header"]
    assert header["user_id"] == "u-42"
    assert header["title"] == "Italy in June"


def test_delete_stored_itinerary(fake_conn, monkeypatch):
    monkeypatch.setattr(itinerary_repo, "delete_itinerary", lambda conn, iid: iid == "trip-7")
    assert client.delete("/v1/itineraries/trip-7").json()["deleted"]
    assert client.delete("/v1/itineraries/gone").status_code == 404


class _ManualTimer:
    """Debounce timer that only fires when the test says so."""

    made: list["_ManualTimer"] = []

    def __init__(self, delay, fn):
        self.fn = fn
        self.daemon = False
        _ManualTimer.made.append(self)

    def start(self):
        pass

    def cancel(self):
        pass

    def fire(self):
        self.fn()


def _stored(iid, dest, nights, note):
    return {
        "header": {"itinerary_id": iid, "start_date": "2025-06-01"},
        "destinations": [{"destination_id": dest.lower(), "order_index": 0,
                          "destination": dest, "nights": nights}],
        "overlays": {"notes": [{"day_index": 0, "notes": note}]},
    }


@pytest.fixture
def manual_timers(monkeypatch):
    _ManualTimer.made = []
    monkeypatch.setattr(itinerary_routes, "_timer_factory", _ManualTimer)
    return _ManualTimer.made


def test_reload_picks_up_saved_overlays(fake_conn, monkeypatch, manual_timers):
    store = {"trip-7": _stored("trip-7", "Rome", 2, "v1")}
    monkeypatch.setattr(itinerary_repo, "load_itinerary", lambda conn, iid: store.get(iid))
    sid = client.post("/v1/itineraries/sessions", json={"itinerary_id": "trip-7"}).json()["session_id"]

    store["trip-7"] = _stored("trip-7", "Rome", 2, "v2 from another device")
    assert client.post(f"/v1/itineraries/sessions/{sid}/reload").json()["pending"]
    manual_timers[-1].fire()

    day = client.get(f"/v1/itineraries/sessions/{sid}/days/0").json()
    assert day["notes"] == "v2 from another device"


def test_reload_for_itinerary_left_behind_is_discarded(fake_conn, monkeypatch, manual_timers):
    session = {}
    navigate_during_fetch = {"on": False}

    def _load(conn, iid):
        if iid == "trip-7" and navigate_during_fetch["on"]:
            navigate_during_fetch["on"] = False
            switched = client.post(f"/v1/itineraries/sessions/{session['id']}/open",
                                   json={"itinerary_id": "trip-8"})
            assert switched.status_code == 200
            return _stored("trip-7", "Rome", 2, "late trip-7 note")
        if iid == "trip-7":
            return _stored("trip-7", "Rome", 2, "trip-7 note")
        return _stored("trip-8", "Venice", 3, "trip-8 note")

    monkeypatch.setattr(itinerary_repo, "load_itinerary", _load)
    session["id"] = client.post("/v1/itineraries/sessions", json={"itinerary_id": "trip-7"}).json()["session_id"]

    client.post(f"/v1/itineraries/sessions/{session['id']}/reload")
    navigate_during_fetch["on"] = True
    manual_timers[-1].fire()

    body = client.get(f"/v1/itineraries/sessions/{session['id']}").json()
    assert body["itinerary_id"] == "trip-8"
    assert body["generation"] == 1
    day = client.get(f"/v1/itineraries/sessions/{session['id']}/days/0").json()
    assert day["notes"] == "trip-8 note"
    assert day["destination"] == "Venice"
