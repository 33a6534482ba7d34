from dataclasses import replace

from db.repositories import itinerary_repo
from modules.persistence.row_codec import snapshot_to_rows
from tests.conftest import make_snapshot


class FakeCursor:
    """Records SQL; answers SELECTs from a queue of (columns, rows)."""

    def __init__(self, results=()):
        self.results = list(results)
        self.executed = []
        self.many = []
        self.description = None
        self._rows = []
        self.rowcount = 0

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def execute(self, sql, params=None):
        self.executed.append((" ".join(sql.split()), params))
        if sql.lstrip().upper().startswith("SELECT") and self.results:
            cols, rows = self.results.pop(0)
            self.description = [(c,) for c in cols]
            self._rows = rows
        self.rowcount = 1

    def executemany(self, sql, seq):
        self.many.append((" ".join(sql.split()), list(seq)))

    def fetchall(self):
        return self._rows

    def fetchone(self):
        return self._rows[0] if self._rows else None


class FakeConn:
    def __init__(self, cursor):
        self._cursor = cursor

    def cursor(self):
        return self._cursor


def test_save_is_a_full_replacement():
    cur = FakeCursor()
    rows = snapshot_to_rows(make_snapshot(("Rome", 2), ("Venice", 1)))
    rows["overlays"]["notes"] = [{"day_index": 0, "notes": "hi"}]

    itinerary_repo.save_itinerary(FakeConn(cur), "trip-1", rows)

    statements = [sql for sql, _ in cur.executed]
    assert statements[0].startswith("INSERT INTO itineraries")
    assert "ON CONFLICT (itinerary_id) DO UPDATE" in statements[0]
    deletes = [s for s in statements if s.startswith("DELETE")]
    assert len(deletes) == 5

    inserted = dict(cur.many)
    dest_sql = next(s for s in inserted if "itinerary_destinations" in s)
    assert [r[3] for r in inserted[dest_sql]] == ["Rome", "Venice"]
    assert [r[2] for r in inserted[dest_sql]] == [0, 1]
    notes_sql = next(s for s in inserted if "itinerary_day_notes" in s)
    assert inserted[notes_sql] == [("trip-1", 0, "hi")]


def test_load_returns_none_for_unknown_itinerary():
    cur = FakeCursor([(["itinerary_id"], [])])
    assert itinerary_repo.load_itinerary(FakeConn(cur), "missing") is None


def test_load_collects_header_destinations_and_overlays():
    header_cols = ["itinerary_id", "user_id", "title", "start_date", "duration", "updated_at"]
    cur = FakeCursor([
        (header_cols, [("trip-1", "u1", "", "2025-06-01", 3, None)]),
        (list(itinerary_repo.DESTINATION_COLUMNS),
         [("rome", 0, "Rome", 3, "", "", "", "", False, "", "")]),
        (["day_index", "items"], [(1, ["Vatican"])]),
        (["day_index", "lodging", "is_manual"], []),
        (["day_index", "items"], []),
        (["day_index", "notes"], [(0, "Arrive")]),
    ])

    loaded = itinerary_repo.load_itinerary(FakeConn(cur), "trip-1")

    assert loaded["header"]["duration"] == 3
    assert loaded["destinations"][0]["destination"] == "Rome"
    assert loaded["overlays"]["sightseeing"] == [{"day_index": 1, "items": ["Vatican"]}]
    assert loaded["overlays"]["lodging"] == []
    assert loaded["overlays"]["notes"] == [{"day_index": 0, "notes": "Arrive"}]


def test_list_and_delete():
    cur = FakeCursor([(["itinerary_id", "user_id"], [("a", "u1"), ("b", "u1")])])
    conn = FakeConn(cur)
    assert [r["itinerary_id"] for r in itinerary_repo.list_itineraries(conn, "u1")] == ["a", "b"]
    assert itinerary_repo.delete_itinerary(conn, "a")
    assert cur.executed[-1][1] == ("a",)


def test_save_writes_owner_and_title():
    cur = FakeCursor()
    snap = replace(make_snapshot(("Rome", 2)), user_id="u-42", title="Italy in June")

    itinerary_repo.save_itinerary(FakeConn(cur), "trip-1", snapshot_to_rows(snap))

    sql, params = cur.executed[0]
    assert "user_id" in sql and "title" in sql
    assert params == ("trip-1", "u-42", "Italy in June", "2025-06-01", 2)
