from datetime import date

import pytest

import config
from schemas.itinerary import Destination
from modules.observability.logger import StructuredLogger
from modules.schedule.snapshot import ItinerarySnapshot, empty_overlays
from modules.session.editor import ItineraryEditor


@pytest.fixture(autouse=True)
def _isolated_logs(tmp_path, monkeypatch):
    monkeypatch.setattr(config, "LOGS_DIR", tmp_path / "logs")


@pytest.fixture
def logger(tmp_path):
    log = StructuredLogger(tmp_path / "session-logs")
    yield log
    log.close()


def make_snapshot(*stops, start=date(2025, 6, 1), itinerary_id="trip-1"):
    """make_snapshot(("Rome", 3), ("Venice", 2)) — ids are the lowercased names."""
    return ItinerarySnapshot(
        itinerary_id=itinerary_id,
        start_date=start,
        destinations=tuple(
            Destination(destination_id=name.lower(), name=name, nights=nights)
            for name, nights in stops
        ),
        overlays=empty_overlays(),
    )


@pytest.fixture
def rome_venice():
    return make_snapshot(("Rome", 3), ("Venice", 2))


@pytest.fixture
def editor(rome_venice, logger):
    return ItineraryEditor(rome_venice, session_id="edit_test", logger=logger)
