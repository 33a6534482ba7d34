from dataclasses import replace

import pytest

from schemas.itinerary import OverlayKind
from modules.schedule.aggregation import effective_value, fold_destination, fold_overlays
from modules.schedule.mutations import ChangeNights, LodgingPropagation, SetOverlay
from modules.schedule.reconciliation import ReconciliationEngine
from tests.conftest import make_snapshot

engine = ReconciliationEngine()
SIGHTS = OverlayKind.SIGHTSEEING


@pytest.fixture
def rome():
    snap = make_snapshot(("Rome", 2), ("Venice", 1))
    rome = replace(snap.destinations[0], auto_sightseeing=("Colosseum",), dining=("Roscioli",))
    return replace(snap, destinations=(rome, snap.destinations[1]))


def test_effective_value_falls_back_to_seed(rome):
    assert effective_value(rome, SIGHTS, 0) == ("Colosseum",)
    assert effective_value(rome, SIGHTS, 2) == ()
    with pytest.raises(IndexError):
        effective_value(rome, SIGHTS, 3)


def test_added_pick_lands_in_manual(rome):
    snap = engine.apply(rome, SetOverlay(SIGHTS, 1, ("Colosseum", "Vatican")))
    folded = fold_destination(snap, 0)
    assert folded.auto_sightseeing == ("Colosseum",)
    assert folded.manual_sightseeing == ("Vatican",)


def test_deselected_seed_is_removed(rome):
    snap = engine.apply(rome, SetOverlay(SIGHTS, 0, ()))
    snap = engine.apply(snap, SetOverlay(SIGHTS, 1, ("Vatican",)))
    folded = fold_destination(snap, 0)
    assert folded.auto_sightseeing == ()
    assert folded.manual_sightseeing == ("Vatican",)


def test_dining_union_in_day_order(rome):
    snap = engine.apply(rome, SetOverlay(OverlayKind.DINING, 1, ("Armando", "Roscioli")))
    assert fold_destination(snap, 0).dining == ("Roscioli", "Armando")


def test_lodging_from_first_day(rome):
    snap = engine.apply(rome, LodgingPropagation(0, "Hotel A", is_manual=True))
    snap = engine.apply(snap, SetOverlay(OverlayKind.LODGING, 0, "Hotel B"))
    folded = fold_destination(snap, 0)
    assert folded.lodging_name == "Hotel B"
    assert not folded.lodging_is_manual


def test_zero_night_destination_keeps_aggregates(rome):
    snap = engine.apply(rome, ChangeNights(0, 0))
    assert fold_destination(snap, 0) == snap.destinations[0]


def test_fold_overlays_covers_every_destination(rome):
    folded = fold_overlays(rome)
    assert [d.name for d in folded] == ["Rome", "Venice"]
    assert folded[0].auto_sightseeing == ("Colosseum",)
