from schemas.itinerary import Destination, OverlayKind
from modules.schedule.default_seeder import (
    DefaultSeeder,
    dedupe,
    join_aggregate,
    split_aggregate,
)


def test_split_trims_and_skips_blanks():
    assert split_aggregate("Colosseum, , Trevi Fountain ,") == ("Colosseum", "Trevi Fountain")
    assert split_aggregate("") == ()
    assert split_aggregate(None) == ()


def test_join_then_split_keeps_tokens():
    tokens = ("Colosseum", "Trevi Fountain", "Pantheon")
    assert join_aggregate(tokens) == "Colosseum, Trevi Fountain, Pantheon"
    assert split_aggregate(join_aggregate(tokens)) == tokens


def test_custom_separator():
    assert split_aggregate("a|b", separator="|") == ("a", "b")
    assert join_aggregate(["a", "b"], separator="|") == "a| b"


def test_dedupe_keeps_first_seen_order():
    assert dedupe(["b", "a", "b", " ", "c", "a"]) == ("b", "a", "c")


def test_seed_values_per_kind():
    dest = Destination(
        name="Rome",
        auto_sightseeing=("Colosseum", "Pantheon"),
        manual_sightseeing=("Pantheon", "Gelato tour"),
        lodging_name="Hotel A",
        dining=("Roscioli", "Roscioli"),
        notes="Bring cash",
    )
    seeder = DefaultSeeder()
    assert seeder.seed(dest, OverlayKind.SIGHTSEEING) == ("Colosseum", "Pantheon", "Gelato tour")
    assert seeder.seed(dest, OverlayKind.DINING) == ("Roscioli",)
    assert seeder.seed(dest, OverlayKind.LODGING) == "Hotel A"
    assert seeder.seed(dest, OverlayKind.NOTES) == "Bring cash"


def test_seed_of_empty_destination():
    dest = Destination.create()
    seeder = DefaultSeeder()
    assert seeder.seed(dest, OverlayKind.SIGHTSEEING) == ()
    assert seeder.seed(dest, OverlayKind.LODGING) == ""
