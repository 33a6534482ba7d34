"""
modules/validation/row_validator.py
-------------------------------------
Data-quality guards applied to itinerary rows before a full-replacement
save reaches the store.

  Itinerary header:
    ✓ start_date is a valid ISO-8601 date
    ✓ duration == sum(destination nights)

  Destination row:
    ✓ Non-empty destination name
    ✓ nights is an integer >= 0
    ✓ order_index values are 0..n-1 with no gaps or repeats

  Overlay row (sightseeing / lodging / dining / notes):
    ✓ day_index is an integer in [0, duration)
    ✓ no two rows of one kind share a day_index
    ✓ list kinds carry a list of strings, lodging / notes a string

Usage:
    from modules.validation import validate_itinerary_rows

    results = validate_itinerary_rows(rows)
    problems = [e for r in results if not r.valid for e in r.errors]
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Callable, TypeVar

from schemas.itinerary import OverlayKind
from modules.persistence.row_codec import VALUE_COLUMNS

T = TypeVar("T")


# ── Result dataclass ───────────────────────────────────────────────────────────

@dataclass
class ValidationResult:
    """
    Outcome of a single validation run.

    Attributes:
        valid:  True iff there are zero errors.
        errors: Human-readable list of failure reasons.
        record: The input record dict (for logging purposes).
    """
    valid: bool
    errors: list[str] = field(default_factory=list)
    record: dict = field(default_factory=dict, repr=False)

    def __bool__(self) -> bool:
        return self.valid


def _result(errors: list[str], record: dict) -> ValidationResult:
    return ValidationResult(valid=len(errors) == 0, errors=errors, record=record)


# ── Header ─────────────────────────────────────────────────────────────────────

def validate_header(record: dict[str, Any], nights_total: int | None = None) -> ValidationResult:
    errors: list[str] = []

    start = record.get("start_date")
    try:
        if not isinstance(start, date):
            date.fromisoformat(str(start))
    except ValueError:
        errors.append(f"start_date={start!r} is not a valid ISO-8601 date")

    duration = record.get("duration")
    if nights_total is not None and duration != nights_total:
        errors.append(f"duration={duration!r} does not match the {nights_total} nights booked")

    return _result(errors, record)


# ── Destination ────────────────────────────────────────────────────────────────

def validate_destination_row(record: dict[str, Any]) -> ValidationResult:
    errors: list[str] = []

    name = record.get("destination", "")
    if not name or not str(name).strip():
        errors.append("destination must not be empty or NULL")

    nights = record.get("nights")
    if isinstance(nights, bool) or not isinstance(nights, int):
        errors.append(f"nights={nights!r} must be an integer")
    elif nights < 0:
        errors.append(f"nights={nights} must be >= 0")

    return _result(errors, record)


# ── Overlay ────────────────────────────────────────────────────────────────────

def validate_overlay_row(
    record: dict[str, Any],
    kind: OverlayKind,
    total_days: int,
) -> ValidationResult:
    errors: list[str] = []

    day = record.get("day_index")
    if isinstance(day, bool) or not isinstance(day, int):
        errors.append(f"{kind.value}: day_index={day!r} must be an integer")
    elif not 0 <= day < total_days:
        errors.append(f"{kind.value}: day_index={day} is outside [0, {total_days})")

    value = record.get(VALUE_COLUMNS[kind])
    if kind.is_list:
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            errors.append(f"{kind.value}: {VALUE_COLUMNS[kind]} must be a list of strings")
    elif not isinstance(value, str):
        errors.append(f"{kind.value}: {VALUE_COLUMNS[kind]} must be a string")

    return _result(errors, record)


# ── Whole save payload ─────────────────────────────────────────────────────────

def validate_itinerary_rows(rows: dict[str, Any]) -> list[ValidationResult]:
    """
    Validate the output of snapshot_to_rows() as one unit.

    Returns one ValidationResult per checked record plus one for the
    cross-row checks (order_index sequence, duplicate day indices).
    """
    destinations = rows.get("destinations", [])
    nights_total = sum(
        d.get("nights", 0) for d in destinations
        if isinstance(d.get("nights"), int) and d.get("nights", 0) >= 0
    )

    results = [validate_header(rows.get("header", {}), nights_total)]
    results.extend(validate_destination_row(d) for d in destinations)

    cross: list[str] = []
    order = sorted(d.get("order_index", -1) for d in destinations)
    if order != list(range(len(destinations))):
        cross.append(f"order_index values {order} are not 0..{len(destinations) - 1}")

    for kind in OverlayKind:
        kind_rows = rows.get("overlays", {}).get(kind.value, [])
        results.extend(validate_overlay_row(r, kind, nights_total) for r in kind_rows)
        seen = [r.get("day_index") for r in kind_rows]
        dupes = sorted({d for d in seen if seen.count(d) > 1})
        if dupes:
            cross.append(f"{kind.value}: duplicate day_index {dupes}")

    results.append(_result(cross, {"itinerary_id": rows.get("header", {}).get("itinerary_id")}))
    return results


# ── Batch filter helper ────────────────────────────────────────────────────────

def filter_valid(
    items: list[T],
    validator: Callable[[dict], ValidationResult],
) -> tuple[list[T], list[ValidationResult]]:
    """
    Apply a validator to every row dict; split into kept rows and the
    failing results.
    """
    kept: list[T] = []
    rejected: list[ValidationResult] = []
    for item in items:
        result = validator(item)  # type: ignore[arg-type]
        if result.valid:
            kept.append(item)
        else:
            rejected.append(result)
    return kept, rejected
