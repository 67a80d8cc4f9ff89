"""
Conversion between model dataclasses and their persisted record shapes.

Shared by every Storage implementation so the on-disk and in-memory
formats stay identical.
"""

import typing
from typing import Any

from ..interfaces import ContactRecord, MovementRecord, PairPatch, PairRecord, SettingsRecord
from ..models import ContactInfo, LadderSettings, Movement, Pair

PATCHABLE_FIELDS = ("player_a", "player_b", "level", "slot", "wins", "losses", "points", "active")


def contact_to_record(contact: ContactInfo) -> ContactRecord:
    return {"phone": contact.phone, "email": contact.email, "notes": contact.notes}


def pair_to_record(pair: Pair) -> PairRecord:
    """Convert a Pair to its persisted dict form."""
    return {
        "pair_id": pair.pair_id,
        "player_a": pair.player_a,
        "player_b": pair.player_b,
        "level": pair.level,
        "slot": pair.slot,
        "wins": pair.wins,
        "losses": pair.losses,
        "points": pair.points,
        "active": pair.active,
        "joined_at": pair.joined_at,
        "contact": contact_to_record(pair.contact),
    }


def pair_to_patch(pair: Pair) -> PairPatch:
    """Patch carrying every mutable field of a pair."""
    record = pair_to_record(pair)
    patch: PairPatch = {key: record[key] for key in PATCHABLE_FIELDS}  # type: ignore[misc]
    patch["contact"] = record["contact"]
    return patch


def pair_from_record(data: dict[str, Any]) -> Pair:  # pyright: ignore[reportExplicitAny]
    """
    Build a Pair from a record, validating required fields.

    Raises:
        AssertionError: record is missing fields or has wrong types
        ValidationError: record values violate Pair invariants
    """
    for key in ("pair_id", "player_a", "player_b", "level", "slot"):
        assert key in data, f"Missing required field: {key}"
    assert isinstance(data["level"], int), "level must be an integer"
    assert isinstance(data["slot"], int), "slot must be an integer"

    contact_data = typing.cast(dict[str, str], data.get("contact") or {})
    assert isinstance(contact_data, dict), "contact must be a dictionary"

    return Pair(
        pair_id=str(data["pair_id"]),
        player_a=str(data["player_a"]),
        player_b=str(data["player_b"]),
        level=data["level"],
        slot=data["slot"],
        wins=int(data.get("wins", 0)),
        losses=int(data.get("losses", 0)),
        points=int(data.get("points", 0)),
        active=bool(data.get("active", True)),
        joined_at=float(data.get("joined_at", 0.0)),
        contact=ContactInfo(
            phone=contact_data.get("phone", ""),
            email=contact_data.get("email", ""),
            notes=contact_data.get("notes", ""),
        ),
    )


def apply_patch(record: PairRecord, patch: PairPatch) -> PairRecord:
    """Return a copy of `record` with `patch` applied."""
    updated = typing.cast(PairRecord, dict(record))
    for key, value in patch.items():
        if key == "contact":
            updated["contact"] = typing.cast(ContactRecord, dict(typing.cast(ContactRecord, value)))
        else:
            updated[key] = value  # type: ignore[literal-required]
    return updated


def settings_to_record(settings: LadderSettings) -> SettingsRecord:
    return {
        "position_limit": settings.position_limit,
        "capacity": settings.capacity,
        "updated_at": settings.updated_at,
    }


def settings_from_record(data: dict[str, Any]) -> LadderSettings:  # pyright: ignore[reportExplicitAny]
    assert "position_limit" in data, "Missing required field: position_limit"
    assert "capacity" in data, "Missing required field: capacity"
    return LadderSettings(
        position_limit=data["position_limit"],
        capacity=data["capacity"],
        updated_at=float(data.get("updated_at", 0.0)),
    )


def movement_to_record(movement: Movement) -> MovementRecord:
    return {
        "pair_id": movement.pair_id,
        "previous_rank": movement.previous_rank,
        "new_rank": movement.new_rank,
        "previous_level": movement.previous_level,
        "previous_slot": movement.previous_slot,
        "new_level": movement.new_level,
        "new_slot": movement.new_slot,
        "reason": movement.reason.value,
        "timestamp": movement.timestamp,
    }


def movement_from_record(data: dict[str, Any]) -> Movement:  # pyright: ignore[reportExplicitAny]
    assert "pair_id" in data, "Missing required field: pair_id"
    assert "reason" in data, "Missing required field: reason"
    return Movement(
        pair_id=data["pair_id"],
        previous_rank=data.get("previous_rank"),
        new_rank=data.get("new_rank"),
        previous_level=data.get("previous_level"),
        previous_slot=data.get("previous_slot"),
        new_level=data.get("new_level"),
        new_slot=data.get("new_slot"),
        reason=data["reason"],
        timestamp=float(data.get("timestamp", 0.0)),
    )
