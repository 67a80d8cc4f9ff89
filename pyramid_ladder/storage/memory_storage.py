"""
In-memory storage implementation.

Keeps records as plain dicts so callers never share mutable Pair objects
with the store. Used by tests and as the service default.
"""

from collections.abc import Iterable

from typing_extensions import override

from ..exceptions import NotFoundError, ValidationError
from ..interfaces import MovementRecord, PairPatch, PairRecord, SettingsRecord, Storage
from ..models import LadderSettings, Movement, Pair
from .records import (
    apply_patch,
    movement_from_record,
    movement_to_record,
    pair_from_record,
    pair_to_record,
    settings_from_record,
    settings_to_record,
)


class MemoryStorage(Storage):
    """Dict-backed storage; nothing survives the process."""

    def __init__(self) -> None:
        self._pairs = dict[str, PairRecord]()
        self._settings: SettingsRecord | None = None
        self._movements = list[MovementRecord]()

    @override
    def create_pair(self, pair: Pair) -> None:
        if pair.pair_id in self._pairs:
            raise ValidationError(f"Pair already exists: {pair.pair_id}")
        self._pairs[pair.pair_id] = pair_to_record(pair)

    @override
    def get_pair(self, pair_id: str) -> Pair | None:
        record = self._pairs.get(pair_id)
        if record is None:
            return None
        return pair_from_record(dict(record))

    @override
    def list_pairs(self, active: bool | None = None) -> Iterable[Pair]:
        return [
            pair_from_record(dict(record))
            for record in self._pairs.values()
            if active is None or record["active"] == active
        ]

    @override
    def update_pair(self, pair_id: str, patch: PairPatch) -> Pair:
        if pair_id not in self._pairs:
            raise NotFoundError(f"Pair not found: {pair_id}")
        self._pairs[pair_id] = apply_patch(self._pairs[pair_id], patch)
        return pair_from_record(dict(self._pairs[pair_id]))

    @override
    def delete_pair(self, pair_id: str) -> None:
        if pair_id not in self._pairs:
            raise NotFoundError(f"Pair not found: {pair_id}")
        del self._pairs[pair_id]

    @override
    def load_settings(self) -> LadderSettings | None:
        if self._settings is None:
            return None
        return settings_from_record(dict(self._settings))

    @override
    def save_settings(self, settings: LadderSettings) -> None:
        self._settings = settings_to_record(settings)

    @override
    def persist_movement(self, movement: Movement) -> None:
        self._movements.append(movement_to_record(movement))

    @override
    def load_movements(self) -> Iterable[Movement]:
        return [movement_from_record(dict(record)) for record in self._movements]
