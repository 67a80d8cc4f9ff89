"""
Tests for MemoryStorage.
"""

import pytest

from pyramid_ladder.exceptions import NotFoundError, ValidationError
from pyramid_ladder.models import LadderSettings, Pair
from pyramid_ladder.storage.memory_storage import MemoryStorage


class TestMemoryStorage:
    """Records are copied in and out; callers never share state with the store."""

    def test_returned_pairs_are_copies(self) -> None:
        # Arrange
        storage = MemoryStorage()
        pair = Pair("a", "A1", "A2")
        storage.create_pair(pair)

        # Act
        pair.wins = 5
        loaded = storage.get_pair("a")
        assert loaded is not None
        loaded.points = 99

        # Assert
        reloaded = storage.get_pair("a")
        assert reloaded is not None
        assert reloaded.wins == 0, "Mutating the original must not leak into the store"
        assert reloaded.points == 0, "Mutating a loaded copy must not leak into the store"

    def test_update_pairs_default_loops(self) -> None:
        storage = MemoryStorage()
        storage.create_pair(Pair("a", "A1", "A2"))
        storage.create_pair(Pair("b", "B1", "B2", level=2, slot=1))

        storage.update_pairs({"a": {"wins": 2}, "b": {"active": False}})

        a = storage.get_pair("a")
        b = storage.get_pair("b")
        assert a is not None and a.wins == 2
        assert b is not None and not b.active

    def test_delete_pair(self) -> None:
        storage = MemoryStorage()
        storage.create_pair(Pair("a", "A1", "A2"))

        storage.delete_pair("a")

        assert storage.get_pair("a") is None
        with pytest.raises(NotFoundError):
            storage.delete_pair("a")

    def test_duplicate_create(self) -> None:
        storage = MemoryStorage()
        storage.create_pair(Pair("a", "A1", "A2"))

        with pytest.raises(ValidationError):
            storage.create_pair(Pair("a", "A1", "A2"))

    def test_replace_pairs_default(self) -> None:
        storage = MemoryStorage()
        storage.create_pair(Pair("old", "O1", "O2"))

        storage.replace_pairs([Pair("a", "A1", "A2")])

        assert [p.pair_id for p in storage.list_pairs()] == ["a"]

    def test_settings_round_trip(self) -> None:
        storage = MemoryStorage()
        settings = LadderSettings(position_limit=2, capacity=10)

        storage.save_settings(settings)

        assert storage.load_settings() == settings
