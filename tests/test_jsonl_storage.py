"""
Tests for JSONLStorage implementation.

Focus on persistence and data integrity.
"""

import json
import tempfile
from pathlib import Path

import pytest

from pyramid_ladder.exceptions import NotFoundError, StorageError, ValidationError
from pyramid_ladder.models import ContactInfo, LadderSettings, Movement, MovementReason, Pair
from pyramid_ladder.storage.jsonl_storage import JSONLStorage
from pyramid_ladder.storage.records import pair_to_patch


def make_movement(pair_id: str, previous: int | None, new: int | None, reason: MovementReason) -> Movement:
    return Movement(
        pair_id=pair_id,
        previous_rank=previous,
        new_rank=new,
        previous_level=None,
        previous_slot=None,
        new_level=None,
        new_slot=None,
        reason=reason,
    )


class TestJSONLStorage:
    """Test JSONLStorage behavior through public interface."""

    def test_create_and_get_pair(self) -> None:
        """Write and read one pair should work correctly."""
        with tempfile.TemporaryDirectory() as temp_dir:
            # Arrange
            storage = JSONLStorage.in_directory(Path(temp_dir))
            pair = Pair(
                "abc123",
                "João Silva",
                "Pedro Santos",
                level=2,
                slot=1,
                contact=ContactInfo(phone="(11) 99999-0001", email="joao@example.com"),
            )

            # Act
            storage.create_pair(pair)
            loaded = storage.get_pair("abc123")

            # Assert
            assert loaded is not None, "Should load the pair"
            assert loaded == pair
            assert loaded.contact.phone_digits == "11999990001"

    def test_missing_pair(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            storage = JSONLStorage.in_directory(Path(temp_dir))

            assert storage.get_pair("nope") is None
            with pytest.raises(NotFoundError):
                _ = storage.update_pair("nope", {"wins": 1})
            with pytest.raises(NotFoundError):
                storage.delete_pair("nope")

    def test_duplicate_create_is_rejected(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            storage = JSONLStorage.in_directory(Path(temp_dir))
            storage.create_pair(Pair("a", "A1", "A2"))

            with pytest.raises(ValidationError):
                storage.create_pair(Pair("a", "B1", "B2"))

    def test_update_pairs_in_one_batch(self) -> None:
        """Batch patches should all land and survive a new storage instance."""
        with tempfile.TemporaryDirectory() as temp_dir:
            # Arrange
            storage = JSONLStorage.in_directory(Path(temp_dir))
            first = Pair("a", "A1", "A2", level=1, slot=1)
            second = Pair("b", "B1", "B2", level=2, slot=1)
            storage.create_pair(first)
            storage.create_pair(second)

            first.level, first.slot = 2, 1
            second.level, second.slot = 1, 1
            second.wins, second.points = 1, 10

            # Act
            storage.update_pairs({"a": pair_to_patch(first), "b": pair_to_patch(second)})
            reopened = JSONLStorage.in_directory(Path(temp_dir))

            # Assert
            by_id = {p.pair_id: p for p in reopened.list_pairs()}
            assert (by_id["a"].level, by_id["a"].slot) == (2, 1)
            assert (by_id["b"].level, by_id["b"].slot, by_id["b"].points) == (1, 1, 10)

    def test_list_pairs_filters_active(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            storage = JSONLStorage.in_directory(Path(temp_dir))
            storage.create_pair(Pair("a", "A1", "A2"))
            storage.create_pair(Pair("b", "B1", "B2", active=False))

            active = [p.pair_id for p in storage.list_pairs(active=True)]
            inactive = [p.pair_id for p in storage.list_pairs(active=False)]

            assert active == ["a"]
            assert inactive == ["b"]

    def test_pairs_file_is_json_document(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            storage = JSONLStorage.in_directory(Path(temp_dir))
            storage.create_pair(Pair("a", "A1", "A2"))

            with open(storage.pairs_path, encoding="utf-8") as f:
                data = json.load(f)

            assert [record["pair_id"] for record in data["pairs"]] == ["a"]

    def test_settings_save_and_load(self) -> None:
        """Idempotent settings writes should work correctly."""
        with tempfile.TemporaryDirectory() as temp_dir:
            # Arrange
            storage = JSONLStorage.in_directory(Path(temp_dir))
            settings = LadderSettings(position_limit=3, capacity=28)

            # Act
            assert storage.load_settings() is None, "No settings before first save"
            storage.save_settings(settings)
            loaded = storage.load_settings()

            # Assert
            assert loaded == settings

            # Test idempotent write
            storage.save_settings(settings)
            assert storage.load_settings() == settings, "Second write should not change content"

    def test_corrupted_settings_raise(self) -> None:
        """A truncated settings file is an error, not a missing file."""
        with tempfile.TemporaryDirectory() as temp_dir:
            storage = JSONLStorage.in_directory(Path(temp_dir))
            storage.settings_path.write_text('{"position_limit": 9, "capa', encoding="utf-8")

            with pytest.raises(StorageError):
                _ = storage.load_settings()

    def test_invalid_settings_values_raise(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            storage = JSONLStorage.in_directory(Path(temp_dir))
            storage.settings_path.write_text(
                json.dumps({"position_limit": 0, "capacity": 45}), encoding="utf-8"
            )

            with pytest.raises(StorageError):
                _ = storage.load_settings()

    def test_settings_write_leaves_no_temp_file(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            storage = JSONLStorage.in_directory(Path(temp_dir))

            storage.save_settings(LadderSettings(position_limit=4, capacity=21))

            assert sorted(p.name for p in Path(temp_dir).iterdir()) == ["settings.json"]

    def test_replace_pairs_swaps_whole_document(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            # Arrange
            storage = JSONLStorage.in_directory(Path(temp_dir))
            storage.create_pair(Pair("old", "O1", "O2"))

            # Act
            storage.replace_pairs([Pair("a", "A1", "A2"), Pair("b", "B1", "B2", level=2, slot=1)])

            # Assert
            assert sorted(p.pair_id for p in storage.list_pairs()) == ["a", "b"]
            with pytest.raises(ValidationError):
                storage.replace_pairs([Pair("a", "A1", "A2"), Pair("a", "B1", "B2")])
            assert sorted(p.pair_id for p in storage.list_pairs()) == ["a", "b"], (
                "Rejected replacement must leave the file untouched"
            )

    def test_persist_multiple_movements(self) -> None:
        """Append-only semantics should keep movements in order."""
        with tempfile.TemporaryDirectory() as temp_dir:
            # Arrange
            storage = JSONLStorage.in_directory(Path(temp_dir))
            movements = [
                make_movement("a", None, 1, MovementReason.ADMISSION),
                make_movement("b", 3, 1, MovementReason.WIN),
                make_movement("c", 2, None, MovementReason.REMOVAL),
            ]

            # Act
            for movement in movements:
                storage.persist_movement(movement)
            loaded = list(storage.load_movements())

            # Assert
            assert loaded == movements
            assert storage.get_movement_count() == 3

    def test_corrupted_movement_lines_are_skipped(self) -> None:
        """Manual file corruption should be skipped on load."""
        with tempfile.TemporaryDirectory() as temp_dir:
            # Arrange
            storage = JSONLStorage.in_directory(Path(temp_dir))
            storage.persist_movement(make_movement("a", None, 1, MovementReason.ADMISSION))

            # Act - manually corrupt the file
            with open(storage.movements_path, "a", encoding="utf-8") as f:
                f.write("corrupted line\n")
                f.write(json.dumps({"pair_id": "x", "reason": "teleport"}) + "\n")

            # Assert - should skip corrupted lines
            loaded = list(storage.load_movements())
            assert len(loaded) == 1, "Should load only the valid movement"
            assert loaded[0].reason == MovementReason.ADMISSION

    def test_empty_storage(self) -> None:
        """Behavior with no files yet."""
        with tempfile.TemporaryDirectory() as temp_dir:
            storage = JSONLStorage.in_directory(Path(temp_dir) / "nested")

            assert list(storage.list_pairs()) == []
            assert list(storage.load_movements()) == []
            assert storage.get_movement_count() == 0
