"""
JSONL storage implementation.

Persists pairs and settings as JSON documents (rewritten on every write)
and the movement history to an append-only JSONL file.
"""

import json
import typing
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

from typing_extensions import override

from ..exceptions import NotFoundError, StorageError, ValidationError
from ..interfaces import PairPatch, PairRecord, Storage
from ..logging_config import get_logger
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

# Module-level logger
logger = get_logger("jsonl_storage")


class JSONLStorage(Storage):
    """
    File-based storage implementation.

    Uses a JSON file for the pair records, a JSON file for the settings
    record and a JSONL file for movements (append-only).
    """

    pairs_path: Path
    settings_path: Path
    movements_path: Path

    def __init__(
        self,
        pairs_path: Path,
        settings_path: Path,
        movements_path: Path | None = None,
    ):
        """
        Initialize JSONL storage.

        Args:
            pairs_path: Path to JSON file holding every pair record
            settings_path: Path to JSON file for the settings record
            movements_path: Path to JSONL file for movements (optional)
        """
        self.pairs_path = Path(pairs_path)
        self.settings_path = Path(settings_path)

        # Default movements file next to the pairs file
        if movements_path is None:
            self.movements_path = self.pairs_path.parent / "movements.jsonl"
        else:
            self.movements_path = Path(movements_path)

        # Ensure parent directories exist
        self.pairs_path.parent.mkdir(parents=True, exist_ok=True)
        self.settings_path.parent.mkdir(parents=True, exist_ok=True)
        self.movements_path.parent.mkdir(parents=True, exist_ok=True)

        logger.info(
            f"JSONL storage initialized: pairs={self.pairs_path}, settings={self.settings_path}, movements={self.movements_path}"
        )

    @classmethod
    def in_directory(cls, data_dir: Path) -> "JSONLStorage":
        """Storage with the default file names inside `data_dir`."""
        data_dir = Path(data_dir)
        return cls(data_dir / "pairs.json", data_dir / "settings.json", data_dir / "movements.jsonl")

    # ---- pairs ---------------------------------------------------------

    def _read_pairs(self) -> dict[str, PairRecord]:
        if not self.pairs_path.exists():
            return {}

        with open(self.pairs_path, "r", encoding="utf-8") as f:
            data = typing.cast(dict[str, Any], json.load(f))  # pyright: ignore[reportExplicitAny]

        assert "pairs" in data, "Missing required field: pairs"
        assert isinstance(data["pairs"], list), "pairs must be a list"
        records = typing.cast(list[PairRecord], data["pairs"])
        return {record["pair_id"]: record for record in records}

    def _write_pairs(self, records: dict[str, PairRecord]) -> None:
        # Write to a sibling file first so a crash never leaves half a document
        tmp_path = self.pairs_path.with_suffix(self.pairs_path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump({"pairs": list(records.values())}, f, indent=2, ensure_ascii=False)
        _ = tmp_path.replace(self.pairs_path)

    @override
    def create_pair(self, pair: Pair) -> None:
        records = self._read_pairs()
        if pair.pair_id in records:
            raise ValidationError(f"Pair already exists: {pair.pair_id}")
        records[pair.pair_id] = pair_to_record(pair)
        self._write_pairs(records)
        logger.debug(f"Created pair record {pair.pair_id}")

    @override
    def get_pair(self, pair_id: str) -> Pair | None:
        record = self._read_pairs().get(pair_id)
        if record is None:
            return None
        return pair_from_record(dict(record))

    @override
    def list_pairs(self, active: bool | None = None) -> Iterable[Pair]:
        return [
            pair_from_record(dict(record))
            for record in self._read_pairs().values()
            if active is None or record["active"] == active
        ]

    @override
    def update_pair(self, pair_id: str, patch: PairPatch) -> Pair:
        records = self._read_pairs()
        if pair_id not in records:
            raise NotFoundError(f"Pair not found: {pair_id}")
        records[pair_id] = apply_patch(records[pair_id], patch)
        self._write_pairs(records)
        return pair_from_record(dict(records[pair_id]))

    @override
    def update_pairs(self, patches: Mapping[str, PairPatch]) -> None:
        """Apply all patches with a single file write."""
        records = self._read_pairs()
        missing = [pair_id for pair_id in patches if pair_id not in records]
        if missing:
            raise NotFoundError(f"Pair(s) not found: {', '.join(missing)}")
        for pair_id, patch in patches.items():
            records[pair_id] = apply_patch(records[pair_id], patch)
        self._write_pairs(records)
        logger.debug(f"Updated {len(patches)} pair record(s)")

    @override
    def replace_pairs(self, pairs: Iterable[Pair]) -> None:
        """Swap the whole pair document with a single file write."""
        records = dict[str, PairRecord]()
        for pair in pairs:
            if pair.pair_id in records:
                raise ValidationError(f"Pair already exists: {pair.pair_id}")
            records[pair.pair_id] = pair_to_record(pair)
        self._write_pairs(records)
        logger.info(f"Replaced pair records with {len(records)} pair(s)")

    @override
    def delete_pair(self, pair_id: str) -> None:
        records = self._read_pairs()
        if pair_id not in records:
            raise NotFoundError(f"Pair not found: {pair_id}")
        del records[pair_id]
        self._write_pairs(records)

    # ---- settings ------------------------------------------------------

    @override
    def load_settings(self) -> LadderSettings | None:
        """
        Load settings from JSON.

        Raises:
            StorageError: the settings file exists but cannot be parsed
        """
        if not self.settings_path.exists():
            logger.debug("No settings file exists")
            return None

        try:
            with open(self.settings_path, "r", encoding="utf-8") as f:
                data = typing.cast(dict[str, Any], json.load(f))  # pyright: ignore[reportExplicitAny]
            assert isinstance(data, dict), "settings must be an object"
            return settings_from_record(data)
        except (json.JSONDecodeError, AssertionError, TypeError, ValidationError) as e:
            logger.error(f"Failed to load settings from {self.settings_path}: {e}")
            raise StorageError(f"Corrupted settings file {self.settings_path}: {e}") from e

    @override
    def save_settings(self, settings: LadderSettings) -> None:
        tmp_path = self.settings_path.with_suffix(self.settings_path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(settings_to_record(settings), f, indent=2, ensure_ascii=False)
        _ = tmp_path.replace(self.settings_path)
        logger.debug(f"Saved settings to {self.settings_path}")

    # ---- movements -----------------------------------------------------

    @override
    def persist_movement(self, movement: Movement) -> None:
        """Append a movement to the JSONL history."""
        with open(self.movements_path, "a", encoding="utf-8") as f:
            json.dump(movement_to_record(movement), f, ensure_ascii=False)
            f.write("\n")

    @override
    def load_movements(self) -> Iterable[Movement]:
        """Load all persisted movements from JSONL."""
        if not self.movements_path.exists():
            return

        with open(self.movements_path, "r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue

                try:
                    data = typing.cast(dict[str, Any], json.loads(line))  # pyright: ignore[reportExplicitAny]
                    assert isinstance(data, dict), "movement must be an object"
                    yield movement_from_record(data)
                except (json.JSONDecodeError, AssertionError, ValueError, ValidationError) as e:
                    # Skip corrupted or invalid lines
                    logger.warning(
                        f"Skipping invalid JSON line in {self.movements_path}: {e}"
                    )
                    continue

    def get_movement_count(self) -> int:
        """Get number of stored movements."""
        if not self.movements_path.exists():
            return 0

        count = 0
        with open(self.movements_path, "r", encoding="utf-8") as f:
            for line in f:
                if line.strip():
                    count += 1
        return count
