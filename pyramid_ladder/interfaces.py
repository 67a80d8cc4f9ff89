"""
Abstract base classes defining the persistence collaborator for the ladder.

All interfaces are synchronous; LadderService serializes every call.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from typing import TypedDict

from .models import LadderSettings, Movement, Pair


class ContactRecord(TypedDict):
    """TypedDict for persisted contact details."""
    phone: str
    email: str
    notes: str


class PairRecord(TypedDict):
    """TypedDict for a persisted pair."""
    pair_id: str
    player_a: str
    player_b: str
    level: int
    slot: int
    wins: int
    losses: int
    points: int
    active: bool
    joined_at: float
    contact: ContactRecord


class PairPatch(TypedDict, total=False):
    """Partial update of a pair; only present keys are written."""
    player_a: str
    player_b: str
    level: int
    slot: int
    wins: int
    losses: int
    points: int
    active: bool
    contact: ContactRecord


class SettingsRecord(TypedDict):
    """TypedDict for the singleton settings record."""
    position_limit: int
    capacity: int
    updated_at: float


class MovementRecord(TypedDict):
    """TypedDict for a persisted movement."""
    pair_id: str
    previous_rank: int | None
    new_rank: int | None
    previous_level: int | None
    previous_slot: int | None
    new_level: int | None
    new_slot: int | None
    reason: str
    timestamp: float


class Storage(ABC):
    """Interface for persisting pairs, settings and movement history."""

    @abstractmethod
    def create_pair(self, pair: Pair) -> None:
        """Persist a new pair."""
        pass

    @abstractmethod
    def get_pair(self, pair_id: str) -> Pair | None:
        """Get a pair by ID, or None if it does not exist."""
        pass

    @abstractmethod
    def list_pairs(self, active: bool | None = None) -> Iterable[Pair]:
        """
        List stored pairs.

        Args:
            active: Filter on the active flag; None returns every pair
        """
        pass

    @abstractmethod
    def update_pair(self, pair_id: str, patch: PairPatch) -> Pair:
        """
        Apply a partial update to a pair.

        Raises:
            NotFoundError: pair does not exist
        """
        pass

    def update_pairs(self, patches: Mapping[str, PairPatch]) -> None:
        """Apply several patches. Implementations may write them in one go."""
        for pair_id, patch in patches.items():
            _ = self.update_pair(pair_id, patch)

    def replace_pairs(self, pairs: Iterable[Pair]) -> None:
        """Drop every stored pair and store `pairs` instead (backup restore)."""
        for pair in list(self.list_pairs()):
            self.delete_pair(pair.pair_id)
        for pair in pairs:
            self.create_pair(pair)

    @abstractmethod
    def delete_pair(self, pair_id: str) -> None:
        """
        Permanently delete a pair record.

        Raises:
            NotFoundError: pair does not exist
        """
        pass

    @abstractmethod
    def load_settings(self) -> LadderSettings | None:
        """
        Load the settings record, or None if never saved.

        Raises:
            StorageError: a saved record exists but is unreadable
        """
        pass

    @abstractmethod
    def save_settings(self, settings: LadderSettings) -> None:
        """Create or overwrite the settings record."""
        pass

    @abstractmethod
    def persist_movement(self, movement: Movement) -> None:
        """Append a movement to the history."""
        pass

    @abstractmethod
    def load_movements(self) -> Iterable[Movement]:
        """Load the movement history in insertion order."""
        pass
