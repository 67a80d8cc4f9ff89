"""
Core dataclasses for the pyramid ladder.

Defines Pair, its contact details, rank assignments and movement records,
with validation.
"""

import time
from dataclasses import dataclass, field
from enum import Enum

from .coordinates import rank_for_coordinate
from .exceptions import ValidationError


def normalize_name(name: str) -> str:
    """Trimmed player name; comparisons are case-insensitive."""
    return (name or "").strip()


def validate_players(player_a: str, player_b: str) -> tuple[str, str]:
    """
    Validate and normalize the two player names of a pair.

    Raises:
        ValidationError: a name is missing or both names are the same person
    """
    a = normalize_name(player_a)
    b = normalize_name(player_b)
    if not a:
        raise ValidationError("player A name is required")
    if not b:
        raise ValidationError("player B name is required")
    if a.casefold() == b.casefold():
        raise ValidationError("players must be two different people")
    return a, b


@dataclass
class ContactInfo:
    """Optional contact details for a pair."""

    phone: str = ""
    email: str = ""
    notes: str = ""

    def __post_init__(self) -> None:
        self.phone = (self.phone or "").strip()
        self.email = (self.email or "").strip()
        self.notes = (self.notes or "").strip()

    @property
    def phone_digits(self) -> str:
        return "".join(ch for ch in self.phone if ch.isdigit())


@dataclass
class Pair:
    """A ranked pair of players occupying one slot of the pyramid."""

    pair_id: str
    player_a: str
    player_b: str
    level: int = 1
    slot: int = 1
    wins: int = 0
    losses: int = 0
    points: int = 0
    active: bool = True
    joined_at: float = field(default_factory=time.time)
    contact: ContactInfo = field(default_factory=ContactInfo)

    def __post_init__(self) -> None:
        """Validate pair data."""
        if not self.pair_id:
            raise ValidationError("pair_id cannot be empty")
        self.player_a, self.player_b = validate_players(self.player_a, self.player_b)
        if self.level < 1:
            raise ValidationError(f"level must be >= 1, got {self.level}")
        if not (1 <= self.slot <= self.level):
            raise ValidationError(f"slot must be in 1..{self.level}, got {self.slot}")
        if self.wins < 0 or self.losses < 0 or self.points < 0:
            raise ValidationError("wins, losses and points cannot be negative")

    @property
    def rank(self) -> int:
        """Linear rank derived from (level, slot)."""
        return rank_for_coordinate(self.level, self.slot)

    @property
    def name(self) -> str:
        return f"{self.player_a}/{self.player_b}"

    @property
    def games_played(self) -> int:
        return self.wins + self.losses


@dataclass(frozen=True)
class RankAssignment:
    """New linear rank for one pair."""

    pair_id: str
    new_rank: int


@dataclass(frozen=True)
class RankedPair:
    """Read model: a pair together with its derived coordinates."""

    pair: Pair
    level: int
    slot: int
    rank: int

    @classmethod
    def of(cls, pair: Pair) -> "RankedPair":
        return cls(pair=pair, level=pair.level, slot=pair.slot, rank=pair.rank)


class MovementReason(str, Enum):
    """Why a pair changed position."""

    ADMISSION = "admission"
    WIN = "win"
    LOSS = "loss"
    REMOVAL = "removal"
    MANUAL = "manual"


@dataclass
class Movement:
    """Historical record of one pair's rank change."""

    pair_id: str
    previous_rank: int | None
    new_rank: int | None
    previous_level: int | None
    previous_slot: int | None
    new_level: int | None
    new_slot: int | None
    reason: MovementReason
    timestamp: float = field(default_factory=time.time)

    def __post_init__(self) -> None:
        if not self.pair_id:
            raise ValidationError("pair_id cannot be empty")
        self.reason = MovementReason(self.reason)


@dataclass
class LadderSettings:
    """Persisted per-roster settings (singleton record)."""

    position_limit: int = 5
    capacity: int = 45
    updated_at: float = field(default_factory=time.time)

    def __post_init__(self) -> None:
        if isinstance(self.position_limit, bool) or not isinstance(self.position_limit, int):
            raise ValidationError(f"position limit must be an integer, got {self.position_limit!r}")
        if self.position_limit < 1:
            raise ValidationError(f"position limit must be at least 1, got {self.position_limit}")
        if self.capacity < 1:
            raise ValidationError(f"capacity must be at least 1, got {self.capacity}")


@dataclass(frozen=True)
class RosterStatistics:
    """Summary of the active roster."""

    total_pairs: int
    capacity: int
    vacancies: int
    levels: int
    most_wins: Pair | None
    most_active: Pair | None
