"""
Roster store.

The authoritative, in-memory view of every pair in one pyramid. It is the
only component that writes (level, slot) coordinates, and it keeps the
active pairs densely packed: ranks 1..N, no gaps, no duplicates.

Not thread-safe on its own; LadderService serializes access.
"""

from collections.abc import Iterable, Iterator, Sequence

from .coordinates import (
    DEFAULT_MAX_LEVEL,
    coordinate_for_rank,
    level_count_for_capacity,
    triangular,
)
from .exceptions import (
    CapacityError,
    ConfigurationError,
    InvariantViolation,
    NotFoundError,
    ValidationError,
)
from .logging_config import get_logger
from .models import ContactInfo, Movement, MovementReason, Pair, RankAssignment, validate_players
from .movement import validate_assignments

DEFAULT_CAPACITY = triangular(DEFAULT_MAX_LEVEL)

# Points awarded/removed per match result
WIN_POINTS = 10
LOSS_POINTS = 5


class RankedView:
    """
    Lazy, restartable sequence of active pairs in ascending rank order.

    Each iteration re-reads the roster, so a view obtained before a mutation
    reflects the state at iteration time.
    """

    def __init__(self, roster: "RosterStore"):
        self._roster = roster

    def __iter__(self) -> Iterator[Pair]:
        active = [p for p in self._roster.pairs if p.active]
        yield from sorted(active, key=lambda p: p.rank)

    def __len__(self) -> int:
        return self._roster.active_count


class RosterStore:
    """Ordered collection of pairs for one pyramid."""

    def __init__(self, pairs: Iterable[Pair] = (), capacity: int = DEFAULT_CAPACITY):
        """
        Initialize roster.

        Args:
            pairs: Existing pairs (active and inactive), e.g. loaded from storage
            capacity: Maximum number of active pairs
        """
        if capacity < 1:
            raise ConfigurationError(f"capacity must be at least 1, got {capacity}")

        self._capacity: int = capacity
        self._max_level: int = level_count_for_capacity(capacity)
        self._pairs = dict[str, Pair]()
        self.logger = get_logger("roster")

        for pair in pairs:
            if pair.pair_id in self._pairs:
                raise InvariantViolation(f"duplicate pair id {pair.pair_id}")
            self._pairs[pair.pair_id] = pair

        if self.active_count > capacity:
            raise ConfigurationError(
                f"capacity {capacity} is below the {self.active_count} active pairs"
            )
        self._check_density()

    # ---- read side -----------------------------------------------------

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def max_level(self) -> int:
        return self._max_level

    @property
    def pairs(self) -> list[Pair]:
        """Every known pair, including inactive ones."""
        return list(self._pairs.values())

    @property
    def active_count(self) -> int:
        return sum(1 for p in self._pairs.values() if p.active)

    @property
    def is_full(self) -> bool:
        return self.active_count >= self._capacity

    @property
    def vacancies(self) -> int:
        return self._capacity - self.active_count

    def __contains__(self, pair_id: object) -> bool:
        return pair_id in self._pairs

    def get(self, pair_id: str) -> Pair:
        """Get a pair (active or not) by id."""
        if pair_id not in self._pairs:
            raise NotFoundError(f"Pair not found: {pair_id}")
        return self._pairs[pair_id]

    def get_active(self, pair_id: str) -> Pair:
        pair = self.get(pair_id)
        if not pair.active:
            raise NotFoundError(f"Pair is not active: {pair_id}")
        return pair

    def linear_rank_of(self, pair: Pair | str) -> int:
        """Linear rank of an active pair, derived from its stored coordinates."""
        if isinstance(pair, str):
            pair = self.get_active(pair)
        return pair.rank

    def all_active_ordered_by_rank(self) -> RankedView:
        return RankedView(self)

    def levels(self) -> list[list[Pair]]:
        """Active pairs grouped by level, top level first."""
        rows = list[list[Pair]]()
        for pair in self.all_active_ordered_by_rank():
            while len(rows) < pair.level:
                rows.append([])
            rows[pair.level - 1].append(pair)
        return rows

    # ---- write side ----------------------------------------------------

    def add(self, pair: Pair) -> Pair:
        """
        Append a pair at the pyramid's frontier (rank = active count + 1).

        Raises:
            ValidationError: pair id already known
            CapacityError: roster is full
        """
        if pair.pair_id in self._pairs:
            raise ValidationError(f"pair id already exists: {pair.pair_id}")
        if self.is_full:
            raise CapacityError(f"Pyramid is at full capacity ({self._capacity} pairs)")

        rank = self.active_count + 1
        pair.level, pair.slot = coordinate_for_rank(rank, self._max_level)
        pair.active = True
        self._pairs[pair.pair_id] = pair

        self.logger.info(f"Added {pair.name} ({pair.pair_id}) at rank {rank} (level {pair.level}, slot {pair.slot})")
        return pair

    def remove(self, pair_id: str) -> list[Movement]:
        """
        Deactivate a pair and recompact everyone below it.

        Returns:
            Movements for the removed pair and every pair whose rank changed

        Raises:
            NotFoundError: pair unknown or already inactive
        """
        pair = self.get_active(pair_id)
        old_rank, old_level, old_slot = pair.rank, pair.level, pair.slot

        pair.active = False
        movements = [
            Movement(
                pair_id=pair_id,
                previous_rank=old_rank,
                new_rank=None,
                previous_level=old_level,
                previous_slot=old_slot,
                new_level=None,
                new_slot=None,
                reason=MovementReason.REMOVAL,
            )
        ]
        movements.extend(self._compact(MovementReason.REMOVAL))

        self.logger.info(
            f"Removed {pair.name} ({pair_id}) from rank {old_rank}; {len(movements) - 1} pair(s) moved up"
        )
        return movements

    def apply_rank_assignment(
        self, assignments: Sequence[RankAssignment], reason: MovementReason = MovementReason.MANUAL
    ) -> list[Movement]:
        """
        Overwrite coordinates for the given pairs as one all-or-nothing batch.

        Raises:
            InvariantViolation: the batch would not leave ranks as 1..N
        """
        current = {p.pair_id: p.rank for p in self.all_active_ordered_by_rank()}
        validate_assignments(current, assignments)

        # Compute every coordinate before touching any pair
        targets = [
            (self._pairs[a.pair_id], a.new_rank, coordinate_for_rank(a.new_rank, self._max_level))
            for a in assignments
        ]

        movements = list[Movement]()
        for pair, new_rank, (level, slot) in targets:
            old_rank = current[pair.pair_id]
            if old_rank != new_rank:
                movements.append(
                    Movement(
                        pair_id=pair.pair_id,
                        previous_rank=old_rank,
                        new_rank=new_rank,
                        previous_level=pair.level,
                        previous_slot=pair.slot,
                        new_level=level,
                        new_slot=slot,
                        reason=reason,
                    )
                )
            pair.level, pair.slot = level, slot

        self.logger.debug(f"Applied {len(assignments)} assignment(s), {len(movements)} rank change(s)")
        return movements

    def record_result(self, winner_id: str, loser_id: str) -> None:
        """Update win/loss counters and points after a match."""
        winner = self.get_active(winner_id)
        loser = self.get_active(loser_id)
        winner.wins += 1
        winner.points += WIN_POINTS
        loser.losses += 1
        loser.points = max(0, loser.points - LOSS_POINTS)

    def update_details(
        self,
        pair_id: str,
        players: tuple[str, str] | None = None,
        contact: ContactInfo | None = None,
    ) -> Pair:
        """Edit names and/or contact details of a pair."""
        pair = self.get(pair_id)
        if players is not None:
            pair.player_a, pair.player_b = validate_players(*players)
        if contact is not None:
            pair.contact = contact
        return pair

    # ---- internals -----------------------------------------------------

    def _compact(self, reason: MovementReason) -> list[Movement]:
        """Re-rank active pairs 1..N keeping their current relative order."""
        movements = list[Movement]()
        ordered = list(self.all_active_ordered_by_rank())
        for new_rank, pair in enumerate(ordered, 1):
            old_rank = pair.rank
            if old_rank == new_rank:
                continue
            level, slot = coordinate_for_rank(new_rank, self._max_level)
            movements.append(
                Movement(
                    pair_id=pair.pair_id,
                    previous_rank=old_rank,
                    new_rank=new_rank,
                    previous_level=pair.level,
                    previous_slot=pair.slot,
                    new_level=level,
                    new_slot=slot,
                    reason=reason,
                )
            )
            pair.level, pair.slot = level, slot
        return movements

    def _check_density(self) -> None:
        ranks = sorted(p.rank for p in self._pairs.values() if p.active)
        if ranks != list(range(1, len(ranks) + 1)):
            raise InvariantViolation(f"active pairs are not densely packed: ranks {ranks}")
