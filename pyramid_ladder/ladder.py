"""
Ladder service for the pyramid ranking.

Coordinates the roster, eligibility rules, movement engine and storage.
Every mutation runs under one lock covering compute, validate, apply and
persist, so no two changes to the roster can interleave.
"""

import threading
import time
import uuid
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from loguru import Logger

from .coordinates import level_count_for_capacity
from .eligibility import EligibilityDecision, challengeable_targets, evaluate
from .exceptions import (
    CapacityError,
    ConfigurationError,
    IneligibleChallengeError,
    InvariantViolation,
    NotFoundError,
    ValidationError,
)
from .interfaces import Storage
from .logging_config import get_logger
from .models import (
    ContactInfo,
    LadderSettings,
    Movement,
    MovementReason,
    Pair,
    RankedPair,
    RosterStatistics,
    validate_players,
)
from .movement import MovementPlan, plan_challenge, plan_loss, plan_reposition, plan_win
from .roster import DEFAULT_CAPACITY, RosterStore
from .storage.records import pair_from_record, pair_to_patch, pair_to_record

# From 5th place upwards a pair may challenge the top by default
DEFAULT_POSITION_LIMIT = 5


@dataclass
class LadderConfig:
    """Configuration used when a roster is opened for the first time."""

    capacity: int = DEFAULT_CAPACITY
    default_position_limit: int = DEFAULT_POSITION_LIMIT

    def __post_init__(self):
        """Validate configuration."""
        if self.capacity < 1:
            raise ConfigurationError(f"capacity must be at least 1, got {self.capacity}")
        if self.default_position_limit < 1:
            raise ConfigurationError(
                f"default_position_limit must be at least 1, got {self.default_position_limit}"
            )


@dataclass(frozen=True)
class ChallengeResolution:
    """Applied outcome of a challenge or manual reposition."""

    plan: MovementPlan
    movements: tuple[Movement, ...]

    @property
    def new_assignments(self) -> list[tuple[str, int]]:
        return [(a.pair_id, a.new_rank) for a in self.plan.assignments]

    @property
    def description(self) -> str:
        return self.plan.description


@dataclass(frozen=True)
class ChallengePreview:
    """What would happen for each result of a challenge, without applying it."""

    decision: EligibilityDecision
    if_won: MovementPlan | None
    if_lost: MovementPlan | None


def _copy(pair: Pair) -> Pair:
    return replace(pair, contact=replace(pair.contact))


class LadderService:
    """Single serialized entry point for reading and changing one pyramid."""

    def __init__(self, storage: Storage, config: LadderConfig | None = None):
        """
        Open (or initialize) the pyramid held by `storage`.

        Args:
            storage: Persistence collaborator
            config: Defaults for a storage that has no settings yet
        """
        self.storage: Storage = storage
        self.config: LadderConfig = config or LadderConfig()
        self._lock: threading.Lock = threading.Lock()
        self.logger: Logger = get_logger("ladder")

        settings = storage.load_settings()
        if settings is None:
            settings = LadderSettings(
                position_limit=self.config.default_position_limit,
                capacity=self.config.capacity,
            )
            storage.save_settings(settings)
            self.logger.info(
                f"Initialized settings: capacity={settings.capacity}, position_limit={settings.position_limit}"
            )
        self._settings: LadderSettings = settings
        self._roster: RosterStore = self._load_roster()

        self.logger.info(
            f"Ladder opened with {self._roster.active_count}/{self._roster.capacity} active pairs"
        )

    # ---- state management ----------------------------------------------

    def _load_roster(self) -> RosterStore:
        return RosterStore(self.storage.list_pairs(), capacity=self._settings.capacity)

    def _commit(
        self,
        created: Sequence[Pair] = (),
        updated: Iterable[Pair] = (),
        movements: Sequence[Movement] = (),
    ) -> None:
        """Persist a roster change; on failure fall back to what storage holds."""
        try:
            for pair in created:
                self.storage.create_pair(pair)
            patches = {pair.pair_id: pair_to_patch(pair) for pair in updated}
            if patches:
                self.storage.update_pairs(patches)
            for movement in movements:
                self.storage.persist_movement(movement)
        except Exception as e:
            self.logger.error(f"Persisting roster change failed, reloading from storage: {e}")
            self._roster = self._load_roster()
            raise

    def _new_id(self) -> str:
        pair_id = uuid.uuid4().hex[:8]
        while pair_id in self._roster:
            pair_id = uuid.uuid4().hex[:8]
        return pair_id

    # ---- roster membership ---------------------------------------------

    def admit_pair(
        self, players: Sequence[str], contact: ContactInfo | None = None
    ) -> RankedPair:
        """
        Admit a new pair at the bottom of the pyramid.

        Raises:
            ValidationError: missing or identical player names
            CapacityError: pyramid is full
        """
        if len(players) != 2:
            raise ValidationError(f"a pair needs exactly two players, got {len(players)}")

        with self._lock:
            try:
                player_a, player_b = validate_players(players[0], players[1])
                pair = Pair(
                    pair_id=self._new_id(),
                    player_a=player_a,
                    player_b=player_b,
                    contact=contact or ContactInfo(),
                )
                _ = self._roster.add(pair)
            except (ValidationError, CapacityError) as e:
                self.logger.warning(f"Admission rejected: {e}")
                raise

            movement = Movement(
                pair_id=pair.pair_id,
                previous_rank=None,
                new_rank=pair.rank,
                previous_level=None,
                previous_slot=None,
                new_level=pair.level,
                new_slot=pair.slot,
                reason=MovementReason.ADMISSION,
            )
            self._commit(created=[pair], movements=[movement])
            return RankedPair.of(_copy(pair))

    def remove_pair(self, pair_id: str) -> list[Movement]:
        """
        Deactivate a pair and close the gap it leaves.

        Raises:
            NotFoundError: pair unknown or already removed
        """
        with self._lock:
            try:
                movements = self._roster.remove(pair_id)
            except NotFoundError as e:
                self.logger.warning(f"Removal rejected: {e}")
                raise
            self._commit(
                updated=[self._roster.get(m.pair_id) for m in movements],
                movements=movements,
            )
            return movements

    # ---- reads ---------------------------------------------------------

    def list_ranked_pairs(self) -> list[RankedPair]:
        """Active pairs in rank order with their derived coordinates."""
        with self._lock:
            return [RankedPair.of(_copy(p)) for p in self._roster.all_active_ordered_by_rank()]

    def pyramid_levels(self) -> list[list[RankedPair]]:
        """Active pairs grouped by level, top first."""
        with self._lock:
            return [[RankedPair.of(_copy(p)) for p in row] for row in self._roster.levels()]

    def get_pair(self, pair_id: str) -> Pair:
        with self._lock:
            return _copy(self._roster.get(pair_id))

    def find_by_phone(self, phone: str) -> Pair | None:
        """Active pair whose phone number has the same digits, if any."""
        digits = ContactInfo(phone=phone).phone_digits
        if not digits:
            return None
        with self._lock:
            for pair in self._roster.all_active_ordered_by_rank():
                if pair.contact.phone_digits == digits:
                    return _copy(pair)
        return None

    def statistics(self) -> RosterStatistics:
        with self._lock:
            ordered = list(self._roster.all_active_ordered_by_rank())
            most_wins = max(ordered, key=lambda p: p.wins) if ordered else None
            most_active = max(ordered, key=lambda p: p.games_played) if ordered else None
            return RosterStatistics(
                total_pairs=len(ordered),
                capacity=self._roster.capacity,
                vacancies=self._roster.vacancies,
                levels=level_count_for_capacity(len(ordered)),
                most_wins=_copy(most_wins) if most_wins else None,
                most_active=_copy(most_active) if most_active else None,
            )

    def movement_history(self, pair_id: str | None = None) -> list[Movement]:
        with self._lock:
            return [
                m for m in self.storage.load_movements()
                if pair_id is None or m.pair_id == pair_id
            ]

    # ---- challenges ----------------------------------------------------

    def evaluate_challenge(self, challenger_id: str, target_id: str) -> EligibilityDecision:
        """Decide whether one active pair may challenge another."""
        with self._lock:
            challenger = self._roster.get_active(challenger_id)
            target = self._roster.get_active(target_id)
            return evaluate(challenger, target, self._settings.position_limit)

    def challengeable_targets(self, pair_id: str) -> list[RankedPair]:
        with self._lock:
            challenger = self._roster.get_active(pair_id)
            targets = challengeable_targets(
                challenger, self._roster.all_active_ordered_by_rank(), self._settings.position_limit
            )
            return [RankedPair.of(_copy(p)) for p in targets]

    def preview_challenge(self, challenger_id: str, defender_id: str) -> ChallengePreview:
        """Eligibility plus both candidate outcomes; nothing is changed."""
        with self._lock:
            challenger = self._roster.get_active(challenger_id)
            defender = self._roster.get_active(defender_id)
            decision = evaluate(challenger, defender, self._settings.position_limit)
            if not decision.eligible:
                return ChallengePreview(decision=decision, if_won=None, if_lost=None)

            ordered = list(self._roster.all_active_ordered_by_rank())
            return ChallengePreview(
                decision=decision,
                if_won=plan_win(ordered, challenger_id, defender_id),
                if_lost=plan_loss(ordered, challenger_id, defender_id),
            )

    def resolve_challenge(
        self, challenger_id: str, defender_id: str, challenger_won: bool
    ) -> ChallengeResolution:
        """
        Apply a challenge result atomically.

        Raises:
            NotFoundError: either pair is unknown or inactive
            IneligibleChallengeError: the rules do not allow this challenge
            InvariantViolation: the computed assignment is inconsistent
        """
        with self._lock:
            challenger = self._roster.get_active(challenger_id)
            defender = self._roster.get_active(defender_id)

            decision = evaluate(challenger, defender, self._settings.position_limit)
            if not decision.eligible:
                self.logger.warning(
                    f"Challenge {challenger.name} -> {defender.name} rejected ({decision.rule.value}): {decision.reason}"
                )
                raise IneligibleChallengeError(decision.reason, decision.rule.value)

            ordered = list(self._roster.all_active_ordered_by_rank())
            reason = MovementReason.WIN if challenger_won else MovementReason.LOSS
            try:
                plan = plan_challenge(ordered, challenger_id, defender_id, challenger_won)
                movements = self._roster.apply_rank_assignment(plan.assignments, reason)
            except InvariantViolation as e:
                self.logger.error(f"Invariant violation resolving {challenger_id} vs {defender_id}: {e}")
                raise

            if challenger_won:
                self._roster.record_result(challenger_id, defender_id)
            else:
                self._roster.record_result(defender_id, challenger_id)

            touched = {a.pair_id for a in plan.assignments} | {challenger_id, defender_id}
            self._commit(
                updated=[self._roster.get(pair_id) for pair_id in sorted(touched)],
                movements=movements,
            )

            self.logger.info(
                f"Challenge resolved: {challenger.name} {'beat' if challenger_won else 'lost to'} "
                f"{defender.name}; {plan.challenger_rank} -> {plan.new_rank}, {len(movements)} rank change(s)"
            )
            return ChallengeResolution(plan=plan, movements=tuple(movements))

    def reposition_pair(self, pair_id: str, new_rank: int) -> ChallengeResolution:
        """
        Administrative move of a pair to any rank, shifting the pairs in between.

        Raises:
            ValidationError: new_rank outside 1..N or equal to the current rank
        """
        with self._lock:
            pair = self._roster.get_active(pair_id)
            total = self._roster.active_count
            if isinstance(new_rank, bool) or not isinstance(new_rank, int) or not (1 <= new_rank <= total):
                raise ValidationError(f"new rank must be between 1 and {total}, got {new_rank!r}")
            if new_rank == pair.rank:
                raise ValidationError(f"{pair.name} is already at rank {new_rank}")

            ordered = list(self._roster.all_active_ordered_by_rank())
            try:
                plan = plan_reposition(ordered, pair_id, new_rank)
                movements = self._roster.apply_rank_assignment(plan.assignments, MovementReason.MANUAL)
            except InvariantViolation as e:
                self.logger.error(f"Invariant violation repositioning {pair_id}: {e}")
                raise

            self._commit(
                updated=[self._roster.get(a.pair_id) for a in plan.assignments],
                movements=movements,
            )
            self.logger.info(f"Repositioned {pair.name}: {plan.challenger_rank} -> {new_rank}")
            return ChallengeResolution(plan=plan, movements=tuple(movements))

    def update_pair(
        self,
        pair_id: str,
        players: Sequence[str] | None = None,
        contact: ContactInfo | None = None,
    ) -> Pair:
        """Edit player names and/or contact details."""
        if players is not None and len(players) != 2:
            raise ValidationError(f"a pair needs exactly two players, got {len(players)}")

        with self._lock:
            try:
                pair = self._roster.update_details(
                    pair_id,
                    players=(players[0], players[1]) if players is not None else None,
                    contact=contact,
                )
            except (ValidationError, NotFoundError) as e:
                self.logger.warning(f"Update of {pair_id} rejected: {e}")
                raise
            self._commit(updated=[pair])
            return _copy(pair)

    # ---- backup --------------------------------------------------------

    def export_roster(self) -> dict[str, Any]:  # pyright: ignore[reportExplicitAny]
        """Every pair (active and removed) as a JSON-ready backup document."""
        with self._lock:
            return {
                "exported_at": time.time(),
                "capacity": self._roster.capacity,
                "pairs": [pair_to_record(p) for p in self._roster.pairs],
            }

    def import_roster(self, data: Any) -> int:  # pyright: ignore[reportExplicitAny]
        """
        Replace every stored pair with the pairs of a backup document.

        Settings and movement history are kept.

        Returns:
            Number of active pairs after the import

        Raises:
            ValidationError: malformed backup, no pairs, duplicate ids, gaps in
                the ranks, or more active pairs than the roster capacity
        """
        with self._lock:
            try:
                assert isinstance(data, dict), "backup must be an object"
                assert isinstance(data.get("pairs"), list), "backup needs a list of pairs"
                pairs = [pair_from_record(dict(record)) for record in data["pairs"]]
                if not pairs:
                    raise ValidationError("backup contains no pairs")
                roster = RosterStore(pairs, capacity=self._settings.capacity)
            except (AssertionError, TypeError, ValueError, ValidationError,
                    InvariantViolation, ConfigurationError) as e:
                self.logger.warning(f"Import rejected: {e}")
                raise ValidationError(f"invalid backup: {e}") from e

            try:
                self.storage.replace_pairs(roster.pairs)
            except Exception as e:
                self.logger.error(f"Persisting imported roster failed, reloading from storage: {e}")
                self._roster = self._load_roster()
                raise

            self._roster = roster
            self.logger.info(f"Imported {len(pairs)} pair(s), {roster.active_count} active")
            return roster.active_count

    # ---- configuration -------------------------------------------------

    def get_threshold(self) -> int:
        return self._settings.position_limit

    def set_threshold(self, value: int) -> None:
        """
        Change the top-challenge position limit. Nobody moves.

        Raises:
            ValidationError: value is not an integer >= 1
        """
        with self._lock:
            try:
                settings = LadderSettings(position_limit=value, capacity=self._settings.capacity)
            except ValidationError as e:
                self.logger.warning(f"Threshold rejected: {e}")
                raise
            self.storage.save_settings(settings)
            self._settings = settings
            self.logger.info(f"Top-challenge position limit set to {value}")

    @property
    def capacity(self) -> int:
        return self._roster.capacity

    @property
    def active_count(self) -> int:
        with self._lock:
            return self._roster.active_count
