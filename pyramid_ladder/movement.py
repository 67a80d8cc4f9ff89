"""
Movement engine.

Turns a challenge result (or a manual reposition) into a complete list of
new ranks. Every plan is validated as a permutation of 1..N before it is
handed to the roster, which applies it as a single batch.
"""

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass

from .exceptions import InvariantViolation, NotFoundError
from .logging_config import get_logger
from .models import Pair, RankAssignment

logger = get_logger("movement")


@dataclass(frozen=True)
class MovementPlan:
    """Outcome of a challenge before it is applied."""

    challenger_id: str
    defender_id: str | None
    challenger_won: bool
    challenger_rank: int
    defender_rank: int
    new_rank: int
    nominal_penalty: int
    applied_penalty: int
    clamped: bool
    assignments: tuple[RankAssignment, ...]
    description: str

    @property
    def shifted_count(self) -> int:
        """Pairs moved by one rank to make room (challenger excluded)."""
        return sum(1 for a in self.assignments if a.pair_id != self.challenger_id)


def validate_assignments(
    current_ranks: Mapping[str, int], assignments: Iterable[RankAssignment]
) -> dict[str, int]:
    """
    Check that applying `assignments` keeps ranks a permutation of 1..N.

    Args:
        current_ranks: pair_id -> current rank for every active pair
        assignments: new ranks for a subset of those pairs

    Returns:
        pair_id -> rank after the assignment, for every active pair

    Raises:
        InvariantViolation: unknown or duplicate ids, out-of-range ranks,
            or a resulting rank set with gaps or duplicates
    """
    total = len(current_ranks)
    proposed = dict(current_ranks)
    seen = set[str]()

    for assignment in assignments:
        if assignment.pair_id not in current_ranks:
            raise InvariantViolation(f"assignment for unknown or inactive pair {assignment.pair_id}")
        if assignment.pair_id in seen:
            raise InvariantViolation(f"pair {assignment.pair_id} assigned more than once")
        if not (1 <= assignment.new_rank <= total):
            raise InvariantViolation(
                f"rank {assignment.new_rank} for pair {assignment.pair_id} outside 1..{total}"
            )
        seen.add(assignment.pair_id)
        proposed[assignment.pair_id] = assignment.new_rank

    if sorted(proposed.values()) != list(range(1, total + 1)):
        raise InvariantViolation("rank assignment is not a permutation of 1..%d" % total)
    return proposed


def _locate(ordered: Sequence[Pair], pair_id: str) -> int:
    for rank, pair in enumerate(ordered, 1):
        if pair.pair_id == pair_id:
            return rank
    raise NotFoundError(f"Pair not found among active pairs: {pair_id}")


def _shift(ordered: Sequence[Pair], mover_rank: int, target_rank: int) -> list[RankAssignment]:
    """
    Move the pair at `mover_rank` to `target_rank`.

    Moving up pushes [target, mover-1] down one rank; moving down pulls
    (mover, target] up one rank. The mover's own assignment comes first.
    """
    mover = ordered[mover_rank - 1]
    assignments = [RankAssignment(mover.pair_id, target_rank)]

    for rank, pair in enumerate(ordered, 1):
        if pair.pair_id == mover.pair_id:
            continue
        if target_rank <= rank < mover_rank:
            assignments.append(RankAssignment(pair.pair_id, rank + 1))
        elif mover_rank < rank <= target_rank:
            assignments.append(RankAssignment(pair.pair_id, rank - 1))
    return assignments


def _checked(ordered: Sequence[Pair], assignments: list[RankAssignment]) -> tuple[RankAssignment, ...]:
    validate_assignments({p.pair_id: rank for rank, p in enumerate(ordered, 1)}, assignments)
    return tuple(assignments)


def _ranks(ordered: Sequence[Pair], challenger_id: str, defender_id: str) -> tuple[int, int]:
    r_c = _locate(ordered, challenger_id)
    r_d = _locate(ordered, defender_id)
    if r_d >= r_c:
        raise InvariantViolation(
            f"defender {defender_id} (rank {r_d}) must be ranked above challenger {challenger_id} (rank {r_c})"
        )
    return r_c, r_d


def plan_win(ordered: Sequence[Pair], challenger_id: str, defender_id: str) -> MovementPlan:
    """
    Challenger takes the defender's rank; everyone in [rD, rC-1] drops one.

    Args:
        ordered: active pairs in ascending rank order
        challenger_id: pair that issued the challenge (worse rank rC)
        defender_id: pair that was challenged (better rank rD)
    """
    r_c, r_d = _ranks(ordered, challenger_id, defender_id)
    challenger = ordered[r_c - 1]
    defender = ordered[r_d - 1]

    assignments = _checked(ordered, _shift(ordered, r_c, r_d))
    shifted = len(assignments) - 1

    description = (
        f"{challenger.name} won!\n"
        f"- Rose from rank {r_c} to rank {r_d}\n"
        f"- {defender.name} dropped to rank {r_d + 1}\n"
        f"- {shifted} pair(s) moved down one rank"
    )
    logger.debug(f"Win plan {challenger_id} over {defender_id}: {r_c} -> {r_d}, {shifted} shifted")

    return MovementPlan(
        challenger_id=challenger_id,
        defender_id=defender_id,
        challenger_won=True,
        challenger_rank=r_c,
        defender_rank=r_d,
        new_rank=r_d,
        nominal_penalty=0,
        applied_penalty=0,
        clamped=False,
        assignments=assignments,
        description=description,
    )


def plan_loss(ordered: Sequence[Pair], challenger_id: str, defender_id: str) -> MovementPlan:
    """
    Challenger drops by the rank distance at challenge time, clamped to last place.

    penalty = rC - rD is fixed before the match. The challenger moves to
    min(rC + penalty, N) and every pair in (rC, new rank] rises one.
    """
    r_c, r_d = _ranks(ordered, challenger_id, defender_id)
    challenger = ordered[r_c - 1]
    total = len(ordered)

    penalty = r_c - r_d
    proposed = r_c + penalty
    new_rank = min(proposed, total)
    applied = new_rank - r_c
    clamped = proposed > total

    assignments = _checked(ordered, _shift(ordered, r_c, new_rank))
    shifted = len(assignments) - 1

    description = f"{challenger.name} lost!\n- Fell from rank {r_c} to rank {new_rank}\n"
    if clamped:
        description += (
            f"- Penalty applied: {applied} position(s) (limited to last place)\n"
            f"- Nominal penalty was {penalty} position(s), but the pyramid only has {total} pairs\n"
        )
    else:
        description += f"- Penalty: {penalty} position(s) (challenge distance)\n"
    description += f"- {shifted} pair(s) moved up one rank"

    logger.debug(
        f"Loss plan {challenger_id} vs {defender_id}: {r_c} -> {new_rank} "
        f"(penalty {penalty}, applied {applied}, clamped={clamped})"
    )

    return MovementPlan(
        challenger_id=challenger_id,
        defender_id=defender_id,
        challenger_won=False,
        challenger_rank=r_c,
        defender_rank=r_d,
        new_rank=new_rank,
        nominal_penalty=penalty,
        applied_penalty=applied,
        clamped=clamped,
        assignments=assignments,
        description=description,
    )


def plan_challenge(
    ordered: Sequence[Pair], challenger_id: str, defender_id: str, challenger_won: bool
) -> MovementPlan:
    """Dispatch to plan_win or plan_loss."""
    if challenger_won:
        return plan_win(ordered, challenger_id, defender_id)
    return plan_loss(ordered, challenger_id, defender_id)


def plan_reposition(ordered: Sequence[Pair], pair_id: str, new_rank: int) -> MovementPlan:
    """
    Administrative move of one pair to an arbitrary rank.

    Raises:
        InvariantViolation: new_rank outside 1..N
    """
    total = len(ordered)
    if not (1 <= new_rank <= total):
        raise InvariantViolation(f"rank {new_rank} outside 1..{total}")

    current = _locate(ordered, pair_id)
    pair = ordered[current - 1]
    assignments = _checked(ordered, _shift(ordered, current, new_rank))
    shifted = len(assignments) - 1

    others = "down" if new_rank < current else "up"
    description = (
        f"{pair.name} repositioned from rank {current} to rank {new_rank}\n"
        f"- {shifted} pair(s) moved {others} one rank"
    )

    return MovementPlan(
        challenger_id=pair_id,
        defender_id=None,
        challenger_won=new_rank < current,
        challenger_rank=current,
        defender_rank=new_rank,
        new_rank=new_rank,
        nominal_penalty=0,
        applied_penalty=0,
        clamped=False,
        assignments=assignments,
        description=description,
    )
