"""
Coordinate mapping between linear ranks and pyramid positions.

Level k of the pyramid holds exactly k slots, so linear rank r lives on the
smallest level L with triangular(L) >= r. All functions are pure.
"""

from math import isqrt

from .exceptions import CapacityError, InvariantViolation

# Nine levels hold 1+2+...+9 = 45 pairs
DEFAULT_MAX_LEVEL = 9


def triangular(n: int) -> int:
    """Sum of 1..n (number of slots on levels 1..n)."""
    if n < 0:
        raise InvariantViolation(f"triangular number undefined for {n}")
    return n * (n + 1) // 2


def level_for_rank(rank: int, max_level: int | None = None) -> int:
    """
    Level holding the given linear rank.

    Args:
        rank: Linear rank, 1 = top of the pyramid
        max_level: Optional cap on the number of levels

    Returns:
        Smallest L such that triangular(L) >= rank

    Raises:
        InvariantViolation: rank is not a positive integer
        CapacityError: rank lies below the last allowed level
    """
    if rank < 1:
        raise InvariantViolation(f"rank must be >= 1, got {rank}")
    if max_level is not None and rank > triangular(max_level):
        raise CapacityError(
            f"rank {rank} exceeds the {triangular(max_level)} slots of a {max_level}-level pyramid"
        )

    level = (isqrt(8 * rank + 1) - 1) // 2
    if triangular(level) < rank:
        level += 1
    return level


def slot_for_rank(rank: int, max_level: int | None = None) -> int:
    """Position of the rank within its level (1-based, left to right)."""
    level = level_for_rank(rank, max_level)
    return rank - triangular(level - 1)


def coordinate_for_rank(rank: int, max_level: int | None = None) -> tuple[int, int]:
    """Return (level, slot) for a linear rank."""
    level = level_for_rank(rank, max_level)
    return level, rank - triangular(level - 1)


def rank_for_coordinate(level: int, slot: int) -> int:
    """
    Linear rank of a (level, slot) coordinate.

    Raises:
        InvariantViolation: level < 1 or slot outside 1..level
    """
    if level < 1:
        raise InvariantViolation(f"level must be >= 1, got {level}")
    if not (1 <= slot <= level):
        raise InvariantViolation(f"slot {slot} outside 1..{level} on level {level}")
    return triangular(level - 1) + slot


def level_count_for_capacity(capacity: int) -> int:
    """Number of levels needed to seat `capacity` pairs."""
    if capacity < 1:
        return 0
    return level_for_rank(capacity)
