"""
Challenge eligibility rules.

Rules are evaluated in order and the first one that decides wins:

1. a pair cannot challenge itself
2. only better-ranked pairs can be challenged
3. same level: anyone to the left
4. level directly above: anyone at or to the right of the challenger's slot
5. top exception: pairs ranked within the position limit may challenge
   any pair on a higher level
6. otherwise denied

Rules 3 and 4 always decide once their level condition matches, so the
top exception only ever reaches two or more levels up.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

from .exceptions import ValidationError
from .models import Pair


class EligibilityRule(str, Enum):
    """Rule that decided an eligibility query."""

    SELF_CHALLENGE = "self_challenge"
    NOT_HIGHER_RANKED = "not_higher_ranked"
    SAME_LEVEL = "same_level"
    LEVEL_ABOVE = "level_above"
    TOP_EXCEPTION = "top_exception"
    NO_RULE = "no_rule"


@dataclass(frozen=True)
class EligibilityDecision:
    """Allow/deny answer plus the rule that produced it."""

    eligible: bool
    rule: EligibilityRule
    reason: str

    def __bool__(self) -> bool:
        return self.eligible


def evaluate(challenger: Pair, target: Pair, position_limit: int) -> EligibilityDecision:
    """
    Decide whether `challenger` may challenge `target`.

    Args:
        challenger: Pair issuing the challenge
        target: Pair being challenged
        position_limit: Ranks 1..position_limit may bypass adjacency to reach the top

    Returns:
        EligibilityDecision naming the deciding rule
    """
    if position_limit < 1:
        raise ValidationError(f"position limit must be at least 1, got {position_limit}")

    if challenger.pair_id == target.pair_id:
        return EligibilityDecision(False, EligibilityRule.SELF_CHALLENGE, "A pair cannot challenge itself")

    challenger_rank = challenger.rank
    target_rank = target.rank

    if target_rank >= challenger_rank:
        return EligibilityDecision(
            False,
            EligibilityRule.NOT_HIGHER_RANKED,
            f"{challenger.name} (rank {challenger_rank}) can only challenge better-ranked pairs; "
            f"{target.name} is rank {target_rank}",
        )

    if target.level == challenger.level:
        if target.slot < challenger.slot:
            return EligibilityDecision(
                True,
                EligibilityRule.SAME_LEVEL,
                f"{challenger.name} may challenge pairs to its left on level {challenger.level}",
            )
        return EligibilityDecision(
            False,
            EligibilityRule.SAME_LEVEL,
            f"On the same level only slots 1 to {challenger.slot - 1} can be challenged",
        )

    if target.level == challenger.level - 1:
        if target.slot >= challenger.slot:
            return EligibilityDecision(
                True,
                EligibilityRule.LEVEL_ABOVE,
                f"{challenger.name} may challenge slots {challenger.slot} to {target.level} on level {target.level}",
            )
        return EligibilityDecision(
            False,
            EligibilityRule.LEVEL_ABOVE,
            f"On the level above only slots {challenger.slot} to {target.level} can be challenged",
        )

    if position_limit > 1 and challenger_rank <= position_limit and target.level < challenger.level:
        return EligibilityDecision(
            True,
            EligibilityRule.TOP_EXCEPTION,
            f"{challenger.name} (rank {challenger_rank}) is within the top {position_limit} "
            "and may challenge up to the top of the pyramid",
        )

    return EligibilityDecision(False, EligibilityRule.NO_RULE, "Challenge not allowed by the pyramid rules")


def can_challenge(challenger: Pair, target: Pair, position_limit: int) -> bool:
    return evaluate(challenger, target, position_limit).eligible


def challengeable_targets(
    challenger: Pair, ranked_pairs: Iterable[Pair], position_limit: int
) -> list[Pair]:
    """Every pair in `ranked_pairs` the challenger is allowed to challenge."""
    return [p for p in ranked_pairs if can_challenge(challenger, p, position_limit)]
