"""
Pyramid Ladder - challenge ranking for beach-tennis pairs

Pairs sit in a triangular pyramid (level k holds k pairs). Lower-ranked
pairs challenge better-ranked ones under positional rules; a win moves the
challenger into the defender's place, a loss drops it by the rank gap.
"""

from .models import ContactInfo, Movement, MovementReason, Pair, RankedPair
from .interfaces import Storage
from .eligibility import EligibilityDecision, EligibilityRule
from .ladder import ChallengePreview, ChallengeResolution, LadderConfig, LadderService

__version__ = "0.1.0"
__all__ = [
    "ContactInfo",
    "Movement",
    "MovementReason",
    "Pair",
    "RankedPair",
    "Storage",
    "EligibilityDecision",
    "EligibilityRule",
    "ChallengePreview",
    "ChallengeResolution",
    "LadderConfig",
    "LadderService",
]
