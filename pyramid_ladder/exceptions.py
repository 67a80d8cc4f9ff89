"""
Exception classes for the pyramid ladder.

Centralized location for all custom exceptions to avoid circular imports.
"""


class LadderError(Exception):
    """Base exception for all ladder errors."""
    pass


class ValidationError(LadderError):
    """Malformed user input (names, thresholds, ranks)."""
    pass


class IneligibleChallengeError(ValidationError):
    """Challenge rejected by the eligibility rules."""

    def __init__(self, message: str, rule: str = "no_rule"):
        super().__init__(message)
        self.rule = rule


class CapacityError(LadderError):
    """Roster is full, or a rank lies beyond the pyramid's last level."""
    pass


class NotFoundError(LadderError):
    """Referenced pair or record does not exist."""
    pass


class InvariantViolation(LadderError):
    """
    Internal defect: a rank assignment that is not a permutation of 1..N,
    or a coordinate outside the pyramid.

    Operations raising this abort before any write.
    """
    pass


class StorageError(LadderError):
    """Persisted data exists but cannot be read back."""
    pass


class ConfigurationError(LadderError):
    """Base exception for configuration-related errors."""
    pass
