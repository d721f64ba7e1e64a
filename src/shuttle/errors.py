"""Precondition failures raised by engine operations.

Operations raise these; the reducer boundary catches them and leaves the
state untouched, so none of them ever reaches a caller of ``engine.apply``.
"""


class EngineError(Exception):
    """Base class for rejected intents."""
    pass


class NotFound(EngineError):
    """Player, block or court id does not exist."""
    pass


class CapacityExceeded(EngineError):
    """Court or planned-game slot already full."""
    pass


class InvalidState(EngineError):
    """Operation is not valid for the current state of its target."""
    pass


class AlreadyInProgress(EngineError):
    """Duplicate submission of an intent that has already been applied."""
    pass


class InvariantViolation(AssertionError):
    """Engine bug: the state broke one of its structural invariants."""
    pass
