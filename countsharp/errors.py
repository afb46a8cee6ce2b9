"""
Exception types raised by the countsharp engine.

Round outcomes (bust, blackjack, push) are ordinary state data and are never
signalled with exceptions. The classes here cover the error paths only:

- `EmptyShoeError`: a draw was attempted on an empty shoe. The reshuffle
  threshold makes this unreachable in normal play, so it is treated as fatal.
- `InvalidBetError`: a bet outside ``0 < bet <= chip_pot``. The bet is
  rejected and the round state is left untouched.
- `InvalidTransitionError`: an action that does not fit the current stage.
- `PersistenceError`: the external key-value store failed. Callers log it and
  fall back to defaults.
- `ConfigurationError`: settings that fail validation.
"""


class CountsharpError(Exception):
    """Base class for all countsharp errors."""


class EmptyShoeError(CountsharpError):
    """Raised when drawing from a shoe with no cards left."""


class InvalidBetError(CountsharpError):
    """Raised when a bet is not positive or exceeds the chip pot."""

    def __init__(self, amount, chip_pot):
        self.amount = amount
        self.chip_pot = chip_pot
        super().__init__(f"Invalid bet {amount}: must be between 1 and {chip_pot}")


class InvalidTransitionError(CountsharpError):
    """Raised when an action is not valid in the current round stage."""

    def __init__(self, action: str, stage=None, reason: str = ""):
        self.action = action
        self.stage = stage
        if not reason:
            stage_name = getattr(stage, "value", stage)
            reason = f"'{action}' is not allowed during {stage_name}"
        super().__init__(reason)


class PersistenceError(CountsharpError):
    """Raised when the session store cannot load or save a value."""


class ConfigurationError(CountsharpError, ValueError):
    """Raised when game settings fail validation."""
