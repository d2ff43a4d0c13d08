"""
Exceptions raised by the blackjack engine.

Two kinds of failure are kept apart so callers can treat them differently:

* ``ConfigurationError`` – bad input at the boundary (unknown counting
  system, a rank that does not exist, an invalid payout ratio).  Callers may
  fall back to a default or reject the input.
* ``InvariantViolation`` – the caller broke the engine's contract (dealing
  from an exhausted shoe, deciding on a hand with fewer than two cards).
  These are programming errors and should not be caught to keep playing.
"""


class BlackjackError(Exception):
    """Base class for all engine errors."""


class ConfigurationError(BlackjackError, ValueError):
    """Invalid table rules, counting system or rank."""


class InvariantViolation(BlackjackError, RuntimeError):
    """The engine was driven outside its contract."""
