"""
Exceptions raised by the standings and season-transition engine.

- EngineError: Base exception for engine failures
- DivisionConfigurationError: The division's configuration cannot be honoured
  (fatal for that division, other divisions continue)
- InsufficientDataError: Not enough results yet to take the next step
  (logged as a warning, retried on the next trigger)
- InconsistentStateError: Stored data breaks an engine invariant
  (fatal for that division)
"""


class EngineError(Exception):
    """Base exception for engine errors."""
    pass


class DivisionConfigurationError(EngineError):
    """Division configuration is unsupported or contradicts the data."""
    pass


class InsufficientDataError(EngineError):
    """Not enough data to perform the step yet."""
    pass


class InconsistentStateError(EngineError):
    """Stored data violates an engine invariant."""
    pass
