"""
Error taxonomy for the chart engine.

Validation and configuration problems are raised immediately.
Degraded root finding is a warning category: the chart is still produced
and the affected solar-term event carries a ``degraded`` flag.
"""


class BaziEngineError(Exception):
    """Base class for errors raised by bazi_engine."""


class InputValidationError(BaziEngineError, ValueError):
    """Malformed birth date, time, sex, location or as-of instant."""


class ConfigurationError(BaziEngineError, ValueError):
    """Unrecognized boundary-policy key or value."""


class RootFindingDegraded(UserWarning):
    """The solar-term solver could not bracket a crossing and fell back."""
