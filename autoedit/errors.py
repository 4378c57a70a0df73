from __future__ import annotations


class AutoEditError(ValueError):
    """Base class for errors raised by the edit pipeline."""


class InvalidInputError(AutoEditError):
    """Signal or timeline data violates its structural invariants."""


class ConfigurationError(AutoEditError):
    """User configuration or strategy selection is unusable."""


class PipelineCancelledError(AutoEditError):
    """A batch driver cancelled the run before it produced a plan."""
