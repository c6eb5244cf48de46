"""Exception hierarchy for the debriscast engine."""

from __future__ import annotations


class DebriscastError(Exception):
    """Base class for all engine errors."""


class ConfigError(DebriscastError):
    """Configuration failed validation and was rejected."""


class CatalogError(DebriscastError):
    """The catalog feed could not be read."""


class ClassificationError(DebriscastError, ValueError):
    """An object has no usable state to classify."""


class PropagationError(DebriscastError, ValueError):
    """Orbital elements are degenerate and cannot be propagated."""


class CycleError(DebriscastError):
    """A computation cycle was aborted before publication."""


class CycleCancelled(CycleError):
    """A computation cycle was cancelled by the operator."""
