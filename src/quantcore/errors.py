"""Error taxonomy shared by every engine.

``InvalidInput``, ``InsufficientData`` and ``DomainError`` also derive from
``ValueError`` so plain ``except ValueError`` callers keep working.
"""

from __future__ import annotations

__all__ = [
    "QuantError",
    "InvalidInput",
    "InsufficientData",
    "DomainError",
    "ComputationCancelled",
]


class QuantError(Exception):
    """Base class for all quantcore errors."""

    #: ``"input"`` (fix the arguments), ``"data"`` (try other parameters)
    #: or ``"transient"`` (safe to resubmit).
    category = "input"


class InvalidInput(QuantError, ValueError):
    """Non-finite or out-of-domain argument."""


class InsufficientData(QuantError, ValueError):
    """Return series too short for the requested statistic."""

    category = "data"


class DomainError(QuantError, ValueError):
    """Inverse-CDF argument outside the open interval (0, 1)."""


class ComputationCancelled(QuantError):
    """Result requested from a computation that was cancelled."""

    category = "transient"
