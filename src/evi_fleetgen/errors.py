"""Exception and warning types raised by fleet generation.

``ConfigurationError`` is fatal and raised before any sampling happens.
The two warnings are recoverable: generation still returns a best-effort
fleet and records what happened in its result.
"""

from __future__ import annotations

import logging
import warnings

from pydantic import ValidationError


class ConfigurationError(ValueError):
    """Caller-fixable input problem (weights, labels, sizes, source columns)."""

    @classmethod
    def from_validation_error(cls, exc: ValidationError, what: str) -> "ConfigurationError":
        """Flatten a pydantic ``ValidationError`` into one readable message."""
        problems = []
        for err in exc.errors():
            loc = ".".join(str(part) for part in err["loc"]) or what
            problems.append(f"{loc}: {err['msg']}")
        return cls(f"invalid {what}: " + "; ".join(problems))


class FleetGenWarning(UserWarning):
    """Base class for non-fatal fleet generation warnings."""


class SizeReconciliationWarning(FleetGenWarning):
    """Proportional expansion missed the target size; rows were added or removed at random."""


class SparseMatchWarning(FleetGenWarning):
    """Some fleet members had no matching source vehicle and were dropped."""


def emit_warning(
    message: str,
    category: type[FleetGenWarning],
    logger: logging.Logger,
    stacklevel: int = 3,
) -> None:
    """Log ``message`` at WARNING and raise it through the ``warnings`` machinery."""
    logger.warning(message)
    warnings.warn(message, category, stacklevel=stacklevel)
