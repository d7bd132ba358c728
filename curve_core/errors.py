"""Exception types raised by the grading engine.

Compatibility mismatches are *not* exceptions (see :mod:`curve_core.compat`);
these classes cover malformed input and attempts to grade against a curve the
compatibility check rejected.
"""
from __future__ import annotations

from typing import Any, Dict, Optional


class CurveGraderError(Exception):
    """Base error with an optional diagnostic context."""

    category = "CURVE GRADER ERROR"

    def __init__(self, message: str, *, context: Optional[Dict[str, Any]] = None):
        self.context: Dict[str, Any] = dict(context or {})
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category,
            "error": self.__class__.__name__,
            "message": str(self),
            "context": {k: v for k, v in self.context.items() if v not in (None, "")},
        }


class ScoreValidationError(CurveGraderError, ValueError):
    """Malformed shape, out-of-range value, or reference to an undefined id."""

    category = "VALIDATION"


class IncompatibleCurveError(CurveGraderError):
    """Grading was attempted with a curve the compatibility check rejected."""

    category = "INCOMPATIBLE CURVE"


class OverrideRequiredError(CurveGraderError):
    """Provenance differs and no matching manual override was supplied."""

    category = "OVERRIDE REQUIRED"


class MissingThresholdError(CurveGraderError):
    """A scored category has no threshold entry in the curve."""

    category = "MISSING THRESHOLD"


__all__ = [
    "CurveGraderError",
    "ScoreValidationError",
    "IncompatibleCurveError",
    "OverrideRequiredError",
    "MissingThresholdError",
]
