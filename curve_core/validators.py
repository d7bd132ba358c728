from __future__ import annotations

import math
import re
from collections.abc import Sequence
from datetime import datetime, timezone
from typing import Any

from .errors import ScoreValidationError

PROBLEM_ID_RX = re.compile(r"^\d{6}$")
PROMPT_HASH_RX = re.compile(r"^[a-f0-9]{7,40}$")
LANGUAGES = {"0": "zh", "1": "en"}


def validate_problem_id(value: Any) -> str:
    """Return ``value`` if it is a 6-digit id whose last digit is 0 (zh) or 1 (en)."""

    if not isinstance(value, str) or not PROBLEM_ID_RX.match(value):
        raise ScoreValidationError(
            f"problem id must be exactly 6 digits, got {value!r}",
            context={"problem_id": value},
        )
    if value[5] not in LANGUAGES:
        raise ScoreValidationError(
            f"problem id {value} must end in 0 (zh) or 1 (en)",
            context={"problem_id": value},
        )
    return value


def problem_language(problem_id: str) -> str:
    return LANGUAGES[validate_problem_id(problem_id)[5]]


def base_problem_id(problem_id: str) -> str:
    """Strip the trailing language digit."""

    return validate_problem_id(problem_id)[:-1]


def validate_score(value: Any, *, label: str = "score") -> float:
    # bool is an int subclass; a True score is a shape error, not 1.0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ScoreValidationError(
            f"{label} must be a number in [0, 1], got {value!r}",
            context={"field": label},
        )
    xf = float(value)
    if math.isnan(xf) or xf < 0.0 or xf > 1.0:
        raise ScoreValidationError(
            f"{label} must be in [0, 1], got {value!r}",
            context={"field": label, "value": xf},
        )
    return xf


def validate_prompt_hash(value: Any) -> str:
    if not isinstance(value, str) or not PROMPT_HASH_RX.match(value):
        raise ScoreValidationError(
            f"prompt version hash must be 7-40 lowercase hex chars, got {value!r}",
            context={"prompt_version_hash": value},
        )
    return value


def validate_nonempty(value: Any, *, label: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ScoreValidationError(f"{label} must be a non-empty string", context={"field": label})
    return value


def validate_non_increasing(values: Any, *, label: str) -> tuple[float, ...]:
    if isinstance(values, (str, bytes)) or not isinstance(values, Sequence):
        raise ScoreValidationError(
            f"{label} must be a list of 3 numbers (A, B, C), got {values!r}",
            context={"field": label},
        )
    if len(values) != 3:
        raise ScoreValidationError(
            f"{label} needs exactly 3 entries (A, B, C), got {len(values)}",
            context={"field": label},
        )
    for v in values:
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            raise ScoreValidationError(
                f"{label} entries must be numbers, got {v!r}",
                context={"field": label},
            )
    out = tuple(float(v) for v in values)
    if any(math.isnan(v) for v in out):
        raise ScoreValidationError(f"{label} contains NaN", context={"field": label})
    for hi, lo in zip(out, out[1:]):
        if lo > hi:
            raise ScoreValidationError(
                f"{label} must be non-increasing, got {list(out)}",
                context={"field": label},
            )
    return out


def clamp01(x: float) -> float:
    if x < 0.0: return 0.0
    if x > 1.0: return 1.0
    return x


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()
