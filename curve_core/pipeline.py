"""End-to-end orchestration: pool -> curve -> compatibility -> grades.

Nothing here touches storage; callers persist the returned objects.
"""
from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from typing import Dict, Iterable, Tuple

from . import config
from .compat import CompatibilityOptions
from .curve import compute_curve
from .errors import CurveGraderError
from .grading import assign_grades
from .pool import build_pool
from .types import (
    LETTER_GRADES,
    Curve,
    CurveMethod,
    GradedScores,
    LetterGrade,
    ManualOverride,
    ParticipantScores,
    TotalCategory,
    grades_listing,
)

__all__ = ["BatchResult", "build_curve", "grade", "run_batch", "grade_distribution"]

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class BatchResult:
    curve: Curve
    graded: Tuple[GradedScores, ...]
    errors: Tuple[str, ...] = ()


def build_curve(
    scores: Iterable[ParticipantScores],
    method: CurveMethod | None = None,
    *,
    label: str | None = None,
) -> Curve:
    method = method or config.method_from_config()
    pool = build_pool(scores, label=label)
    return compute_curve(pool, method, label=label)


def grade(
    scores: ParticipantScores,
    curve: Curve,
    *,
    options: CompatibilityOptions | None = None,
    override: ManualOverride | None = None,
) -> GradedScores:
    return assign_grades(scores, curve, options=options, override=override)


def run_batch(
    scores: Iterable[ParticipantScores],
    method: CurveMethod | None = None,
    *,
    label: str | None = None,
    options: CompatibilityOptions | None = None,
) -> BatchResult:
    """Curve the whole cohort, then grade each member against that curve.

    A failure to build the curve propagates. Per-participant grading
    failures are collected in ``errors`` and the rest of the batch continues.
    """

    members = tuple(scores)
    curve = build_curve(members, method, label=label)
    graded = []
    errors = []
    for s in members:
        try:
            graded.append(grade(s, curve, options=options))
        except CurveGraderError as exc:
            log.warning("grading %s failed: %s", s.scores_id, exc)
            errors.append(f"{s.scores_id}: {exc}")
    log.info(
        "batch %s: graded %d/%d participants (%d errors)",
        curve.curve_id, len(graded), len(members), len(errors),
    )
    return BatchResult(curve=curve, graded=tuple(graded), errors=tuple(errors))


def grade_distribution(
    graded: Iterable[GradedScores], category: TotalCategory = "final_total"
) -> Dict[LetterGrade, int]:
    counts = Counter(grades_listing(graded, category))
    return {g: counts.get(g, 0) for g in LETTER_GRADES}
