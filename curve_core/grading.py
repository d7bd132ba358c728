from __future__ import annotations

import logging
import uuid
from typing import Dict, List, Mapping, Optional

from .compat import CompatibilityOptions, check_compatibility
from .dimension_map import match_problem_ids
from .errors import IncompatibleCurveError, MissingThresholdError, OverrideRequiredError
from .types import (
    Curve,
    Dimension,
    GradedScores,
    GradeThresholds,
    Incompatible,
    LetterGrade,
    ManualOverride,
    ParticipantScores,
    ProblemGrade,
    RequiresOverride,
    TotalGrades,
)

__all__ = ["grade_for", "assign_grades", "graded_id_for"]

log = logging.getLogger(__name__)

# uuid5 namespace for graded results
_GRADED_NS = uuid.UUID("6f1c2a4e-8d3b-5a7f-9e21-3c4b5d6e7f80")


def grade_for(score: float, thresholds: GradeThresholds) -> LetterGrade:
    """Letter for ``score``; each tier includes its lower bound."""

    if score >= thresholds.A:
        return "A"
    if score >= thresholds.B:
        return "B"
    if score >= thresholds.C:
        return "C"
    return "D"


def graded_id_for(scores_id: str, curve_id: str) -> str:
    return str(uuid.uuid5(_GRADED_NS, f"{scores_id}:{curve_id}"))


def _gate(scores: ParticipantScores, curve: Curve, options: CompatibilityOptions, override: ManualOverride | None) -> bool:
    """Raise unless grading may proceed; True when the override was needed."""

    result = check_compatibility(curve, scores, options)
    if isinstance(result, Incompatible):
        raise IncompatibleCurveError(
            f"curve {curve.curve_id} cannot grade scores {scores.scores_id}",
            context={"reasons": list(result.reasons)},
        )
    if isinstance(result, RequiresOverride):
        if override is None:
            raise OverrideRequiredError(
                f"curve {curve.curve_id} needs a manual override for scores {scores.scores_id}",
                context={"warnings": list(result.warnings)},
            )
        if override.original_result != result:
            raise OverrideRequiredError(
                "override was recorded for a different compatibility outcome",
                context={"warnings": list(result.warnings), "accepted": list(override.original_result.warnings)},
            )
        log.info(
            "grading scores %s with override by %s: %s",
            scores.scores_id, override.overridden_by, override.reason,
        )
        return True
    return False


def _resolve(curve: Curve, scores: ParticipantScores, pairs: Mapping[str, str]) -> Dict[str, GradeThresholds]:
    """Look up every category's thresholds up front.

    Keys: total categories, dimension names and the scores' own problem ids.
    """

    missing: List[str] = []
    resolved: Dict[str, GradeThresholds] = {}
    for cat in scores.totals.as_dict():
        th = curve.total_curves.get(cat)
        if th is None:
            missing.append(cat)
        else:
            resolved[cat] = th
    for dim in scores.ability_scores:
        th = curve.ability_curves.get(dim)
        if th is None:
            missing.append(dim)
        else:
            resolved[dim] = th
    for pid in scores.problem_ids:
        th = curve.problem_curves.get(pairs.get(pid, pid))
        if th is None:
            missing.append(pid)
        else:
            resolved[pid] = th
    if missing:
        raise MissingThresholdError(
            f"curve {curve.curve_id} has no thresholds for: {', '.join(missing)}",
            context={"curve_id": curve.curve_id, "missing": missing},
        )
    return resolved


def assign_grades(
    scores: ParticipantScores,
    curve: Curve,
    *,
    options: CompatibilityOptions | None = None,
    override: ManualOverride | None = None,
) -> GradedScores:
    opts = options or CompatibilityOptions()
    if not _gate(scores, curve, opts, override) and override is not None:
        log.debug("scores %s are compatible with %s; override not recorded", scores.scores_id, curve.curve_id)
        override = None

    pairs = match_problem_ids(
        scores.problem_ids, curve.problem_ids, allow_language_variant=opts.allow_language_variant
    )
    resolved = _resolve(curve, scores, pairs)

    totals = scores.totals.as_dict()
    total_grades = TotalGrades(**{cat: grade_for(value, resolved[cat]) for cat, value in totals.items()})
    ability_grades: Dict[Dimension, LetterGrade] = {
        dim: grade_for(value, resolved[dim]) for dim, value in scores.ability_scores.items()
    }
    problem_grades: List[ProblemGrade] = []
    for ps in scores.problem_scores:
        dims: Dict[Dimension, Optional[LetterGrade]] = {}
        for dim, value in ps.dimension_scores.items():
            dims[dim] = None if value is None else grade_for(value, resolved[dim])
        problem_grades.append(
            ProblemGrade(
                problem_id=ps.problem_id,
                task_grade=grade_for(ps.task_score, resolved[ps.problem_id]),
                dimension_grades=dims,
            )
        )

    graded = GradedScores(
        graded_id=graded_id_for(scores.scores_id, curve.curve_id),
        source_scores_id=scores.scores_id,
        curve_id=curve.curve_id,
        total_grades=total_grades,
        ability_grades=ability_grades,
        problem_grades=tuple(problem_grades),
        override=override,
    )
    log.debug(
        "graded %s against %s: final_total=%s", scores.scores_id, curve.curve_id, total_grades.final_total
    )
    return graded
