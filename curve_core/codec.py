"""JSON-safe dict encoding for the engine's records.

Encoders emit plain dicts/lists/str/float/None; decoders rebuild the frozen
dataclasses and therefore re-run their validation. Derived values (ability
scores, totals) are never written for ``ParticipantScores``.
"""
from __future__ import annotations

import json
from typing import Any, Dict, List

from .errors import ScoreValidationError
from .types import (
    AbsoluteMethod,
    Compatible,
    CompatibilityResult,
    Curve,
    CurveMethod,
    DimMapEntry,
    GradedScores,
    GradeThresholds,
    Incompatible,
    ManualOverride,
    ParticipantScores,
    PercentileMethod,
    ProblemDimensionMap,
    ProblemGrade,
    ProblemScore,
    ProvenanceDifferences,
    RequiresOverride,
    StandardDeviationMethod,
    TotalGrades,
)


def _require(d: Any, key: str, kind: str) -> Any:
    if not isinstance(d, dict):
        raise ScoreValidationError(f"{kind} must be an object, got {type(d).__name__}")
    if key not in d:
        raise ScoreValidationError(f"{kind} is missing '{key}'", context={"kind": kind, "key": key})
    return d[key]


def _require_list(d: Any, key: str, kind: str) -> List[Any]:
    value = _require(d, key, kind)
    if not isinstance(value, list):
        raise ScoreValidationError(
            f"{kind} field '{key}' must be a list, got {type(value).__name__}",
            context={"kind": kind, "key": key},
        )
    return value


def _require_dict(d: Any, key: str, kind: str) -> Dict[str, Any]:
    value = _require(d, key, kind)
    if not isinstance(value, dict):
        raise ScoreValidationError(
            f"{kind} field '{key}' must be an object, got {type(value).__name__}",
            context={"kind": kind, "key": key},
        )
    return value


def dumps(payload: Any) -> str:
    """Canonical JSON text (sorted keys, no whitespace variation)."""

    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


# ---- dimension map ----

def encode_dimension_map(m: ProblemDimensionMap) -> Dict[str, Any]:
    return {
        "map_id": m.map_id,
        "label": m.label,
        "created_at": m.created_at,
        "entries": [
            {"problem_id": e.problem_id, "problem_version": e.problem_version, "dimensions": list(e.dimensions)}
            for e in m.entries
        ],
    }


def decode_dimension_map(d: Dict[str, Any]) -> ProblemDimensionMap:
    kind = "dimension map"
    entries = []
    for row in _require_list(d, "entries", kind):
        entries.append(
            DimMapEntry(
                problem_id=_require(row, "problem_id", "dimension map entry"),
                problem_version=_require(row, "problem_version", "dimension map entry"),
                dimensions=tuple(_require_list(row, "dimensions", "dimension map entry")),
            )
        )
    return ProblemDimensionMap(
        map_id=_require(d, "map_id", kind),
        label=_require(d, "label", kind),
        created_at=_require(d, "created_at", kind),
        entries=tuple(entries),
    )


# ---- scores ----

def encode_scores(s: ParticipantScores) -> Dict[str, Any]:
    return {
        "scores_id": s.scores_id,
        "event_id": s.event_id,
        "participant_id": s.participant_id,
        "prompt_version_hash": s.prompt_version_hash,
        "generated_at": s.generated_at,
        "dimension_map": encode_dimension_map(s.dimension_map),
        "problem_scores": [
            {
                "problem_id": ps.problem_id,
                "task_score": ps.task_score,
                "dimension_scores": dict(ps.dimension_scores),
            }
            for ps in s.problem_scores
        ],
    }


def decode_scores(d: Dict[str, Any]) -> ParticipantScores:
    kind = "scores"
    problems = [
        ProblemScore(
            problem_id=_require(row, "problem_id", "problem score"),
            task_score=_require(row, "task_score", "problem score"),
            dimension_scores=row.get("dimension_scores") or {},
        )
        for row in _require_list(d, "problem_scores", kind)
    ]
    return ParticipantScores(
        scores_id=_require(d, "scores_id", kind),
        event_id=_require(d, "event_id", kind),
        participant_id=_require(d, "participant_id", kind),
        prompt_version_hash=_require(d, "prompt_version_hash", kind),
        generated_at=_require(d, "generated_at", kind),
        dimension_map=decode_dimension_map(_require(d, "dimension_map", kind)),
        problem_scores=tuple(problems),
    )


def encode_derived(s: ParticipantScores) -> Dict[str, Any]:
    """Derived ability scores and totals, for display only."""

    return {"ability_scores": dict(s.ability_scores), **s.totals.as_dict()}


# ---- curve ----

def encode_method(m: CurveMethod) -> Dict[str, Any]:
    return {"type": m.type, "params": m.params()}


def decode_method(d: Dict[str, Any]) -> CurveMethod:
    kind = "curve method"
    name = _require(d, "type", kind)
    params = d.get("params") or {}
    if name == StandardDeviationMethod.type:
        return StandardDeviationMethod(_require(params, "sigma_boundaries", kind))
    if name == PercentileMethod.type:
        return PercentileMethod(_require(params, "percentiles", kind))
    if name == AbsoluteMethod.type:
        return AbsoluteMethod(_require(params, "thresholds", kind))
    raise ScoreValidationError(f"unknown curve method {name!r}", context={"method": name})


def _encode_thresholds(th: GradeThresholds) -> Dict[str, float]:
    return {"A": th.A, "B": th.B, "C": th.C}


def _decode_thresholds(d: Dict[str, Any]) -> GradeThresholds:
    kind = "thresholds"
    return GradeThresholds(A=_require(d, "A", kind), B=_require(d, "B", kind), C=_require(d, "C", kind))


def encode_curve(c: Curve) -> Dict[str, Any]:
    return {
        "curve_id": c.curve_id,
        "label": c.label,
        "source_event_ids": list(c.source_event_ids),
        "source_scores_ids": list(c.source_scores_ids),
        "prompt_version_hash": c.prompt_version_hash,
        "dimension_map": encode_dimension_map(c.dimension_map),
        "problem_ids": list(c.problem_ids),
        "dimension_ids": list(c.dimension_ids),
        "method": encode_method(c.method),
        "sample_size": c.sample_size,
        "computed_at": c.computed_at,
        "total_curves": {k: _encode_thresholds(v) for k, v in c.total_curves.items()},
        "ability_curves": {k: _encode_thresholds(v) for k, v in c.ability_curves.items()},
        "problem_curves": {k: _encode_thresholds(v) for k, v in c.problem_curves.items()},
    }


def decode_curve(d: Dict[str, Any]) -> Curve:
    kind = "curve"
    return Curve(
        curve_id=_require(d, "curve_id", kind),
        label=_require(d, "label", kind),
        source_event_ids=tuple(_require_list(d, "source_event_ids", kind)),
        source_scores_ids=tuple(d.get("source_scores_ids") or ()),
        prompt_version_hash=_require(d, "prompt_version_hash", kind),
        dimension_map=decode_dimension_map(_require(d, "dimension_map", kind)),
        method=decode_method(_require(d, "method", kind)),
        sample_size=_require(d, "sample_size", kind),
        computed_at=_require(d, "computed_at", kind),
        total_curves={k: _decode_thresholds(v) for k, v in _require_dict(d, "total_curves", kind).items()},
        ability_curves={k: _decode_thresholds(v) for k, v in _require_dict(d, "ability_curves", kind).items()},
        problem_curves={k: _decode_thresholds(v) for k, v in _require_dict(d, "problem_curves", kind).items()},
    )


# ---- compatibility ----

def _encode_differences(diff: ProvenanceDifferences) -> Dict[str, Any]:
    return {
        "prompt_version_mismatch": diff.prompt_version_mismatch,
        "dimension_map_mismatch": diff.dimension_map_mismatch,
        "problem_id_differences": list(diff.problem_id_differences),
        "dimension_differences": list(diff.dimension_differences),
        "problem_version_differences": list(diff.problem_version_differences),
    }


def encode_compat(result: CompatibilityResult) -> Dict[str, Any]:
    if isinstance(result, Incompatible):
        return {"status": result.status, "reasons": list(result.reasons)}
    if isinstance(result, RequiresOverride):
        return {
            "status": result.status,
            "warnings": list(result.warnings),
            "differences": _encode_differences(result.differences),
        }
    return {"status": Compatible.status}


def decode_compat(d: Dict[str, Any]) -> CompatibilityResult:
    kind = "compatibility result"
    status = _require(d, "status", kind)
    if status == Compatible.status:
        return Compatible()
    if status == Incompatible.status:
        return Incompatible(reasons=tuple(_require_list(d, "reasons", kind)))
    if status == RequiresOverride.status:
        diff = d.get("differences") or {}
        if not isinstance(diff, dict):
            raise ScoreValidationError("compatibility differences must be an object", context={"kind": kind})
        return RequiresOverride(
            warnings=tuple(_require_list(d, "warnings", kind)),
            differences=ProvenanceDifferences(
                prompt_version_mismatch=bool(diff.get("prompt_version_mismatch", False)),
                dimension_map_mismatch=bool(diff.get("dimension_map_mismatch", False)),
                problem_id_differences=tuple(diff.get("problem_id_differences") or ()),
                dimension_differences=tuple(diff.get("dimension_differences") or ()),
                problem_version_differences=tuple(diff.get("problem_version_differences") or ()),
            ),
        )
    raise ScoreValidationError(f"unknown compatibility status {status!r}", context={"status": status})


def encode_override(o: ManualOverride) -> Dict[str, Any]:
    return {
        "overridden_by": o.overridden_by,
        "overridden_at": o.overridden_at,
        "reason": o.reason,
        "original_result": encode_compat(o.original_result),
    }


def decode_override(d: Dict[str, Any]) -> ManualOverride:
    kind = "override"
    original = decode_compat(_require(d, "original_result", kind))
    if not isinstance(original, RequiresOverride):
        raise ScoreValidationError("an override can only accept a requires_override result")
    return ManualOverride(
        overridden_by=_require(d, "overridden_by", kind),
        overridden_at=_require(d, "overridden_at", kind),
        reason=_require(d, "reason", kind),
        original_result=original,
    )


# ---- grades ----

def encode_graded(g: GradedScores) -> Dict[str, Any]:
    return {
        "graded_id": g.graded_id,
        "source_scores_id": g.source_scores_id,
        "curve_id": g.curve_id,
        "total_grades": g.total_grades.as_dict(),
        "ability_grades": dict(g.ability_grades),
        "problem_grades": [
            {
                "problem_id": pg.problem_id,
                "task_grade": pg.task_grade,
                "dimension_grades": dict(pg.dimension_grades),
            }
            for pg in g.problem_grades
        ],
        "override": encode_override(g.override) if g.override else None,
    }


def decode_graded(d: Dict[str, Any]) -> GradedScores:
    kind = "graded scores"
    totals = _require(d, "total_grades", kind)
    problems: List[ProblemGrade] = [
        ProblemGrade(
            problem_id=_require(row, "problem_id", "problem grade"),
            task_grade=_require(row, "task_grade", "problem grade"),
            dimension_grades=row.get("dimension_grades") or {},
        )
        for row in _require_list(d, "problem_grades", kind)
    ]
    override = d.get("override")
    return GradedScores(
        graded_id=_require(d, "graded_id", kind),
        source_scores_id=_require(d, "source_scores_id", kind),
        curve_id=_require(d, "curve_id", kind),
        total_grades=TotalGrades(
            total_problem=_require(totals, "total_problem", kind),
            total_ability=_require(totals, "total_ability", kind),
            final_total=_require(totals, "final_total", kind),
        ),
        ability_grades=_require_dict(d, "ability_grades", kind),
        problem_grades=tuple(problems),
        override=decode_override(override) if override else None,
    )


__all__ = [
    "dumps",
    "encode_dimension_map",
    "decode_dimension_map",
    "encode_scores",
    "decode_scores",
    "encode_derived",
    "encode_method",
    "decode_method",
    "encode_curve",
    "decode_curve",
    "encode_compat",
    "decode_compat",
    "encode_override",
    "decode_override",
    "encode_graded",
    "decode_graded",
]
