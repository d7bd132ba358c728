from __future__ import annotations
from dataclasses import dataclass, field
from functools import cached_property
from types import MappingProxyType
from typing import TYPE_CHECKING, ClassVar, Dict, Iterable, List, Literal, Mapping, Optional, Tuple, Union

from . import config
from .errors import ScoreValidationError
from .validators import (
    validate_non_increasing,
    validate_nonempty,
    validate_problem_id,
    validate_prompt_hash,
    validate_score,
)

if TYPE_CHECKING:
    from .aggregate import AggregateScores

Dimension = Literal[
    "Discovery-Self-Understanding",
    "Expression-Translation",
    "Exploratory-Discovery",
    "Verification-Confirmation",
    "Iterative-Optimization",
]
DIMENSIONS: Tuple[Dimension, ...] = (
    "Discovery-Self-Understanding",
    "Expression-Translation",
    "Exploratory-Discovery",
    "Verification-Confirmation",
    "Iterative-Optimization",
)
LetterGrade = Literal["A", "B", "C", "D"]
LETTER_GRADES: Tuple[LetterGrade, ...] = ("A", "B", "C", "D")
TotalCategory = Literal["total_problem", "total_ability", "final_total"]
TOTAL_CATEGORIES: Tuple[TotalCategory, ...] = ("total_problem", "total_ability", "final_total")


def _readonly(mapping: Mapping) -> Mapping:
    return MappingProxyType(dict(mapping))


def _check_dimension(dim: object) -> Dimension:
    if dim not in DIMENSIONS:
        raise ScoreValidationError(f"unknown dimension {dim!r}", context={"dimension": dim})
    return dim  # type: ignore[return-value]


def _check_grade(value: object, *, label: str, optional: bool = False) -> Optional[LetterGrade]:
    if value is None and optional:
        return None
    if value not in LETTER_GRADES:
        raise ScoreValidationError(f"{label} must be one of A, B, C, D, got {value!r}", context={"field": label})
    return value  # type: ignore[return-value]


# ---- problem/dimension configuration ----

@dataclass(frozen=True)
class DimMapEntry:
    problem_id: str
    problem_version: str
    dimensions: Tuple[Dimension, ...]

    def __post_init__(self) -> None:
        validate_problem_id(self.problem_id)
        validate_nonempty(self.problem_version, label=f"problem_version of {self.problem_id}")
        dims = tuple(_check_dimension(d) for d in self.dimensions)
        if len(set(dims)) != len(dims):
            raise ScoreValidationError(
                f"problem {self.problem_id} lists a dimension twice",
                context={"problem_id": self.problem_id},
            )
        object.__setattr__(self, "dimensions", dims)


@dataclass(frozen=True)
class ProblemDimensionMap:
    """Which of the five dimensions each problem measures.

    Every dimension must be measured by at least one problem; a dimension with
    no contributors cannot be aggregated and is rejected here rather than
    surfacing later as a zero score.
    """

    map_id: str
    label: str
    created_at: str
    entries: Tuple[DimMapEntry, ...]

    def __post_init__(self) -> None:
        validate_nonempty(self.map_id, label="map_id")
        validate_nonempty(self.label, label="label")
        validate_nonempty(self.created_at, label="created_at")
        entries = tuple(self.entries)
        if not entries:
            raise ScoreValidationError("dimension map has no entries", context={"map_id": self.map_id})
        seen: set[str] = set()
        for entry in entries:
            if entry.problem_id in seen:
                raise ScoreValidationError(
                    f"problem {entry.problem_id} appears twice in dimension map",
                    context={"map_id": self.map_id, "problem_id": entry.problem_id},
                )
            seen.add(entry.problem_id)
        uncovered = [d for d in DIMENSIONS if not any(d in e.dimensions for e in entries)]
        if uncovered:
            raise ScoreValidationError(
                f"dimensions without contributing problems: {', '.join(uncovered)}",
                context={"map_id": self.map_id, "uncovered": uncovered},
            )
        object.__setattr__(self, "entries", entries)

    @property
    def problem_ids(self) -> Tuple[str, ...]:
        return tuple(e.problem_id for e in self.entries)

    def entry(self, problem_id: str) -> DimMapEntry:
        for e in self.entries:
            if e.problem_id == problem_id:
                return e
        raise ScoreValidationError(
            f"problem {problem_id} is not in dimension map {self.map_id}",
            context={"map_id": self.map_id, "problem_id": problem_id},
        )

    def dimensions_for(self, problem_id: str) -> Tuple[Dimension, ...]:
        return self.entry(problem_id).dimensions

    def problems_for(self, dimension: Dimension) -> Tuple[str, ...]:
        return tuple(e.problem_id for e in self.entries if dimension in e.dimensions)


# ---- scores ----

@dataclass(frozen=True)
class ProblemScore:
    """Task score plus a five-key dimension map; untested dimensions are ``None``."""

    problem_id: str
    task_score: float
    dimension_scores: Mapping[Dimension, Optional[float]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        validate_problem_id(self.problem_id)
        object.__setattr__(
            self, "task_score", validate_score(self.task_score, label=f"task_score of {self.problem_id}")
        )
        if not isinstance(self.dimension_scores or {}, Mapping):
            raise ScoreValidationError(
                f"dimension_scores of {self.problem_id} must be an object", context={"problem_id": self.problem_id}
            )
        raw = dict(self.dimension_scores or {})
        for key in raw:
            _check_dimension(key)
        shaped: Dict[Dimension, Optional[float]] = {}
        for dim in DIMENSIONS:
            val = raw.get(dim)
            shaped[dim] = None if val is None else validate_score(val, label=f"{self.problem_id}/{dim}")
        object.__setattr__(self, "dimension_scores", _readonly(shaped))

    def __hash__(self) -> int:
        return hash((self.problem_id, self.task_score, tuple(self.dimension_scores.items())))

    @property
    def tested_dimensions(self) -> Tuple[Dimension, ...]:
        return tuple(d for d in DIMENSIONS if self.dimension_scores[d] is not None)


@dataclass(frozen=True)
class Totals:
    total_problem_score: float
    total_ability_score: float
    final_total_score: float

    def as_dict(self) -> Dict[TotalCategory, float]:
        return {
            "total_problem": self.total_problem_score,
            "total_ability": self.total_ability_score,
            "final_total": self.final_total_score,
        }


@dataclass(frozen=True)
class ParticipantScores:
    """One participant's stored per-problem scores.

    ``ability_scores`` and the totals are derived on access from
    ``problem_scores`` and ``dimension_map``; they are never stored.
    """

    scores_id: str
    event_id: str
    participant_id: str
    prompt_version_hash: str
    generated_at: str
    dimension_map: ProblemDimensionMap
    problem_scores: Tuple[ProblemScore, ...]

    def __post_init__(self) -> None:
        from .aggregate import validate_problem_scores

        validate_nonempty(self.scores_id, label="scores_id")
        validate_nonempty(self.event_id, label="event_id")
        validate_nonempty(self.participant_id, label="participant_id")
        validate_nonempty(self.generated_at, label="generated_at")
        validate_prompt_hash(self.prompt_version_hash)
        problems = tuple(self.problem_scores)
        validate_problem_scores(problems, self.dimension_map)
        object.__setattr__(self, "problem_scores", problems)

    def __hash__(self) -> int:
        return hash((self.scores_id, self.problem_scores))

    @cached_property
    def aggregate(self) -> "AggregateScores":
        from .aggregate import aggregate

        return aggregate(self.problem_scores, self.dimension_map)

    @property
    def ability_scores(self) -> Mapping[Dimension, float]:
        return self.aggregate.ability_scores

    @property
    def totals(self) -> Totals:
        return self.aggregate.totals

    @property
    def problem_ids(self) -> Tuple[str, ...]:
        return tuple(p.problem_id for p in self.problem_scores)

    @property
    def dimension_ids(self) -> Tuple[Dimension, ...]:
        return tuple(d for d in DIMENSIONS if self.dimension_map.problems_for(d))


# ---- curves ----

@dataclass(frozen=True)
class GradeThresholds:
    """Minimum score for A, B and C. D is implied below C."""

    A: float
    B: float
    C: float

    def __post_init__(self) -> None:
        for name in ("A", "B", "C"):
            object.__setattr__(self, name, validate_score(getattr(self, name), label=f"threshold {name}"))
        validate_non_increasing((self.A, self.B, self.C), label="thresholds")

    def as_tuple(self) -> Tuple[float, float, float]:
        return (self.A, self.B, self.C)


@dataclass(frozen=True)
class StandardDeviationMethod:
    """Thresholds at ``mean + k * stdev`` for each k (A, B, C)."""

    sigma_boundaries: Tuple[float, float, float] = field(
        default_factory=lambda: tuple(config.DEFAULT_SIGMA_BOUNDARIES)
    )
    type: ClassVar[str] = "standard_deviation"

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "sigma_boundaries", validate_non_increasing(self.sigma_boundaries, label="sigma_boundaries")
        )

    def params(self) -> Dict[str, object]:
        return {"sigma_boundaries": list(self.sigma_boundaries)}


@dataclass(frozen=True)
class PercentileMethod:
    """Thresholds at the given quantiles (0..1) of the pool's values."""

    percentiles: Tuple[float, float, float] = field(
        default_factory=lambda: tuple(config.DEFAULT_PERCENTILES)
    )
    type: ClassVar[str] = "percentile"

    def __post_init__(self) -> None:
        cuts = validate_non_increasing(self.percentiles, label="percentiles")
        for q in cuts:
            validate_score(q, label="percentile")
        object.__setattr__(self, "percentiles", cuts)

    def params(self) -> Dict[str, object]:
        return {"percentiles": list(self.percentiles)}


@dataclass(frozen=True)
class AbsoluteMethod:
    """Fixed thresholds for every category, independent of the cohort."""

    thresholds: GradeThresholds
    type: ClassVar[str] = "absolute"

    def __post_init__(self) -> None:
        if not isinstance(self.thresholds, GradeThresholds):
            object.__setattr__(
                self, "thresholds", GradeThresholds(*validate_non_increasing(self.thresholds, label="thresholds"))
            )

    def params(self) -> Dict[str, object]:
        return {"thresholds": list(self.thresholds.as_tuple())}


CurveMethod = Union[StandardDeviationMethod, PercentileMethod, AbsoluteMethod]


@dataclass(frozen=True)
class Curve:
    curve_id: str
    label: str
    source_event_ids: Tuple[str, ...]
    source_scores_ids: Tuple[str, ...]
    prompt_version_hash: str
    dimension_map: ProblemDimensionMap
    method: CurveMethod
    sample_size: int
    computed_at: str
    total_curves: Mapping[TotalCategory, GradeThresholds]
    ability_curves: Mapping[Dimension, GradeThresholds]
    problem_curves: Mapping[str, GradeThresholds]

    def __post_init__(self) -> None:
        validate_nonempty(self.curve_id, label="curve_id")
        validate_nonempty(self.label, label="label")
        validate_nonempty(self.computed_at, label="computed_at")
        validate_prompt_hash(self.prompt_version_hash)
        if not isinstance(self.sample_size, int) or isinstance(self.sample_size, bool) or self.sample_size < 1:
            raise ScoreValidationError(
                f"sample_size must be a positive integer, got {self.sample_size!r}",
                context={"curve_id": self.curve_id},
            )
        object.__setattr__(self, "source_event_ids", tuple(self.source_event_ids))
        object.__setattr__(self, "source_scores_ids", tuple(self.source_scores_ids))
        if not self.source_event_ids:
            raise ScoreValidationError("curve needs at least one source event", context={"curve_id": self.curve_id})
        if set(self.total_curves) != set(TOTAL_CATEGORIES):
            raise ScoreValidationError(
                "total_curves must cover total_problem, total_ability and final_total",
                context={"curve_id": self.curve_id},
            )
        for dim in self.ability_curves:
            _check_dimension(dim)
        for pid in self.problem_curves:
            validate_problem_id(pid)
        unmapped = sorted(set(self.problem_curves) - set(self.dimension_map.problem_ids))
        if unmapped:
            raise ScoreValidationError(
                f"problem_curves reference problems outside the dimension map: {', '.join(unmapped)}",
                context={"curve_id": self.curve_id},
            )
        object.__setattr__(self, "total_curves", _readonly({k: self.total_curves[k] for k in TOTAL_CATEGORIES}))
        object.__setattr__(
            self, "ability_curves", _readonly({d: self.ability_curves[d] for d in DIMENSIONS if d in self.ability_curves})
        )
        object.__setattr__(self, "problem_curves", _readonly(self.problem_curves))

    def __hash__(self) -> int:
        return hash((self.curve_id, self.computed_at))

    @property
    def problem_ids(self) -> Tuple[str, ...]:
        return tuple(self.problem_curves)

    @property
    def dimension_ids(self) -> Tuple[Dimension, ...]:
        return tuple(self.ability_curves)


# ---- compatibility outcomes ----

@dataclass(frozen=True)
class Compatible:
    status: ClassVar[str] = "compatible"


@dataclass(frozen=True)
class Incompatible:
    reasons: Tuple[str, ...]
    status: ClassVar[str] = "incompatible"

    def __post_init__(self) -> None:
        object.__setattr__(self, "reasons", tuple(self.reasons))
        if not self.reasons:
            raise ScoreValidationError("an incompatible result needs at least one reason")


@dataclass(frozen=True)
class ProvenanceDifferences:
    prompt_version_mismatch: bool = False
    dimension_map_mismatch: bool = False
    problem_id_differences: Tuple[str, ...] = ()
    dimension_differences: Tuple[str, ...] = ()
    problem_version_differences: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        for name in ("problem_id_differences", "dimension_differences", "problem_version_differences"):
            object.__setattr__(self, name, tuple(getattr(self, name)))

    def any(self) -> bool:
        return bool(
            self.prompt_version_mismatch
            or self.dimension_map_mismatch
            or self.problem_id_differences
            or self.dimension_differences
            or self.problem_version_differences
        )


@dataclass(frozen=True)
class RequiresOverride:
    warnings: Tuple[str, ...]
    differences: ProvenanceDifferences
    status: ClassVar[str] = "requires_override"

    def __post_init__(self) -> None:
        object.__setattr__(self, "warnings", tuple(self.warnings))
        if not self.warnings:
            raise ScoreValidationError("an override result needs at least one warning")


CompatibilityResult = Union[Compatible, Incompatible, RequiresOverride]


@dataclass(frozen=True)
class ManualOverride:
    """Audit record of a human accepting a provenance mismatch."""

    overridden_by: str
    overridden_at: str
    reason: str
    original_result: RequiresOverride

    def __post_init__(self) -> None:
        validate_nonempty(self.overridden_by, label="overridden_by")
        validate_nonempty(self.overridden_at, label="overridden_at")
        validate_nonempty(self.reason, label="reason")
        if not isinstance(self.original_result, RequiresOverride):
            raise ScoreValidationError("an override can only accept a requires_override result")


# ---- grades ----

@dataclass(frozen=True)
class TotalGrades:
    total_problem: LetterGrade
    total_ability: LetterGrade
    final_total: LetterGrade

    def __post_init__(self) -> None:
        for cat in TOTAL_CATEGORIES:
            _check_grade(getattr(self, cat), label=cat)

    def as_dict(self) -> Dict[TotalCategory, LetterGrade]:
        return {
            "total_problem": self.total_problem,
            "total_ability": self.total_ability,
            "final_total": self.final_total,
        }


@dataclass(frozen=True)
class ProblemGrade:
    problem_id: str
    task_grade: LetterGrade
    dimension_grades: Mapping[Dimension, Optional[LetterGrade]]

    def __post_init__(self) -> None:
        validate_problem_id(self.problem_id)
        _check_grade(self.task_grade, label=f"task_grade of {self.problem_id}")
        if not isinstance(self.dimension_grades, Mapping):
            raise ScoreValidationError(
                f"dimension_grades of {self.problem_id} must be an object", context={"problem_id": self.problem_id}
            )
        raw = dict(self.dimension_grades)
        for dim, letter in raw.items():
            _check_dimension(dim)
            _check_grade(letter, label=f"{self.problem_id}/{dim}", optional=True)
        object.__setattr__(self, "dimension_grades", _readonly({d: raw.get(d) for d in DIMENSIONS}))

    def __hash__(self) -> int:
        return hash((self.problem_id, self.task_grade, tuple(self.dimension_grades.items())))


@dataclass(frozen=True)
class GradedScores:
    """Letter grades for one (scores, curve) pair, mirroring the score shape."""

    graded_id: str
    source_scores_id: str
    curve_id: str
    total_grades: TotalGrades
    ability_grades: Mapping[Dimension, LetterGrade]
    problem_grades: Tuple[ProblemGrade, ...]
    override: Optional[ManualOverride] = None

    def __post_init__(self) -> None:
        validate_nonempty(self.graded_id, label="graded_id")
        validate_nonempty(self.source_scores_id, label="source_scores_id")
        validate_nonempty(self.curve_id, label="curve_id")
        if not isinstance(self.total_grades, TotalGrades):
            raise ScoreValidationError(
                "total_grades must be a TotalGrades record", context={"graded_id": self.graded_id}
            )
        object.__setattr__(self, "problem_grades", tuple(self.problem_grades))
        raw = dict(self.ability_grades)
        for dim in raw:
            _check_dimension(dim)
        absent = [d for d in DIMENSIONS if d not in raw]
        if absent:
            raise ScoreValidationError(
                f"ability_grades is missing {', '.join(absent)}",
                context={"graded_id": self.graded_id, "missing": absent},
            )
        for dim in DIMENSIONS:
            _check_grade(raw[dim], label=f"ability grade {dim}")
        object.__setattr__(self, "ability_grades", _readonly({d: raw[d] for d in DIMENSIONS}))

    def __hash__(self) -> int:
        return hash(self.graded_id)

    def problem(self, problem_id: str) -> ProblemGrade:
        for pg in self.problem_grades:
            if pg.problem_id == problem_id:
                return pg
        raise KeyError(problem_id)


def grades_listing(graded: Iterable[GradedScores], category: TotalCategory) -> List[LetterGrade]:
    return [g.total_grades.as_dict()[category] for g in graded]
