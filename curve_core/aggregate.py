"""Derive ability scores and totals from a participant's per-problem scores.

Ability score for a dimension is the arithmetic mean over only the problems
whose dimension-map entry lists that dimension. ``final_total_score`` is the
geometric mean of the two totals, clamped into [0, 1] to absorb floating point
drift at the boundary. Sums use ``math.fsum`` so the result does not depend on
input order.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Mapping, Sequence

from .errors import ScoreValidationError
from .types import DIMENSIONS, Dimension, ProblemDimensionMap, ProblemScore, Totals, _readonly
from .validators import clamp01

__all__ = ["AggregateScores", "aggregate", "validate_problem_scores", "mean"]


@dataclass(frozen=True)
class AggregateScores:
    ability_scores: Mapping[Dimension, float]
    totals: Totals


def mean(values: Sequence[float]) -> float:
    if not values:
        raise ScoreValidationError("cannot average an empty value list")
    return math.fsum(values) / len(values)


def validate_problem_scores(problem_scores: Sequence[ProblemScore], dimension_map: ProblemDimensionMap) -> None:
    """Reject scores that disagree with the dimension map.

    Every problem must be in the map, every tested dimension must be listed
    for that problem, and every listed dimension must carry a value.
    """

    if not problem_scores:
        raise ScoreValidationError("no problem scores supplied", context={"map_id": dimension_map.map_id})
    seen: set[str] = set()
    for ps in problem_scores:
        if ps.problem_id in seen:
            raise ScoreValidationError(
                f"problem {ps.problem_id} scored twice",
                context={"problem_id": ps.problem_id},
            )
        seen.add(ps.problem_id)
        listed = set(dimension_map.dimensions_for(ps.problem_id))
        tested = set(ps.tested_dimensions)
        extra = sorted(tested - listed)
        if extra:
            raise ScoreValidationError(
                f"problem {ps.problem_id} has scores for unmapped dimensions: {', '.join(extra)}",
                context={"problem_id": ps.problem_id, "map_id": dimension_map.map_id},
            )
        missing = sorted(listed - tested)
        if missing:
            raise ScoreValidationError(
                f"problem {ps.problem_id} is missing scores for mapped dimensions: {', '.join(missing)}",
                context={"problem_id": ps.problem_id, "map_id": dimension_map.map_id},
            )


def aggregate(problem_scores: Sequence[ProblemScore], dimension_map: ProblemDimensionMap) -> AggregateScores:
    validate_problem_scores(problem_scores, dimension_map)

    ability: Dict[Dimension, float] = {}
    for dim in DIMENSIONS:
        values = [
            ps.dimension_scores[dim]
            for ps in problem_scores
            if dim in dimension_map.dimensions_for(ps.problem_id)
        ]
        if not values:
            raise ScoreValidationError(
                f"no scored problem measures {dim}",
                context={"dimension": dim, "map_id": dimension_map.map_id},
            )
        ability[dim] = mean(values)  # type: ignore[arg-type]

    total_problem = mean([ps.task_score for ps in problem_scores])
    total_ability = mean(list(ability.values()))
    final_total = clamp01(math.sqrt(total_problem * total_ability))
    totals = Totals(
        total_problem_score=total_problem,
        total_ability_score=total_ability,
        final_total_score=final_total,
    )
    return AggregateScores(ability_scores=_readonly(ability), totals=totals)
