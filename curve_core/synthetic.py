"""Deterministic synthetic cohorts for smoke runs, tools and tests.

Every participant gets a latent skill level; problem and dimension scores are
that level plus per-item noise, rounded to two decimals. The same seed always
yields the same cohort (ids included).
"""
from __future__ import annotations

import random
import uuid
from typing import Dict, List

from . import config
from .dimension_map import build_dimension_map
from .types import Dimension, ParticipantScores, ProblemDimensionMap, ProblemScore
from .validators import clamp01

SYNTHETIC_EVENT_ID = "event_synthetic_01"
SYNTHETIC_PROMPT_HASH = "abc1234def5678"
SYNTHETIC_GENERATED_AT = "2024-01-15T09:00:00+00:00"

_SYNTHETIC_ENTRIES: List[Dict[str, object]] = [
    {"problem_id": "100010", "problem_version": "1", "dimensions": ["Discovery-Self-Understanding", "Expression-Translation"]},
    {"problem_id": "100020", "problem_version": "1", "dimensions": ["Exploratory-Discovery", "Verification-Confirmation"]},
    {"problem_id": "100030", "problem_version": "1", "dimensions": ["Iterative-Optimization", "Expression-Translation", "Verification-Confirmation"]},
    {"problem_id": "100040", "problem_version": "1", "dimensions": ["Discovery-Self-Understanding", "Exploratory-Discovery", "Iterative-Optimization"]},
]


def synthetic_dimension_map(*, map_id: str = "map_synthetic_v1") -> ProblemDimensionMap:
    return build_dimension_map(
        _SYNTHETIC_ENTRIES, label="synthetic", map_id=map_id, created_at=SYNTHETIC_GENERATED_AT
    )


def _noisy(rng: random.Random, level: float, spread: float) -> float:
    return round(clamp01(level + rng.gauss(0.0, spread)), 2)


def generate_participant(
    rng: random.Random,
    participant_id: str,
    dimension_map: ProblemDimensionMap,
    *,
    event_id: str = SYNTHETIC_EVENT_ID,
    prompt_version_hash: str = SYNTHETIC_PROMPT_HASH,
) -> ParticipantScores:
    level = clamp01(rng.gauss(0.65, 0.12))
    problems: List[ProblemScore] = []
    for entry in dimension_map.entries:
        dims: Dict[Dimension, float] = {d: _noisy(rng, level, 0.1) for d in entry.dimensions}
        problems.append(
            ProblemScore(problem_id=entry.problem_id, task_score=_noisy(rng, level, 0.08), dimension_scores=dims)
        )
    return ParticipantScores(
        scores_id=str(uuid.UUID(int=rng.getrandbits(128), version=4)),
        event_id=event_id,
        participant_id=participant_id,
        prompt_version_hash=prompt_version_hash,
        generated_at=SYNTHETIC_GENERATED_AT,
        dimension_map=dimension_map,
        problem_scores=tuple(problems),
    )


def generate_cohort(
    count: int | None = None,
    *,
    seed: int | None = None,
    dimension_map: ProblemDimensionMap | None = None,
    event_id: str = SYNTHETIC_EVENT_ID,
) -> List[ParticipantScores]:
    rng = random.Random(config.SYNTHETIC_SEED if seed is None else seed)
    dmap = dimension_map or synthetic_dimension_map()
    n = config.SYNTHETIC_PARTICIPANTS if count is None else count
    return [
        generate_participant(rng, f"participant_{i + 1:03d}", dmap, event_id=event_id)
        for i in range(n)
    ]
