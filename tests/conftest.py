from __future__ import annotations

import pytest

from curve_core.dimension_map import build_dimension_map
from curve_core.pool import ScorePool, build_pool
from curve_core.synthetic import generate_cohort
from curve_core.types import ParticipantScores, ProblemDimensionMap, ProblemScore

FIXTURE_HASH = "abc1234def5678"
FIXTURE_AT = "2024-01-15T09:00:00+00:00"

FIXTURE_ENTRIES = [
    {
        "problem_id": "100010",
        "problem_version": "1",
        "dimensions": ["Discovery-Self-Understanding", "Expression-Translation", "Exploratory-Discovery"],
    },
    {
        "problem_id": "100020",
        "problem_version": "1",
        "dimensions": ["Discovery-Self-Understanding", "Verification-Confirmation", "Iterative-Optimization"],
    },
    {
        "problem_id": "100031",
        "problem_version": "1",
        "dimensions": [
            "Discovery-Self-Understanding",
            "Expression-Translation",
            "Exploratory-Discovery",
            "Verification-Confirmation",
            "Iterative-Optimization",
        ],
    },
]

FIXTURE_PROBLEMS = [
    (
        "100010",
        0.80,
        {"Discovery-Self-Understanding": 0.85, "Expression-Translation": 0.78, "Exploratory-Discovery": 0.72},
    ),
    (
        "100020",
        0.75,
        {"Discovery-Self-Understanding": 0.90, "Verification-Confirmation": 0.65, "Iterative-Optimization": 0.70},
    ),
    (
        "100031",
        0.82,
        {
            "Discovery-Self-Understanding": 0.88,
            "Expression-Translation": 0.82,
            "Exploratory-Discovery": 0.79,
            "Verification-Confirmation": 0.71,
            "Iterative-Optimization": 0.68,
        },
    ),
]


def build_fixture_map(*, map_id: str = "map_fixture_v1", entries: list[dict] | None = None) -> ProblemDimensionMap:
    """The three-problem map used throughout the tests."""

    return build_dimension_map(
        entries if entries is not None else FIXTURE_ENTRIES,
        label="fixture",
        map_id=map_id,
        created_at=FIXTURE_AT,
    )


def build_fixture_scores(
    *,
    scores_id: str = "scores-001",
    participant_id: str = "participant_001",
    event_id: str = "event_2024_01",
    shift: float = 0.0,
    prompt_version_hash: str = FIXTURE_HASH,
    dimension_map: ProblemDimensionMap | None = None,
    problem_ids: list[str] | None = None,
) -> ParticipantScores:
    """Fixture scores; ``shift`` moves every value (clamped to [0, 1])."""

    def _v(x: float) -> float:
        return round(min(1.0, max(0.0, x + shift)), 4)

    dmap = dimension_map or build_fixture_map()
    wanted = problem_ids or [pid for pid, _, _ in FIXTURE_PROBLEMS]
    problems = [
        ProblemScore(problem_id=pid, task_score=_v(task), dimension_scores={d: _v(s) for d, s in dims.items()})
        for pid, task, dims in FIXTURE_PROBLEMS
        if pid in wanted
    ]
    return ParticipantScores(
        scores_id=scores_id,
        event_id=event_id,
        participant_id=participant_id,
        prompt_version_hash=prompt_version_hash,
        generated_at=FIXTURE_AT,
        dimension_map=dmap,
        problem_scores=tuple(problems),
    )


def build_fixture_cohort(count: int = 12) -> list[ParticipantScores]:
    """``count`` fixture participants spread evenly around the base scores."""

    mid = (count - 1) / 2.0
    return [
        build_fixture_scores(
            scores_id=f"scores-{i:03d}",
            participant_id=f"participant_{i:03d}",
            shift=round((i - mid) * 0.02, 4),
        )
        for i in range(count)
    ]


def build_synthetic_pool(count: int = 25, *, seed: int = 7, label: str = "synthetic") -> ScorePool:
    return build_pool(generate_cohort(count, seed=seed), label=label, pool_id=f"pool-{seed}-{count}")


@pytest.fixture
def fixture_map() -> ProblemDimensionMap:
    return build_fixture_map()


@pytest.fixture
def fixture_scores() -> ParticipantScores:
    return build_fixture_scores()


@pytest.fixture
def fixture_cohort() -> list[ParticipantScores]:
    return build_fixture_cohort()


@pytest.fixture
def synthetic_pool() -> ScorePool:
    return build_synthetic_pool()
