from __future__ import annotations

from curve_core.compat import CompatibilityOptions, check_compatibility
from curve_core.curve import compute_curve
from curve_core.pool import build_pool
from curve_core.types import (
    DIMENSIONS,
    Compatible,
    Incompatible,
    ParticipantScores,
    ProblemScore,
    RequiresOverride,
    StandardDeviationMethod,
)

from tests.conftest import FIXTURE_ENTRIES, build_fixture_cohort, build_fixture_map, build_fixture_scores


def _curve(cohort=None):
    cohort = cohort or build_fixture_cohort(12)
    return compute_curve(build_pool(cohort, label="fixture"), StandardDeviationMethod())


def _map_without_full_problem():
    # 100010 and 100020 alone cover every dimension
    return build_fixture_map(
        map_id="map_fixture_v1",
        entries=[
            {"problem_id": "100010", "problem_version": "1", "dimensions": [
                "Discovery-Self-Understanding", "Expression-Translation", "Exploratory-Discovery",
            ]},
            {"problem_id": "100020", "problem_version": "1", "dimensions": [
                "Discovery-Self-Understanding", "Verification-Confirmation", "Iterative-Optimization",
            ]},
            {"problem_id": "100041", "problem_version": "1", "dimensions": list(DIMENSIONS)},
        ],
    )


def test_same_population_is_compatible(fixture_cohort):
    curve = _curve(fixture_cohort)
    assert isinstance(check_compatibility(curve, fixture_cohort[0]), Compatible)
    # scores outside the pool but with matching provenance
    outsider = build_fixture_scores(scores_id="outsider", shift=0.05)
    assert check_compatibility(curve, outsider) == Compatible()


def test_problem_mismatch_reported_in_both_directions():
    curve = _curve()
    dmap = _map_without_full_problem()
    base = build_fixture_scores()
    problems = list(base.problem_scores[:2]) + [
        ProblemScore(problem_id="100041", task_score=0.7, dimension_scores={d: 0.7 for d in DIMENSIONS})
    ]
    scores = ParticipantScores(
        scores_id="other",
        event_id=base.event_id,
        participant_id=base.participant_id,
        prompt_version_hash=base.prompt_version_hash,
        generated_at=base.generated_at,
        dimension_map=dmap,
        problem_scores=tuple(problems),
    )
    result = check_compatibility(curve, scores)
    assert isinstance(result, Incompatible)
    assert "Curve requires problem 100031 but scores missing it" in result.reasons
    assert "Scores has problem 100041 but curve missing it" in result.reasons
    assert len(result.reasons) == 2


def test_prompt_version_difference_requires_override(fixture_cohort):
    curve = _curve(fixture_cohort)
    scores = build_fixture_scores(scores_id="x", prompt_version_hash="0123abc")
    result = check_compatibility(curve, scores)
    assert isinstance(result, RequiresOverride)
    assert result.differences.prompt_version_mismatch
    assert not result.differences.dimension_map_mismatch
    assert any("Prompt version differs" in w for w in result.warnings)


def test_map_identity_and_version_differences_require_override(fixture_cohort):
    curve = _curve(fixture_cohort)
    entries = [dict(e) for e in FIXTURE_ENTRIES]
    entries[1]["problem_version"] = "2"
    scores = build_fixture_scores(scores_id="x", dimension_map=build_fixture_map(map_id="map_fixture_v2", entries=entries))
    result = check_compatibility(curve, scores)
    assert isinstance(result, RequiresOverride)
    assert result.differences.dimension_map_mismatch
    assert result.differences.problem_version_differences == ("100020:1->2",)


def test_different_dimension_subset_requires_override(fixture_cohort):
    curve = _curve(fixture_cohort)
    entries = [dict(e) for e in FIXTURE_ENTRIES]
    entries[0]["dimensions"] = ["Discovery-Self-Understanding", "Expression-Translation"]
    dmap = build_fixture_map(entries=entries)
    base = build_fixture_scores()
    p1 = base.problem_scores[0]
    trimmed = ProblemScore(
        problem_id=p1.problem_id,
        task_score=p1.task_score,
        dimension_scores={
            "Discovery-Self-Understanding": p1.dimension_scores["Discovery-Self-Understanding"],
            "Expression-Translation": p1.dimension_scores["Expression-Translation"],
        },
    )
    scores = ParticipantScores(
        scores_id="trimmed",
        event_id=base.event_id,
        participant_id=base.participant_id,
        prompt_version_hash=base.prompt_version_hash,
        generated_at=base.generated_at,
        dimension_map=dmap,
        problem_scores=(trimmed,) + base.problem_scores[1:],
    )
    result = check_compatibility(curve, scores)
    assert isinstance(result, RequiresOverride)
    assert result.differences.dimension_differences == ("100010:Exploratory-Discovery",)
    assert not result.differences.dimension_map_mismatch


def test_language_variant_only_with_option(fixture_cohort):
    curve = _curve(fixture_cohort)
    entries = [dict(e) for e in FIXTURE_ENTRIES]
    entries[2]["problem_id"] = "100030"
    dmap = build_fixture_map(entries=entries)
    base = build_fixture_scores()
    p3 = base.problem_scores[2]
    zh = ProblemScore(problem_id="100030", task_score=p3.task_score, dimension_scores=dict(p3.dimension_scores))
    scores = ParticipantScores(
        scores_id="zh",
        event_id=base.event_id,
        participant_id=base.participant_id,
        prompt_version_hash=base.prompt_version_hash,
        generated_at=base.generated_at,
        dimension_map=dmap,
        problem_scores=base.problem_scores[:2] + (zh,),
    )
    strict = check_compatibility(curve, scores)
    assert isinstance(strict, Incompatible)
    assert set(strict.reasons) == {
        "Curve requires problem 100031 but scores missing it",
        "Scores has problem 100030 but curve missing it",
    }

    relaxed = check_compatibility(curve, scores, CompatibilityOptions(allow_language_variant=True))
    assert isinstance(relaxed, RequiresOverride)
    assert relaxed.differences.problem_id_differences == ("100030~100031",)


def test_options_from_config():
    assert CompatibilityOptions.from_cfg({"ALLOW_LANGUAGE_VARIANT": True}).allow_language_variant
    assert CompatibilityOptions.from_cfg(None) == CompatibilityOptions(allow_language_variant=False)
