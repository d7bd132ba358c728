from __future__ import annotations

import logging
import statistics

import pytest

from curve_core import config
from curve_core.curve import compute_curve, fallback_thresholds, percentile, thresholds_for
from curve_core.errors import ScoreValidationError
from curve_core.grading import grade_for
from curve_core.pool import build_pool
from curve_core.types import (
    DIMENSIONS,
    TOTAL_CATEGORIES,
    AbsoluteMethod,
    GradeThresholds,
    PercentileMethod,
    StandardDeviationMethod,
)

from tests.conftest import build_fixture_cohort, build_fixture_map, build_fixture_scores, build_synthetic_pool


def test_standard_deviation_thresholds():
    values = [0.5, 0.6, 0.7, 0.8, 0.9]
    mu = statistics.fmean(values)
    sigma = statistics.pstdev(values)
    th = thresholds_for(values, StandardDeviationMethod())
    assert th.A == pytest.approx(round(mu + sigma, 3))
    assert th.B == pytest.approx(round(mu, 3))
    assert th.C == pytest.approx(round(mu - sigma, 3))


def test_standard_deviation_clamps_into_unit_interval():
    th = thresholds_for([0.0, 1.0], StandardDeviationMethod((3.0, 0.0, -3.0)))
    assert th.A == 1.0
    assert th.B == 0.5
    assert th.C == 0.0


def test_percentile_linear_interpolation():
    values = [0.1, 0.2, 0.3, 0.4, 0.5]
    assert percentile(values, 0.5) == pytest.approx(0.3)
    assert percentile(values, 0.8) == pytest.approx(0.42)
    assert percentile(values, 0.0) == pytest.approx(0.1)
    assert percentile(values, 1.0) == pytest.approx(0.5)
    with pytest.raises(ScoreValidationError):
        percentile([], 0.5)


def test_percentile_method_thresholds():
    th = thresholds_for([0.1, 0.2, 0.3, 0.4, 0.5], PercentileMethod())
    assert th.as_tuple() == (0.42, 0.3, 0.18)


def test_absolute_method_ignores_distribution():
    method = AbsoluteMethod(GradeThresholds(0.9, 0.7, 0.5))
    assert thresholds_for([0.1, 0.2], method).as_tuple() == (0.9, 0.7, 0.5)
    assert thresholds_for([], method).as_tuple() == (0.9, 0.7, 0.5)


def test_absolute_thresholds_are_not_rounded():
    method = AbsoluteMethod(GradeThresholds(0.8554, 0.7, 0.5))
    curve = compute_curve(build_pool(build_fixture_cohort(12), label="fixture"), method)
    ft = curve.total_curves["final_total"]
    assert ft.as_tuple() == (0.8554, 0.7, 0.5)
    assert list(ft.as_tuple()) == curve.method.params()["thresholds"]
    assert grade_for(0.8551, ft) == "B"


def test_empty_category_uses_fallback():
    assert thresholds_for([], StandardDeviationMethod()) == fallback_thresholds()
    assert fallback_thresholds().as_tuple() == tuple(config.FALLBACK_THRESHOLDS)


@pytest.mark.parametrize(
    "method",
    [StandardDeviationMethod(), PercentileMethod(), AbsoluteMethod(GradeThresholds(0.85, 0.7, 0.5))],
)
def test_curve_covers_every_category_in_order(method):
    pool = build_synthetic_pool(20)
    curve = compute_curve(pool, method, label="cohort")
    assert tuple(curve.total_curves) == TOTAL_CATEGORIES
    assert tuple(curve.ability_curves) == DIMENSIONS
    assert set(curve.problem_curves) == set(pool.problem_ids)
    for th in [*curve.total_curves.values(), *curve.ability_curves.values(), *curve.problem_curves.values()]:
        assert 1.0 >= th.A >= th.B >= th.C >= 0.0
        assert round(th.A, 3) == th.A
    assert curve.sample_size == 20
    assert curve.method == method
    assert curve.label == "cohort"


def test_curve_is_deterministic():
    pool = build_synthetic_pool(15)
    a = compute_curve(pool, StandardDeviationMethod(), curve_id="c1", computed_at="2024-01-01T00:00:00+00:00")
    b = compute_curve(pool, StandardDeviationMethod(), curve_id="c1", computed_at="2024-01-01T00:00:00+00:00")
    assert a == b


def test_curve_records_provenance():
    cohort = build_fixture_cohort(12)
    pool = build_pool(cohort, label="fixture")
    curve = compute_curve(pool, StandardDeviationMethod())
    assert curve.source_event_ids == ("event_2024_01",)
    assert curve.source_scores_ids == tuple(s.scores_id for s in cohort)
    assert curve.prompt_version_hash == cohort[0].prompt_version_hash
    assert curve.dimension_map == cohort[0].dimension_map


def test_single_member_pool_is_degenerate(caplog):
    with caplog.at_level(logging.WARNING):
        pool = build_pool([build_fixture_scores()], label="solo")
    assert any("unstable" in r.getMessage() for r in caplog.records)
    curve = compute_curve(pool, StandardDeviationMethod())
    ft = curve.total_curves["final_total"]
    assert ft.A == ft.B == ft.C
    assert curve.sample_size == 1


def test_pool_rejects_mixed_prompt_versions():
    with pytest.raises(ScoreValidationError, match="prompt"):
        build_pool(
            [
                build_fixture_scores(scores_id="a"),
                build_fixture_scores(scores_id="b", prompt_version_hash="fff0000"),
            ]
        )


def test_pool_rejects_mixed_problem_sets():
    with pytest.raises(ScoreValidationError, match="different problem set"):
        build_pool(
            [
                build_fixture_scores(scores_id="a"),
                build_fixture_scores(scores_id="b", problem_ids=["100010", "100020"]),
            ]
        )


def test_pool_rejects_empty_and_duplicates():
    with pytest.raises(ScoreValidationError, match="empty"):
        build_pool([])
    with pytest.raises(ScoreValidationError, match="twice"):
        build_pool([build_fixture_scores(), build_fixture_scores()])


def test_invalid_method_parameters_rejected():
    with pytest.raises(ScoreValidationError):
        StandardDeviationMethod((-1.0, 0.0, 1.0))
    with pytest.raises(ScoreValidationError):
        PercentileMethod((1.2, 0.5, 0.2))
    with pytest.raises(ScoreValidationError):
        GradeThresholds(0.5, 0.7, 0.2)
    with pytest.raises(ScoreValidationError, match="exactly 3"):
        AbsoluteMethod((0.9, 0.7))
    with pytest.raises(ScoreValidationError, match="must be numbers"):
        PercentileMethod(("high", 0.5, 0.2))
    with pytest.raises(ScoreValidationError, match="list of 3 numbers"):
        StandardDeviationMethod(5)


def test_pool_rejects_other_dimension_map_id():
    with pytest.raises(ScoreValidationError, match="different dimension map"):
        build_pool(
            [
                build_fixture_scores(scores_id="a"),
                build_fixture_scores(scores_id="b", dimension_map=build_fixture_map(map_id="map_fixture_v2")),
            ]
        )


def test_records_are_hashable():
    cohort = build_fixture_cohort(3)
    curve = compute_curve(build_pool(cohort, label="fixture"), StandardDeviationMethod())
    assert len({*cohort, cohort[0]}) == 3
    assert hash(cohort[0].problem_scores[0]) == hash(build_fixture_cohort(3)[0].problem_scores[0])
    assert curve in {curve}
