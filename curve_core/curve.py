"""Grade-boundary computation over a score pool.

Three methods are supported:

``standard_deviation``
    mean ``μ`` and population standard deviation ``σ`` of the category's
    values; thresholds are ``clamp(μ + kσ, 0, 1)`` for each ``k`` in
    ``sigma_boundaries`` (default ``(1, 0, -1)``).
``percentile``
    quantiles of the sorted values at the requested cut points, linearly
    interpolated between the two closest ranks (index ``q * (n - 1)``).
``absolute``
    the caller's fixed thresholds for every category.

Computed thresholds are rounded to ``config.CURVE_DECIMALS`` places; absolute
thresholds are applied exactly as given. A category with no values gets
``config.FALLBACK_THRESHOLDS``; this is logged, not raised.
"""
from __future__ import annotations

import logging
import math
import statistics
import uuid
from typing import Dict, List, Sequence

from . import config
from .errors import ScoreValidationError
from .pool import ScorePool
from .types import (
    DIMENSIONS,
    TOTAL_CATEGORIES,
    AbsoluteMethod,
    Curve,
    CurveMethod,
    Dimension,
    GradeThresholds,
    PercentileMethod,
    StandardDeviationMethod,
    TotalCategory,
)
from .validators import clamp01, utcnow_iso

__all__ = ["compute_curve", "thresholds_for", "percentile", "fallback_thresholds"]

log = logging.getLogger(__name__)


def _round(x: float) -> float:
    return round(clamp01(x), config.CURVE_DECIMALS)


def fallback_thresholds() -> GradeThresholds:
    return GradeThresholds(*(_round(v) for v in config.FALLBACK_THRESHOLDS))


def percentile(values: Sequence[float], q: float) -> float:
    """Linear-interpolated quantile ``q`` (0..1) of ``values``."""

    if not values:
        raise ScoreValidationError("cannot take a percentile of no values")
    ordered = sorted(values)
    pos = q * (len(ordered) - 1)
    lo = math.floor(pos)
    hi = math.ceil(pos)
    if lo == hi:
        return ordered[lo]
    frac = pos - lo
    return ordered[lo] + (ordered[hi] - ordered[lo]) * frac


def thresholds_for(values: Sequence[float], method: CurveMethod) -> GradeThresholds:
    if isinstance(method, AbsoluteMethod):
        return method.thresholds
    if not values:
        return fallback_thresholds()
    if isinstance(method, StandardDeviationMethod):
        mu = statistics.fmean(values)
        sigma = statistics.pstdev(values, mu)
        a, b, c = (_round(mu + k * sigma) for k in method.sigma_boundaries)
        return GradeThresholds(a, b, c)
    if isinstance(method, PercentileMethod):
        a, b, c = (_round(percentile(values, q)) for q in method.percentiles)
        return GradeThresholds(a, b, c)
    raise ScoreValidationError(f"unsupported curve method {method!r}")


def compute_curve(
    pool: ScorePool,
    method: CurveMethod,
    *,
    label: str | None = None,
    curve_id: str | None = None,
    computed_at: str | None = None,
) -> Curve:
    members = pool.scores
    fallbacks: List[str] = []

    def _category(name: str, values: List[float]) -> GradeThresholds:
        if not values and not isinstance(method, AbsoluteMethod):
            fallbacks.append(name)
        th = thresholds_for(values, method)
        log.debug("curve %s: n=%d -> A=%.3f B=%.3f C=%.3f", name, len(values), th.A, th.B, th.C)
        return th

    total_curves: Dict[TotalCategory, GradeThresholds] = {}
    for cat in TOTAL_CATEGORIES:
        total_curves[cat] = _category(cat, [m.totals.as_dict()[cat] for m in members])

    ability_curves: Dict[Dimension, GradeThresholds] = {}
    for dim in DIMENSIONS:
        ability_curves[dim] = _category(dim, [m.ability_scores[dim] for m in members])

    problem_ids: List[str] = []
    for m in members:
        for pid in m.problem_ids:
            if pid not in problem_ids:
                problem_ids.append(pid)
    problem_curves: Dict[str, GradeThresholds] = {}
    for pid in problem_ids:
        values = [ps.task_score for m in members for ps in m.problem_scores if ps.problem_id == pid]
        problem_curves[pid] = _category(pid, values)

    if fallbacks:
        log.warning("curve used fallback thresholds for empty categories: %s", ", ".join(fallbacks))

    curve = Curve(
        curve_id=curve_id or str(uuid.uuid4()),
        label=label or pool.label,
        source_event_ids=pool.source_event_ids,
        source_scores_ids=pool.source_scores_ids,
        prompt_version_hash=pool.prompt_version_hash,
        dimension_map=pool.dimension_map,
        method=method,
        sample_size=pool.sample_size,
        computed_at=computed_at or utcnow_iso(),
        total_curves=total_curves,
        ability_curves=ability_curves,
        problem_curves=problem_curves,
    )
    ft = curve.total_curves["final_total"]
    log.info(
        "computed curve %s (%s, n=%d): final_total A=%.3f B=%.3f C=%.3f",
        curve.curve_id, method.type, curve.sample_size, ft.A, ft.B, ft.C,
    )
    return curve
