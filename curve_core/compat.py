"""Decide whether a curve may be applied to one participant's scores.

Structural mismatches (problem or dimension present on one side only) make
the pair ``Incompatible``. When the structure matches but provenance differs
(prompt version, dimension map, per-problem dimension subsets, problem
versions, or problems matched only via their language variant) the outcome is
``RequiresOverride``: a human has to accept the difference before grading.
Mismatch is returned as data; this module never raises for it.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List

from . import config
from .dimension_map import match_problem_ids
from .types import (
    Compatible,
    CompatibilityResult,
    Curve,
    Incompatible,
    ParticipantScores,
    ProvenanceDifferences,
    RequiresOverride,
)

__all__ = ["CompatibilityOptions", "check_compatibility"]

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompatibilityOptions:
    allow_language_variant: bool = False

    @staticmethod
    def from_cfg(cfg: dict | None) -> "CompatibilityOptions":
        cfg = cfg or {}
        return CompatibilityOptions(
            allow_language_variant=bool(cfg.get("ALLOW_LANGUAGE_VARIANT", config.ALLOW_LANGUAGE_VARIANT))
        )


def _structural_reasons(curve: Curve, scores: ParticipantScores, lang_ok: bool) -> List[str]:
    reasons: List[str] = []
    curve_pids = list(curve.problem_ids)
    score_pids = list(scores.problem_ids)
    curve_to_scores = match_problem_ids(curve_pids, score_pids, allow_language_variant=lang_ok)
    scores_to_curve = match_problem_ids(score_pids, curve_pids, allow_language_variant=lang_ok)
    for pid in curve_pids:
        if pid not in curve_to_scores:
            reasons.append(f"Curve requires problem {pid} but scores missing it")
    for pid in score_pids:
        if pid not in scores_to_curve:
            reasons.append(f"Scores has problem {pid} but curve missing it")

    curve_dims = list(curve.dimension_ids)
    score_dims = list(scores.dimension_ids)
    for dim in curve_dims:
        if dim not in score_dims:
            reasons.append(f"Curve requires dimension {dim} but scores missing it")
    for dim in score_dims:
        if dim not in curve_dims:
            reasons.append(f"Scores has dimension {dim} but curve missing it")
    return reasons


def _provenance(curve: Curve, scores: ParticipantScores, lang_ok: bool) -> RequiresOverride | None:
    warnings: List[str] = []
    prompt_mismatch = curve.prompt_version_hash != scores.prompt_version_hash
    if prompt_mismatch:
        warnings.append(
            f"Prompt version differs: curve {curve.prompt_version_hash}, scores {scores.prompt_version_hash}"
        )
    map_mismatch = curve.dimension_map.map_id != scores.dimension_map.map_id
    if map_mismatch:
        warnings.append(
            f"Dimension map differs: curve {curve.dimension_map.map_id}, scores {scores.dimension_map.map_id}"
        )

    problem_diffs: List[str] = []
    dimension_diffs: List[str] = []
    version_diffs: List[str] = []
    pairs = match_problem_ids(scores.problem_ids, curve.problem_ids, allow_language_variant=lang_ok)
    for score_pid, curve_pid in pairs.items():
        if score_pid != curve_pid:
            problem_diffs.append(f"{score_pid}~{curve_pid}")
            warnings.append(f"Scores problem {score_pid} graded against language variant {curve_pid}")
        score_entry = scores.dimension_map.entry(score_pid)
        curve_entry = curve.dimension_map.entry(curve_pid)
        if set(score_entry.dimensions) != set(curve_entry.dimensions):
            for dim in sorted(set(score_entry.dimensions) ^ set(curve_entry.dimensions)):
                dimension_diffs.append(f"{score_pid}:{dim}")
            warnings.append(f"Problem {score_pid} measures different dimensions than curve problem {curve_pid}")
        if score_entry.problem_version != curve_entry.problem_version:
            version_diffs.append(f"{score_pid}:{curve_entry.problem_version}->{score_entry.problem_version}")
            warnings.append(
                f"Problem {score_pid} version {score_entry.problem_version} differs from curve "
                f"version {curve_entry.problem_version}"
            )

    differences = ProvenanceDifferences(
        prompt_version_mismatch=prompt_mismatch,
        dimension_map_mismatch=map_mismatch,
        problem_id_differences=tuple(problem_diffs),
        dimension_differences=tuple(dimension_diffs),
        problem_version_differences=tuple(version_diffs),
    )
    if not differences.any():
        return None
    return RequiresOverride(warnings=tuple(warnings), differences=differences)


def check_compatibility(
    curve: Curve,
    scores: ParticipantScores,
    options: CompatibilityOptions | None = None,
) -> CompatibilityResult:
    opts = options or CompatibilityOptions()
    reasons = _structural_reasons(curve, scores, opts.allow_language_variant)
    if reasons:
        log.info("curve %s incompatible with scores %s: %d reasons", curve.curve_id, scores.scores_id, len(reasons))
        return Incompatible(reasons=tuple(reasons))
    soft = _provenance(curve, scores, opts.allow_language_variant)
    if soft is not None:
        log.info(
            "curve %s needs override for scores %s: %s",
            curve.curve_id, scores.scores_id, "; ".join(soft.warnings),
        )
        return soft
    return Compatible()
