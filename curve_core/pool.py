from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Iterable, Tuple

from . import config
from .dimension_map import same_structure
from .errors import ScoreValidationError
from .types import ParticipantScores, ProblemDimensionMap
from .validators import validate_nonempty

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScorePool:
    """Participants whose scores can share one curve.

    All members must cover the same problems, reference the same dimension
    map (same id and entries) and the same prompt version. Pools smaller than
    ``config.MIN_POOL_SIZE_WARN`` are accepted but logged; a single member
    gives a degenerate curve (stdev 0).
    """

    pool_id: str
    label: str
    scores: Tuple[ParticipantScores, ...]

    def __post_init__(self) -> None:
        validate_nonempty(self.pool_id, label="pool_id")
        validate_nonempty(self.label, label="label")
        members = tuple(self.scores)
        if not members:
            raise ScoreValidationError("score pool is empty", context={"pool_id": self.pool_id})
        first = members[0]
        problem_set = set(first.problem_ids)
        seen_ids: set[str] = set()
        for member in members:
            if member.scores_id in seen_ids:
                raise ScoreValidationError(
                    f"scores {member.scores_id} appear twice in pool",
                    context={"pool_id": self.pool_id, "scores_id": member.scores_id},
                )
            seen_ids.add(member.scores_id)
            if set(member.problem_ids) != problem_set:
                raise ScoreValidationError(
                    f"scores {member.scores_id} cover a different problem set",
                    context={
                        "pool_id": self.pool_id,
                        "expected": sorted(problem_set),
                        "found": sorted(member.problem_ids),
                    },
                )
            if (
                member.dimension_map.map_id != first.dimension_map.map_id
                or not same_structure(member.dimension_map, first.dimension_map)
            ):
                raise ScoreValidationError(
                    f"scores {member.scores_id} use a different dimension map",
                    context={"pool_id": self.pool_id, "map_id": member.dimension_map.map_id},
                )
            if member.prompt_version_hash != first.prompt_version_hash:
                raise ScoreValidationError(
                    f"scores {member.scores_id} were produced with prompt {member.prompt_version_hash}, "
                    f"pool uses {first.prompt_version_hash}",
                    context={"pool_id": self.pool_id},
                )
        object.__setattr__(self, "scores", members)
        if len(members) < config.MIN_POOL_SIZE_WARN:
            log.warning(
                "pool %s has %d participants (<%d); thresholds will be unstable",
                self.pool_id, len(members), config.MIN_POOL_SIZE_WARN,
            )

    @property
    def sample_size(self) -> int:
        return len(self.scores)

    @property
    def dimension_map(self) -> ProblemDimensionMap:
        return self.scores[0].dimension_map

    @property
    def prompt_version_hash(self) -> str:
        return self.scores[0].prompt_version_hash

    @property
    def problem_ids(self) -> Tuple[str, ...]:
        return self.scores[0].problem_ids

    @property
    def source_event_ids(self) -> Tuple[str, ...]:
        return tuple(sorted({s.event_id for s in self.scores}))

    @property
    def source_scores_ids(self) -> Tuple[str, ...]:
        return tuple(s.scores_id for s in self.scores)


def build_pool(
    scores: Iterable[ParticipantScores], *, label: str | None = None, pool_id: str | None = None
) -> ScorePool:
    members = tuple(scores)
    pool = ScorePool(
        pool_id=pool_id or str(uuid.uuid4()),
        label=label or config.DEFAULT_CURVE_LABEL,
        scores=members,
    )
    log.info(
        "pool %s: %d participants from events %s",
        pool.pool_id, pool.sample_size, ", ".join(pool.source_event_ids),
    )
    return pool
