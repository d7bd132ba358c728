from __future__ import annotations

import uuid
from typing import Any, Dict, Iterable, List, Mapping

from .types import DIMENSIONS, DimMapEntry, ProblemDimensionMap
from .validators import base_problem_id, utcnow_iso


def build_dimension_map(
    entries: Iterable[Mapping[str, Any] | DimMapEntry],
    *,
    label: str,
    map_id: str | None = None,
    created_at: str | None = None,
) -> ProblemDimensionMap:
    """Create a validated map from ``{problem_id, problem_version, dimensions}`` rows."""

    built: List[DimMapEntry] = []
    for row in entries:
        if isinstance(row, DimMapEntry):
            built.append(row)
            continue
        built.append(
            DimMapEntry(
                problem_id=row.get("problem_id"),  # type: ignore[arg-type]
                problem_version=str(row.get("problem_version", "")),
                dimensions=tuple(row.get("dimensions") or ()),
            )
        )
    return ProblemDimensionMap(
        map_id=map_id or str(uuid.uuid4()),
        label=label,
        created_at=created_at or utcnow_iso(),
        entries=tuple(built),
    )


def same_structure(a: ProblemDimensionMap, b: ProblemDimensionMap) -> bool:
    """True when both maps list the same problems, versions and dimension subsets."""

    return _entry_index(a) == _entry_index(b)


def coverage(dimension_map: ProblemDimensionMap) -> Dict[str, List[str]]:
    return {dim: list(dimension_map.problems_for(dim)) for dim in DIMENSIONS}


def match_problem_ids(
    left: Iterable[str], right: Iterable[str], *, allow_language_variant: bool = False
) -> Dict[str, str]:
    """Pair ids from ``left`` with ids in ``right``.

    Exact matches win; with ``allow_language_variant`` an id may also pair
    with one that differs only in the trailing language digit.
    """

    right_ids = list(right)
    pairs: Dict[str, str] = {}
    for pid in left:
        if pid in right_ids:
            pairs[pid] = pid
        elif allow_language_variant:
            base = base_problem_id(pid)
            for other in right_ids:
                if base_problem_id(other) == base:
                    pairs[pid] = other
                    break
    return pairs


def _entry_index(dimension_map: ProblemDimensionMap) -> Dict[str, tuple]:
    return {
        e.problem_id: (e.problem_version, frozenset(e.dimensions))
        for e in dimension_map.entries
    }
