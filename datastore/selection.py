"""WHERE-clause construction shared by the read and delete paths."""

from __future__ import annotations

from typing import NamedTuple, Optional, Tuple

from datastore.schema import COLUMN_RESOLUTION_TIER, COLUMN_TAG, COLUMN_TIMESTAMP
from models.records import BoundType, TimeRange

ANY_TIER: Optional[int] = None


class Selection(NamedTuple):
    clause: str
    params: Tuple[object, ...]


def build_selection(
    tag: str,
    time_range: TimeRange,
    resolution_tier: Optional[int] = ANY_TIER,
) -> Selection:
    """Build a parameterised conjunctive filter for one tag.

    ``resolution_tier`` of ``None`` or any negative value matches every tier.
    """
    clauses = [f"{COLUMN_TAG} = ?"]
    params: list[object] = [tag]

    if resolution_tier is not None and resolution_tier >= 0:
        clauses.append(f"{COLUMN_RESOLUTION_TIER} = ?")
        params.append(resolution_tier)

    canonical = time_range.canonical()
    if canonical.lower is not None:
        comparator = ">=" if canonical.lower_type is BoundType.closed else ">"
        clauses.append(f"{COLUMN_TIMESTAMP} {comparator} ?")
        params.append(canonical.lower)
    if canonical.upper is not None:
        comparator = "<=" if canonical.upper_type is BoundType.closed else "<"
        clauses.append(f"{COLUMN_TIMESTAMP} {comparator} ?")
        params.append(canonical.upper)

    return Selection(clause=" AND ".join(clauses), params=tuple(params))
