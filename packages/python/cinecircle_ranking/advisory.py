from __future__ import annotations

from typing import Iterable, Mapping, Optional

from cinecircle_core.types import AdvisoryCategory, Severity

from .types import ScoredCandidate

Advisory = Mapping[str, Severity]


def exceeds_severity_limit(actual: Optional[Severity], limit: Optional[Severity]) -> bool:
    # No limit or no data never excludes
    if limit is None or actual is None:
        return False
    return actual.rank > limit.rank


def violates_limits(advisory: Optional[Advisory], limits: Mapping[str, Severity]) -> bool:
    if not advisory or not limits:
        return False
    return any(
        exceeds_severity_limit(advisory.get(category.value), limits.get(category.value))
        for category in AdvisoryCategory
    )


def filter_by_advisory(
    candidates: Iterable[ScoredCandidate],
    advisories: Mapping[int, Advisory],
    limits: Mapping[str, Severity],
) -> list[ScoredCandidate]:
    """Drop candidates whose advisory exceeds any configured maximum.

    Candidates without advisory data pass.
    """
    return [c for c in candidates if not violates_limits(advisories.get(c.id), limits)]
