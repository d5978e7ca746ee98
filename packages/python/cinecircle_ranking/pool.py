from __future__ import annotations

from dataclasses import replace
from typing import TYPE_CHECKING, Iterable

from cinecircle_core.config import (
    ACCLAIMED_MIN_VOTE_AVERAGE,
    ACCLAIMED_MIN_VOTE_COUNT,
    MIN_VOTE_AVERAGE,
    MIN_VOTE_COUNT,
)
from cinecircle_core.types import Mood, PickConstraints, certification_allowed, certification_bounds

from .types import Candidate

if TYPE_CHECKING:
    from cinecircle_profile.types import GroupPreferenceProfile


def merge_by_id(internal: Iterable[Candidate], external: Iterable[Candidate]) -> list[Candidate]:
    """Internal candidates first, then external; one record per movie id.

    On collision the external record wins, keeping internal provenance and signal.
    """
    merged: dict[int, Candidate] = {}
    for c in internal:
        merged.setdefault(c.id, c)
    for c in external:
        existing = merged.get(c.id)
        if existing is None:
            merged[c.id] = c
        elif existing.source == "internal":
            merged[c.id] = replace(
                c,
                in_internal_catalog=True,
                internal_signal=c.internal_signal or existing.internal_signal,
            )
    return list(merged.values())


def passes_quality_gate(c: Candidate, *, acclaimed: bool = False) -> bool:
    min_votes = ACCLAIMED_MIN_VOTE_COUNT if acclaimed else MIN_VOTE_COUNT
    min_average = ACCLAIMED_MIN_VOTE_AVERAGE if acclaimed else MIN_VOTE_AVERAGE
    return (
        c.vote_count >= min_votes
        and c.vote_average >= min_average
        and c.has_poster
        and c.has_overview
        and bool(c.genre_ids)
    )


def quality_gate(candidates: Iterable[Candidate], moods: Iterable[Mood] = ()) -> list[Candidate]:
    acclaimed = Mood.ACCLAIMED in set(moods)
    return [c for c in candidates if passes_quality_gate(c, acclaimed=acclaimed)]


def passes_hard_filters(
    c: Candidate,
    profile: "GroupPreferenceProfile",
    constraints: PickConstraints,
    avoid_genres: Iterable[int] = (),
) -> bool:
    if c.id in profile.dismissed or profile.seen_by_all(c.id):
        return False
    if constraints.max_runtime and c.runtime and c.runtime > constraints.max_runtime:
        return False
    gte, lte = constraints.era_window()
    if c.release_date:
        if gte and c.release_date < gte:
            return False
        if lte and c.release_date > lte:
            return False
    if set(avoid_genres) & set(c.genre_ids):
        return False
    floor, ceiling = certification_bounds(constraints.audience, constraints.content_rating)
    return certification_allowed(c.certification, floor, ceiling)


def assemble_pool(
    internal: Iterable[Candidate],
    external: Iterable[Candidate],
    profile: "GroupPreferenceProfile",
    constraints: PickConstraints,
    avoid_genres: Iterable[int] = (),
) -> list[Candidate]:
    """Merge, hard-filter and quality-gate the raw sources into the working pool."""
    avoid = tuple(avoid_genres)
    merged = merge_by_id(internal, external)
    viable = [c for c in merged if passes_hard_filters(c, profile, constraints, avoid)]
    return quality_gate(viable, constraints.moods)
