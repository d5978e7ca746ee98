"""Pure planning of the external discovery bundle.

Nothing here performs I/O: the plan is a list of ``DiscoverQuery`` values the
sourcer executes concurrently.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Literal, Mapping, Optional

from cinecircle_core.config import (
    EMERGENCY_MIN_VOTE_AVERAGE,
    EMERGENCY_MIN_VOTE_COUNT,
    EMERGENCY_PAGES,
    MOOD_DISCOVER_PAGES,
    PAGES_PER_SHUFFLE,
    POPULAR_PAGES,
    POWER_USER_MIN_VOTE_AVERAGE,
    POWER_USER_MIN_VOTE_COUNT,
    PRIMARY_DISCOVER_PAGES,
    TOP_RATED_PAGES,
    USER_PREF_DISCOVER_PAGES,
    WILDCARD_MIN_VOTE_AVERAGE,
    WILDCARD_MIN_VOTE_COUNT,
)
from cinecircle_core.types import (
    Audience,
    ContentRating,
    Genre,
    Mood,
    PickConstraints,
    certification_bounds,
)
from cinecircle_profile.types import GroupPreferenceProfile
from cinecircle_tmdb.tmdb_client import AND, OR, join_genres

from .mood_filters import POPULARITY, VOTE_AVERAGE, MoodFilter, merge_mood_filters

Tier = Literal["low", "medium", "high"]
Endpoint = Literal["discover", "popular", "top_rated"]

_RATING_PRESSURE = {
    ContentRating.G: 4,
    ContentRating.PG: 3,
    ContentRating.PG_13: 2,
    ContentRating.R: 1,
}
_ADULT_EXCLUDED_GENRES = (Genre.ANIMATION, Genre.FAMILY)


@dataclass(frozen=True)
class FilterPressure:
    score: float
    tier: Tier
    min_vote_count: int
    min_vote_average: float
    popularity_floor: float
    extra_pages: int


def filter_pressure(constraints: PickConstraints, total_seen: int) -> FilterPressure:
    """How hard the active constraints squeeze the catalog, and the floors that follow."""
    score = 0.0
    moods = constraints.moods
    for mood in moods:
        if mood == Mood.ACCLAIMED:
            score += 3
        elif mood in (Mood.EMOTIONAL, Mood.INTENSE):
            score += 1
        else:
            score += 0.5
    if len(moods) > 1:
        score += 2
    if constraints.era:
        score += 3
    elif constraints.start_year:
        score += 1
    if constraints.max_runtime:
        if constraints.max_runtime <= 120:
            score += 2
        elif constraints.max_runtime <= 150:
            score += 1
    if constraints.content_rating:
        score += _RATING_PRESSURE[constraints.content_rating]
    if total_seen > 500:
        score += 3
    elif total_seen > 200:
        score += 2
    elif total_seen > 50:
        score += 1
    score += 0.5 * len(constraints.advisory_limits)
    providers = len(constraints.provider_ids)
    if providers:
        score += 3 if providers <= 2 else 2 if providers <= 4 else 1

    tier: Tier = "low" if score <= 3 else "medium" if score <= 6 else "high"

    if total_seen > 500:
        votes, average, popularity = 2000, 6.5, 20.0
    elif total_seen > 200:
        votes, average, popularity = 1000, 6.2, 12.0
    elif total_seen > 50:
        votes, average, popularity = 500, 6.0, 5.0
    else:
        votes, average, popularity = 200, 6.0, 0.0

    if tier == "high":
        votes = round(votes * 0.3)
        average = max(5.5, average - 0.8)
        popularity = 0.0
        extra = 4
    elif tier == "medium":
        votes = round(votes * 0.6)
        average = max(5.8, average - 0.4)
        popularity = popularity * 0.5
        extra = 2
    else:
        extra = 0

    return FilterPressure(
        score=score,
        tier=tier,
        min_vote_count=votes,
        min_vote_average=round(average, 2),
        popularity_floor=popularity,
        extra_pages=extra,
    )


@dataclass(frozen=True)
class DiscoverQuery:
    branch: str
    endpoint: Endpoint = "discover"
    page: int = 1
    params: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class DiscoverPlan:
    pressure: FilterPressure
    mood_filter: MoodFilter
    page_offset: int
    queries: tuple[DiscoverQuery, ...]

    @property
    def branch_names(self) -> list[str]:
        return [q.branch for q in self.queries]


def page_offset(page: int) -> int:
    return (max(page, 1) - 1) * PAGES_PER_SHUFFLE


def hard_filter_params(constraints: PickConstraints) -> dict[str, Any]:
    """Discover params that every external query must carry."""
    gte, lte = constraints.era_window()
    cert_gte, cert_lte = certification_bounds(constraints.audience, constraints.content_rating)
    params: dict[str, Any] = {
        "runtime_lte": constraints.max_runtime,
        "release_gte": gte,
        "release_lte": lte,
        "certification_gte": cert_gte,
        "certification_lte": cert_lte,
    }
    if constraints.audience == Audience.ADULTS:
        params["without_genres"] = join_genres(_ADULT_EXCLUDED_GENRES, AND)
    if constraints.provider_ids:
        params["provider_ids"] = list(constraints.provider_ids)
        params["watch_region"] = constraints.watch_region
    return {k: v for k, v in params.items() if v is not None}


def _without(hard: Mapping[str, Any], extra: tuple[int, ...]) -> Optional[str]:
    genres = [int(g) for g in (hard.get("without_genres") or "").split(",") if g]
    genres.extend(g for g in extra if g not in genres)
    return join_genres(genres, AND)


def plan_discovery(
    profile: GroupPreferenceProfile,
    constraints: PickConstraints,
    page: int = 1,
) -> DiscoverPlan:
    pressure = filter_pressure(constraints, profile.total_seen)
    mood_filter = merge_mood_filters(constraints.moods)
    offset = page_offset(page)
    hard = hard_filter_params(constraints)
    has_moods = bool(constraints.moods)
    top_genres = [g.genre_id for g in profile.preferred_genres[:3]]

    floors = {
        "vote_count_gte": pressure.min_vote_count,
        "vote_average_gte": pressure.min_vote_average,
    }
    if Mood.ACCLAIMED in constraints.moods:
        # Acclaimed raises the bar unless the pressure tier demands otherwise
        if pressure.tier == "high":
            floors["vote_average_gte"] = 6.5
        elif pressure.tier == "medium":
            floors["vote_average_gte"] = 7.0
        else:
            floors["vote_average_gte"] = max(
                pressure.min_vote_average, 7.0 if constraints.content_rating else 7.5
            )
        floors["vote_count_gte"] = max(
            pressure.min_vote_count, 500 if constraints.content_rating else 1000
        )

    if has_moods and mood_filter.prefer_genres:
        primary_genres = join_genres(mood_filter.prefer_genres, OR)
    else:
        primary_genres = join_genres(top_genres, AND)

    mood_params = {**hard, "without_genres": _without(hard, mood_filter.avoid_genres)}
    primary = {
        **mood_params,
        **floors,
        "with_genres": primary_genres,
        "sort_by": mood_filter.sort_by,
    }

    queries: list[DiscoverQuery] = [
        DiscoverQuery(f"primary_{i}", page=offset + i, params=primary)
        for i in range(1, PRIMARY_DISCOVER_PAGES + 1)
    ]

    if has_moods and mood_filter.prefer_genres:
        mood_only = {
            **mood_params,
            **floors,
            "with_genres": join_genres(mood_filter.prefer_genres, OR),
            "sort_by": POPULARITY,
        }
        queries += [
            DiscoverQuery(f"mood_{i}", page=offset + i, params=mood_only)
            for i in range(1, MOOD_DISCOVER_PAGES + 1)
        ]

    if top_genres:
        user_pref = {**hard, **floors, "with_genres": join_genres(top_genres, OR), "sort_by": POPULARITY}
        queries += [
            DiscoverQuery(f"user_pref_{i}", page=offset + i, params=user_pref)
            for i in range(1, USER_PREF_DISCOVER_PAGES + 1)
        ]

    queries.append(
        DiscoverQuery(
            "wildcard",
            page=offset + 1,
            params={
                **hard,
                "sort_by": VOTE_AVERAGE,
                "vote_average_gte": max(pressure.min_vote_average, WILDCARD_MIN_VOTE_AVERAGE),
                "vote_count_gte": max(pressure.min_vote_count, WILDCARD_MIN_VOTE_COUNT),
            },
        )
    )

    if hard:
        # popular/top_rated endpoints cannot carry hard filters
        queries += [
            DiscoverQuery(
                f"popular_{i}",
                page=offset + i,
                params={**hard, "sort_by": POPULARITY, "vote_count_gte": pressure.min_vote_count},
            )
            for i in range(1, POPULAR_PAGES + 1)
        ]
        queries += [
            DiscoverQuery(
                f"top_rated_{i}",
                page=offset + i,
                params={
                    **hard,
                    "sort_by": VOTE_AVERAGE,
                    "vote_average_gte": max(pressure.min_vote_average, 7.0),
                    "vote_count_gte": max(pressure.min_vote_count, 300),
                },
            )
            for i in range(1, TOP_RATED_PAGES + 1)
        ]
    else:
        queries += [
            DiscoverQuery(f"popular_{i}", endpoint="popular", page=offset + i)
            for i in range(1, POPULAR_PAGES + 1)
        ]
        queries += [
            DiscoverQuery(f"top_rated_{i}", endpoint="top_rated", page=offset + i)
            for i in range(1, TOP_RATED_PAGES + 1)
        ]

    depth = 3 if profile.total_seen > 500 else 2 if profile.total_seen > 200 else 0
    deep = {
        **primary,
        "vote_count_gte": max(pressure.min_vote_count, POWER_USER_MIN_VOTE_COUNT),
        "vote_average_gte": POWER_USER_MIN_VOTE_AVERAGE,
    }
    queries += [
        DiscoverQuery(f"power_user_{i}", page=offset + PRIMARY_DISCOVER_PAGES + 1 + i, params=deep)
        for i in range(depth)
    ]

    if pressure.extra_pages:
        broad = {
            **primary,
            "vote_count_gte": pressure.min_vote_count,
            "vote_average_gte": pressure.min_vote_average,
        }
        start = offset + PRIMARY_DISCOVER_PAGES + 2 + depth
        queries += [
            DiscoverQuery(f"pressure_{i}", page=start + i, params=broad)
            for i in range(pressure.extra_pages)
        ]
        if mood_filter.prefer_genres:
            queries.append(
                DiscoverQuery(
                    "pressure_mood_only",
                    page=offset + 1,
                    params={**broad, "with_genres": join_genres(mood_filter.prefer_genres[:2], AND)},
                )
            )
        queries.append(
            DiscoverQuery(
                "pressure_genreless",
                page=offset + 1,
                params={
                    **hard,
                    "sort_by": VOTE_AVERAGE,
                    "vote_count_gte": pressure.min_vote_count,
                    "vote_average_gte": pressure.min_vote_average,
                },
            )
        )

    return DiscoverPlan(
        pressure=pressure,
        mood_filter=mood_filter,
        page_offset=offset,
        queries=tuple(replace(q, params=_compact(q.params)) for q in queries),
    )


def plan_emergency(constraints: PickConstraints, page: int = 1) -> tuple[DiscoverQuery, ...]:
    """Relaxed-floor pages used once when the pool is too small."""
    offset = page_offset(page)
    params = _compact({
        **hard_filter_params(constraints),
        "sort_by": POPULARITY,
        "vote_count_gte": EMERGENCY_MIN_VOTE_COUNT,
        "vote_average_gte": EMERGENCY_MIN_VOTE_AVERAGE,
    })
    return tuple(
        DiscoverQuery(f"emergency_{i}", page=offset + i, params=params)
        for i in range(1, EMERGENCY_PAGES + 1)
    )


def _compact(params: Mapping[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in params.items() if v is not None}
