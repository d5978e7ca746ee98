from dataclasses import dataclass
from typing import Iterable

from cinecircle_core.types import Genre as G
from cinecircle_core.types import Mood

POPULARITY = "popularity.desc"
VOTE_AVERAGE = "vote_average.desc"


@dataclass(frozen=True)
class MoodFilter:
    prefer_genres: tuple[int, ...] = ()
    avoid_genres: tuple[int, ...] = ()  # excluded from discovery and the pool
    soft_avoid_genres: tuple[int, ...] = ()  # only penalized when scoring without mood scores
    sort_by: str = POPULARITY


MOOD_FILTERS: dict[Mood, MoodFilter] = {
    Mood.FUN: MoodFilter(
        prefer_genres=(G.COMEDY, G.ANIMATION, G.FAMILY, G.ADVENTURE),
        avoid_genres=(G.HORROR, G.WAR),
        soft_avoid_genres=(G.DRAMA, G.THRILLER, G.CRIME, G.MYSTERY),
    ),
    Mood.FUNNY: MoodFilter(
        prefer_genres=(G.COMEDY, G.ANIMATION),
        soft_avoid_genres=(G.HORROR, G.WAR, G.DRAMA),
    ),
    Mood.INTENSE: MoodFilter(
        prefer_genres=(G.ACTION, G.THRILLER, G.CRIME, G.HORROR),
        soft_avoid_genres=(G.ROMANCE, G.FAMILY, G.ANIMATION),
        sort_by=VOTE_AVERAGE,
    ),
    Mood.EMOTIONAL: MoodFilter(
        prefer_genres=(G.DRAMA, G.ROMANCE),
        soft_avoid_genres=(G.HORROR, G.ACTION),
        sort_by=VOTE_AVERAGE,
    ),
    Mood.MINDLESS: MoodFilter(
        prefer_genres=(G.ACTION, G.COMEDY, G.ADVENTURE),
        soft_avoid_genres=(G.DRAMA, G.DOCUMENTARY, G.HISTORY),
    ),
    Mood.ACCLAIMED: MoodFilter(sort_by=VOTE_AVERAGE),
    Mood.SCARY: MoodFilter(
        prefer_genres=(G.HORROR, G.THRILLER, G.MYSTERY),
        soft_avoid_genres=(G.FAMILY, G.ANIMATION, G.COMEDY, G.ROMANCE),
    ),
}


def merge_mood_filters(moods: Iterable[Mood]) -> MoodFilter:
    """Combine per-mood filters.

    prefer: union in mood order; avoid: intersection; soft-avoid: union
    minus anything preferred; sort: vote average when acclaimed is selected.
    """
    moods = list(dict.fromkeys(moods))
    if not moods:
        return MoodFilter()
    filters = [MOOD_FILTERS[m] for m in moods]

    prefer = list(dict.fromkeys(g for f in filters for g in f.prefer_genres))
    avoid = set(filters[0].avoid_genres)
    for f in filters[1:]:
        avoid &= set(f.avoid_genres)
    soft_avoid = [
        g
        for g in dict.fromkeys(g for f in filters for g in f.soft_avoid_genres)
        if g not in prefer
    ]
    return MoodFilter(
        prefer_genres=tuple(prefer),
        avoid_genres=tuple(sorted(avoid)),
        soft_avoid_genres=tuple(soft_avoid),
        sort_by=VOTE_AVERAGE if Mood.ACCLAIMED in moods else POPULARITY,
    )
