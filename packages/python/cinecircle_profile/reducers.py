"""Pure reductions from raw preference rows to profile signals."""

import math
from collections import defaultdict
from typing import Any, Iterable, Mapping, Optional

from cinecircle_core.config import (
    CREW_MIN_MOVIES,
    DISLIKED_MIN_RATINGS,
    DISLIKED_SCORE_CEILING,
    ERA_MIN_RATINGS,
    INFLUENCE_MIN_SCORE,
    INTERNAL_CANDIDATE_LIMIT,
    INTERNAL_MIN_RATERS,
    PEER_LOVED_SCORE,
    PEER_MAX_AVG_DIFF,
    PEER_MIN_LOVERS,
    PEER_MIN_SHARED,
    COLLAB_PICK_LIMIT,
)
from cinecircle_core.types import certification_allowed
from cinecircle_ranking.types import Candidate

from .types import CrewAffinity, EraAffinity, GenreAffinity, InfluenceSignal

Row = Mapping[str, Any]


def _decade_of(release_date: Optional[str]) -> Optional[int]:
    if release_date and str(release_date)[:4].isdigit():
        return (int(str(release_date)[:4]) // 10) * 10
    return None


def genre_preferences(rows: Iterable[Row], member_count: int) -> tuple[GenreAffinity, ...]:
    """Rank genres by mean member rating.

    A genre qualifies only when at least half the selected members (min 1)
    have rated something in it.
    """
    scores: dict[int, list[float]] = defaultdict(list)
    raters: dict[int, set[str]] = defaultdict(set)
    for row in rows:
        for gid in row.get("genre_ids") or []:
            scores[gid].append(float(row["score"]))
            raters[gid].add(str(row["user_id"]))

    min_raters = max(1, member_count // 2)
    out = [
        GenreAffinity(
            genre_id=gid,
            avg_score=sum(vals) / len(vals),
            rater_count=len(raters[gid]),
            rating_count=len(vals),
        )
        for gid, vals in scores.items()
        if len(raters[gid]) >= min_raters
    ]
    out.sort(key=lambda g: (-g.avg_score, -g.rating_count, g.genre_id))
    return tuple(out)


def disliked_genres(rows: Iterable[Row]) -> frozenset[int]:
    """Genres rated below the dislike ceiling at least twice."""
    low_counts: dict[int, int] = defaultdict(int)
    for row in rows:
        if float(row["score"]) >= DISLIKED_SCORE_CEILING:
            continue
        for gid in row.get("genre_ids") or []:
            low_counts[gid] += 1
    return frozenset(g for g, n in low_counts.items() if n >= DISLIKED_MIN_RATINGS)


def era_preferences(rows: Iterable[Row]) -> tuple[EraAffinity, ...]:
    by_decade: dict[int, list[float]] = defaultdict(list)
    for row in rows:
        decade = _decade_of(row.get("release_date"))
        if decade is not None:
            by_decade[decade].append(float(row["score"]))
    out = [
        EraAffinity(decade=d, avg_score=sum(v) / len(v), rating_count=len(v))
        for d, v in by_decade.items()
        if len(v) >= ERA_MIN_RATINGS
    ]
    out.sort(key=lambda e: (-e.avg_score, -e.rating_count, e.decade))
    return tuple(out)


def crew_affinities(rows: Iterable[Row]) -> tuple[CrewAffinity, ...]:
    """Merge per-member crew affinities into group affinities, weighted by movie count."""
    totals: dict[tuple[int, str], list] = {}
    for row in rows:
        key = (int(row["person_id"]), str(row["role"]))
        count = int(row.get("movie_count") or 0)
        acc = totals.setdefault(key, [row.get("person_name") or "", 0.0, 0])
        acc[1] += float(row["avg_score"]) * count
        acc[2] += count
    out = [
        CrewAffinity(
            person_id=pid,
            name=name,
            role=role,
            avg_score=weighted / count,
            movie_count=count,
        )
        for (pid, role), (name, weighted, count) in totals.items()
        if count >= CREW_MIN_MOVIES
    ]
    out.sort(key=lambda c: (-c.avg_score, -c.movie_count, c.person_id))
    return tuple(out)


def seen_map(rows: Iterable[Row]) -> dict[int, frozenset[str]]:
    seen: dict[int, set[str]] = defaultdict(set)
    for row in rows:
        seen[int(row["tmdb_id"])].add(str(row["user_id"]))
    return {mid: frozenset(users) for mid, users in seen.items()}


def taste_similar_peers(rows: Iterable[Row], member_ids: Iterable[str]) -> frozenset[str]:
    members = set(member_ids)
    peers = set()
    for row in rows:
        peer = str(row["peer_id"])
        diff = row.get("avg_diff")
        if peer in members or diff is None:
            continue
        if int(row.get("shared_count") or 0) >= PEER_MIN_SHARED and float(diff) < PEER_MAX_AVG_DIFF:
            peers.add(peer)
    return frozenset(peers)


def collaborative_picks(
    rows: Iterable[Row], seen: Mapping[int, frozenset[str]]
) -> dict[int, float]:
    """Movies loved by at least two peers and unseen by the group -> mean peer score."""
    loved: dict[int, list[float]] = defaultdict(list)
    for row in rows:
        score = float(row["score"])
        if score >= PEER_LOVED_SCORE:
            loved[int(row["tmdb_id"])].append(score)
    picks = [
        (mid, sum(scores) / len(scores))
        for mid, scores in loved.items()
        if len(scores) >= PEER_MIN_LOVERS and mid not in seen
    ]
    picks.sort(key=lambda p: (-p[1], p[0]))
    return dict(picks[:COLLAB_PICK_LIMIT])


def influence_signals(rows: Iterable[Row]) -> dict[int, InfluenceSignal]:
    scores: dict[int, dict[str, float]] = defaultdict(dict)
    for row in rows:
        score = float(row["score"])
        if score >= INFLUENCE_MIN_SCORE:
            scores[int(row["tmdb_id"])][str(row["user_id"])] = score
    out = {
        mid: InfluenceSignal(avg_score=sum(by_user.values()) / len(by_user), rater_count=len(by_user))
        for mid, by_user in scores.items()
    }
    return dict(sorted(out.items(), key=lambda kv: (-kv[1].rater_count, -kv[1].avg_score, kv[0])))


def member_scores(rows: Iterable[Row]) -> dict[int, dict[str, float]]:
    out: dict[int, dict[str, float]] = defaultdict(dict)
    for row in rows:
        out[int(row["tmdb_id"])][str(row["user_id"])] = float(row["score"])
    return dict(out)


def rank_internal_candidates(
    rows: Iterable[Row],
    *,
    certification_floor: Optional[str] = None,
    certification_ceiling: Optional[str] = None,
    limit: int = INTERNAL_CANDIDATE_LIMIT,
) -> tuple[Candidate, ...]:
    """Internal catalog ranked by mean rating weighted by rater confidence."""
    ranked = []
    for row in rows:
        raters = int(row.get("rater_count") or 0)
        if raters < INTERNAL_MIN_RATERS or row.get("avg_score") is None:
            continue
        if not certification_allowed(
            row.get("certification"), certification_floor, certification_ceiling
        ):
            continue
        weight = float(row["avg_score"]) * math.log(raters + 1)
        ranked.append((weight, Candidate.from_internal_row(row)))
    ranked.sort(key=lambda p: (-p[0], p[1].id))
    return tuple(c for _, c in ranked[:limit])
