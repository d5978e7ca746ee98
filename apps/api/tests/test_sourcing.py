import pytest

from cinecircle_core.types import Audience, PickConstraints
from cinecircle_profile.profile_repo import SupabaseCollectiveRepo
from cinecircle_profile.profile_service import INTERNAL_CANDIDATES, ProfileAggregator
from cinecircle_sourcing.candidate_sourcer import CandidateSourcer

from conftest import FakeSupabaseClient, FakeTMDBClient, make_profile, tmdb_movie


def _rating(user_id, tmdb_id, score, genre_ids=(18,), release_date="2012-01-01"):
    return {
        "user_id": user_id,
        "tmdb_id": tmdb_id,
        "score": score,
        "genre_ids": list(genre_ids),
        "release_date": release_date,
    }


def _catalog_row(tmdb_id, avg, raters, **extra):
    row = dict(tmdb_movie(tmdb_id))
    row.pop("id")
    row.update(tmdb_id=tmdb_id, avg_score=avg, rater_count=raters, **extra)
    return row


@pytest.mark.anyio
async def test_aggregate_builds_profile_from_all_queries():
    client = FakeSupabaseClient(
        tables={
            "member_rating_details": [
                _rating("u1", 1, 90, (35,)),
                _rating("u2", 2, 80, (35, 18)),
                _rating("u1", 3, 20, (27,)),
                _rating("u2", 4, 30, (27,)),
            ],
            "dismissed_movies": [{"user_id": "u1", "tmdb_id": 99}],
            "member_crew_affinities": [
                {"user_id": "u1", "person_id": 5, "person_name": "Ava", "role": "director",
                 "avg_score": 88, "movie_count": 3},
            ],
            "recommendation_history": [
                {"user_id": "u2", "tmdb_id": 77, "recommended_at": "2999-01-01T00:00:00+00:00"},
            ],
            "movie_catalog_stats": [_catalog_row(10, 85, 4), _catalog_row(11, 70, 1)],
        },
        rpcs={"taste_similar_peers": [{"peer_id": "p1", "shared_count": 9, "avg_diff": 12}]},
    )
    profile = await ProfileAggregator(SupabaseCollectiveRepo(client)).aggregate(
        ["u1", "u2"], PickConstraints(audience=Audience.TEENS), "c1"
    )
    assert profile.degraded == frozenset()
    assert profile.preferred_genres[0].genre_id == 35
    assert profile.disliked_genres == frozenset({27})
    assert profile.seen_by(1) == 1
    assert profile.dismissed == frozenset({99})
    assert profile.directors[0].name == "Ava"
    assert profile.peer_ids == frozenset({"p1"})
    assert profile.recent_history == frozenset({77})
    assert [c.id for c in profile.internal_candidates] == [10]
    assert profile.collective_id == "c1"


@pytest.mark.anyio
async def test_failed_query_degrades_to_empty_signal():
    client = FakeSupabaseClient(
        tables={"member_rating_details": [_rating("u1", 1, 90)]},
        failing={"movie_catalog_stats", "taste_similar_peers"},
    )
    profile = await ProfileAggregator(SupabaseCollectiveRepo(client)).aggregate(
        ["u1"], PickConstraints()
    )
    assert profile.degraded == frozenset({INTERNAL_CANDIDATES, "peers"})
    assert profile.internal_candidates == ()
    assert profile.seen_by(1) == 1


@pytest.mark.anyio
async def test_healthy_pool_skips_emergency_fallback():
    tmdb = FakeTMDBClient([tmdb_movie(i) for i in range(1, 41)])
    sourcer = CandidateSourcer(tmdb, SupabaseCollectiveRepo(FakeSupabaseClient()))
    result = await sourcer.source(make_profile(), PickConstraints())
    assert len(result.pool) == 40
    assert result.emergency_used is False
    assert not result.all_external_failed


@pytest.mark.anyio
async def test_emergency_fallback_runs_exactly_once():
    tmdb = FakeTMDBClient([tmdb_movie(i) for i in range(1, 4)])
    sourcer = CandidateSourcer(tmdb, SupabaseCollectiveRepo(FakeSupabaseClient()))
    result = await sourcer.source(make_profile(), PickConstraints())
    assert result.emergency_used is True
    emergency = [c for c in tmdb.discover_calls if c.get("vote_count_gte") == 100]
    assert len(emergency) == 5
    # three primary pages, the wildcard and five emergency pages
    assert len(tmdb.discover_calls) == 9
    assert len(result.pool) == 3


@pytest.mark.anyio
async def test_all_external_failures_are_reported():
    tmdb = FakeTMDBClient(fail=True)
    profile = make_profile()
    sourcer = CandidateSourcer(tmdb, SupabaseCollectiveRepo(FakeSupabaseClient()))
    result = await sourcer.source(profile, PickConstraints())
    assert result.all_external_failed
    assert result.pool == ()


@pytest.mark.anyio
async def test_social_signals_inject_missing_movies():
    client = FakeSupabaseClient(
        tables={
            "member_rating_details": [
                _rating("p1", 500, 90),
                _rating("p2", 500, 80),
                _rating("f1", 600, 85),
            ],
            "collective_members": [
                {"collective_id": "c1", "user_id": "u1"},
                {"collective_id": "c1", "user_id": "u2"},
                {"collective_id": "c1", "user_id": "f1"},
            ],
        }
    )
    tmdb = FakeTMDBClient(
        [tmdb_movie(i) for i in range(1, 21)],
        details={500: tmdb_movie(500), 600: tmdb_movie(600)},
    )
    profile = make_profile(collective_id="c1", peer_ids=frozenset({"p1", "p2"}))
    result = await CandidateSourcer(tmdb, SupabaseCollectiveRepo(client)).source(
        profile, PickConstraints()
    )
    assert result.profile.collaborative == {500: 85.0}
    assert result.profile.influence[600].rater_count == 1
    assert tmdb.detail_calls == [500, 600]
    assert {500, 600} <= {c.id for c in result.pool}
