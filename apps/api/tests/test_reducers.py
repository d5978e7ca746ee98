from cinecircle_profile import reducers


def test_disliked_genre_needs_two_low_ratings():
    rows = [
        {"score": 30, "genre_ids": [27, 53]},
        {"score": 35, "genre_ids": [27]},
        {"score": 20, "genre_ids": [99]},
        {"score": 80, "genre_ids": [99]},
    ]
    assert reducers.disliked_genres(rows) == frozenset({27})


def test_genre_preferences_require_half_the_members():
    rows = [
        {"user_id": "u1", "score": 90, "genre_ids": [35]},
        {"user_id": "u2", "score": 70, "genre_ids": [35, 18]},
        {"user_id": "u3", "score": 95, "genre_ids": [27]},
    ]
    prefs = reducers.genre_preferences(rows, member_count=4)
    assert [g.genre_id for g in prefs] == [35]
    assert prefs[0].avg_score == 80
    assert prefs[0].rater_count == 2


def test_era_preferences_need_five_ratings():
    rows = [{"score": 80, "release_date": f"199{i}-01-01"} for i in range(5)]
    rows += [{"score": 95, "release_date": "2001-01-01"}] * 4
    eras = reducers.era_preferences(rows)
    assert [e.decade for e in eras] == [1990]


def test_crew_affinities_weighted_by_movie_count():
    rows = [
        {"person_id": 7, "person_name": "Ava", "role": "director", "avg_score": 90, "movie_count": 3},
        {"person_id": 7, "person_name": "Ava", "role": "director", "avg_score": 60, "movie_count": 1},
        {"person_id": 8, "person_name": "Ben", "role": "actor", "avg_score": 99, "movie_count": 1},
    ]
    crew = reducers.crew_affinities(rows)
    assert len(crew) == 1
    assert crew[0].avg_score == 82.5
    assert crew[0].movie_count == 4


def test_taste_similar_peers_exclude_members_and_distant_taste():
    rows = [
        {"peer_id": "p1", "shared_count": 8, "avg_diff": 10},
        {"peer_id": "p2", "shared_count": 3, "avg_diff": 5},
        {"peer_id": "p3", "shared_count": 9, "avg_diff": 25},
        {"peer_id": "u1", "shared_count": 40, "avg_diff": 0},
    ]
    assert reducers.taste_similar_peers(rows, ["u1", "u2"]) == frozenset({"p1"})


def test_collaborative_picks_need_two_lovers_and_unseen():
    rows = [
        {"tmdb_id": 1, "score": 80},
        {"tmdb_id": 1, "score": 90},
        {"tmdb_id": 2, "score": 95},
        {"tmdb_id": 3, "score": 85},
        {"tmdb_id": 3, "score": 75},
        {"tmdb_id": 4, "score": 60},
        {"tmdb_id": 4, "score": 65},
    ]
    picks = reducers.collaborative_picks(rows, seen={3: frozenset({"u1"})})
    assert picks == {1: 85.0}


def test_influence_signals_aggregate_per_friend():
    rows = [
        {"user_id": "f1", "tmdb_id": 5, "score": 90},
        {"user_id": "f2", "tmdb_id": 5, "score": 70},
        {"user_id": "f1", "tmdb_id": 6, "score": 65},
    ]
    signals = reducers.influence_signals(rows)
    assert list(signals) == [5]
    assert signals[5].avg_score == 80
    assert signals[5].rater_count == 2


def test_internal_candidates_rank_by_confidence_weighted_rating():
    rows = [
        {"tmdb_id": 1, "title": "One", "avg_score": 90, "rater_count": 2},
        {"tmdb_id": 2, "title": "Two", "avg_score": 80, "rater_count": 10},
        {"tmdb_id": 3, "title": "Three", "avg_score": 99, "rater_count": 1},
        {"tmdb_id": 4, "title": "Four", "avg_score": 85, "rater_count": 6, "certification": "R"},
    ]
    ranked = reducers.rank_internal_candidates(rows, certification_ceiling="PG-13")
    assert [c.id for c in ranked] == [2, 1]
    assert all(c.source == "internal" and c.in_internal_catalog for c in ranked)
    assert ranked[0].internal_signal.rater_count == 10
