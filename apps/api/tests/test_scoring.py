from cinecircle_core.types import Audience, Genre
from cinecircle_profile.types import CrewAffinity, InfluenceSignal
from cinecircle_ranking.mood import mood_fit
from cinecircle_ranking.scoring import ScoringContext, score, score_pool
from cinecircle_ranking.types import CrewCredits, CriticScores

from conftest import genre, make_candidate, make_profile

CTX = ScoringContext()


def test_baseline_score_is_base_plus_quality_and_availability():
    bd = score(make_candidate(1), make_profile(), CTX)
    # 55 base + 8 quality (72 catalog composite) + 5 availability + 3 vote confidence
    assert bd.total == 71
    assert bd.delta_for("quality") == 8
    assert bd.delta_for("availability") == 5
    assert bd.delta_for("vote_confidence") == 3
    assert "well_rounded" not in {e.signal for e in bd.entries}


def test_score_is_deterministic():
    c = make_candidate(2, genre_ids=(Genre.COMEDY, Genre.ACTION), mood_scores={"funny": 0.7})
    profile = make_profile(preferred_genres=(genre(Genre.COMEDY),))
    ctx = ScoringContext(moods=("funny",))
    assert score(c, profile, ctx) == score(c, profile, ctx)


def test_score_always_within_bounds():
    hated = make_candidate(3, genre_ids=(27, 53, 80, 9648, 10752), vote_average=2.0, popularity=0.5, vote_count=60)
    profile = make_profile(disliked_genres=frozenset({27, 53, 80, 9648, 10752}), seen={3: frozenset({"u1"})})
    bd = score(hated, profile, ScoringContext(shown_ids=frozenset({3})))
    assert bd.total == 0
    assert bd.delta_for("clamp") > 0


def test_genre_multiplier_depends_on_rank():
    profile = make_profile(
        preferred_genres=(genre(28), genre(35), genre(18), genre(27)),
    )
    top = score(make_candidate(4, genre_ids=(28,)), profile, CTX)
    fourth = score(make_candidate(5, genre_ids=(27,)), profile, CTX)
    assert top.delta_for("genre_match") == 14  # 0.8 * 18
    assert fourth.delta_for("genre_match") == 12  # 0.8 * 15
    assert top.delta_for("genre_any_match") == 3


def test_genre_confidence_scales_with_raters():
    profile = make_profile(preferred_genres=(genre(28, avg=80, raters=5),))
    bd = score(make_candidate(6, genre_ids=(28,)), profile, CTX)
    assert bd.delta_for("genre_match") == 7  # 0.8 * 18 * 0.5


def test_disliked_genres_penalized_per_genre():
    profile = make_profile(disliked_genres=frozenset({27, 53}))
    bd = score(make_candidate(7, genre_ids=(27, 53, 18)), profile, CTX)
    assert bd.delta_for("disliked_genre") == -30


def test_seen_penalty_is_proportional_in_group_mode():
    profile = make_profile(member_ids=("u1", "u2"), seen={8: frozenset({"u1"})})
    bd = score(make_candidate(8), profile, CTX)
    assert bd.delta_for("seen") == -8


def test_seen_penalty_is_larger_in_solo_mode():
    profile = make_profile(member_ids=("u1",), seen={9: frozenset({"u1"})})
    bd = score(make_candidate(9), profile, CTX)
    assert bd.delta_for("seen") == -30
    assert bd.delta_for("endorsement") == 0


def test_endorsement_from_members_who_saw_it():
    profile = make_profile(member_ids=("u1", "u2", "u3"), seen={10: frozenset({"u1"})})
    c = make_candidate(10, member_scores={"u1": 90.0})
    bd = score(c, profile, CTX)
    assert bd.delta_for("endorsement") == 30
    assert "social" in bd.categories


def test_session_penalty_replaces_history_penalty():
    profile = make_profile(recent_history=frozenset({11}))
    shown = score(make_candidate(11), profile, ScoringContext(shown_ids=frozenset({11})))
    assert shown.delta_for("session_shown") == -25
    assert shown.delta_for("recent_history") == 0
    recent = score(make_candidate(11), profile, CTX)
    assert recent.delta_for("recent_history") == -15


def test_mood_bonus_from_geometric_mean():
    c = make_candidate(12, mood_scores={"funny": 0.9})
    bd = score(c, make_profile(), ScoringContext(moods=("funny",)))
    assert bd.delta_for("mood") == 36
    assert bd.delta_for("mood_dampening") == 0


def test_multi_mood_fit_requires_every_mood():
    fit = mood_fit({"funny": 0.9, "scary": 0.1}, ["funny", "scary"])
    assert round(fit.score, 2) == 0.3
    assert fit.passes_threshold is False
    balanced = mood_fit({"funny": 0.5, "scary": 0.5}, ["funny", "scary"])
    assert balanced.score > fit.score
    assert balanced.passes_threshold is True


def test_weak_mood_fit_dampens_bonuses_and_misses_threshold():
    c = make_candidate(13, mood_scores={"funny": 0.9, "scary": 0.1})
    bd = score(c, make_profile(), ScoringContext(moods=("funny", "scary")))
    assert bd.delta_for("mood_threshold") == -20
    assert bd.delta_for("mood_dampening") < 0


def test_legacy_mood_genre_fallback_without_mood_vector():
    ctx = ScoringContext(
        moods=("funny",),
        mood_prefer_genres=(Genre.COMEDY, Genre.ANIMATION),
        mood_soft_avoid_genres=(Genre.HORROR,),
    )
    bd = score(make_candidate(14, genre_ids=(Genre.COMEDY, Genre.HORROR)), make_profile(), ctx)
    assert bd.delta_for("mood_genre") == 5
    assert bd.delta_for("mood_soft_avoid") == -6
    assert bd.delta_for("mood") == 0


def test_critic_scores_replace_catalog_quality():
    critic = CriticScores(imdb=8.5, rotten_tomatoes=95, metacritic=88)
    bd = score(make_candidate(15, critic=critic), make_profile(), CTX)
    assert bd.delta_for("quality") == 15


def test_low_popularity_deflates_catalog_quality():
    obscure = score(make_candidate(16, vote_average=8.6, popularity=1.0, vote_count=80), make_profile(), CTX)
    assert obscure.delta_for("quality") == 0


def test_acclaimed_bonus_only_with_acclaimed_mood():
    critic = CriticScores(imdb=8.0, rotten_tomatoes=90, metacritic=80)
    c = make_candidate(17, critic=critic, mood_scores={"acclaimed": 0.9})
    with_mood = score(c, make_profile(), ScoringContext(moods=("acclaimed",)))
    assert with_mood.delta_for("acclaimed") == 19
    assert score(c, make_profile(), CTX).delta_for("acclaimed") == 0


def test_audience_penalties():
    adults = make_profile(audience=Audience.ADULTS)
    teens = make_profile(audience=Audience.TEENS)
    family = make_candidate(18, genre_ids=(Genre.FAMILY, Genre.ADVENTURE))
    kids = make_candidate(19, genre_ids=(Genre.FAMILY, Genre.ANIMATION))
    assert score(family, adults, CTX).delta_for("audience") == -15
    assert score(family, teens, CTX).delta_for("audience") == 0
    assert score(kids, teens, CTX).delta_for("audience") == -8


def test_director_counts_first_match_only():
    profile = make_profile(
        crew_affinities=(
            CrewAffinity(1, "Ava", "director", 90.0, 4),
            CrewAffinity(2, "Ben", "director", 60.0, 3),
        )
    )
    c = make_candidate(20, credits=CrewCredits(director_ids=(1, 2)))
    bd = score(c, profile, CTX)
    assert bd.delta_for("director") == 11
    assert "crew" in bd.categories


def test_actor_bonus_caps_at_two_matches():
    profile = make_profile(
        crew_affinities=tuple(CrewAffinity(i, f"Actor {i}", "actor", 100.0, 5) for i in (1, 2, 3))
    )
    c = make_candidate(21, credits=CrewCredits(actor_ids=(1, 2, 3)))
    assert score(c, profile, CTX).delta_for("actors") == 12


def test_era_bonus_for_top_decade():
    from cinecircle_profile.types import EraAffinity

    profile = make_profile(era_affinities=(EraAffinity(2010, 82.0, 12),))
    assert score(make_candidate(22), profile, CTX).delta_for("era") == 5
    old = make_candidate(23, release_date="1984-01-01")
    assert score(old, profile, CTX).delta_for("era") == 0


def test_social_signals():
    profile = make_profile(
        collaborative={24: 90.0},
        influence={24: InfluenceSignal(avg_score=80.0, rater_count=3)},
    )
    bd = score(make_candidate(24), profile, CTX)
    assert bd.delta_for("collaborative") == 18
    assert bd.delta_for("collective_influence") == 30  # 24 + 7, capped


def test_well_rounded_bonus_with_three_categories():
    profile = make_profile(preferred_genres=(genre(18),))
    bd = score(make_candidate(25), profile, CTX)
    assert {"genre", "quality", "availability"} <= bd.categories
    assert bd.delta_for("well_rounded") == 5


def test_breakdown_sums_to_total():
    profile = make_profile(
        preferred_genres=(genre(18),),
        seen={26: frozenset({"u2"})},
        collaborative={26: 80.0},
    )
    bd = score(make_candidate(26, member_scores={"u2": 72.0}), profile, CTX)
    assert 55 + sum(e.delta for e in bd.entries) == bd.total


def test_score_pool_sorts_descending_and_is_stable():
    a = make_candidate(30)
    b = make_candidate(31)
    better = make_candidate(32)
    profile = make_profile(collaborative={32: 90.0})
    ranked = score_pool([a, b, better], profile, CTX)
    assert [s.id for s in ranked] == [32, 30, 31]
