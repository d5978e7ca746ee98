"""GroupFitScore: the deterministic multi-signal scoring function.

``score`` flattens a candidate, the group profile and the request context into
a ``SignalInputs`` value and evaluates it with ``compute``. Neither performs
I/O or touches shared state.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterable, Mapping, Optional, Sequence

from cinecircle_core import config as C
from cinecircle_core.types import Audience
from cinecircle_core.types import Genre as G

from .mood import mood_fit
from .quality import acclaimed_bonus, composite_quality, quality_bonus
from .types import (
    Candidate,
    CriticScores,
    InternalSignal,
    ScoreBreakdown,
    ScoreEntry,
    ScoredCandidate,
)

if TYPE_CHECKING:
    from cinecircle_profile.types import (
        CrewAffinity,
        GenreAffinity,
        GroupPreferenceProfile,
        InfluenceSignal,
    )


@dataclass(frozen=True)
class ScoringContext:
    """Request state the scorer reads besides the profile."""

    moods: tuple[str, ...] = ()
    shown_ids: frozenset[int] = frozenset()  # earlier batches of this shuffle session
    mood_prefer_genres: tuple[int, ...] = ()
    mood_soft_avoid_genres: tuple[int, ...] = ()


@dataclass(frozen=True)
class SignalInputs:
    movie_id: int
    genre_ids: frozenset[int]
    audience: Audience = Audience.ANYONE
    member_count: int = 1
    seen_by: int = 0
    preferred_genres: tuple["GenreAffinity", ...] = ()
    disliked_genres: frozenset[int] = frozenset()
    member_scores: tuple[float, ...] = ()
    shown_in_session: bool = False
    recently_recommended: bool = False
    moods: tuple[str, ...] = ()
    mood_scores: Optional[Mapping[str, float]] = None
    mood_prefer_genres: tuple[int, ...] = ()
    mood_soft_avoid_genres: tuple[int, ...] = ()
    critic: Optional[CriticScores] = None
    vote_average: float = 0.0
    vote_count: int = 0
    popularity: float = 0.0
    director_ids: tuple[int, ...] = ()
    actor_ids: tuple[int, ...] = ()
    director_affinities: tuple["CrewAffinity", ...] = ()
    actor_affinities: tuple["CrewAffinity", ...] = ()
    decade: Optional[int] = None
    top_decade: Optional[int] = None
    collaborative_score: Optional[float] = None
    influence: Optional["InfluenceSignal"] = None
    internal_signal: Optional[InternalSignal] = None

    @property
    def solo_mode(self) -> bool:
        return self.member_count == 1

    @classmethod
    def build(
        cls,
        candidate: Candidate,
        profile: "GroupPreferenceProfile",
        context: ScoringContext,
    ) -> "SignalInputs":
        member_ids = set(profile.member_ids)
        member_scores = tuple(
            score
            for user, score in sorted((candidate.member_scores or {}).items())
            if user in member_ids
        )
        credits = candidate.credits
        return cls(
            movie_id=candidate.id,
            genre_ids=frozenset(candidate.genre_ids),
            audience=profile.audience,
            member_count=profile.member_count,
            seen_by=profile.seen_by(candidate.id),
            preferred_genres=profile.preferred_genres,
            disliked_genres=profile.disliked_genres,
            member_scores=member_scores,
            shown_in_session=candidate.id in context.shown_ids,
            recently_recommended=candidate.id in profile.recent_history,
            moods=context.moods,
            mood_scores=candidate.mood_scores,
            mood_prefer_genres=context.mood_prefer_genres,
            mood_soft_avoid_genres=context.mood_soft_avoid_genres,
            critic=candidate.critic,
            vote_average=candidate.vote_average,
            vote_count=candidate.vote_count,
            popularity=candidate.popularity,
            director_ids=credits.director_ids if credits else (),
            actor_ids=credits.actor_ids if credits else (),
            director_affinities=profile.directors,
            actor_affinities=profile.actors,
            decade=candidate.decade,
            top_decade=profile.top_decade,
            collaborative_score=profile.collaborative.get(candidate.id),
            influence=profile.influence.get(candidate.id),
            internal_signal=candidate.internal_signal,
        )


@dataclass
class _Tally:
    total: int = C.BASE_SCORE
    entries: list[ScoreEntry] = field(default_factory=list)
    categories: set[str] = field(default_factory=set)

    def add(self, signal: str, delta: int, rationale: str, category: Optional[str] = None) -> None:
        if delta == 0:
            return
        self.total += delta
        self.entries.append(ScoreEntry(signal=signal, delta=delta, rationale=rationale))
        if category and delta > 0:
            self.categories.add(category)


def _genre_bonus(inputs: SignalInputs) -> tuple[int, int]:
    boost = 0.0
    matches = 0
    for rank, pref in enumerate(inputs.preferred_genres[: C.GENRE_TOP_N]):
        if pref.genre_id not in inputs.genre_ids:
            continue
        matches += 1
        confidence = min(1.0, pref.rater_count / 10)
        multiplier = C.GENRE_TOP_MULTIPLIER if rank < C.GENRE_TOP_TIER else C.GENRE_REST_MULTIPLIER
        boost += (pref.avg_score / 100) * multiplier * confidence
    return round(boost), matches


def _endorsement(avg: float) -> int:
    if avg >= 85:
        return 30
    if avg >= 70:
        return 20
    if avg >= 55:
        return 10
    if avg < 40:
        return -10
    return 0


def _availability(popularity: float, votes: int) -> int:
    bonus = 0
    if popularity > 100:
        bonus += 8
    elif popularity > 50:
        bonus += 5
    elif popularity > 20:
        bonus += 2
    if votes > 5000:
        bonus += 5
    elif votes > 2000:
        bonus += 3
    elif votes > 1000:
        bonus += 1
    return min(bonus, C.AVAILABILITY_CAP)


def _vote_confidence(votes: int) -> int:
    if votes <= 0:
        return 0
    return round(min(math.log10(votes) / 5, 1.0) * 5)


def _influence_bonus(avg: float, raters: int) -> int:
    bonus = round(avg / 100 * C.INFLUENCE_MAX_BONUS)
    if raters >= 3:
        bonus += 7
    elif raters >= 2:
        bonus += 4
    return min(bonus, C.INFLUENCE_MAX_BONUS)


def _internal_bonus(signal: InternalSignal) -> int:
    bonus = 8 if signal.avg_score >= 80 else 4 if signal.avg_score >= 65 else 0
    n = signal.rater_count
    bonus += 7 if n >= 5 else 5 if n >= 3 else 3 if n >= 2 else 0
    return min(bonus, C.INTERNAL_SIGNAL_MAX_BONUS)


def compute(inputs: SignalInputs) -> ScoreBreakdown:
    t = _Tally()
    genres = inputs.genre_ids
    who = "you" if inputs.solo_mode else "your group"
    whose = "your" if inputs.solo_mode else "your group's"

    # Genre
    if any(p.genre_id in genres for p in inputs.preferred_genres):
        t.add("genre_any_match", C.GENRE_ANY_MATCH_BONUS, f"Matches a genre {who} likes", "genre")
    boost, matches = _genre_bonus(inputs)
    t.add("genre_match", boost, f"Matches {matches} of {whose} favorite genres", "genre")
    disliked = len(genres & inputs.disliked_genres)
    t.add(
        "disliked_genre",
        -C.DISLIKED_GENRE_PENALTY * disliked,
        f"Contains {disliked} genre(s) {who} rated low before",
    )

    # Seen / endorsement
    if inputs.seen_by > 0 and inputs.member_count > 0:
        base = C.SEEN_PENALTY_SOLO if inputs.solo_mode else C.SEEN_PENALTY_GROUP
        fraction = min(1.0, inputs.seen_by / inputs.member_count)
        t.add(
            "seen",
            -round(base * fraction),
            f"Seen by {inputs.seen_by} of {inputs.member_count}",
        )
    if (
        not inputs.solo_mode
        and 0 < inputs.seen_by < inputs.member_count
        and inputs.member_scores
    ):
        avg = sum(inputs.member_scores) / len(inputs.member_scores)
        t.add("endorsement", _endorsement(avg), f"Members who saw it rated it {avg:.0f}", "social")

    # Session / history
    if inputs.shown_in_session:
        t.add("session_shown", -C.SESSION_SHOWN_PENALTY, "Already shown this session")
    elif inputs.recently_recommended:
        t.add("recent_history", -C.HISTORY_REPEAT_PENALTY, "Recommended in the last 30 days")

    # Mood
    fit = None
    if inputs.moods and inputs.mood_scores:
        result = mood_fit(inputs.mood_scores, inputs.moods)
        fit = result.score
        t.add(
            "mood",
            round(fit * C.MOOD_BONUS_SCALE),
            f"Fits the {' + '.join(inputs.moods)} mood ({fit:.2f})",
            "mood",
        )
        if not result.passes_threshold:
            t.add("mood_threshold", -C.MOOD_THRESHOLD_PENALTY, "Misses one of the selected moods")
    elif inputs.moods:
        prefer = len(genres & set(inputs.mood_prefer_genres))
        t.add("mood_genre", C.LEGACY_MOOD_PREFER_BONUS * prefer, "Genre fits the mood", "mood")
        soft = len(genres & set(inputs.mood_soft_avoid_genres))
        t.add(
            "mood_soft_avoid",
            -C.LEGACY_MOOD_SOFT_AVOID_PENALTY * soft,
            "Tone may not match the mood",
        )

    # Quality
    quality = composite_quality(inputs.critic, inputs.vote_average, inputs.popularity)
    t.add(
        "quality",
        quality_bonus(quality.composite),
        f"Quality {quality.composite:.0f} from {quality.source}",
        "quality",
    )
    if "acclaimed" in inputs.moods:
        t.add("acclaimed", acclaimed_bonus(inputs.critic), "Critically acclaimed", "quality")

    # Audience
    if inputs.audience == Audience.ADULTS and genres & {G.FAMILY, G.ANIMATION}:
        t.add("audience", -C.ADULT_FAMILY_PENALTY, "Family/animation title for an adult audience")
    elif inputs.audience == Audience.TEENS and {G.FAMILY, G.ANIMATION} <= genres:
        t.add("audience", -C.TEEN_KIDS_ANIMATION_PENALTY, "Kids animation for a teen audience")

    # Availability
    t.add(
        "availability",
        _availability(inputs.popularity, inputs.vote_count),
        "Widely seen and easy to find",
        "availability",
    )
    t.add("vote_confidence", _vote_confidence(inputs.vote_count), f"{inputs.vote_count} votes")

    # Crew
    directors = set(inputs.director_ids)
    for aff in inputs.director_affinities:
        if aff.person_id in directors:
            t.add(
                "director",
                round(aff.avg_score / 100 * C.DIRECTOR_MAX_BONUS),
                f"Directed by {aff.name}",
                "crew",
            )
            break
    actors = set(inputs.actor_ids)
    actor_total = 0
    matched = []
    for aff in inputs.actor_affinities:
        if len(matched) >= C.ACTOR_MAX_MATCHES:
            break
        if aff.person_id in actors:
            matched.append(aff.name)
            actor_total += round(aff.avg_score / 100 * C.ACTOR_MATCH_BONUS)
    t.add("actors", min(actor_total, C.ACTOR_MAX_BONUS), f"Stars {', '.join(matched)}", "crew")

    # Era
    if inputs.decade is not None and inputs.decade == inputs.top_decade:
        t.add("era", C.ERA_BONUS, f"From {whose} favorite decade, the {inputs.decade}s", "crew")

    # Social
    if inputs.collaborative_score is not None:
        t.add(
            "collaborative",
            min(C.COLLAB_MAX_BONUS, round(inputs.collaborative_score / 100 * C.COLLAB_MAX_BONUS)),
            "Loved by people with similar taste",
            "social",
        )
    if inputs.influence is not None:
        t.add(
            "collective_influence",
            _influence_bonus(inputs.influence.avg_score, inputs.influence.rater_count),
            f"Rated highly by {inputs.influence.rater_count} friend(s)",
            "social",
        )
    if inputs.internal_signal is not None:
        t.add(
            "internal_signal",
            _internal_bonus(inputs.internal_signal),
            f"Rated {inputs.internal_signal.avg_score:.0f} by {inputs.internal_signal.rater_count} members",
            "social",
        )

    # Mood dampening
    if fit is not None and fit < C.MOOD_DAMPEN_BELOW and t.total > C.BASE_SCORE:
        factor = 0.5 + fit
        dampened = C.BASE_SCORE + round((t.total - C.BASE_SCORE) * factor)
        t.add("mood_dampening", dampened - t.total, f"Weak mood fit scales bonuses by {factor:.2f}")

    if len(t.categories) >= C.WELL_ROUNDED_MIN_CATEGORIES:
        t.add("well_rounded", C.WELL_ROUNDED_BONUS, "Strong on several fronts")

    clamped = max(0, min(100, t.total))
    t.add("clamp", clamped - t.total, "Clamped to 0-100")
    return ScoreBreakdown(
        movie_id=inputs.movie_id,
        entries=tuple(t.entries),
        total=clamped,
        categories=frozenset(t.categories),
    )


def score(
    candidate: Candidate,
    profile: "GroupPreferenceProfile",
    context: ScoringContext,
) -> ScoreBreakdown:
    return compute(SignalInputs.build(candidate, profile, context))


def score_pool(
    candidates: Iterable[Candidate],
    profile: "GroupPreferenceProfile",
    context: ScoringContext,
) -> list[ScoredCandidate]:
    """Score every candidate and sort non-ascending by score (stable)."""
    scored = [ScoredCandidate(c, score(c, profile, context)) for c in candidates]
    scored.sort(key=lambda s: -s.score)
    return scored


def rescore(
    scored: Sequence[ScoredCandidate],
    profile: "GroupPreferenceProfile",
    context: ScoringContext,
) -> list[ScoredCandidate]:
    return score_pool((s.candidate for s in scored), profile, context)
