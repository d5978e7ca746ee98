"""Mood affinity: per-movie scores, multi-mood fit and the post-scoring gate."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Iterable, Mapping, Optional, Protocol, Sequence

from cinecircle_core.config import (
    MOOD_GATE_MIN_SURVIVORS,
    MOOD_GATE_TARGET,
    MOOD_GATE_THRESHOLDS,
    MOOD_THRESHOLD,
)
from cinecircle_core.types import Genre as G

from .types import Candidate, MoodSource, ScoredCandidate

_BASE = 0.3


def _clamp(value: float) -> float:
    return round(min(1.0, max(0.0, value)), 2)


def _mentions(overview: str, pattern: str) -> bool:
    return re.search(pattern, overview, re.IGNORECASE) is not None


def _fun(c: Candidate, g: set[int]) -> float:
    s = _BASE
    s += 0.3 if G.COMEDY in g else 0
    s += 0.15 if G.ANIMATION in g else 0
    s += 0.1 if G.FAMILY in g else 0
    s += 0.1 if G.ADVENTURE in g else 0
    s -= 0.2 if G.HORROR in g else 0
    s -= 0.2 if G.WAR in g else 0
    s -= 0.15 if G.DRAMA in g and G.COMEDY not in g else 0
    s -= 0.1 if G.THRILLER in g else 0
    s += 0.05 if _mentions(c.overview, r"hilarious|laugh|comedy") else 0
    return s


def _funny(c: Candidate, g: set[int]) -> float:
    s = _BASE
    s += 0.35 if G.COMEDY in g else 0
    s += 0.1 if G.ANIMATION in g else 0
    s -= 0.2 if G.HORROR in g else 0
    s -= 0.2 if G.WAR in g else 0
    s -= 0.15 if G.DRAMA in g and G.COMEDY not in g else 0
    s -= 0.1 if G.THRILLER in g else 0
    s += 0.05 if _mentions(c.overview, r"hilarious|laugh|comedy|funny") else 0
    return s


def _intense(c: Candidate, g: set[int]) -> float:
    s = _BASE
    s += 0.2 if G.ACTION in g else 0
    s += 0.25 if G.THRILLER in g else 0
    s += 0.15 if G.CRIME in g else 0
    s += 0.2 if G.HORROR in g else 0
    s += 0.15 if G.WAR in g else 0
    s -= 0.15 if G.COMEDY in g and G.ACTION not in g else 0
    s -= 0.2 if G.FAMILY in g else 0
    s -= 0.1 if G.ANIMATION in g else 0
    s -= 0.1 if G.ROMANCE in g and G.THRILLER not in g else 0
    return s


def _emotional(c: Candidate, g: set[int]) -> float:
    s = _BASE
    s += 0.25 if G.DRAMA in g else 0
    s += 0.2 if G.ROMANCE in g else 0
    s += 0.1 if G.WAR in g else 0
    s -= 0.15 if G.COMEDY in g and G.ANIMATION in g else 0
    s -= 0.1 if G.ACTION in g and G.DRAMA not in g else 0
    s += 0.05 if _mentions(c.overview, r"grief|loss|heart|family") else 0
    return s


def _mindless(c: Candidate, g: set[int]) -> float:
    s = _BASE
    s += 0.2 if G.ACTION in g else 0
    s += 0.15 if G.COMEDY in g else 0
    s += 0.15 if G.ADVENTURE in g else 0
    s -= 0.15 if G.DRAMA in g and G.ACTION not in g else 0
    s -= 0.25 if G.DOCUMENTARY in g else 0
    s -= 0.15 if G.HISTORY in g else 0
    if c.runtime:
        s += 0.05 if c.runtime <= 100 else 0
        s -= 0.1 if c.runtime > 150 else 0
    return s


def _acclaimed(c: Candidate, g: set[int]) -> float:
    s = _BASE
    if c.vote_average >= 8:
        s += 0.25
    elif c.vote_average >= 7:
        s += 0.1
    critic = c.critic
    if critic is not None:
        if critic.imdb is not None and critic.imdb >= 8:
            s += 0.15
        rt = critic.rotten_tomatoes
        if rt is not None:
            s += 0.15 if rt >= 90 else 0.05 if rt >= 75 else 0
            s -= 0.15 if 0 < rt < 50 else 0
        if critic.metacritic is not None and critic.metacritic >= 80:
            s += 0.1
    s -= 0.2 if c.vote_average < 6 else 0
    return s


def _scary(c: Candidate, g: set[int]) -> float:
    s = _BASE
    s += 0.35 if G.HORROR in g else 0
    s += 0.15 if G.THRILLER in g else 0
    s += 0.1 if G.MYSTERY in g else 0
    s -= 0.25 if G.FAMILY in g else 0
    s -= 0.15 if G.ANIMATION in g else 0
    s -= 0.15 if G.COMEDY in g and G.HORROR not in g else 0
    s -= 0.1 if G.ROMANCE in g else 0
    s += 0.05 if _mentions(c.overview, r"terrif|haunt|killer|nightmare") else 0
    return s


_HEURISTICS = {
    "fun": _fun,
    "funny": _funny,
    "intense": _intense,
    "emotional": _emotional,
    "mindless": _mindless,
    "acclaimed": _acclaimed,
    "scary": _scary,
}


def heuristic_mood_score(candidate: Candidate, mood: str) -> float:
    """Rule-based affinity in [0, 1] from genres, overview and ratings."""
    return _clamp(_HEURISTICS[mood](candidate, set(candidate.genre_ids)))


class MoodAffinity(Protocol):
    source: MoodSource

    def scores(self, moods: Iterable[str]) -> dict[str, float]: ...


@dataclass(frozen=True)
class CachedMoodAffinity:
    cached: Mapping[str, float]
    candidate: Candidate
    source: MoodSource = "cached"

    def scores(self, moods: Iterable[str]) -> dict[str, float]:
        # Older cache entries lack some mood keys
        return {
            m: float(self.cached[m]) if m in self.cached else heuristic_mood_score(self.candidate, m)
            for m in moods
        }


@dataclass(frozen=True)
class HeuristicMoodAffinity:
    candidate: Candidate
    source: MoodSource = "heuristic"

    def scores(self, moods: Iterable[str]) -> dict[str, float]:
        return {m: heuristic_mood_score(self.candidate, m) for m in moods}


def mood_affinity_for(
    candidate: Candidate, cached: Optional[Mapping[str, float]]
) -> MoodAffinity:
    if cached:
        return CachedMoodAffinity(cached=cached, candidate=candidate)
    return HeuristicMoodAffinity(candidate=candidate)


@dataclass(frozen=True)
class MoodFit:
    score: float  # geometric mean over selected moods
    passes_threshold: bool


def mood_fit(scores: Mapping[str, float], moods: Sequence[str]) -> MoodFit:
    """Geometric mean, so a candidate must do well on every selected mood."""
    values = [max(0.0, float(scores.get(m, 0.0))) for m in moods]
    if not values:
        return MoodFit(score=0.0, passes_threshold=True)
    if any(v == 0 for v in values):
        geo = 0.0
    else:
        geo = math.exp(sum(math.log(v) for v in values) / len(values))
    return MoodFit(score=geo, passes_threshold=all(v >= MOOD_THRESHOLD for v in values))


def _clears(candidate: Candidate, moods: Sequence[str], threshold: float) -> bool:
    # Only cached mood vectors are gated; heuristic or missing scores pass
    scores = candidate.mood_scores
    if candidate.mood_source != "cached" or not scores:
        return True
    return all(scores[m] >= threshold for m in moods if m in scores)


@dataclass(frozen=True)
class GateResult:
    pool: tuple[ScoredCandidate, ...]
    threshold: Optional[float]  # None when gating was skipped or abandoned
    attempts: tuple[tuple[float, int], ...] = ()  # (threshold, survivors)


def mood_gate(
    pool: Sequence[ScoredCandidate],
    moods: Sequence[str],
    *,
    thresholds: Sequence[float] = MOOD_GATE_THRESHOLDS,
    target: int = MOOD_GATE_TARGET,
    min_survivors: int = MOOD_GATE_MIN_SURVIVORS,
    keep: int = MOOD_GATE_TARGET,
) -> GateResult:
    """Progressively relax the per-mood threshold until enough candidates survive.

    ``pool`` is expected sorted by score; order is preserved and the result is
    trimmed to ``keep``.
    """
    if not moods:
        return GateResult(pool=tuple(pool[:keep]), threshold=None)

    attempts = []
    survivors: list[ScoredCandidate] = []
    used: Optional[float] = None
    for threshold in thresholds:
        survivors = [s for s in pool if _clears(s.candidate, moods, threshold)]
        attempts.append((threshold, len(survivors)))
        used = threshold
        if len(survivors) >= target:
            break
    else:
        if len(survivors) < min_survivors:
            survivors, used = list(pool), None
    return GateResult(pool=tuple(survivors[:keep]), threshold=used, attempts=tuple(attempts))
