from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .types import CriticScores

# Weights of the critic composite, re-normalized over the sources present
IMDB_WEIGHT = 0.35
RT_WEIGHT = 0.35
METACRITIC_WEIGHT = 0.30


@dataclass(frozen=True)
class QualityScore:
    composite: float  # 0-100
    source: str  # "critics" | "catalog"


def vote_credibility(vote_average: float, popularity: float) -> float:
    """Deflate high catalog averages on obscure titles."""
    if vote_average < 7.0:
        return 1.0
    expected = 50.0 if vote_average >= 8.0 else 30.0 if vote_average >= 7.5 else 20.0
    return min(1.0, max(0.2, 0.2 + 0.8 * popularity / expected))


def composite_quality(
    critic: Optional[CriticScores], vote_average: float, popularity: float
) -> QualityScore:
    if critic is not None and not critic.empty:
        parts = []
        if critic.imdb is not None:
            parts.append((critic.imdb * 10, IMDB_WEIGHT))
        if critic.rotten_tomatoes is not None:
            parts.append((float(critic.rotten_tomatoes), RT_WEIGHT))
        if critic.metacritic is not None:
            parts.append((float(critic.metacritic), METACRITIC_WEIGHT))
        total_weight = sum(w for _, w in parts)
        return QualityScore(
            composite=sum(v * w for v, w in parts) / total_weight, source="critics"
        )
    return QualityScore(
        composite=vote_average * 10 * vote_credibility(vote_average, popularity),
        source="catalog",
    )


def quality_bonus(composite: float) -> int:
    if composite >= 85:
        return 15
    if composite >= 75:
        return 12
    if composite >= 65:
        return 8
    if composite >= 50:
        return 5
    return 0


def acclaimed_bonus(critic: Optional[CriticScores]) -> int:
    if critic is None:
        return 0
    bonus = 0
    if critic.rotten_tomatoes is not None and critic.rotten_tomatoes >= 85:
        bonus += 8
    if critic.metacritic is not None and critic.metacritic >= 75:
        bonus += 6
    if critic.imdb is not None and critic.imdb >= 7.5:
        bonus += 5
    return bonus
