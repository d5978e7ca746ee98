from __future__ import annotations

from typing import Any, Mapping, Optional

from cinecircle_core.types import AdvisoryCategory, Severity
from cinecircle_ranking.types import CrewCredits, CriticScores

from .json_cache import RedisJsonCache


class CriticScoreCache(RedisJsonCache[CriticScores]):
    """movie id -> IMDb / Rotten Tomatoes / Metacritic."""

    namespace = "cinecircle:critic:"

    def _serialize(self, value: CriticScores) -> Any:
        return value.to_dict()

    def _deserialize(self, data: Any) -> Optional[CriticScores]:
        scores = CriticScores.from_dict(data)
        return None if scores.empty else scores


class MoodScoreCache(RedisJsonCache[Mapping[str, float]]):
    """movie id -> {mood: affinity in [0, 1]}."""

    namespace = "cinecircle:mood:"

    def _deserialize(self, data: Any) -> Optional[Mapping[str, float]]:
        if not isinstance(data, dict):
            return None
        scores = {
            str(k): min(1.0, max(0.0, float(v)))
            for k, v in data.items()
            if isinstance(v, (int, float))
        }
        return scores or None


class CreditsCache(RedisJsonCache[CrewCredits]):
    """movie id -> director ids and top-billed actor ids."""

    namespace = "cinecircle:credits:"

    def _serialize(self, value: CrewCredits) -> Any:
        return {"directors": list(value.director_ids), "actors": list(value.actor_ids)}

    def _deserialize(self, data: Any) -> Optional[CrewCredits]:
        return CrewCredits(
            director_ids=tuple(int(x) for x in data.get("directors", [])),
            actor_ids=tuple(int(x) for x in data.get("actors", [])),
        )


class AdvisoryCache(RedisJsonCache[Mapping[str, Severity]]):
    """movie id -> {category: severity}; unknown values are dropped."""

    namespace = "cinecircle:advisory:"

    def _serialize(self, value: Mapping[str, Severity]) -> Any:
        return {k: Severity(v).value for k, v in value.items()}

    def _deserialize(self, data: Any) -> Optional[Mapping[str, Severity]]:
        known = {c.value for c in AdvisoryCategory}
        out = {}
        for category, severity in data.items():
            if category not in known:
                continue
            try:
                out[category] = Severity(severity)
            except ValueError:
                continue
        return out or None
