from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Mapping, Optional

from cinecircle_core.types import Audience
from cinecircle_ranking.types import Candidate


@dataclass(frozen=True)
class GenreAffinity:
    genre_id: int
    avg_score: float
    rater_count: int  # distinct members
    rating_count: int


@dataclass(frozen=True)
class EraAffinity:
    decade: int
    avg_score: float
    rating_count: int


@dataclass(frozen=True)
class CrewAffinity:
    person_id: int
    name: str
    role: str  # "director" | "actor"
    avg_score: float
    movie_count: int


@dataclass(frozen=True)
class InfluenceSignal:
    avg_score: float
    rater_count: int


@dataclass(frozen=True)
class GroupPreferenceProfile:
    member_ids: tuple[str, ...]
    audience: Audience = Audience.ANYONE
    collective_id: Optional[str] = None
    preferred_genres: tuple[GenreAffinity, ...] = ()  # ranked
    disliked_genres: frozenset[int] = frozenset()
    era_affinities: tuple[EraAffinity, ...] = ()  # ranked
    crew_affinities: tuple[CrewAffinity, ...] = ()  # ranked
    peer_ids: frozenset[str] = frozenset()
    seen: Mapping[int, frozenset[str]] = field(default_factory=dict)
    dismissed: frozenset[int] = frozenset()
    recent_history: frozenset[int] = frozenset()
    internal_candidates: tuple[Candidate, ...] = ()
    # Social signals, attached after sourcing
    collaborative: Mapping[int, float] = field(default_factory=dict)
    influence: Mapping[int, InfluenceSignal] = field(default_factory=dict)
    # Names of profile queries that failed and were degraded to empty
    degraded: frozenset[str] = frozenset()

    @property
    def member_count(self) -> int:
        return len(self.member_ids)

    @property
    def solo_mode(self) -> bool:
        return self.member_count == 1

    @property
    def total_seen(self) -> int:
        return len(self.seen)

    @property
    def top_decade(self) -> Optional[int]:
        return self.era_affinities[0].decade if self.era_affinities else None

    @property
    def directors(self) -> tuple[CrewAffinity, ...]:
        return tuple(c for c in self.crew_affinities if c.role == "director")

    @property
    def actors(self) -> tuple[CrewAffinity, ...]:
        return tuple(c for c in self.crew_affinities if c.role == "actor")

    def seen_by(self, movie_id: int) -> int:
        return len(self.seen.get(movie_id, ()))

    def seen_by_all(self, movie_id: int) -> bool:
        return self.seen_by(movie_id) >= self.member_count

    def with_social(
        self,
        collaborative: Mapping[int, float],
        influence: Mapping[int, InfluenceSignal],
    ) -> "GroupPreferenceProfile":
        return replace(self, collaborative=dict(collaborative), influence=dict(influence))
