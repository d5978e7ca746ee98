from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Literal, Mapping, Optional

Source = Literal["internal", "external"]
MoodSource = Literal["cached", "heuristic"]


@dataclass(frozen=True)
class CriticScores:
    imdb: Optional[float] = None  # 0-10
    rotten_tomatoes: Optional[int] = None  # 0-100
    metacritic: Optional[int] = None  # 0-100

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "CriticScores":
        return cls(
            imdb=d.get("imdb"),
            rotten_tomatoes=d.get("rotten_tomatoes"),
            metacritic=d.get("metacritic"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "imdb": self.imdb,
            "rotten_tomatoes": self.rotten_tomatoes,
            "metacritic": self.metacritic,
        }

    @property
    def empty(self) -> bool:
        return self.imdb is None and self.rotten_tomatoes is None and self.metacritic is None


@dataclass(frozen=True)
class CrewCredits:
    director_ids: tuple[int, ...] = ()
    actor_ids: tuple[int, ...] = ()  # billing order


@dataclass(frozen=True)
class InternalSignal:
    avg_score: float
    rater_count: int


# Enrichment fields are write-once for the lifetime of a request
_WRITE_ONCE = ("critic", "mood_scores", "internal_signal", "member_scores")


@dataclass(frozen=True)
class Candidate:
    id: int
    title: str
    genre_ids: tuple[int, ...] = ()
    runtime: Optional[int] = None
    certification: Optional[str] = None
    release_date: Optional[str] = None
    popularity: float = 0.0
    vote_average: float = 0.0
    vote_count: int = 0
    overview: str = ""
    has_poster: bool = False
    source: Source = "external"
    # Internal provenance survives a merge with an external record
    in_internal_catalog: bool = False
    internal_signal: Optional[InternalSignal] = None
    critic: Optional[CriticScores] = None
    mood_scores: Optional[Mapping[str, float]] = None
    mood_source: Optional[MoodSource] = None
    credits: Optional[CrewCredits] = None
    member_scores: Optional[Mapping[str, float]] = None  # selected member -> rating

    @classmethod
    def from_tmdb(cls, raw: Mapping[str, Any]) -> "Candidate":
        genre_ids = raw.get("genre_ids")
        if genre_ids is None:
            genre_ids = [g["id"] for g in raw.get("genres", []) if "id" in g]
        return cls(
            id=int(raw["id"]),
            title=raw.get("title") or raw.get("original_title") or "",
            genre_ids=tuple(genre_ids),
            runtime=raw.get("runtime"),
            certification=raw.get("certification"),
            release_date=raw.get("release_date") or None,
            popularity=float(raw.get("popularity") or 0.0),
            vote_average=float(raw.get("vote_average") or 0.0),
            vote_count=int(raw.get("vote_count") or 0),
            overview=raw.get("overview") or "",
            has_poster=bool(raw.get("poster_path")),
            source="external",
        )

    @classmethod
    def from_internal_row(cls, row: Mapping[str, Any]) -> "Candidate":
        base = cls.from_tmdb({**row, "id": row["tmdb_id"]})
        signal = None
        if row.get("avg_score") is not None:
            signal = InternalSignal(
                avg_score=float(row["avg_score"]),
                rater_count=int(row.get("rater_count") or 0),
            )
        return replace(
            base, source="internal", in_internal_catalog=True, internal_signal=signal
        )

    @property
    def has_overview(self) -> bool:
        return bool(self.overview.strip())

    @property
    def release_year(self) -> Optional[int]:
        if self.release_date and self.release_date[:4].isdigit():
            return int(self.release_date[:4])
        return None

    @property
    def decade(self) -> Optional[int]:
        year = self.release_year
        return (year // 10) * 10 if year is not None else None

    def enriched(self, **fields: Any) -> "Candidate":
        """Copy with enrichment attached; attached enrichment is never overwritten."""
        for name in _WRITE_ONCE:
            if name in fields and getattr(self, name) is not None:
                raise ValueError(f"{name} already attached to candidate {self.id}")
        return replace(self, **fields)


@dataclass(frozen=True)
class ScoreEntry:
    signal: str
    delta: int
    rationale: str


@dataclass(frozen=True)
class ScoreBreakdown:
    movie_id: int
    entries: tuple[ScoreEntry, ...]
    total: int
    categories: frozenset[str] = field(default_factory=frozenset)

    def delta_for(self, signal: str) -> int:
        return sum(e.delta for e in self.entries if e.signal == signal)

    def to_list(self) -> list[dict[str, Any]]:
        return [
            {"signal": e.signal, "delta": e.delta, "rationale": e.rationale}
            for e in self.entries
        ]


@dataclass(frozen=True)
class ScoredCandidate:
    candidate: Candidate
    breakdown: ScoreBreakdown

    @property
    def score(self) -> int:
        return self.breakdown.total

    @property
    def id(self) -> int:
        return self.candidate.id
