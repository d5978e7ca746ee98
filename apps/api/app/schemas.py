from __future__ import annotations

from typing import List, Literal

from pydantic import BaseModel, Field

from cinecircle_core.types import PickConstraints
from cinecircle_recommendation.pipeline import Pick, RecommendationResult
from cinecircle_recommendation.session import ShuffleSession


class SoloPickRequest(PickConstraints):
    # inline session wins over a stored one
    session: ShuffleSession | None = None
    session_id: str | None = None

    def constraints(self) -> PickConstraints:
        return PickConstraints.model_validate(
            self.model_dump(include=set(PickConstraints.model_fields))
        )


class CollectivePickRequest(SoloPickRequest):
    member_ids: List[str] = Field(default_factory=list)


class BreakdownEntry(BaseModel):
    signal: str
    delta: int
    rationale: str


class PickReasoning(BaseModel):
    summary: str
    pairing: str | None = None


class PickOut(BaseModel):
    movie_id: int
    title: str
    score: int
    breakdown: List[BreakdownEntry]
    reasoning: PickReasoning | None = None

    @classmethod
    def from_pick(cls, pick: Pick) -> "PickOut":
        return cls(
            movie_id=pick.movie_id,
            title=pick.title,
            score=pick.score,
            breakdown=[BreakdownEntry(**e) for e in pick.breakdown.to_list()],
            reasoning=(
                PickReasoning(summary=pick.reasoning.summary, pairing=pick.reasoning.pairing)
                if pick.reasoning
                else None
            ),
        )


class TonightsPickResponse(BaseModel):
    status: Literal["ok", "insufficient"]
    picks: List[PickOut]
    session: ShuffleSession
    session_id: str | None = None

    @classmethod
    def from_result(
        cls, result: RecommendationResult, session_id: str | None = None
    ) -> "TonightsPickResponse":
        return cls(
            status=result.status,
            picks=[PickOut.from_pick(p) for p in result.picks],
            session=result.session,
            session_id=session_id,
        )
