"""Tonight's pick: profile -> sourcing -> enrichment -> scoring -> gating ->
credits + second pass -> final selection.

Stages share one time budget: a late stage that runs out of time is skipped
and its input carried forward. Each stage returns a new collection; request
state (profile, shuffle session) is passed explicitly, so one pipeline
instance serves concurrent requests.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Literal, Mapping, Optional, Sequence

import anyio

from cinecircle_core.config import CREDIT_ENRICH_TOP_N, PIPELINE_BUDGET_S, REASONING_TIMEOUT_S
from cinecircle_core.errors import PipelineFailure
from cinecircle_core.types import PickConstraints
from cinecircle_logging.perf import stage_timer
from cinecircle_profile.profile_service import INTERNAL_CANDIDATES, ProfileAggregator
from cinecircle_profile.types import GroupPreferenceProfile
from cinecircle_ranking.mood import mood_gate
from cinecircle_ranking.scoring import ScoringContext, score_pool
from cinecircle_ranking.types import ScoreBreakdown, ScoredCandidate
from cinecircle_sourcing.candidate_sourcer import CandidateSourcer

from .credits import CreditEnrichmentStage
from .enrichment import PoolEnricher
from .reasoning import Reasoning, ReasoningGenerator
from .selection import FinalSelectionStage
from .session import ShuffleSession

log = logging.getLogger(__name__)

Status = Literal["ok", "insufficient"]


@dataclass(frozen=True)
class TonightPickRequest:
    member_ids: tuple[str, ...]
    constraints: PickConstraints = field(default_factory=PickConstraints)
    collective_id: Optional[str] = None
    session: ShuffleSession = field(default_factory=ShuffleSession)


@dataclass(frozen=True)
class Pick:
    movie_id: int
    title: str
    score: int
    breakdown: ScoreBreakdown
    reasoning: Optional[Reasoning] = None


@dataclass(frozen=True)
class RecommendationResult:
    status: Status
    picks: tuple[Pick, ...]
    session: ShuffleSession
    diagnostics: Mapping[str, Any] = field(default_factory=dict)


class TonightsPickPipeline:
    def __init__(
        self,
        *,
        aggregator: ProfileAggregator,
        sourcer: CandidateSourcer,
        enricher: PoolEnricher,
        credits: CreditEnrichmentStage,
        selection: FinalSelectionStage,
        reasoning: Optional[ReasoningGenerator] = None,
        reasoning_timeout: float = REASONING_TIMEOUT_S,
        budget: Optional[float] = PIPELINE_BUDGET_S,
    ):
        self.aggregator = aggregator
        self.sourcer = sourcer
        self.enricher = enricher
        self.credits = credits
        self.selection = selection
        self.reasoning = reasoning
        self.reasoning_timeout = reasoning_timeout
        self.budget = budget

    async def run(self, request: TonightPickRequest) -> RecommendationResult:
        constraints = request.constraints
        session = request.session
        moods = tuple(constraints.mood_keys)
        budget = _Budget(self.budget)

        # Profile and sourcing are required; without a pool there is nothing to degrade to
        with budget.scope() as scope, stage_timer("profile", members=len(request.member_ids)):
            profile = await self.aggregator.aggregate(
                list(request.member_ids), constraints, request.collective_id
            )
        if scope.cancelled_caught:
            raise PipelineFailure("Timed out while loading member preferences")

        with budget.scope() as scope, stage_timer("sourcing", page=session.page) as t:
            sourced = await self.sourcer.source(profile, constraints, session.page)
            t["pool"] = len(sourced.pool)
            t["emergency"] = sourced.emergency_used
        if scope.cancelled_caught:
            raise PipelineFailure("Timed out while sourcing candidates")

        if INTERNAL_CANDIDATES in profile.degraded and sourced.all_external_failed:
            log.error("internal catalog and all %d external queries failed", len(sourced.external_branches))
            raise PipelineFailure("No catalog source could be reached")

        profile = sourced.profile
        mood_filter = sourced.plan.mood_filter
        context = ScoringContext(
            moods=moods,
            shown_ids=session.shown,
            mood_prefer_genres=mood_filter.prefer_genres,
            mood_soft_avoid_genres=mood_filter.soft_avoid_genres,
        )
        timed_out: list[str] = []

        with stage_timer("enrich_and_score") as t:
            enriched = list(sourced.pool)
            with budget.scope() as scope:
                enriched = await self.enricher.enrich(sourced.pool, profile, moods)
            if scope.cancelled_caught:
                timed_out.append("enrichment")
            scored = score_pool(enriched, profile, context)
            gate = mood_gate(scored, moods)
            t["scored"] = len(scored)
            t["gated"] = len(gate.pool)
            t["threshold"] = gate.threshold

        popularity_floor = sourced.plan.pressure.popularity_floor
        with stage_timer("credits") as t:
            stage = None
            with budget.scope() as scope:
                stage = await self.credits.run(
                    gate.pool, profile, context, popularity_floor=popularity_floor
                )
            if scope.cancelled_caught or stage is None:
                timed_out.append("credits")
                stage = self.credits.finish(
                    gate.pool[:CREDIT_ENRICH_TOP_N], profile, context,
                    popularity_floor=popularity_floor,
                )
            t["fetched"] = stage.fetched
            t["pool"] = len(stage.pool)

        with stage_timer("selection"):
            chosen: tuple[ScoredCandidate, ...] = ()
            with budget.scope() as scope:
                chosen = await self.selection.select(stage.pool, constraints.advisory_limits)
            if scope.cancelled_caught:
                # Advisory data is fail-open: no data never excludes
                timed_out.append("advisory")
                chosen = await self.selection.select(stage.pool, {})
            self.selection.record(chosen, profile)

        reasoning = await self._reason(chosen, profile, moods, budget)
        if timed_out:
            log.warning("request budget exhausted; skipped %s", timed_out)
        picks = tuple(
            Pick(
                movie_id=s.id,
                title=s.candidate.title,
                score=s.score,
                breakdown=s.breakdown,
                reasoning=reasoning.get(s.id),
            )
            for s in chosen
        )
        status: Status = "ok" if len(picks) >= self.selection.final_count else "insufficient"
        if status == "insufficient":
            log.info("only %d picks for members=%s", len(picks), list(request.member_ids))
        return RecommendationResult(
            status=status,
            picks=picks,
            session=session.advance(p.movie_id for p in picks),
            diagnostics={
                "pressure_tier": sourced.plan.pressure.tier,
                "emergency_fallback": sourced.emergency_used,
                "mood_threshold": gate.threshold,
                "degraded": sorted(profile.degraded),
                "failed_branches": sorted(sourced.failed_branches),
                "franchise_pruned": len(stage.pruned_franchise),
                "timed_out": timed_out,
            },
        )

    async def _reason(
        self,
        picks: Sequence[ScoredCandidate],
        profile: GroupPreferenceProfile,
        moods: Sequence[str],
        budget: "_Budget",
    ) -> Mapping[int, Reasoning]:
        if self.reasoning is None or not picks:
            return {}
        timeout = budget.remaining(cap=self.reasoning_timeout)
        try:
            with anyio.fail_after(timeout):
                return await self.reasoning.generate(picks, profile, moods)
        except Exception as e:
            log.warning("reasoning generation failed, returning picks without prose: %r", e)
            return {}


class _Budget:
    """Time left of the request budget; each stage runs under what remains."""

    def __init__(self, seconds: Optional[float]):
        self.deadline = None if seconds is None else anyio.current_time() + seconds

    def remaining(self, cap: Optional[float] = None) -> Optional[float]:
        if self.deadline is None:
            return cap
        left = max(0.0, self.deadline - anyio.current_time())
        return left if cap is None else min(left, cap)

    def scope(self) -> anyio.CancelScope:
        return anyio.move_on_after(self.remaining())
