from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Sequence

from cinecircle_cache.caches import CreditsCache
from cinecircle_core.config import CREDIT_ENRICH_TOP_N, FETCH_TIMEOUT_S, TOP_BILLED_ACTORS
from cinecircle_core.fanout import Branch, gather_settled
from cinecircle_core.tasks import BackgroundTasks
from cinecircle_profile.types import GroupPreferenceProfile
from cinecircle_ranking.diversification import apply_popularity_floor, diversify_by_franchise
from cinecircle_ranking.scoring import ScoringContext, rescore
from cinecircle_ranking.types import CrewCredits, ScoredCandidate
from cinecircle_tmdb.tmdb_client import TMDBClient

log = logging.getLogger(__name__)


def parse_credits(data: dict, top_billed: int = TOP_BILLED_ACTORS) -> CrewCredits:
    directors = [
        int(c["id"]) for c in data.get("crew", []) if c.get("job") == "Director" and "id" in c
    ]
    cast = sorted(
        (c for c in data.get("cast", []) if "id" in c),
        key=lambda c: c.get("order", 0),
    )
    return CrewCredits(
        director_ids=tuple(dict.fromkeys(directors)),
        actor_ids=tuple(int(c["id"]) for c in cast[:top_billed]),
    )


@dataclass(frozen=True)
class CreditStageResult:
    pool: tuple[ScoredCandidate, ...]
    pruned_franchise: tuple[dict, ...] = ()
    fetched: int = 0


class CreditEnrichmentStage:
    def __init__(
        self,
        *,
        tmdb: TMDBClient,
        cache: CreditsCache,
        background: BackgroundTasks,
        timeout: float = FETCH_TIMEOUT_S,
    ):
        self.tmdb = tmdb
        self.cache = cache
        self.background = background
        self.timeout = timeout

    async def run(
        self,
        gated: Sequence[ScoredCandidate],
        profile: GroupPreferenceProfile,
        context: ScoringContext,
        *,
        popularity_floor: float = 0.0,
        top_n: int = CREDIT_ENRICH_TOP_N,
    ) -> CreditStageResult:
        top = list(gated[:top_n])
        fetched = 0
        if profile.crew_affinities:
            top, fetched = await self._attach_credits(top)
        return self.finish(top, profile, context, popularity_floor=popularity_floor, fetched=fetched)

    def finish(
        self,
        top: Sequence[ScoredCandidate],
        profile: GroupPreferenceProfile,
        context: ScoringContext,
        *,
        popularity_floor: float = 0.0,
        fetched: int = 0,
    ) -> CreditStageResult:
        """Second scoring pass, popularity floor and franchise dedup over ``top``."""
        rescored = rescore(top, profile, context)

        floored = apply_popularity_floor(rescored, profile.collaborative, popularity_floor)
        deduped, pruned = diversify_by_franchise(floored)
        return CreditStageResult(pool=tuple(deduped), pruned_franchise=tuple(pruned), fetched=fetched)

    async def _attach_credits(
        self, top: list[ScoredCandidate]
    ) -> tuple[list[ScoredCandidate], int]:
        ids = [s.id for s in top]
        credits = await self.cache.get_many(ids)
        missing = [mid for mid in ids if mid not in credits]
        if missing:
            fan = await gather_settled(
                [Branch(str(mid), self.tmdb.movie_credits(mid), None) for mid in missing],
                timeout=self.timeout,
            )
            fresh = {
                mid: parse_credits(data)
                for mid in missing
                if (data := fan.values.get(str(mid)))
            }
            credits.update(fresh)
            if fresh:
                self.background.spawn(self.cache.set_many(fresh), name="credits-cache-write")
            log.debug("credits: %d cached, %d fetched", len(ids) - len(missing), len(fresh))
        out = [
            replace(s, candidate=replace(s.candidate, credits=credits[s.id]))
            if s.id in credits
            else s
            for s in top
        ]
        return out, len(missing)
