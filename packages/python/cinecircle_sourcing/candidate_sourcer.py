from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List

from cinecircle_core.config import (
    COLLAB_INJECT_LIMIT,
    FETCH_TIMEOUT_S,
    INFLUENCE_INJECT_LIMIT,
    MIN_VIABLE_CANDIDATES,
)
from cinecircle_core.fanout import Branch, FanoutResult, gather_settled
from cinecircle_core.types import PickConstraints
from cinecircle_profile import reducers
from cinecircle_profile.profile_repo import SupabaseCollectiveRepo
from cinecircle_profile.types import GroupPreferenceProfile, InfluenceSignal
from cinecircle_ranking.pool import assemble_pool
from cinecircle_ranking.types import Candidate
from cinecircle_tmdb.tmdb_client import TMDBClient

from .discover_plan import DiscoverPlan, DiscoverQuery, plan_discovery, plan_emergency

log = logging.getLogger(__name__)

COLLABORATIVE = "collaborative"
INFLUENCE = "collective_influence"
SOCIAL_INJECTION = "social_injection"


class CatalogUnavailable(Exception):
    """An external catalog call returned nothing usable."""


@dataclass(frozen=True)
class SourcingResult:
    pool: tuple[Candidate, ...]
    profile: GroupPreferenceProfile  # with social signals attached
    plan: DiscoverPlan
    external_branches: tuple[str, ...]
    failed_branches: frozenset[str]
    emergency_used: bool = False

    @property
    def all_external_failed(self) -> bool:
        return bool(self.external_branches) and all(
            b in self.failed_branches for b in self.external_branches
        )


class CandidateSourcer:
    def __init__(
        self,
        tmdb: TMDBClient,
        repo: SupabaseCollectiveRepo,
        *,
        timeout: float = FETCH_TIMEOUT_S,
    ):
        self.tmdb = tmdb
        self.repo = repo
        self.timeout = timeout

    async def source(
        self,
        profile: GroupPreferenceProfile,
        constraints: PickConstraints,
        page: int = 1,
    ) -> SourcingResult:
        plan = plan_discovery(profile, constraints, page)
        fan = await gather_settled(
            [Branch(q.branch, self._run_query(q), []) for q in plan.queries]
            + [
                Branch(COLLABORATIVE, self._collaborative(profile), {}),
                Branch(INFLUENCE, self._influence(profile), {}),
            ],
            timeout=self.timeout,
        )
        failed = set(fan.failed)
        external_branches = list(plan.branch_names)
        raw = _collect(fan, plan.branch_names)
        profile = profile.with_social(fan[COLLABORATIVE], fan[INFLUENCE])
        log.info(
            "sourced %d external results from %d queries (%d failed)",
            len(raw), len(plan.queries), len(failed),
        )

        injected = await self._inject_social(profile, raw)
        raw.extend(injected.values.get(SOCIAL_INJECTION) or [])
        failed |= injected.failed

        avoid = plan.mood_filter.avoid_genres
        external = _to_candidates(raw)
        pool = assemble_pool(profile.internal_candidates, external, profile, constraints, avoid)

        emergency_used = False
        if len(pool) < MIN_VIABLE_CANDIDATES:
            log.info("pool has %d viable candidates; running emergency fallback", len(pool))
            emergency = plan_emergency(constraints, page)
            efan = await gather_settled(
                [Branch(q.branch, self._run_query(q), []) for q in emergency],
                timeout=self.timeout,
            )
            names = [q.branch for q in emergency]
            external_branches += names
            failed |= efan.failed
            raw.extend(_collect(efan, names))
            external = _to_candidates(raw)
            pool = assemble_pool(profile.internal_candidates, external, profile, constraints, avoid)
            emergency_used = True

        return SourcingResult(
            pool=tuple(pool),
            profile=profile,
            plan=plan,
            external_branches=tuple(external_branches),
            failed_branches=frozenset(failed),
            emergency_used=emergency_used,
        )

    async def _run_query(self, q: DiscoverQuery) -> List[dict]:
        if q.endpoint == "popular":
            results = await self.tmdb.popular(q.page)
        elif q.endpoint == "top_rated":
            results = await self.tmdb.top_rated(q.page)
        else:
            results = await self.tmdb.discover(q.page, **q.params)
        if results is None:
            raise CatalogUnavailable(q.branch)
        return results

    async def _collaborative(self, profile: GroupPreferenceProfile) -> dict[int, float]:
        if not profile.peer_ids:
            return {}
        rows = await self.repo.fetch_peer_loved_rows(profile.peer_ids)
        return reducers.collaborative_picks(rows, profile.seen)

    async def _influence(self, profile: GroupPreferenceProfile) -> dict[int, InfluenceSignal]:
        rows = await self.repo.fetch_influence_rows(
            list(profile.member_ids), profile.collective_id
        )
        return reducers.influence_signals(rows)

    async def _inject_social(
        self, profile: GroupPreferenceProfile, raw: list[dict]
    ) -> FanoutResult:
        pooled = {c.id for c in profile.internal_candidates}
        pooled.update(int(r["id"]) for r in raw if "id" in r)
        collab = [m for m in profile.collaborative if m not in pooled][:COLLAB_INJECT_LIMIT]
        influence = [
            m for m in profile.influence if m not in pooled and m not in collab
        ][:INFLUENCE_INJECT_LIMIT]
        missing = collab + influence
        if not missing:
            return FanoutResult()
        return await gather_settled(
            [Branch(SOCIAL_INJECTION, self.tmdb.fetch_movies_by_ids(missing), [])],
            timeout=self.timeout,
        )


def _collect(fan: FanoutResult, names: Iterable[str]) -> list[dict]:
    return [r for name in names for r in (fan.values.get(name) or []) if r.get("id")]


def _to_candidates(raw: Iterable[dict]) -> list[Candidate]:
    return [Candidate.from_tmdb(r) for r in raw]
