from __future__ import annotations

import logging
from typing import Sequence

from cinecircle_cache.caches import CriticScoreCache, MoodScoreCache
from cinecircle_core.config import FETCH_TIMEOUT_S
from cinecircle_core.fanout import Branch, gather_settled
from cinecircle_profile import reducers
from cinecircle_profile.profile_repo import SupabaseCollectiveRepo
from cinecircle_profile.types import GroupPreferenceProfile
from cinecircle_ranking.mood import mood_affinity_for
from cinecircle_ranking.types import Candidate, InternalSignal

log = logging.getLogger(__name__)


class PoolEnricher:
    """Batch-loads the per-candidate signals the scorer needs.

    Every source is optional: a failed or empty lookup leaves the field unset
    and scoring falls back (catalog votes for critics, heuristic for moods).
    """

    def __init__(
        self,
        *,
        repo: SupabaseCollectiveRepo,
        critic_cache: CriticScoreCache,
        mood_cache: MoodScoreCache,
        timeout: float = FETCH_TIMEOUT_S,
    ):
        self.repo = repo
        self.critic_cache = critic_cache
        self.mood_cache = mood_cache
        self.timeout = timeout

    async def enrich(
        self,
        pool: Sequence[Candidate],
        profile: GroupPreferenceProfile,
        moods: Sequence[str],
    ) -> list[Candidate]:
        ids = [c.id for c in pool]
        # Member ratings only matter for partially-seen titles
        seen_ids = [mid for mid in ids if profile.seen_by(mid) > 0]
        fan = await gather_settled(
            [
                Branch("critic_scores", self.critic_cache.get_many(ids), {}),
                Branch("mood_scores", self.mood_cache.get_many(ids) if moods else _none(), {}),
                Branch(
                    "member_ratings",
                    self.repo.fetch_member_rating_rows(list(profile.member_ids), seen_ids),
                    [],
                ),
                Branch("internal_signal", self.repo.fetch_internal_signal_rows(ids), []),
            ],
            timeout=self.timeout,
        )
        critics = fan["critic_scores"]
        cached_moods = fan["mood_scores"]
        ratings = reducers.member_scores(fan["member_ratings"])
        signals = {
            int(r["tmdb_id"]): InternalSignal(
                avg_score=float(r["avg_score"]), rater_count=int(r["rater_count"])
            )
            for r in fan["internal_signal"]
            if r.get("avg_score") is not None
        }
        log.debug(
            "enrichment hits: critic=%d mood=%d ratings=%d internal=%d of %d",
            len(critics), len(cached_moods), len(ratings), len(signals), len(ids),
        )

        out = []
        for c in pool:
            fields = {}
            if c.id in critics:
                fields["critic"] = critics[c.id]
            if c.id in ratings:
                fields["member_scores"] = ratings[c.id]
            if c.internal_signal is None and c.id in signals:
                fields["internal_signal"] = signals[c.id]
                fields["in_internal_catalog"] = True
            enriched = c.enriched(**fields) if fields else c
            if moods:
                # Acclaimed heuristic reads critic scores, so attach them first
                affinity = mood_affinity_for(enriched, cached_moods.get(c.id))
                enriched = enriched.enriched(
                    mood_scores=affinity.scores(moods), mood_source=affinity.source
                )
            out.append(enriched)
        return out


async def _none() -> dict:
    return {}
