from __future__ import annotations

import logging
import random
from typing import Mapping, Optional, Sequence

from cinecircle_cache.caches import AdvisoryCache
from cinecircle_core.config import ADVISORY_WINDOW, FINAL_COUNT, HISTORY_PURGE_PROBABILITY
from cinecircle_core.tasks import BackgroundTasks
from cinecircle_core.types import Severity
from cinecircle_profile.types import GroupPreferenceProfile
from cinecircle_ranking.advisory import filter_by_advisory
from cinecircle_ranking.types import ScoredCandidate

from .history_repo import SupabaseHistoryRepo

log = logging.getLogger(__name__)


class FinalSelectionStage:
    def __init__(
        self,
        *,
        advisory_cache: AdvisoryCache,
        history: SupabaseHistoryRepo,
        background: BackgroundTasks,
        rng: Optional[random.Random] = None,
        purge_probability: float = HISTORY_PURGE_PROBABILITY,
        final_count: int = FINAL_COUNT,
        window: int = ADVISORY_WINDOW,
    ):
        self.advisory_cache = advisory_cache
        self.history = history
        self.background = background
        self.rng = rng or random.Random()
        self.purge_probability = purge_probability
        self.final_count = final_count
        self.window = window

    async def select(
        self,
        pool: Sequence[ScoredCandidate],
        limits: Mapping[str, Severity],
    ) -> tuple[ScoredCandidate, ...]:
        considered = list(pool[: self.window])
        if limits:
            advisories = await self.advisory_cache.get_many(s.id for s in considered)
            kept = filter_by_advisory(considered, advisories, limits)
            if len(kept) < len(considered):
                log.info("advisory filter removed %d candidates", len(considered) - len(kept))
            considered = kept
        return tuple(considered[: self.final_count])

    def record(self, picks: Sequence[ScoredCandidate], profile: GroupPreferenceProfile) -> None:
        """Log the picks to history without waiting; occasionally purge old rows."""
        if not picks:
            return
        self.background.spawn(
            self.history.log_recommendations(
                member_ids=profile.member_ids,
                movie_ids=[p.id for p in picks],
                collective_id=profile.collective_id,
            ),
            name="history-log",
        )
        if self.rng.random() < self.purge_probability:
            self.background.spawn(self.history.purge_older_than(), name="history-purge")
