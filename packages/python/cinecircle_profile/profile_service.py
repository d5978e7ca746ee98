from __future__ import annotations

import logging
from typing import Optional

from cinecircle_core.config import FETCH_TIMEOUT_S
from cinecircle_core.fanout import Branch, gather_settled
from cinecircle_core.types import PickConstraints, certification_bounds

from . import reducers
from .profile_repo import SupabaseCollectiveRepo
from .types import GroupPreferenceProfile

log = logging.getLogger(__name__)

INTERNAL_CANDIDATES = "internal_candidates"


class ProfileAggregator:
    def __init__(self, repo: SupabaseCollectiveRepo, *, timeout: float = FETCH_TIMEOUT_S):
        self.repo = repo
        self.timeout = timeout

    async def aggregate(
        self,
        member_ids: list[str],
        constraints: PickConstraints,
        collective_id: Optional[str] = None,
    ) -> GroupPreferenceProfile:
        """Build the request-scoped group profile from nine concurrent queries.

        A failing query leaves its signal empty and is recorded in
        ``profile.degraded``.
        """
        repo = self.repo
        gte, lte = constraints.era_window()
        cert_floor, cert_ceiling = certification_bounds(
            constraints.audience, constraints.content_rating
        )
        fan = await gather_settled(
            [
                Branch("genre_prefs", repo.fetch_genre_rating_rows(member_ids), []),
                Branch("seen", repo.fetch_seen_rows(member_ids), []),
                Branch("dismissed", repo.fetch_dismissed_ids(member_ids), set()),
                Branch("disliked_genres", repo.fetch_low_rating_rows(member_ids), []),
                Branch("era_prefs", repo.fetch_era_rating_rows(member_ids), []),
                Branch("crew_affinities", repo.fetch_crew_rows(member_ids), []),
                Branch("peers", repo.fetch_peer_rows(member_ids), []),
                Branch("history", repo.fetch_recent_history_ids(member_ids), set()),
                Branch(
                    INTERNAL_CANDIDATES,
                    repo.fetch_internal_catalog_rows(
                        max_runtime=constraints.max_runtime,
                        release_gte=gte,
                        release_lte=lte,
                    ),
                    [],
                ),
            ],
            timeout=self.timeout,
        )
        if fan.failed:
            log.warning("profile degraded for %s", sorted(fan.failed))

        member_count = len(member_ids)
        return GroupPreferenceProfile(
            member_ids=tuple(member_ids),
            audience=constraints.audience,
            collective_id=collective_id,
            preferred_genres=reducers.genre_preferences(fan["genre_prefs"], member_count),
            disliked_genres=reducers.disliked_genres(fan["disliked_genres"]),
            era_affinities=reducers.era_preferences(fan["era_prefs"]),
            crew_affinities=reducers.crew_affinities(fan["crew_affinities"]),
            peer_ids=reducers.taste_similar_peers(fan["peers"], member_ids),
            seen=reducers.seen_map(fan["seen"]),
            dismissed=frozenset(fan["dismissed"]),
            recent_history=frozenset(fan["history"]),
            internal_candidates=reducers.rank_internal_candidates(
                fan[INTERNAL_CANDIDATES],
                certification_floor=cert_floor,
                certification_ceiling=cert_ceiling,
            ),
            degraded=frozenset(fan.failed),
        )
