from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

from anyio import to_thread

from cinecircle_core.config import HISTORY_RETENTION_DAYS
from cinecircle_profile.profile_repo import TABLE_HISTORY

log = logging.getLogger(__name__)


class SupabaseHistoryRepo:
    """Write side of ``recommendation_history``; reads happen in the profile repo."""

    def __init__(self, client):
        self.client = client

    async def log_recommendations(
        self,
        *,
        member_ids: Iterable[str],
        movie_ids: Iterable[int],
        collective_id: Optional[str],
        now: Optional[datetime] = None,
    ) -> int:
        ts = (now or datetime.now(timezone.utc)).isoformat()
        rows = [
            {
                "user_id": user_id,
                "tmdb_id": movie_id,
                "collective_id": collective_id,
                "recommended_at": ts,
            }
            for user_id in member_ids
            for movie_id in movie_ids
        ]
        if not rows:
            return 0
        await to_thread.run_sync(self._insert_sync, rows)
        return len(rows)

    async def purge_older_than(self, days: int = HISTORY_RETENTION_DAYS) -> None:
        cutoff = datetime.now(timezone.utc) - timedelta(days=days)
        await to_thread.run_sync(self._purge_sync, cutoff.isoformat())
        log.info("purged recommendation history before %s", cutoff.date())

    def _insert_sync(self, rows: list[dict]) -> None:
        self.client.table(TABLE_HISTORY).insert(rows).execute()

    def _purge_sync(self, cutoff: str) -> None:
        self.client.table(TABLE_HISTORY).delete().lt("recommended_at", cutoff).execute()
