from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, Optional

from anyio import to_thread

from cinecircle_core.config import (
    DISLIKED_SCORE_CEILING,
    HISTORY_WINDOW_DAYS,
    INFLUENCE_MIN_SCORE,
    INTERNAL_MIN_RATERS,
    PEER_LOVED_SCORE,
)

TABLE_MEMBER_RATINGS = "member_rating_details"  # view: ratings joined to movie metadata
TABLE_DISMISSED = "dismissed_movies"
TABLE_CREW = "member_crew_affinities"
TABLE_HISTORY = "recommendation_history"
TABLE_CATALOG = "movie_catalog_stats"  # view: movie metadata + platform rating aggregates
TABLE_COLLECTIVE_MEMBERS = "collective_members"
RPC_TASTE_PEERS = "taste_similar_peers"

_CATALOG_COLUMNS = (
    "tmdb_id, title, genre_ids, runtime, certification, release_date, popularity, "
    "vote_average, vote_count, overview, poster_path, avg_score, rater_count"
)
_INTERNAL_SCAN_LIMIT = 500

Rows = list[dict[str, Any]]


def _rows(res) -> Rows:
    return list(getattr(res, "data", None) or [])


class SupabaseCollectiveRepo:
    """Read side of the preference, social and catalog tables.

    Query failures propagate; callers that fan out decide how to degrade.
    """

    def __init__(self, client):
        self.client = client

    # ---------- Async facade ----------
    async def fetch_genre_rating_rows(self, member_ids: list[str]) -> Rows:
        return await to_thread.run_sync(self._genre_rating_rows_sync, member_ids)

    async def fetch_seen_rows(self, member_ids: list[str]) -> Rows:
        return await to_thread.run_sync(self._seen_rows_sync, member_ids)

    async def fetch_dismissed_ids(self, member_ids: list[str]) -> set[int]:
        return await to_thread.run_sync(self._dismissed_ids_sync, member_ids)

    async def fetch_low_rating_rows(self, member_ids: list[str]) -> Rows:
        return await to_thread.run_sync(self._low_rating_rows_sync, member_ids)

    async def fetch_era_rating_rows(self, member_ids: list[str]) -> Rows:
        return await to_thread.run_sync(self._era_rating_rows_sync, member_ids)

    async def fetch_crew_rows(self, member_ids: list[str]) -> Rows:
        return await to_thread.run_sync(self._crew_rows_sync, member_ids)

    async def fetch_peer_rows(self, member_ids: list[str]) -> Rows:
        return await to_thread.run_sync(self._peer_rows_sync, member_ids)

    async def fetch_recent_history_ids(self, member_ids: list[str]) -> set[int]:
        return await to_thread.run_sync(self._recent_history_ids_sync, member_ids)

    async def fetch_internal_catalog_rows(
        self,
        *,
        max_runtime: Optional[int] = None,
        release_gte: Optional[str] = None,
        release_lte: Optional[str] = None,
    ) -> Rows:
        return await to_thread.run_sync(
            self._internal_catalog_rows_sync, max_runtime, release_gte, release_lte
        )

    async def fetch_peer_loved_rows(self, peer_ids: Iterable[str]) -> Rows:
        return await to_thread.run_sync(self._peer_loved_rows_sync, list(peer_ids))

    async def fetch_influence_rows(
        self, member_ids: list[str], collective_id: Optional[str]
    ) -> Rows:
        return await to_thread.run_sync(self._influence_rows_sync, member_ids, collective_id)

    async def fetch_member_rating_rows(
        self, member_ids: list[str], movie_ids: Iterable[int]
    ) -> Rows:
        return await to_thread.run_sync(
            self._member_rating_rows_sync, member_ids, list(movie_ids)
        )

    async def fetch_internal_signal_rows(self, movie_ids: Iterable[int]) -> Rows:
        return await to_thread.run_sync(self._internal_signal_rows_sync, list(movie_ids))

    async def fetch_collective_member_ids(self, collective_id: str) -> list[str]:
        return await to_thread.run_sync(self._collective_member_ids_sync, collective_id)

    async def fetch_user_collective_ids(self, user_id: str) -> list[str]:
        return await to_thread.run_sync(self._user_collective_ids_sync, user_id)

    # ---------- Private sync impls ----------
    def _genre_rating_rows_sync(self, member_ids: list[str]) -> Rows:
        res = (
            self.client.table(TABLE_MEMBER_RATINGS)
            .select("user_id, score, genre_ids")
            .in_("user_id", member_ids)
            .execute()
        )
        return _rows(res)

    def _seen_rows_sync(self, member_ids: list[str]) -> Rows:
        res = (
            self.client.table(TABLE_MEMBER_RATINGS)
            .select("user_id, tmdb_id")
            .in_("user_id", member_ids)
            .execute()
        )
        return _rows(res)

    def _dismissed_ids_sync(self, member_ids: list[str]) -> set[int]:
        res = (
            self.client.table(TABLE_DISMISSED)
            .select("tmdb_id")
            .in_("user_id", member_ids)
            .execute()
        )
        return {int(r["tmdb_id"]) for r in _rows(res)}

    def _low_rating_rows_sync(self, member_ids: list[str]) -> Rows:
        res = (
            self.client.table(TABLE_MEMBER_RATINGS)
            .select("score, genre_ids")
            .in_("user_id", member_ids)
            .lt("score", DISLIKED_SCORE_CEILING)
            .execute()
        )
        return _rows(res)

    def _era_rating_rows_sync(self, member_ids: list[str]) -> Rows:
        res = (
            self.client.table(TABLE_MEMBER_RATINGS)
            .select("score, release_date")
            .in_("user_id", member_ids)
            .execute()
        )
        return _rows(res)

    def _crew_rows_sync(self, member_ids: list[str]) -> Rows:
        res = (
            self.client.table(TABLE_CREW)
            .select("person_id, person_name, role, avg_score, movie_count")
            .in_("user_id", member_ids)
            .execute()
        )
        return _rows(res)

    def _peer_rows_sync(self, member_ids: list[str]) -> Rows:
        res = self.client.rpc(RPC_TASTE_PEERS, {"member_ids": member_ids}).execute()
        return _rows(res)

    def _recent_history_ids_sync(self, member_ids: list[str]) -> set[int]:
        since = datetime.now(timezone.utc) - timedelta(days=HISTORY_WINDOW_DAYS)
        res = (
            self.client.table(TABLE_HISTORY)
            .select("tmdb_id")
            .in_("user_id", member_ids)
            .gte("recommended_at", since.isoformat())
            .execute()
        )
        return {int(r["tmdb_id"]) for r in _rows(res)}

    def _internal_catalog_rows_sync(
        self,
        max_runtime: Optional[int],
        release_gte: Optional[str],
        release_lte: Optional[str],
    ) -> Rows:
        q = (
            self.client.table(TABLE_CATALOG)
            .select(_CATALOG_COLUMNS)
            .gte("rater_count", INTERNAL_MIN_RATERS)
        )
        if max_runtime:
            q = q.lte("runtime", max_runtime)
        if release_gte:
            q = q.gte("release_date", release_gte)
        if release_lte:
            q = q.lte("release_date", release_lte)
        res = q.order("avg_score", desc=True).limit(_INTERNAL_SCAN_LIMIT).execute()
        return _rows(res)

    def _peer_loved_rows_sync(self, peer_ids: list[str]) -> Rows:
        if not peer_ids:
            return []
        res = (
            self.client.table(TABLE_MEMBER_RATINGS)
            .select("user_id, tmdb_id, score")
            .in_("user_id", peer_ids)
            .gte("score", PEER_LOVED_SCORE)
            .execute()
        )
        return _rows(res)

    def _influence_rows_sync(self, member_ids: list[str], collective_id: Optional[str]) -> Rows:
        if collective_id:
            friends = set(self._collective_member_ids_sync(collective_id))
        else:
            # Solo: everyone the user shares any collective with
            friends = set()
            for cid in self._user_collective_ids_sync(member_ids[0]):
                friends.update(self._collective_member_ids_sync(cid))
        friends.difference_update(member_ids)
        if not friends:
            return []
        res = (
            self.client.table(TABLE_MEMBER_RATINGS)
            .select("user_id, tmdb_id, score")
            .in_("user_id", sorted(friends))
            .gte("score", INFLUENCE_MIN_SCORE)
            .execute()
        )
        return _rows(res)

    def _member_rating_rows_sync(self, member_ids: list[str], movie_ids: list[int]) -> Rows:
        if not movie_ids:
            return []
        res = (
            self.client.table(TABLE_MEMBER_RATINGS)
            .select("user_id, tmdb_id, score")
            .in_("user_id", member_ids)
            .in_("tmdb_id", movie_ids)
            .execute()
        )
        return _rows(res)

    def _internal_signal_rows_sync(self, movie_ids: list[int]) -> Rows:
        if not movie_ids:
            return []
        res = (
            self.client.table(TABLE_CATALOG)
            .select("tmdb_id, avg_score, rater_count")
            .in_("tmdb_id", movie_ids)
            .gte("rater_count", INTERNAL_MIN_RATERS)
            .execute()
        )
        return _rows(res)

    def _collective_member_ids_sync(self, collective_id: str) -> list[str]:
        res = (
            self.client.table(TABLE_COLLECTIVE_MEMBERS)
            .select("user_id")
            .eq("collective_id", collective_id)
            .execute()
        )
        return [str(r["user_id"]) for r in _rows(res)]

    def _user_collective_ids_sync(self, user_id: str) -> list[str]:
        res = (
            self.client.table(TABLE_COLLECTIVE_MEMBERS)
            .select("collective_id")
            .eq("user_id", user_id)
            .execute()
        )
        return [str(r["collective_id"]) for r in _rows(res)]
