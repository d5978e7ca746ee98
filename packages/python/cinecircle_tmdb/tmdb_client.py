import asyncio
import logging
from datetime import date
from typing import Any, Iterable, List, Optional

import httpx

log = logging.getLogger(__name__)

AND = ","
OR = "|"


def join_genres(genre_ids: Iterable[int], mode: str = AND) -> Optional[str]:
    """TMDB genre filter: comma means all-of, pipe means any-of."""
    ids = [str(g) for g in genre_ids]
    return mode.join(ids) if ids else None


class TMDBClient:
    BASE_URL = "https://api.themoviedb.org/3"

    def __init__(self, api_key: str, max_connections: int = 15, timeout: float = 10.0):
        self.api_key = api_key
        limits = httpx.Limits(
            max_connections=max_connections, max_keepalive_connections=max_connections
        )
        self.client = httpx.AsyncClient(
            base_url=self.BASE_URL,
            timeout=httpx.Timeout(timeout),
            limits=limits,
            headers={"Accept": "application/json"},
        )
        self.semaphore = asyncio.Semaphore(max_connections)

    async def get(self, path: str, params: Optional[dict] = None) -> Optional[dict]:
        query = {"api_key": self.api_key, "language": "en-US"}
        query.update({k: v for k, v in (params or {}).items() if v is not None})
        async with self.semaphore:
            try:
                response = await self.client.get(path, params=query)
                response.raise_for_status()
                return response.json()
            except httpx.HTTPStatusError as e:
                log.warning("TMDB HTTP %s: %s", e.response.status_code, path)
            except httpx.RequestError as e:
                log.warning("TMDB request error on %s: %r", path, e)
        return None

    async def get_with_retry(
        self, path: str, params: Optional[dict] = None, retries: int = 2, delay: float = 1.0
    ) -> Optional[dict]:
        for attempt in range(retries + 1):
            result = await self.get(path, params)
            if result:
                return result
            if attempt < retries:
                await asyncio.sleep(delay * (2**attempt))  # Exponential backoff
        return None

    async def discover(
        self,
        page: int = 1,
        *,
        with_genres: Optional[str] = None,
        without_genres: Optional[str] = None,
        sort_by: str = "popularity.desc",
        vote_count_gte: Optional[int] = None,
        vote_average_gte: Optional[float] = None,
        runtime_lte: Optional[int] = None,
        release_gte: Optional[str] = None,
        release_lte: Optional[str] = None,
        certification_gte: Optional[str] = None,
        certification_lte: Optional[str] = None,
        provider_ids: Optional[List[int]] = None,
        watch_region: str = "US",
    ) -> Optional[List[dict]]:
        params: dict[str, Any] = {
            "page": page,
            "region": "US",
            "include_adult": "false",
            "sort_by": sort_by,
            "with_genres": with_genres,
            "without_genres": without_genres,
            "vote_count.gte": vote_count_gte,
            "vote_average.gte": vote_average_gte,
            "with_runtime.lte": runtime_lte,
            "primary_release_date.gte": release_gte,
            "primary_release_date.lte": release_lte or date.today().isoformat(),
        }
        if certification_gte or certification_lte:
            params["certification_country"] = "US"
            params["certification.gte"] = certification_gte
            params["certification.lte"] = certification_lte
        if provider_ids:
            params["with_watch_providers"] = OR.join(str(p) for p in provider_ids)
            params["watch_region"] = watch_region
        data = await self.get("/discover/movie", params)
        return data.get("results", []) if data is not None else None

    async def popular(self, page: int = 1) -> Optional[List[dict]]:
        data = await self.get("/movie/popular", {"page": page, "region": "US"})
        return data.get("results", []) if data is not None else None

    async def top_rated(self, page: int = 1) -> Optional[List[dict]]:
        data = await self.get("/movie/top_rated", {"page": page, "region": "US"})
        return data.get("results", []) if data is not None else None

    async def movie_details(self, movie_id: int) -> Optional[dict]:
        data = await self.get_with_retry(f"/movie/{movie_id}", retries=1)
        if not data:
            return None
        # Normalize to the discover result shape
        data.setdefault("genre_ids", [g["id"] for g in data.get("genres", []) if "id" in g])
        return data

    async def fetch_movies_by_ids(self, movie_ids: Iterable[int]) -> List[dict]:
        results = await asyncio.gather(*(self.movie_details(mid) for mid in movie_ids))
        return [r for r in results if r]

    async def movie_credits(self, movie_id: int) -> Optional[dict]:
        return await self.get(f"/movie/{movie_id}/credits")

    async def aclose(self):
        await self.client.aclose()
