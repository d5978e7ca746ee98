from __future__ import annotations

import json
import logging
from typing import Any, Dict, Generic, Iterable, Optional, TypeVar

from redis.asyncio import Redis
from redis.exceptions import RedisError

from cinecircle_core.config import CACHE_TTL_S

log = logging.getLogger(__name__)

T = TypeVar("T")


class RedisJsonCache(Generic[T]):
    """
    Redis-backed per-movie cache. One key per movie id.
    Key:   {namespace}{movie_id}
    Value: JSON string produced by ``_serialize``.

    Redis errors are treated as misses on read and ignored on write. With no
    client every lookup is a miss.
    """

    namespace = "cinecircle:"

    def __init__(
        self,
        *,
        client: Optional[Redis],
        namespace: Optional[str] = None,
        absolute_ttl_sec: int = CACHE_TTL_S,
    ) -> None:
        # client should be created with decode_responses=True
        self._r = client
        self._ns = namespace or self.namespace
        self._default_ttl = int(absolute_ttl_sec)

    def _key(self, movie_id: int) -> str:
        return f"{self._ns}{movie_id}"

    def _serialize(self, value: T) -> Any:
        return value

    def _deserialize(self, data: Any) -> Optional[T]:
        return data

    def _decode(self, raw: Optional[str]) -> Optional[T]:
        if not raw:
            return None
        try:
            return self._deserialize(json.loads(raw))
        except (ValueError, TypeError, KeyError, AttributeError):
            return None

    async def get_many(self, movie_ids: Iterable[int]) -> Dict[int, T]:
        ids = list(dict.fromkeys(movie_ids))
        if not ids or self._r is None:
            return {}
        pipe = self._r.pipeline()
        for mid in ids:
            pipe.get(self._key(mid))
        try:
            results = await pipe.execute()
        except RedisError as e:
            log.warning("cache read failed for %s: %r", self._ns, e)
            return {}
        out: Dict[int, T] = {}
        for mid, raw in zip(ids, results):
            value = self._decode(raw)
            if value is not None:
                out[mid] = value
        return out

    async def set_many(self, values: Dict[int, T], ttl_sec: Optional[int] = None) -> None:
        if not values or self._r is None:
            return
        ttl = int(ttl_sec or self._default_ttl)
        pipe = self._r.pipeline()
        for mid, value in values.items():
            payload = json.dumps(self._serialize(value), separators=(",", ":"))
            pipe.set(self._key(mid), payload, ex=ttl)
        try:
            await pipe.execute()
        except RedisError as e:
            log.warning("cache write failed for %s: %r", self._ns, e)
