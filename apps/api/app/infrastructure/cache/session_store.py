from __future__ import annotations

import gzip
import json
import logging
import uuid
import zlib

from pydantic import ValidationError
from redis.asyncio import Redis
from redis.exceptions import RedisError

from cinecircle_core.config import SESSION_TTL_S
from cinecircle_recommendation.session import ShuffleSession

log = logging.getLogger(__name__)


class ShuffleSessionStore:
    """
    Redis store for shuffle sessions: {namespace}{session_id} -> gzip(JSON).

    Sessions are short-lived; a Redis error or an undecodable payload reads as
    "no session" and the caller starts from page 1.
    """

    def __init__(
        self,
        *,
        client: Redis,
        namespace: str = "cinecircle:shuffle:",
        ttl_sec: int = SESSION_TTL_S,
        compression_level: int = 5,
    ) -> None:
        # client should be created with decode_responses=False
        self._r = client
        self._ns = namespace
        self._ttl = int(ttl_sec)
        self._level = int(compression_level)

    @staticmethod
    def new_id() -> str:
        return uuid.uuid4().hex

    def _key(self, session_id: str) -> str:
        return f"{self._ns}{session_id}"

    # ----- codec -----

    def _encode(self, session: ShuffleSession) -> bytes:
        raw = json.dumps(session.model_dump(mode="json"), separators=(",", ":"))
        return gzip.compress(raw.encode("utf-8"), compresslevel=self._level)

    def _decode(self, b: bytes) -> ShuffleSession | None:
        try:
            return ShuffleSession.model_validate(json.loads(gzip.decompress(b)))
        except (OSError, zlib.error, ValueError, ValidationError):
            return None

    # ----- api -----

    async def get(self, session_id: str) -> ShuffleSession | None:
        key = self._key(session_id)
        try:
            b = await self._r.get(key)
        except RedisError as e:
            log.warning("shuffle session read failed for %s: %r", session_id, e)
            return None
        if not b:
            return None
        session = self._decode(b)
        if session is None:
            await self.delete(session_id)
        return session

    async def put(self, session_id: str, session: ShuffleSession) -> None:
        try:
            await self._r.set(self._key(session_id), self._encode(session), ex=self._ttl)
        except RedisError as e:
            log.warning("shuffle session write failed for %s: %r", session_id, e)

    async def delete(self, session_id: str) -> None:
        try:
            await self._r.delete(self._key(session_id))
        except RedisError:
            return
