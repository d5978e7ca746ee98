from __future__ import annotations

from dataclasses import dataclass

import redis.asyncio as redis
from redis.asyncio import Redis
from redis.backoff import ExponentialBackoff
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError
from redis.retry import Retry

# Stale pooled connections surface as connection/timeout errors or OSError
_RETRY_ON = [RedisConnectionError, RedisTimeoutError, ConnectionResetError, OSError]


@dataclass(frozen=True)
class RedisClients:
    """Two clients on one URL.
    - bytes: decode_responses=False, for gzip shuffle sessions
    - text:  decode_responses=True, for the per-movie JSON caches
    """

    bytes: Redis
    text: Redis

    async def aclose(self) -> None:
        await self.bytes.aclose()
        await self.text.aclose()


def make_redis_clients(
    redis_url: str, *, socket_timeout: float = 2.0, retries: int = 2
) -> RedisClients:
    # Caches are optional; keep timeouts short so a slow Redis reads as a miss
    opts = dict(
        health_check_interval=15,
        socket_keepalive=True,
        socket_connect_timeout=socket_timeout,
        socket_timeout=socket_timeout,
        retry=Retry(ExponentialBackoff(cap=0.25, base=0.05), retries=retries),
        retry_on_error=_RETRY_ON,
    )
    return RedisClients(
        bytes=redis.from_url(redis_url, decode_responses=False, **opts),
        text=redis.from_url(redis_url, decode_responses=True, **opts),
    )
