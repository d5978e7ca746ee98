from typing import Optional, cast

from fastapi import Request

from app.infrastructure.cache.session_store import ShuffleSessionStore
from cinecircle_cache.caches import (
    AdvisoryCache,
    CreditsCache,
    CriticScoreCache,
    MoodScoreCache,
)


def _cache(request: Request, name: str):
    cache = getattr(request.app.state, name, None)
    if cache is None:
        raise RuntimeError(f"{name} not initialized")
    return cache


def get_critic_cache(request: Request) -> CriticScoreCache:
    return cast(CriticScoreCache, _cache(request, "critic_cache"))


def get_mood_cache(request: Request) -> MoodScoreCache:
    return cast(MoodScoreCache, _cache(request, "mood_cache"))


def get_credits_cache(request: Request) -> CreditsCache:
    return cast(CreditsCache, _cache(request, "credits_cache"))


def get_advisory_cache(request: Request) -> AdvisoryCache:
    return cast(AdvisoryCache, _cache(request, "advisory_cache"))


def get_session_store(request: Request) -> Optional[ShuffleSessionStore]:
    """None when Redis is not configured; callers then rely on inline sessions."""
    return getattr(request.app.state, "session_store", None)
