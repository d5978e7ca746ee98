from fastapi import Depends

from app.deps.deps import get_background_tasks, get_settings, get_tmdb_client
from app.deps.deps_redis_caches import (
    get_advisory_cache,
    get_credits_cache,
    get_critic_cache,
    get_mood_cache,
)
from app.deps.supabase_client import get_collective_repo, get_history_repo
from cinecircle_profile.profile_service import ProfileAggregator
from cinecircle_recommendation.credits import CreditEnrichmentStage
from cinecircle_recommendation.enrichment import PoolEnricher
from cinecircle_recommendation.pipeline import TonightsPickPipeline
from cinecircle_recommendation.selection import FinalSelectionStage
from cinecircle_sourcing.candidate_sourcer import CandidateSourcer


def get_pipeline(
    settings=Depends(get_settings),
    tmdb=Depends(get_tmdb_client),
    repo=Depends(get_collective_repo),
    history=Depends(get_history_repo),
    background=Depends(get_background_tasks),
    critic_cache=Depends(get_critic_cache),
    mood_cache=Depends(get_mood_cache),
    credits_cache=Depends(get_credits_cache),
    advisory_cache=Depends(get_advisory_cache),
) -> TonightsPickPipeline:
    """Pipeline bound to the caller's Supabase client; shared clients come from app state."""
    timeout = settings.fetch_timeout_s
    return TonightsPickPipeline(
        aggregator=ProfileAggregator(repo, timeout=timeout),
        sourcer=CandidateSourcer(tmdb, repo, timeout=timeout),
        enricher=PoolEnricher(
            repo=repo,
            critic_cache=critic_cache,
            mood_cache=mood_cache,
            timeout=timeout,
        ),
        credits=CreditEnrichmentStage(
            tmdb=tmdb, cache=credits_cache, background=background, timeout=timeout
        ),
        selection=FinalSelectionStage(
            advisory_cache=advisory_cache,
            history=history,
            background=background,
            purge_probability=settings.history_purge_probability,
            final_count=settings.final_count,
        ),
        budget=settings.pipeline_timeout_s,
    )
