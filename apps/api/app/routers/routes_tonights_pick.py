"""
Tonight's pick endpoints. Group mode under a collective, solo mode for the caller.
"""

from typing import Optional, Sequence

from fastapi import APIRouter, Depends

from app.deps.deps_pipeline import get_pipeline
from app.deps.deps_redis_caches import get_session_store
from app.deps.supabase_client import get_collective_repo, get_current_user_id
from app.infrastructure.cache.session_store import ShuffleSessionStore
from app.schemas import SoloPickRequest, CollectivePickRequest, TonightsPickResponse
from cinecircle_core.errors import Forbidden, NotFound, RuleViolation
from cinecircle_profile.profile_repo import SupabaseCollectiveRepo
from cinecircle_recommendation.pipeline import TonightPickRequest, TonightsPickPipeline
from cinecircle_recommendation.session import ShuffleSession

router = APIRouter(tags=["tonights-pick"])


async def _resolve_session(
    req: SoloPickRequest, user_id: str, store: Optional[ShuffleSessionStore]
) -> tuple[ShuffleSession, Optional[str]]:
    if req.session is not None:
        return req.session, req.session_id
    if store is None:
        return ShuffleSession(), None
    if req.session_id:
        stored = await store.get(f"{user_id}:{req.session_id}")
        return stored or ShuffleSession(), req.session_id
    return ShuffleSession(), store.new_id()


async def _run(
    *,
    req: SoloPickRequest,
    user_id: str,
    member_ids: Sequence[str],
    collective_id: Optional[str],
    pipeline: TonightsPickPipeline,
    store: Optional[ShuffleSessionStore],
) -> TonightsPickResponse:
    session, session_id = await _resolve_session(req, user_id, store)
    request = TonightPickRequest(
        member_ids=tuple(member_ids),
        constraints=req.constraints(),
        collective_id=collective_id,
        session=session,
    )
    result = await pipeline.run(request)

    if store is not None and session_id:
        await store.put(f"{user_id}:{session_id}", result.session)
    return TonightsPickResponse.from_result(result, session_id)


@router.post(
    "/collectives/{collective_id}/tonights-pick", response_model=TonightsPickResponse
)
async def collective_tonights_pick(
    collective_id: str,
    req: CollectivePickRequest,
    user_id: str = Depends(get_current_user_id),
    repo: SupabaseCollectiveRepo = Depends(get_collective_repo),
    pipeline: TonightsPickPipeline = Depends(get_pipeline),
    store: Optional[ShuffleSessionStore] = Depends(get_session_store),
):
    """Five picks for the selected members of a collective."""
    member_ids = list(dict.fromkeys(req.member_ids))
    if not member_ids:
        raise RuleViolation("Select at least one member")

    collective_members = set(await repo.fetch_collective_member_ids(collective_id))
    if not collective_members:
        raise NotFound("Collective not found")
    if user_id not in collective_members:
        raise Forbidden("You are not a member of this collective")
    outside = [m for m in member_ids if m not in collective_members]
    if outside:
        raise Forbidden(f"{len(outside)} selected member(s) are not in this collective")

    return await _run(
        req=req,
        user_id=user_id,
        member_ids=member_ids,
        collective_id=collective_id,
        pipeline=pipeline,
        store=store,
    )


@router.post("/tonights-pick", response_model=TonightsPickResponse)
async def solo_tonights_pick(
    req: SoloPickRequest,
    user_id: str = Depends(get_current_user_id),
    pipeline: TonightsPickPipeline = Depends(get_pipeline),
    store: Optional[ShuffleSessionStore] = Depends(get_session_store),
):
    """Five picks for the caller alone."""
    return await _run(
        req=req,
        user_id=user_id,
        member_ids=[user_id],
        collective_id=None,
        pipeline=pipeline,
        store=store,
    )
