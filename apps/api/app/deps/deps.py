from dataclasses import dataclass
from typing import Any, cast

from fastapi import HTTPException, Request, status

from cinecircle_core.errors import PipelineFailure
from cinecircle_core.tasks import BackgroundTasks
from cinecircle_tmdb.tmdb_client import TMDBClient


def _get_state_attr(request: Request, name: str, error_detail: str) -> Any:
    value = getattr(request.app.state, name, None)
    if value is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=error_detail,
        )
    return value


def get_settings(request: Request) -> Any:
    return _get_state_attr(request, "settings", "Settings not initialized")


def get_tmdb_client(request: Request) -> TMDBClient:
    # Without an external catalog there is nothing to recommend from
    tmdb = getattr(request.app.state, "tmdb", None)
    if tmdb is None:
        raise PipelineFailure("External movie catalog is not configured")
    return cast(TMDBClient, tmdb)


def get_background_tasks(request: Request) -> BackgroundTasks:
    return cast(
        BackgroundTasks,
        _get_state_attr(request, "background", "Background tasks not initialized"),
    )


@dataclass(frozen=True)
class SupabaseCreds:
    url: str
    api_key: str


def get_supabase_creds(request: Request) -> SupabaseCreds:
    return SupabaseCreds(
        url=getattr(request.app.state, "supabase_url", ""),
        api_key=getattr(request.app.state, "supabase_api_key", ""),
    )
