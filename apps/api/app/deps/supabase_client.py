from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from supabase import Client, create_client

from app.deps.deps import SupabaseCreds, get_supabase_creds
from cinecircle_profile.profile_repo import SupabaseCollectiveRepo
from cinecircle_recommendation.history_repo import SupabaseHistoryRepo


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


def require_bearer_token(authorization: Optional[str] = Header(None)) -> str:
    if not authorization:
        raise _unauthorized("Missing Authorization header")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise _unauthorized("Invalid Authorization header format")
    return token.strip()


def get_supabase_client(
    user_token: str = Depends(require_bearer_token),
    creds: SupabaseCreds = Depends(get_supabase_creds),
) -> Client:
    """Supabase client acting as the caller, so row-level security applies to every query."""
    try:
        client = create_client(creds.url, creds.api_key)
        client.postgrest.auth(user_token)
        return client
    except Exception as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Supabase init failed: {exc}",
        )


def get_current_user_id(
    client: Client = Depends(get_supabase_client),
    user_token: str = Depends(require_bearer_token),
) -> str:
    try:
        resp = client.auth.get_user(user_token)
    except Exception as exc:
        raise _unauthorized(f"Failed to resolve user: {exc}")
    user = getattr(resp, "user", None)
    user_id = getattr(user, "id", None)
    if not user_id:
        raise _unauthorized("Invalid or expired token")
    return str(user_id)


def get_collective_repo(sb=Depends(get_supabase_client)) -> SupabaseCollectiveRepo:
    return SupabaseCollectiveRepo(sb)


def get_history_repo(sb=Depends(get_supabase_client)) -> SupabaseHistoryRepo:
    return SupabaseHistoryRepo(sb)
