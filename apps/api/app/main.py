import logging
import time
from contextlib import asynccontextmanager

from dotenv import find_dotenv, load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.utils import get_openapi
from fastapi.responses import JSONResponse
from pydantic_settings import BaseSettings, SettingsConfigDict

from cinecircle_cache.caches import (
    AdvisoryCache,
    CreditsCache,
    CriticScoreCache,
    MoodScoreCache,
)
from cinecircle_core.config import (
    FETCH_TIMEOUT_S,
    FINAL_COUNT,
    HISTORY_PURGE_PROBABILITY,
    PIPELINE_BUDGET_S,
    SESSION_TTL_S,
)
from cinecircle_core.errors import DomainError
from cinecircle_core.tasks import BackgroundTasks
from cinecircle_tmdb.tmdb_client import TMDBClient
from app.infrastructure.cache.redis_infra import make_redis_clients
from app.infrastructure.cache.session_store import ShuffleSessionStore
from .routers import all_routers

log = logging.getLogger(__name__)


class Settings(BaseSettings):
    app_name: str = "CineCircle Tonight's Pick API"
    # credentials
    supabase_url: str | None = None
    supabase_api_key: str | None = None
    tmdb_api_key: str | None = None
    # caches / sessions
    redis_url: str | None = None
    session_namespace: str = "cinecircle:shuffle:"
    session_ttl_sec: int = SESSION_TTL_S
    # pipeline knobs
    pipeline_timeout_s: float = PIPELINE_BUDGET_S
    fetch_timeout_s: float = FETCH_TIMEOUT_S
    tmdb_max_concurrency: int = 15
    history_purge_probability: float = HISTORY_PURGE_PROBABILITY
    final_count: int = FINAL_COUNT
    # env config
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


def _init_clients(app: FastAPI) -> None:
    settings: Settings = app.state.settings
    startup_t0 = time.perf_counter()

    missing = [
        name
        for name, value in {
            "SUPABASE_URL": settings.supabase_url,
            "SUPABASE_API_KEY": settings.supabase_api_key,
        }.items()
        if not (value and value.strip())
    ]
    if missing:
        log.warning("missing settings: %s", ", ".join(sorted(missing)))

    app.state.supabase_url = settings.supabase_url or ""
    app.state.supabase_api_key = settings.supabase_api_key or ""

    # No TMDB key is not a startup error; requests fail with 503 instead
    app.state.tmdb = (
        TMDBClient(
            api_key=settings.tmdb_api_key,
            max_connections=settings.tmdb_max_concurrency,
            timeout=settings.fetch_timeout_s,
        )
        if settings.tmdb_api_key
        else None
    )
    if app.state.tmdb is None:
        log.warning("TMDB_API_KEY not set; tonight's pick will be unavailable")

    clients = make_redis_clients(settings.redis_url) if settings.redis_url else None
    app.state.redis_clients = clients
    text = clients.text if clients else None
    app.state.critic_cache = CriticScoreCache(client=text)
    app.state.mood_cache = MoodScoreCache(client=text)
    app.state.credits_cache = CreditsCache(client=text)
    app.state.advisory_cache = AdvisoryCache(client=text)
    app.state.session_store = (
        ShuffleSessionStore(
            client=clients.bytes,
            namespace=settings.session_namespace,
            ttl_sec=settings.session_ttl_sec,
        )
        if clients
        else None
    )
    app.state.background = BackgroundTasks()

    log.info("startup took %.2fs", time.perf_counter() - startup_t0)


@asynccontextmanager
async def lifespan(app: FastAPI):
    load_dotenv(find_dotenv(), override=False)

    settings = Settings()
    app.state.settings = settings
    _init_clients(app)

    try:
        yield
    finally:
        await app.state.background.drain()
        if app.state.tmdb is not None:
            await app.state.tmdb.aclose()
        if app.state.redis_clients is not None:
            await app.state.redis_clients.aclose()


app = FastAPI(title="CineCircle Tonight's Pick API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    return JSONResponse(
        status_code=exc.status,
        content={"error": {"code": exc.code, "message": str(exc)}},
    )


def _custom_openapi():
    if app.openapi_schema:
        return app.openapi_schema
    schema = get_openapi(
        title=app.title,
        version="0.1.0",
        description="Group movie recommendations for collectives",
        routes=app.routes,
    )
    components = schema.setdefault("components", {})
    components.setdefault("securitySchemes", {})["BearerAuth"] = {
        "type": "http",
        "scheme": "bearer",
        "bearerFormat": "JWT",
    }
    for path_item in schema.get("paths", {}).values():
        for operation in path_item.values():
            operation.setdefault("security", []).append({"BearerAuth": []})
    app.openapi_schema = schema
    return app.openapi_schema


app.openapi = _custom_openapi


@app.get("/health")
def health():
    s = app.state.settings
    return {
        "status": "ok",
        "service": s.app_name,
        "tmdb": app.state.tmdb is not None,
        "redis": app.state.redis_clients is not None,
    }


for r in all_routers:
    app.include_router(r)
