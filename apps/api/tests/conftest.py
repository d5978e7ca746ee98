from itertools import product
from typing import Any, Dict, Iterable, List, Optional

import pytest
from fastapi.testclient import TestClient

from cinecircle_core.types import Audience
from cinecircle_profile.types import GenreAffinity, GroupPreferenceProfile
from cinecircle_ranking.types import Candidate


@pytest.fixture
def anyio_backend():
    return "asyncio"


# ---------- Supabase ----------
class _FakeResp:
    def __init__(self, data):
        self.data = data


class _FakeQuery:
    def __init__(self, client: "FakeSupabaseClient", table: str):
        self._client = client
        self._table = table
        self._filters: List = []
        self._order: Optional[tuple] = None
        self._limit: Optional[int] = None
        self._op = "select"
        self._payload: List[Dict[str, Any]] = []

    # Write chains
    def insert(self, rows):
        self._op = "insert"
        self._payload = rows if isinstance(rows, list) else [rows]
        return self

    def delete(self):
        self._op = "delete"
        return self

    # Read chain
    def select(self, _cols: str = "*"):
        return self

    def in_(self, col: str, values: Iterable):
        allowed = set(values)
        self._filters.append(lambda r: r.get(col) in allowed)
        return self

    def eq(self, col: str, value):
        self._filters.append(lambda r: r.get(col) == value)
        return self

    def lt(self, col: str, value):
        self._filters.append(lambda r: r.get(col) is not None and r[col] < value)
        return self

    def gte(self, col: str, value):
        self._filters.append(lambda r: r.get(col) is not None and r[col] >= value)
        return self

    def lte(self, col: str, value):
        self._filters.append(lambda r: r.get(col) is not None and r[col] <= value)
        return self

    def order(self, col: str, desc: bool = False):
        self._order = (col, desc)
        return self

    def limit(self, n: int):
        self._limit = n
        return self

    def _matching(self) -> List[Dict[str, Any]]:
        return [r for r in self._client.tables.get(self._table, []) if all(f(r) for f in self._filters)]

    def execute(self):
        self._client.calls.append((self._op, self._table))
        if self._table in self._client.failing:
            raise RuntimeError(f"{self._table} unavailable")
        if self._op == "insert":
            self._client.inserted.setdefault(self._table, []).extend(self._payload)
            return _FakeResp(self._payload)
        if self._op == "delete":
            doomed = self._matching()
            self._client.deleted.setdefault(self._table, []).extend(doomed)
            self._client.tables[self._table] = [
                r for r in self._client.tables.get(self._table, []) if r not in doomed
            ]
            return _FakeResp(doomed)
        rows = self._matching()
        if self._order:
            col, desc = self._order
            rows = sorted(rows, key=lambda r: r.get(col) or 0, reverse=desc)
        if self._limit is not None:
            rows = rows[: self._limit]
        return _FakeResp(rows)


class _FakeRpc:
    def __init__(self, client: "FakeSupabaseClient", name: str, params: dict):
        self._client = client
        self._name = name
        self._params = params

    def execute(self):
        self._client.calls.append(("rpc", self._name))
        if self._name in self._client.failing:
            raise RuntimeError(f"{self._name} unavailable")
        return _FakeResp(list(self._client.rpcs.get(self._name, [])))


class FakeSupabaseClient:
    def __init__(
        self,
        tables: Optional[Dict[str, List[Dict[str, Any]]]] = None,
        rpcs: Optional[Dict[str, List[Dict[str, Any]]]] = None,
        failing: Iterable[str] = (),
    ):
        self.tables = {k: list(v) for k, v in (tables or {}).items()}
        self.rpcs = dict(rpcs or {})
        self.failing = set(failing)
        self.calls: List[tuple] = []
        self.inserted: Dict[str, List[Dict[str, Any]]] = {}
        self.deleted: Dict[str, List[Dict[str, Any]]] = {}

    def table(self, name: str):
        # New chain per call so filters never leak between queries
        return _FakeQuery(self, name)

    def rpc(self, name: str, params: dict):
        return _FakeRpc(self, name, params)


# ---------- TMDB ----------
_WORDS_A = ["Silent", "Golden", "Broken", "Hidden", "Crimson", "Electric", "Midnight", "Paper"]
_WORDS_B = ["Harbor", "Garden", "Signal", "Empire", "Orchard", "Voyage", "Mirror", "Frontier"]
TITLES = [f"{a} {b}" for a, b in product(_WORDS_A, _WORDS_B)]


def tmdb_movie(movie_id: int, **overrides) -> Dict[str, Any]:
    data = {
        "id": movie_id,
        "title": TITLES[movie_id % len(TITLES)],
        "genre_ids": [18],
        "release_date": "2015-06-01",
        "popularity": 40.0,
        "vote_average": 7.2,
        "vote_count": 3000,
        "overview": "A story worth telling.",
        "poster_path": f"/poster{movie_id}.jpg",
    }
    data.update(overrides)
    return data


class FakeTMDBClient:
    """Serves the same result page for every discover call unless ``pages`` says otherwise."""

    def __init__(
        self,
        results: Optional[List[Dict[str, Any]]] = None,
        *,
        fail: bool = False,
        details: Optional[Dict[int, Dict[str, Any]]] = None,
        credits: Optional[Dict[int, Dict[str, Any]]] = None,
    ):
        self.results = list(results or [])
        self.fail = fail
        self.details = dict(details or {})
        self.credits = dict(credits or {})
        self.discover_calls: List[Dict[str, Any]] = []
        self.detail_calls: List[int] = []
        self.credit_calls: List[int] = []

    async def discover(self, page: int = 1, **params):
        self.discover_calls.append({"page": page, **params})
        return None if self.fail else list(self.results)

    async def popular(self, page: int = 1):
        return None if self.fail else list(self.results)

    async def top_rated(self, page: int = 1):
        return None if self.fail else list(self.results)

    async def fetch_movies_by_ids(self, movie_ids):
        ids = list(movie_ids)
        self.detail_calls.extend(ids)
        return [self.details[m] for m in ids if m in self.details]

    async def movie_credits(self, movie_id: int):
        self.credit_calls.append(movie_id)
        return self.credits.get(movie_id)

    async def aclose(self):
        return None


# ---------- Redis ----------
class _FakePipeline:
    def __init__(self, redis: "FakeRedis"):
        self._redis = redis
        self._ops: List[tuple] = []

    def get(self, key):
        self._ops.append(("get", key))
        return self

    def set(self, key, value, ex=None):
        self._ops.append(("set", key, value, ex))
        return self

    async def execute(self):
        if self._redis.broken:
            from redis.exceptions import ConnectionError

            raise ConnectionError("redis down")
        out = []
        for op in self._ops:
            if op[0] == "get":
                out.append(self._redis.store.get(op[1]))
            else:
                self._redis.store[op[1]] = op[2]
                self._redis.ttls[op[1]] = op[3]
                out.append(True)
        return out


class FakeRedis:
    def __init__(self, broken: bool = False):
        self.store: Dict[str, Any] = {}
        self.ttls: Dict[str, Optional[int]] = {}
        self.broken = broken

    def pipeline(self):
        return _FakePipeline(self)

    def _check(self):
        if self.broken:
            from redis.exceptions import ConnectionError

            raise ConnectionError("redis down")

    async def get(self, key):
        self._check()
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        self._check()
        self.store[key] = value
        self.ttls[key] = ex
        return True

    async def delete(self, key):
        self._check()
        self.store.pop(key, None)
        return 1


# ---------- Builders ----------
def make_candidate(movie_id: int, **overrides) -> Candidate:
    fields = dict(
        id=movie_id,
        title=TITLES[movie_id % len(TITLES)],
        genre_ids=(18,),
        release_date="2015-06-01",
        popularity=40.0,
        vote_average=7.2,
        vote_count=3000,
        overview="A story worth telling.",
        has_poster=True,
    )
    fields.update(overrides)
    return Candidate(**fields)


def make_profile(member_ids=("u1", "u2"), **overrides) -> GroupPreferenceProfile:
    fields = dict(member_ids=tuple(member_ids), audience=Audience.ANYONE)
    fields.update(overrides)
    return GroupPreferenceProfile(**fields)


def genre(genre_id: int, avg: float = 80.0, raters: int = 10, ratings: int = 20) -> GenreAffinity:
    return GenreAffinity(genre_id=genre_id, avg_score=avg, rater_count=raters, rating_count=ratings)


# ---------- API ----------
USER_ID = "00000000-0000-0000-0000-000000000001"


@pytest.fixture()
def fake_supabase():
    return FakeSupabaseClient()


@pytest.fixture()
def fake_tmdb():
    return FakeTMDBClient([tmdb_movie(i) for i in range(1, 41)])


@pytest.fixture()
def test_client(fake_supabase, fake_tmdb):
    from app.main import app  # type: ignore
    from app.deps.deps import get_tmdb_client  # type: ignore
    from app.deps.supabase_client import (  # type: ignore
        get_current_user_id,
        get_supabase_client,
    )

    app.dependency_overrides[get_supabase_client] = lambda: fake_supabase
    app.dependency_overrides[get_current_user_id] = lambda: USER_ID
    app.dependency_overrides[get_tmdb_client] = lambda: fake_tmdb

    try:
        with TestClient(app) as client:
            yield client
    finally:
        app.dependency_overrides.clear()
