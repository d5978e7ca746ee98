from app.deps.deps import get_tmdb_client  # type: ignore
from app.main import app  # type: ignore

from conftest import USER_ID, FakeTMDBClient


def _join(fake_supabase, collective_id, *user_ids):
    fake_supabase.tables.setdefault("collective_members", []).extend(
        {"collective_id": collective_id, "user_id": uid} for uid in user_ids
    )


def test_health(test_client):
    r = test_client.get("/health")
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "ok"
    assert {"service", "tmdb", "redis"} <= set(body)


def test_collective_pick_returns_five_picks(test_client, fake_supabase):
    _join(fake_supabase, "c1", USER_ID, "friend")
    r = test_client.post(
        "/collectives/c1/tonights-pick",
        json={"member_ids": [USER_ID, "friend"], "moods": ["funny"], "audience": "anyone"},
    )
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["status"] == "ok"
    assert len(body["picks"]) == 5
    first = body["picks"][0]
    assert {"movie_id", "title", "score", "breakdown", "reasoning"} <= set(first)
    assert {"signal", "delta", "rationale"} == set(first["breakdown"][0])
    assert body["session"]["page"] == 2
    assert len(body["session"]["shown_ids"]) == 5
    # no Redis in tests: session travels inline only
    assert body["session_id"] is None


def test_inline_session_is_honored(test_client, fake_supabase):
    _join(fake_supabase, "c1", USER_ID)
    session = {"shown_ids": [1, 2, 3], "page": 4}
    r = test_client.post(
        "/collectives/c1/tonights-pick", json={"member_ids": [USER_ID], "session": session}
    )
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["session"]["page"] == 5
    assert body["session"]["shown_ids"][:3] == [1, 2, 3]


def test_empty_member_selection_is_rejected(test_client, fake_supabase):
    _join(fake_supabase, "c1", USER_ID)
    r = test_client.post("/collectives/c1/tonights-pick", json={"member_ids": []})
    assert r.status_code == 422
    assert r.json()["error"]["code"] == "rule_violation"


def test_unknown_collective_is_not_found(test_client):
    r = test_client.post("/collectives/nope/tonights-pick", json={"member_ids": [USER_ID]})
    assert r.status_code == 404
    assert r.json()["error"]["code"] == "not_found"


def test_caller_must_belong_to_collective(test_client, fake_supabase):
    _join(fake_supabase, "c1", "someone-else")
    r = test_client.post("/collectives/c1/tonights-pick", json={"member_ids": ["someone-else"]})
    assert r.status_code == 403


def test_selected_members_must_belong_to_collective(test_client, fake_supabase):
    _join(fake_supabase, "c1", USER_ID, "friend")
    r = test_client.post(
        "/collectives/c1/tonights-pick", json={"member_ids": [USER_ID, "stranger"]}
    )
    assert r.status_code == 403
    assert r.json()["error"]["code"] == "forbidden"


def test_invalid_constraints_fail_validation(test_client, fake_supabase):
    _join(fake_supabase, "c1", USER_ID)
    r = test_client.post(
        "/collectives/c1/tonights-pick", json={"member_ids": [USER_ID], "moods": ["sleepy"]}
    )
    assert r.status_code == 422


def test_solo_pick_needs_no_collective(test_client, fake_tmdb):
    r = test_client.post("/tonights-pick", json={"max_runtime": 150})
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "ok"
    assert all(c["runtime_lte"] == 150 for c in fake_tmdb.discover_calls)


def test_unreachable_catalogs_return_503(test_client, fake_supabase):
    fake_supabase.failing.add("movie_catalog_stats")
    app.dependency_overrides[get_tmdb_client] = lambda: FakeTMDBClient(fail=True)
    r = test_client.post("/tonights-pick", json={})
    assert r.status_code == 503
    assert r.json()["error"]["code"] == "pipeline_failure"
