import asyncio
import gzip
import json

import pytest

from app.infrastructure.cache.session_store import ShuffleSessionStore
from cinecircle_cache.caches import CreditsCache, CriticScoreCache, MoodScoreCache
from cinecircle_core.fanout import Branch, gather_settled
from cinecircle_ranking.types import CrewCredits, CriticScores
from cinecircle_recommendation.session import ShuffleSession

from conftest import FakeRedis


async def _value(v):
    return v


async def _boom():
    raise RuntimeError("boom")


async def _slow():
    await asyncio.sleep(5)
    return "late"


@pytest.mark.anyio
async def test_gather_settled_substitutes_defaults_for_failures():
    fan = await gather_settled(
        [
            Branch("ok", _value([1, 2])),
            Branch("broken", _boom(), []),
            Branch("slow", _slow(), "default"),
        ],
        timeout=0.05,
    )
    assert fan["ok"] == [1, 2]
    assert fan["broken"] == []
    assert fan["slow"] == "default"
    assert fan.failed == {"broken", "slow"}


@pytest.mark.anyio
async def test_json_caches_read_and_write_through_redis():
    redis = FakeRedis()
    critic = CriticScoreCache(client=redis)
    await critic.set_many({7: CriticScores(imdb=7.9, rotten_tomatoes=91)})
    assert redis.ttls["cinecircle:critic:7"] == 60 * 60 * 24 * 7
    got = await critic.get_many([7, 8])
    assert got == {7: CriticScores(imdb=7.9, rotten_tomatoes=91)}

    credits = CreditsCache(client=redis)
    await credits.set_many({3: CrewCredits(director_ids=(1,), actor_ids=(4, 5))})
    assert json.loads(redis.store["cinecircle:credits:3"]) == {"directors": [1], "actors": [4, 5]}
    assert (await credits.get_many([3]))[3].actor_ids == (4, 5)


@pytest.mark.anyio
async def test_caches_treat_bad_payloads_and_outages_as_misses():
    redis = FakeRedis()
    redis.store["cinecircle:mood:1"] = "not json"
    redis.store["cinecircle:mood:2"] = json.dumps({"funny": 1.7, "scary": "x"})
    moods = MoodScoreCache(client=redis)
    assert await moods.get_many([1, 2]) == {2: {"funny": 1.0}}

    assert await MoodScoreCache(client=FakeRedis(broken=True)).get_many([1]) == {}
    await MoodScoreCache(client=FakeRedis(broken=True)).set_many({1: {"funny": 0.5}})
    assert await MoodScoreCache(client=None).get_many([1]) == {}


def test_shuffle_session_advance_accumulates_shown_ids():
    s = ShuffleSession()
    s2 = s.advance([5, 6])
    s3 = s2.advance([6, 7])
    assert s.page == 1 and s.shown_ids == ()
    assert s3.page == 3
    assert s3.shown_ids == (5, 6, 7)


@pytest.mark.anyio
async def test_session_store_roundtrip_and_corrupt_payload():
    redis = FakeRedis()
    store = ShuffleSessionStore(client=redis, ttl_sec=60)
    await store.put("abc", ShuffleSession(shown_ids=(1, 2), page=2))
    assert redis.ttls["cinecircle:shuffle:abc"] == 60
    assert json.loads(gzip.decompress(redis.store["cinecircle:shuffle:abc"])) == {
        "shown_ids": [1, 2],
        "page": 2,
    }
    assert await store.get("abc") == ShuffleSession(shown_ids=(1, 2), page=2)

    redis.store["cinecircle:shuffle:bad"] = b"garbage"
    assert await store.get("bad") is None
    assert "cinecircle:shuffle:bad" not in redis.store
    assert await ShuffleSessionStore(client=FakeRedis(broken=True)).get("abc") is None
