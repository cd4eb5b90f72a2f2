import fnmatch

import pytest

from arbcycles.common.models import Pool, Token
from arbcycles.state_store.interface import TokenNotFound
from arbcycles.state_store.pool_store import RedisPoolStore


class FakeRedis:
    def __init__(self):
        self.store = {}
        self.sets = {}

    async def get(self, key):
        return self.store.get(key)

    async def set(self, key, value):
        self.store[key] = value

    async def mget(self, keys):
        return [self.store.get(k) for k in keys]

    async def delete(self, *keys):
        for key in keys:
            self.store.pop(key, None)
            self.sets.pop(key, None)

    async def sadd(self, key, *members):
        self.sets.setdefault(key, set()).update(members)

    async def smembers(self, key):
        return set(self.sets.get(key, set()))

    async def scan(self, cursor=0, match="*", count=10):
        keys = [k for k in list(self.store) + list(self.sets) if fnmatch.fnmatch(k, match)]
        return 0, keys

    async def aclose(self):
        return None


class BrokenRedis(FakeRedis):
    async def smembers(self, key):
        raise ConnectionError("redis down")

    async def get(self, key):
        raise ConnectionError("redis down")


def _pool(pid, t0, t1, **kw):
    return Pool(id=pid, token0_id=t0, token1_id=t1, token0_price="1", token1_price="1", fee_tier="500", **kw)


@pytest.mark.asyncio
async def test_save_and_find_pools_by_either_token():
    store = RedisPoolStore("redis://", prefix="test", client=FakeRedis())
    await store.start()
    await store.save_pool(_pool("0xp1", "0xa", "0xb"))
    await store.save_pool(_pool("0xp2", "0xb", "0xc"))

    assert [p.id for p in await store.find_pools_for_token("0xb")] == ["0xp1", "0xp2"]
    assert [p.id for p in await store.find_pools_for_token("0xA")] == ["0xp1"]
    assert await store.find_pools_for_token("0xdead") == []


@pytest.mark.asyncio
async def test_save_pool_is_upsert():
    store = RedisPoolStore("redis://", prefix="test", client=FakeRedis())
    await store.save_pool(_pool("0xp1", "0xa", "0xb"))
    await store.save_pool(_pool("0xp1", "0xa", "0xb", liquidity="42"))
    pools = await store.find_pools_for_token("0xa")
    assert len(pools) == 1
    assert pools[0].liquidity == "42"


@pytest.mark.asyncio
async def test_find_token_and_missing_token():
    store = RedisPoolStore("redis://", prefix="test", client=FakeRedis())
    await store.save_token(Token(id="0xa", symbol="AAA", decimals=18))
    token = await store.find_token("0xA")
    assert token.decimals == 18
    assert await store.has_token("0xa")
    assert not await store.has_token("0xb")
    with pytest.raises(TokenNotFound):
        await store.find_token("0xb")


@pytest.mark.asyncio
async def test_update_balances_and_clear():
    redis = FakeRedis()
    store = RedisPoolStore("redis://", prefix="test", client=redis)
    await store.save_token(Token(id="0xa", decimals=18))
    await store.save_pool(_pool("0xp1", "0xa", "0xb"))
    assert await store.update_balances("0xp1", token1_balance="123")
    pool = await store.find_pool("0xp1")
    assert (pool.token0_balance, pool.token1_balance) == ("", "123")
    assert not await store.update_balances("0xmissing", token0_balance="1")

    await store.clear_pool_data()
    assert await store.all_pools() == []
    assert await store.find_pools_for_token("0xa") == []
    assert not await store.has_token("0xa")


@pytest.mark.asyncio
async def test_corrupt_pool_entry_skipped():
    redis = FakeRedis()
    store = RedisPoolStore("redis://", prefix="test", client=redis)
    await store.save_pool(_pool("0xp1", "0xa", "0xb"))
    await store.save_pool(_pool("0xp2", "0xa", "0xc"))
    redis.store["test:pool:0xp2"] = "{not json"
    assert [p.id for p in await store.find_pools_for_token("0xa")] == ["0xp1"]


@pytest.mark.asyncio
async def test_storage_failure_degrades_to_no_data():
    store = RedisPoolStore("redis://", prefix="test", client=BrokenRedis())
    assert await store.find_pools_for_token("0xa") == []
    with pytest.raises(TokenNotFound):
        await store.find_token("0xa")


@pytest.mark.asyncio
async def test_close_releases_client():
    redis = FakeRedis()
    closed = []

    async def _aclose():
        closed.append(True)

    redis.aclose = _aclose
    store = RedisPoolStore("redis://", prefix="test", client=redis)
    await store.close()
    assert closed == [True]
    assert store._client is None
