import pytest

from arbcycles.common.models import Pool, Token
from arbcycles.ingest.explorer import PoolExplorer
from arbcycles.ingest.subgraph_client import PoolBatch
from arbcycles.state_store.memory_store import MemoryPoolStore


def _batch(*pairs):
    batch = PoolBatch()
    for pid, t0, t1 in pairs:
        batch.pools.append(Pool(id=pid, token0_id=t0, token1_id=t1, token0_price="1", token1_price="1", fee_tier="500"))
        for t in (t0, t1):
            batch.tokens.setdefault(t, Token(id=t, symbol=t.upper(), decimals=18))
    return batch


class FakeClient:
    def __init__(self, graph, fail=()):
        self.graph = graph
        self.fail = set(fail)
        self.calls = []

    async def fetch_pools_for_token(self, token_address, n_pools=1000, min_tvl="1000"):
        self.calls.append(token_address)
        if token_address in self.fail:
            raise RuntimeError("worker blew up")
        return self.graph.get(token_address, PoolBatch())


@pytest.mark.asyncio
async def test_crawls_reachable_pools_once():
    graph = {
        "usd": _batch(("p1", "usd", "eth"), ("p2", "btc", "usd")),
        "eth": _batch(("p1", "usd", "eth"), ("p3", "eth", "btc")),
        "btc": _batch(("p2", "btc", "usd"), ("p3", "eth", "btc"), ("p4", "btc", "dai")),
        "dai": _batch(("p4", "btc", "dai")),
    }
    client = FakeClient(graph)
    store = MemoryPoolStore()
    await store.save_pool(Pool(id="stale", token0_id="x", token1_id="y"))

    saved = await PoolExplorer(client, store, workers=2).run("USD")

    assert saved == 4
    assert sorted(p.id for p in await store.all_pools()) == ["p1", "p2", "p3", "p4"]
    assert sorted(client.calls) == ["btc", "dai", "eth", "usd"]
    assert (await store.find_token("dai")).symbol == "DAI"
    assert [p.id for p in await store.find_pools_for_token("btc")] == ["p2", "p3", "p4"]


@pytest.mark.asyncio
async def test_worker_failure_does_not_stop_crawl():
    graph = {
        "usd": _batch(("p1", "usd", "eth"), ("p2", "usd", "btc")),
        "btc": _batch(("p3", "btc", "dai")),
    }
    client = FakeClient(graph, fail={"eth"})
    store = MemoryPoolStore()
    saved = await PoolExplorer(client, store, workers=10).run("usd")
    assert saved == 3
    assert "dai" in client.calls


@pytest.mark.asyncio
async def test_recrawl_refreshes_token_records():
    store = MemoryPoolStore([Token(id="usd", symbol="OLD", decimals=6), Token(id="gone", decimals=8)])
    client = FakeClient({"usd": _batch(("p1", "usd", "eth"))})
    await PoolExplorer(client, store).run("usd")
    token = await store.find_token("usd")
    assert (token.symbol, token.decimals) == ("USD", 18)
    assert not await store.has_token("gone")
