import json

import pytest

from arbcycles.common.config import Settings
from arbcycles.main import run

SNAPSHOT = {
    "tokens": [
        {"id": "r", "symbol": "ROOT", "decimals": 0},
        {"id": "x", "symbol": "X", "decimals": 0},
    ],
    "pools": [
        {"id": "p1", "token0_id": "r", "token1_id": "x", "token0_price": "0.5", "token1_price": "2",
         "fee_tier": "0", "token0_balance": "1000000", "token1_balance": "1000000"},
        {"id": "p2", "token0_id": "x", "token1_id": "r", "token0_price": "1.8", "token1_price": "0.55",
         "fee_tier": "0", "token0_balance": "1000000", "token1_balance": "1000000"},
    ],
}


def _settings(**kw):
    base = dict(root_token_address="r", root_token_symbol="ROOT", root_token_decimals=0, eth_node_url=None)
    base.update(kw)
    return Settings(**base)


@pytest.fixture
def snapshot_path(tmp_path):
    path = tmp_path / "graph.json"
    path.write_text(json.dumps(SNAPSHOT))
    return path


@pytest.mark.asyncio
async def test_snapshot_run_reports_cycles(snapshot_path):
    rows = await run(
        ["--snapshot", str(snapshot_path), "--no-refresh-data", "--no-fetch-balances", "--find-cycles"],
        settings=_settings(),
    )
    assert [r.pool_ids for r in rows] == [["p1", "p2"], ["p2", "p1"]]
    assert rows[0].route == ["r", "0", "x", "0", "r"]
    assert rows[0].projected_profit == "1.10000"


@pytest.mark.asyncio
async def test_cli_overrides_search_settings(snapshot_path):
    # a gate of 2M root units exceeds every pool balance
    rows = await run(["--snapshot", str(snapshot_path), "--min-root-amount", "2000000"], settings=_settings())
    assert rows == []

    rows = await run(["--snapshot", str(snapshot_path), "--limit", "1"], settings=_settings())
    assert len(rows) == 1


@pytest.mark.asyncio
async def test_dump_snapshot_without_search(snapshot_path, tmp_path):
    out = tmp_path / "out" / "graph.json"
    rows = await run(
        ["--snapshot", str(snapshot_path), "--dump-snapshot", str(out), "--no-find-cycles"],
        settings=_settings(),
    )
    assert rows == []
    dumped = json.loads(out.read_text())
    assert sorted(p["id"] for p in dumped["pools"]) == ["p1", "p2"]


@pytest.mark.asyncio
async def test_fetch_balances_requires_node_url(snapshot_path):
    with pytest.raises(SystemExit):
        await run(["--snapshot", str(snapshot_path), "--fetch-balances"], settings=_settings())
