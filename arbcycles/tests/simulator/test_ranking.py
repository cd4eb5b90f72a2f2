import logging
from decimal import Decimal

import pytest

from arbcycles.common.models import Cycle, Pool, Token
from arbcycles.simulator.ranking import build_report, find_arbitrage_cycles, rank_cycles
from arbcycles.state_store.memory_store import MemoryPoolStore


def _loop(tag, price):
    """Two-pool loop r -> x -> r; empty when price is zero."""
    if price == 0:
        return Cycle(root_token="r", pools=[], max_price=Decimal(0))
    pools = [
        Pool(id=f"{tag}1", token0_id="r", token1_id="x", fee_tier="500"),
        Pool(id=f"{tag}2", token0_id="x", token1_id="r", fee_tier="3000"),
    ]
    return Cycle(root_token="r", pools=pools, max_price=Decimal(price))


def test_rank_orders_by_multiplier_descending():
    cycles = [_loop("a", "0.5"), _loop("b", "0"), _loop("c", "1.2"), _loop("d", "0.9"), _loop("e", "0.3")]
    top = rank_cycles(cycles, limit=3)
    assert [c.max_price for c in top] == [Decimal("1.2"), Decimal("0.9"), Decimal("0.5")]


def test_rank_caps_at_ten_and_keeps_ties_stable():
    cycles = [_loop(f"t{i}", "1.1") for i in range(12)]
    top = rank_cycles(cycles)
    assert len(top) == 10
    assert [c.pools[0].id for c in top] == [f"t{i}1" for i in range(10)]


def test_report_rows_skip_routeless_cycles():
    rows = build_report([_loop("a", "0"), _loop("b", "1.03"), _loop("c", "0.97")])
    assert [r.rank for r in rows] == [1, 2]
    first = rows[0]
    assert first.projected_profit == "1.03000"
    assert first.route == ["r", "500", "x", "3000", "r"]
    assert first.pool_ids == ["b1", "b2"]
    assert first.length == 2


def test_report_skips_open_route(caplog):
    open_cycle = Cycle(
        root_token="r",
        pools=[Pool(id="o1", token0_id="r", token1_id="x", fee_tier="500")],
        max_price=Decimal("2"),
    )
    with caplog.at_level(logging.ERROR):
        rows = build_report([open_cycle, _loop("b", "1.01")])
    assert [r.pool_ids for r in rows] == [["b1", "b2"]]
    assert "OPEN_CYCLE" in caplog.text


@pytest.mark.asyncio
async def test_find_arbitrage_cycles_empty_graph(caplog):
    root = Token(id="r", symbol="ROOT", decimals=6)
    with caplog.at_level(logging.INFO):
        rows = await find_arbitrage_cycles(MemoryPoolStore([root], []), root)
    assert rows == []
    assert "No profitable cycles found" in caplog.text


@pytest.mark.asyncio
async def test_find_arbitrage_cycles_reports_route():
    root = Token(id="r", symbol="ROOT", decimals=0)
    tokens = [root, Token(id="x", decimals=0)]
    pools = [
        Pool(id="p1", token0_id="r", token1_id="x", token0_price="0.5", token1_price="2", fee_tier="0",
             token0_balance="1000000", token1_balance="1000000"),
        Pool(id="p2", token0_id="x", token1_id="r", token0_price="1.8", token1_price="0.55", fee_tier="0",
             token0_balance="1000000", token1_balance="1000000"),
    ]
    rows = await find_arbitrage_cycles(MemoryPoolStore(tokens, pools), root)
    # r -> x at 2, x -> r at 0.55; the reverse loop only returns 1.8 * 0.5
    assert [r.pool_ids for r in rows] == [["p1", "p2"], ["p2", "p1"]]
    assert rows[0].projected_profit == "1.10000"
    assert rows[1].projected_profit == "0.90000"
