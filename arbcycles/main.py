"""Entry point: refresh pool data, refresh balances, then report cycles."""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import logging
from typing import List, Optional

import aiohttp
from prometheus_client import start_http_server

from arbcycles.common.config import Settings
from arbcycles.common.models import RankedCycle
from arbcycles.ingest.balancer import BalanceRefresher
from arbcycles.ingest.explorer import PoolExplorer
from arbcycles.ingest.subgraph_client import SubgraphClient
from arbcycles.simulator.ranking import find_arbitrage_cycles
from arbcycles.state_store.interface import PoolStore
from arbcycles.state_store.memory_store import dump_graph_snapshot, load_graph_snapshot, MemoryPoolStore
from arbcycles.state_store.pool_store import RedisPoolStore

log = logging.getLogger(__name__)


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _pick(cli_value, default):
    return default if cli_value is None else cli_value


def build_parser(settings: Settings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Find fee-adjusted arbitrage cycles through DEX pools")
    parser.add_argument("--refresh-data", action=argparse.BooleanOptionalAction, default=None, help="Re-crawl pools from the subgraph")
    parser.add_argument("--fetch-balances", action=argparse.BooleanOptionalAction, default=None, help="Refresh pool token balances over RPC")
    parser.add_argument("--find-cycles", action=argparse.BooleanOptionalAction, default=None, help="Run the cycle search and print the report")
    parser.add_argument("--snapshot", default=settings.graph_snapshot_path, help="Read the pool graph from a JSON snapshot instead of Redis")
    parser.add_argument("--dump-snapshot", default=None, help="Write the in-memory graph to this path after ingest (snapshot mode only)")
    parser.add_argument("--max-depth", type=int, default=None, help=f"Maximum pools per cycle (default {settings.max_depth})")
    parser.add_argument("--min-root-amount", type=int, default=None, help=f"Root notional for the liquidity gate (default {settings.min_root_amount})")
    parser.add_argument("--limit", type=int, default=settings.report_limit, help=f"Report rows (default {settings.report_limit})")
    parser.add_argument("--metrics-port", type=int, default=settings.metrics_port, help="Expose Prometheus metrics on this port")
    return parser


async def open_store(settings: Settings, snapshot: str | None) -> PoolStore:
    if snapshot:
        return load_graph_snapshot(snapshot)
    store = RedisPoolStore(settings.redis_url, prefix=settings.redis_prefix)
    await store.start()
    return store


async def run(args: Optional[list[str]] = None, settings: Settings | None = None) -> List[RankedCycle]:
    settings = settings or Settings()
    _configure_logging(settings.log_level)
    parsed = build_parser(settings).parse_args(args)

    if parsed.metrics_port:
        start_http_server(parsed.metrics_port)
        log.info("Metrics serving on port %s", parsed.metrics_port)

    config = settings.search_config()
    config = dataclasses.replace(
        config,
        max_depth=_pick(parsed.max_depth, config.max_depth),
        min_root_amount=_pick(parsed.min_root_amount, config.min_root_amount),
    )
    root = settings.root_token()
    store = await open_store(settings, parsed.snapshot)
    rows: List[RankedCycle] = []
    try:
        if _pick(parsed.refresh_data, settings.refresh_data):
            async with aiohttp.ClientSession() as session:
                explorer = PoolExplorer(
                    SubgraphClient(settings.subgraph_url, session),
                    store,
                    workers=settings.explorer_workers,
                    n_pools=settings.explorer_n_pools,
                    min_tvl=settings.explorer_min_tvl,
                )
                await explorer.run(root.id)

        if _pick(parsed.fetch_balances, settings.fetch_balances):
            if not settings.eth_node_url:
                raise SystemExit("PROD_ETH_NODE_URL must be set to fetch balances")
            async with aiohttp.ClientSession() as session:
                refresher = BalanceRefresher(
                    store,
                    settings.eth_node_url,
                    session,
                    batch_size=settings.balance_batch_size,
                    request_interval=settings.balance_request_interval,
                )
                await refresher.run()

        if parsed.dump_snapshot and isinstance(store, MemoryPoolStore):
            dump_graph_snapshot(store, parsed.dump_snapshot)
            log.info("Wrote graph snapshot to %s", parsed.dump_snapshot)

        if _pick(parsed.find_cycles, settings.find_cycles):
            rows = await find_arbitrage_cycles(store, root, config, limit=parsed.limit)
    finally:
        if isinstance(store, RedisPoolStore):
            await store.close()
    return rows


def cli() -> None:
    asyncio.run(run())


if __name__ == "__main__":
    cli()
