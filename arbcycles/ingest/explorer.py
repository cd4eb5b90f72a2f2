"""Breadth-first crawl of the subgraph pool graph from a root token."""

from __future__ import annotations

import asyncio
import logging
from typing import List, Set

from arbcycles.common import metrics
from arbcycles.ingest.subgraph_client import DEFAULT_MIN_TVL, DEFAULT_N_POOLS, SubgraphClient
from arbcycles.state_store.interface import PoolStore

N_WORKERS = 10

log = logging.getLogger(__name__)


class PoolExplorer:
    def __init__(
        self,
        client: SubgraphClient,
        store: PoolStore,
        *,
        workers: int = N_WORKERS,
        n_pools: int = DEFAULT_N_POOLS,
        min_tvl: str = DEFAULT_MIN_TVL,
    ) -> None:
        self.client = client
        self.store = store
        self.workers = max(1, workers)
        self.n_pools = n_pools
        self.min_tvl = min_tvl
        self._processed_pools: Set[str] = set()
        self._processed_tokens: Set[str] = set()
        self._frontier: List[str] = []

    async def run(self, root_token_address: str) -> int:
        """Replace stored pool data with everything reachable from the root; returns pools saved."""
        self._processed_pools.clear()
        self._processed_tokens.clear()
        self._frontier = [root_token_address.lower()]
        await self.store.clear_pool_data()

        saved = 0
        while self._frontier:
            batch = self._frontier[: self.workers]
            del self._frontier[: self.workers]
            # in-flight tokens are never requeued
            self._processed_tokens.update(batch)
            results = await asyncio.gather(*(self._explore_token(addr) for addr in batch), return_exceptions=True)
            for addr, result in zip(batch, results):
                if isinstance(result, Exception):
                    metrics.INGEST_ERRORS.labels(type="explorer_worker").inc()
                    log.error("[Explorer] Error during pool processing token=%s error=%s", addr, result)
                    continue
                saved += result
        log.info("[Explorer] finished pools=%d tokens=%d", saved, len(self._processed_tokens))
        return saved

    async def _explore_token(self, addr: str) -> int:
        result = await self.client.fetch_pools_for_token(addr, self.n_pools, self.min_tvl)
        saved = 0
        for pool in result.pools:
            if pool.id in self._processed_pools:
                continue
            self._processed_pools.add(pool.id)
            for token_id in (pool.token0_id, pool.token1_id):
                if not await self.store.has_token(token_id):
                    await self.store.save_token(result.tokens[token_id])
            if not await self.store.save_pool(pool):
                continue
            saved += 1
            metrics.POOLS_SAVED.inc()

            next_token = pool.token1_id if pool.token0_id == addr else pool.token0_id
            if next_token not in self._processed_tokens and next_token not in self._frontier:
                self._frontier.append(next_token)
            log.info("[Explorer] Successfully processed pool_address=%s", pool.id)
        return saved


__all__ = ["PoolExplorer", "N_WORKERS"]
