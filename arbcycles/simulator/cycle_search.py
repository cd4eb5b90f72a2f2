"""Depth-bounded, memoized search for closed pool walks back to a root token.

Each pool adjacent to the root is explored on its own. A search state is a
(pool, token) pair: the trader holds ``token`` and is about to route it
through ``pool``. The best continuation of every expanded state is cached in a
memo table owned by that single exploration.

The default memo key ignores the path that led to a state even though
expansion skips pools already on the path, so a continuation cached under one
path can be reused under another whose exclusion set differs.
``path_sensitive_memo`` keys the table by the visited pool set instead.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, FrozenSet, List, Tuple, Union

from arbcycles.common import metrics
from arbcycles.common.models import Cycle, Pool, Token
from arbcycles.simulator.pricing import (
    FEE_DENOMINATOR,
    MalformedPoolData,
    fee_price_for,
    high_precision,
    normalized_balance,
    other_token,
    raw_balance_for,
)
from arbcycles.state_store.interface import PoolGraph, TokenNotFound

# Hard ceiling for max_depth; recursion uses the native call stack.
MAX_SAFE_DEPTH = 200

log = logging.getLogger(__name__)

SearchResult = Tuple[Decimal, List[Pool]]
MemoKey = Union[Tuple[str, str], Tuple[str, str, FrozenSet[str]]]
MemoTable = Dict[MemoKey, SearchResult]


@dataclass(slots=True)
class SearchConfig:
    max_depth: int = 20
    # Root-token notional the liquidity gate checks each hop against
    min_root_amount: int = 100_000
    fee_denominator: int = FEE_DENOMINATOR
    path_sensitive_memo: bool = False

    def __post_init__(self) -> None:
        if not 1 <= self.max_depth <= MAX_SAFE_DEPTH:
            raise ValueError(f"max_depth must be between 1 and {MAX_SAFE_DEPTH}, got {self.max_depth}")
        if self.min_root_amount < 0:
            raise ValueError("min_root_amount must be non-negative")
        if self.fee_denominator <= 0:
            raise ValueError("fee_denominator must be positive")


class CycleSearch:
    def __init__(self, graph: PoolGraph, config: SearchConfig | None = None) -> None:
        self.graph = graph
        self.config = config or SearchConfig()

    async def find_cycles(self, root_token: Token) -> List[Cycle]:
        """Explore every pool adjacent to the root; one Cycle per pool."""
        root_id = root_token.id
        root_pools = await self.graph.find_pools_for_token(root_id)
        log.info(
            "CYCLE_SEARCH_START root=%s symbol=%s adjacent_pools=%d max_depth=%d",
            root_id,
            root_token.symbol,
            len(root_pools),
            self.config.max_depth,
        )
        cycles: List[Cycle] = []
        for pool in root_pools:
            if not pool.contains(root_id):
                log.warning("Pool %s returned for root %s does not contain it; skipping", pool.id, root_id)
                continue
            start = time.time()
            try:
                price, path = await self.explore(pool, root_id, [pool], root_id, {})
            except MalformedPoolData as exc:
                metrics.SEARCH_MALFORMED_POOLS.labels(field=exc.field).inc()
                log.error(
                    "MALFORMED_POOL_DATA root_pool=%s pool=%s field=%s value=%r; dropping root pool",
                    pool.id,
                    exc.pool_id,
                    exc.field,
                    exc.value,
                )
                price, path = Decimal(0), []
            metrics.observe_histogram(metrics.SEARCH_DURATION_SECONDS, time.time() - start)
            log.debug("ROOT_POOL_DONE pool=%s price=%s hops=%d", pool.id, price, len(path))
            cycles.append(Cycle(root_token=root_id, pools=path, max_price=price))

        profitable = [c for c in cycles if c.max_price > 0]
        metrics.CYCLES_FOUND.labels(root_token=root_id).set(len(profitable))
        if profitable:
            metrics.BEST_MULTIPLIER.labels(root_token=root_id).set(float(max(c.max_price for c in profitable)))
        log.info("CYCLE_SEARCH_DONE root=%s cycles=%d with_route=%d", root_id, len(cycles), len(profitable))
        return cycles

    async def explore(
        self,
        pool: Pool,
        token_id: str,
        path: List[Pool],
        root_token_id: str,
        memo: MemoTable,
    ) -> SearchResult:
        """Best multiplier and pool path from holding `token_id` at `pool` back to the root.

        `path` is every pool visited so far, `pool` included.
        """
        cfg = self.config
        assert len(path) <= cfg.max_depth + 1, "cycle search recursed past max_depth"

        if len(path) > cfg.max_depth:
            metrics.SEARCH_DEPTH_CUTOFFS.inc()
            return Decimal(0), []
        if token_id != root_token_id and pool.contains(root_token_id) and len(path) > 1:
            # the other side of this pool is the root: the loop closes here
            return fee_price_for(pool, token_id, cfg.fee_denominator), [pool]

        key = self._memo_key(pool, token_id, path)
        cached = memo.get(key)
        if cached is not None:
            metrics.SEARCH_MEMO_HITS.inc()
            return cached
        metrics.SEARCH_STATES_EXPLORED.inc()

        next_token = other_token(pool, token_id)
        visited = {p.id for p in path}
        future_price, future_path = Decimal(0), []
        for candidate in await self.graph.find_pools_for_token(next_token):
            if candidate.id == pool.id or candidate.id in visited:
                continue
            price, sub_path = await self.explore(candidate, next_token, path + [candidate], root_token_id, memo)
            if price > future_price:
                future_price, future_path = price, sub_path

        balance = await self._token_balance(pool, token_id)
        with high_precision():
            if future_price * cfg.min_root_amount >= balance:
                if future_price > 0:
                    metrics.SEARCH_LIQUIDITY_PRUNED.inc()
                cur_price = Decimal(0)
            else:
                cur_price = future_price * fee_price_for(pool, token_id, cfg.fee_denominator)

        result_path = [pool] + future_path if cur_price > 0 else []
        memo[key] = (cur_price, result_path)
        return cur_price, result_path

    def _memo_key(self, pool: Pool, token_id: str, path: List[Pool]) -> MemoKey:
        if self.config.path_sensitive_memo:
            return pool.id, token_id, frozenset(p.id for p in path)
        return pool.id, token_id

    async def _token_balance(self, pool: Pool, token_id: str) -> Decimal:
        """Normalized reserve of `token_id` in `pool`; unknown liquidity counts as none."""
        if not raw_balance_for(pool, token_id):
            return Decimal(0)
        try:
            token = await self.graph.find_token(token_id)
        except TokenNotFound as exc:
            log.error("BALANCE_LOOKUP_FAILED pool=%s token=%s error=%s", pool.id, token_id, exc)
            return Decimal(0)
        return normalized_balance(pool, token_id, token.decimals)


__all__ = ["CycleSearch", "SearchConfig", "MAX_SAFE_DEPTH", "SearchResult", "MemoTable"]
