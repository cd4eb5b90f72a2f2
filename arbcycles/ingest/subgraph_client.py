"""Uniswap v3 subgraph client: pools containing a token, either side."""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List

import aiohttp
from pydantic import ValidationError

from arbcycles.common import metrics
from arbcycles.common.models import Pool, Token

DEFAULT_N_POOLS = 1000
DEFAULT_MIN_TVL = "1000"

POOLS_FOR_TOKEN_QUERY = """
fragment poolFields on Pool {
  id
  token0 { id symbol decimals }
  token1 { id symbol decimals }
  token0Price
  token1Price
  totalValueLockedToken0
  totalValueLockedToken1
  liquidity
  feeTier
}

query PoolsForToken($token_address: String!, $n_pools: Int!, $min_tvl: BigDecimal!) {
  token0Pools: pools(first: $n_pools, where: {token0: $token_address, totalValueLockedUSD_gt: $min_tvl}) {
    ...poolFields
  }
  token1Pools: pools(first: $n_pools, where: {token1: $token_address, totalValueLockedUSD_gt: $min_tvl}) {
    ...poolFields
  }
}
"""

log = logging.getLogger(__name__)


@dataclass
class PoolBatch:
    """Pools returned for one token plus the token records they reference."""

    pools: List[Pool] = field(default_factory=list)
    tokens: Dict[str, Token] = field(default_factory=dict)


def _parse_token(raw: Dict[str, Any]) -> Token:
    return Token(id=raw["id"], symbol=raw.get("symbol") or raw["id"], decimals=int(raw.get("decimals") or 0))


def parse_pool_fields(raw: Dict[str, Any]) -> tuple[Pool, Token, Token]:
    """Convert one subgraph `poolFields` object; balances start unknown."""
    token0 = _parse_token(raw["token0"])
    token1 = _parse_token(raw["token1"])
    pool = Pool(
        id=raw["id"],
        token0_id=token0.id,
        token1_id=token1.id,
        token0_price=str(raw.get("token0Price", "0")),
        token1_price=str(raw.get("token1Price", "0")),
        total_value_locked_token0=str(raw.get("totalValueLockedToken0", "")),
        total_value_locked_token1=str(raw.get("totalValueLockedToken1", "")),
        liquidity=str(raw.get("liquidity", "")),
        fee_tier=str(raw.get("feeTier", "0")),
    )
    return pool, token0, token1


class SubgraphClient:
    def __init__(self, url: str, session: aiohttp.ClientSession, *, timeout_seconds: float = 30.0) -> None:
        self.url = url
        self._session = session
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)

    async def fetch_pools_for_token(
        self,
        token_address: str,
        n_pools: int = DEFAULT_N_POOLS,
        min_tvl: str = DEFAULT_MIN_TVL,
    ) -> PoolBatch:
        """Pools with the token on either side; empty batch on any request failure."""
        body = {
            "query": POOLS_FOR_TOKEN_QUERY,
            "operationName": "PoolsForToken",
            "variables": {"token_address": token_address.lower(), "n_pools": n_pools, "min_tvl": min_tvl},
        }
        data = await self._post(body, token_address)
        batch = PoolBatch()
        if not data:
            return batch
        for raw in (data.get("token0Pools") or []) + (data.get("token1Pools") or []):
            try:
                pool, token0, token1 = parse_pool_fields(raw)
            except (KeyError, TypeError, ValueError, ValidationError) as exc:
                metrics.INGEST_ERRORS.labels(type="subgraph_pool_decode").inc()
                log.warning("[PoolQuery] skipping undecodable pool %s: %s", (raw or {}).get("id"), exc)
                continue
            batch.pools.append(pool)
            batch.tokens.setdefault(token0.id, token0)
            batch.tokens.setdefault(token1.id, token1)
        return batch

    async def _post(self, body: Dict[str, Any], token_address: str) -> Dict[str, Any] | None:
        start = time.time()
        metrics.increment_counter(metrics.INGEST_REQUESTS, {"source": "subgraph"})
        try:
            async with self._session.post(self.url, json=body, timeout=self._timeout) as resp:
                status = resp.status
                text = await resp.text()
        except Exception as exc:  # noqa: BLE001
            metrics.INGEST_ERRORS.labels(type="subgraph_request").inc()
            log.error("[PoolQuery] Error fetching pools token=%s error=%s", token_address, exc)
            return None
        duration = time.time() - start
        metrics.INGEST_LATENCY_SECONDS.labels(source="subgraph").observe(duration)
        log.info("[PoolQuery] token_address=%s duration=%.3fs status=%s", token_address, duration, status)
        if status >= 400:
            metrics.INGEST_ERRORS.labels(type="subgraph_http").inc()
            log.error("[PoolQuery] HTTP %s for token=%s body=%s", status, token_address, text[:200])
            return None
        try:
            payload = json.loads(text)
        except json.JSONDecodeError:
            metrics.INGEST_ERRORS.labels(type="subgraph_decode").inc()
            log.error("[PoolQuery] decode error for token=%s", token_address)
            return None
        if payload.get("errors"):
            metrics.INGEST_ERRORS.labels(type="subgraph_graphql").inc()
            log.error("[PoolQuery] GraphQL errors for token=%s: %s", token_address, payload["errors"])
            return None
        return payload.get("data")


__all__ = ["SubgraphClient", "PoolBatch", "parse_pool_fields", "POOLS_FOR_TOKEN_QUERY"]
