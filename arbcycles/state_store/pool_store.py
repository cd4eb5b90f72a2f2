"""Redis-backed token and pool store with a per-token pool index."""

from __future__ import annotations

import logging
from typing import Iterable, List

import redis.asyncio as redis
from pydantic import ValidationError

from arbcycles.common import metrics
from arbcycles.common.models import Pool, Token
from arbcycles.state_store.interface import PoolStore, TokenNotFound

log = logging.getLogger(__name__)


class RedisPoolStore(PoolStore):
    def __init__(self, redis_url: str, prefix: str = "arbcycles", client: redis.Redis | None = None) -> None:
        self.redis_url = redis_url
        self.prefix = prefix.rstrip(":")
        self._client: redis.Redis | None = client

    async def start(self) -> None:
        if self._client is None:
            self._client = redis.from_url(self.redis_url, encoding="utf-8", decode_responses=True)

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    def _pool_key(self, pool_id: str) -> str:
        return f"{self.prefix}:pool:{pool_id.lower()}"

    def _token_key(self, token_id: str) -> str:
        return f"{self.prefix}:token:{token_id.lower()}"

    def _index_key(self, token_id: str) -> str:
        return f"{self.prefix}:token_pools:{token_id.lower()}"

    # --- Writes ---------------------------------------------------------
    async def save_token(self, token: Token) -> bool:
        assert self._client
        try:
            await self._client.set(self._token_key(token.id), token.model_dump_json())
            return True
        except Exception as exc:  # noqa: BLE001
            metrics.STATE_WRITE_ERRORS.labels(source="token").inc()
            log.error("Failed to save token %s: %s", token.id, exc)
            return False

    async def save_pool(self, pool: Pool) -> bool:
        assert self._client
        try:
            await self._client.set(self._pool_key(pool.id), pool.model_dump_json())
            await self._client.sadd(self._index_key(pool.token0_id), pool.id)
            await self._client.sadd(self._index_key(pool.token1_id), pool.id)
            return True
        except Exception as exc:  # noqa: BLE001
            metrics.STATE_WRITE_ERRORS.labels(source="pool").inc()
            log.error("Failed to save pool %s: %s", pool.id, exc)
            return False

    async def update_balances(
        self, pool_id: str, *, token0_balance: str | None = None, token1_balance: str | None = None
    ) -> bool:
        pool = await self.find_pool(pool_id)
        if pool is None:
            log.error("Cannot update balances: pool %s not found", pool_id)
            return False
        updates = {}
        if token0_balance is not None:
            updates["token0_balance"] = token0_balance
        if token1_balance is not None:
            updates["token1_balance"] = token1_balance
        return await self.save_pool(pool.model_copy(update=updates))

    async def clear_pool_data(self) -> None:
        """Remove all token, pool and index keys for this prefix."""
        assert self._client
        try:
            for pattern in (f"{self.prefix}:token:*", f"{self.prefix}:pool:*", f"{self.prefix}:token_pools:*"):
                keys = await self._scan(pattern)
                if keys:
                    await self._client.delete(*keys)
        except Exception as exc:  # noqa: BLE001
            metrics.STATE_WRITE_ERRORS.labels(source="clear").inc()
            log.error("Failed to clear pool data: %s", exc)

    # --- Reads ----------------------------------------------------------
    async def find_token(self, token_id: str) -> Token:
        assert self._client
        try:
            raw = await self._client.get(self._token_key(token_id))
        except Exception as exc:  # noqa: BLE001
            metrics.STATE_READ_ERRORS.labels(source="token").inc()
            log.error("Failed to read token %s: %s", token_id, exc)
            raise TokenNotFound(token_id) from exc
        if not raw:
            raise TokenNotFound(token_id)
        try:
            return Token.model_validate_json(raw)
        except ValidationError as exc:
            metrics.STATE_READ_ERRORS.labels(source="token_decode").inc()
            log.error("Stored token %s is invalid: %s", token_id, exc)
            raise TokenNotFound(token_id) from exc

    async def has_token(self, token_id: str) -> bool:
        try:
            await self.find_token(token_id)
        except TokenNotFound:
            return False
        return True

    async def find_pool(self, pool_id: str) -> Pool | None:
        pools = await self._read_pools([pool_id], source="pool")
        return pools[0] if pools else None

    async def find_pools_for_token(self, token_id: str) -> List[Pool]:
        assert self._client
        try:
            pool_ids = await self._client.smembers(self._index_key(token_id))
        except Exception as exc:  # noqa: BLE001
            metrics.STATE_READ_ERRORS.labels(source="token_pools").inc()
            log.error("[PoolStore] failed to fetch pools for token %s: %s", token_id, exc)
            return []
        return await self._read_pools(sorted(pool_ids), source="token_pools")

    async def all_pools(self) -> List[Pool]:
        try:
            keys = await self._scan(f"{self.prefix}:pool:*")
        except Exception as exc:  # noqa: BLE001
            metrics.STATE_READ_ERRORS.labels(source="all_pools").inc()
            log.error("Failed to list pools: %s", exc)
            return []
        pool_ids = sorted(key.split(":")[-1] for key in keys)
        return await self._read_pools(pool_ids, source="all_pools")

    async def _read_pools(self, pool_ids: Iterable[str], source: str) -> List[Pool]:
        assert self._client
        ids = list(pool_ids)
        if not ids:
            return []
        try:
            raws = await self._client.mget([self._pool_key(p) for p in ids])
        except Exception as exc:  # noqa: BLE001
            metrics.STATE_READ_ERRORS.labels(source=source).inc()
            log.error("Failed to read %d pools: %s", len(ids), exc)
            return []
        pools: List[Pool] = []
        for pool_id, raw in zip(ids, raws):
            if not raw:
                continue
            try:
                pools.append(Pool.model_validate_json(raw))
            except ValidationError as exc:
                metrics.STATE_READ_ERRORS.labels(source="pool_decode").inc()
                log.error("Stored pool %s is invalid: %s", pool_id, exc)
        return pools

    async def _scan(self, pattern: str) -> List[str]:
        assert self._client
        cursor = 0
        keys: List[str] = []
        while True:
            cursor, batch = await self._client.scan(cursor=cursor, match=pattern, count=200)
            keys.extend(batch)
            if cursor == 0 or cursor == "0":
                break
        return keys


__all__ = ["RedisPoolStore"]
