"""In-memory pool store and JSON graph snapshots for offline runs."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List

from arbcycles.common.config import load_validated_manifest, validate_json_manifest
from arbcycles.common.models import Pool, Token
from arbcycles.state_store.interface import PoolStore, TokenNotFound

SNAPSHOT_SCHEMA = "graph_snapshot.schema.json"

log = logging.getLogger(__name__)


class MemoryPoolStore(PoolStore):
    def __init__(self, tokens: Iterable[Token] = (), pools: Iterable[Pool] = ()) -> None:
        self._tokens: Dict[str, Token] = {}
        self._pools: Dict[str, Pool] = {}
        # token id -> pool ids in insertion order
        self._index: Dict[str, Dict[str, None]] = {}
        for token in tokens:
            self._tokens[token.id] = token
        for pool in pools:
            self._put_pool(pool)

    def _put_pool(self, pool: Pool) -> None:
        self._pools[pool.id] = pool
        self._index.setdefault(pool.token0_id, {})[pool.id] = None
        self._index.setdefault(pool.token1_id, {})[pool.id] = None

    async def save_token(self, token: Token) -> bool:
        self._tokens[token.id] = token
        return True

    async def save_pool(self, pool: Pool) -> bool:
        self._put_pool(pool)
        return True

    async def update_balances(
        self, pool_id: str, *, token0_balance: str | None = None, token1_balance: str | None = None
    ) -> bool:
        pool = self._pools.get(pool_id.lower())
        if pool is None:
            log.error("Cannot update balances: pool %s not found", pool_id)
            return False
        updates = {}
        if token0_balance is not None:
            updates["token0_balance"] = token0_balance
        if token1_balance is not None:
            updates["token1_balance"] = token1_balance
        self._put_pool(pool.model_copy(update=updates))
        return True

    async def clear_pool_data(self) -> None:
        self._tokens.clear()
        self._pools.clear()
        self._index.clear()

    async def find_token(self, token_id: str) -> Token:
        token = self._tokens.get(token_id.lower())
        if token is None:
            raise TokenNotFound(token_id)
        return token

    async def has_token(self, token_id: str) -> bool:
        return token_id.lower() in self._tokens

    async def find_pool(self, pool_id: str) -> Pool | None:
        return self._pools.get(pool_id.lower())

    async def find_pools_for_token(self, token_id: str) -> List[Pool]:
        return [self._pools[p] for p in self._index.get(token_id.lower(), {})]

    async def all_pools(self) -> List[Pool]:
        return list(self._pools.values())

    def to_snapshot(self) -> Dict[str, Any]:
        return {
            "tokens": [t.model_dump() for t in self._tokens.values()],
            "pools": [p.model_dump() for p in self._pools.values()],
        }

    @classmethod
    def from_snapshot(cls, payload: Dict[str, Any], validate: bool = True) -> "MemoryPoolStore":
        if validate:
            validate_json_manifest(payload, SNAPSHOT_SCHEMA)
        tokens = [Token(**t) for t in payload.get("tokens", [])]
        pools = [Pool(**p) for p in payload.get("pools", [])]
        return cls(tokens, pools)


def load_graph_snapshot(path: str | Path) -> MemoryPoolStore:
    """Build a store from a validated JSON snapshot file."""
    payload = load_validated_manifest(path, SNAPSHOT_SCHEMA)
    store = MemoryPoolStore.from_snapshot(payload, validate=False)
    log.info("Loaded graph snapshot %s: tokens=%d pools=%d", path, len(store._tokens), len(store._pools))
    return store


def dump_graph_snapshot(store: MemoryPoolStore, path: str | Path) -> None:
    out = Path(path).expanduser()
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(json.dumps(store.to_snapshot(), indent=2))


__all__ = ["MemoryPoolStore", "load_graph_snapshot", "dump_graph_snapshot"]
