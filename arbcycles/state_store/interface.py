"""Read interface the cycle search depends on."""

from __future__ import annotations

import abc
from typing import List

from arbcycles.common.models import Pool, Token


class TokenNotFound(LookupError):
    def __init__(self, token_id: str):
        super().__init__(f"token {token_id} not found")
        self.token_id = token_id


class PoolGraph(abc.ABC):
    @abc.abstractmethod
    async def find_pools_for_token(self, token_id: str) -> List[Pool]:
        """Return every pool containing the token; empty on miss or storage failure."""
        raise NotImplementedError

    @abc.abstractmethod
    async def find_token(self, token_id: str) -> Token:
        """Return the token record or raise TokenNotFound."""
        raise NotImplementedError


class PoolStore(PoolGraph):
    """Read/write store used by the ingest jobs."""

    @abc.abstractmethod
    async def save_token(self, token: Token) -> bool:
        raise NotImplementedError

    @abc.abstractmethod
    async def save_pool(self, pool: Pool) -> bool:
        """Insert or replace a pool and index it under both of its tokens."""
        raise NotImplementedError

    @abc.abstractmethod
    async def has_token(self, token_id: str) -> bool:
        raise NotImplementedError

    @abc.abstractmethod
    async def find_pool(self, pool_id: str) -> Pool | None:
        raise NotImplementedError

    @abc.abstractmethod
    async def all_pools(self) -> List[Pool]:
        raise NotImplementedError

    @abc.abstractmethod
    async def update_balances(
        self, pool_id: str, *, token0_balance: str | None = None, token1_balance: str | None = None
    ) -> bool:
        """Set raw reserves on a stored pool; False when the pool is unknown."""
        raise NotImplementedError

    @abc.abstractmethod
    async def clear_pool_data(self) -> None:
        """Drop every stored token and pool ahead of a fresh crawl."""
        raise NotImplementedError


__all__ = ["PoolGraph", "PoolStore", "TokenNotFound"]
