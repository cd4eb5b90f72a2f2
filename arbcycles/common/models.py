"""Shared data models for the cycle finder.

Tokens and pools mirror what the subgraph and balance refresh persist: numeric
fields stay as the decimal strings they arrive as and are only parsed by the
pricing model, so corrupt values surface there with the pool id attached.
"""

from __future__ import annotations

from decimal import Decimal
from typing import List

from pydantic import BaseModel, Field, field_validator, model_validator


class Token(BaseModel):
    """Token metadata needed to normalize raw balances."""

    id: str = Field(..., description="Token contract address")
    symbol: str = Field("", description="Display symbol")
    decimals: int = Field(..., ge=0, le=255, description="Token decimals")

    @field_validator("id")
    @classmethod
    def _lower_id(cls, v: str) -> str:
        if not v:
            raise ValueError("token id required")
        return v.lower()

    def __repr__(self) -> str:  # pragma: no cover - convenience
        return f"Token(symbol={self.symbol}, id={self.id}, decimals={self.decimals})"


class Pool(BaseModel):
    """Two-token liquidity pool as stored after ingestion."""

    id: str
    token0_id: str
    token1_id: str
    token0_price: str = Field("0", description="Price of token0 in token1 units")
    token1_price: str = Field("0", description="Price of token1 in token0 units")
    total_value_locked_token0: str = ""
    total_value_locked_token1: str = ""
    liquidity: str = ""
    fee_tier: str = Field("0", description="Fee in parts per million")
    token0_balance: str = Field("", description="Raw on-chain reserve of token0, empty when unknown")
    token1_balance: str = Field("", description="Raw on-chain reserve of token1, empty when unknown")

    @field_validator("id", "token0_id", "token1_id")
    @classmethod
    def _lower_ids(cls, v: str) -> str:
        if not v:
            raise ValueError("pool and token ids required")
        return v.lower()

    @model_validator(mode="after")
    def _distinct_tokens(self) -> "Pool":
        if self.token0_id == self.token1_id:
            raise ValueError("pool tokens must be distinct")
        return self

    def contains(self, token_id: str) -> bool:
        return token_id in (self.token0_id, self.token1_id)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Pool):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    def __repr__(self) -> str:  # pragma: no cover
        return f"Pool({self.id} {self.token0_id}/{self.token1_id} fee={self.fee_tier})"


class Cycle(BaseModel):
    """Best closed walk found from one root-adjacent pool."""

    root_token: str
    pools: List[Pool] = Field(default_factory=list)
    max_price: Decimal = Decimal(0)

    def pool_ids(self) -> List[str]:
        return [p.id for p in self.pools]

    def router_path(self) -> List[str]:
        """Alternating token / fee tier / token route starting at the root.

        Raises ValueError if the walk does not end at the root token.
        """
        cur_token = self.root_token
        path: List[str] = []
        for pool in self.pools:
            if not pool.contains(cur_token):
                raise ValueError(f"pool {pool.id} does not contain {cur_token}")
            next_token = pool.token1_id if cur_token == pool.token0_id else pool.token0_id
            path.append(cur_token)
            path.append(pool.fee_tier)
            cur_token = next_token
        path.append(cur_token)
        if self.pools and cur_token != self.root_token:
            raise ValueError(f"route ends at {cur_token}, expected root {self.root_token}")
        return path

    def __repr__(self) -> str:  # pragma: no cover
        return f"Cycle(price={self.max_price}, hops={len(self.pools)})"


class RankedCycle(BaseModel):
    """One row of the cycle report."""

    rank: int = Field(..., ge=1)
    route: List[str]
    pool_ids: List[str]
    length: int = Field(..., ge=0)
    multiplier: Decimal
    projected_profit: str = Field(..., description="Multiplier on notional, 5 decimal places")


__all__ = ["Token", "Pool", "Cycle", "RankedCycle"]
