"""Fee-adjusted pool prices and decimal-normalized reserves."""

from __future__ import annotations

from decimal import Context, Decimal, InvalidOperation, localcontext

from arbcycles.common.models import Pool

FEE_DENOMINATOR = 1_000_000
# wide enough for uint256 reserves (78 digits) times a price
DECIMAL_PRECISION = 80


def high_precision():
    """Decimal context for reserve and multiplier arithmetic."""
    return localcontext(Context(prec=DECIMAL_PRECISION))


class MalformedPoolData(ValueError):
    """A persisted numeric pool field could not be parsed."""

    def __init__(self, pool_id: str, field: str, value: str):
        super().__init__(f"pool {pool_id}: field {field} is not a valid decimal ({value!r})")
        self.pool_id = pool_id
        self.field = field
        self.value = value


def _parse_field(pool: Pool, field: str) -> Decimal:
    raw = getattr(pool, field)
    try:
        value = Decimal(raw)
    except (InvalidOperation, TypeError, ValueError):
        raise MalformedPoolData(pool.id, field, raw) from None
    if not value.is_finite() or value < 0:
        raise MalformedPoolData(pool.id, field, raw)
    return value


def is_token_0(pool: Pool, token_id: str) -> bool:
    return token_id == pool.token0_id


def other_token(pool: Pool, token_id: str) -> str:
    """Token received when `token_id` is swapped through the pool."""
    if not pool.contains(token_id):
        raise ValueError(f"token {token_id} is not in pool {pool.id}")
    return pool.token1_id if is_token_0(pool, token_id) else pool.token0_id


def fee_price_for(pool: Pool, token_id: str, fee_denominator: int = FEE_DENOMINATOR) -> Decimal:
    """Units of the other token received per unit of `token_id`, net of the pool fee."""
    if not pool.contains(token_id):
        raise ValueError(f"token {token_id} is not in pool {pool.id}")
    fee = _parse_field(pool, "fee_tier")
    if fee >= fee_denominator:
        raise MalformedPoolData(pool.id, "fee_tier", pool.fee_tier)
    # token0 is priced by the other side's field and vice versa
    price_field = "token1_price" if is_token_0(pool, token_id) else "token0_price"
    base_price = _parse_field(pool, price_field)
    with high_precision():
        return base_price * (Decimal(1) - fee / Decimal(fee_denominator))


def raw_balance_for(pool: Pool, token_id: str) -> str:
    if not pool.contains(token_id):
        raise ValueError(f"token {token_id} is not in pool {pool.id}")
    return pool.token0_balance if is_token_0(pool, token_id) else pool.token1_balance


def normalized_balance(pool: Pool, token_id: str, decimals: int) -> Decimal:
    """Pool reserve of `token_id` in whole tokens; 0 when the balance is unknown."""
    field = "token0_balance" if is_token_0(pool, token_id) else "token1_balance"
    if not raw_balance_for(pool, token_id):
        return Decimal(0)
    raw = _parse_field(pool, field)
    with high_precision():
        return raw / (Decimal(10) ** decimals)


__all__ = [
    "FEE_DENOMINATOR",
    "DECIMAL_PRECISION",
    "high_precision",
    "MalformedPoolData",
    "is_token_0",
    "other_token",
    "fee_price_for",
    "raw_balance_for",
    "normalized_balance",
]
