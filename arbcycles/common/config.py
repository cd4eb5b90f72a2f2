"""Configuration loading and graph snapshot validation utilities."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict

from jsonschema import Draft7Validator
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from arbcycles.common.models import Token
from arbcycles.simulator.cycle_search import SearchConfig

USDC_ADDRESS = "0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48"
UNISWAP_V3_SUBGRAPH_URL = "https://api.thegraph.com/subgraphs/name/uniswap/uniswap-v3"


def _load_json(path: str | Path) -> Dict[str, Any]:
    with Path(path).expanduser().open("r", encoding="utf-8") as fh:
        return json.load(fh)


def _load_schema(name: str) -> Dict[str, Any]:
    here = Path(__file__).resolve().parent / "schemas"
    return _load_json(here / name)


def validate_json_manifest(payload: Dict[str, Any], schema_name: str) -> None:
    """Validate a JSON document against a bundled schema."""
    schema = _load_schema(schema_name)
    validator = Draft7Validator(schema)
    errors = sorted(validator.iter_errors(payload), key=lambda e: list(e.path))
    if errors:
        msgs = "; ".join(f"{'/'.join(map(str, e.path))}: {e.message}" for e in errors)
        raise ValueError(f"Snapshot validation failed: {msgs}")


def load_validated_manifest(path: str | Path, schema_name: str) -> Dict[str, Any]:
    """Load JSON file and validate it; returns the parsed object."""
    payload = _load_json(path)
    validate_json_manifest(payload, schema_name)
    return payload


class Settings(BaseSettings):
    """Environment-driven configuration for the cycle finder."""

    redis_url: str = Field("redis://localhost:6379/0", alias="REDIS_URL")
    redis_prefix: str = Field("arbcycles", alias="REDIS_PREFIX")
    metrics_port: int | None = Field(None, alias="METRICS_PORT")
    log_level: str = Field("INFO", alias="LOG_LEVEL")

    subgraph_url: str = Field(UNISWAP_V3_SUBGRAPH_URL, alias="SUBGRAPH_URL")
    eth_node_url: str | None = Field(None, alias="PROD_ETH_NODE_URL")
    graph_snapshot_path: str | None = Field(None, alias="GRAPH_SNAPSHOT_PATH")

    root_token_address: str = Field(USDC_ADDRESS, alias="ROOT_TOKEN_ADDRESS")
    root_token_symbol: str = Field("USDC", alias="ROOT_TOKEN_SYMBOL")
    root_token_decimals: int = Field(6, ge=0, alias="ROOT_TOKEN_DECIMALS")

    # search
    max_depth: int = Field(20, ge=1, alias="MAX_DEPTH")
    min_root_amount: int = Field(100_000, ge=0, alias="MIN_ROOT_AMOUNT")
    fee_denominator: int = Field(1_000_000, gt=0, alias="FEE_DENOMINATOR")
    path_sensitive_memo: bool = Field(False, alias="PATH_SENSITIVE_MEMO")
    report_limit: int = Field(10, ge=0, alias="REPORT_LIMIT")

    # ingest
    explorer_workers: int = Field(10, ge=1, alias="EXPLORER_WORKERS")
    explorer_n_pools: int = Field(1000, ge=1, alias="EXPLORER_N_POOLS")
    explorer_min_tvl: str = Field("1000", alias="EXPLORER_MIN_TVL")
    balance_batch_size: int = Field(100, ge=2, alias="BALANCE_BATCH_SIZE")
    balance_request_interval: float = Field(1.2, ge=0, alias="BALANCE_REQUEST_INTERVAL")

    # phases
    refresh_data: bool = Field(False, alias="REFRESH_DATA")
    fetch_balances: bool = Field(False, alias="FETCH_BALANCES")
    find_cycles: bool = Field(True, alias="FIND_CYCLES")

    # Load environment from standard dot-env files if present; ignore unrelated keys
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore", populate_by_name=True)

    def search_config(self) -> SearchConfig:
        return SearchConfig(
            max_depth=self.max_depth,
            min_root_amount=self.min_root_amount,
            fee_denominator=self.fee_denominator,
            path_sensitive_memo=self.path_sensitive_memo,
        )

    def root_token(self) -> Token:
        return Token(id=self.root_token_address, symbol=self.root_token_symbol, decimals=self.root_token_decimals)


__all__ = [
    "Settings",
    "validate_json_manifest",
    "load_validated_manifest",
    "USDC_ADDRESS",
]
