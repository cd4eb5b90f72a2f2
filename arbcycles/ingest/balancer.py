"""Batched `balanceOf` refresh of every stored pool's token reserves."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any, Dict, List

import aiohttp

from arbcycles.common import metrics
from arbcycles.state_store.interface import PoolStore

MAX_BATCH_REQUESTS = 100
REQUEST_INTERVAL_SECONDS = 1.2
# keccak('balanceOf(address)')[:4] followed by the 12 zero bytes that pad an address argument
BALANCE_OF_SELECTOR = "0x70a08231000000000000000000000000"
TOKEN0_REQ_ID_PREFIX = "token0_"
TOKEN1_REQ_ID_PREFIX = "token1_"

log = logging.getLogger(__name__)


def balance_rpc_body(owner: str, token_addr: str, rpc_id: str) -> Dict[str, Any]:
    owner_hex = owner[2:] if owner.startswith("0x") else owner
    return {
        "jsonrpc": "2.0",
        "id": rpc_id,
        "method": "eth_call",
        "params": [
            {"data": BALANCE_OF_SELECTOR + owner_hex.lower(), "to": token_addr},
            "latest",
        ],
    }


def parse_balance_result(result: Any) -> str | None:
    """Hex-encoded uint256 from eth_call as a decimal string."""
    if not isinstance(result, str) or not result.startswith("0x"):
        return None
    hex_part = result[2:] or "0"
    try:
        return str(int(hex_part, 16))
    except ValueError:
        return None


class BalanceRefresher:
    def __init__(
        self,
        store: PoolStore,
        rpc_url: str,
        session: aiohttp.ClientSession,
        *,
        batch_size: int = MAX_BATCH_REQUESTS,
        request_interval: float = REQUEST_INTERVAL_SECONDS,
    ) -> None:
        if batch_size < 2:
            raise ValueError("batch_size must hold both token calls of a pool")
        self.store = store
        self.rpc_url = rpc_url
        self._session = session
        self.batch_size = batch_size
        self.request_interval = request_interval

    async def build_batches(self) -> List[List[Dict[str, Any]]]:
        batches: List[List[Dict[str, Any]]] = []
        current: List[Dict[str, Any]] = []
        for pool in await self.store.all_pools():
            current.append(balance_rpc_body(pool.id, pool.token0_id, TOKEN0_REQ_ID_PREFIX + pool.id))
            current.append(balance_rpc_body(pool.id, pool.token1_id, TOKEN1_REQ_ID_PREFIX + pool.id))
            if len(current) >= self.batch_size:
                batches.append(current)
                current = []
        if current:
            batches.append(current)
        return batches

    async def run(self) -> int:
        """Refresh all balances; returns how many pool token balances were written."""
        batches = await self.build_batches()
        n_requests = len(batches)
        updated = 0
        for i, body in enumerate(batches):
            start = time.time()
            metrics.increment_counter(metrics.INGEST_REQUESTS, {"source": "balance_rpc"})
            try:
                async with self._session.post(self.rpc_url, json=body) as resp:
                    status = resp.status
                    text = await resp.text()
            except Exception as exc:  # noqa: BLE001
                metrics.INGEST_ERRORS.labels(type="balance_request").inc()
                log.error("Error on request, stopping further requests: %s", exc)
                break
            metrics.INGEST_LATENCY_SECONDS.labels(source="balance_rpc").observe(time.time() - start)
            if status >= 300:
                metrics.INGEST_ERRORS.labels(type="balance_http").inc()
                log.error("Bad response status %s, sleeping then continuing: %s", status, text[:200])
                await asyncio.sleep(self.request_interval)
                continue

            updated += await self._apply_responses(text)
            log.info("Finished processing request=%d/%d", i + 1, n_requests)
            if i + 1 < n_requests:
                await asyncio.sleep(self.request_interval)
        log.info("Balance refresh complete balances=%d requests=%d", updated, n_requests)
        return updated

    async def _apply_responses(self, text: str) -> int:
        try:
            responses = json.loads(text)
        except json.JSONDecodeError:
            metrics.INGEST_ERRORS.labels(type="balance_decode").inc()
            log.error("Could not decode balance response")
            return 0
        if not isinstance(responses, list):
            log.error("Unexpected balance response shape: %s", type(responses).__name__)
            return 0
        updated = 0
        for item in responses:
            if not isinstance(item, dict):
                continue
            rpc_id = str(item.get("id", ""))
            if "error" in item:
                err = item.get("error") or {}
                log.warning("RPC_ERROR id=%s code=%s msg=%s", rpc_id, err.get("code"), err.get("message"))
                continue
            balance = parse_balance_result(item.get("result"))
            if balance is None:
                log.warning("Unparsable balance result id=%s result=%r", rpc_id, item.get("result"))
                continue
            if rpc_id.startswith(TOKEN0_REQ_ID_PREFIX):
                pool_id = rpc_id[len(TOKEN0_REQ_ID_PREFIX):]
                ok = await self.store.update_balances(pool_id, token0_balance=balance)
            elif rpc_id.startswith(TOKEN1_REQ_ID_PREFIX):
                pool_id = rpc_id[len(TOKEN1_REQ_ID_PREFIX):]
                ok = await self.store.update_balances(pool_id, token1_balance=balance)
            else:
                log.warning("Unknown balance response id=%s", rpc_id)
                continue
            if ok:
                updated += 1
                metrics.BALANCES_UPDATED.inc()
        return updated


__all__ = ["BalanceRefresher", "balance_rpc_body", "parse_balance_result", "BALANCE_OF_SELECTOR"]
