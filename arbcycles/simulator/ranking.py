"""Cycle ranking and report output."""

from __future__ import annotations

import logging
from typing import List, Sequence

from arbcycles.common.models import Cycle, RankedCycle, Token
from arbcycles.simulator.cycle_search import CycleSearch, SearchConfig
from arbcycles.state_store.interface import PoolGraph

REPORT_LIMIT = 10

log = logging.getLogger(__name__)


def rank_cycles(cycles: Sequence[Cycle], limit: int = REPORT_LIMIT) -> List[Cycle]:
    """Highest multiplier first, at most `limit`; equal multipliers keep input order."""
    ordered = sorted(cycles, key=lambda c: c.max_price, reverse=True)
    return ordered[: max(limit, 0)]


def build_report(cycles: Sequence[Cycle], limit: int = REPORT_LIMIT) -> List[RankedCycle]:
    """Report rows for the top cycles that carry a route.

    The projected profit is the raw multiplier on the root notional, not
    ``multiplier - 1``.
    """
    rows: List[RankedCycle] = []
    for cycle in rank_cycles(cycles, limit):
        if not cycle.pools or cycle.max_price <= 0:
            continue
        try:
            route = cycle.router_path()
        except ValueError as exc:
            log.error("OPEN_CYCLE root=%s pool_ids=%s error=%s", cycle.root_token, cycle.pool_ids(), exc)
            continue
        rows.append(
            RankedCycle(
                rank=len(rows) + 1,
                route=route,
                pool_ids=cycle.pool_ids(),
                length=len(cycle.pools),
                multiplier=cycle.max_price,
                projected_profit=f"{cycle.max_price:.5f}",
            )
        )
    return rows


def log_report(rows: Sequence[RankedCycle]) -> None:
    if not rows:
        log.info("No profitable cycles found")
        return
    for row in rows:
        log.info(
            "projected_profit=%s length=%d path=%s pool_ids=%s",
            row.projected_profit,
            row.length,
            row.route,
            row.pool_ids,
        )


async def find_arbitrage_cycles(
    graph: PoolGraph,
    root_token: Token,
    config: SearchConfig | None = None,
    limit: int = REPORT_LIMIT,
) -> List[RankedCycle]:
    """Search every root-adjacent pool, then rank, log and return the report."""
    cycles = await CycleSearch(graph, config).find_cycles(root_token)
    rows = build_report(cycles, limit)
    log_report(rows)
    return rows


__all__ = ["REPORT_LIMIT", "rank_cycles", "build_report", "log_report", "find_arbitrage_cycles"]
