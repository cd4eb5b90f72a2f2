"""Prometheus metrics helpers for the cycle finder."""

from __future__ import annotations

from typing import Dict

from prometheus_client import Counter, Gauge, Histogram

# Search
SEARCH_STATES_EXPLORED = Counter("arb_search_states_explored_total", "(pool, token) states expanded by the cycle search")
SEARCH_MEMO_HITS = Counter("arb_search_memo_hits_total", "Cycle search memo table hits")
SEARCH_DEPTH_CUTOFFS = Counter("arb_search_depth_cutoffs_total", "Branches pruned by the depth limit")
SEARCH_LIQUIDITY_PRUNED = Counter("arb_search_liquidity_pruned_total", "Branches pruned by the liquidity gate")
SEARCH_MALFORMED_POOLS = Counter("arb_search_malformed_pools_total", "Root pools dropped for malformed data", ["field"])
SEARCH_DURATION_SECONDS = Histogram(
    "arb_search_duration_seconds",
    "Time to explore one root-adjacent pool",
    buckets=(0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1, 5, 30),
)
CYCLES_FOUND = Gauge("arb_cycles_found", "Cycles with a positive multiplier in the last run", ["root_token"])
BEST_MULTIPLIER = Gauge("arb_best_multiplier", "Best cycle multiplier in the last run", ["root_token"])

# Ingest
INGEST_REQUESTS = Counter("arb_ingest_requests_total", "Outbound ingest requests", ["source"])
INGEST_ERRORS = Counter("arb_ingest_errors_total", "Ingest errors", ["type"])
INGEST_LATENCY_SECONDS = Histogram(
    "arb_ingest_latency_seconds",
    "Ingest request latency",
    ["source"],
    buckets=(0.05, 0.1, 0.2, 0.5, 1, 2, 5, 10),
)
POOLS_SAVED = Counter("arb_pools_saved_total", "Pools persisted by the explorer")
BALANCES_UPDATED = Counter("arb_balances_updated_total", "Pool token balances persisted by the balance refresher")

# State store
STATE_READ_ERRORS = Counter("arb_state_read_errors_total", "Errors reading state", ["source"])
STATE_WRITE_ERRORS = Counter("arb_state_write_errors_total", "Errors writing state", ["source"])


def increment_counter(counter: Counter, labels: Dict[str, str]) -> None:
    """Increment a labeled counter safely."""
    counter.labels(**labels).inc()


def observe_histogram(hist: Histogram, value: float) -> None:
    """Record a value in a histogram."""
    hist.observe(value)


__all__ = [
    "SEARCH_STATES_EXPLORED",
    "SEARCH_MEMO_HITS",
    "SEARCH_DEPTH_CUTOFFS",
    "SEARCH_LIQUIDITY_PRUNED",
    "SEARCH_MALFORMED_POOLS",
    "SEARCH_DURATION_SECONDS",
    "CYCLES_FOUND",
    "BEST_MULTIPLIER",
    "INGEST_REQUESTS",
    "INGEST_ERRORS",
    "INGEST_LATENCY_SECONDS",
    "POOLS_SAVED",
    "BALANCES_UPDATED",
    "STATE_READ_ERRORS",
    "STATE_WRITE_ERRORS",
    "increment_counter",
    "observe_histogram",
]
