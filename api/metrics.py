"""Custom Prometheus metrics for the recommendation bridge."""

from prometheus_client import Counter, Gauge

recommendation_requests_total = Counter(
    "recommendation_requests_total",
    "Recommendation requests by outcome",
    ["outcome"],
)

fulfillments_total = Counter(
    "oracle_fulfillments_total",
    "Oracle fulfillments by outcome",
    ["outcome"],
)

expired_requests_total = Counter(
    "expired_requests_total",
    "Requests expired by the timeout sweep",
)

gate_decisions_total = Counter(
    "strategy_gate_decisions_total",
    "Strategy gate decisions",
    ["decision"],
)

executions_total = Counter(
    "vault_executions_total",
    "Automatic execution attempts by status and reason",
    ["status", "reason"],
)

outstanding_requests = Gauge(
    "outstanding_recommendation_requests",
    "Requests currently pending fulfillment",
)

rate_limited_total = Counter(
    "rate_limited_requests_total",
    "Requests rejected by the rate limiter",
    ["traffic_class"],
)
