"""API security middleware: key checks, per-traffic-class rate limiting, request ID, CORS.

Bridge traffic falls into four classes with separate budgets:

  fulfill   POST /oracle/fulfill        oracle node callbacks, bucketed per node
  execute   POST /execution/try         vault switches, the scarcest budget
  request   other POSTs under /oracle   issuance, cancellation, manual expiry
  read      everything else             GETs and the side-effect-free /gate/check
"""

import logging
import os
import time
import uuid

import structlog.contextvars
from fastapi import HTTPException, Request, Security
from fastapi.security import APIKeyHeader
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

logger = logging.getLogger("airey_bridge.security")

_api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


def _keys_from_env(name: str) -> set[str]:
    return {k.strip() for k in os.environ.get(name, "").split(",") if k.strip()}


async def verify_api_key(api_key: str | None = Security(_api_key_header)) -> str | None:
    """Router-wide dependency. Open when AIREY_API_KEYS is unset (dev)."""
    api_keys = _keys_from_env("AIREY_API_KEYS")
    if not api_keys:
        return None
    if not api_key or api_key not in api_keys | _keys_from_env("AIREY_ORACLE_NODE_KEYS"):
        raise HTTPException(status_code=401, detail={"error": "unauthorized", "message": "Invalid or missing API key"})
    return api_key


async def verify_oracle_node(api_key: str | None = Security(_api_key_header)) -> str | None:
    """Fulfillment-only dependency: when AIREY_ORACLE_NODE_KEYS is set, only those keys may fulfill."""
    node_keys = _keys_from_env("AIREY_ORACLE_NODE_KEYS")
    if not node_keys:
        return None
    if api_key not in node_keys:
        raise HTTPException(
            status_code=403,
            detail={"error": "not_an_oracle_node", "message": "Fulfillments must come from an oracle node key"},
        )
    return api_key


# ── Rate limiting ──

WINDOW_SECONDS = 60

TRAFFIC_FULFILL = "fulfill"
TRAFFIC_EXECUTE = "execute"
TRAFFIC_REQUEST = "request"
TRAFFIC_READ = "read"

_DEFAULT_LIMITS = {
    TRAFFIC_FULFILL: 60,
    TRAFFIC_EXECUTE: 10,
    TRAFFIC_REQUEST: 30,
    TRAFFIC_READ: 120,
}


def traffic_class(method: str, path: str) -> str:
    if method != "POST":
        return TRAFFIC_READ
    if path.endswith("/oracle/fulfill"):
        return TRAFFIC_FULFILL
    if path.endswith("/execution/try"):
        return TRAFFIC_EXECUTE
    if "/oracle/" in path:
        return TRAFFIC_REQUEST
    return TRAFFIC_READ


def limit_for(traffic: str) -> int:
    """Per-window budget, overridable with AIREY_RATE_LIMIT_<CLASS>."""
    return int(os.environ.get(f"AIREY_RATE_LIMIT_{traffic.upper()}", _DEFAULT_LIMITS[traffic]))


class SlidingWindow:
    """Timestamps per bucket over the last WINDOW_SECONDS; empty buckets are dropped."""

    def __init__(self, window: float = WINDOW_SECONDS):
        self.window = window
        self._hits: dict[str, list[float]] = {}

    def hit(self, bucket: str, limit: int, now: float) -> tuple[bool, int, int]:
        """Record a hit if under ``limit``. Returns (allowed, remaining, retry_after)."""
        cutoff = now - self.window
        hits = [t for t in self._hits.get(bucket, ()) if t > cutoff]
        if len(hits) >= limit:
            self._hits[bucket] = hits
            return False, 0, int(self.window - (now - hits[0])) + 1
        hits.append(now)
        self._hits[bucket] = hits
        return True, limit - len(hits), 0

    def sweep(self, now: float) -> None:
        cutoff = now - self.window
        for bucket in [b for b, hits in self._hits.items() if not hits or hits[-1] <= cutoff]:
            del self._hits[bucket]

    def __len__(self) -> int:
        return len(self._hits)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Sliding-window limits per (traffic class, caller).

    Fulfillments are bucketed by the ``X-Oracle-Node`` header so one noisy
    node cannot starve the others sharing a key; every other class buckets
    by API key, then client IP.
    """

    EXEMPT_PATHS = frozenset({"/health", "/metrics", "/openapi.json", "/docs", "/redoc"})
    SWEEP_EVERY = 500

    def __init__(self, app):
        super().__init__(app)
        self.window = SlidingWindow()
        self._since_sweep = 0

    @staticmethod
    def _caller(request: Request, traffic: str) -> str:
        if traffic == TRAFFIC_FULFILL:
            node_id = request.headers.get("x-oracle-node")
            if node_id:
                return f"node:{node_id}"
        api_key = request.headers.get("x-api-key")
        if api_key:
            return f"key:{api_key}"
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            return f"ip:{forwarded.split(',')[0].strip()}"
        client = request.client
        return f"ip:{client.host}" if client else "ip:unknown"

    def bucket_for(self, request: Request) -> tuple[str, str]:
        traffic = traffic_class(request.method, request.url.path)
        return traffic, f"{traffic}|{self._caller(request, traffic)}"

    async def dispatch(self, request: Request, call_next):
        if request.url.path in self.EXEMPT_PATHS or os.environ.get("TESTING") == "1":
            return await call_next(request)

        traffic, bucket = self.bucket_for(request)
        limit = limit_for(traffic)
        now = time.monotonic()

        self._since_sweep += 1
        if self._since_sweep >= self.SWEEP_EVERY:
            self.window.sweep(now)
            self._since_sweep = 0

        allowed, remaining, retry_after = self.window.hit(bucket, limit, now)
        if not allowed:
            from api.metrics import rate_limited_total

            rate_limited_total.labels(traffic_class=traffic).inc()
            logger.warning("Rate limit exceeded for %s on %s", bucket, request.url.path)
            return JSONResponse(
                status_code=429,
                content={
                    "detail": {
                        "error": "rate_limited",
                        "message": f"{traffic} budget of {limit}/{WINDOW_SECONDS}s exhausted",
                        "traffic_class": traffic,
                        "retry_after": retry_after,
                    }
                },
                headers={"Retry-After": str(retry_after)},
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(limit)
        response.headers["X-RateLimit-Remaining"] = str(remaining)
        return response


# ── Request ID ──


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Bind X-Request-ID (incoming or fresh) to structlog contextvars and echo it back.

    Execution-log entries pick it up through the same contextvars.
    """

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        structlog.contextvars.bind_contextvars(request_id=request_id)
        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            structlog.contextvars.clear_contextvars()


def get_allowed_origins() -> list[str]:
    """AIREY_ALLOWED_ORIGINS, comma separated; only the local dashboard by default."""
    origins = [o.strip() for o in os.environ.get("AIREY_ALLOWED_ORIGINS", "").split(",") if o.strip()]
    return origins or ["http://localhost:3000"]
