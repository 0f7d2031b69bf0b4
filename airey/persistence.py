"""Redis-backed bridge state persistence with in-memory fallback.

Stores are keyed by ``{prefix}{store_name}:{key}`` in Redis. Values are
JSON documents (records from ``airey.models`` serialised via ``to_dict``).

When Redis is unavailable the class degrades to a plain dict so the
bridge keeps working exactly as before, just without durability.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Coroutine
from typing import Any, Iterator

from airey.config import (
    PERSISTENCE_ENABLED,
    PERSISTENCE_KEY_PREFIX,
    PERSISTENCE_REDIS_URL,
)

logger = logging.getLogger(__name__)

_redis_client: Any | None = None
_redis_available: bool = False
# loop that owns the Redis client; sync routes and the sweep write from worker threads
_redis_loop: asyncio.AbstractEventLoop | None = None


def _redacted(url: str) -> str:
    return url.split("@")[-1] if "@" in url else url


async def init_persistence() -> None:
    """Connect to Redis for persistence. Safe to call even if Redis is down."""
    global _redis_client, _redis_available, _redis_loop

    if not PERSISTENCE_ENABLED or not PERSISTENCE_REDIS_URL:
        logger.info("Bridge persistence disabled (PERSISTENCE_ENABLED=%s, URL=%s)",
                    PERSISTENCE_ENABLED, bool(PERSISTENCE_REDIS_URL))
        return

    try:
        import redis.asyncio as aioredis
        _redis_client = aioredis.from_url(
            PERSISTENCE_REDIS_URL,
            decode_responses=False,
            socket_connect_timeout=5,
        )
        await _redis_client.ping()
        _redis_available = True
        _redis_loop = asyncio.get_running_loop()
        logger.info("Bridge persistence: Redis connected (%s)", _redacted(PERSISTENCE_REDIS_URL))
    except Exception:
        _redis_available = False
        _redis_client = None
        logger.warning("Bridge persistence: Redis unavailable, using in-memory only", exc_info=True)


async def close_persistence() -> None:
    global _redis_client, _redis_available, _redis_loop
    if _redis_client is not None:
        try:
            await _redis_client.aclose()
        except Exception:
            logger.debug("Redis close failed", exc_info=True)
    _redis_client = None
    _redis_available = False
    _redis_loop = None


def _schedule(coro: Coroutine[Any, Any, None]) -> None:
    """Run ``coro`` on the Redis loop without waiting, from any thread."""
    try:
        running = asyncio.get_running_loop()
    except RuntimeError:
        running = None
    if running is not None and (_redis_loop is None or running is _redis_loop):
        running.create_task(coro)
    elif _redis_loop is not None and _redis_loop.is_running():
        asyncio.run_coroutine_threadsafe(coro, _redis_loop)
    else:
        coro.close()
        logger.warning("Redis write dropped: no running event loop")


def redis_status() -> dict[str, Any]:
    return {"enabled": PERSISTENCE_ENABLED, "connected": _redis_available}


class PersistentStore:
    """Dict-like store that lazily persists to Redis on write.

    Read operations always hit the in-memory dict (fast path).
    Write operations update both in-memory and Redis (if available).
    On startup, ``restore()`` loads all keys from Redis into memory.
    """

    def __init__(self, name: str) -> None:
        self._name = name
        self._data: dict[str, Any] = {}

    @property
    def name(self) -> str:
        return self._name

    def _redis_key(self, key: str) -> str:
        return f"{PERSISTENCE_KEY_PREFIX}{self._name}:{key}"

    # ── dict interface ──

    def __contains__(self, key: str) -> bool:
        return key in self._data

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __setitem__(self, key: str, value: Any) -> None:
        self._data[key] = value
        self._persist(key, value)

    def __delitem__(self, key: str) -> None:
        self._data.pop(key, None)
        self._delete(key)

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def values(self):
        return self._data.values()

    def items(self):
        return self._data.items()

    def keys(self):
        return self._data.keys()

    def pop(self, key: str, *args) -> Any:
        val = self._data.pop(key, *args)
        self._delete(key)
        return val

    def clear(self) -> None:
        """Drop in-memory state only; Redis keys are left for the next restore()."""
        self._data.clear()

    # ── persistence helpers (fire-and-forget onto the Redis loop) ──

    def _persist(self, key: str, value: Any) -> None:
        if not _redis_available or _redis_client is None:
            return
        # serialised now so later in-memory changes cannot leak into this write
        data = json.dumps(value, default=str).encode()
        _schedule(self._async_persist(key, data))

    async def _async_persist(self, key: str, data: bytes) -> None:
        try:
            await _redis_client.set(self._redis_key(key), data)
        except Exception:
            logger.warning("Failed to persist %s:%s to Redis", self._name, key, exc_info=True)

    def _delete(self, key: str) -> None:
        if not _redis_available or _redis_client is None:
            return
        _schedule(self._async_delete(key))

    async def _async_delete(self, key: str) -> None:
        try:
            await _redis_client.delete(self._redis_key(key))
        except Exception:
            logger.warning("Failed to delete %s:%s from Redis", self._name, key, exc_info=True)

    # ── bulk operations ──

    async def restore(self) -> int:
        """Load all keys for this store from Redis into memory. Returns count."""
        if not _redis_available or _redis_client is None:
            return 0

        pattern = f"{PERSISTENCE_KEY_PREFIX}{self._name}:*"
        prefix_len = len(f"{PERSISTENCE_KEY_PREFIX}{self._name}:")
        count = 0
        try:
            async for raw_key in _redis_client.scan_iter(match=pattern, count=100):
                try:
                    raw = await _redis_client.get(raw_key)
                    if raw is None:
                        continue
                    key = raw_key.decode() if isinstance(raw_key, bytes) else raw_key
                    self._data[key[prefix_len:]] = json.loads(raw)
                    count += 1
                except Exception:
                    logger.warning("Failed to restore key %s", raw_key, exc_info=True)
        except Exception:
            logger.warning("Failed to scan Redis for %s", self._name, exc_info=True)
        return count

    async def persist_all(self) -> int:
        """Write all in-memory data to Redis. Returns count."""
        if not _redis_available or _redis_client is None:
            return 0

        count = 0
        for key, value in self._data.items():
            try:
                data = json.dumps(value, default=str).encode()
                await _redis_client.set(self._redis_key(key), data)
                count += 1
            except Exception:
                logger.warning("Failed to persist %s:%s", self._name, key, exc_info=True)
        return count
