"""Background jobs for the API process: the periodic request-expiry sweep."""

import asyncio
import logging

logger = logging.getLogger(__name__)

_expiry_task: asyncio.Task | None = None


def run_expiry_sweep() -> list[str]:
    """Expire timed-out requests, drop old resolved ones, and update the outstanding gauge."""
    from airey.config import REQUEST_RETENTION_SECONDS, REQUEST_TIMEOUT_SECONDS
    from api.metrics import expired_requests_total, outstanding_requests
    from api.stores import get_bridge

    bridge = get_bridge()
    expired = bridge.expire_stale(timeout=REQUEST_TIMEOUT_SECONDS)
    if expired:
        expired_requests_total.inc(len(expired))
    bridge.prune_resolved(retention=REQUEST_RETENTION_SECONDS)
    outstanding_requests.set(len(bridge.outstanding()))
    return expired


async def _expiry_loop() -> None:
    from airey.config import EXPIRY_SWEEP_INTERVAL_SECONDS

    while True:
        await asyncio.sleep(EXPIRY_SWEEP_INTERVAL_SECONDS)
        try:
            expired = await asyncio.to_thread(run_expiry_sweep)
            if expired:
                logger.info("Expiry sweep: %d request(s) expired", len(expired))
            else:
                logger.debug("Expiry sweep: nothing to expire")
        except Exception:
            logger.error("Expiry sweep error", exc_info=True)


def start_expiry_scheduler() -> None:
    """Start the periodic expiry sweep background task."""
    from airey.config import EXPIRY_SWEEP_ENABLED, EXPIRY_SWEEP_INTERVAL_SECONDS

    global _expiry_task
    if not EXPIRY_SWEEP_ENABLED:
        logger.info("Expiry sweep disabled")
        return
    if _expiry_task is not None:
        return
    _expiry_task = asyncio.create_task(_expiry_loop())
    logger.info("Expiry sweep started (interval=%ss)", EXPIRY_SWEEP_INTERVAL_SECONDS)


def stop_expiry_scheduler() -> None:
    """Cancel the expiry sweep background task."""
    global _expiry_task
    if _expiry_task is not None:
        _expiry_task.cancel()
        _expiry_task = None
        logger.info("Expiry sweep stopped")
