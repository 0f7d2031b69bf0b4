"""RecommendationComputer interface and the off-chain relay job.

The model that produces recommendations lives outside this service; all the
bridge needs is something with ``compute(vault, market_data)``. The relay
answers a pending request by running the computer and submitting the result
through ``OracleBridge.fulfill`` so it gets the same validation as any
oracle callback.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Protocol

from airey.models import StrategyRecommendation
from airey.oracle_bridge import OracleBridge

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ComputedRecommendation:
    strategy: str
    confidence: int
    expected_apy: float


class RecommendationComputer(Protocol):
    def compute(self, vault: str, market_data: dict[str, Any]) -> ComputedRecommendation: ...


def relay_recommendation(
    bridge: OracleBridge,
    request_id: str,
    computer: RecommendationComputer,
    market_data: dict[str, Any] | None = None,
    observed_at: float | None = None,
) -> StrategyRecommendation:
    """Compute a recommendation for a pending request and fulfill it.

    Computer errors propagate and leave the request Pending; the expiry
    sweep eventually terminates it.
    """
    request = bridge.get_request(request_id)
    started = time.perf_counter()
    result = computer.compute(request.vault, market_data or {})
    logger.info("Computed recommendation for %s in %.1fms", request.vault,
                (time.perf_counter() - started) * 1000)
    return bridge.fulfill(
        request_id,
        strategy=result.strategy,
        confidence=result.confidence,
        expected_apy=result.expected_apy,
        observed_at=observed_at,
    )
