"""StrategyGate — may a vault's stored recommendation be executed automatically?

Pure decision: reads the store, never writes it. Checks run in a fixed order
and the first failing one is reported:

  1. no_recommendation     — nothing stored for the vault
  2. stale_recommendation  — now - timestamp > max_recommendation_age
  3. low_confidence        — confidence < min_confidence
  4. cooldown_active       — now < last execution + cooldown
"""
from __future__ import annotations

import logging

from airey.models import GateDecision, GatePolicy, SkipReason
from airey.store import RecommendationStore

logger = logging.getLogger(__name__)


class StrategyGate:
    def __init__(self, store: RecommendationStore) -> None:
        self.store = store

    def can_execute(self, vault: str, now: float, policy: GatePolicy | None = None) -> GateDecision:
        policy = policy or GatePolicy()

        recommendation = self.store.get_recommendation(vault)
        if recommendation is None:
            return self._deny(vault, SkipReason.NO_RECOMMENDATION)

        age = now - recommendation.timestamp
        if age > policy.max_recommendation_age:
            return self._deny(vault, SkipReason.STALE_RECOMMENDATION, recommendation,
                              age=age, max_age=policy.max_recommendation_age)

        if recommendation.confidence < policy.min_confidence:
            return self._deny(vault, SkipReason.LOW_CONFIDENCE, recommendation,
                              confidence=recommendation.confidence, min_confidence=policy.min_confidence)

        last = self.store.last_executed_at(vault)
        if last is not None and now < last + policy.cooldown:
            return self._deny(vault, SkipReason.COOLDOWN_ACTIVE, recommendation,
                              remaining=last + policy.cooldown - now)

        return GateDecision.ok(recommendation)

    @staticmethod
    def _deny(vault: str, reason: SkipReason, recommendation=None, **detail: float) -> GateDecision:
        logger.debug("Gate denied %s: %s %s", vault, reason.value, detail)
        return GateDecision.denied(vault, reason, recommendation)
