"""ExecutionCoordinator — request → fulfillment → gate → execution → record.

Safety hierarchy for ``try_execute`` (every gate must pass):
  1. a stored recommendation exists for the vault
  2. it is fresh (max_recommendation_age)
  3. its confidence clears min_confidence
  4. the vault's cooldown has elapsed
  5. the VaultExecutor reports success

Only after step 5 succeeds is an ExecutionRecord appended; a failed vault call
leaves no trace in the store. Nothing is retried here; a retried call simply
runs the whole hierarchy again against current state.
"""
from __future__ import annotations

import logging
import threading
import time
from collections import Counter, deque
from typing import Any

import structlog.contextvars

from airey.config import EXECUTION_LOG_MAX_SIZE
from airey.executor import VaultExecutor
from airey.gate import StrategyGate
from airey.locks import KeyedLocks
from airey.models import ExecutionOutcome, ExecutionRecord, GatePolicy, SkipReason
from airey.oracle_bridge import OracleBridge
from airey.store import RecommendationStore

logger = logging.getLogger(__name__)


def _get_request_id() -> str | None:
    return structlog.contextvars.get_contextvars().get("request_id")


class ExecutionCoordinator:
    def __init__(
        self,
        bridge: OracleBridge,
        gate: StrategyGate,
        executor: VaultExecutor,
        default_policy: GatePolicy | None = None,
        log_size: int = EXECUTION_LOG_MAX_SIZE,
    ) -> None:
        self.bridge = bridge
        self.gate = gate
        self.executor = executor
        self.default_policy = default_policy or GatePolicy()
        self._vault_locks = KeyedLocks()
        self._log: deque[dict[str, Any]] = deque(maxlen=log_size)
        self._log_lock = threading.Lock()

    @property
    def store(self) -> RecommendationStore:
        return self.bridge.store

    def request_and_await(self, vault: str, now: float | None = None) -> str:
        """Issue a recommendation request; the fulfillment arrives later via OracleBridge.fulfill."""
        return self.bridge.request_recommendation(vault, now=now)

    def try_execute(
        self,
        vault: str,
        now: float | None = None,
        policy: GatePolicy | None = None,
    ) -> ExecutionOutcome:
        now = time.time() if now is None else now
        policy = policy or self.default_policy

        # one attempt per vault at a time: cooldown is checked and recorded atomically
        with self._vault_locks.hold(vault):
            decision = self.gate.can_execute(vault, now, policy)
            if not decision.allowed:
                outcome = ExecutionOutcome.skipped(vault, decision.reason, strategy=decision.strategy)
                logger.info("Execution skipped for %s: %s", vault, decision.reason.value)
                self._log_attempt(outcome, now)
                return outcome

            params = {
                "confidence": decision.confidence,
                "expected_apy": decision.recommendation.expected_apy,
                "recommendation_timestamp": decision.recommendation.timestamp,
            }
            try:
                receipt = self.executor.execute(vault, decision.strategy, params)
            except Exception as e:
                logger.error("Vault execution failed for %s → %s: %s", vault, decision.strategy, e)
                outcome = ExecutionOutcome.skipped(
                    vault, SkipReason.EXECUTION_FAILED, strategy=decision.strategy, error=str(e),
                )
                self._log_attempt(outcome, now)
                return outcome

            if not receipt.ok:
                logger.error("Vault executor reported failure for %s → %s: %s",
                             vault, decision.strategy, receipt.error)
                outcome = ExecutionOutcome.skipped(
                    vault, SkipReason.EXECUTION_FAILED, strategy=decision.strategy,
                    error=receipt.error or "executor reported failure",
                )
                self._log_attempt(outcome, now)
                return outcome

            record = ExecutionRecord(
                vault=vault,
                strategy=decision.strategy,
                confidence=decision.confidence,
                executed_at=now,
            )
            self.store.append_execution(record)

        outcome = ExecutionOutcome.executed_with(record, tx_hash=receipt.tx_hash)
        logger.info("Executed %s → %s (confidence=%d, tx=%s%s)", vault, record.strategy,
                    record.confidence, receipt.tx_hash, ", simulated" if receipt.simulated else "")
        self._log_attempt(outcome, now, simulated=receipt.simulated)
        return outcome

    # ── attempt log ──

    def _log_attempt(self, outcome: ExecutionOutcome, now: float, simulated: bool = False) -> None:
        entry = outcome.to_dict()
        entry["attempted_at"] = now
        entry["simulated"] = simulated
        request_id = _get_request_id()
        if request_id:
            entry["request_id"] = request_id
        with self._log_lock:
            self._log.append(entry)

    def get_execution_log(self, limit: int = 50) -> list[dict[str, Any]]:
        with self._log_lock:
            entries = list(self._log)
        return entries[-limit:]

    def get_execution_stats(self) -> dict[str, Any]:
        with self._log_lock:
            entries = list(self._log)
        statuses = Counter(e["status"] for e in entries)
        reasons = Counter(e["reason"] for e in entries if e["reason"])
        return {
            "total_attempts": len(entries),
            "executed": statuses.get("executed", 0),
            "skipped": statuses.get("skipped", 0),
            "failed": reasons.get(SkipReason.EXECUTION_FAILED.value, 0),
            "skip_reasons": dict(reasons),
            "vaults": len({e["vault"] for e in entries}),
        }

    def clear_log(self) -> None:
        with self._log_lock:
            self._log.clear()
