"""RecommendationStore — the bridge's only mutable shared state.

Three keyed tables, each a ``PersistentStore`` (Redis-backed when available):

  recommendations  vault      → latest accepted StrategyRecommendation
  requests         request_id → RecommendationRequest (all statuses)
  executions       vault      → append-only list of ExecutionRecord

plus an in-memory ``vault → pending request_id`` index (the outstanding set),
rebuilt from the request table on ``restore()``.

Locking: one lock per vault guards issuance, status transitions, recommendation
writes and the outstanding index. Terminal requests are kept for lookups until
``prune_resolved`` drops them.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from airey.errors import ConflictError, ValidationError
from airey.locks import KeyedLocks
from airey.models import (
    ExecutionRecord,
    RecommendationRequest,
    RequestStatus,
    StrategyRecommendation,
)
from airey.persistence import PersistentStore

logger = logging.getLogger(__name__)


class RecommendationStore:
    def __init__(
        self,
        recommendations: PersistentStore | None = None,
        requests: PersistentStore | None = None,
        executions: PersistentStore | None = None,
    ) -> None:
        self._recommendations = recommendations if recommendations is not None else PersistentStore("recommendations")
        self._requests = requests if requests is not None else PersistentStore("requests")
        self._executions = executions if executions is not None else PersistentStore("executions")
        self._pending_by_vault: dict[str, str] = {}
        self._vault_locks = KeyedLocks()

    @property
    def persistent_stores(self) -> list[PersistentStore]:
        return [self._recommendations, self._requests, self._executions]

    @contextmanager
    def vault_lock(self, vault: str) -> Iterator[None]:
        with self._vault_locks.hold(vault):
            yield

    # ── requests ──

    def add_request(self, request: RecommendationRequest) -> None:
        """Record a new Pending request; ConflictError if the vault already has one."""
        with self.vault_lock(request.vault):
            existing = self._pending_by_vault.get(request.vault)
            if existing is not None:
                raise ConflictError(
                    f"Vault '{request.vault}' already has a pending request",
                    vault=request.vault,
                    pending_request_id=existing,
                )
            if request.request_id in self._requests:
                raise ConflictError(
                    f"Request id '{request.request_id}' already used",
                    request_id=request.request_id,
                )
            self._requests[request.request_id] = request.to_dict()
            self._pending_by_vault[request.vault] = request.request_id

    def get_request(self, request_id: str) -> RecommendationRequest | None:
        raw = self._requests.get(request_id)
        return RecommendationRequest.from_dict(raw) if raw is not None else None

    def pending_request_for(self, vault: str) -> RecommendationRequest | None:
        request_id = self._pending_by_vault.get(vault)
        return self.get_request(request_id) if request_id else None

    def outstanding(self) -> list[RecommendationRequest]:
        found = (self.get_request(rid) for rid in list(self._pending_by_vault.values()))
        return sorted((r for r in found if r is not None), key=lambda r: r.issued_at)

    def resolve_request(
        self,
        request_id: str,
        status: RequestStatus,
        resolved_at: float,
        reason: str | None = None,
    ) -> RecommendationRequest | None:
        """Compare-and-set Pending → ``status``.

        Returns the updated request, or None when the request is unknown or
        already terminal (another writer won).
        """
        if not status.is_terminal:
            raise ValueError(f"{status.value} is not a terminal status")

        current = self.get_request(request_id)
        if current is None:
            return None

        with self.vault_lock(current.vault):
            current = self.get_request(request_id)
            if current is None or current.status is not RequestStatus.PENDING:
                return None
            current.status = status
            current.resolved_at = resolved_at
            current.reason = reason
            self._requests[request_id] = current.to_dict()
            if self._pending_by_vault.get(current.vault) == request_id:
                del self._pending_by_vault[current.vault]
            return current

    def prune_resolved(self, before: float) -> int:
        """Delete terminal requests resolved before ``before``. Pending ones are never touched."""
        stale = [
            rid for rid, raw in list(self._requests.items())
            if raw.get("status") != RequestStatus.PENDING.value
            and raw.get("resolved_at") is not None
            and raw["resolved_at"] < before
        ]
        for rid in stale:
            self._requests.pop(rid, None)
        return len(stale)

    # ── recommendations ──

    def get_recommendation(self, vault: str) -> StrategyRecommendation | None:
        raw = self._recommendations.get(vault)
        return StrategyRecommendation.from_dict(raw) if raw is not None else None

    def put_recommendation(self, recommendation: StrategyRecommendation) -> None:
        """Overwrite the vault's recommendation; timestamps never move backwards."""
        with self.vault_lock(recommendation.vault):
            current = self.get_recommendation(recommendation.vault)
            if current is not None and recommendation.timestamp < current.timestamp:
                raise ValidationError(
                    "Recommendation is older than the stored one",
                    vault=recommendation.vault,
                    stored_timestamp=current.timestamp,
                    observed_at=recommendation.timestamp,
                )
            self._recommendations[recommendation.vault] = recommendation.to_dict()

    def recommendations(self) -> list[StrategyRecommendation]:
        return [StrategyRecommendation.from_dict(raw) for raw in list(self._recommendations.values())]

    # ── execution history ──

    def append_execution(self, record: ExecutionRecord) -> None:
        with self.vault_lock(record.vault):
            history = list(self._executions.get(record.vault, []))
            history.append(record.to_dict())
            self._executions[record.vault] = history

    def executions(self, vault: str) -> list[ExecutionRecord]:
        return [ExecutionRecord.from_dict(raw) for raw in self._executions.get(vault, [])]

    def last_executed_at(self, vault: str) -> float | None:
        history = self._executions.get(vault)
        if not history:
            return None
        return max(float(raw["executed_at"]) for raw in history)

    # ── lifecycle ──

    def clear(self) -> None:
        for store in self.persistent_stores:
            store.clear()
        self._pending_by_vault.clear()

    def _rebuild_pending_index(self) -> None:
        self._pending_by_vault.clear()
        for raw in self._requests.values():
            if raw.get("status") == RequestStatus.PENDING.value:
                self._pending_by_vault[raw["vault"]] = raw["request_id"]

    async def restore(self) -> int:
        """Restore all tables from Redis and rebuild the outstanding set. Returns key count."""
        total = 0
        for store in self.persistent_stores:
            total += await store.restore()
        self._rebuild_pending_index()
        if total:
            logger.info("Restored %d bridge record(s), %d outstanding request(s)",
                        total, len(self._pending_by_vault))
        return total

    async def persist_all(self) -> int:
        total = 0
        for store in self.persistent_stores:
            total += await store.persist_all()
        return total
