"""OracleBridge — request/fulfillment correlation for off-chain recommendations.

Issuance is synchronous; fulfillment arrives later as an independent message
(an oracle node callback or ``airey.computer.relay_recommendation``). Nothing
here waits for a fulfillment.

Terminal transitions (fulfilled / expired / cancelled) go through the store's
compare-and-set, so a fulfillment racing an expiry sweep resolves to exactly
one winner.
"""
from __future__ import annotations

import logging
import math
import numbers
import time
import uuid

from airey.config import MAX_OBSERVATION_SKEW_SECONDS, REQUEST_RETENTION_SECONDS, REQUEST_TIMEOUT_SECONDS
from airey.errors import UnknownRequestError, ValidationError
from airey.events import EventSink, RecommendationUpdated, RequestIssued
from airey.models import (
    RecommendationRequest,
    RequestStatus,
    StrategyRecommendation,
)
from airey.store import RecommendationStore

logger = logging.getLogger(__name__)

# Terminal-reason labels stored on the request
REASON_TIMEOUT = "timeout"
REASON_INVALID_CONFIDENCE = "invalid_confidence"
REASON_INVALID_APY = "invalid_expected_apy"
REASON_INVALID_STRATEGY = "invalid_strategy"
REASON_INVALID_OBSERVED_AT = "invalid_observed_at"
REASON_STALE_OBSERVATION = "stale_observation"
REASON_CANCELLED = "cancelled"


def _new_request_id() -> str:
    return uuid.uuid4().hex


def _check_payload(
    strategy: object,
    confidence: object,
    expected_apy: object,
    observed_at: object,
    now: float,
) -> str | None:
    """Return the rejection reason for a fulfillment payload, or None if valid."""
    if isinstance(confidence, bool) or not isinstance(confidence, numbers.Integral):
        return REASON_INVALID_CONFIDENCE
    if not 0 <= int(confidence) <= 100:
        return REASON_INVALID_CONFIDENCE
    if isinstance(expected_apy, bool) or not isinstance(expected_apy, numbers.Real):
        return REASON_INVALID_APY
    if not math.isfinite(float(expected_apy)) or float(expected_apy) < 0:
        return REASON_INVALID_APY
    if not isinstance(strategy, str) or not strategy.strip():
        return REASON_INVALID_STRATEGY
    # NaN never ages out of the freshness gate and +inf pins the vault forever
    if isinstance(observed_at, bool) or not isinstance(observed_at, numbers.Real):
        return REASON_INVALID_OBSERVED_AT
    if not math.isfinite(float(observed_at)) or float(observed_at) > now + MAX_OBSERVATION_SKEW_SECONDS:
        return REASON_INVALID_OBSERVED_AT
    return None


class OracleBridge:
    def __init__(self, store: RecommendationStore, events: EventSink) -> None:
        self.store = store
        self.events = events

    def request_recommendation(self, vault: str, now: float | None = None) -> str:
        """Issue a request for ``vault`` and return its id.

        Raises ConflictError while another request for the vault is Pending.
        """
        issued_at = time.time() if now is None else now
        request = RecommendationRequest(
            request_id=_new_request_id(),
            vault=vault,
            issued_at=issued_at,
        )
        self.store.add_request(request)
        logger.info("Recommendation requested for %s (request_id=%s)", vault, request.request_id)
        self.events.emit(RequestIssued(request_id=request.request_id, vault=vault, issued_at=issued_at))
        return request.request_id

    def fulfill(
        self,
        request_id: str,
        strategy: str,
        confidence: int,
        expected_apy: float,
        observed_at: float | None = None,
        now: float | None = None,
    ) -> StrategyRecommendation:
        """Accept an oracle fulfillment for a Pending request.

        Invalid payloads terminate the request (Expired, with a reason) and
        leave the recommendation store untouched. ``observed_at`` defaults to
        ``now`` and may not lie more than MAX_OBSERVATION_SKEW_SECONDS ahead of it.
        """
        request = self.store.get_request(request_id)
        if request is None or request.status is not RequestStatus.PENDING:
            raise UnknownRequestError(
                f"No pending request '{request_id}'",
                request_id=request_id,
                status=request.status.value if request else None,
            )

        now = time.time() if now is None else now
        timestamp = now if observed_at is None else observed_at

        reason = _check_payload(strategy, confidence, expected_apy, timestamp, now)
        if reason is not None:
            self._reject(request, now, reason)
            # offending values go in the message only: NaN is not valid JSON
            raise ValidationError(
                f"Fulfillment rejected: {reason} (confidence={confidence!r}, "
                f"expected_apy={expected_apy!r}, observed_at={timestamp!r})",
                request_id=request_id,
                reason=reason,
            )

        recommendation = StrategyRecommendation(
            vault=request.vault,
            strategy=strategy,
            confidence=int(confidence),
            expected_apy=float(expected_apy),
            timestamp=float(timestamp),
            request_id=request_id,
        )

        with self.store.vault_lock(request.vault):
            stored = self.store.get_recommendation(request.vault)
            if stored is not None and timestamp < stored.timestamp:
                self._reject(request, now, REASON_STALE_OBSERVATION)
                raise ValidationError(
                    "Fulfillment observed before the stored recommendation",
                    request_id=request_id,
                    reason=REASON_STALE_OBSERVATION,
                    stored_timestamp=stored.timestamp,
                    observed_at=timestamp,
                )

            if self.store.resolve_request(request_id, RequestStatus.FULFILLED, now) is None:
                raise UnknownRequestError(
                    f"Request '{request_id}' was resolved concurrently",
                    request_id=request_id,
                )
            self.store.put_recommendation(recommendation)

        logger.info(
            "Recommendation stored for %s: %s (confidence=%d, apy=%.4f)",
            request.vault, strategy, recommendation.confidence, recommendation.expected_apy,
        )
        self.events.emit(RecommendationUpdated(
            vault=recommendation.vault,
            strategy=recommendation.strategy,
            confidence=recommendation.confidence,
            expected_apy=recommendation.expected_apy,
            timestamp=recommendation.timestamp,
        ))
        return recommendation

    def _reject(self, request: RecommendationRequest, now: float, reason: str) -> None:
        if self.store.resolve_request(request.request_id, RequestStatus.EXPIRED, now, reason=reason) is None:
            raise UnknownRequestError(
                f"Request '{request.request_id}' was resolved concurrently",
                request_id=request.request_id,
            )
        logger.warning("Fulfillment for %s rejected (%s), request %s terminated",
                       request.vault, reason, request.request_id)

    def expire_stale(self, now: float | None = None, timeout: float = REQUEST_TIMEOUT_SECONDS) -> list[str]:
        """Expire every outstanding request older than ``timeout`` seconds.

        Requests that are fulfilled mid-sweep are skipped, not double-transitioned.
        """
        now = time.time() if now is None else now
        expired: list[str] = []
        for request in self.store.outstanding():
            if now - request.issued_at <= timeout:
                continue
            if self.store.resolve_request(request.request_id, RequestStatus.EXPIRED, now, reason=REASON_TIMEOUT):
                expired.append(request.request_id)
        if expired:
            logger.info("Expired %d stale request(s)", len(expired))
        return expired

    def prune_resolved(self, now: float | None = None, retention: float = REQUEST_RETENTION_SECONDS) -> int:
        """Forget terminal requests resolved more than ``retention`` seconds ago."""
        now = time.time() if now is None else now
        pruned = self.store.prune_resolved(before=now - retention)
        if pruned:
            logger.info("Pruned %d resolved request(s)", pruned)
        return pruned

    def cancel_request(self, request_id: str, now: float | None = None) -> RecommendationRequest:
        now = time.time() if now is None else now
        cancelled = self.store.resolve_request(request_id, RequestStatus.CANCELLED, now, reason=REASON_CANCELLED)
        if cancelled is None:
            raise UnknownRequestError(f"No pending request '{request_id}'", request_id=request_id)
        logger.info("Request %s for %s cancelled", request_id, cancelled.vault)
        return cancelled

    def get_request(self, request_id: str) -> RecommendationRequest:
        request = self.store.get_request(request_id)
        if request is None:
            raise UnknownRequestError(f"Unknown request '{request_id}'", request_id=request_id)
        return request

    def outstanding(self) -> list[RecommendationRequest]:
        return self.store.outstanding()
