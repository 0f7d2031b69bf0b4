"""Data model for the recommendation bridge.

Timestamps are POSIX seconds (``time.time()`` floats) throughout. Records are
plain dataclasses with ``to_dict``/``from_dict`` so they can be persisted as
JSON and returned from the API unchanged.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any

from airey.config import EXECUTION_COOLDOWN_SECONDS, MAX_RECOMMENDATION_AGE_SECONDS, MIN_CONFIDENCE


class RequestStatus(str, Enum):
    PENDING = "pending"
    FULFILLED = "fulfilled"
    EXPIRED = "expired"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self is not RequestStatus.PENDING


class SkipReason(str, Enum):
    """Why an automatic execution did not happen.

    The first four are gate denials (checked in this order); the last is a
    failed vault call.
    """

    NO_RECOMMENDATION = "no_recommendation"
    STALE_RECOMMENDATION = "stale_recommendation"
    LOW_CONFIDENCE = "low_confidence"
    COOLDOWN_ACTIVE = "cooldown_active"
    EXECUTION_FAILED = "execution_failed"


@dataclass
class RecommendationRequest:
    request_id: str
    vault: str
    issued_at: float
    status: RequestStatus = RequestStatus.PENDING
    resolved_at: float | None = None
    reason: str | None = None

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["status"] = self.status.value
        return d

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RecommendationRequest:
        return cls(
            request_id=data["request_id"],
            vault=data["vault"],
            issued_at=float(data["issued_at"]),
            status=RequestStatus(data.get("status", RequestStatus.PENDING.value)),
            resolved_at=data.get("resolved_at"),
            reason=data.get("reason"),
        )


@dataclass(frozen=True)
class StrategyRecommendation:
    vault: str
    strategy: str
    confidence: int
    expected_apy: float
    timestamp: float
    request_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StrategyRecommendation:
        return cls(
            vault=data["vault"],
            strategy=data["strategy"],
            confidence=int(data["confidence"]),
            expected_apy=float(data["expected_apy"]),
            timestamp=float(data["timestamp"]),
            request_id=data.get("request_id"),
        )


@dataclass(frozen=True)
class ExecutionRecord:
    vault: str
    strategy: str
    confidence: int
    executed_at: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ExecutionRecord:
        return cls(
            vault=data["vault"],
            strategy=data["strategy"],
            confidence=int(data["confidence"]),
            executed_at=float(data["executed_at"]),
        )


@dataclass(frozen=True)
class GatePolicy:
    min_confidence: int = MIN_CONFIDENCE
    max_recommendation_age: float = MAX_RECOMMENDATION_AGE_SECONDS
    cooldown: float = EXECUTION_COOLDOWN_SECONDS

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class GateDecision:
    vault: str
    allowed: bool
    reason: SkipReason | None = None
    strategy: str | None = None
    confidence: int | None = None
    recommendation: StrategyRecommendation | None = None

    @classmethod
    def ok(cls, recommendation: StrategyRecommendation) -> GateDecision:
        return cls(
            vault=recommendation.vault,
            allowed=True,
            strategy=recommendation.strategy,
            confidence=recommendation.confidence,
            recommendation=recommendation,
        )

    @classmethod
    def denied(cls, vault: str, reason: SkipReason,
               recommendation: StrategyRecommendation | None = None) -> GateDecision:
        return cls(vault=vault, allowed=False, reason=reason, recommendation=recommendation)

    def to_dict(self) -> dict[str, Any]:
        return {
            "vault": self.vault,
            "allowed": self.allowed,
            "reason": self.reason.value if self.reason else None,
            "strategy": self.strategy,
            "confidence": self.confidence,
            "recommendation": self.recommendation.to_dict() if self.recommendation else None,
        }


@dataclass
class ExecutionReceipt:
    """What a VaultExecutor reports back for one execute() call."""

    ok: bool
    tx_hash: str | None = None
    error: str | None = None
    simulated: bool = False
    details: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ExecutionOutcome:
    vault: str
    executed: bool
    strategy: str | None = None
    reason: SkipReason | None = None
    record: ExecutionRecord | None = None
    error: str | None = None
    tx_hash: str | None = None

    @classmethod
    def executed_with(cls, record: ExecutionRecord, tx_hash: str | None = None) -> ExecutionOutcome:
        return cls(vault=record.vault, executed=True, strategy=record.strategy, record=record, tx_hash=tx_hash)

    @classmethod
    def skipped(cls, vault: str, reason: SkipReason, strategy: str | None = None,
                error: str | None = None) -> ExecutionOutcome:
        return cls(vault=vault, executed=False, strategy=strategy, reason=reason, error=error)

    @property
    def status(self) -> str:
        return "executed" if self.executed else "skipped"

    def to_dict(self) -> dict[str, Any]:
        return {
            "vault": self.vault,
            "status": self.status,
            "strategy": self.strategy,
            "reason": self.reason.value if self.reason else None,
            "executed_at": self.record.executed_at if self.record else None,
            "tx_hash": self.tx_hash,
            "error": self.error,
        }
