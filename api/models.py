from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from airey.config import EXECUTION_COOLDOWN_SECONDS, MAX_RECOMMENDATION_AGE_SECONDS, MIN_CONFIDENCE


class RequestStatusModel(str, Enum):
    PENDING = "pending"
    FULFILLED = "fulfilled"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


# ── Oracle requests ──


class IssueRequest(BaseModel):
    vault: str = Field(..., min_length=1, description="Vault address or identifier")


class RequestResponse(BaseModel):
    request_id: str
    vault: str
    issued_at: float
    status: RequestStatusModel
    resolved_at: Optional[float] = None
    reason: Optional[str] = None


class OutstandingResponse(BaseModel):
    requests: list[RequestResponse]
    total: int


class FulfillRequest(BaseModel):
    """Oracle callback payload.

    Range checks happen in the bridge, not here, so an out-of-range
    confidence still terminates the request it targets.
    """

    request_id: str
    strategy: str
    confidence: int = Field(..., strict=True)
    expected_apy: float
    observed_at: Optional[float] = Field(None, description="Unix seconds when the recommendation was computed")


class ExpireRequest(BaseModel):
    timeout_seconds: Optional[float] = Field(None, gt=0)


class ExpireResponse(BaseModel):
    expired: list[str]
    total: int


# ── Recommendations ──


class RecommendationResponse(BaseModel):
    vault: str
    strategy: str
    confidence: int
    expected_apy: float
    timestamp: float
    request_id: Optional[str] = None


class RecommendationListResponse(BaseModel):
    recommendations: list[RecommendationResponse]
    total: int


# ── Gate & execution ──


class PolicyModel(BaseModel):
    min_confidence: int = Field(MIN_CONFIDENCE, ge=0, le=100)
    max_recommendation_age: float = Field(MAX_RECOMMENDATION_AGE_SECONDS, gt=0)
    cooldown: float = Field(EXECUTION_COOLDOWN_SECONDS, ge=0)


class GateCheckRequest(BaseModel):
    vault: str = Field(..., min_length=1)
    policy: Optional[PolicyModel] = None


class GateDecisionResponse(BaseModel):
    vault: str
    allowed: bool
    reason: Optional[str] = None
    strategy: Optional[str] = None
    confidence: Optional[int] = None
    recommendation: Optional[RecommendationResponse] = None


class TryExecuteRequest(BaseModel):
    vault: str = Field(..., min_length=1)
    policy: Optional[PolicyModel] = None


class ExecutionOutcomeResponse(BaseModel):
    vault: str
    status: str
    strategy: Optional[str] = None
    reason: Optional[str] = None
    executed_at: Optional[float] = None
    tx_hash: Optional[str] = None
    error: Optional[str] = None


class ExecutionRecordModel(BaseModel):
    vault: str
    strategy: str
    confidence: int
    executed_at: float


class ExecutionHistoryResponse(BaseModel):
    vault: str
    records: list[ExecutionRecordModel]
    last_executed_at: Optional[float] = None


class ExecutionLogResponse(BaseModel):
    entries: list[dict]


class ExecutionStatsResponse(BaseModel):
    total_attempts: int = 0
    executed: int = 0
    skipped: int = 0
    failed: int = 0
    skip_reasons: dict[str, int] = {}
    vaults: int = 0
    timestamp: Optional[str] = None


# ── Events ──


class EventsResponse(BaseModel):
    events: list[dict]
    total: int
