"""Oracle request/fulfillment endpoints — issuance, callbacks, cancellation, expiry."""

import logging

from fastapi import APIRouter, Depends

from airey.config import REQUEST_TIMEOUT_SECONDS
from airey.errors import BridgeError, ConflictError, UnknownRequestError, ValidationError
from api.errors import to_http
from api.middleware import verify_oracle_node
from api.metrics import (
    expired_requests_total,
    fulfillments_total,
    outstanding_requests,
    recommendation_requests_total,
)
from api.models import (
    ExpireRequest,
    ExpireResponse,
    FulfillRequest,
    IssueRequest,
    OutstandingResponse,
    RecommendationResponse,
    RequestResponse,
)
from api.stores import get_bridge

logger = logging.getLogger(__name__)

router = APIRouter(tags=["oracle"])


@router.post("/oracle/requests", status_code=201, response_model=RequestResponse,
             summary="Issue a recommendation request")
def issue_request(req: IssueRequest):
    bridge = get_bridge()
    try:
        request_id = bridge.request_recommendation(req.vault)
    except ConflictError as exc:
        recommendation_requests_total.labels(outcome="conflict").inc()
        raise to_http(exc)
    recommendation_requests_total.labels(outcome="issued").inc()
    outstanding_requests.set(len(bridge.outstanding()))
    return bridge.get_request(request_id).to_dict()


@router.get("/oracle/requests", response_model=OutstandingResponse, summary="List outstanding requests")
def list_outstanding():
    requests = [r.to_dict() for r in get_bridge().outstanding()]
    return {"requests": requests, "total": len(requests)}


@router.get("/oracle/requests/{request_id}", response_model=RequestResponse, summary="Get a request")
def get_request(request_id: str):
    try:
        return get_bridge().get_request(request_id).to_dict()
    except UnknownRequestError as exc:
        raise to_http(exc)


@router.post("/oracle/requests/{request_id}/cancel", response_model=RequestResponse,
             summary="Cancel a pending request")
def cancel_request(request_id: str):
    bridge = get_bridge()
    try:
        cancelled = bridge.cancel_request(request_id)
    except UnknownRequestError as exc:
        raise to_http(exc)
    outstanding_requests.set(len(bridge.outstanding()))
    return cancelled.to_dict()


@router.post("/oracle/fulfill", response_model=RecommendationResponse, summary="Oracle fulfillment callback",
             dependencies=[Depends(verify_oracle_node)])
def fulfill(req: FulfillRequest):
    """Deliver the off-chain result for a pending request."""
    bridge = get_bridge()
    try:
        recommendation = bridge.fulfill(
            req.request_id,
            strategy=req.strategy,
            confidence=req.confidence,
            expected_apy=req.expected_apy,
            observed_at=req.observed_at,
        )
    except UnknownRequestError as exc:
        fulfillments_total.labels(outcome="unknown_request").inc()
        raise to_http(exc)
    except ValidationError as exc:
        fulfillments_total.labels(outcome="rejected").inc()
        outstanding_requests.set(len(bridge.outstanding()))
        raise to_http(exc)
    except BridgeError as exc:
        raise to_http(exc)
    fulfillments_total.labels(outcome="accepted").inc()
    outstanding_requests.set(len(bridge.outstanding()))
    return recommendation.to_dict()


@router.post("/oracle/expire", response_model=ExpireResponse, summary="Expire timed-out requests")
def expire(req: ExpireRequest | None = None):
    """Run one expiry sweep now (the background scheduler does this periodically)."""
    bridge = get_bridge()
    timeout = REQUEST_TIMEOUT_SECONDS
    if req is not None and req.timeout_seconds is not None:
        timeout = req.timeout_seconds
    expired = bridge.expire_stale(timeout=timeout)
    if expired:
        expired_requests_total.inc(len(expired))
    outstanding_requests.set(len(bridge.outstanding()))
    return {"expired": expired, "total": len(expired)}
