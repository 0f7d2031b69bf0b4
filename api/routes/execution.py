"""Strategy gate and automatic execution endpoints."""

import logging
import time
from datetime import datetime, timezone

from fastapi import APIRouter, Query

from airey.models import GatePolicy
from api.metrics import executions_total, gate_decisions_total
from api.models import (
    ExecutionHistoryResponse,
    ExecutionLogResponse,
    ExecutionOutcomeResponse,
    ExecutionStatsResponse,
    GateCheckRequest,
    GateDecisionResponse,
    PolicyModel,
    TryExecuteRequest,
)
from api.stores import get_coordinator, get_gate, get_store

logger = logging.getLogger(__name__)

router = APIRouter(tags=["execution"])


def _policy(model: PolicyModel | None) -> GatePolicy | None:
    if model is None:
        return None
    return GatePolicy(
        min_confidence=model.min_confidence,
        max_recommendation_age=model.max_recommendation_age,
        cooldown=model.cooldown,
    )


@router.post("/gate/check", response_model=GateDecisionResponse, summary="Check executability")
def gate_check(req: GateCheckRequest):
    """Evaluate the gate for a vault without executing anything."""
    decision = get_gate().can_execute(req.vault, time.time(), _policy(req.policy))
    gate_decisions_total.labels(decision=decision.reason.value if decision.reason else "allowed").inc()
    return decision.to_dict()


@router.post("/execution/try", response_model=ExecutionOutcomeResponse, summary="Gate and execute")
def try_execute(req: TryExecuteRequest):
    """Run the gate and, if it passes, switch the vault to the recommended strategy.

    Denials and failed vault calls are returned with status ``skipped`` and a
    named reason, not as HTTP errors.
    """
    outcome = get_coordinator().try_execute(req.vault, policy=_policy(req.policy))
    executions_total.labels(status=outcome.status, reason=outcome.reason.value if outcome.reason else "").inc()
    return outcome.to_dict()


@router.get("/execution/log", response_model=ExecutionLogResponse, summary="Recent execution attempts")
def get_execution_log(limit: int = Query(50, ge=1, le=500)):
    return {"entries": get_coordinator().get_execution_log(limit=limit)}


@router.get("/execution/stats", response_model=ExecutionStatsResponse, summary="Execution statistics")
def get_execution_stats():
    result = get_coordinator().get_execution_stats()
    result["timestamp"] = datetime.now(timezone.utc).isoformat()
    return result


@router.get("/execution/history/{vault}", response_model=ExecutionHistoryResponse, summary="Vault execution history")
def get_execution_history(vault: str):
    store = get_store()
    return {
        "vault": vault,
        "records": [r.to_dict() for r in store.executions(vault)],
        "last_executed_at": store.last_executed_at(vault),
    }
