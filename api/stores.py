"""Process-wide bridge components shared by the route modules."""

import logging

from airey.coordinator import ExecutionCoordinator
from airey.events import EventBroadcaster
from airey.executor import build_executor
from airey.gate import StrategyGate
from airey.oracle_bridge import OracleBridge
from airey.store import RecommendationStore

logger = logging.getLogger(__name__)

_store = RecommendationStore()
_events = EventBroadcaster()
_bridge = OracleBridge(_store, _events)
_gate = StrategyGate(_store)
_coordinator = ExecutionCoordinator(_bridge, _gate, build_executor())


def get_store() -> RecommendationStore:
    return _store


def get_events() -> EventBroadcaster:
    return _events


def get_bridge() -> OracleBridge:
    return _bridge


def get_gate() -> StrategyGate:
    return _gate


def get_coordinator() -> ExecutionCoordinator:
    return _coordinator


def reset_state() -> None:
    """Drop all in-memory bridge state (tests and admin resets)."""
    _store.clear()
    _events.clear()
    _coordinator.clear_log()
