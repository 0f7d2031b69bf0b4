import os

os.environ["TESTING"] = "1"
os.environ.setdefault("PERSISTENCE_ENABLED", "false")
os.environ.setdefault("EXPIRY_SWEEP_ENABLED", "false")
os.environ.setdefault("SIMULATION_MODE", "true")

import pytest

from airey.coordinator import ExecutionCoordinator
from airey.events import EventBroadcaster
from airey.executor import SimulatedVaultExecutor
from airey.gate import StrategyGate
from airey.models import ExecutionReceipt, GatePolicy
from airey.oracle_bridge import OracleBridge
from airey.store import RecommendationStore

HOUR = 3600.0
DAY = 24 * HOUR


class FlakyExecutor:
    """VaultExecutor double: fails the first ``failures`` calls, then succeeds."""

    def __init__(self, failures: int = 1, raise_error: bool = True):
        self.failures = failures
        self.raise_error = raise_error
        self.calls: list[tuple[str, str, dict]] = []

    def execute(self, vault, strategy, params):
        self.calls.append((vault, strategy, params))
        if len(self.calls) <= self.failures:
            if self.raise_error:
                raise RuntimeError("rpc timeout")
            return ExecutionReceipt(ok=False, error="vault paused")
        return ExecutionReceipt(ok=True, tx_hash=f"0xabc{len(self.calls)}")


@pytest.fixture
def store() -> RecommendationStore:
    return RecommendationStore()


@pytest.fixture
def events() -> EventBroadcaster:
    return EventBroadcaster(buffer_size=50)


@pytest.fixture
def bridge(store, events) -> OracleBridge:
    return OracleBridge(store, events)


@pytest.fixture
def gate(store) -> StrategyGate:
    return StrategyGate(store)


@pytest.fixture
def sim_executor() -> SimulatedVaultExecutor:
    return SimulatedVaultExecutor()


@pytest.fixture
def coordinator(bridge, gate, sim_executor) -> ExecutionCoordinator:
    return ExecutionCoordinator(bridge, gate, sim_executor)


@pytest.fixture
def policy() -> GatePolicy:
    return GatePolicy(min_confidence=70, max_recommendation_age=DAY, cooldown=0.0)


@pytest.fixture
def flaky_executor_cls():
    return FlakyExecutor
