"""Tests for airey/store.py — outstanding index, compare-and-set, monotonic writes."""

from unittest.mock import AsyncMock

import pytest

from airey import persistence
from airey.errors import ConflictError, ValidationError
from airey.models import ExecutionRecord, RecommendationRequest, RequestStatus, StrategyRecommendation
from airey.store import RecommendationStore


def _req(rid="r1", vault="0xA", issued_at=0.0):
    return RecommendationRequest(request_id=rid, vault=vault, issued_at=issued_at)


def _rec(vault="0xA", ts=1.0, strategy="aave-usdc"):
    return StrategyRecommendation(vault=vault, strategy=strategy, confidence=80, expected_apy=0.05, timestamp=ts)


class TestRequests:
    def test_add_and_get(self, store):
        store.add_request(_req())
        assert store.get_request("r1").status == RequestStatus.PENDING
        assert store.pending_request_for("0xA").request_id == "r1"

    def test_second_pending_for_vault_conflicts(self, store):
        store.add_request(_req("r1"))
        with pytest.raises(ConflictError) as exc:
            store.add_request(_req("r2"))
        assert exc.value.context["pending_request_id"] == "r1"
        assert store.get_request("r2") is None

    def test_duplicate_request_id_conflicts(self, store):
        store.add_request(_req("r1", vault="0xA"))
        store.resolve_request("r1", RequestStatus.CANCELLED, resolved_at=1.0)
        with pytest.raises(ConflictError):
            store.add_request(_req("r1", vault="0xA"))

    def test_outstanding_sorted_by_issue_time(self, store):
        store.add_request(_req("late", vault="0xB", issued_at=5.0))
        store.add_request(_req("early", vault="0xA", issued_at=1.0))
        assert [r.request_id for r in store.outstanding()] == ["early", "late"]

    def test_unknown_request_is_none(self, store):
        assert store.get_request("missing") is None
        assert store.pending_request_for("0xA") is None


class TestResolve:
    def test_pending_to_terminal(self, store):
        store.add_request(_req())
        resolved = store.resolve_request("r1", RequestStatus.EXPIRED, resolved_at=9.0, reason="timeout")
        assert resolved.status == RequestStatus.EXPIRED
        assert resolved.resolved_at == 9.0
        assert resolved.reason == "timeout"
        assert store.outstanding() == []
        assert store.pending_request_for("0xA") is None

    def test_second_resolution_loses(self, store):
        store.add_request(_req())
        assert store.resolve_request("r1", RequestStatus.FULFILLED, resolved_at=1.0)
        assert store.resolve_request("r1", RequestStatus.EXPIRED, resolved_at=2.0) is None
        assert store.get_request("r1").status == RequestStatus.FULFILLED

    def test_unknown_returns_none(self, store):
        assert store.resolve_request("nope", RequestStatus.EXPIRED, resolved_at=0.0) is None

    def test_pending_is_not_a_target(self, store):
        store.add_request(_req())
        with pytest.raises(ValueError):
            store.resolve_request("r1", RequestStatus.PENDING, resolved_at=0.0)


class TestPruneResolved:
    def test_drops_terminal_requests_before_cutoff(self, store):
        for rid, vault in (("old", "0xA"), ("recent", "0xB"), ("open", "0xC")):
            store.add_request(_req(rid, vault=vault))
        store.resolve_request("old", RequestStatus.CANCELLED, resolved_at=10.0)
        store.resolve_request("recent", RequestStatus.FULFILLED, resolved_at=50.0)

        assert store.prune_resolved(before=20.0) == 1
        assert store.get_request("old") is None
        assert store.get_request("recent").status == RequestStatus.FULFILLED
        assert [r.request_id for r in store.outstanding()] == ["open"]

    def test_cutoff_is_exclusive(self, store):
        store.add_request(_req())
        store.resolve_request("r1", RequestStatus.EXPIRED, resolved_at=20.0)
        assert store.prune_resolved(before=20.0) == 0
        assert store.prune_resolved(before=20.5) == 1

    def test_vault_can_request_again_after_prune(self, store):
        store.add_request(_req("r1"))
        store.resolve_request("r1", RequestStatus.EXPIRED, resolved_at=1.0)
        store.prune_resolved(before=100.0)
        store.add_request(_req("r2"))
        assert store.pending_request_for("0xA").request_id == "r2"


class TestRecommendations:
    def test_newer_overwrites(self, store):
        store.put_recommendation(_rec(ts=1.0))
        store.put_recommendation(_rec(ts=2.0, strategy="curve"))
        assert store.get_recommendation("0xA").strategy == "curve"

    def test_equal_timestamp_overwrites(self, store):
        store.put_recommendation(_rec(ts=1.0))
        store.put_recommendation(_rec(ts=1.0, strategy="curve"))
        assert store.get_recommendation("0xA").strategy == "curve"

    def test_older_rejected(self, store):
        store.put_recommendation(_rec(ts=5.0))
        with pytest.raises(ValidationError):
            store.put_recommendation(_rec(ts=4.0, strategy="curve"))
        assert store.get_recommendation("0xA").timestamp == 5.0

    def test_list(self, store):
        store.put_recommendation(_rec(vault="0xA"))
        store.put_recommendation(_rec(vault="0xB"))
        assert {r.vault for r in store.recommendations()} == {"0xA", "0xB"}


class TestExecutions:
    def test_history_is_append_only(self, store):
        for at in (3.0, 1.0, 2.0):
            store.append_execution(ExecutionRecord(vault="0xA", strategy="s", confidence=80, executed_at=at))
        assert [r.executed_at for r in store.executions("0xA")] == [3.0, 1.0, 2.0]
        assert store.last_executed_at("0xA") == 3.0

    def test_no_history(self, store):
        assert store.executions("0xA") == []
        assert store.last_executed_at("0xA") is None


class TestLifecycle:
    def test_clear(self, store):
        store.add_request(_req())
        store.put_recommendation(_rec())
        store.clear()
        assert store.outstanding() == []
        assert store.get_recommendation("0xA") is None
        store.add_request(_req("r2"))

    @pytest.mark.asyncio
    async def test_restore_rebuilds_outstanding_index(self):
        persistence._redis_available = False
        persistence._redis_client = None
        store = RecommendationStore()
        requests = store.persistent_stores[1]
        requests._data["r1"] = _req("r1", vault="0xA").to_dict()
        done = _req("r2", vault="0xB")
        done.status = RequestStatus.FULFILLED
        requests._data["r2"] = done.to_dict()

        await store.restore()

        assert [r.request_id for r in store.outstanding()] == ["r1"]
        with pytest.raises(ConflictError):
            store.add_request(_req("r3", vault="0xA"))
        store.add_request(_req("r4", vault="0xB"))

    @pytest.mark.asyncio
    async def test_restore_and_persist_go_through_every_table(self):
        store = RecommendationStore()
        for table in store.persistent_stores:
            table.restore = AsyncMock(return_value=2)
            table.persist_all = AsyncMock(return_value=1)
        assert await store.restore() == 6
        assert await store.persist_all() == 3
