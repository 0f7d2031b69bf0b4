"""Tests for airey/computer.py — relaying computed recommendations into the bridge."""

import pytest

from airey.computer import ComputedRecommendation, relay_recommendation
from airey.errors import UnknownRequestError, ValidationError
from airey.models import RequestStatus


class FixedComputer:
    def __init__(self, result=None, error=None):
        self.result = result or ComputedRecommendation(strategy="aave-usdc", confidence=82, expected_apy=0.061)
        self.error = error
        self.seen = []

    def compute(self, vault, market_data):
        self.seen.append((vault, market_data))
        if self.error:
            raise self.error
        return self.result


class TestRelay:
    def test_fulfills_pending_request(self, bridge, store):
        rid = bridge.request_recommendation("0xA", now=0.0)
        computer = FixedComputer()
        rec = relay_recommendation(bridge, rid, computer, market_data={"tvl": 1e6}, observed_at=1.0)
        assert rec.strategy == "aave-usdc"
        assert computer.seen == [("0xA", {"tvl": 1e6})]
        assert store.get_request(rid).status == RequestStatus.FULFILLED
        assert store.get_recommendation("0xA").confidence == 82

    def test_invalid_computed_value_rejected(self, bridge, store):
        rid = bridge.request_recommendation("0xA", now=0.0)
        bad = FixedComputer(ComputedRecommendation(strategy="s", confidence=140, expected_apy=0.01))
        with pytest.raises(ValidationError):
            relay_recommendation(bridge, rid, bad, observed_at=1.0)
        assert store.get_recommendation("0xA") is None

    def test_computer_error_leaves_request_pending(self, bridge, store):
        rid = bridge.request_recommendation("0xA", now=0.0)
        with pytest.raises(RuntimeError):
            relay_recommendation(bridge, rid, FixedComputer(error=RuntimeError("model down")))
        assert store.get_request(rid).status == RequestStatus.PENDING

    def test_unknown_request(self, bridge):
        computer = FixedComputer()
        with pytest.raises(UnknownRequestError):
            relay_recommendation(bridge, "missing", computer)
        assert computer.seen == []
