"""Tests for airey/events.py — EventBroadcaster buffering and fan-out."""

from airey.events import EventBroadcaster, RecommendationUpdated, RequestIssued


def _issued(i):
    return RequestIssued(request_id=f"r{i}", vault="0xA", issued_at=float(i))


class TestEventBroadcaster:
    def test_recent_keeps_order(self):
        b = EventBroadcaster(buffer_size=10)
        for i in range(3):
            b.emit(_issued(i))
        assert [e["request_id"] for e in b.recent()] == ["r0", "r1", "r2"]

    def test_buffer_is_bounded(self):
        b = EventBroadcaster(buffer_size=2)
        for i in range(5):
            b.emit(_issued(i))
        assert [e["request_id"] for e in b.recent()] == ["r3", "r4"]

    def test_filter_by_type(self):
        b = EventBroadcaster()
        b.emit(_issued(0))
        b.emit(RecommendationUpdated(vault="0xA", strategy="s", confidence=80, expected_apy=0.05, timestamp=1.0))
        [evt] = b.recent(event_type="recommendation_updated")
        assert evt["strategy"] == "s"
        assert b.recent(event_type="nope") == []

    def test_limit(self):
        b = EventBroadcaster()
        for i in range(5):
            b.emit(_issued(i))
        assert len(b.recent(limit=2)) == 2

    def test_subscribers_receive_events(self):
        b = EventBroadcaster()
        q = b.subscribe(maxlen=1)
        b.emit(_issued(0))
        b.emit(_issued(1))
        assert [e["request_id"] for e in q] == ["r1"]
        b.unsubscribe(q)
        b.emit(_issued(2))
        assert len(q) == 1

    def test_clear(self):
        b = EventBroadcaster()
        b.emit(_issued(0))
        b.clear()
        assert b.recent() == []

    def test_event_payload_shape(self):
        assert _issued(7).to_dict() == {
            "type": "request_issued", "request_id": "r7", "vault": "0xA", "issued_at": 7.0,
        }
