"""Tests for the store change notifier."""
import logging

from resumewright.core.events import ChangeNotifier, StoreEvent, StoreEventType


class TestChangeNotifier:
    """Tests for ChangeNotifier."""

    def test_typed_subscribers_before_wildcards(self):
        notifier = ChangeNotifier()
        calls = []
        notifier.subscribe(None, lambda e: calls.append("wildcard"))
        notifier.subscribe(StoreEventType.UPDATED, lambda e: calls.append("typed"))

        notifier.emit(StoreEvent(StoreEventType.UPDATED, content_id="vidA"))

        assert calls == ["typed", "wildcard"]

    def test_only_matching_type_is_delivered(self):
        notifier = ChangeNotifier()
        received = []
        notifier.subscribe(StoreEventType.REMOVED, received.append)

        notifier.emit(StoreEvent(StoreEventType.UPDATED, content_id="vidA"))
        notifier.emit(StoreEvent(StoreEventType.REMOVED, content_id="vidA"))

        assert [e.event_type for e in received] == [StoreEventType.REMOVED]

    def test_duplicate_subscription_is_ignored(self):
        notifier = ChangeNotifier()
        received = []
        notifier.subscribe(None, received.append)
        notifier.subscribe(None, received.append)

        notifier.emit(StoreEvent(StoreEventType.CLEARED, count=2))

        assert len(received) == 1
        assert notifier.get_subscriber_count() == 1

    def test_unsubscribe(self):
        notifier = ChangeNotifier()
        received = []
        notifier.subscribe(StoreEventType.UPDATED, received.append)

        assert notifier.unsubscribe(StoreEventType.UPDATED, received.append)
        assert not notifier.unsubscribe(StoreEventType.UPDATED, received.append)

        notifier.emit(StoreEvent(StoreEventType.UPDATED))
        assert received == []

    def test_failing_callback_does_not_stop_delivery(self, caplog):
        notifier = ChangeNotifier()
        received = []

        def broken(event):
            raise RuntimeError("boom")

        notifier.subscribe(None, broken)
        notifier.subscribe(None, received.append)

        with caplog.at_level(logging.ERROR, logger="resumewright"):
            notifier.emit(StoreEvent(StoreEventType.LOADED, count=0))

        assert len(received) == 1
        assert "boom" in caplog.text

    def test_events_emitted_counter(self):
        notifier = ChangeNotifier()
        notifier.emit(StoreEvent(StoreEventType.LOADED))
        notifier.emit(StoreEvent(StoreEventType.CLEARED))

        assert notifier.events_emitted == 2

    def test_clear_subscribers(self):
        notifier = ChangeNotifier()
        notifier.subscribe(None, print)
        notifier.subscribe(StoreEventType.UPDATED, print)

        notifier.clear_subscribers()

        assert notifier.get_subscriber_count() == 0


class TestStoreEvent:
    """Tests for StoreEvent."""

    def test_str(self):
        assert str(StoreEvent(StoreEventType.REMOVED, content_id="vidA")) == "[REMOVED] vidA"
        assert str(StoreEvent(StoreEventType.CLEARED, count=3)) == "[CLEARED] 3 record(s)"

    def test_to_dict_without_record(self):
        data = StoreEvent(StoreEventType.CLEARED, count=3).to_dict()

        assert data["event_type"] == "CLEARED"
        assert data["record"] is None
        assert data["count"] == 3
