"""Unit tests for the recorder event channel."""

import logging
from pathlib import Path

import pytest

from wavrec.recorder.events import DEFAULT_MAX_EVENTS, EventChannel, EventKind, RecorderEvent
from wavrec.recorder.session import RecorderState


def make_event(kind: EventKind = EventKind.STARTED, message: str = "") -> RecorderEvent:
    """Build an event for tests."""
    state = RecorderState.RECORDING if kind is EventKind.STARTED else RecorderState.IDLE
    return RecorderEvent(kind, state, message, Path("/tmp/x.wav"))


class TestRecorderEvent:
    """Tests for RecorderEvent."""

    def test_started_is_not_terminal(self) -> None:
        """Test that STARTED opens a cycle."""
        assert make_event(EventKind.STARTED).is_terminal is False

    @pytest.mark.parametrize("kind", [EventKind.STOPPED, EventKind.ERROR])
    def test_stop_and_error_are_terminal(self, kind: EventKind) -> None:
        """Test that STOPPED and ERROR close a cycle."""
        assert make_event(kind).is_terminal is True

    def test_timestamp_defaults_to_now(self) -> None:
        """Test that events are stamped on creation."""
        assert make_event().timestamp is not None


class TestEventChannel:
    """Tests for EventChannel."""

    def test_publish_then_get(self) -> None:
        """Test FIFO delivery through the queue."""
        channel = EventChannel()
        first = make_event(EventKind.STARTED)
        second = make_event(EventKind.STOPPED)

        channel.publish(first)
        channel.publish(second)

        assert channel.get(timeout=0.1) is first
        assert channel.get(timeout=0.1) is second

    def test_get_times_out(self) -> None:
        """Test that get returns None when nothing arrives."""
        assert EventChannel().get(timeout=0.01) is None

    def test_drain(self) -> None:
        """Test that drain empties the queue in order."""
        channel = EventChannel()
        events = [make_event(EventKind.STARTED), make_event(EventKind.ERROR, "boom")]
        for event in events:
            channel.publish(event)

        assert channel.drain() == events
        assert channel.drain() == []

    def test_subscribers_receive_events(self) -> None:
        """Test synchronous delivery to subscribers."""
        channel = EventChannel()
        received: list[RecorderEvent] = []
        channel.subscribe(received.append)

        event = make_event()
        channel.publish(event)

        assert received == [event]
        # Queue still gets a copy for polling consumers
        assert channel.get(timeout=0.1) is event

    def test_failing_subscriber_is_isolated(self, caplog: pytest.LogCaptureFixture) -> None:
        """Test that one broken callback does not block the others."""
        channel = EventChannel()
        received: list[RecorderEvent] = []

        def broken(_event: RecorderEvent) -> None:
            raise RuntimeError("subscriber bug")

        channel.subscribe(broken)
        channel.subscribe(received.append)

        with caplog.at_level(logging.WARNING, logger="wavrec.recorder.events"):
            channel.publish(make_event())

        assert len(received) == 1
        assert "subscriber bug" in caplog.text

    def test_unsubscribe(self) -> None:
        """Test that removed callbacks stop receiving events."""
        channel = EventChannel()
        received: list[RecorderEvent] = []
        channel.subscribe(received.append)
        channel.unsubscribe(received.append)

        channel.publish(make_event())

        assert received == []

    def test_unsubscribe_unknown_callback(self) -> None:
        """Test that unsubscribing an unknown callback is harmless."""
        EventChannel().unsubscribe(lambda _event: None)

    def test_clear_subscribers(self) -> None:
        """Test detaching every callback at once."""
        channel = EventChannel()
        received: list[RecorderEvent] = []
        channel.subscribe(received.append)
        channel.clear_subscribers()

        channel.publish(make_event())

        assert received == []

    def test_bounded_queue_drops_oldest(self) -> None:
        """Test that a full queue keeps the most recent events."""
        channel = EventChannel(maxsize=2)
        events = [make_event(message=str(n)) for n in range(3)]
        for event in events:
            channel.publish(event)

        assert [e.message for e in channel.drain()] == ["1", "2"]

    def test_default_channel_is_bounded(self) -> None:
        """Test that an unread channel stops growing at the default bound."""
        channel = EventChannel()
        received = []
        channel.subscribe(received.append)

        for n in range(DEFAULT_MAX_EVENTS + 10):
            channel.publish(make_event(message=str(n)))

        queued = channel.drain()
        assert len(queued) == DEFAULT_MAX_EVENTS
        assert queued[0].message == "10"
        assert len(received) == DEFAULT_MAX_EVENTS + 10
