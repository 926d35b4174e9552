"""Recorder state-transition events.

Consumers either poll the channel or subscribe a callback. Each
start/stop cycle yields at most one terminal event (STOPPED or ERROR).
"""

import logging
import queue
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, auto
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .session import RecorderState

logger = logging.getLogger(__name__)

# Oldest events are dropped past this many unread
DEFAULT_MAX_EVENTS: int = 256


class EventKind(Enum):
    """Kinds of notification published by a session."""

    STARTED = auto()
    STOPPED = auto()
    ERROR = auto()


@dataclass(frozen=True)
class RecorderEvent:
    """One state transition.

    Attributes:
        kind: What happened
        state: Session state after the transition
        message: Human-readable detail (the error text for ERROR)
        output_path: WAV file of the cycle, if one was resolved
        timestamp: When the event was published
    """

    kind: EventKind
    state: "RecorderState"
    message: str = ""
    output_path: Path | None = None
    timestamp: datetime = field(default_factory=datetime.now)

    @property
    def is_terminal(self) -> bool:
        """Return True for events that end a cycle."""
        return self.kind is not EventKind.STARTED


EventCallback = Callable[[RecorderEvent], None]


class EventChannel:
    """Thread-safe queue of recorder events with optional subscribers."""

    def __init__(self, maxsize: int = DEFAULT_MAX_EVENTS) -> None:
        """Initialize channel.

        Args:
            maxsize: Queue bound; 0 means unbounded. When full, the
                oldest event is dropped to make room, so a consumer that
                only subscribes never grows the queue past this bound.
        """
        self._queue: queue.Queue[RecorderEvent] = queue.Queue(maxsize=maxsize)
        self._subscribers: list[EventCallback] = []
        self._lock = threading.Lock()

    def publish(self, event: RecorderEvent) -> None:
        """Queue an event and deliver it to subscribers."""
        while True:
            try:
                self._queue.put_nowait(event)
                break
            except queue.Full:
                try:
                    dropped = self._queue.get_nowait()
                    logger.warning(f"Event queue full, dropped {dropped.kind.name}")
                except queue.Empty:
                    pass

        with self._lock:
            subscribers = self._subscribers.copy()

        for callback in subscribers:
            try:
                callback(event)
            except Exception as e:
                logger.warning(f"Event subscriber failed on {event.kind.name}: {e}")

    def subscribe(self, callback: EventCallback) -> None:
        """Register a callback invoked synchronously for every event."""
        with self._lock:
            self._subscribers.append(callback)

    def unsubscribe(self, callback: EventCallback) -> None:
        """Remove a previously registered callback."""
        with self._lock:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

    def clear_subscribers(self) -> None:
        """Drop every registered callback."""
        with self._lock:
            self._subscribers.clear()

    def get(self, timeout: float | None = None) -> RecorderEvent | None:
        """Wait for the next event.

        Returns:
            The event, or None if none arrived within timeout
        """
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def drain(self) -> list[RecorderEvent]:
        """Return every queued event without blocking."""
        events = []
        while True:
            try:
                events.append(self._queue.get_nowait())
            except queue.Empty:
                return events


__all__ = ["DEFAULT_MAX_EVENTS", "EventCallback", "EventChannel", "EventKind", "RecorderEvent"]
