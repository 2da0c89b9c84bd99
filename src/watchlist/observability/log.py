"""Event log: the sync history of a feed or session.

Keeps the most recent ``SyncEvent`` objects in a bounded buffer and answers
the questions a consumer asks after the fact: which resume token was last
confirmed, how many streams were opened and why they ended, and which
resources misbehaved during a snapshot.

Thread Safety:
    All methods take a ``threading.Lock``. A session running in an event
    loop can record while another thread inspects the log.

"""

import threading
from collections import deque
from typing import Any

from watchlist.observability.events import (
    PhaseChanged,
    ReconnectScheduled,
    SnapshotAnomaly,
    StreamEnded,
    StreamOpened,
    SyncEvent,
    TokenAdvanced,
)


def _subject(event: SyncEvent) -> str | None:
    """The resource key or resume token *event* refers to, if any."""
    if isinstance(event, SnapshotAnomaly):
        return event.key
    if isinstance(event, TokenAdvanced):
        return event.token
    if isinstance(event, (StreamOpened, ReconnectScheduled, PhaseChanged)):
        return event.resume_token
    return None


class EventLog:
    """Bounded history of sync events.

    Once ``max_events`` is reached the oldest events are dropped.

    Args:
        max_events: Maximum number of events to retain.

    """

    __slots__ = ("_events", "_lock", "_max_events")

    def __init__(self, max_events: int = 10_000) -> None:
        self._max_events = max_events
        self._events: deque[SyncEvent] = deque(maxlen=max_events)
        self._lock = threading.Lock()

    def append(self, event: SyncEvent) -> None:
        with self._lock:
            self._events.append(event)

    def query(
        self,
        *,
        event_type: type | None = None,
        since_ns: int = 0,
        key: str | None = None,
        limit: int = 100,
    ) -> list[SyncEvent]:
        """Return matching events, most recent first.

        Args:
            event_type: Only events of this class.
            since_ns: Only events recorded at or after this timestamp.
            key: Substring of a ``namespace/name`` resource key or of a
                resume token. Events that carry neither never match.
            limit: Maximum number of events to return.

        """
        with self._lock:
            events = list(self._events)

        results: list[SyncEvent] = []
        for event in reversed(events):
            if len(results) >= limit:
                break
            if event_type is not None and not isinstance(event, event_type):
                continue
            if event.timestamp_ns < since_ns:
                continue
            if key is not None:
                subject = _subject(event)
                if subject is None or key not in subject:
                    continue
            results.append(event)
        return results

    def recent(self, n: int = 20) -> list[SyncEvent]:
        """Return the N most recent events, oldest first."""
        with self._lock:
            items = list(self._events)
        return items[-n:]

    def last_token(self) -> str | None:
        """The most recently confirmed resume token, if any."""
        with self._lock:
            for event in reversed(self._events):
                if isinstance(event, TokenAdvanced):
                    return event.token
        return None

    def clear(self) -> int:
        """Drop all events and return how many there were."""
        with self._lock:
            count = len(self._events)
            self._events.clear()
            return count

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)

    def stats(self) -> dict[str, Any]:
        """Summarize the retained history.

        ``close_reasons`` counts ``StreamEnded`` events by reason and
        ``anomalous_keys`` lists resources with snapshot anomalies in the
        order they were first seen.
        """
        with self._lock:
            events = list(self._events)

        by_type: dict[str, int] = {}
        close_reasons: dict[str, int] = {}
        anomalous_keys: list[str] = []
        streams_opened = 0
        last_token: str | None = None
        for event in events:
            name = type(event).__name__
            by_type[name] = by_type.get(name, 0) + 1
            if isinstance(event, StreamOpened):
                streams_opened += 1
            elif isinstance(event, StreamEnded):
                close_reasons[event.reason] = close_reasons.get(event.reason, 0) + 1
            elif isinstance(event, TokenAdvanced):
                last_token = event.token
            elif isinstance(event, SnapshotAnomaly) and event.key not in anomalous_keys:
                anomalous_keys.append(event.key)

        return {
            "total": len(events),
            "max_events": self._max_events,
            "by_type": by_type,
            "streams_opened": streams_opened,
            "close_reasons": close_reasons,
            "last_token": last_token,
            "anomalous_keys": anomalous_keys,
        }
