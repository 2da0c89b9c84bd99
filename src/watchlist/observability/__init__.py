"""Observability for the watch pipeline.

Records what happens while streams are opened, classified, resumed and
closed, independently of the notifications handed to the consumer.

All events are frozen dataclasses with nanosecond timestamps, safe for
concurrent production from multiple threads.

Quick Start:
    >>> from watchlist.observability import SyncCollector, EventLog
    >>> log = EventLog()
    >>> collector = SyncCollector(log)
    >>> # Pass collector to SyncStateMachine / SyncFeed / WatchSession
    >>> # then inspect log.query(event_type=PhaseChanged)

"""

from watchlist.observability.collector import SyncCollector
from watchlist.observability.events import (
    EventDecodeFailed,
    PhaseChanged,
    ReconnectScheduled,
    ServerErrorReceived,
    SnapshotAnomaly,
    StreamEnded,
    StreamOpened,
    SyncEvent,
    TokenAdvanced,
    now_ns,
)
from watchlist.observability.log import EventLog

__all__ = [
    "EventDecodeFailed",
    "EventLog",
    "PhaseChanged",
    "ReconnectScheduled",
    "ServerErrorReceived",
    "SnapshotAnomaly",
    "StreamEnded",
    "StreamOpened",
    "SyncCollector",
    "SyncEvent",
    "TokenAdvanced",
    "now_ns",
]
