"""Sync layer: the two-phase feed.

Classifies stream events into snapshot members and live changes, tracks
the snapshot boundary and the resume token, and reconnects when asked to.
"""

from watchlist.sync.feed import SyncFeed
from watchlist.sync.machine import SyncStateMachine
from watchlist.sync.notifications import (
    CloseReason,
    LiveChange,
    Notification,
    SnapshotComplete,
    SnapshotMember,
    StreamClosed,
    StreamWarning,
)
from watchlist.sync.session import WatchSession

__all__ = [
    "CloseReason",
    "LiveChange",
    "Notification",
    "SnapshotComplete",
    "SnapshotMember",
    "StreamClosed",
    "StreamWarning",
    "SyncFeed",
    "SyncStateMachine",
    "WatchSession",
]
