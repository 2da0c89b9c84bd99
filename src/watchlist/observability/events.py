"""Observability event model for the watch pipeline.

Defines the events recorded while a stream is opened, classified, resumed
and closed. They describe what the sync layer *did*; they are not the
notifications delivered to the consumer.

All events are frozen dataclasses with:
- ``timestamp_ns``: Monotonic nanosecond timestamp
- Descriptive fields for the specific event type

Thread Safety:
    All events are frozen (immutable) and safe to share across threads.

"""

import time
from dataclasses import dataclass
from typing import Literal


# ---------------------------------------------------------------------------
# Stream lifecycle events
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class StreamOpened:
    """A stream was opened.

    Attributes:
        want_initial_snapshot: Whether an inline snapshot was requested.
        resume_token: Token the stream resumed from, if any.
        allow_markers: Whether bookmark markers were allowed.
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    want_initial_snapshot: bool
    resume_token: str | None
    allow_markers: bool
    timestamp_ns: int


@dataclass(frozen=True, slots=True)
class StreamEnded:
    """A stream closed.

    Attributes:
        reason: Why the stream closed.
        detail: Transport failure detail, empty otherwise.
        events_seen: Number of raw events read from the stream.
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    reason: Literal["end_of_stream", "transport_failure", "cancelled"]
    detail: str
    events_seen: int
    timestamp_ns: int


@dataclass(frozen=True, slots=True)
class ReconnectScheduled:
    """A session is about to reopen its stream.

    Attributes:
        attempt: Consecutive attempt number (1-based, 0 for an immediate relist).
        delay_s: Back-off delay before the attempt, in seconds.
        resume_token: Token the next stream will resume from.
        relist: True when the token was dropped for a fresh snapshot.
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    attempt: int
    delay_s: float
    resume_token: str | None
    relist: bool
    timestamp_ns: int


# ---------------------------------------------------------------------------
# Classification events
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class PhaseChanged:
    """The state machine left the snapshot phase.

    Attributes:
        from_phase: Phase before the transition.
        to_phase: Phase after the transition.
        resume_token: Token current at the transition.
        implicit: True when inferred by the no-marker fallback.
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    from_phase: str
    to_phase: str
    resume_token: str | None
    implicit: bool
    timestamp_ns: int


@dataclass(frozen=True, slots=True)
class TokenAdvanced:
    """The retained resume token changed."""

    token: str
    timestamp_ns: int


@dataclass(frozen=True, slots=True)
class SnapshotAnomaly:
    """A non-add resource event arrived during the snapshot burst.

    Attributes:
        event_type: ``modified`` or ``deleted``.
        key: ``namespace/name`` of the resource.
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    event_type: Literal["modified", "deleted"]
    key: str
    timestamp_ns: int


@dataclass(frozen=True, slots=True)
class EventDecodeFailed:
    """A raw event could not be decoded and was skipped."""

    detail: str
    timestamp_ns: int


@dataclass(frozen=True, slots=True)
class ServerErrorReceived:
    """The server reported an error in-band."""

    code: int | None
    reason: str
    timestamp_ns: int


# ---------------------------------------------------------------------------
# Union type
# ---------------------------------------------------------------------------

type SyncEvent = (
    StreamOpened
    | StreamEnded
    | ReconnectScheduled
    | PhaseChanged
    | TokenAdvanced
    | SnapshotAnomaly
    | EventDecodeFailed
    | ServerErrorReceived
)


def now_ns() -> int:
    """Return the current monotonic clock value in nanoseconds."""
    return time.monotonic_ns()
