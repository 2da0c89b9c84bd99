"""Notifications delivered to the consumer of a sync feed.

Every outcome of a stream, normal or not, arrives as one of these, in
delivery order:

- ``SnapshotMember``: a resource event that belongs to the initial snapshot
- ``LiveChange``: an incremental resource change
- ``SnapshotComplete``: the snapshot burst is over (once per stream)
- ``StreamWarning``: a server error event or an undecodable event
- ``StreamClosed``: the stream ended or its transport failed
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, ClassVar, Literal

if TYPE_CHECKING:
    from watchlist._types import CloseKind, ResumeToken
    from watchlist.stream.events import ErrorEvent, ResourceEvent, ResourceSnapshot


@dataclass(frozen=True, slots=True)
class CloseReason:
    """Why a stream closed.

    Attributes:
        kind: ``end_of_stream``, ``transport_failure`` or ``cancelled``.
        detail: Transport failure description; empty otherwise.

    """

    kind: CloseKind
    detail: str = ""

    @classmethod
    def end_of_stream(cls) -> CloseReason:
        return cls("end_of_stream")

    @classmethod
    def transport_failure(cls, detail: str) -> CloseReason:
        return cls("transport_failure", detail)

    @classmethod
    def cancelled(cls) -> CloseReason:
        return cls("cancelled")


@dataclass(frozen=True, slots=True)
class SnapshotMember:
    """A resource event received during the snapshot burst.

    Usually an ``Added``; other event types pass through unchanged.
    """

    event: ResourceEvent
    tag: ClassVar[Literal["snapshot"]] = "snapshot"

    @property
    def resource(self) -> ResourceSnapshot:
        return self.event.resource


@dataclass(frozen=True, slots=True)
class LiveChange:
    """A resource event received after the snapshot (or without one)."""

    event: ResourceEvent
    tag: ClassVar[Literal["live"]] = "live"

    @property
    def resource(self) -> ResourceSnapshot:
        return self.event.resource


@dataclass(frozen=True, slots=True)
class SnapshotComplete:
    """The initial snapshot is complete.

    Attributes:
        resume_token: Token current at the boundary; None only when the
            boundary was inferred before any marker was seen.
        implicit: True when inferred by the no-marker fallback rather than
            signalled by a boundary marker.

    """

    resume_token: ResumeToken | None
    implicit: bool = False
    tag: ClassVar[Literal["complete"]] = "complete"


@dataclass(frozen=True, slots=True)
class StreamWarning:
    """A non-fatal problem on the stream.

    Attributes:
        message: Human-readable description.
        source: ``server`` for in-band error events, ``decode`` for raw
            events that could not be decoded.
        error: The server error event, when ``source`` is ``server``.

    """

    message: str
    source: Literal["server", "decode"]
    error: ErrorEvent | None = None
    tag: ClassVar[Literal["warning"]] = "warning"

    @property
    def expired(self) -> bool:
        """True when the server reported the stream position as too old."""
        return self.error is not None and self.error.expired


@dataclass(frozen=True, slots=True)
class StreamClosed:
    """The stream is over. Never emitted for cancellation."""

    reason: CloseReason
    tag: ClassVar[Literal["closed"]] = "closed"


type Notification = (
    SnapshotMember
    | LiveChange
    | SnapshotComplete
    | StreamWarning
    | StreamClosed
)
