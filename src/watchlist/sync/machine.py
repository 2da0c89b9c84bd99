"""Sync state machine: turns a watch stream into a two-phase feed.

States::

    INITIALIZING --boundary marker--> STEADY
         |                               |
         +------------> CLOSED(reason) <-+

A machine is built per stream. It starts in INITIALIZING when the stream
was opened with an inline snapshot, in STEADY otherwise, and never returns
to INITIALIZING. Classification depends only on the event, the current
phase and (in the no-marker fallback) how many snapshot adds have been
seen, so a fresh machine seeded with the last resume token is all a
reconnect needs.

No-marker fallback:
    Without bookmark markers there is no explicit end to the snapshot. The
    boundary is then inferred on the first event delivered after
    ``expected_initial_count`` adds, or on the first modified/deleted event,
    whichever comes first. Without an expected count, a stream of adds only
    stays in INITIALIZING. This is approximate by nature.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from watchlist._errors import SyncError
from watchlist.stream.events import (
    Added,
    Deleted,
    ErrorEvent,
    Marker,
    Modified,
    SyncPhase,
)
from watchlist.sync.notifications import (
    LiveChange,
    SnapshotComplete,
    SnapshotMember,
    StreamClosed,
    StreamWarning,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from watchlist._types import ResumeToken
    from watchlist.observability.collector import SyncCollector
    from watchlist.stream.events import ChangeEvent, ResourceEvent
    from watchlist.stream.request import StreamParams
    from watchlist.sync.notifications import CloseReason, Notification


class SyncStateMachine:
    """Classifies the events of one stream.

    Args:
        params: Parameters the stream was opened with.
        resume_token: Last known token to seed the machine with. Defaults
            to the token in ``params``.
        on_token: Called with every new resume token. The caller owns the
            token; the machine only reports it.
        collector: Optional observability collector.

    """

    __slots__ = (
        "_closed",
        "_collector",
        "_on_token",
        "_params",
        "_phase",
        "_resume_token",
        "_snapshot_adds",
    )

    def __init__(
        self,
        params: StreamParams,
        *,
        resume_token: ResumeToken | None = None,
        on_token: Callable[[ResumeToken], None] | None = None,
        collector: SyncCollector | None = None,
    ) -> None:
        self._params = params
        self._phase = params.initial_phase
        self._resume_token = resume_token if resume_token is not None else params.resume_token
        self._on_token = on_token
        self._collector = collector
        self._closed: CloseReason | None = None
        self._snapshot_adds = 0

    @property
    def params(self) -> StreamParams:
        return self._params

    @property
    def phase(self) -> SyncPhase:
        return self._phase

    @property
    def resume_token(self) -> ResumeToken | None:
        """Token carried by the most recently processed marker."""
        return self._resume_token

    @property
    def closed_reason(self) -> CloseReason | None:
        return self._closed

    @property
    def is_closed(self) -> bool:
        return self._closed is not None

    def feed(self, event: ChangeEvent) -> tuple[Notification, ...]:
        """Classify one decoded event.

        Returns the notifications it produces, in order: none for a marker
        that only moves the token, one for most events, two when an
        implicit snapshot boundary precedes a live change.

        Raises:
            SyncError: The machine is closed.

        """
        self._ensure_open()

        out: list[Notification] = []
        if self._implicit_boundary_due(event):
            out.append(self._complete_snapshot(implicit=True))

        if isinstance(event, Marker):
            out.extend(self._on_marker(event))
        elif isinstance(event, ErrorEvent):
            out.append(self._on_error(event))
        else:
            out.append(self._on_resource(event))
        return tuple(out)

    def reject(self, detail: str) -> StreamWarning:
        """Report a raw event that failed to decode. The phase is unchanged."""
        self._ensure_open()
        if self._collector is not None:
            self._collector.record_decode_failure(detail)
        return StreamWarning(message=f"skipped malformed event: {detail}", source="decode")

    def close(self, reason: CloseReason) -> StreamClosed | None:
        """Move to CLOSED.

        Returns the closing notification, or None for cancellation and for
        a machine that was already closed.
        """
        if self._closed is not None:
            return None
        self._closed = reason
        if reason.kind == "cancelled":
            return None
        return StreamClosed(reason)

    # ----- Classification -----

    def _on_marker(self, marker: Marker) -> list[Notification]:
        self._advance_token(marker.resume_token)
        if marker.is_snapshot_boundary and self._phase is SyncPhase.INITIALIZING:
            return [self._complete_snapshot(implicit=False)]
        return []

    def _on_error(self, error: ErrorEvent) -> StreamWarning:
        if self._collector is not None:
            self._collector.record_server_error(error.code, error.reason)
        return StreamWarning(message=error.describe(), source="server", error=error)

    def _on_resource(self, event: ResourceEvent) -> Notification:
        if self._phase is SyncPhase.STEADY:
            return LiveChange(event)

        if isinstance(event, Added):
            self._snapshot_adds += 1
        elif self._collector is not None:
            self._collector.record_anomaly(event.type, event.resource.key)
        return SnapshotMember(event)

    def _implicit_boundary_due(self, event: ChangeEvent) -> bool:
        if self._phase is not SyncPhase.INITIALIZING or self._params.allow_markers:
            return False
        if isinstance(event, (Modified, Deleted)):
            return True
        expected = self._params.expected_initial_count
        return expected is not None and self._snapshot_adds >= expected

    def _complete_snapshot(self, *, implicit: bool) -> SnapshotComplete:
        self._phase = SyncPhase.STEADY
        if self._collector is not None:
            self._collector.record_phase_change(
                SyncPhase.INITIALIZING,
                SyncPhase.STEADY,
                resume_token=self._resume_token,
                implicit=implicit,
            )
        return SnapshotComplete(self._resume_token, implicit=implicit)

    def _advance_token(self, token: ResumeToken) -> None:
        if token == self._resume_token:
            return
        self._resume_token = token
        if self._collector is not None:
            self._collector.record_token(token)
        if self._on_token is not None:
            self._on_token(token)

    def _ensure_open(self) -> None:
        if self._closed is not None:
            msg = f"state machine is closed ({self._closed.kind})"
            raise SyncError(msg)
