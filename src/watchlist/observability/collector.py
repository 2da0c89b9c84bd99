"""Sync collector: records what the watch pipeline does into an EventLog.

The state machine, feed and session each take an optional collector and
call its ``record_*`` methods at the points worth inspecting later: phase
transitions, token updates, skipped events, stream open/close, reconnects.

Thread Safety:
    The collector delegates to ``EventLog`` which is internally locked.

"""

from __future__ import annotations

from typing import TYPE_CHECKING

from watchlist.observability.events import (
    EventDecodeFailed,
    PhaseChanged,
    ReconnectScheduled,
    ServerErrorReceived,
    SnapshotAnomaly,
    StreamEnded,
    StreamOpened,
    TokenAdvanced,
    now_ns,
)
from watchlist.observability.log import EventLog

if TYPE_CHECKING:
    from watchlist._types import CloseKind, ResourceKey
    from watchlist.stream.request import StreamParams


class SyncCollector:
    """Event collector for the watch pipeline.

    Args:
        log: The EventLog to store events in.

    """

    __slots__ = ("_log",)

    def __init__(self, log: EventLog | None = None) -> None:
        self._log = log if log is not None else EventLog()

    @property
    def log(self) -> EventLog:
        """The underlying event log."""
        return self._log

    # ----- Stream lifecycle -----

    def record_open(self, params: StreamParams) -> None:
        self._log.append(
            StreamOpened(
                want_initial_snapshot=params.want_initial_snapshot,
                resume_token=params.resume_token,
                allow_markers=params.allow_markers,
                timestamp_ns=now_ns(),
            )
        )

    def record_close(
        self,
        reason: CloseKind,
        *,
        detail: str = "",
        events_seen: int = 0,
    ) -> None:
        self._log.append(
            StreamEnded(
                reason=reason,
                detail=detail,
                events_seen=events_seen,
                timestamp_ns=now_ns(),
            )
        )

    def record_reconnect(
        self,
        attempt: int,
        *,
        delay_s: float = 0.0,
        resume_token: str | None = None,
        relist: bool = False,
    ) -> None:
        self._log.append(
            ReconnectScheduled(
                attempt=attempt,
                delay_s=delay_s,
                resume_token=resume_token,
                relist=relist,
                timestamp_ns=now_ns(),
            )
        )

    # ----- Classification -----

    def record_phase_change(
        self,
        from_phase: str,
        to_phase: str,
        *,
        resume_token: str | None = None,
        implicit: bool = False,
    ) -> None:
        self._log.append(
            PhaseChanged(
                from_phase=from_phase,
                to_phase=to_phase,
                resume_token=resume_token,
                implicit=implicit,
                timestamp_ns=now_ns(),
            )
        )

    def record_token(self, token: str) -> None:
        self._log.append(TokenAdvanced(token=token, timestamp_ns=now_ns()))

    def record_anomaly(self, event_type: str, key: ResourceKey) -> None:
        """Record a modified/deleted event seen during the snapshot burst."""
        namespace, name = key
        self._log.append(
            SnapshotAnomaly(
                event_type=event_type,  # type: ignore[arg-type]
                key=f"{namespace}/{name}" if namespace else name,
                timestamp_ns=now_ns(),
            )
        )

    def record_decode_failure(self, detail: str) -> None:
        self._log.append(EventDecodeFailed(detail=detail, timestamp_ns=now_ns()))

    def record_server_error(self, code: int | None, reason: str) -> None:
        self._log.append(
            ServerErrorReceived(code=code, reason=reason, timestamp_ns=now_ns())
        )
