"""Tests for watchlist.sync.machine: snapshot/steady classification."""

from __future__ import annotations

from typing import Any

import pytest

from tests.conftest import added, bookmark, deleted, modified, server_error
from watchlist._errors import SyncError
from watchlist.observability import (
    PhaseChanged,
    ServerErrorReceived,
    SnapshotAnomaly,
    SyncCollector,
    TokenAdvanced,
)
from watchlist.stream.events import SyncPhase, decode_event
from watchlist.stream.request import build_stream_params
from watchlist.sync.machine import SyncStateMachine
from watchlist.sync.notifications import (
    CloseReason,
    LiveChange,
    SnapshotComplete,
    SnapshotMember,
    StreamClosed,
    StreamWarning,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(machine: SyncStateMachine, raws: list[dict[str, Any]]) -> list[Any]:
    """Feed decoded raw events and collect every notification."""
    out: list[Any] = []
    for raw in raws:
        out.extend(machine.feed(decode_event(raw)))
    return out


def _snapshot_machine(**kwargs: Any) -> SyncStateMachine:
    return SyncStateMachine(build_stream_params(True, None, True), **kwargs)


def _steady_machine(token: str | None = None, **kwargs: Any) -> SyncStateMachine:
    return SyncStateMachine(build_stream_params(False, token, True), **kwargs)


# ---------------------------------------------------------------------------
# Snapshot phase
# ---------------------------------------------------------------------------


class TestSnapshotPhase:
    """Streams opened with an inline snapshot."""

    def test_starts_initializing(self) -> None:
        assert _snapshot_machine().phase is SyncPhase.INITIALIZING

    def test_members_before_boundary(self) -> None:
        machine = _snapshot_machine()
        out = _run(machine, [added("x"), added("y"), bookmark("t1", boundary=True)])
        assert [type(n) for n in out] == [SnapshotMember, SnapshotMember, SnapshotComplete]
        assert [n.resource.name for n in out[:2]] == ["x", "y"]
        assert out[2] == SnapshotComplete("t1")
        assert machine.phase is SyncPhase.STEADY
        assert machine.resume_token == "t1"

    def test_live_after_boundary(self) -> None:
        machine = _snapshot_machine()
        out = _run(
            machine,
            [added("x"), bookmark("t1", boundary=True), modified("x"), deleted("x")],
        )
        assert [n.tag for n in out] == ["snapshot", "complete", "live", "live"]

    def test_empty_snapshot(self) -> None:
        machine = _snapshot_machine()
        out = _run(machine, [bookmark("t1", boundary=True), added("x")])
        assert [n.tag for n in out] == ["complete", "live"]

    def test_only_one_complete_per_stream(self) -> None:
        machine = _snapshot_machine()
        out = _run(
            machine,
            [
                added("x"),
                bookmark("t1", boundary=True),
                bookmark("t2", boundary=True),
                added("y"),
            ],
        )
        completes = [n for n in out if isinstance(n, SnapshotComplete)]
        assert completes == [SnapshotComplete("t1")]
        assert machine.resume_token == "t2"

    def test_plain_marker_does_not_end_snapshot(self) -> None:
        machine = _snapshot_machine()
        out = _run(machine, [added("x"), bookmark("t1"), added("y")])
        assert [n.tag for n in out] == ["snapshot", "snapshot"]
        assert machine.phase is SyncPhase.INITIALIZING
        assert machine.resume_token == "t1"

    def test_non_add_during_snapshot_passes_through(self) -> None:
        collector = SyncCollector()
        machine = _snapshot_machine(collector=collector)
        out = _run(machine, [added("x"), modified("x"), deleted("x", namespace="kube-system")])
        assert [type(n) for n in out] == [SnapshotMember] * 3
        assert out[1].event.type == "modified"
        anomalies = collector.log.query(event_type=SnapshotAnomaly)
        assert {(a.event_type, a.key) for a in anomalies} == {
            ("modified", "default/x"),
            ("deleted", "kube-system/x"),
        }


# ---------------------------------------------------------------------------
# Steady phase
# ---------------------------------------------------------------------------


class TestSteadyPhase:
    """Streams opened without a snapshot."""

    def test_all_changes_are_live(self) -> None:
        machine = _steady_machine()
        assert machine.phase is SyncPhase.STEADY
        out = _run(machine, [added("x"), modified("x"), deleted("x")])
        assert all(isinstance(n, LiveChange) for n in out)
        assert len(out) == 3

    def test_boundary_marker_ignored(self) -> None:
        machine = _steady_machine()
        out = _run(machine, [bookmark("t1", boundary=True), added("x")])
        assert [n.tag for n in out] == ["live"]
        assert machine.resume_token == "t1"


# ---------------------------------------------------------------------------
# Markers and resume tokens
# ---------------------------------------------------------------------------


class TestMarkers:
    """Resume token tracking."""

    @pytest.mark.parametrize("snapshot", [True, False])
    def test_plain_marker_is_silent(self, snapshot: bool) -> None:
        machine = SyncStateMachine(build_stream_params(snapshot, None, True))
        before = machine.phase
        assert machine.feed(decode_event(bookmark("5"))) == ()
        assert machine.feed(decode_event(bookmark("5"))) == ()
        assert machine.phase is before

    def test_token_follows_stream_order(self) -> None:
        machine = _steady_machine()
        _run(machine, [bookmark("9"), bookmark("3"), bookmark("10")])
        assert machine.resume_token == "10"
        _run(machine, [bookmark("2")])
        assert machine.resume_token == "2"

    def test_seeded_from_params(self) -> None:
        assert _steady_machine("t0").resume_token == "t0"

    def test_explicit_seed_wins(self) -> None:
        machine = _steady_machine("t0", resume_token="t9")
        assert machine.resume_token == "t9"

    def test_on_token_called_on_change_only(self) -> None:
        seen: list[str] = []
        machine = _steady_machine("t0", on_token=seen.append)
        _run(machine, [bookmark("t0"), bookmark("t1"), bookmark("t1"), bookmark("t2")])
        assert seen == ["t1", "t2"]

    def test_tokens_recorded(self) -> None:
        collector = SyncCollector()
        machine = _snapshot_machine(collector=collector)
        _run(machine, [bookmark("1"), bookmark("2", boundary=True)])
        assert [e.token for e in collector.log.query(event_type=TokenAdvanced)] == ["2", "1"]
        change = collector.log.query(event_type=PhaseChanged)[0]
        assert change.to_phase == "steady"
        assert change.resume_token == "2"
        assert change.implicit is False


# ---------------------------------------------------------------------------
# Reconnection
# ---------------------------------------------------------------------------


class TestReconnection:
    """A fresh machine seeded with the last token continues the feed."""

    def test_resume_from_token(self) -> None:
        tokens: list[str] = []
        machine_a = _snapshot_machine(on_token=tokens.append)
        out_a = _run(machine_a, [added("x"), added("y"), bookmark("t1", boundary=True)])
        assert [type(n) for n in out_a] == [SnapshotMember, SnapshotMember, SnapshotComplete]
        assert out_a[-1].resume_token == "t1"

        machine_b = SyncStateMachine(build_stream_params(False, tokens[-1], True))
        out_b = _run(machine_b, [modified("x"), bookmark("t2"), deleted("y")])
        assert [type(n) for n in out_b] == [LiveChange, LiveChange]
        assert [n.event.type for n in out_b] == ["modified", "deleted"]
        assert machine_b.resume_token == "t2"


# ---------------------------------------------------------------------------
# No-marker fallback
# ---------------------------------------------------------------------------


class TestNoMarkerFallback:
    """Boundary inference when markers are not allowed."""

    def test_expected_count(self) -> None:
        params = build_stream_params(True, None, False, expected_initial_count=2)
        machine = SyncStateMachine(params)
        out = _run(machine, [added("x"), added("y"), added("z")])
        assert [n.tag for n in out] == ["snapshot", "snapshot", "complete", "live"]
        assert out[2] == SnapshotComplete(None, implicit=True)
        assert out[3].resource.name == "z"

    def test_first_modification_ends_snapshot(self) -> None:
        params = build_stream_params(True, None, False)
        machine = SyncStateMachine(params)
        out = _run(machine, [added("x"), added("y"), modified("x")])
        assert [n.tag for n in out] == ["snapshot", "snapshot", "complete", "live"]
        assert out[2].implicit

    def test_adds_only_stay_initializing(self) -> None:
        machine = SyncStateMachine(build_stream_params(True, None, False))
        out = _run(machine, [added(f"p{i}") for i in range(5)])
        assert all(isinstance(n, SnapshotMember) for n in out)
        assert machine.phase is SyncPhase.INITIALIZING

    def test_zero_expected_count(self) -> None:
        params = build_stream_params(True, None, False, expected_initial_count=0)
        machine = SyncStateMachine(params)
        out = _run(machine, [added("x")])
        assert [n.tag for n in out] == ["complete", "live"]

    def test_boundary_marker_still_honoured(self) -> None:
        machine = SyncStateMachine(build_stream_params(True, None, False))
        out = _run(machine, [added("x"), bookmark("t1", boundary=True), added("y")])
        assert [n.tag for n in out] == ["snapshot", "complete", "live"]
        assert out[1] == SnapshotComplete("t1", implicit=False)

    def test_implicit_transition_recorded(self) -> None:
        collector = SyncCollector()
        params = build_stream_params(True, None, False)
        machine = SyncStateMachine(params, collector=collector)
        _run(machine, [added("x"), deleted("x")])
        change = collector.log.query(event_type=PhaseChanged)[0]
        assert change.implicit is True


# ---------------------------------------------------------------------------
# Warnings and closing
# ---------------------------------------------------------------------------


class TestWarnings:
    """Server errors and rejected events become warnings."""

    def test_server_error(self) -> None:
        collector = SyncCollector()
        machine = _snapshot_machine(collector=collector)
        out = _run(machine, [added("x"), server_error(500, "InternalError", "boom"), added("y")])
        assert [n.tag for n in out] == ["snapshot", "warning", "snapshot"]
        warning = out[1]
        assert warning.source == "server"
        assert warning.message == "500: InternalError: boom"
        assert not warning.expired
        assert machine.phase is SyncPhase.INITIALIZING
        assert collector.log.query(event_type=ServerErrorReceived)[0].code == 500

    def test_expired_error(self) -> None:
        out = _run(_steady_machine("t1"), [server_error(410, "Expired")])
        assert out[0].expired

    def test_reject(self) -> None:
        machine = _snapshot_machine()
        warning = machine.reject("event is not valid JSON")
        assert warning == StreamWarning("skipped malformed event: event is not valid JSON", "decode")
        assert machine.phase is SyncPhase.INITIALIZING
        assert not machine.is_closed


class TestClose:
    """CLOSED is terminal."""

    def test_end_of_stream(self) -> None:
        machine = _snapshot_machine()
        closed = machine.close(CloseReason.end_of_stream())
        assert closed == StreamClosed(CloseReason("end_of_stream"))
        assert machine.is_closed
        assert machine.closed_reason == CloseReason.end_of_stream()

    def test_transport_failure_detail(self) -> None:
        closed = _snapshot_machine().close(CloseReason.transport_failure("reset"))
        assert closed is not None
        assert closed.reason.detail == "reset"

    def test_cancel_is_silent(self) -> None:
        machine = _snapshot_machine()
        assert machine.close(CloseReason.cancelled()) is None
        assert machine.closed_reason == CloseReason.cancelled()

    def test_close_once(self) -> None:
        machine = _snapshot_machine()
        machine.close(CloseReason.end_of_stream())
        assert machine.close(CloseReason.transport_failure("late")) is None
        assert machine.closed_reason == CloseReason.end_of_stream()

    def test_feed_after_close_raises(self) -> None:
        machine = _snapshot_machine()
        machine.close(CloseReason.cancelled())
        with pytest.raises(SyncError, match="cancelled"):
            machine.feed(decode_event(added("x")))
        with pytest.raises(SyncError):
            machine.reject("late")
