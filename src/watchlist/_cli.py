"""Watchlist CLI: watchlist replay / watchlist follow.

Entry point for the ``watchlist`` command-line interface. Reads a JSON-lines
recording of a watch stream and prints the two-phase feed, one line per
notification, on stdout. Status lines go to stderr.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import TYPE_CHECKING, TextIO

from watchlist._errors import ConfigError, StreamConnectionError
from watchlist.sync.notifications import (
    LiveChange,
    SnapshotComplete,
    SnapshotMember,
    StreamClosed,
    StreamWarning,
)

if TYPE_CHECKING:
    from watchlist.config import WatchConfig
    from watchlist.observability.collector import SyncCollector
    from watchlist.stream.request import StreamParams
    from watchlist.sync.notifications import CloseReason, Notification


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the watchlist CLI."""
    parser = argparse.ArgumentParser(
        prog="watchlist",
        description="Two-phase sync feed over recorded watch streams.",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {_get_version()}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # watchlist replay
    replay_parser = subparsers.add_parser(
        "replay",
        help="Replay a recorded watch stream and exit at end of file",
    )
    _add_stream_arguments(replay_parser)

    # watchlist follow
    follow_parser = subparsers.add_parser(
        "follow",
        help="Follow a growing watch recording until interrupted",
    )
    _add_stream_arguments(follow_parser)

    return parser


def _add_stream_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("file", help="JSON-lines watch recording")
    parser.add_argument(
        "--config-root", default=".", help="Directory holding watchlist.yaml/.toml",
    )
    parser.add_argument(
        "--no-snapshot",
        dest="want_initial_snapshot",
        action="store_false",
        default=None,
        help="Treat the stream as incremental from the first event",
    )
    parser.add_argument("--resume-token", default=None, help="Resume from this token")
    parser.add_argument(
        "--no-markers",
        dest="allow_markers",
        action="store_false",
        default=None,
        help="Infer the snapshot boundary instead of waiting for a marker",
    )
    parser.add_argument(
        "--expected-count",
        dest="expected_initial_count",
        type=int,
        default=None,
        help="Snapshot size, used with --no-markers",
    )
    parser.add_argument("--kind", dest="resource_kind", default=None, help="Expected object kind")
    parser.add_argument("--stats", action="store_true", help="Print event log statistics")


def _get_version() -> str:
    """Get the package version."""
    from watchlist import __version__

    return __version__


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------


def format_notification(notification: Notification) -> str:
    """Render one notification as a single console line."""
    if isinstance(notification, (SnapshotMember, LiveChange)):
        event = notification.event
        resource = event.resource
        namespace, name = resource.key
        ident = f"{namespace}/{name}" if namespace else name
        line = f"{notification.tag:<9} {event.type:<9} {ident}"
        if resource.phase and event.type != "deleted":
            line += f" (Phase: {resource.phase})"
        return line
    if isinstance(notification, SnapshotComplete):
        token = notification.resume_token or "none"
        suffix = " [inferred]" if notification.implicit else ""
        return f"snapshot complete (resume token: {token}){suffix}"
    if isinstance(notification, StreamWarning):
        return f"warning   {notification.message}"
    if isinstance(notification, StreamClosed):
        reason = notification.reason
        detail = f": {reason.detail}" if reason.detail else ""
        return f"closed    {reason.kind}{detail}"
    msg = f"unknown notification {notification!r}"
    raise TypeError(msg)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def _params_for(args: argparse.Namespace, config: WatchConfig) -> StreamParams:
    """Stream parameters for the command line.

    An explicit ``--expected-count`` is validated against the rest of the
    request. A count that only comes from the config file is dropped when
    the stream resumes or skips the snapshot.
    """
    from watchlist.stream.request import build_stream_params, params_from_config

    if args.expected_initial_count is None:
        return params_from_config(config, args.resume_token)
    return build_stream_params(
        config.want_initial_snapshot and args.resume_token is None,
        args.resume_token,
        config.allow_markers,
        expected_initial_count=args.expected_initial_count,
        config=config,
    )


async def _run(
    path: Path,
    params: StreamParams,
    config: WatchConfig,
    *,
    follow: bool,
    collector: SyncCollector,
    out: TextIO,
) -> tuple[CloseReason | None, str | None]:
    """Consume one stream and print its feed. Returns (close reason, token)."""
    from watchlist.stream.source import FileStreamOpener
    from watchlist.sync.feed import SyncFeed

    opener = FileStreamOpener(path, follow=follow)
    feed = await SyncFeed.open(opener, params, config=config, collector=collector)
    async with feed:
        async for notification in feed:
            print(format_notification(notification), file=out, flush=follow)
    return feed.closed_reason, feed.resume_token


def _print_stats(collector: SyncCollector) -> None:
    stats = collector.log.stats()
    lines = [
        f"  Events recorded: {stats['total']}",
        f"  Streams opened: {stats['streams_opened']}",
    ]
    for reason, count in sorted(stats["close_reasons"].items()):
        lines.append(f"  Closed ({reason}): {count}")
    if stats["anomalous_keys"]:
        lines.append(f"  Snapshot anomalies: {', '.join(stats['anomalous_keys'])}")
    lines.append("  By type:")
    for name, count in sorted(stats["by_type"].items()):
        lines.append(f"    {name}: {count}")
    print("\n".join(lines), file=sys.stderr)


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    from watchlist.config_loader import load_config
    from watchlist.observability.collector import SyncCollector

    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    try:
        config = load_config(
            Path(args.config_root),
            want_initial_snapshot=args.want_initial_snapshot,
            allow_markers=args.allow_markers,
            expected_initial_count=args.expected_initial_count,
            resource_kind=args.resource_kind,
        )
        params = _params_for(args, config)
    except ConfigError as exc:
        print(f"  Config error: {exc}", file=sys.stderr)
        sys.exit(2)

    collector = SyncCollector()
    try:
        reason, token = asyncio.run(
            _run(
                Path(args.file),
                params,
                config,
                follow=args.command == "follow",
                collector=collector,
                out=sys.stdout,
            )
        )
    except StreamConnectionError as exc:
        print(f"  Cannot open stream: {exc}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        print("  Cancelled", file=sys.stderr)
        reason, token = None, collector.log.last_token()

    if token is not None:
        print(f"  Resume token: {token}", file=sys.stderr)
    if args.stats:
        _print_stats(collector)
    if reason is not None and reason.kind == "transport_failure":
        sys.exit(1)


if __name__ == "__main__":
    main()
