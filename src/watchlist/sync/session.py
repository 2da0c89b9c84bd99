"""Watch session: reconnects a watch, carrying the resume token forward.

A SyncFeed covers one stream. A WatchSession owns the resume token across
streams and opens the next one when the current stream ends:

- After a normal end of stream it resumes from the last token right away.
- After a transport failure, or a failed open, it waits with exponential
  back-off, giving up after ``max_reconnects`` consecutive failures.
- When the server rejects the token as expired (on open, or in-band as a
  410 error event) it drops the token and relists: the next stream asks
  for a fresh inline snapshot.

The consumer sees every notification of every stream in order, including
each stream's ``StreamClosed``, so a new ``SnapshotMember`` run after a
relist is visible as such.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from watchlist._errors import StreamConnectionError
from watchlist.config import WatchConfig
from watchlist.stream.request import params_from_config
from watchlist.sync.feed import SyncFeed
from watchlist.sync.notifications import StreamWarning

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable

    from watchlist._types import ResumeToken
    from watchlist.observability.collector import SyncCollector
    from watchlist.stream.source import StreamOpener
    from watchlist.sync.notifications import Notification


class WatchSession:
    """Runs successive feeds against one opener.

    Args:
        opener: Opens the event source for each stream.
        config: Snapshot, marker and reconnect settings.
        resume_token: Token to resume the first stream from, if any.
        collector: Optional observability collector.
        sleep: Awaitable delay used for back-off (replaceable in tests).

    """

    def __init__(
        self,
        opener: StreamOpener,
        config: WatchConfig | None = None,
        *,
        resume_token: ResumeToken | None = None,
        collector: SyncCollector | None = None,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> None:
        self._opener = opener
        self._config = config if config is not None else WatchConfig()
        self._resume_token = resume_token
        self._collector = collector
        self._sleep = sleep
        self._feed: SyncFeed | None = None
        self._cancelled = False
        self._streams_opened = 0

    @property
    def resume_token(self) -> ResumeToken | None:
        """Last token seen on any stream of this session."""
        return self._resume_token

    @property
    def streams_opened(self) -> int:
        return self._streams_opened

    def cancel(self) -> None:
        """Stop the session. The current feed ends without further notifications."""
        self._cancelled = True
        if self._feed is not None:
            self._feed.cancel()

    async def notifications(self) -> AsyncIterator[Notification]:
        """Yield notifications from this and all following streams.

        Raises:
            ConfigError: The configuration cannot produce valid parameters.
            StreamConnectionError: Opening failed more than
                ``max_reconnects`` times in a row, or reconnecting is off.

        """
        config = self._config
        failures = 0

        while not self._cancelled:
            params = params_from_config(config, self._resume_token)
            try:
                feed = await SyncFeed.open(
                    self._opener,
                    params,
                    resume_token=self._resume_token,
                    on_token=self._remember,
                    config=config,
                    collector=self._collector,
                )
            except StreamConnectionError as exc:
                if exc.expired and self._resume_token is not None:
                    self._relist()
                    continue
                failures += 1
                if not config.reconnect or failures > config.max_reconnects:
                    raise
                await self._backoff(failures)
                continue

            self._streams_opened += 1
            self._feed = feed
            relist = False
            async with feed:
                async for notification in feed:
                    yield notification
                    if isinstance(notification, StreamWarning) and notification.expired:
                        relist = True
                        feed.cancel()
            self._feed = None

            if self._cancelled:
                return
            if relist and self._resume_token is not None:
                failures = 0
                self._relist()
                continue
            if not config.reconnect:
                return

            reason = feed.closed_reason
            if reason is not None and reason.kind == "end_of_stream" and feed.events_seen > 0:
                failures = 0
                self._record_reconnect(0, 0.0)
                continue

            failures += 1
            if failures > config.max_reconnects:
                return
            await self._backoff(failures)

    def _remember(self, token: ResumeToken) -> None:
        self._resume_token = token

    def _relist(self) -> None:
        self._resume_token = None
        self._record_reconnect(0, 0.0, relist=True)

    async def _backoff(self, attempt: int) -> None:
        delay = self._config.backoff(attempt)
        self._record_reconnect(attempt, delay)
        await self._sleep(delay)

    def _record_reconnect(self, attempt: int, delay: float, *, relist: bool = False) -> None:
        if self._collector is not None:
            self._collector.record_reconnect(
                attempt,
                delay_s=delay,
                resume_token=self._resume_token,
                relist=relist,
            )
