"""Sync feed: the cancellable read loop over one open stream.

Pulls raw events from an EventSource one at a time, decodes them, runs
them through a SyncStateMachine and hands out the resulting notifications
as an async iterator::

    feed = await SyncFeed.open(opener, params, on_token=store.save)
    async with feed:
        async for notification in feed:
            ...

The only suspension point is the read of the next raw event. That read
races the feed's cancellation hook, so ``feed.cancel()`` takes effect
between events even while the stream is idle. Task cancellation and
``aclose()`` behave the same way. On every exit path the source is closed
exactly once.

In-stream conditions never raise out of the iterator: undecodable events
become ``StreamWarning`` and a dying transport becomes a final
``StreamClosed``.
"""

from __future__ import annotations

import asyncio
from collections import deque
from typing import TYPE_CHECKING, Any

from watchlist._errors import DecodeError, TransportError
from watchlist.stream.events import decode_event
from watchlist.sync.machine import SyncStateMachine
from watchlist.sync.notifications import CloseReason

if TYPE_CHECKING:
    from collections.abc import Callable

    from watchlist._types import RawEvent, ResumeToken
    from watchlist.config import WatchConfig
    from watchlist.observability.collector import SyncCollector
    from watchlist.stream.events import SyncPhase
    from watchlist.stream.request import StreamParams
    from watchlist.stream.source import EventSource, StreamOpener
    from watchlist.sync.notifications import Notification


class _ReadCancelled(Exception):
    """The pending read lost the race against ``cancel()``."""


class SyncFeed:
    """Drives one EventSource through one SyncStateMachine.

    Args:
        source: An already-open event source. The feed takes ownership and
            closes it.
        params: Parameters the source was opened with.
        resume_token: Last known token to seed the state machine with.
        on_token: Called with every new resume token.
        config: Supplies the expected resource kind and the boundary
            annotation key used when decoding. Any kind is accepted when
            omitted.
        collector: Optional observability collector.

    """

    def __init__(
        self,
        source: EventSource,
        params: StreamParams,
        *,
        resume_token: ResumeToken | None = None,
        on_token: Callable[[ResumeToken], None] | None = None,
        config: WatchConfig | None = None,
        collector: SyncCollector | None = None,
    ) -> None:
        self._source = source
        self._machine = SyncStateMachine(
            params,
            resume_token=resume_token,
            on_token=on_token,
            collector=collector,
        )
        self._decode_options: dict[str, Any] = {}
        if config is not None:
            self._decode_options = {
                "resource_kind": config.resource_kind,
                "boundary_annotation": config.boundary_annotation,
            }
        self._collector = collector
        self._pending: deque[Notification] = deque()
        self._cancel_event = asyncio.Event()
        self._source_closed = False
        self._events_seen = 0

        if collector is not None:
            collector.record_open(params)

    @classmethod
    async def open(
        cls,
        opener: StreamOpener,
        params: StreamParams,
        **kwargs: Any,
    ) -> SyncFeed:
        """Open a stream through *opener* and wrap it in a feed.

        Raises:
            StreamConnectionError: The stream could not be opened.

        """
        source = await opener.open(params)
        return cls(source, params, **kwargs)

    @property
    def machine(self) -> SyncStateMachine:
        return self._machine

    @property
    def phase(self) -> SyncPhase:
        return self._machine.phase

    @property
    def resume_token(self) -> ResumeToken | None:
        return self._machine.resume_token

    @property
    def closed_reason(self) -> CloseReason | None:
        return self._machine.closed_reason

    @property
    def events_seen(self) -> int:
        """Raw events read from the source so far."""
        return self._events_seen

    def cancel(self) -> None:
        """Stop the feed at the next await point.

        Safe to call from another task. No further notifications are
        delivered once the cancellation is observed.
        """
        self._cancel_event.set()

    async def aclose(self) -> None:
        """Cancel the feed now and release the source."""
        self._cancel_event.set()
        await self._shutdown(CloseReason.cancelled())

    async def __aenter__(self) -> SyncFeed:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    def __aiter__(self) -> SyncFeed:
        return self

    async def __anext__(self) -> Notification:
        if self._cancel_event.is_set() and not self._machine.is_closed:
            await self._shutdown(CloseReason.cancelled())
        while not self._pending:
            if self._machine.is_closed:
                raise StopAsyncIteration
            await self._step()
        return self._pending.popleft()

    # ----- Read loop -----

    async def _step(self) -> None:
        """Read, decode and classify one raw event."""
        try:
            raw = await self._read()
        except _ReadCancelled:
            await self._shutdown(CloseReason.cancelled())
            return
        except asyncio.CancelledError:
            await self._shutdown(CloseReason.cancelled())
            raise
        except TransportError as exc:
            await self._shutdown(CloseReason.transport_failure(str(exc)))
            return
        except Exception as exc:
            detail = f"{type(exc).__name__}: {exc}"
            await self._shutdown(CloseReason.transport_failure(detail))
            return

        if raw is None:
            await self._shutdown(CloseReason.end_of_stream())
            return

        self._events_seen += 1
        try:
            event = decode_event(raw, **self._decode_options)
        except DecodeError as exc:
            self._pending.append(self._machine.reject(str(exc)))
            return
        self._pending.extend(self._machine.feed(event))

    async def _read(self) -> RawEvent | None:
        """Wait for the next raw event or for ``cancel()``, whichever is first."""
        read = asyncio.ensure_future(self._source.next())
        stop = asyncio.ensure_future(self._cancel_event.wait())
        try:
            done, _ = await asyncio.wait(
                {read, stop}, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            await _discard(read, stop)
            raise

        if stop in done or self._cancel_event.is_set():
            await _discard(read, stop)
            raise _ReadCancelled

        await _discard(stop)
        return read.result()

    async def _shutdown(self, reason: CloseReason) -> None:
        if self._machine.is_closed:
            await self._close_source()
            return
        if reason.kind == "cancelled":
            self._pending.clear()
        notification = self._machine.close(reason)
        await self._close_source()
        if self._collector is not None:
            self._collector.record_close(
                reason.kind, detail=reason.detail, events_seen=self._events_seen,
            )
        if notification is not None:
            self._pending.append(notification)

    async def _close_source(self) -> None:
        if self._source_closed:
            return
        self._source_closed = True
        await self._source.close()


async def _discard(*tasks: asyncio.Future[Any]) -> None:
    """Cancel *tasks* and wait for them to settle.

    Their outcomes are consumed and dropped. A cancellation of the calling
    task still propagates.
    """
    for task in tasks:
        task.cancel()
    await asyncio.wait(tasks)
    for task in tasks:
        if not task.cancelled():
            task.exception()
