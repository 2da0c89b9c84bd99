"""Event sources: where raw watch events come from.

The feed drives exactly one read primitive, ``EventSource.next()``, and
releases the connection with ``EventSource.close()``. Opening a source is
the job of a ``StreamOpener``, which is the seam a real API client plugs
into.

Two local sources ship with watchlist:

- ``IterableSource`` wraps an in-memory (sync or async) iterable.
- ``FileTailSource`` reads a JSON-lines recording of a watch stream, such
  as the output of ``kubectl get pods --watch --output-watch-events -o json``,
  and can keep following the file as it grows.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterable, Iterable
from pathlib import Path
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from watchfiles import Change

from watchlist._errors import StreamConnectionError, TransportError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterator
    from io import TextIOWrapper

    from watchlist._types import RawEvent
    from watchlist.stream.request import StreamParams


@runtime_checkable
class EventSource(Protocol):
    """An open stream of raw events."""

    async def next(self) -> RawEvent | None:
        """Wait for the next raw event.

        Returns None once the stream has ended. Raises TransportError if
        the stream dies mid-flight.
        """
        ...

    async def close(self) -> None:
        """Release the underlying connection."""
        ...


@runtime_checkable
class StreamOpener(Protocol):
    """Opens event sources for a given set of stream parameters."""

    async def open(self, params: StreamParams) -> EventSource:
        """Open a stream. Raises StreamConnectionError on failure."""
        ...


# ---------------------------------------------------------------------------
# In-memory source
# ---------------------------------------------------------------------------


class IterableSource:
    """Serves raw events from an iterable or async iterable.

    Exceptions raised by the underlying iterator are reported as
    TransportError, the same way a dropped connection would be.

    """

    def __init__(self, events: Iterable[RawEvent] | AsyncIterable[RawEvent]) -> None:
        self._sync: Iterator[RawEvent] | None = None
        self._async: AsyncIterator[RawEvent] | None = None
        if isinstance(events, AsyncIterable):
            self._async = aiter(events)
        else:
            self._sync = iter(events)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def next(self) -> RawEvent | None:
        if self._closed:
            return None
        try:
            if self._async is not None:
                return await anext(self._async)
            if self._sync is not None:
                return next(self._sync)
            return None
        except (StopIteration, StopAsyncIteration):
            return None
        except TransportError:
            raise
        except Exception as exc:
            raise TransportError(str(exc) or type(exc).__name__) from exc

    async def close(self) -> None:
        self._closed = True
        if self._async is not None and hasattr(self._async, "aclose"):
            await self._async.aclose()


# ---------------------------------------------------------------------------
# JSON-lines file source
# ---------------------------------------------------------------------------


class FileTailSource:
    """Reads one raw event per line from a JSON-lines file.

    In replay mode the stream ends at end-of-file. In follow mode the
    source waits on ``watchfiles.awatch`` for the file to grow and only
    ends when closed. Blank lines are skipped; a trailing partial line is
    held back until its newline arrives.

    Args:
        path: File to read.
        follow: Keep reading as the file grows.
        poll_ms: Upper bound on a single wait for filesystem events.

    """

    def __init__(self, path: Path, *, follow: bool = False, poll_ms: int = 1000) -> None:
        self._path = path
        self._follow = follow
        self._poll_ms = poll_ms
        self._fh: TextIOWrapper | None = None
        self._partial = ""
        self._stop_event = asyncio.Event()
        self._changes: AsyncIterator[set[tuple[Change, str]]] | None = None
        self._closed = False

    @property
    def path(self) -> Path:
        return self._path

    def open(self) -> None:
        """Open the file. Raises StreamConnectionError if it is unreadable."""
        try:
            self._fh = self._path.open(encoding="utf-8")
        except OSError as exc:
            msg = f"cannot open {self._path}: {exc}"
            raise StreamConnectionError(msg) from exc

    async def next(self) -> RawEvent | None:
        if self._fh is None and not self._closed:
            self.open()
        while not self._closed:
            line = self._read_line()
            if line is not None:
                if line.strip():
                    return line
                continue
            if not self._follow:
                if self._partial.strip():
                    line, self._partial = self._partial, ""
                    return line
                return None
            if not await self._wait_for_growth():
                return None
        return None

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._stop_event.set()
        if self._fh is not None:
            self._fh.close()
            self._fh = None

    def _read_line(self) -> str | None:
        if self._fh is None:
            return None
        try:
            chunk = self._fh.readline()
        except (OSError, UnicodeDecodeError) as exc:
            msg = f"read error on {self._path.name}: {exc}"
            raise TransportError(msg) from exc
        if not chunk:
            return None
        if not chunk.endswith("\n"):
            self._partial += chunk
            return None
        line, self._partial = self._partial + chunk, ""
        return line

    async def _wait_for_growth(self) -> bool:
        """Block until the file may have grown. False once stopped."""
        from watchfiles import awatch

        if self._changes is None:
            self._changes = aiter(
                awatch(
                    self._path,
                    watch_filter=None,
                    stop_event=self._stop_event,
                    rust_timeout=self._poll_ms,
                    yield_on_timeout=True,
                    debounce=50,
                    step=10,
                )
            )
        try:
            changes = await anext(self._changes)
        except StopAsyncIteration:
            return False
        for change, _ in changes:
            if change == Change.deleted:
                msg = f"{self._path.name} was removed"
                raise TransportError(msg)
        return True


class FileStreamOpener:
    """Opens FileTailSource streams over a recorded watch file.

    A recording has no server behind it, so the stream parameters only
    decide what the state machine expects, not what the file contains.

    """

    def __init__(self, path: Path, *, follow: bool = False) -> None:
        self._path = path
        self._follow = follow

    async def open(self, params: StreamParams) -> FileTailSource:
        source = FileTailSource(self._path, follow=self._follow)
        source.open()
        return source
