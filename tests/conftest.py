"""Shared test fixtures for watchlist."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

import pytest

from watchlist._errors import StreamConnectionError
from watchlist.config import INITIAL_EVENTS_END_ANNOTATION


def pod(
    name: str,
    *,
    namespace: str = "default",
    phase: str | None = "Running",
    resource_version: str = "1",
    annotations: dict[str, str] | None = None,
    kind: str = "Pod",
) -> dict[str, Any]:
    """Build a minimal Pod object as it appears on the wire."""
    metadata: dict[str, Any] = {
        "name": name,
        "namespace": namespace,
        "resourceVersion": resource_version,
        "uid": f"uid-{name}",
    }
    if annotations is not None:
        metadata["annotations"] = annotations
    obj: dict[str, Any] = {"kind": kind, "apiVersion": "v1", "metadata": metadata}
    if phase is not None:
        obj["status"] = {"phase": phase}
    return obj


def added(name: str, **kwargs: Any) -> dict[str, Any]:
    return {"type": "ADDED", "object": pod(name, **kwargs)}


def modified(name: str, **kwargs: Any) -> dict[str, Any]:
    return {"type": "MODIFIED", "object": pod(name, **kwargs)}


def deleted(name: str, **kwargs: Any) -> dict[str, Any]:
    return {"type": "DELETED", "object": pod(name, **kwargs)}


def bookmark(token: str, *, boundary: bool = False) -> dict[str, Any]:
    """Build a BOOKMARK event, optionally marking the end of the snapshot."""
    metadata: dict[str, Any] = {"resourceVersion": token}
    if boundary:
        metadata["annotations"] = {INITIAL_EVENTS_END_ANNOTATION: "true"}
    return {"type": "BOOKMARK", "object": {"kind": "Pod", "metadata": metadata}}


def server_error(code: int = 500, reason: str = "InternalError", message: str = "") -> dict[str, Any]:
    return {
        "type": "ERROR",
        "object": {
            "kind": "Status",
            "status": "Failure",
            "code": code,
            "reason": reason,
            "message": message,
        },
    }


class ScriptedSource:
    """EventSource double that serves a fixed script of raw events.

    Script entries may be raw events, ``TransportError`` instances (raised
    when reached) or the ``BLOCK`` sentinel (waits until closed). Counts
    ``close()`` calls.

    """

    BLOCK = object()

    def __init__(self, script: list[Any]) -> None:
        self._script = list(script)
        self.close_calls = 0
        self.reads = 0
        self._released = asyncio.Event()

    async def next(self) -> Any:
        self.reads += 1
        if not self._script:
            return None
        item = self._script.pop(0)
        if item is ScriptedSource.BLOCK:
            await self._released.wait()
            return None
        if isinstance(item, BaseException):
            raise item
        return item

    async def close(self) -> None:
        self.close_calls += 1
        self._released.set()


class ScriptedOpener:
    """StreamOpener double that hands out one ScriptedSource per open.

    Entries may be scripts (lists) or exceptions to raise from ``open``.
    Every StreamParams passed in is kept in ``opened_with``.

    """

    def __init__(self, *streams: list[Any] | BaseException) -> None:
        self._streams = list(streams)
        self.opened_with: list[Any] = []
        self.sources: list[ScriptedSource] = []

    async def open(self, params: Any) -> ScriptedSource:
        self.opened_with.append(params)
        if not self._streams:
            raise StreamConnectionError("no more streams")
        stream = self._streams.pop(0)
        if isinstance(stream, BaseException):
            raise stream
        source = ScriptedSource(stream)
        self.sources.append(source)
        return source


@pytest.fixture
def recording(tmp_path: Path) -> Path:
    """A JSON-lines watch recording with a two-pod snapshot and live changes."""
    import json

    lines = [
        added("web-1"),
        added("web-2", phase="Pending"),
        bookmark("100", boundary=True),
        modified("web-2", phase="Running"),
        bookmark("101"),
        deleted("web-1"),
    ]
    path = tmp_path / "watch.jsonl"
    path.write_text("".join(json.dumps(line) + "\n" for line in lines))
    return path
