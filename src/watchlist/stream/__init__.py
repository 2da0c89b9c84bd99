"""Stream layer: request parameters, wire decoding and event sources.

Everything on the near side of the state machine: what a stream is opened
with, how its raw events are decoded, and where they are read from.
"""

from watchlist.stream.events import (
    Added,
    ChangeEvent,
    Deleted,
    ErrorEvent,
    Marker,
    Modified,
    ResourceEvent,
    ResourceSnapshot,
    SyncPhase,
    decode_event,
)
from watchlist.stream.request import StreamParams, build_stream_params, params_from_config
from watchlist.stream.source import (
    EventSource,
    FileStreamOpener,
    FileTailSource,
    IterableSource,
    StreamOpener,
)

__all__ = [
    "Added",
    "ChangeEvent",
    "Deleted",
    "ErrorEvent",
    "EventSource",
    "FileStreamOpener",
    "FileTailSource",
    "IterableSource",
    "Marker",
    "Modified",
    "ResourceEvent",
    "ResourceSnapshot",
    "StreamOpener",
    "StreamParams",
    "SyncPhase",
    "build_stream_params",
    "decode_event",
    "params_from_config",
]
