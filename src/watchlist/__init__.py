"""Watchlist: a two-phase sync feed over server-pushed watch streams.

A watch stream can deliver the whole current collection inline as
synthetic add events, mark the end of that burst with a bookmark, and then
switch to incremental changes. Watchlist turns such a stream into a
well-defined feed: snapshot members, one snapshot-complete boundary, live
changes, and a resume token for reconnecting without a fresh snapshot.

Quick start::

    import watchlist

    params = watchlist.build_stream_params(True, None, True)
    feed = await watchlist.SyncFeed.open(opener, params)
    async with feed:
        async for notification in feed:
            ...

Reconnecting::

    session = watchlist.WatchSession(opener, watchlist.WatchConfig())
    async for notification in session.notifications():
        ...

"""

# PEP 703: Declare this module as free-threading safe
_Py_mod_gil = 0

__version__ = "0.1.0.dev0"
__all__ = [
    "SyncFeed",
    "SyncStateMachine",
    "WatchConfig",
    "WatchSession",
    "__version__",
    "build_stream_params",
    "decode_event",
    "load_config",
]


def __getattr__(name: str) -> object:
    """Lazy imports for the public API.

    Keeps ``import watchlist`` fast until a component is actually used.
    """
    if name == "WatchConfig":
        from watchlist.config import WatchConfig

        return WatchConfig

    if name == "load_config":
        from watchlist.config_loader import load_config

        return load_config

    if name == "build_stream_params":
        from watchlist.stream.request import build_stream_params

        return build_stream_params

    if name == "decode_event":
        from watchlist.stream.events import decode_event

        return decode_event

    if name == "SyncStateMachine":
        from watchlist.sync.machine import SyncStateMachine

        return SyncStateMachine

    if name == "SyncFeed":
        from watchlist.sync.feed import SyncFeed

        return SyncFeed

    if name == "WatchSession":
        from watchlist.sync.session import WatchSession

        return WatchSession

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
