"""Watchlist error hierarchy.

All watchlist-specific errors inherit from WatchlistError for easy catching.
Only ConfigError and StreamConnectionError are raised across the consumer
boundary; the rest are turned into notifications by the feed.
"""

import builtins


class WatchlistError(Exception):
    """Base error for all watchlist operations."""


class ConfigError(WatchlistError):
    """Invalid stream parameters or configuration."""


class StreamConnectionError(WatchlistError, builtins.ConnectionError):
    """A stream could not be opened, or its resume token was rejected.

    Attributes:
        expired: True when the remote side refused the resume token as too
            old to honor. The caller should drop the token and request a
            fresh snapshot.

    """

    def __init__(self, message: str, *, expired: bool = False) -> None:
        super().__init__(message)
        self.expired = expired


class DecodeError(WatchlistError):
    """A single raw event could not be decoded into a ChangeEvent."""


class TransportError(WatchlistError):
    """An open stream died mid-flight."""


class SyncError(WatchlistError):
    """The state machine was driven after it closed."""
