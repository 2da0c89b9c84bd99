"""Watchlist configuration.

WatchConfig is the central configuration object, frozen after creation.
The wire-protocol constants (boundary annotation key, token comparison
mode) live here rather than in the state machine.
"""

from dataclasses import dataclass

from watchlist._errors import ConfigError

#: Annotation set to ``"true"`` on the bookmark that closes the initial burst.
INITIAL_EVENTS_END_ANNOTATION = "k8s.io/initial-events-end"

#: Token comparison mode used when requesting a snapshot or resuming.
NOT_OLDER_THAN = "NotOlderThan"


@dataclass(frozen=True, slots=True)
class WatchConfig:
    """Configuration for a watch stream and its reconnecting session.

    Attributes:
        resource: Plural resource name being watched (e.g. ``pods``).
        resource_kind: Expected ``kind`` of resource objects on the stream.
            Objects declaring a different kind fail to decode.
        namespace: Scope of the watch.
        boundary_annotation: Marker annotation key that signals the end of
            the initial snapshot burst.
        resource_version_match: Token comparison mode sent with snapshot and
            resume requests.
        want_initial_snapshot: Request the current collection inline as
            synthetic add events on a fresh stream.
        allow_markers: Allow the server to send bookmark markers. When off,
            the snapshot boundary is inferred heuristically.
        expected_initial_count: Size of the snapshot burst, used only when
            markers are disabled.
        reconnect: Reopen the stream after it ends or fails.
        max_reconnects: Consecutive failed attempts before giving up.
        backoff_initial: First reconnect delay in seconds.
        backoff_max: Upper bound on the reconnect delay in seconds.

    """

    resource: str = "pods"
    resource_kind: str = "Pod"
    namespace: str = "default"
    boundary_annotation: str = INITIAL_EVENTS_END_ANNOTATION
    resource_version_match: str = NOT_OLDER_THAN
    want_initial_snapshot: bool = True
    allow_markers: bool = True
    expected_initial_count: int | None = None
    reconnect: bool = True
    max_reconnects: int = 5
    backoff_initial: float = 1.0
    backoff_max: float = 30.0

    def __post_init__(self) -> None:
        if not self.boundary_annotation:
            raise ConfigError("boundary_annotation must not be empty")
        if self.max_reconnects < 0:
            raise ConfigError("max_reconnects must be >= 0")
        if self.backoff_initial < 0 or self.backoff_max < self.backoff_initial:
            raise ConfigError("backoff must satisfy 0 <= backoff_initial <= backoff_max")

    def backoff(self, attempt: int) -> float:
        """Delay before reconnect attempt number *attempt* (1-based)."""
        if attempt <= 0:
            return 0.0
        return min(self.backoff_initial * 2 ** (attempt - 1), self.backoff_max)
