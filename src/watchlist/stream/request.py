"""Stream request builder: validated parameters for opening a watch.

The inline-snapshot option travels as an explicit field of StreamParams,
chosen by the caller at stream-open time.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from watchlist._errors import ConfigError
from watchlist.config import NOT_OLDER_THAN, WatchConfig
from watchlist.stream.events import SyncPhase

if TYPE_CHECKING:
    from watchlist._types import ResumeToken


@dataclass(frozen=True, slots=True)
class StreamParams:
    """Parameters a stream was (or will be) opened with.

    Attributes:
        want_initial_snapshot: Deliver the current collection inline before
            incremental changes.
        resume_token: Position to continue from, or None for "now".
        allow_markers: Allow bookmark markers on the stream.
        resource_version_match: Token comparison mode. Set whenever a
            snapshot or a resume token is requested.
        expected_initial_count: Snapshot size for the no-marker fallback.

    """

    want_initial_snapshot: bool
    resume_token: ResumeToken | None = None
    allow_markers: bool = True
    resource_version_match: str | None = None
    expected_initial_count: int | None = None

    @property
    def uses_marker_boundary(self) -> bool:
        """True when the snapshot burst ends on an explicit boundary marker."""
        return self.want_initial_snapshot and self.allow_markers

    @property
    def initial_phase(self) -> SyncPhase:
        """Phase a state machine for these parameters starts in."""
        if self.want_initial_snapshot:
            return SyncPhase.INITIALIZING
        return SyncPhase.STEADY

    def to_query(self) -> dict[str, str]:
        """Render as Kubernetes watch query parameters."""
        query = {"watch": "true"}
        if self.want_initial_snapshot:
            query["sendInitialEvents"] = "true"
        if self.resource_version_match is not None:
            query["resourceVersionMatch"] = self.resource_version_match
        if self.allow_markers:
            query["allowWatchBookmarks"] = "true"
        if self.resume_token is not None:
            query["resourceVersion"] = self.resume_token
        return query


def build_stream_params(
    want_initial_snapshot: bool,
    resume_token: ResumeToken | None = None,
    allow_markers: bool = True,
    *,
    expected_initial_count: int | None = None,
    config: WatchConfig | None = None,
) -> StreamParams:
    """Validate a stream request and return its parameters.

    Raises:
        ConfigError: A snapshot was requested alongside a resume token, the
            token is empty, or ``expected_initial_count`` is negative or
            given where it cannot apply.

    """
    if resume_token is not None:
        if want_initial_snapshot:
            raise ConfigError("snapshot requested alongside resume token")
        if not resume_token:
            raise ConfigError("resume token must not be empty")

    if expected_initial_count is not None:
        if expected_initial_count < 0:
            raise ConfigError("expected initial count must be >= 0")
        if allow_markers or not want_initial_snapshot:
            raise ConfigError(
                "expected initial count only applies to a snapshot without markers"
            )

    match_mode = config.resource_version_match if config is not None else NOT_OLDER_THAN
    needs_match = want_initial_snapshot or resume_token is not None

    return StreamParams(
        want_initial_snapshot=want_initial_snapshot,
        resume_token=resume_token,
        allow_markers=allow_markers,
        resource_version_match=match_mode if needs_match else None,
        expected_initial_count=expected_initial_count,
    )


def params_from_config(
    config: WatchConfig,
    resume_token: ResumeToken | None = None,
) -> StreamParams:
    """Build parameters for the next stream of a session.

    With a resume token the snapshot burst is skipped; without one the
    configured snapshot behaviour applies.
    """
    if resume_token is not None:
        return build_stream_params(
            False, resume_token, config.allow_markers, config=config,
        )
    count = (
        config.expected_initial_count
        if config.want_initial_snapshot and not config.allow_markers
        else None
    )
    return build_stream_params(
        config.want_initial_snapshot,
        None,
        config.allow_markers,
        expected_initial_count=count,
        config=config,
    )
