"""Change events and the wire decoder.

Raw watch events arrive as loosely-typed JSON objects::

    {"type": "ADDED", "object": {"kind": "Pod", "metadata": {...}, ...}}

``decode_event`` turns one of them into a typed ChangeEvent, or fails with
DecodeError. Nothing past this module sees the wire representation, only
the tagged variants defined here.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, ClassVar, Literal

from watchlist._errors import DecodeError
from watchlist.config import INITIAL_EVENTS_END_ANNOTATION

if TYPE_CHECKING:
    from watchlist._types import RawEvent, ResourceKey, ResumeToken


class SyncPhase(StrEnum):
    """Which half of the two-phase feed a stream is in."""

    INITIALIZING = "initializing"
    STEADY = "steady"


@dataclass(frozen=True, slots=True)
class ResourceSnapshot:
    """One observed instance of the watched resource type.

    Superseded, never mutated, by later events for the same key.

    Attributes:
        name: Resource name.
        namespace: Scope of the resource ("" when cluster-scoped).
        annotations: Read-only annotation map.
        phase: Status phase (e.g. ``Running``), if reported.
        kind: Declared object kind, if present on the wire.
        resource_version: Version the object was observed at.
        uid: Server-assigned unique id.
        raw: The untouched wire object.

    """

    name: str
    namespace: str
    annotations: Mapping[str, str] = field(
        default_factory=lambda: MappingProxyType({}), hash=False
    )
    phase: str | None = None
    kind: str | None = None
    resource_version: str | None = None
    uid: str | None = None
    raw: Mapping[str, Any] = field(
        default_factory=dict, compare=False, hash=False, repr=False
    )

    @property
    def key(self) -> ResourceKey:
        """Identity of the resource: ``(namespace, name)``."""
        return (self.namespace, self.name)


@dataclass(frozen=True, slots=True)
class Added:
    """Resource now exists, or was observed as part of a snapshot."""

    resource: ResourceSnapshot
    type: ClassVar[Literal["added"]] = "added"


@dataclass(frozen=True, slots=True)
class Modified:
    """Resource's observed state changed."""

    resource: ResourceSnapshot
    type: ClassVar[Literal["modified"]] = "modified"


@dataclass(frozen=True, slots=True)
class Deleted:
    """Resource no longer exists."""

    resource: ResourceSnapshot
    type: ClassVar[Literal["deleted"]] = "deleted"


@dataclass(frozen=True, slots=True)
class Marker:
    """Server-issued checkpoint carrying a resume token.

    Attributes:
        resume_token: Stream position at this checkpoint.
        is_snapshot_boundary: True when the marker closes the initial
            snapshot burst.

    """

    resume_token: ResumeToken
    is_snapshot_boundary: bool = False
    type: ClassVar[Literal["marker"]] = "marker"


@dataclass(frozen=True, slots=True)
class ErrorEvent:
    """Server-side error reported in-band. Does not end the stream.

    Attributes:
        code: HTTP-style status code, if given.
        reason: Machine-readable reason (e.g. ``Expired``).
        message: Human-readable description.

    """

    code: int | None = None
    reason: str = ""
    message: str = ""
    raw: Mapping[str, Any] = field(
        default_factory=dict, compare=False, hash=False, repr=False
    )
    type: ClassVar[Literal["error"]] = "error"

    @property
    def expired(self) -> bool:
        """True when the server says the requested position is too old."""
        return self.code == 410 or self.reason in {"Expired", "Gone"}

    def describe(self) -> str:
        """One-line summary for warnings."""
        parts = [str(self.code)] if self.code is not None else []
        if self.reason:
            parts.append(self.reason)
        if self.message:
            parts.append(self.message)
        return ": ".join(parts) or "unspecified server error"


type ResourceEvent = Added | Modified | Deleted
type ChangeEvent = Added | Modified | Deleted | Marker | ErrorEvent

_RESOURCE_EVENTS: dict[str, type[Added] | type[Modified] | type[Deleted]] = {
    "ADDED": Added,
    "MODIFIED": Modified,
    "DELETED": Deleted,
}


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------


def decode_event(
    raw: RawEvent,
    *,
    resource_kind: str | None = None,
    boundary_annotation: str = INITIAL_EVENTS_END_ANNOTATION,
) -> ChangeEvent:
    """Decode one raw watch event.

    Args:
        raw: A parsed JSON mapping, or one JSON document as str/bytes.
        resource_kind: When set, resource objects that declare a different
            ``kind`` are rejected.
        boundary_annotation: Marker annotation key signalling the end of
            the snapshot burst.

    Raises:
        DecodeError: Malformed JSON, unknown event type, or a payload of the
            wrong shape for its declared type.

    """
    payload = _load(raw)

    event_type = payload.get("type")
    if not isinstance(event_type, str) or not event_type:
        raise DecodeError("event has no type")

    obj = payload.get("object")
    if not isinstance(obj, Mapping):
        msg = f"{event_type} event has no object"
        raise DecodeError(msg)

    if event_type == "BOOKMARK":
        return _decode_marker(obj, boundary_annotation)
    if event_type == "ERROR":
        return _decode_error(obj)

    event_cls = _RESOURCE_EVENTS.get(event_type)
    if event_cls is None:
        msg = f"unknown event type {event_type!r}"
        raise DecodeError(msg)
    return event_cls(_decode_resource(obj, resource_kind))


def _load(raw: RawEvent) -> Mapping[str, Any]:
    if isinstance(raw, Mapping):
        return raw
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            msg = f"event is not valid UTF-8: {exc}"
            raise DecodeError(msg) from exc
    if not isinstance(raw, str):
        msg = f"unsupported raw event type {type(raw).__name__}"
        raise DecodeError(msg)
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        msg = f"event is not valid JSON: {exc}"
        raise DecodeError(msg) from exc
    if not isinstance(data, dict):
        raise DecodeError("event is not a JSON object")
    return data


def _metadata(obj: Mapping[str, Any]) -> Mapping[str, Any]:
    metadata = obj.get("metadata")
    if not isinstance(metadata, Mapping):
        raise DecodeError("object has no metadata")
    return metadata


def _annotations(metadata: Mapping[str, Any]) -> Mapping[str, str]:
    annotations = metadata.get("annotations") or {}
    if not isinstance(annotations, Mapping):
        raise DecodeError("annotations must be a mapping")
    for k, v in annotations.items():
        if not isinstance(k, str) or not isinstance(v, str):
            msg = f"annotation {k!r} is not a string pair"
            raise DecodeError(msg)
    return MappingProxyType(dict(annotations))


def _optional_str(metadata: Mapping[str, Any], key: str) -> str | None:
    value = metadata.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        msg = f"{key} must be a string"
        raise DecodeError(msg)
    return value


def _decode_resource(
    obj: Mapping[str, Any], resource_kind: str | None
) -> ResourceSnapshot:
    kind = obj.get("kind")
    if kind is not None and not isinstance(kind, str):
        raise DecodeError("kind must be a string")
    if resource_kind is not None and kind is not None and kind != resource_kind:
        msg = f"expected {resource_kind} object, got {kind}"
        raise DecodeError(msg)

    metadata = _metadata(obj)
    name = metadata.get("name")
    if not isinstance(name, str) or not name:
        raise DecodeError("object has no name")

    status = obj.get("status")
    phase = None
    if isinstance(status, Mapping):
        phase = _optional_str(status, "phase")

    return ResourceSnapshot(
        name=name,
        namespace=_optional_str(metadata, "namespace") or "",
        annotations=_annotations(metadata),
        phase=phase,
        kind=kind,
        resource_version=_optional_str(metadata, "resourceVersion"),
        uid=_optional_str(metadata, "uid"),
        raw=obj,
    )


def _decode_marker(obj: Mapping[str, Any], boundary_annotation: str) -> Marker:
    metadata = _metadata(obj)
    token = metadata.get("resourceVersion")
    if not isinstance(token, str) or not token:
        raise DecodeError("marker has no resourceVersion")
    annotations = _annotations(metadata)
    return Marker(
        resume_token=token,
        is_snapshot_boundary=annotations.get(boundary_annotation) == "true",
    )


def _decode_error(obj: Mapping[str, Any]) -> ErrorEvent:
    code = obj.get("code")
    if code is not None and (not isinstance(code, int) or isinstance(code, bool)):
        raise DecodeError("error code must be an integer")
    reason = obj.get("reason") or ""
    message = obj.get("message") or ""
    if not isinstance(reason, str) or not isinstance(message, str):
        raise DecodeError("error reason and message must be strings")
    return ErrorEvent(code=code, reason=reason, message=message, raw=obj)
