"""Shared type definitions for watchlist."""

from collections.abc import Mapping
from typing import Any, Literal

# Opaque stream position (Kubernetes resourceVersion)
type ResumeToken = str

# Resource identity: (namespace, name)
type ResourceKey = tuple[str, str]

# One undecoded event as delivered by an EventSource
type RawEvent = Mapping[str, Any] | str | bytes

# Why a stream closed
type CloseKind = Literal["end_of_stream", "transport_failure", "cancelled"]
