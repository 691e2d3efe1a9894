from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from enum import StrEnum


class UpstreamVariant(StrEnum):
    PASSTHROUGH = "passthrough"
    HOST_REWRITE = "host_rewrite"


class ContentCategory(StrEnum):
    MANIFEST = "manifest"
    CACHEABLE_BINARY = "cacheable_binary"
    OTHER = "other"


class RewriteMode(StrEnum):
    DIRECT = "direct"
    CONTEXT = "context"


@dataclass(frozen=True)
class FetchRequest:
    """Upstream target and header set for one proxy request."""

    url: str
    variant: UpstreamVariant
    headers: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class RewriteContext:
    """Inputs for rewriting one manifest.

    ``original_url`` is only consulted by the context-aware mode, to resolve
    root-relative and relative references.
    """

    original_url: str = ""
    proxy_prefix: str = "/proxy-stream/"


@dataclass
class ProxyResult:
    """What the orchestrator hands back to the HTTP layer.

    Exactly one of ``body`` and ``stream`` is set.
    """

    content_type: str | None
    body: bytes | str | None = None
    stream: AsyncIterator[bytes] | None = None
    cached: bool = False
