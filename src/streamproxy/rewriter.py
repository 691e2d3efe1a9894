"""HLS manifest rewriting.

Two single-pass, line-oriented modes turn segment and sub-playlist references
into proxy-relative paths of the form ``<proxy_prefix><absolute upstream URL>``:

* direct: only lines that are already absolute URLs are rewritten. Used for
  upstreams that always emit absolute segment URLs.
* context: lines ending in a known media extension are resolved against the
  original manifest URL first (absolute, root-relative or relative).

Every other line (tags, comments, blank lines) and every line terminator is
passed through byte-for-byte.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING
from urllib.parse import urlsplit

import structlog

if TYPE_CHECKING:
    from collections.abc import Callable

    from streamproxy.models.fetch import RewriteContext

log = structlog.get_logger()

_SCHEME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.-]*://")
_REFERENCE_EXTENSIONS = (".ts", ".m3u8", ".jpg", ".html")


def _rewrite_lines(content: str, rewrite_line: Callable[[str], str | None]) -> str:
    """Apply ``rewrite_line`` to each line; ``None`` keeps the line as is."""
    out: list[str] = []
    for line in content.split("\n"):
        text = line[:-1] if line.endswith("\r") else line
        replacement = rewrite_line(text)
        if replacement is None:
            out.append(line)
        else:
            out.append(replacement + line[len(text) :])
    return "\n".join(out)


def _is_comment(line: str) -> bool:
    return line.startswith("#")


def rewrite_direct(content: str, proxy_prefix: str = "/proxy-stream/") -> str:
    """Prefix every absolute-URL line with ``proxy_prefix``.

    Idempotent: rewritten lines no longer start with a scheme, so a second
    pass leaves them alone.
    """

    def _line(line: str) -> str | None:
        if _is_comment(line) or not _SCHEME_RE.match(line):
            return None
        return f"{proxy_prefix}{line}"

    return _rewrite_lines(content, _line)


def base_directory(url: str) -> str:
    """Return ``scheme://host/dir/`` for a manifest URL.

    Raises ValueError if ``url`` is not an absolute URL.
    """
    parsed = urlsplit(url)
    if not parsed.scheme or not parsed.netloc:
        raise ValueError(f"Not an absolute URL: {url!r}")
    directory = parsed.path.rsplit("/", 1)[0] if "/" in parsed.path else ""
    return f"{parsed.scheme}://{parsed.netloc}{directory}/"


def _has_reference_extension(line: str) -> bool:
    try:
        path = urlsplit(line).path
    except ValueError:
        return False
    return path.endswith(_REFERENCE_EXTENSIONS)


def rewrite_with_context(content: str, context: RewriteContext) -> str:
    """Resolve media references against ``context.original_url`` and proxy them.

    If the original URL cannot be parsed, relative and root-relative lines are
    left unmodified; absolute lines are still rewritten.
    """
    origin: tuple[str, str] | None
    try:
        base_dir = base_directory(context.original_url)
        parsed = urlsplit(context.original_url)
        origin = (parsed.scheme, parsed.netloc)
    except ValueError:
        log.warning("manifest_base_url_invalid", original_url=context.original_url)
        base_dir = ""
        origin = None

    def _line(line: str) -> str | None:
        if not line or _is_comment(line) or not _has_reference_extension(line):
            return None

        if _SCHEME_RE.match(line):
            absolute = line
        elif origin is None:
            return None
        elif line.startswith("//"):
            absolute = f"{origin[0]}:{line}"
        elif line.startswith("/"):
            absolute = f"{origin[0]}://{origin[1]}{line}"
        else:
            absolute = base_dir + line
        return f"{context.proxy_prefix}{absolute}"

    return _rewrite_lines(content, _line)
