"""Client URL → upstream FetchRequest mapping.

Each proxy endpoint picks an upstream variant:

* passthrough: the client URL is fetched verbatim with headers that look like
  a browser player embedded on the upstream site.
* host_rewrite: the client URL is re-rooted under the gateway's proxy API,
  ``https://<gateway>/api/proxy/<provider>/<host><path><?query>``, with the
  richer client-hint header set the gateway fingerprints.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING
from urllib.parse import urlsplit

from streamproxy.errors import ErrorCode, StreamProxyError
from streamproxy.models.fetch import FetchRequest, UpstreamVariant

if TYPE_CHECKING:
    from streamproxy.config import UpstreamSettings

_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/134.0.0.0 Safari/537.36 Edg/134.0.0.0"
)
_SEC_CH_UA = '"Chromium";v="134", "Not:A-Brand";v="24", "Microsoft Edge";v="134"'

PASSTHROUGH_HEADERS: dict[str, str] = {
    "accept": "*/*",
    "accept-language": "en-US,en;q=0.9",
    "origin": "https://embed.su",
    "priority": "u=1, i",
    "referer": "https://embed.su/",
    "sec-ch-ua": _SEC_CH_UA,
    "sec-ch-ua-mobile": "?0",
    "sec-ch-ua-platform": '"Windows"',
    "sec-fetch-dest": "empty",
    "sec-fetch-mode": "cors",
    "sec-fetch-site": "cross-site",
    "user-agent": _USER_AGENT,
}

GATEWAY_HEADERS: dict[str, str] = {
    "accept": "*/*",
    "accept-language": "en-US,en;q=0.9",
    "priority": "u=1, i",
    "referer": "https://embed.su/",
    "sec-ch-ua": _SEC_CH_UA,
    "sec-ch-ua-arch": '"x86"',
    "sec-ch-ua-bitness": '"64"',
    "sec-ch-ua-full-version": '"134.0.3124.72"',
    "sec-ch-ua-full-version-list": (
        '"Chromium";v="134.0.6998.89", "Not:A-Brand";v="24.0.0.0", '
        '"Microsoft Edge";v="134.0.3124.72"'
    ),
    "sec-ch-ua-mobile": "?0",
    "sec-ch-ua-model": '""',
    "sec-ch-ua-platform": '"Windows"',
    "sec-ch-ua-platform-version": '"19.0.0"',
    "sec-fetch-dest": "empty",
    "sec-fetch-mode": "cors",
    "sec-fetch-site": "same-origin",
    "user-agent": _USER_AGENT,
}

# Routers and reverse proxies in front of us tend to merge "//" in the path.
_COLLAPSED_SCHEME_RE = re.compile(r"^([A-Za-z][A-Za-z0-9+.-]*):/(?!/)")


def repair_captured_url(path_value: str, query: str = "") -> str:
    """Rebuild the target URL captured from a ``/<endpoint>/{url:path}`` route.

    Restores a scheme separator collapsed to a single slash and re-attaches
    the query string, which the router splits off the path.
    """
    url = _COLLAPSED_SCHEME_RE.sub(r"\1://", path_value, count=1)
    if query:
        url = f"{url}?{query}"
    return url


def _parse_client_url(client_url: str) -> tuple[str, str, str]:
    """Return (hostname, path, query) or raise INVALID_INPUT."""
    try:
        parsed = urlsplit(client_url)
        hostname = parsed.hostname
    except ValueError as exc:
        raise StreamProxyError(
            code=ErrorCode.INVALID_INPUT,
            message=f"Invalid URL format: {exc}",
        ) from exc

    if not parsed.scheme or not hostname:
        raise StreamProxyError(
            code=ErrorCode.INVALID_INPUT,
            message=f"Invalid URL format: {client_url!r} is not an absolute URL",
        )
    return hostname, parsed.path, parsed.query


def build_fetch_request(
    client_url: str,
    variant: UpstreamVariant,
    settings: UpstreamSettings,
) -> FetchRequest:
    """Map a client-supplied URL to the upstream request for ``variant``."""
    hostname, path, query = _parse_client_url(client_url)

    if variant is UpstreamVariant.PASSTHROUGH:
        return FetchRequest(url=client_url, variant=variant, headers=dict(PASSTHROUGH_HEADERS))

    search = f"?{query}" if query else ""
    target = (
        f"https://{settings.gateway_host}/api/proxy/{settings.provider_tag}/"
        f"{hostname}{path}{search}"
    )
    return FetchRequest(url=target, variant=variant, headers=dict(GATEWAY_HEADERS))
