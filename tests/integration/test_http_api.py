"""End-to-end tests for the HTTP surface.

Requests go through the Starlette app via ASGITransport; upstream servers
are mocked with respx (which does not intercept the ASGI transport).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
import respx

if TYPE_CHECKING:
    from streamproxy.state import AppState

SEGMENT_URL = "https://cdn.example/hls/seg-0.ts"
MANIFEST_URL = "https://cdn.example/hls/index.m3u8"


# ---------------------------------------------------------------------------
# Service endpoints
# ---------------------------------------------------------------------------


class TestServiceEndpoints:
    async def test_index(self, client: httpx.AsyncClient) -> None:
        response = await client.get("/")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "online"
        assert set(body["endpoints"]) == {"viperProxy", "proxyStream", "status", "clearCache"}

    async def test_status(self, client: httpx.AsyncClient) -> None:
        response = await client.get("/status")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "online"
        assert set(body["cacheStats"]) == {"keys", "hits", "misses", "ksize", "vsize"}
        assert isinstance(body["uptime"], float)


# ---------------------------------------------------------------------------
# /clear-cache
# ---------------------------------------------------------------------------


class TestClearCache:
    async def test_correct_token(
        self, client: httpx.AsyncClient, app_state: AppState, admin_token: str
    ) -> None:
        app_state.cache.put(SEGMENT_URL, b"x", "video/mp2t")

        response = await client.post("/clear-cache", json={"token": admin_token})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "Cache cleared. 1 TS segments removed."
        assert app_state.cache.stats().count == 0

    async def test_wrong_token(self, client: httpx.AsyncClient, app_state: AppState) -> None:
        app_state.cache.put(SEGMENT_URL, b"x", "video/mp2t")

        response = await client.post("/clear-cache", json={"token": "nope"})

        assert response.status_code == 403
        assert response.json() == {"error": "Unauthorized"}
        assert app_state.cache.stats().count == 1

    async def test_non_ascii_token(self, client: httpx.AsyncClient, app_state: AppState) -> None:
        app_state.cache.put(SEGMENT_URL, b"x", "video/mp2t")

        response = await client.post("/clear-cache", json={"token": "pässwörd"})

        assert response.status_code == 403
        assert response.json() == {"error": "Unauthorized"}
        assert app_state.cache.stats().count == 1

    async def test_missing_body(self, client: httpx.AsyncClient) -> None:
        response = await client.post("/clear-cache")
        assert response.status_code == 403

    async def test_malformed_json(self, client: httpx.AsyncClient) -> None:
        response = await client.post(
            "/clear-cache", content=b"{not json", headers={"content-type": "application/json"}
        )
        assert response.status_code == 403

    async def test_get_not_allowed(self, client: httpx.AsyncClient) -> None:
        response = await client.get("/clear-cache")
        assert response.status_code == 405


# ---------------------------------------------------------------------------
# /proxy-stream
# ---------------------------------------------------------------------------


class TestProxyStream:
    @respx.mock
    async def test_segment_with_mirrored_content_type(self, client: httpx.AsyncClient) -> None:
        route = respx.get(SEGMENT_URL).mock(
            return_value=httpx.Response(
                200, content=b"TSDATA", headers={"content-type": "video/MP2T"}
            )
        )

        first = await client.get(f"/proxy-stream/{SEGMENT_URL}")
        second = await client.get(f"/proxy-stream/{SEGMENT_URL}")

        assert first.status_code == 200
        assert first.content == b"TSDATA"
        assert first.headers["content-type"] == "video/MP2T"
        assert second.content == b"TSDATA"
        assert route.call_count == 1

    @respx.mock
    async def test_manifest_rewritten(self, client: httpx.AsyncClient) -> None:
        respx.get(MANIFEST_URL).mock(
            return_value=httpx.Response(
                200,
                text="#EXTM3U\nhttps://cdn.example/a.ts\n#EXT-X-ENDLIST",
                headers={"content-type": "application/vnd.apple.mpegurl"},
            )
        )

        response = await client.get(f"/proxy-stream/{MANIFEST_URL}")

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/vnd.apple.mpegurl"
        assert response.text == "#EXTM3U\n/proxy-stream/https://cdn.example/a.ts\n#EXT-X-ENDLIST"

    @respx.mock
    async def test_query_string_reattached(self, client: httpx.AsyncClient) -> None:
        route = respx.get(f"{SEGMENT_URL}?token=abc").mock(
            return_value=httpx.Response(200, content=b"TS")
        )

        response = await client.get(f"/proxy-stream/{SEGMENT_URL}?token=abc")

        assert response.status_code == 200
        assert route.call_count == 1

    @respx.mock
    async def test_collapsed_scheme_repaired(self, client: httpx.AsyncClient) -> None:
        route = respx.get(SEGMENT_URL).mock(return_value=httpx.Response(200, content=b"TS"))

        response = await client.get("/proxy-stream/https:/cdn.example/hls/seg-0.ts")

        assert response.status_code == 200
        assert route.call_count == 1

    @respx.mock
    async def test_other_content_streamed(self, client: httpx.AsyncClient) -> None:
        body = b"\x00" * 200_000
        respx.get("https://cdn.example/video.mp4").mock(
            return_value=httpx.Response(200, content=body, headers={"content-type": "video/mp4"})
        )

        response = await client.get("/proxy-stream/https://cdn.example/video.mp4")

        assert response.status_code == 200
        assert response.headers["content-type"] == "video/mp4"
        assert response.content == body

    @respx.mock
    async def test_upstream_404(self, client: httpx.AsyncClient) -> None:
        respx.get(SEGMENT_URL).mock(return_value=httpx.Response(404))

        response = await client.get(f"/proxy-stream/{SEGMENT_URL}")

        assert response.status_code == 500
        assert response.json() == {
            "error": "Failed to proxy stream: Failed to fetch: 404 Not Found"
        }

    @respx.mock
    async def test_network_error(self, client: httpx.AsyncClient) -> None:
        respx.get(SEGMENT_URL).mock(side_effect=httpx.ConnectError("refused"))

        response = await client.get(f"/proxy-stream/{SEGMENT_URL}")

        assert response.status_code == 500
        assert response.json()["error"].startswith("Failed to proxy stream:")


# ---------------------------------------------------------------------------
# /viper-proxy
# ---------------------------------------------------------------------------


class TestViperProxy:
    @respx.mock
    async def test_fetches_through_gateway(self, client: httpx.AsyncClient) -> None:
        route = respx.get(
            "https://embed.su/api/proxy/viper/stormyclouds42.xyz/file2/seg.ts?x=1"
        ).mock(return_value=httpx.Response(200, content=b"TS"))

        response = await client.get("/viper-proxy/https://stormyclouds42.xyz/file2/seg.ts?x=1")

        assert response.status_code == 200
        assert response.content == b"TS"
        assert route.call_count == 1

    async def test_invalid_url(self, client: httpx.AsyncClient) -> None:
        response = await client.get("/viper-proxy/not-a-url.ts")
        assert response.status_code == 400
        assert response.json()["error"].startswith("Invalid URL format")


# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------


class TestCors:
    async def test_any_origin_allowed(self, client: httpx.AsyncClient) -> None:
        response = await client.get("/status", headers={"origin": "https://player.example"})
        assert response.headers["access-control-allow-origin"] == "*"

    async def test_preflight(self, client: httpx.AsyncClient) -> None:
        response = await client.options(
            "/proxy-stream/https://cdn.example/a.ts",
            headers={
                "origin": "https://player.example",
                "access-control-request-method": "GET",
                "access-control-request-headers": "Authorization",
            },
        )
        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "*"
        assert "GET" in response.headers["access-control-allow-methods"]

    async def test_bare_options_answered(self, client: httpx.AsyncClient) -> None:
        response = await client.options("/status", headers={"origin": "https://player.example"})
        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "*"

    async def test_options_on_unrouted_path(self, client: httpx.AsyncClient) -> None:
        response = await client.options("/anything")
        assert response.status_code == 200

    async def test_unknown_get_still_not_found(self, client: httpx.AsyncClient) -> None:
        response = await client.get("/anything")
        assert response.status_code == 404
