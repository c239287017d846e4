"""Tests for the Immich HTTP client, with upstream traffic mocked."""

import asyncio
import json
import time
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from immich_mcp.client import ImmichClient, compact, device_asset_id

BASE_URL = "http://immich.test"


class Upstream:
    """MockTransport handler that replays queued responses and records requests."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return httpx.Response(response.status_code, headers=response.headers, content=response.content)


def make_client(upstream: Upstream, attempts: int = 3, backoff: float = 0) -> ImmichClient:
    return ImmichClient(
        BASE_URL,
        "secret-key",
        retry_attempts=attempts,
        backoff_seconds=backoff,
        transport=httpx.MockTransport(upstream),
    )


class TestRequests:

    @pytest.mark.asyncio
    async def test_api_key_header_is_sent(self):
        upstream = Upstream(httpx.Response(200, json={"version": "v1.120.0"}))

        result = await make_client(upstream).ping()

        assert result.ok
        assert result.data == {"version": "v1.120.0"}
        request = upstream.requests[0]
        assert request.headers["x-api-key"] == "secret-key"
        assert request.url.path == "/api/server/about"

    @pytest.mark.asyncio
    async def test_query_parameters_skip_unset_filters(self):
        upstream = Upstream(httpx.Response(200, json=[]))

        await make_client(upstream).list_assets(size=10, is_favorite=True)

        params = upstream.requests[0].url.params
        assert params["size"] == "10"
        assert params["isFavorite"] == "true"
        assert "isArchived" not in params

    @pytest.mark.asyncio
    async def test_delete_sends_json_body(self):
        upstream = Upstream(httpx.Response(204))

        result = await make_client(upstream).delete_assets(["a", "b"], force=True)

        assert result.ok
        assert result.data is None
        request = upstream.requests[0]
        assert request.method == "DELETE"
        assert json.loads(request.content) == {"ids": ["a", "b"], "force": True}

    @pytest.mark.asyncio
    async def test_merge_people_posts_source_ids(self):
        upstream = Upstream(httpx.Response(200, json=[{"id": "p2", "success": True}]))

        await make_client(upstream).merge_people("p1", ["p2"])

        request = upstream.requests[0]
        assert request.url.path == "/api/people/p1/merge"
        assert json.loads(request.content) == {"ids": ["p2"]}

    def test_download_and_share_urls(self):
        client = ImmichClient(BASE_URL + "/", "k")
        assert client.download_urls("a1")["original_url"] == f"{BASE_URL}/api/assets/a1/original"
        assert client.share_url("key") == f"{BASE_URL}/share/key"


class TestRetries:

    @pytest.mark.asyncio
    async def test_retries_transient_status_then_succeeds(self):
        upstream = Upstream(
            httpx.Response(503),
            httpx.Response(429),
            httpx.Response(200, json={"ok": True}),
        )

        result = await make_client(upstream).ping()

        assert result.ok
        assert len(upstream.requests) == 3

    @pytest.mark.asyncio
    async def test_gives_up_after_three_attempts(self):
        upstream = Upstream(httpx.Response(502, text="bad gateway"))

        result = await make_client(upstream).ping()

        assert not result.ok
        assert result.status == 502
        assert "502" in result.error
        assert len(upstream.requests) == 3

    @pytest.mark.asyncio
    async def test_backoff_doubles_from_base(self):
        upstream = Upstream(httpx.Response(503))

        with patch("asyncio.sleep", new_callable=AsyncMock) as sleep:
            result = await make_client(upstream, backoff=1.0).ping()

        assert not result.ok
        assert [call.args[0] for call in sleep.await_args_list] == [2.0, 4.0]
        assert len(upstream.requests) == 3

    @pytest.mark.asyncio
    async def test_cancellation_ends_backoff_wait(self):
        upstream = Upstream(httpx.Response(503))
        task = asyncio.create_task(make_client(upstream, backoff=5.0).ping())
        await asyncio.sleep(0.2)

        started = time.monotonic()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert time.monotonic() - started < 1.0
        assert len(upstream.requests) == 1

    @pytest.mark.asyncio
    async def test_client_errors_are_not_retried(self):
        upstream = Upstream(httpx.Response(400, json={"message": "bad"}))

        result = await make_client(upstream).get_asset("a1")

        assert not result.ok
        assert result.status == 400
        assert len(upstream.requests) == 1

    @pytest.mark.asyncio
    async def test_not_found(self):
        upstream = Upstream(httpx.Response(404, json={"message": "Not found"}))

        result = await make_client(upstream).get_album("missing")

        assert result.not_found
        assert len(upstream.requests) == 1

    @pytest.mark.asyncio
    async def test_authentication_failure_message(self):
        upstream = Upstream(httpx.Response(401))

        result = await make_client(upstream).ping()

        assert "IMMICH_API_KEY" in result.error

    @pytest.mark.asyncio
    async def test_transport_errors_become_results(self):
        upstream = Upstream(httpx.ConnectError("connection refused"))

        result = await make_client(upstream).ping()

        assert not result.ok
        assert result.status is None
        assert "ConnectError" in result.error
        assert len(upstream.requests) == 3

    @pytest.mark.asyncio
    async def test_invalid_json_body(self):
        upstream = Upstream(httpx.Response(200, text="<html>"))

        result = await make_client(upstream).ping()

        assert not result.ok
        assert "JSON" in result.error


class TestUploads:

    @pytest.mark.asyncio
    async def test_upload_sends_multipart_form(self):
        upstream = Upstream(httpx.Response(201, json={"id": "asset-1", "status": "created"}))

        result = await make_client(upstream).upload_asset(b"0123456789", "a.jpg", favorite=True)

        assert result.ok
        assert result.data["id"] == "asset-1"
        request = upstream.requests[0]
        assert request.url.path == "/api/assets"
        assert request.headers["content-type"].startswith("multipart/form-data")
        body = request.content
        assert b'name="assetData"; filename="a.jpg"' in body
        assert b"0123456789" in body
        assert b'name="isFavorite"\r\n\r\ntrue' in body
        assert b'name="isArchived"' not in body

    @pytest.mark.asyncio
    async def test_upload_retry_uses_fresh_device_asset_id(self):
        upstream = Upstream(
            httpx.Response(500),
            httpx.Response(201, json={"id": "asset-1", "status": "created"}),
        )

        with patch("immich_mcp.client.device_asset_id", side_effect=["first-id", "second-id"]):
            result = await make_client(upstream).upload_asset(b"abc", "a.jpg")

        assert result.ok
        assert len(upstream.requests) == 2
        assert b"first-id" in upstream.requests[0].content
        assert b"second-id" in upstream.requests[1].content

    @pytest.mark.asyncio
    async def test_upload_from_path_rereads_file_each_attempt(self, tmp_path):
        photo = tmp_path / "beach.jpg"
        photo.write_bytes(b"jpeg-bytes")
        upstream = Upstream(
            httpx.ConnectError("reset"),
            httpx.Response(201, json={"id": "asset-2", "status": "created"}),
        )

        with patch.object(Path, "read_bytes", autospec=True, return_value=b"jpeg-bytes") as read_bytes:
            result = await make_client(upstream).upload_asset_from_path(photo)

        assert result.ok
        assert read_bytes.call_count == 2
        assert b'filename="beach.jpg"' in upstream.requests[1].content

    @pytest.mark.asyncio
    async def test_upload_from_missing_path(self, tmp_path):
        upstream = Upstream(httpx.Response(201, json={"id": "never"}))

        result = await make_client(upstream).upload_asset_from_path(tmp_path / "nope.jpg")

        assert not result.ok
        assert "Cannot read file" in result.error
        assert upstream.requests == []

    @pytest.mark.asyncio
    async def test_upload_failure_is_reported(self):
        upstream = Upstream(httpx.Response(400, json={"message": "Unsupported file type"}))

        result = await make_client(upstream).upload_asset(b"abc", "a.txt")

        assert not result.ok
        assert result.status == 400
        assert len(upstream.requests) == 1


def test_device_asset_id_format():
    when = datetime(2025, 1, 15, tzinfo=timezone.utc)
    assert device_asset_id("a.jpg", 10, when) == f"a.jpg-10-{int(when.timestamp() * 1_000_000)}"


def test_compact_drops_unset_fields():
    assert compact(name="x", color=None, hidden=False) == {"name": "x", "hidden": False}
