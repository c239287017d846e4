"""Pytest configuration and shared fixtures."""

import json
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from immich_mcp.client import ImmichClient, UpstreamResult
from immich_mcp.config import Settings
from immich_mcp.sessions import UploadSessionManager

IMMICH_URL = "http://immich.test"
PUBLIC_URL = "http://mcp.test"


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime = datetime(2025, 1, 15, 10, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def ok(data=None, status=200):
    return UpstreamResult(ok=True, data=data, status=status)


def missing():
    return UpstreamResult(ok=False, status=404, error="Resource not found. Check the ID is correct.")


def broken(status=500, error="Immich API returned 500. Response: boom"):
    return UpstreamResult(ok=False, status=status, error=error)


def envelope(text: str) -> dict:
    return json.loads(text)


@pytest.fixture
def settings():
    return Settings(
        IMMICH_BASE_URL=IMMICH_URL,
        IMMICH_API_KEY="test-key",
        MCP_PUBLIC_URL=PUBLIC_URL,
        RETRY_BACKOFF_SECONDS=0,
        _env_file=None,
    )


@pytest.fixture
def client():
    """ImmichClient double whose async methods are AsyncMocks."""
    mock_client = AsyncMock(spec=ImmichClient)
    mock_client.base_url = IMMICH_URL
    mock_client.share_url.side_effect = lambda key: f"{IMMICH_URL}/share/{key}"
    mock_client.download_urls.side_effect = lambda asset_id: {
        "original_url": f"{IMMICH_URL}/api/assets/{asset_id}/original",
        "thumbnail_url": f"{IMMICH_URL}/api/assets/{asset_id}/thumbnail",
        "preview_url": f"{IMMICH_URL}/api/assets/{asset_id}/thumbnail?size=preview",
    }
    return mock_client


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sessions(clock):
    return UploadSessionManager(
        session_timeout=timedelta(minutes=30),
        sweep_interval=timedelta(seconds=60),
        clock=clock,
    )
