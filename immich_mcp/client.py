"""Async client for the Immich REST API.

Every public method performs one logical operation and returns an
``UpstreamResult``; failures are logged here and never raised to callers.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Optional, Sequence, Tuple, Type

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from immich_mcp.config import Settings

logger = logging.getLogger(__name__)

DEVICE_ID = "immich-mcp"
MAX_BACKOFF_SECONDS = 60.0


@dataclass(frozen=True)
class UpstreamResult:
    """Outcome of one upstream operation."""

    ok: bool
    data: Any = None
    status: Optional[int] = None
    error: Optional[str] = None

    @property
    def not_found(self) -> bool:
        return self.status == 404


class TransientUpstreamError(Exception):
    """A 429 or 5xx response that is worth retrying."""

    def __init__(self, response: httpx.Response):
        super().__init__(f"HTTP {response.status_code}")
        self.response = response


def is_transient_status(status: int) -> bool:
    return status == 429 or status >= 500


def device_asset_id(file_name: str, size: int, when: Optional[datetime] = None) -> str:
    """Idempotency key for an upload attempt, bound to name, length and time."""
    when = when or datetime.now(timezone.utc)
    return f"{file_name}-{size}-{int(when.timestamp() * 1_000_000)}"


def _describe_failure(status: int, body: str) -> str:
    if status == 401:
        return "Authentication failed. Check your IMMICH_API_KEY."
    if status == 403:
        return "Permission denied. Ensure the API key has the required permissions."
    if status == 404:
        return "Resource not found. Check the ID is correct."
    if status == 429:
        return "Rate limit exceeded. Wait a moment and retry."
    return f"Immich API returned {status}. Response: {body}"


def _query(**params: Any) -> Dict[str, Any]:
    return {key: value for key, value in params.items() if value is not None}


def _flag(value: bool) -> str:
    return "true" if value else "false"


class ImmichClient:
    """Central client for all Immich API operations."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        timeout: float = 120.0,
        retry_attempts: int = 3,
        backoff_seconds: float = 1.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout = timeout
        self._retry_attempts = max(retry_attempts, 1)
        self._backoff_seconds = max(backoff_seconds, 0.0)
        self._transport = transport

    @classmethod
    def from_settings(
        cls, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None
    ) -> "ImmichClient":
        return cls(
            settings.immich_base_url,
            settings.IMMICH_API_KEY,
            timeout=settings.REQUEST_TIMEOUT,
            retry_attempts=settings.RETRY_ATTEMPTS,
            backoff_seconds=settings.RETRY_BACKOFF_SECONDS,
            transport=transport,
        )

    # ─── HTTP plumbing ──────────────────────────────────────────────────────

    def _headers(self) -> Dict[str, str]:
        return {"x-api-key": self._api_key, "Accept": "application/json"}

    def _retrying(
        self, operation: str, retry_on: Tuple[Type[BaseException], ...] = ()
    ) -> AsyncRetrying:
        # attempt n waits base * 2^n before attempt n + 1
        return AsyncRetrying(
            stop=stop_after_attempt(self._retry_attempts),
            wait=wait_exponential(multiplier=self._backoff_seconds * 2, max=MAX_BACKOFF_SECONDS),
            retry=retry_if_exception_type((httpx.TransportError, TransientUpstreamError) + retry_on),
            before_sleep=lambda state: self._log_retry(operation, state),
            reraise=True,
        )

    def _log_retry(self, operation: str, state: RetryCallState) -> None:
        exc = state.outcome.exception() if state.outcome else None
        delay = state.next_action.sleep if state.next_action else 0.0
        logger.warning(
            "%s attempt %d/%d failed (%s), retrying in %.1fs",
            operation,
            state.attempt_number,
            self._retry_attempts,
            exc,
            delay,
        )

    async def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        async with httpx.AsyncClient(
            base_url=self.base_url,
            headers=self._headers(),
            timeout=self._timeout,
            transport=self._transport,
        ) as client:
            response = await client.request(method, path, **kwargs)
        if is_transient_status(response.status_code):
            raise TransientUpstreamError(response)
        return response

    async def _request(self, method: str, path: str, **kwargs: Any) -> UpstreamResult:
        operation = f"{method} {path}"
        try:
            async for attempt in self._retrying(operation):
                with attempt:
                    response = await self._send(method, path, **kwargs)
        except TransientUpstreamError as exc:
            response = exc.response
        except httpx.HTTPError as exc:
            logger.error("%s failed: %s: %s", operation, type(exc).__name__, exc)
            return UpstreamResult(ok=False, error=f"Request to Immich failed: {type(exc).__name__}: {exc}")
        return self._to_result(operation, response)

    def _to_result(self, operation: str, response: httpx.Response) -> UpstreamResult:
        status = response.status_code
        if response.is_success:
            if status == 204 or not response.content:
                return UpstreamResult(ok=True, status=status)
            try:
                return UpstreamResult(ok=True, data=response.json(), status=status)
            except ValueError:
                logger.error("%s returned a non-JSON body", operation)
                return UpstreamResult(ok=False, status=status, error="Immich returned an invalid JSON body")

        body = response.text[:500]
        logger.error("%s failed with %d: %s", operation, status, body)
        return UpstreamResult(ok=False, status=status, error=_describe_failure(status, body))

    async def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> UpstreamResult:
        return await self._request("GET", path, params=params or {})

    async def _post(self, path: str, body: Any) -> UpstreamResult:
        return await self._request("POST", path, json=body)

    async def _put(self, path: str, body: Any) -> UpstreamResult:
        return await self._request("PUT", path, json=body)

    async def _patch(self, path: str, body: Any) -> UpstreamResult:
        return await self._request("PATCH", path, json=body)

    async def _delete(self, path: str, body: Any = None) -> UpstreamResult:
        if body is None:
            return await self._request("DELETE", path)
        return await self._request("DELETE", path, json=body)

    # ─── Health & status ────────────────────────────────────────────────────

    async def ping(self) -> UpstreamResult:
        return await self._get("/api/server/about")

    async def get_features(self) -> UpstreamResult:
        return await self._get("/api/server/features")

    # ─── Assets ─────────────────────────────────────────────────────────────

    async def list_assets(
        self,
        size: Optional[int] = None,
        is_favorite: Optional[bool] = None,
        is_archived: Optional[bool] = None,
        is_trashed: Optional[bool] = None,
        updated_after: Optional[datetime] = None,
        updated_before: Optional[datetime] = None,
    ) -> UpstreamResult:
        return await self._get(
            "/api/assets",
            _query(
                size=size,
                isFavorite=is_favorite,
                isArchived=is_archived,
                isTrashed=is_trashed,
                updatedAfter=updated_after.isoformat() if updated_after else None,
                updatedBefore=updated_before.isoformat() if updated_before else None,
            ),
        )

    async def get_asset(self, asset_id: str) -> UpstreamResult:
        return await self._get(f"/api/assets/{asset_id}")

    async def update_asset(self, asset_id: str, changes: Dict[str, Any]) -> UpstreamResult:
        return await self._put(f"/api/assets/{asset_id}", changes)

    async def bulk_update_assets(self, asset_ids: Sequence[str], changes: Dict[str, Any]) -> UpstreamResult:
        return await self._put("/api/assets", {"ids": list(asset_ids), **changes})

    async def delete_assets(self, asset_ids: Sequence[str], force: bool = False) -> UpstreamResult:
        return await self._delete("/api/assets", {"ids": list(asset_ids), "force": force})

    async def get_asset_statistics(self) -> UpstreamResult:
        return await self._get("/api/assets/statistics")

    def download_urls(self, asset_id: str) -> Dict[str, str]:
        return {
            "original_url": f"{self.base_url}/api/assets/{asset_id}/original",
            "thumbnail_url": f"{self.base_url}/api/assets/{asset_id}/thumbnail",
            "preview_url": f"{self.base_url}/api/assets/{asset_id}/thumbnail?size=preview",
        }

    async def upload_asset(
        self,
        content: bytes,
        file_name: str,
        *,
        favorite: Optional[bool] = None,
        archived: Optional[bool] = None,
        modified_at: Optional[datetime] = None,
    ) -> UpstreamResult:
        """Upload in-memory bytes as a new asset."""

        async def read() -> bytes:
            return content

        return await self._upload(read, file_name, favorite, archived, modified_at)

    async def upload_asset_from_path(
        self,
        path: Path,
        *,
        favorite: Optional[bool] = None,
        archived: Optional[bool] = None,
    ) -> UpstreamResult:
        """Upload a file from disk; the file is re-read on every attempt."""
        path = Path(path)
        try:
            modified_at = datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)
        except OSError as exc:
            logger.error("Cannot stat %s: %s", path, exc)
            return UpstreamResult(ok=False, error=f"Cannot read file {path}: {exc}")

        async def read() -> bytes:
            return await asyncio.to_thread(path.read_bytes)

        return await self._upload(read, path.name, favorite, archived, modified_at)

    async def _upload(
        self,
        read: Callable[[], Awaitable[bytes]],
        file_name: str,
        favorite: Optional[bool],
        archived: Optional[bool],
        modified_at: Optional[datetime],
    ) -> UpstreamResult:
        # The whole read-and-send cycle is retried, with a fresh
        # deviceAssetId per attempt so a half-finished earlier attempt
        # cannot collide server-side.
        operation = f"upload {file_name}"
        size = 0
        try:
            async for attempt in self._retrying(operation, retry_on=(OSError,)):
                with attempt:
                    content = await read()
                    size = len(content)
                    now = datetime.now(timezone.utc)
                    form = {
                        "deviceAssetId": device_asset_id(file_name, size, now),
                        "deviceId": DEVICE_ID,
                        "deviceModifiedAt": (modified_at or now).isoformat(),
                        "fileCreatedAt": now.isoformat(),
                        "fileModifiedAt": (modified_at or now).isoformat(),
                    }
                    if favorite is not None:
                        form["isFavorite"] = _flag(favorite)
                    if archived is not None:
                        form["isArchived"] = _flag(archived)
                    response = await self._send(
                        "POST",
                        "/api/assets",
                        data=form,
                        files={"assetData": (file_name, content, "application/octet-stream")},
                    )
        except TransientUpstreamError as exc:
            response = exc.response
        except (httpx.HTTPError, OSError) as exc:
            logger.error("Upload of %s failed: %s: %s", file_name, type(exc).__name__, exc)
            return UpstreamResult(ok=False, error=f"Upload failed: {exc}")

        result = self._to_result(operation, response)
        if result.ok:
            asset_id = result.data.get("id") if isinstance(result.data, dict) else None
            logger.info("Uploaded %s (%d bytes) as asset %s", file_name, size, asset_id)
        return result

    # ─── Search ─────────────────────────────────────────────────────────────

    async def search_metadata(self, query: Dict[str, Any]) -> UpstreamResult:
        return await self._post("/api/search/metadata", query)

    async def search_smart(self, query: Dict[str, Any]) -> UpstreamResult:
        return await self._post("/api/search/smart", query)

    async def search_explore(self) -> UpstreamResult:
        return await self._get("/api/search/explore")

    # ─── Albums ─────────────────────────────────────────────────────────────

    async def list_albums(self, shared: Optional[bool] = None, asset_id: Optional[str] = None) -> UpstreamResult:
        return await self._get("/api/albums", _query(shared=shared, assetId=asset_id))

    async def get_album(self, album_id: str, without_assets: Optional[bool] = None) -> UpstreamResult:
        return await self._get(f"/api/albums/{album_id}", _query(withoutAssets=without_assets))

    async def create_album(self, album: Dict[str, Any]) -> UpstreamResult:
        return await self._post("/api/albums", album)

    async def update_album(self, album_id: str, changes: Dict[str, Any]) -> UpstreamResult:
        return await self._patch(f"/api/albums/{album_id}", changes)

    async def delete_album(self, album_id: str) -> UpstreamResult:
        return await self._delete(f"/api/albums/{album_id}")

    async def add_assets_to_album(self, album_id: str, asset_ids: Sequence[str]) -> UpstreamResult:
        return await self._put(f"/api/albums/{album_id}/assets", {"ids": list(asset_ids)})

    async def remove_assets_from_album(self, album_id: str, asset_ids: Sequence[str]) -> UpstreamResult:
        return await self._delete(f"/api/albums/{album_id}/assets", {"ids": list(asset_ids)})

    async def get_album_statistics(self) -> UpstreamResult:
        return await self._get("/api/albums/statistics")

    # ─── People ─────────────────────────────────────────────────────────────

    async def list_people(self, with_hidden: Optional[bool] = None) -> UpstreamResult:
        return await self._get("/api/people", _query(withHidden=with_hidden))

    async def get_person(self, person_id: str) -> UpstreamResult:
        return await self._get(f"/api/people/{person_id}")

    async def update_person(self, person_id: str, changes: Dict[str, Any]) -> UpstreamResult:
        return await self._put(f"/api/people/{person_id}", changes)

    async def merge_people(self, target_id: str, source_ids: Sequence[str]) -> UpstreamResult:
        return await self._post(f"/api/people/{target_id}/merge", {"ids": list(source_ids)})

    async def get_person_assets(self, person_id: str) -> UpstreamResult:
        return await self._get(f"/api/people/{person_id}/assets")

    # ─── Tags ───────────────────────────────────────────────────────────────

    async def list_tags(self) -> UpstreamResult:
        return await self._get("/api/tags")

    async def get_tag(self, tag_id: str) -> UpstreamResult:
        return await self._get(f"/api/tags/{tag_id}")

    async def create_tag(self, tag: Dict[str, Any]) -> UpstreamResult:
        return await self._post("/api/tags", tag)

    async def update_tag(self, tag_id: str, changes: Dict[str, Any]) -> UpstreamResult:
        return await self._put(f"/api/tags/{tag_id}", changes)

    async def delete_tag(self, tag_id: str) -> UpstreamResult:
        return await self._delete(f"/api/tags/{tag_id}")

    async def tag_assets(self, tag_id: str, asset_ids: Sequence[str]) -> UpstreamResult:
        return await self._put(f"/api/tags/{tag_id}/assets", {"ids": list(asset_ids)})

    async def untag_assets(self, tag_id: str, asset_ids: Sequence[str]) -> UpstreamResult:
        return await self._delete(f"/api/tags/{tag_id}/assets", {"ids": list(asset_ids)})

    # ─── Shared links ───────────────────────────────────────────────────────

    async def list_shared_links(self) -> UpstreamResult:
        return await self._get("/api/shared-links")

    async def get_shared_link(self, link_id: str) -> UpstreamResult:
        return await self._get(f"/api/shared-links/{link_id}")

    async def create_shared_link(self, link: Dict[str, Any]) -> UpstreamResult:
        return await self._post("/api/shared-links", link)

    async def update_shared_link(self, link_id: str, changes: Dict[str, Any]) -> UpstreamResult:
        return await self._patch(f"/api/shared-links/{link_id}", changes)

    async def delete_shared_link(self, link_id: str) -> UpstreamResult:
        return await self._delete(f"/api/shared-links/{link_id}")

    def share_url(self, key: str) -> str:
        return f"{self.base_url}/share/{key}"

    # ─── Activities ─────────────────────────────────────────────────────────

    async def list_activities(
        self,
        album_id: str,
        asset_id: Optional[str] = None,
        activity_type: Optional[str] = None,
        level: Optional[str] = None,
    ) -> UpstreamResult:
        return await self._get(
            "/api/activities",
            _query(albumId=album_id, assetId=asset_id, type=activity_type, level=level),
        )

    async def create_activity(self, activity: Dict[str, Any]) -> UpstreamResult:
        return await self._post("/api/activities", activity)

    async def delete_activity(self, activity_id: str) -> UpstreamResult:
        return await self._delete(f"/api/activities/{activity_id}")

    async def get_activity_statistics(self, album_id: str, asset_id: Optional[str] = None) -> UpstreamResult:
        return await self._get("/api/activities/statistics", _query(albumId=album_id, assetId=asset_id))


def compact(**fields: Any) -> Dict[str, Any]:
    """Request body with unset (None) fields removed."""
    return _query(**fields)

