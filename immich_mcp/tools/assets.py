"""Asset tools: browse, inspect, upload, edit and delete photos and videos."""

import base64
import binascii
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from immich_mcp.client import compact
from immich_mcp.errors import NotFoundError, UpstreamError, ValidationError
from immich_mcp.parsing import iso, parse_datetime, require_ids, require_text
from immich_mcp.safety import MutationRequest, guarded, guarded_bulk
from immich_mcp.tools.base import Toolset, annotations, expect, pick, tool

logger = logging.getLogger(__name__)

MAX_LIST_SIZE = 1000
DELETE_PREVIEW_LIMIT = 10

SUMMARY_FIELDS = (
    "id",
    "type",
    "originalFileName",
    "fileCreatedAt",
    "isFavorite",
    "isArchived",
    "isTrashed",
    "thumbhash",
)


def summarize(asset: Dict[str, Any]) -> Dict[str, Any]:
    """Compact listing view of an asset."""
    return pick(asset, *SUMMARY_FIELDS)


# ─── Input Models ────────────────────────────────────────────────────────────


class ListAssetsInput(BaseModel):
    """Input for listing recent assets."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    size: int = Field(default=25, description="Number of assets to return (default: 25, max: 1000)")
    is_favorite: Optional[bool] = Field(default=None, description="Filter by favorite status")
    is_archived: Optional[bool] = Field(default=None, description="Filter by archived status")
    is_trashed: Optional[bool] = Field(default=None, description="Filter by trashed status")
    updated_after: Optional[str] = Field(
        default=None, description="Only assets updated after this date (ISO8601, e.g., '2025-01-15')"
    )
    updated_before: Optional[str] = Field(
        default=None, description="Only assets updated before this date (ISO8601)"
    )


class AssetIdInput(BaseModel):
    """Input identifying a single asset."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    id: str = Field(..., description="Asset ID (UUID)")


class UploadAssetInput(BaseModel):
    """Input for uploading base64-encoded content."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    file_content: str = Field(..., description="Base64-encoded file content")
    file_name: str = Field(..., description="Original filename with extension (e.g., 'IMG_0001.jpg')")
    is_favorite: Optional[bool] = Field(default=None, description="Mark as favorite (default: false)")
    is_archived: Optional[bool] = Field(default=None, description="Mark as archived (default: false)")


class UploadFromPathInput(BaseModel):
    """Input for uploading a file readable by the server process."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    file_path: str = Field(..., description="Absolute path to the file to upload")
    is_favorite: Optional[bool] = Field(default=None, description="Mark as favorite (default: false)")
    is_archived: Optional[bool] = Field(default=None, description="Mark as archived (default: false)")


class UpdateAssetInput(BaseModel):
    """Input for updating one asset's metadata."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    id: str = Field(..., description="Asset ID (UUID)")
    is_favorite: Optional[bool] = Field(default=None, description="Set favorite status")
    is_archived: Optional[bool] = Field(default=None, description="Set archived status")
    description: Optional[str] = Field(default=None, description="Set description")
    date_time_original: Optional[str] = Field(default=None, description="Set date/time original (ISO8601)")
    latitude: Optional[float] = Field(default=None, description="Set latitude")
    longitude: Optional[float] = Field(default=None, description="Set longitude")
    rating: Optional[int] = Field(default=None, description="Set rating (0-5)")


class BulkUpdateAssetsInput(BaseModel):
    """Input for changing several assets at once."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    ids: str = Field(..., description="Asset IDs (comma-separated UUIDs)")
    is_favorite: Optional[bool] = Field(default=None, description="Set favorite status for all")
    is_archived: Optional[bool] = Field(default=None, description="Set archived status for all")
    rating: Optional[int] = Field(default=None, description="Set rating for all (0-5)")
    dry_run: bool = Field(default=True, description="Only show what would change (default: true)")
    confirm: bool = Field(default=False, description="Must be true, with dry_run=false, to apply")


class DeleteAssetsInput(BaseModel):
    """Input for deleting assets."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    ids: str = Field(..., description="Asset IDs (comma-separated UUIDs)")
    force: bool = Field(default=False, description="Delete permanently instead of moving to trash")
    dry_run: Optional[bool] = Field(
        default=None, description="Set true to only preview, even when confirm=true"
    )
    confirm: bool = Field(default=False, description="Must be true to confirm deletion")


def _check_rating(rating: Optional[int]) -> None:
    if rating is not None and not 0 <= rating <= 5:
        raise ValidationError(f"Rating must be between 0 and 5, got {rating}", {"rating": rating})


# ─── Tools ───────────────────────────────────────────────────────────────────


class AssetTools(Toolset):

    @tool("immich_assets_list", annotations("List Immich Assets", read_only=True, idempotent=True))
    async def list_assets(self, params: ListAssetsInput) -> str:
        """List recent assets with optional filters.

        Args:
            params: Result size and favorite/archived/trashed/date filters.

        Returns:
            str: Envelope whose result is a list of asset summaries.
        """
        size = min(max(params.size, 1), MAX_LIST_SIZE)
        result = await self.client.list_assets(
            size=size,
            is_favorite=params.is_favorite,
            is_archived=params.is_archived,
            is_trashed=params.is_trashed,
            updated_after=parse_datetime(params.updated_after, "updated_after"),
            updated_before=parse_datetime(params.updated_before, "updated_before"),
        )
        assets = expect(result, "Assets not found", "Failed to list assets") or []
        summaries = [summarize(asset) for asset in assets]
        return self.ok(summaries, page_size=size, total=len(summaries))

    @tool("immich_assets_get", annotations("Get Immich Asset", read_only=True, idempotent=True))
    async def get_asset(self, params: AssetIdInput) -> str:
        """Get full metadata for one asset by ID."""
        asset_id = require_text(params.id, "Asset ID")
        asset = expect(
            await self.client.get_asset(asset_id),
            f"Asset with ID {asset_id} not found",
            f"Failed to get asset {asset_id}",
        )
        return self.ok(asset)

    @tool("immich_assets_exif", annotations("Get Asset EXIF", read_only=True, idempotent=True))
    async def get_exif(self, params: AssetIdInput) -> str:
        """Get EXIF metadata (camera, lens, exposure, location) for an asset."""
        asset_id = require_text(params.id, "Asset ID")
        asset = expect(
            await self.client.get_asset(asset_id),
            f"Asset with ID {asset_id} not found",
            f"Failed to get asset {asset_id}",
        )
        exif = asset.get("exifInfo")
        if not exif:
            raise NotFoundError(f"No EXIF data available for asset {asset_id}")
        return self.ok({"asset_id": asset_id, "exif": exif})

    @tool(
        "immich_assets_download_original",
        annotations("Get Original Download URL", read_only=True, idempotent=True),
    )
    async def download_original(self, params: AssetIdInput) -> str:
        """Get the download URL for the original file of an asset.

        The URL requires the same x-api-key header to fetch.
        """
        asset_id = require_text(params.id, "Asset ID")
        asset = expect(
            await self.client.get_asset(asset_id),
            f"Asset with ID {asset_id} not found",
            f"Failed to get asset {asset_id}",
        )
        urls = self.client.download_urls(asset_id)
        return self.ok(
            {
                "asset_id": asset_id,
                "original_file_name": asset.get("originalFileName"),
                "download_url": urls["original_url"],
            }
        )

    @tool(
        "immich_assets_download_thumbnail",
        annotations("Get Thumbnail URLs", read_only=True, idempotent=True),
    )
    async def download_thumbnail(self, params: AssetIdInput) -> str:
        """Get thumbnail and preview URLs for an asset."""
        asset_id = require_text(params.id, "Asset ID")
        expect(
            await self.client.get_asset(asset_id),
            f"Asset with ID {asset_id} not found",
            f"Failed to get asset {asset_id}",
        )
        urls = self.client.download_urls(asset_id)
        return self.ok(
            {
                "asset_id": asset_id,
                "thumbnail_url": urls["thumbnail_url"],
                "preview_url": urls["preview_url"],
            }
        )

    @tool("immich_assets_upload", annotations("Upload Asset (base64)"))
    async def upload(self, params: UploadAssetInput) -> str:
        """Upload a new asset from base64-encoded content.

        For large files prefer immich_assets_upload_init (out-of-band HTTP
        upload) or immich_assets_upload_from_path.
        """
        file_name = require_text(params.file_name, "File name")
        try:
            content = base64.b64decode(require_text(params.file_content, "File content"), validate=True)
        except (binascii.Error, ValueError):
            raise ValidationError("Invalid base64 content") from None
        if not content:
            raise ValidationError("File content is empty")

        result = await self.client.upload_asset(
            content, file_name, favorite=params.is_favorite, archived=params.is_archived
        )
        data = expect(result, "Upload endpoint not found", f"Failed to upload {file_name}")
        return self.ok(self._uploaded(data, file_name))

    @tool("immich_assets_upload_from_path", annotations("Upload Asset From Path"))
    async def upload_from_path(self, params: UploadFromPathInput) -> str:
        """Upload a file from a path on the server's filesystem, with retries."""
        path = Path(require_text(params.file_path, "File path"))
        if not path.is_file():
            raise ValidationError(f"File not found: {path}", {"file_path": str(path)})

        result = await self.client.upload_asset_from_path(
            path, favorite=params.is_favorite, archived=params.is_archived
        )
        data = expect(result, "Upload endpoint not found", f"Failed to upload {path.name}")
        return self.ok(self._uploaded(data, path.name))

    @staticmethod
    def _uploaded(data: Any, file_name: str) -> Dict[str, Any]:
        data = data or {}
        return {
            "asset_id": data.get("id"),
            "status": data.get("status", "created"),
            "duplicate": data.get("status") == "duplicate",
            "original_file_name": file_name,
        }

    @tool("immich_assets_update", annotations("Update Asset", idempotent=True))
    async def update(self, params: UpdateAssetInput) -> str:
        """Update asset metadata (favorite, archived, description, date, location, rating)."""
        asset_id = require_text(params.id, "Asset ID")
        _check_rating(params.rating)
        changes = compact(
            isFavorite=params.is_favorite,
            isArchived=params.is_archived,
            description=params.description,
            dateTimeOriginal=iso(parse_datetime(params.date_time_original, "date_time_original")),
            latitude=params.latitude,
            longitude=params.longitude,
            rating=params.rating,
        )
        if not changes:
            raise ValidationError("No changes provided")

        asset = expect(
            await self.client.update_asset(asset_id, changes),
            f"Asset with ID {asset_id} not found",
            f"Failed to update asset {asset_id}",
        )
        return self.ok(asset)

    @tool("immich_assets_bulk_update", annotations("Bulk Update Assets", idempotent=True))
    async def bulk_update(self, params: BulkUpdateAssetsInput) -> str:
        """Change favorite/archived/rating on several assets at once.

        Runs as a dry run by default: nothing changes unless dry_run=false and
        confirm=true, and the result lists the IDs that would be affected.
        """
        ids = require_ids(params.ids)
        _check_rating(params.rating)
        changes = compact(isFavorite=params.is_favorite, isArchived=params.is_archived, rating=params.rating)
        request = MutationRequest(confirm=params.confirm, dry_run=params.dry_run)

        async def execute() -> None:
            if not changes:
                raise ValidationError("No changes provided")
            expect(
                await self.client.bulk_update_assets(ids, changes),
                "One or more assets not found",
                "Bulk update failed",
            )

        result = await guarded_bulk(request, ids, execute)
        return self.ok(result, warnings=result.warnings or None)

    @tool(
        "immich_assets_delete",
        annotations("Delete Assets", destructive=True, idempotent=True),
    )
    async def delete(self, params: DeleteAssetsInput) -> str:
        """Delete assets (to trash, or permanently with force=true).

        Requires confirm=true. Without it, returns CONFIRMATION_REQUIRED with a
        preview of up to 10 of the assets.
        """
        ids = require_ids(params.ids)
        request = MutationRequest(confirm=params.confirm, dry_run=params.dry_run)

        async def preview() -> Dict[str, Any]:
            found: List[Dict[str, Any]] = []
            for asset_id in ids[:DELETE_PREVIEW_LIMIT]:
                result = await self.client.get_asset(asset_id)
                if result.ok:
                    found.append(pick(result.data, "id", "originalFileName", "type", "fileCreatedAt"))
                elif not result.not_found:
                    raise UpstreamError(
                        f"Failed to get asset {asset_id}", {"status": result.status, "body": result.error}
                    )
            if not found:
                raise NotFoundError("None of the given assets were found", {"ids": ids})
            return {"asset_count": len(ids), "force": params.force, "preview": found}

        async def execute() -> Dict[str, Any]:
            expect(
                await self.client.delete_assets(ids, force=params.force),
                "One or more assets not found",
                "Failed to delete assets",
            )
            logger.info("Deleted %d asset(s) (force=%s)", len(ids), params.force)
            return {"deleted": True, "asset_count": len(ids), "asset_ids": ids, "force": params.force}

        result = await guarded(
            request, execute, preview, f"Deletion of {len(ids)} asset(s) requires confirmation."
        )
        return self.ok(result)

    @tool("immich_assets_statistics", annotations("Asset Statistics", read_only=True, idempotent=True))
    async def statistics(self) -> str:
        """Get asset counts (images, videos, total)."""
        stats = expect(
            await self.client.get_asset_statistics(),
            "Asset statistics not available",
            "Failed to get asset statistics",
        )
        return self.ok(stats)
