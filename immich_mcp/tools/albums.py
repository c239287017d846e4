"""Album tools."""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from immich_mcp.client import compact
from immich_mcp.errors import ValidationError
from immich_mcp.parsing import parse_id_list, require_ids, require_text
from immich_mcp.safety import MutationRequest, guarded
from immich_mcp.tools.base import Toolset, annotations, bulk_outcome, expect, pick, tool

SUMMARY_FIELDS = (
    "id",
    "albumName",
    "description",
    "assetCount",
    "shared",
    "createdAt",
    "updatedAt",
    "albumThumbnailAssetId",
)


class ListAlbumsInput(BaseModel):
    """Input for listing albums."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    shared: Optional[bool] = Field(default=None, description="Filter to shared albums only")
    asset_id: Optional[str] = Field(default=None, description="Only albums containing this asset ID")


class GetAlbumInput(BaseModel):
    """Input for retrieving a single album."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    id: str = Field(..., description="Album ID (UUID)")
    without_assets: bool = Field(default=False, description="Exclude assets from the response (faster)")


class CreateAlbumInput(BaseModel):
    """Input for creating an album."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    album_name: str = Field(..., description="Album name", max_length=500)
    description: Optional[str] = Field(default=None, description="Album description")
    asset_ids: Optional[str] = Field(default=None, description="Initial asset IDs (comma-separated UUIDs)")
    shared_with_user_ids: Optional[str] = Field(
        default=None, description="User IDs to share with as editors (comma-separated UUIDs)"
    )


class UpdateAlbumInput(BaseModel):
    """Input for updating album metadata."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    id: str = Field(..., description="Album ID (UUID)")
    album_name: Optional[str] = Field(default=None, description="New album name")
    description: Optional[str] = Field(default=None, description="New description")
    is_activity_enabled: Optional[bool] = Field(default=None, description="Enable or disable comments and likes")
    order: Optional[str] = Field(default=None, description="Sort order: 'asc' or 'desc'")


class AlbumAssetsInput(BaseModel):
    """Input for adding or removing album assets."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    album_id: str = Field(..., description="Album ID (UUID)")
    asset_ids: str = Field(..., description="Asset IDs (comma-separated UUIDs)")


class DeleteAlbumInput(BaseModel):
    """Input for deleting an album."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    id: str = Field(..., description="Album ID (UUID)")
    confirm: bool = Field(default=False, description="Must be true to confirm deletion")


class AlbumTools(Toolset):

    @tool("immich_albums_list", annotations("List Immich Albums", read_only=True, idempotent=True))
    async def list_albums(self, params: ListAlbumsInput) -> str:
        """List albums, optionally only shared ones or those containing an asset."""
        albums = expect(
            await self.client.list_albums(shared=params.shared, asset_id=params.asset_id or None),
            "Albums not found",
            "Failed to list albums",
        ) or []
        summaries = [pick(album, *SUMMARY_FIELDS) for album in albums]
        return self.ok(summaries, total=len(summaries))

    @tool("immich_albums_get", annotations("Get Immich Album", read_only=True, idempotent=True))
    async def get_album(self, params: GetAlbumInput) -> str:
        """Get album details, including its assets unless without_assets=true."""
        album_id = require_text(params.id, "Album ID")
        album = expect(
            await self.client.get_album(album_id, without_assets=params.without_assets or None),
            f"Album with ID {album_id} not found",
            f"Failed to get album {album_id}",
        )
        return self.ok(album)

    @tool("immich_albums_create", annotations("Create Album"))
    async def create(self, params: CreateAlbumInput) -> str:
        """Create a new album, optionally with initial assets and shared users."""
        name = require_text(params.album_name, "Album name")
        users = parse_id_list(params.shared_with_user_ids)
        body = compact(
            albumName=name,
            description=params.description,
            assetIds=parse_id_list(params.asset_ids) or None,
            albumUsers=[{"userId": user_id, "role": "editor"} for user_id in users] or None,
        )
        album = expect(
            await self.client.create_album(body),
            "Album endpoint not found",
            f"Failed to create album '{name}'",
        )
        return self.ok(album)

    @tool("immich_albums_update", annotations("Update Album", idempotent=True))
    async def update(self, params: UpdateAlbumInput) -> str:
        """Update album name, description, activity setting or sort order."""
        album_id = require_text(params.id, "Album ID")
        if params.order is not None and params.order not in ("asc", "desc"):
            raise ValidationError("order must be 'asc' or 'desc'", {"order": params.order})
        changes = compact(
            albumName=params.album_name,
            description=params.description,
            isActivityEnabled=params.is_activity_enabled,
            order=params.order,
        )
        if not changes:
            raise ValidationError("No changes provided")
        album = expect(
            await self.client.update_album(album_id, changes),
            f"Album with ID {album_id} not found",
            f"Failed to update album {album_id}",
        )
        return self.ok(album)

    @tool("immich_albums_add_assets", annotations("Add Assets To Album", idempotent=True))
    async def add_assets(self, params: AlbumAssetsInput) -> str:
        """Add assets to an album."""
        album_id = require_text(params.album_id, "Album ID")
        ids = require_ids(params.asset_ids)
        results = expect(
            await self.client.add_assets_to_album(album_id, ids),
            f"Album with ID {album_id} not found",
            f"Failed to add assets to album {album_id}",
        )
        return self.ok({"album_id": album_id, **bulk_outcome(results)})

    @tool("immich_albums_remove_assets", annotations("Remove Assets From Album", idempotent=True))
    async def remove_assets(self, params: AlbumAssetsInput) -> str:
        """Remove assets from an album. The assets themselves are kept."""
        album_id = require_text(params.album_id, "Album ID")
        ids = require_ids(params.asset_ids)
        results = expect(
            await self.client.remove_assets_from_album(album_id, ids),
            f"Album with ID {album_id} not found",
            f"Failed to remove assets from album {album_id}",
        )
        return self.ok({"album_id": album_id, **bulk_outcome(results)})

    @tool("immich_albums_delete", annotations("Delete Album", destructive=True, idempotent=True))
    async def delete(self, params: DeleteAlbumInput) -> str:
        """Delete an album. Its assets are not deleted.

        Requires confirm=true; otherwise returns CONFIRMATION_REQUIRED with
        the album's name and asset count.
        """
        album_id = require_text(params.id, "Album ID")

        async def preview() -> Dict[str, Any]:
            album = expect(
                await self.client.get_album(album_id, without_assets=True),
                f"Album with ID {album_id} not found",
                f"Failed to get album {album_id}",
            )
            return {
                "album_id": album_id,
                "album_name": album.get("albumName"),
                "asset_count": album.get("assetCount"),
                "shared": album.get("shared"),
            }

        async def execute() -> Dict[str, Any]:
            expect(
                await self.client.delete_album(album_id),
                f"Album with ID {album_id} not found",
                f"Failed to delete album {album_id}",
            )
            return {"deleted": True, "album_id": album_id}

        result = await guarded(
            MutationRequest(confirm=params.confirm),
            execute,
            preview,
            "Album deletion requires confirmation.",
        )
        return self.ok(result)

    @tool("immich_albums_statistics", annotations("Album Statistics", read_only=True, idempotent=True))
    async def statistics(self) -> str:
        """Get album counts (owned, shared, not shared)."""
        stats = expect(
            await self.client.get_album_statistics(),
            "Album statistics not available",
            "Failed to get album statistics",
        )
        return self.ok(stats)
