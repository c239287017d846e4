"""Shared link tools."""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from immich_mcp.client import compact
from immich_mcp.errors import ValidationError
from immich_mcp.parsing import iso, parse_datetime, parse_id_list, require_text
from immich_mcp.safety import MutationRequest, guarded
from immich_mcp.tools.base import Toolset, annotations, expect, pick, tool

LINK_TYPES = ("ALBUM", "INDIVIDUAL")
LINK_FIELDS = (
    "id",
    "key",
    "type",
    "description",
    "expiresAt",
    "allowUpload",
    "allowDownload",
    "showMetadata",
    "createdAt",
)


class SharedLinkIdInput(BaseModel):
    """Input identifying a single shared link."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    id: str = Field(..., description="Shared link ID (UUID)")


class CreateSharedLinkInput(BaseModel):
    """Input for creating a shared link."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    type: str = Field(default="INDIVIDUAL", description="Link type: ALBUM or INDIVIDUAL")
    album_id: Optional[str] = Field(default=None, description="Album ID (required if type is ALBUM)")
    asset_ids: Optional[str] = Field(
        default=None, description="Asset IDs (comma-separated, required if type is INDIVIDUAL)"
    )
    expires_at: Optional[str] = Field(default=None, description="Expiration date (ISO8601)")
    allow_upload: Optional[bool] = Field(default=None, description="Allow upload (default: false)")
    allow_download: Optional[bool] = Field(default=None, description="Allow download (default: true)")
    show_metadata: Optional[bool] = Field(default=None, description="Show metadata (default: true)")
    password: Optional[str] = Field(default=None, description="Password protection")
    description: Optional[str] = Field(default=None, description="Description")


class UpdateSharedLinkInput(BaseModel):
    """Input for changing shared link settings."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    id: str = Field(..., description="Shared link ID (UUID)")
    expires_at: Optional[str] = Field(default=None, description="New expiration date (ISO8601)")
    allow_upload: Optional[bool] = Field(default=None, description="Allow upload")
    allow_download: Optional[bool] = Field(default=None, description="Allow download")
    show_metadata: Optional[bool] = Field(default=None, description="Show metadata")
    password: Optional[str] = Field(default=None, description="Password (empty string removes it)")
    description: Optional[str] = Field(default=None, description="Description")


class DeleteSharedLinkInput(BaseModel):
    """Input for deleting a shared link."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    id: str = Field(..., description="Shared link ID (UUID)")
    confirm: bool = Field(default=False, description="Must be true to confirm deletion")


class SharedLinkTools(Toolset):

    def _with_url(self, link: Dict[str, Any]) -> Dict[str, Any]:
        key = link.get("key")
        return {**link, "share_url": self.client.share_url(key) if key else None}

    @tool("immich_shared_links_list", annotations("List Shared Links", read_only=True, idempotent=True))
    async def list_links(self) -> str:
        """List all shared links with their public URLs."""
        links = expect(
            await self.client.list_shared_links(), "Shared links not found", "Failed to list shared links"
        ) or []
        return self.ok([self._with_url(pick(link, *LINK_FIELDS)) for link in links], total=len(links))

    @tool("immich_shared_links_get", annotations("Get Shared Link", read_only=True, idempotent=True))
    async def get_link(self, params: SharedLinkIdInput) -> str:
        """Get a shared link by ID, including its public share URL."""
        link_id = require_text(params.id, "Shared link ID")
        link = expect(
            await self.client.get_shared_link(link_id),
            f"Shared link with ID {link_id} not found",
            f"Failed to get shared link {link_id}",
        )
        return self.ok(self._with_url(link))

    @tool("immich_shared_links_create", annotations("Create Shared Link"))
    async def create(self, params: CreateSharedLinkInput) -> str:
        """Create a public link to an album (type=ALBUM) or to assets (type=INDIVIDUAL)."""
        link_type = (params.type or "").upper()
        if link_type not in LINK_TYPES:
            raise ValidationError("type must be ALBUM or INDIVIDUAL", {"type": params.type})
        asset_ids = parse_id_list(params.asset_ids)
        if link_type == "ALBUM" and not params.album_id:
            raise ValidationError("album_id is required for ALBUM links")
        if link_type == "INDIVIDUAL" and not asset_ids:
            raise ValidationError("asset_ids is required for INDIVIDUAL links")

        body = compact(
            type=link_type,
            albumId=params.album_id if link_type == "ALBUM" else None,
            assetIds=asset_ids if link_type == "INDIVIDUAL" else None,
            expiresAt=iso(parse_datetime(params.expires_at, "expires_at")),
            allowUpload=params.allow_upload,
            allowDownload=params.allow_download,
            showMetadata=params.show_metadata,
            password=params.password,
            description=params.description,
        )
        link = expect(
            await self.client.create_shared_link(body),
            "Album or assets not found",
            "Failed to create shared link",
        )
        return self.ok(self._with_url(link))

    @tool("immich_shared_links_update", annotations("Update Shared Link", idempotent=True))
    async def update(self, params: UpdateSharedLinkInput) -> str:
        """Update expiry, permissions, password or description of a shared link."""
        link_id = require_text(params.id, "Shared link ID")
        expires_at = parse_datetime(params.expires_at, "expires_at")
        changes = compact(
            expiresAt=iso(expires_at),
            changeExpiryTime=True if expires_at else None,
            allowUpload=params.allow_upload,
            allowDownload=params.allow_download,
            showMetadata=params.show_metadata,
            password=params.password,
            description=params.description,
        )
        if not changes:
            raise ValidationError("No changes provided")
        link = expect(
            await self.client.update_shared_link(link_id, changes),
            f"Shared link with ID {link_id} not found",
            f"Failed to update shared link {link_id}",
        )
        return self.ok(self._with_url(link))

    @tool("immich_shared_links_delete", annotations("Delete Shared Link", destructive=True, idempotent=True))
    async def delete(self, params: DeleteSharedLinkInput) -> str:
        """Delete a shared link; its public URL stops working.

        Requires confirm=true; otherwise returns CONFIRMATION_REQUIRED with
        what the link exposes.
        """
        link_id = require_text(params.id, "Shared link ID")

        async def preview() -> Dict[str, Any]:
            link = expect(
                await self.client.get_shared_link(link_id),
                f"Shared link with ID {link_id} not found",
                f"Failed to get shared link {link_id}",
            )
            album = link.get("album") or {}
            assets = link.get("assets")
            return {
                "link_id": link_id,
                "key": link.get("key"),
                "type": link.get("type"),
                "album_name": album.get("albumName"),
                "asset_count": len(assets) if assets else album.get("assetCount", 0),
            }

        async def execute() -> Dict[str, Any]:
            expect(
                await self.client.delete_shared_link(link_id),
                f"Shared link with ID {link_id} not found",
                f"Failed to delete shared link {link_id}",
            )
            return {"deleted": True, "link_id": link_id}

        result = await guarded(
            MutationRequest(confirm=params.confirm),
            execute,
            preview,
            "Shared link deletion requires confirmation.",
        )
        return self.ok(result)
