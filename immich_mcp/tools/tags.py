"""Tag tools."""

import re
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from immich_mcp.client import compact
from immich_mcp.errors import ValidationError
from immich_mcp.parsing import require_ids, require_text
from immich_mcp.safety import MutationRequest, guarded
from immich_mcp.tools.base import Toolset, annotations, bulk_outcome, expect, pick, tool

HEX_COLOR = re.compile(r"^#(?:[0-9a-fA-F]{3}){1,2}$")
TAG_FIELDS = ("id", "name", "value", "color", "parentId", "createdAt", "updatedAt")


class TagIdInput(BaseModel):
    """Input identifying a single tag."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    id: str = Field(..., description="Tag ID (UUID)")


class CreateTagInput(BaseModel):
    """Input for creating a tag."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    name: str = Field(..., description="Tag name; use '/' for hierarchy (e.g., 'Travel/Italy')")
    color: Optional[str] = Field(default=None, description="Tag color (hex, e.g., '#ff0000')")


class UpdateTagInput(BaseModel):
    """Input for updating a tag."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    id: str = Field(..., description="Tag ID (UUID)")
    color: Optional[str] = Field(default=None, description="New tag color (hex, e.g., '#ff0000')")


class DeleteTagInput(BaseModel):
    """Input for deleting a tag."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    id: str = Field(..., description="Tag ID (UUID)")
    confirm: bool = Field(default=False, description="Must be true to confirm deletion")


class TagAssetsInput(BaseModel):
    """Input for tagging or untagging assets."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    tag_id: str = Field(..., description="Tag ID (UUID)")
    asset_ids: str = Field(..., description="Asset IDs (comma-separated UUIDs)")


def _check_color(color: Optional[str]) -> None:
    if color is not None and not HEX_COLOR.match(color):
        raise ValidationError(f"Invalid color '{color}'. Use hex, e.g. '#ff0000'.", {"color": color})


class TagTools(Toolset):

    @tool("immich_tags_list", annotations("List Tags", read_only=True, idempotent=True))
    async def list_tags(self) -> str:
        """List all tags."""
        tags = expect(await self.client.list_tags(), "Tags not found", "Failed to list tags") or []
        return self.ok([pick(tag, *TAG_FIELDS) for tag in tags], total=len(tags))

    @tool("immich_tags_get", annotations("Get Tag", read_only=True, idempotent=True))
    async def get_tag(self, params: TagIdInput) -> str:
        """Get a tag by ID."""
        tag_id = require_text(params.id, "Tag ID")
        tag = expect(
            await self.client.get_tag(tag_id),
            f"Tag with ID {tag_id} not found",
            f"Failed to get tag {tag_id}",
        )
        return self.ok(tag)

    @tool("immich_tags_create", annotations("Create Tag"))
    async def create(self, params: CreateTagInput) -> str:
        """Create a new tag."""
        name = require_text(params.name, "Tag name")
        _check_color(params.color)
        tag = expect(
            await self.client.create_tag(compact(name=name, color=params.color)),
            "Tag endpoint not found",
            f"Failed to create tag '{name}'",
        )
        return self.ok(tag)

    @tool("immich_tags_update", annotations("Update Tag", idempotent=True))
    async def update(self, params: UpdateTagInput) -> str:
        """Update a tag's color."""
        tag_id = require_text(params.id, "Tag ID")
        _check_color(params.color)
        changes = compact(color=params.color)
        if not changes:
            raise ValidationError("No changes provided")
        tag = expect(
            await self.client.update_tag(tag_id, changes),
            f"Tag with ID {tag_id} not found",
            f"Failed to update tag {tag_id}",
        )
        return self.ok(tag)

    @tool("immich_tags_delete", annotations("Delete Tag", destructive=True, idempotent=True))
    async def delete(self, params: DeleteTagInput) -> str:
        """Delete a tag. Tagged assets are kept.

        Requires confirm=true; otherwise returns CONFIRMATION_REQUIRED with
        the tag's name.
        """
        tag_id = require_text(params.id, "Tag ID")

        async def preview() -> Dict[str, Any]:
            tag = expect(
                await self.client.get_tag(tag_id),
                f"Tag with ID {tag_id} not found",
                f"Failed to get tag {tag_id}",
            )
            return {"tag_id": tag_id, "name": tag.get("name"), "value": tag.get("value")}

        async def execute() -> Dict[str, Any]:
            expect(
                await self.client.delete_tag(tag_id),
                f"Tag with ID {tag_id} not found",
                f"Failed to delete tag {tag_id}",
            )
            return {"deleted": True, "tag_id": tag_id}

        result = await guarded(
            MutationRequest(confirm=params.confirm),
            execute,
            preview,
            "Tag deletion requires confirmation.",
        )
        return self.ok(result)

    @tool("immich_tags_tag_assets", annotations("Tag Assets", idempotent=True))
    async def tag_assets(self, params: TagAssetsInput) -> str:
        """Apply a tag to assets."""
        tag_id = require_text(params.tag_id, "Tag ID")
        ids = require_ids(params.asset_ids)
        results = expect(
            await self.client.tag_assets(tag_id, ids),
            f"Tag with ID {tag_id} not found",
            f"Failed to tag assets with {tag_id}",
        )
        return self.ok({"tag_id": tag_id, **bulk_outcome(results)})

    @tool("immich_tags_untag_assets", annotations("Untag Assets", idempotent=True))
    async def untag_assets(self, params: TagAssetsInput) -> str:
        """Remove a tag from assets."""
        tag_id = require_text(params.tag_id, "Tag ID")
        ids = require_ids(params.asset_ids)
        results = expect(
            await self.client.untag_assets(tag_id, ids),
            f"Tag with ID {tag_id} not found",
            f"Failed to untag assets from {tag_id}",
        )
        return self.ok({"tag_id": tag_id, **bulk_outcome(results)})
