"""Activity (comment and like) tools."""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from immich_mcp.client import compact
from immich_mcp.errors import NotFoundError, ValidationError
from immich_mcp.parsing import require_text
from immich_mcp.safety import MutationRequest, guarded
from immich_mcp.tools.base import Toolset, annotations, expect, tool

ACTIVITY_TYPES = ("comment", "like")
LEVELS = ("album", "asset")


class ListActivitiesInput(BaseModel):
    """Input for listing activities."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    album_id: str = Field(..., description="Album ID (UUID)")
    asset_id: Optional[str] = Field(default=None, description="Only activity on this asset (UUID)")
    type: Optional[str] = Field(default=None, description="Activity type: comment or like")
    level: Optional[str] = Field(default=None, description="Level: album or asset")


class CreateActivityInput(BaseModel):
    """Input for commenting on or liking an album or asset."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    album_id: str = Field(..., description="Album ID (UUID)")
    type: str = Field(default="comment", description="Activity type: comment or like")
    asset_id: Optional[str] = Field(default=None, description="Asset ID for asset-level activity")
    comment: Optional[str] = Field(default=None, description="Comment text (required for comments)")


class DeleteActivityInput(BaseModel):
    """Input for deleting an activity."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    id: str = Field(..., description="Activity ID (UUID)")
    album_id: Optional[str] = Field(
        default=None,
        description="Album the activity belongs to; lets the preview check the activity exists",
    )
    confirm: bool = Field(default=False, description="Must be true to confirm deletion")


class ActivityStatisticsInput(BaseModel):
    """Input for activity statistics."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    album_id: str = Field(..., description="Album ID (UUID)")
    asset_id: Optional[str] = Field(default=None, description="Asset ID (UUID)")


def _check_choice(value: Optional[str], choices: tuple, field: str) -> Optional[str]:
    if value is None:
        return None
    value = value.lower()
    if value not in choices:
        raise ValidationError(f"{field} must be one of: {', '.join(choices)}", {field: value})
    return value


class ActivityTools(Toolset):

    @tool("immich_activities_list", annotations("List Activities", read_only=True, idempotent=True))
    async def list_activities(self, params: ListActivitiesInput) -> str:
        """List comments and likes on an album, or on one asset in it."""
        album_id = require_text(params.album_id, "Album ID")
        activities = expect(
            await self.client.list_activities(
                album_id,
                asset_id=params.asset_id or None,
                activity_type=_check_choice(params.type, ACTIVITY_TYPES, "type"),
                level=_check_choice(params.level, LEVELS, "level"),
            ),
            f"Album with ID {album_id} not found",
            "Failed to list activities",
        ) or []
        return self.ok(activities, total=len(activities))

    @tool("immich_activities_create", annotations("Create Activity"))
    async def create(self, params: CreateActivityInput) -> str:
        """Add a comment or a like to an album or asset."""
        album_id = require_text(params.album_id, "Album ID")
        activity_type = _check_choice(params.type, ACTIVITY_TYPES, "type")
        if activity_type == "comment" and not (params.comment or "").strip():
            raise ValidationError("comment is required for comment activities")
        body = compact(
            albumId=album_id,
            assetId=params.asset_id or None,
            type=activity_type,
            comment=params.comment if activity_type == "comment" else None,
        )
        activity = expect(
            await self.client.create_activity(body),
            f"Album with ID {album_id} not found",
            "Failed to create activity",
        )
        return self.ok(activity)

    @tool("immich_activities_delete", annotations("Delete Activity", destructive=True, idempotent=True))
    async def delete(self, params: DeleteActivityInput) -> str:
        """Delete a comment or like.

        Requires confirm=true. Pass album_id so the preview can look the
        activity up; an unknown id is then NOT_FOUND. Without album_id the
        preview only echoes the id.
        """
        activity_id = require_text(params.id, "Activity ID")

        async def preview() -> Dict[str, Any]:
            if not params.album_id:
                return {"activity_id": activity_id}
            activities = expect(
                await self.client.list_activities(params.album_id),
                f"Album with ID {params.album_id} not found",
                "Failed to list activities",
            ) or []
            for activity in activities:
                if activity.get("id") == activity_id:
                    return {"activity_id": activity_id, "activity": activity}
            raise NotFoundError(f"Activity with ID {activity_id} not found in album {params.album_id}")

        async def execute() -> Dict[str, Any]:
            expect(
                await self.client.delete_activity(activity_id),
                f"Activity with ID {activity_id} not found",
                f"Failed to delete activity {activity_id}",
            )
            return {"deleted": True, "activity_id": activity_id}

        result = await guarded(
            MutationRequest(confirm=params.confirm),
            execute,
            preview,
            "Activity deletion requires confirmation.",
        )
        return self.ok(result)

    @tool("immich_activities_statistics", annotations("Activity Statistics", read_only=True, idempotent=True))
    async def statistics(self, params: ActivityStatisticsInput) -> str:
        """Get the comment count for an album or asset."""
        album_id = require_text(params.album_id, "Album ID")
        stats = expect(
            await self.client.get_activity_statistics(album_id, asset_id=params.asset_id or None),
            f"Album with ID {album_id} not found",
            "Failed to get activity statistics",
        )
        return self.ok({"album_id": album_id, "asset_id": params.asset_id, **(stats or {})})
