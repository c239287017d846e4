"""People (face cluster) tools."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from immich_mcp.client import compact
from immich_mcp.errors import UpstreamError, ValidationError
from immich_mcp.parsing import iso, parse_date, require_ids, require_text
from immich_mcp.safety import MutationRequest, guarded
from immich_mcp.tools.assets import summarize
from immich_mcp.tools.base import Toolset, annotations, expect, pick, tool

MERGE_PREVIEW_LIMIT = 5
PERSON_FIELDS = ("id", "name", "birthDate", "isHidden", "thumbnailPath")


class ListPeopleInput(BaseModel):
    """Input for listing recognized people."""
    model_config = ConfigDict(extra="forbid")

    with_hidden: bool = Field(default=False, description="Include hidden people")
    page: int = Field(default=1, description="Page number")
    size: Optional[int] = Field(default=None, description="Page size (default: 25, max: 100)")


class PersonIdInput(BaseModel):
    """Input identifying a single person."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    id: str = Field(..., description="Person ID (UUID)")


class UpdatePersonInput(BaseModel):
    """Input for updating a person."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    id: str = Field(..., description="Person ID (UUID)")
    name: Optional[str] = Field(default=None, description="Person's name")
    birth_date: Optional[str] = Field(default=None, description="Birth date (YYYY-MM-DD)")
    is_hidden: Optional[bool] = Field(default=None, description="Hide this person from views")


class MergePeopleInput(BaseModel):
    """Input for merging duplicate people into one."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    target_id: str = Field(..., description="Person ID to merge into (UUID)")
    source_ids: str = Field(..., description="Person IDs to merge from (comma-separated UUIDs)")
    confirm: bool = Field(default=False, description="Must be true to confirm the merge")


class PersonAssetsInput(BaseModel):
    """Input for listing the assets a person appears in."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    person_id: str = Field(..., description="Person ID (UUID)")
    page: int = Field(default=1, description="Page number")
    size: Optional[int] = Field(default=None, description="Page size (default: 25, max: 100)")


class PeopleTools(Toolset):

    @tool("immich_people_list", annotations("List People", read_only=True, idempotent=True))
    async def list_people(self, params: ListPeopleInput) -> str:
        """List recognized people, paginated."""
        data = expect(
            await self.client.list_people(with_hidden=params.with_hidden or None),
            "People not found",
            "Failed to list people",
        ) or {}
        # Upstream wraps the list as {"people": [...], "total": n, ...}
        people = data.get("people", []) if isinstance(data, dict) else data
        return self.page([pick(person, *PERSON_FIELDS) for person in people], params.page, params.size)

    @tool("immich_people_get", annotations("Get Person", read_only=True, idempotent=True))
    async def get_person(self, params: PersonIdInput) -> str:
        """Get person details by ID."""
        person_id = require_text(params.id, "Person ID")
        person = expect(
            await self.client.get_person(person_id),
            f"Person with ID {person_id} not found",
            f"Failed to get person {person_id}",
        )
        return self.ok(person)

    @tool("immich_people_update", annotations("Update Person", idempotent=True))
    async def update(self, params: UpdatePersonInput) -> str:
        """Update a person's name, birth date or hidden status."""
        person_id = require_text(params.id, "Person ID")
        changes = compact(
            name=params.name,
            birthDate=iso(parse_date(params.birth_date, "birth_date")),
            isHidden=params.is_hidden,
        )
        if not changes:
            raise ValidationError("No changes provided")
        person = expect(
            await self.client.update_person(person_id, changes),
            f"Person with ID {person_id} not found",
            f"Failed to update person {person_id}",
        )
        return self.ok(person)

    @tool("immich_people_merge", annotations("Merge People", destructive=True))
    async def merge(self, params: MergePeopleInput) -> str:
        """Merge duplicate face clusters into one person.

        Requires confirm=true; otherwise returns CONFIRMATION_REQUIRED showing
        the target and up to 5 of the source people.
        """
        target_id = require_text(params.target_id, "Target person ID")
        source_ids = require_ids(params.source_ids, "source person")
        if target_id in source_ids:
            raise ValidationError("Target person cannot also be a source", {"target_id": target_id})

        async def preview() -> Dict[str, Any]:
            target = expect(
                await self.client.get_person(target_id),
                f"Person with ID {target_id} not found",
                f"Failed to get person {target_id}",
            )
            sources: List[Dict[str, Any]] = []
            for source_id in source_ids[:MERGE_PREVIEW_LIMIT]:
                result = await self.client.get_person(source_id)
                if result.ok:
                    sources.append(pick(result.data, "id", "name"))
                elif not result.not_found:
                    raise UpstreamError(
                        f"Failed to get person {source_id}", {"status": result.status, "body": result.error}
                    )
            return {
                "target": pick(target, "id", "name"),
                "sources": sources,
                "source_count": len(source_ids),
            }

        async def execute() -> Dict[str, Any]:
            results = expect(
                await self.client.merge_people(target_id, source_ids),
                f"Person with ID {target_id} not found",
                "Failed to merge people",
            )
            return {"target_id": target_id, "merged_count": len(source_ids), "results": results}

        result = await guarded(
            MutationRequest(confirm=params.confirm),
            execute,
            preview,
            f"Merging {len(source_ids)} person(s) into {target_id} requires confirmation.",
        )
        return self.ok(result)

    @tool("immich_people_assets", annotations("List Person Assets", read_only=True, idempotent=True))
    async def assets(self, params: PersonAssetsInput) -> str:
        """List assets containing a specific person, paginated."""
        person_id = require_text(params.person_id, "Person ID")
        assets = expect(
            await self.client.get_person_assets(person_id),
            f"Person with ID {person_id} not found",
            f"Failed to get assets for person {person_id}",
        ) or []
        return self.page([summarize(asset) for asset in assets], params.page, params.size)
