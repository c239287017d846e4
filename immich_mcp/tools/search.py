"""Search tools: metadata filters, CLIP smart search and explore data."""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from immich_mcp.client import compact
from immich_mcp.envelope import clamp_paging
from immich_mcp.errors import ValidationError
from immich_mcp.parsing import iso, parse_datetime, parse_id_list, require_text
from immich_mcp.tools.assets import summarize
from immich_mcp.tools.base import Toolset, annotations, expect, tool

ASSET_TYPES = ("IMAGE", "VIDEO", "AUDIO", "OTHER")


class _SearchFilters(BaseModel):
    """Filters shared by metadata and smart search."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    page: int = Field(default=1, description="Page number")
    size: Optional[int] = Field(default=None, description="Page size (default: 25, max: 100)")
    type: Optional[str] = Field(default=None, description="Asset type: IMAGE, VIDEO, AUDIO, OTHER or ALL")
    is_favorite: Optional[bool] = Field(default=None, description="Filter by favorite status")
    is_archived: Optional[bool] = Field(default=None, description="Filter by archived status")
    taken_after: Optional[str] = Field(default=None, description="Taken after this date (YYYY-MM-DD)")
    taken_before: Optional[str] = Field(default=None, description="Taken before this date (YYYY-MM-DD)")
    city: Optional[str] = Field(default=None, description="Filter by city")
    state: Optional[str] = Field(default=None, description="Filter by state/province")
    country: Optional[str] = Field(default=None, description="Filter by country")
    make: Optional[str] = Field(default=None, description="Filter by camera make")
    model: Optional[str] = Field(default=None, description="Filter by camera model")
    person_ids: Optional[str] = Field(default=None, description="Filter by person IDs (comma-separated UUIDs)")


class MetadataSearchInput(_SearchFilters):
    """Input for searching assets by metadata."""

    is_trashed: Optional[bool] = Field(default=None, description="Filter by trashed status")
    lens_model: Optional[str] = Field(default=None, description="Filter by lens model")
    original_file_name: Optional[str] = Field(default=None, description="Original file name (partial match)")
    order: Optional[str] = Field(default=None, description="Sort order: asc or desc")


class SmartSearchInput(_SearchFilters):
    """Input for natural-language (CLIP) search."""

    query: str = Field(..., description="Natural language query, e.g. 'sunset at the beach'")


def _asset_type(value: Optional[str]) -> Optional[str]:
    if not value or value.upper() == "ALL":
        return None
    value = value.upper()
    if value not in ASSET_TYPES:
        raise ValidationError(f"type must be one of {', '.join(ASSET_TYPES)} or ALL", {"type": value})
    return value


class SearchTools(Toolset):

    def _filters(self, params: _SearchFilters, page: int, size: int) -> Dict[str, Any]:
        return compact(
            page=page,
            size=size,
            type=_asset_type(params.type),
            isFavorite=params.is_favorite,
            isArchived=params.is_archived,
            takenAfter=iso(parse_datetime(params.taken_after, "taken_after")),
            takenBefore=iso(parse_datetime(params.taken_before, "taken_before")),
            city=params.city,
            state=params.state,
            country=params.country,
            make=params.make,
            model=params.model,
            personIds=parse_id_list(params.person_ids) or None,
        )

    def _results(self, data: Any, page: int, size: int) -> str:
        # Upstream: {"assets": {"items": [...], "total": n, "nextPage": "2" | null}}
        assets = (data or {}).get("assets") or {}
        items = [summarize(asset) for asset in assets.get("items", [])]
        return self.ok(
            items,
            page=page,
            page_size=size,
            total=assets.get("total", len(items)),
            next=f"page={page + 1}&size={size}" if assets.get("nextPage") else None,
        )

    @tool("immich_search_metadata", annotations("Search Assets By Metadata", read_only=True, idempotent=True))
    async def metadata(self, params: MetadataSearchInput) -> str:
        """Search assets by metadata: dates, type, location, camera, people, file name."""
        page, size = clamp_paging(
            params.page, params.size or self.settings.DEFAULT_PAGE_SIZE, self.settings.MAX_PAGE_SIZE
        )
        if params.order is not None and params.order.lower() not in ("asc", "desc"):
            raise ValidationError("order must be 'asc' or 'desc'", {"order": params.order})
        query = {
            **self._filters(params, page, size),
            **compact(
                isTrashed=params.is_trashed,
                lensModel=params.lens_model,
                originalFileName=params.original_file_name,
                order=params.order.lower() if params.order else None,
            ),
        }
        data = expect(await self.client.search_metadata(query), "Search endpoint not found", "Metadata search failed")
        return self._results(data, page, size)

    @tool("immich_search_smart", annotations("Smart Search", read_only=True, idempotent=True))
    async def smart(self, params: SmartSearchInput) -> str:
        """Semantic search with natural language, e.g. 'birthday cake' or 'dog on a beach'.

        Needs machine learning enabled on the Immich server.
        """
        text = require_text(params.query, "Search query")
        page, size = clamp_paging(
            params.page, params.size or self.settings.DEFAULT_PAGE_SIZE, self.settings.MAX_PAGE_SIZE
        )
        query = {"query": text, **self._filters(params, page, size)}
        data = expect(await self.client.search_smart(query), "Search endpoint not found", "Smart search failed")
        return self._results(data, page, size)

    @tool("immich_search_explore", annotations("Explore Library", read_only=True, idempotent=True))
    async def explore(self) -> str:
        """Get discovery data: popular places, things and people in the library."""
        data = expect(
            await self.client.search_explore(), "Explore data not available", "Failed to retrieve explore data"
        )
        return self.ok(data)
