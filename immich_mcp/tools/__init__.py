"""MCP tool surface, one toolset per Immich API area."""

from typing import List, Optional

from immich_mcp.client import ImmichClient
from immich_mcp.config import Settings
from immich_mcp.sessions import UploadSessionManager
from immich_mcp.tools.activities import ActivityTools
from immich_mcp.tools.albums import AlbumTools
from immich_mcp.tools.assets import AssetTools
from immich_mcp.tools.base import Toolset
from immich_mcp.tools.health import HealthTools
from immich_mcp.tools.people import PeopleTools
from immich_mcp.tools.search import SearchTools
from immich_mcp.tools.shared_links import SharedLinkTools
from immich_mcp.tools.tags import TagTools
from immich_mcp.tools.uploads import UploadTools

__all__ = [
    "ActivityTools",
    "AlbumTools",
    "AssetTools",
    "HealthTools",
    "PeopleTools",
    "SearchTools",
    "SharedLinkTools",
    "TagTools",
    "Toolset",
    "UploadTools",
    "build_toolsets",
]


def build_toolsets(
    client: ImmichClient,
    settings: Settings,
    sessions: Optional[UploadSessionManager] = None,
) -> List[Toolset]:
    """All toolsets; upload tools only when a session manager is supplied."""
    toolsets: List[Toolset] = [
        HealthTools(client, settings, uploads_enabled=sessions is not None),
        AssetTools(client, settings),
        SearchTools(client, settings),
        AlbumTools(client, settings),
        PeopleTools(client, settings),
        TagTools(client, settings),
        SharedLinkTools(client, settings),
        ActivityTools(client, settings),
    ]
    if sessions is not None:
        toolsets.append(UploadTools(client, settings, sessions))
    return toolsets
