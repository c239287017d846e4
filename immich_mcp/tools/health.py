"""Connectivity and capability discovery tools."""

from typing import Any, Dict

from immich_mcp.client import ImmichClient
from immich_mcp.config import Settings
from immich_mcp.errors import UpstreamError
from immich_mcp.tools.base import Toolset, annotations, pick, tool

FEATURE_FIELDS = (
    "trash",
    "map",
    "reverseGeocoding",
    "importFaces",
    "sidecar",
    "search",
    "facialRecognition",
    "oauth",
    "passwordLogin",
    "configFile",
    "duplicateDetection",
    "email",
    "smartSearch",
)

ENDPOINTS: Dict[str, Dict[str, str]] = {
    "assets": {
        "list": "/api/assets",
        "get": "/api/assets/{id}",
        "upload": "/api/assets",
        "update": "/api/assets/{id}",
        "bulk_update": "/api/assets",
        "delete": "/api/assets",
        "statistics": "/api/assets/statistics",
        "original": "/api/assets/{id}/original",
        "thumbnail": "/api/assets/{id}/thumbnail",
    },
    "search": {
        "metadata": "/api/search/metadata",
        "smart": "/api/search/smart",
        "explore": "/api/search/explore",
    },
    "albums": {
        "list": "/api/albums",
        "get": "/api/albums/{id}",
        "create": "/api/albums",
        "update": "/api/albums/{id}",
        "delete": "/api/albums/{id}",
        "add_assets": "/api/albums/{id}/assets",
        "remove_assets": "/api/albums/{id}/assets",
        "statistics": "/api/albums/statistics",
    },
    "people": {
        "list": "/api/people",
        "get": "/api/people/{id}",
        "update": "/api/people/{id}",
        "merge": "/api/people/{id}/merge",
        "assets": "/api/people/{id}/assets",
    },
    "tags": {
        "list": "/api/tags",
        "get": "/api/tags/{id}",
        "create": "/api/tags",
        "update": "/api/tags/{id}",
        "delete": "/api/tags/{id}",
        "tag_assets": "/api/tags/{id}/assets",
        "untag_assets": "/api/tags/{id}/assets",
    },
    "shared_links": {
        "list": "/api/shared-links",
        "get": "/api/shared-links/{id}",
        "create": "/api/shared-links",
        "update": "/api/shared-links/{id}",
        "delete": "/api/shared-links/{id}",
    },
    "activities": {
        "list": "/api/activities",
        "create": "/api/activities",
        "delete": "/api/activities/{id}",
        "statistics": "/api/activities/statistics",
    },
}


class HealthTools(Toolset):

    def __init__(self, client: ImmichClient, settings: Settings, uploads_enabled: bool = False):
        super().__init__(client, settings)
        self.uploads_enabled = uploads_enabled

    @tool("immich_ping", annotations("Ping Immich", read_only=True, idempotent=True))
    async def ping(self) -> str:
        """Verify connectivity and authentication with the Immich server.

        Returns the server version when reachable.
        """
        result = await self.client.ping()
        if not result.ok:
            raise UpstreamError(
                result.error or "Failed to connect to Immich instance",
                {"status": result.status, "body": result.error},
            )
        info = result.data or {}
        return self.ok(
            {
                "connected": True,
                **pick(info, "version", "build", "nodejs", "ffmpeg", "exiftool"),
            }
        )

    @tool("immich_capabilities", annotations("Immich Capabilities", read_only=True, idempotent=True))
    async def capabilities(self) -> str:
        """Report server features and the API areas this gateway covers."""
        about = await self.client.ping()
        features = await self.client.get_features()
        result: Dict[str, Any] = {
            "connected": about.ok,
            "version": (about.data or {}).get("version") if about.ok else None,
            "features": pick(features.data, *FEATURE_FIELDS) if features.ok else None,
            "endpoints": ENDPOINTS,
            "out_of_band_upload": self.uploads_enabled,
        }
        warnings = [] if about.ok else [about.error or "Immich server is unreachable"]
        return self.ok(result, warnings=warnings or None)
