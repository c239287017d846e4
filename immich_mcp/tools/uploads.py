"""Out-of-band upload tools.

``immich_assets_upload_init`` hands out a one-shot URL; the caller POSTs the
file there (see ``immich_mcp.upload_endpoint``) and polls
``immich_assets_upload_status`` for the outcome.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from immich_mcp.client import ImmichClient
from immich_mcp.config import Settings
from immich_mcp.errors import NotFoundError
from immich_mcp.parsing import require_text
from immich_mcp.sessions import UploadSessionManager
from immich_mcp.tools.base import Toolset, annotations, tool


class UploadInitInput(BaseModel):
    """Input for starting an out-of-band upload."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    file_name: Optional[str] = Field(
        default=None, description="Suggested file name (the uploaded file's own name wins)"
    )
    is_favorite: Optional[bool] = Field(default=None, description="Mark as favorite (default: false)")
    is_archived: Optional[bool] = Field(default=None, description="Mark as archived (default: false)")


class UploadStatusInput(BaseModel):
    """Input for checking an upload session."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    session_id: str = Field(..., description="Upload session ID returned by immich_assets_upload_init")


class UploadTools(Toolset):

    def __init__(self, client: ImmichClient, settings: Settings, sessions: UploadSessionManager):
        super().__init__(client, settings)
        self.sessions = sessions

    def upload_url(self, session_id: str) -> str:
        return f"{self.settings.upload_base_url}/upload/{session_id}"

    @tool("immich_assets_upload_init", annotations("Start Out-of-Band Upload"))
    async def upload_init(self, params: UploadInitInput) -> str:
        """Start an out-of-band file upload.

        Returns an upload URL to POST the file to as multipart/form-data
        (field "file"). Use this when the server cannot read the caller's
        filesystem. Poll immich_assets_upload_status for the result.
        """
        session = self.sessions.create_session(
            suggested_file_name=params.file_name or None,
            favorite=params.is_favorite,
            archived=params.is_archived,
        )
        url = self.upload_url(session.session_id)
        return self.ok(
            {
                "session_id": session.session_id,
                "upload_url": url,
                "expires_at": session.expires_at.isoformat(),
                "instructions": {
                    "method": "POST",
                    "content_type": "multipart/form-data",
                    "form_field": "file",
                    "example_curl": f'curl -X POST -F "file=@/path/to/image.jpg" "{url}"',
                },
            }
        )

    @tool("immich_assets_upload_status", annotations("Upload Status", read_only=True, idempotent=True))
    async def upload_status(self, params: UploadStatusInput) -> str:
        """Check an upload session: pending, uploading, completed (with asset_id), failed or expired."""
        session_id = require_text(params.session_id, "Session ID")
        session = self.sessions.get_session(session_id)
        if session is None:
            raise NotFoundError(f"Upload session {session_id} not found")
        return self.ok(session.to_dict())
