"""HTTP side of out-of-band uploads: ``POST /upload/{session_id}``.

Besides the periodic sweep this handler is the only writer of session state.
It never raises: every outcome is a JSON response, and every failure after
the upload has begun is recorded on the session.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from starlette.datastructures import FormData, UploadFile
from starlette.exceptions import HTTPException
from starlette.requests import Request
from starlette.responses import JSONResponse

from immich_mcp.client import ImmichClient
from immich_mcp.sessions import (
    BEGIN_UPLOAD,
    Complete,
    Fail,
    SessionStateError,
    UploadSession,
    UploadSessionManager,
)

logger = logging.getLogger(__name__)

FILE_FIELD = "file"
DEFAULT_FILE_NAME = "upload"


def _error(status_code: int, message: str, **extra: Any) -> JSONResponse:
    return JSONResponse({"error": message, **extra}, status_code=status_code)


def _rejection(session: UploadSession, reason: str) -> JSONResponse:
    """Response for a session that refused to begin an upload."""
    if reason == "expired":
        return _error(400, "Session expired", session_id=session.session_id)
    if reason == "completed":
        return _error(
            400, "Session already completed", session_id=session.session_id, asset_id=session.asset_id
        )
    if reason == "failed":
        return _error(
            400, "Session already failed", session_id=session.session_id, detail=session.error_message
        )
    return _error(409, "Upload already in progress", session_id=session.session_id)


async def health(request: Request) -> JSONResponse:
    return JSONResponse({"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()})


def _file_part(form: FormData) -> Optional[UploadFile]:
    part = form.get(FILE_FIELD)
    if isinstance(part, UploadFile):
        return part
    for _, value in form.multi_items():
        if isinstance(value, UploadFile):
            return value
    return None


class UploadEndpoint:
    """Starlette handlers bound to one session manager and one client."""

    def __init__(self, sessions: UploadSessionManager, client: ImmichClient):
        self.sessions = sessions
        self.client = client

    async def handle(self, request: Request) -> JSONResponse:
        session_id = request.path_params["session_id"]

        session = self.sessions.get_session(session_id)
        if session is None:
            return _error(404, "Session not found", session_id=session_id)
        reason = BEGIN_UPLOAD.refusal(session)
        if reason is not None:
            return _rejection(session, reason)

        content_type = request.headers.get("content-type", "")
        if not content_type.lower().startswith("multipart/form-data"):
            return _error(
                400,
                "Expected multipart/form-data with a 'file' field",
                session_id=session_id,
            )

        try:
            session = self.sessions.apply(session_id, BEGIN_UPLOAD)
        except SessionStateError as exc:
            return _rejection(exc.session, exc.reason)
        if session is None:
            return _error(404, "Session not found", session_id=session_id)

        try:
            return await self._upload(request, session)
        except Exception as exc:
            logger.exception("Upload for session %s failed", session_id)
            self._fail(session_id, f"Internal error: {type(exc).__name__}: {exc}")
            return _error(500, "Internal error during upload", session_id=session_id)

    async def _upload(self, request: Request, session: UploadSession) -> JSONResponse:
        session_id = session.session_id
        try:
            async with request.form() as form:
                part = _file_part(form)
                if part is None:
                    self._fail(session_id, "No file provided")
                    return _error(400, "No file provided", session_id=session_id)
                content = await part.read()
                file_name = part.filename or session.suggested_file_name or DEFAULT_FILE_NAME
        except HTTPException as exc:
            self._fail(session_id, f"Malformed multipart body: {exc.detail}")
            return _error(400, "Malformed multipart body", session_id=session_id)

        if not content:
            self._fail(session_id, "Uploaded file is empty")
            return _error(400, "Uploaded file is empty", session_id=session_id)

        logger.info("Session %s received %s (%d bytes)", session_id, file_name, len(content))
        result = await self.client.upload_asset(
            content, file_name, favorite=session.favorite, archived=session.archived
        )
        data: Dict[str, Any] = result.data if isinstance(result.data, dict) else {}
        asset_id = data.get("id")
        if not result.ok or not asset_id:
            message = result.error or "Immich did not return an asset id"
            self._fail(session_id, message)
            return _error(502, "Upload to Immich failed", session_id=session_id, detail=message)

        self.sessions.apply(session_id, Complete(asset_id))
        return JSONResponse(
            {
                "success": True,
                "asset_id": asset_id,
                "original_file_name": file_name,
                "status": data.get("status", "created"),
                "duplicate": data.get("status") == "duplicate",
                "session_id": session_id,
            }
        )

    def _fail(self, session_id: str, message: str) -> None:
        try:
            self.sessions.apply(session_id, Fail(message))
        except SessionStateError as exc:
            logger.warning("Could not mark session %s failed: %s", session_id, exc)
