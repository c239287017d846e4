"""Uniform response envelope returned by every tool."""

import json
import uuid
from typing import Any, Dict, List, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field
from pydantic_core import to_jsonable_python

from immich_mcp.errors import ErrorCode, ToolError
from immich_mcp.logging_config import request_id_context


class Meta(BaseModel):
    """Envelope metadata: pagination, correlation and traceability."""

    model_config = ConfigDict(extra="forbid")

    page: Optional[int] = None
    page_size: Optional[int] = None
    total: Optional[int] = None
    next: Optional[str] = None
    request_id: Optional[str] = None
    immich_base_url: Optional[str] = None
    warnings: Optional[List[str]] = None


class ErrorBody(BaseModel):
    code: ErrorCode
    message: str
    details: Optional[Any] = None


class Envelope(BaseModel):
    ok: bool
    result: Optional[Any] = None
    error: Optional[ErrorBody] = None
    meta: Meta = Field(default_factory=Meta)

    def to_json(self) -> str:
        # Unset meta/error fields are dropped; nulls inside the result are kept.
        payload: Dict[str, Any] = {"ok": self.ok}
        if self.ok:
            payload["result"] = to_jsonable_python(self.result)
        else:
            error: Dict[str, Any] = {"code": self.error.code.value, "message": self.error.message}
            if self.error.details is not None:
                error["details"] = to_jsonable_python(self.error.details)
            payload["error"] = error
        payload["meta"] = self.meta.model_dump(mode="json", exclude_none=True)
        return json.dumps(payload, ensure_ascii=False)


class Page(BaseModel):
    """One slice of an already-fetched list."""

    items: List[Any]
    page: int
    page_size: int
    total: int
    next: Optional[str] = None


def new_request_id() -> str:
    return uuid.uuid4().hex


def current_request_id() -> str:
    return request_id_context.get() or new_request_id()


def success(result: Any, meta: Optional[Meta] = None) -> str:
    """Serialize a successful tool result."""
    meta = meta or Meta()
    if meta.request_id is None:
        meta.request_id = current_request_id()
    return Envelope(ok=True, result=result, meta=meta).to_json()


def failure(
    code: ErrorCode,
    message: str,
    details: Optional[Any] = None,
    meta: Optional[Meta] = None,
) -> str:
    """Serialize a failed tool result."""
    meta = meta or Meta()
    if meta.request_id is None:
        meta.request_id = current_request_id()
    error = ErrorBody(code=code, message=message, details=details)
    return Envelope(ok=False, error=error, meta=meta).to_json()


def from_error(exc: ToolError, meta: Optional[Meta] = None) -> str:
    return failure(exc.code, exc.message, exc.details, meta)


def clamp_paging(page: int, size: int, max_size: int) -> Tuple[int, int]:
    """Page floors at 1; size floors at 1 and is capped at ``max_size``."""
    return max(page, 1), min(max(size, 1), max_size)


def paginate(items: Sequence[Any], page: int, size: int, max_size: int) -> Page:
    """Slice ``items`` for the requested page.

    ``next`` is a cursor string only when more items remain past this page.
    """
    page, size = clamp_paging(page, size, max_size)
    total = len(items)
    skip = (page - 1) * size
    sliced = list(items[skip:skip + size])
    has_more = skip + len(sliced) < total
    return Page(
        items=sliced,
        page=page,
        page_size=size,
        total=total,
        next=f"page={page + 1}&size={size}" if has_more else None,
    )
