"""Shared plumbing for the tool surface.

A toolset groups the tools of one API area. Methods decorated with ``tool``
return the response envelope as JSON text and are registered on a FastMCP
server by ``Toolset.register``.

Tool modules deliberately do not use ``from __future__ import annotations``:
FastMCP builds each tool's argument model from the live annotations.
"""

import functools
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from mcp.server.fastmcp import FastMCP
from mcp.types import ToolAnnotations

from immich_mcp.client import ImmichClient, UpstreamResult
from immich_mcp.config import Settings
from immich_mcp.envelope import Meta, failure, from_error, new_request_id, paginate, success
from immich_mcp.errors import ErrorCode, NotFoundError, ToolError, UpstreamError
from immich_mcp.logging_config import request_id_context

logger = logging.getLogger(__name__)

TOOL_ATTR = "__immich_tool__"


def annotations(
    title: str,
    *,
    read_only: bool = False,
    destructive: bool = False,
    idempotent: bool = False,
) -> Dict[str, Any]:
    return {
        "title": title,
        "readOnlyHint": read_only,
        "destructiveHint": destructive,
        "idempotentHint": idempotent,
        "openWorldHint": True,
    }


def tool(name: str, hints: Dict[str, Any]) -> Callable:
    """Mark a toolset method as an MCP tool.

    The wrapper scopes a request id to the call and turns ToolError into a
    failure envelope. Anything else is logged and reported as an upstream
    error; cancellation propagates.
    """

    def decorate(fn: Callable[..., Awaitable[str]]) -> Callable[..., Awaitable[str]]:
        @functools.wraps(fn)
        async def wrapper(self: "Toolset", *args: Any, **kwargs: Any) -> str:
            token = request_id_context.set(new_request_id())
            try:
                return await fn(self, *args, **kwargs)
            except ToolError as exc:
                if exc.code != ErrorCode.CONFIRMATION_REQUIRED:
                    logger.info("%s returned %s: %s", name, exc.code.value, exc.message)
                return from_error(exc, self.meta())
            except Exception as exc:
                logger.exception("%s failed unexpectedly", name)
                return failure(
                    ErrorCode.UPSTREAM_ERROR,
                    f"Unexpected error: {type(exc).__name__}: {exc}",
                    meta=self.meta(),
                )
            finally:
                request_id_context.reset(token)

        setattr(wrapper, TOOL_ATTR, (name, hints))
        return wrapper

    return decorate


def expect(result: UpstreamResult, not_found: str, failed: str) -> Any:
    """Unwrap an upstream result or raise the matching ToolError."""
    if result.ok:
        return result.data
    if result.not_found:
        raise NotFoundError(not_found, {"status": 404})
    raise UpstreamError(failed, {"status": result.status, "body": result.error})


def pick(data: Optional[Dict[str, Any]], *keys: str) -> Dict[str, Any]:
    """Subset of an upstream object, for previews and summaries."""
    data = data or {}
    return {key: data.get(key) for key in keys}


def bulk_outcome(results: Any) -> Dict[str, Any]:
    """Split a per-item ``[{id, success, error?}]`` upstream reply."""
    results = results if isinstance(results, list) else []
    succeeded = [entry.get("id") for entry in results if entry.get("success")]
    failed = [pick(entry, "id", "error") for entry in results if not entry.get("success")]
    return {"succeeded": succeeded, "failed": failed, "results": results}


class Toolset:
    """Base class for one area of tools."""

    def __init__(self, client: ImmichClient, settings: Settings):
        self.client = client
        self.settings = settings

    def meta(self, **fields: Any) -> Meta:
        return Meta(immich_base_url=self.client.base_url, **fields)

    def ok(self, result: Any, **meta: Any) -> str:
        return success(result, self.meta(**meta))

    def page(self, items: Sequence[Any], page: int, size: Optional[int]) -> str:
        sliced = paginate(
            items,
            page,
            size or self.settings.DEFAULT_PAGE_SIZE,
            self.settings.MAX_PAGE_SIZE,
        )
        return self.ok(
            sliced.items,
            page=sliced.page,
            page_size=sliced.page_size,
            total=sliced.total,
            next=sliced.next,
        )

    def tools(self) -> List[Callable[..., Awaitable[str]]]:
        found = []
        for attr in dir(type(self)):
            if hasattr(getattr(type(self), attr), TOOL_ATTR):
                found.append(getattr(self, attr))
        return found

    def register(self, mcp: FastMCP) -> List[str]:
        names = []
        for method in self.tools():
            name, hints = getattr(method, TOOL_ATTR)
            mcp.add_tool(method, name=name, annotations=ToolAnnotations(**hints))
            names.append(name)
        return names
