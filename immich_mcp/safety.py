"""Two-phase dry-run/confirm protocol for destructive and bulk tools.

Every mutating tool that can lose data routes through ``guarded``; it is the
only place that decides whether the mutation actually runs.
"""

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional, Sequence, TypeVar

from pydantic import BaseModel, Field

from immich_mcp.errors import ConfirmationRequired

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class MutationRequest:
    """Caller-supplied flags for one gated invocation.

    ``dry_run`` is None for single-target operations that only take
    ``confirm``.
    """

    confirm: bool = False
    dry_run: Optional[bool] = None

    @property
    def approved(self) -> bool:
        return self.confirm is True and not self.dry_run

    def missing_flags(self) -> List[str]:
        flags = []
        if self.dry_run:
            flags.append("dry_run=false")
        if self.confirm is not True:
            flags.append("confirm=true")
        return flags

    def instructions(self) -> str:
        flags = " and ".join(self.missing_flags())
        if self.dry_run:
            return f"This is a dry run. Set {flags} to execute."
        return f"Set {flags} to execute the operation."


class BulkOperationResult(BaseModel):
    affected_ids: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    executed: bool = False


async def guarded(
    request: MutationRequest,
    execute: Callable[[], Awaitable[T]],
    preview: Callable[[], Awaitable[Any]],
    message: str,
) -> T:
    """Run ``execute`` only when ``request`` is approved.

    Otherwise ``preview`` is awaited and ConfirmationRequired is raised with
    the preview as details; ``execute`` is never awaited. Errors raised by
    ``preview`` (a missing target, say) propagate unchanged.
    """
    if request.approved:
        return await execute()

    details = await preview()
    logger.info("Mutation held for confirmation: %s", message)
    raise ConfirmationRequired(f"{message} {request.instructions()}", details)


async def guarded_bulk(
    request: MutationRequest,
    ids: Sequence[str],
    execute: Callable[[], Awaitable[Any]],
) -> BulkOperationResult:
    """Bulk variant: a refusal is a successful, non-executed result."""
    affected = list(ids)

    async def run() -> BulkOperationResult:
        await execute()
        return BulkOperationResult(affected_ids=affected, executed=True)

    async def preview() -> List[str]:
        return affected

    try:
        return await guarded(request, run, preview, f"Would affect {len(affected)} item(s).")
    except ConfirmationRequired:
        return BulkOperationResult(
            affected_ids=affected,
            warnings=[request.instructions()],
            executed=False,
        )
