"""Upload sessions for out-of-band file uploads.

A session is created by a tool call, filled by a separate HTTP POST that
carries the bytes, and polled for its outcome through another tool call.
The manager owns the only shared mutable state in the gateway.

Locking: a store lock guards membership of the session table and a lock per
session serializes reads-with-lazy-expiry and transitions on that session.
Neither is ever held across I/O, so both event-loop tasks and worker threads
may call in.

Expiry tie-break: lazy expiry only turns ``pending`` into ``expired``. Once
an upload has begun, a reader can no longer downgrade it; it ends as
``completed`` or ``failed`` (or is dropped by the sweep).
"""

import asyncio
import contextlib
import logging
import threading
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import AsyncIterator, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

DEFAULT_SESSION_TIMEOUT = timedelta(minutes=30)
DEFAULT_SWEEP_INTERVAL = timedelta(minutes=1)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UploadStatus(str, Enum):
    PENDING = "pending"  # Session created, awaiting bytes
    UPLOADING = "uploading"  # Bytes received, forwarding upstream
    COMPLETED = "completed"  # Upstream accepted; asset_id set
    FAILED = "failed"  # Upstream rejected or transport error; error_message set
    EXPIRED = "expired"  # Passed expires_at before any upload began


@dataclass(frozen=True)
class UploadSession:
    """Immutable snapshot of one session."""

    session_id: str
    created_at: datetime
    expires_at: datetime
    suggested_file_name: Optional[str] = None
    favorite: Optional[bool] = None
    archived: Optional[bool] = None
    status: UploadStatus = UploadStatus.PENDING
    asset_id: Optional[str] = None
    error_message: Optional[str] = None

    def to_dict(self) -> Dict[str, object]:
        return {
            "session_id": self.session_id,
            "status": self.status.value,
            "asset_id": self.asset_id,
            "error": self.error_message,
            "file_name": self.suggested_file_name,
            "created_at": self.created_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
        }


class SessionStateError(Exception):
    """A transition is not legal from the session's current state."""

    def __init__(self, session: UploadSession, reason: str):
        super().__init__(f"Session {session.session_id} is {session.status.value}: {reason}")
        self.session = session
        self.reason = reason


# ─── Transitions ────────────────────────────────────────────────────────────


class Transition(ABC):
    """A state change applied atomically to one session."""

    @abstractmethod
    def apply(self, session: UploadSession, now: datetime) -> UploadSession:
        """Return the new snapshot or raise SessionStateError."""


class BeginUpload(Transition):
    """pending -> uploading. Rejects every other state."""

    REFUSALS = {
        UploadStatus.EXPIRED: "expired",
        UploadStatus.COMPLETED: "completed",
        UploadStatus.FAILED: "failed",
        UploadStatus.UPLOADING: "in_progress",
    }

    def refusal(self, session: UploadSession) -> Optional[str]:
        """Why an upload cannot begin on this snapshot, or None if it can."""
        return self.REFUSALS.get(session.status)

    def apply(self, session: UploadSession, now: datetime) -> UploadSession:
        reason = self.refusal(session)
        if reason is not None:
            raise SessionStateError(session, reason)
        return replace(session, status=UploadStatus.UPLOADING)


@dataclass(frozen=True)
class Complete(Transition):
    """uploading -> completed, recording the new asset."""

    asset_id: str

    def apply(self, session: UploadSession, now: datetime) -> UploadSession:
        if session.status != UploadStatus.UPLOADING:
            raise SessionStateError(session, "not_uploading")
        return replace(
            session, status=UploadStatus.COMPLETED, asset_id=self.asset_id, error_message=None
        )


@dataclass(frozen=True)
class Fail(Transition):
    """uploading -> failed, recording why."""

    message: str

    def apply(self, session: UploadSession, now: datetime) -> UploadSession:
        if session.status != UploadStatus.UPLOADING:
            raise SessionStateError(session, "not_uploading")
        return replace(session, status=UploadStatus.FAILED, error_message=self.message, asset_id=None)


BEGIN_UPLOAD = BeginUpload()


# ─── Manager ────────────────────────────────────────────────────────────────


@dataclass
class _Slot:
    session: UploadSession
    lock: threading.Lock = field(default_factory=threading.Lock)


class UploadSessionManager:
    """Concurrent, TTL-based store of upload sessions."""

    def __init__(
        self,
        session_timeout: timedelta = DEFAULT_SESSION_TIMEOUT,
        sweep_interval: timedelta = DEFAULT_SWEEP_INTERVAL,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session_timeout = session_timeout
        self.sweep_interval = sweep_interval
        self._clock = clock
        self._slots: Dict[str, _Slot] = {}
        self._lock = threading.Lock()
        self._sweeper: Optional[asyncio.Task] = None

    def __len__(self) -> int:
        with self._lock:
            return len(self._slots)

    def create_session(
        self,
        suggested_file_name: Optional[str] = None,
        favorite: Optional[bool] = None,
        archived: Optional[bool] = None,
    ) -> UploadSession:
        now = self._clock()
        session = UploadSession(
            session_id=str(uuid.uuid4()),
            created_at=now,
            expires_at=now + self.session_timeout,
            suggested_file_name=suggested_file_name,
            favorite=favorite,
            archived=archived,
        )
        with self._lock:
            self._slots[session.session_id] = _Slot(session)
        logger.info("Created upload session %s (expires %s)", session.session_id, session.expires_at.isoformat())
        return session

    def get_session(self, session_id: str) -> Optional[UploadSession]:
        """Look up a session, marking a stale pending one as expired."""
        slot = self._slot(session_id)
        if slot is None:
            return None
        with slot.lock:
            slot.session = self._observe(slot.session)
            return slot.session

    def apply(self, session_id: str, transition: Transition) -> Optional[UploadSession]:
        """Apply ``transition`` atomically; None if the session does not exist.

        Raises SessionStateError when the transition is illegal, leaving the
        session as it was (apart from a lazily observed expiry).
        """
        slot = self._slot(session_id)
        if slot is None:
            return None
        with slot.lock:
            slot.session = self._observe(slot.session)
            slot.session = transition.apply(slot.session, self._clock())
            return slot.session

    def sweep(self) -> int:
        """Drop sessions that expired more than one sweep interval ago."""
        cutoff = self._clock() - self.sweep_interval
        with self._lock:
            stale: List[str] = [
                session_id
                for session_id, slot in self._slots.items()
                if slot.session.expires_at < cutoff
            ]
            for session_id in stale:
                del self._slots[session_id]
        if stale:
            logger.info("Swept %d expired upload session(s)", len(stale))
        return len(stale)

    def _slot(self, session_id: str) -> Optional[_Slot]:
        with self._lock:
            return self._slots.get(session_id)

    def _observe(self, session: UploadSession) -> UploadSession:
        if session.status == UploadStatus.PENDING and self._clock() > session.expires_at:
            return replace(session, status=UploadStatus.EXPIRED)
        return session

    # ─── Background sweep ───────────────────────────────────────────────────

    async def _sweep_forever(self) -> None:
        interval = self.sweep_interval.total_seconds()
        while True:
            await asyncio.sleep(interval)
            try:
                self.sweep()
            except Exception:
                logger.exception("Upload session sweep failed")

    @property
    def sweeping(self) -> bool:
        return self._sweeper is not None and not self._sweeper.done()

    def start(self) -> None:
        """Start the periodic sweep on the running event loop."""
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.get_running_loop().create_task(self._sweep_forever())

    async def stop(self) -> None:
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._sweeper
        self._sweeper = None

    @contextlib.asynccontextmanager
    async def running(self) -> AsyncIterator["UploadSessionManager"]:
        self.start()
        try:
            yield self
        finally:
            await self.stop()
