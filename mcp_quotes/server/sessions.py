"""
Session registry for the HTTP transport.

Each live MCP session owns exactly one streaming transport. The registry maps
session ids to those records and is owned by a single HttpTransportService
(no module-level instance), which hands it to the router, the sweeper and the
transport factory callbacks.
"""

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from threading import Lock
from typing import Any

from mcp.server.streamable_http import StreamableHTTPServerTransport

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass
class SessionRecord:
    """One live session: its id, its transport and activity timestamps."""

    session_id: str
    transport: StreamableHTTPServerTransport
    created_at: datetime = field(default_factory=utcnow)
    last_activity: datetime = field(default_factory=utcnow)
    closed: bool = False

    def touch(self, now: datetime | None = None) -> None:
        self.last_activity = now or utcnow()

    def idle_for(self, now: datetime | None = None) -> timedelta:
        return (now or utcnow()) - self.last_activity

    async def close(self) -> None:
        """Terminate the transport. Runs at most once per record."""
        if self.closed:
            return
        self.closed = True
        if not self.transport.is_terminated:
            await self.transport.terminate()


class SessionRegistry:
    """Thread-safe map of session id to SessionRecord."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._records: dict[str, SessionRecord] = {}
        self.total_created = 0
        self.total_terminated = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._records

    def insert(self, record: SessionRecord) -> None:
        """
        Register a new session.

        Raises:
            ValueError: If the id is already registered (ids are never reused)
        """
        with self._lock:
            if record.session_id in self._records:
                msg = f"Session {record.session_id} is already registered"
                raise ValueError(msg)
            self._records[record.session_id] = record
            self.total_created += 1
            active = len(self._records)
        logger.info(
            "Session initialized",
            extra={"session_id": record.session_id, "active_sessions": active},
        )

    def get(self, session_id: str) -> SessionRecord | None:
        with self._lock:
            return self._records.get(session_id)

    def touch(self, session_id: str, now: datetime | None = None) -> SessionRecord | None:
        """Refresh last activity; returns the record or None if unknown."""
        with self._lock:
            record = self._records.get(session_id)
            if record is not None:
                record.touch(now)
            return record

    def remove(self, session_id: str) -> SessionRecord | None:
        """
        Remove a session, returning its record.

        Only a successful removal counts towards ``total_terminated`` so the
        several close paths racing for the same id are counted once.
        """
        with self._lock:
            record = self._records.pop(session_id, None)
            if record is not None:
                self.total_terminated += 1
        return record

    async def terminate(self, session_id: str) -> bool:
        """Remove a session and close its transport. False if it was not registered."""
        record = self.remove(session_id)
        if record is None:
            return False
        await record.close()
        return True

    def expired(self, timeout: timedelta, now: datetime | None = None) -> list[str]:
        """Ids whose idle time strictly exceeds ``timeout``."""
        now = now or utcnow()
        with self._lock:
            return [
                session_id
                for session_id, record in self._records.items()
                if now - record.last_activity > timeout
            ]

    def drain(self) -> list[SessionRecord]:
        """Remove and return every record (shutdown path)."""
        with self._lock:
            drained = list(self._records.values())
            self._records.clear()
            self.total_terminated += len(drained)
        return drained

    def stats(self, now: datetime | None = None) -> dict[str, Any]:
        """Counters plus the average age (ms) of the active sessions."""
        now = now or utcnow()
        with self._lock:
            durations = [
                (now - record.created_at).total_seconds() * 1000
                for record in self._records.values()
            ]
            return {
                "activeSessions": len(self._records),
                "totalSessionsCreated": self.total_created,
                "totalSessionsTerminated": self.total_terminated,
                "averageSessionDuration": (
                    sum(durations) / len(durations) if durations else 0
                ),
            }


__all__ = ["SessionRecord", "SessionRegistry", "utcnow"]
