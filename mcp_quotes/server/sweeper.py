"""Background eviction of idle sessions."""

import logging
from datetime import datetime, timedelta

import anyio

from mcp_quotes.server.sessions import SessionRegistry

logger = logging.getLogger(__name__)

MAX_SWEEP_INTERVAL_SECONDS = 300.0


class SessionSweeper:
    """
    Periodically terminates sessions idle longer than ``timeout_seconds``.

    The tick interval is a quarter of the timeout, capped at five minutes.
    """

    def __init__(self, registry: SessionRegistry, timeout_seconds: float) -> None:
        self.registry = registry
        self.timeout = timedelta(seconds=timeout_seconds)
        self.interval = min(timeout_seconds / 4, MAX_SWEEP_INTERVAL_SECONDS)

    async def sweep(self, now: datetime | None = None) -> int:
        """Run one eviction pass; returns the number of sessions terminated."""
        expired = self.registry.expired(self.timeout, now)
        if not expired:
            logger.debug("Sweep found no idle sessions (active=%d)", len(self.registry))
            return 0

        terminated = 0
        for session_id in expired:
            try:
                if await self.registry.terminate(session_id):
                    terminated += 1
            except Exception:
                logger.exception("Failed to close idle session", extra={"session_id": session_id})

        logger.info(
            "Evicted %d idle session(s), %d active", terminated, len(self.registry)
        )
        return terminated

    async def run(self) -> None:
        """Sweep forever; cancel the enclosing scope to stop."""
        logger.debug("Session sweeper started (interval=%.1fs)", self.interval)
        while True:
            await anyio.sleep(self.interval)
            await self.sweep()


__all__ = ["SessionSweeper"]
