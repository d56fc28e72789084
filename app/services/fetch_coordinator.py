"""
Update Coordination

Manages EPG update coordination with concurrency protection. Replaces a
global "updating" flag with a small, testable single-slot supervisor.
"""
import asyncio
import logging
from datetime import datetime, timezone
from typing import Awaitable, Callable, Any


logger = logging.getLogger(__name__)


class FetchCoordinator:
    """
    Coordinates EPG update cycles to prevent concurrent executions.

    Uses an internal asyncio.Lock so only one fetch/build/write cycle runs at
    a time. Overlapping triggers are rejected, not queued.
    """

    def __init__(self):
        self._fetch_lock = asyncio.Lock()
        self.last_status: str | None = None
        self.last_update_time: datetime | None = None
        self.last_error: str | None = None

    async def execute(self, fetch_func: Callable[[], Awaitable[dict[str, Any]]]) -> dict[str, Any]:
        """
        Execute an update cycle with concurrency protection.

        Args:
            fetch_func: Async function running one update cycle

        Returns:
            Result from fetch_func, or a skip response if a cycle is already running

        Raises:
            Any exception raised by fetch_func
        """
        if self._fetch_lock.locked():
            logger.warning("EPG update already in progress, skipping this request")
            return {
                "status": "skipped",
                "message": "EPG update already in progress"
            }

        async with self._fetch_lock:
            try:
                result = await fetch_func()
            except Exception as e:
                self._record("failed", str(e))
                raise
            self._record(result.get("status", "unknown"), result.get("error"))
            return result

    def is_fetching(self) -> bool:
        """Check if an update cycle is currently in progress."""
        return self._fetch_lock.locked()

    def _record(self, status: str, error: str | None) -> None:
        self.last_status = status
        self.last_error = error
        self.last_update_time = datetime.now(timezone.utc)


# Global singleton instance
_coordinator: FetchCoordinator | None = None


def get_fetch_coordinator() -> FetchCoordinator:
    """
    Get or create the global fetch coordinator singleton.

    Returns:
        The global FetchCoordinator instance
    """
    global _coordinator
    if _coordinator is None:
        _coordinator = FetchCoordinator()
    return _coordinator


def reset_fetch_coordinator() -> None:
    """Reset the fetch coordinator (used by tests)."""
    global _coordinator
    _coordinator = None
