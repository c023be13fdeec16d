"""
Grace-period tracking and scheduling for empty group cleanup.

An empty group is not removed the moment it is seen empty. It is first marked
pending; only if it is still empty (and not the active group) once the grace
period has passed does the sweep remove it. Groups that refill in between have
their mark cleared, so the next empty period starts a fresh grace timer.
"""

import asyncio
import time
from typing import TYPE_CHECKING, Callable, Iterable, Optional

from tab_grouper.config import get_logger
from tab_grouper.grouping.errors import error_message
from tab_grouper.storage.base import GroupingStore

if TYPE_CHECKING:
    from tab_grouper.grouping.tab_grouping_service import TabGroupingService

logger = get_logger(__name__)


def _now_ms() -> float:
    return time.time() * 1000


class CleanupCoordinator:
    """
    Remembers when each empty group was first seen empty.

    State is in memory only; a restart simply restarts every grace timer.
    """

    def __init__(self, clock: Callable[[], float] = _now_ms):
        """
        Initialize the coordinator.

        Args:
            clock: Returns the current time in milliseconds
        """
        self.clock = clock
        self._pending: dict[int, float] = {}

    def mark_pending(self, group_id: int) -> float:
        """
        Mark a group as empty, keeping the first timestamp if already marked.

        Args:
            group_id: Host group ID

        Returns:
            When the group was first seen empty (ms)
        """
        if group_id not in self._pending:
            self._pending[group_id] = self.clock()
            logger.debug(f"Group {group_id} marked for cleanup")
        return self._pending[group_id]

    def clear_pending(self, group_id: int) -> None:
        if self._pending.pop(group_id, None) is not None:
            logger.debug(f"Group {group_id} cleanup mark cleared")

    def get_timestamp(self, group_id: int) -> Optional[float]:
        return self._pending.get(group_id)

    def elapsed_ms(self, group_id: int) -> float:
        """Time since the group was first seen empty (0 if not pending)."""
        first_seen = self._pending.get(group_id)
        if first_seen is None:
            return 0.0
        return self.clock() - first_seen

    def pending_group_ids(self) -> list[int]:
        return list(self._pending)

    def retain_only(self, group_ids: Iterable[int]) -> None:
        """Drop marks for groups the host no longer reports."""
        keep = set(group_ids)
        for group_id in list(self._pending):
            if group_id not in keep:
                del self._pending[group_id]


class CleanupScheduler:
    """
    Runs the empty-group sweep periodically.

    Each tick reads the stored settings and sweeps only when auto-cleanup is
    enabled. Tick failures are logged and never stop the loop.
    """

    def __init__(
        self,
        service: "TabGroupingService",
        store: GroupingStore,
        interval_seconds: float = 60.0,
        grace_ms: Optional[int] = None,
    ):
        """
        Initialize the scheduler.

        Args:
            service: Service performing the sweep
            store: Store holding the user's settings
            interval_seconds: Time between sweeps
            grace_ms: Grace period override; None uses the stored setting
        """
        self.service = service
        self.store = store
        self.interval_seconds = interval_seconds
        self.grace_ms = grace_ms
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the periodic loop on the running event loop (no-op if started)."""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())
        logger.info(f"Cleanup scheduler started (every {self.interval_seconds}s)")

    async def stop(self) -> None:
        """Cancel the loop and wait for it to finish."""
        if self._task is None:
            return
        task, self._task = self._task, None
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Cleanup scheduler stopped")

    async def tick(self) -> None:
        """Run one sweep if auto-cleanup is enabled."""
        try:
            settings = await self.store.read_settings()
            if not settings.auto_cleanup_enabled:
                logger.debug("Auto cleanup disabled, skipping sweep")
                return

            grace = self.grace_ms if self.grace_ms is not None else settings.auto_cleanup_grace_ms
            await self.service.auto_cleanup_empty_groups(grace)
        except Exception as e:
            logger.warning(f"Cleanup tick failed: {error_message(e)}")

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            await self.tick()
