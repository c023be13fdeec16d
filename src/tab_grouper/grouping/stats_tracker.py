"""
Grouping statistics.
"""

import asyncio
from datetime import datetime, UTC

from tab_grouper.config import get_logger
from tab_grouper.grouping.errors import error_message
from tab_grouper.grouping.models import GroupingStats
from tab_grouper.storage.base import GroupingStore

logger = get_logger(__name__)


class StatsTracker:
    """Records grouping outcomes with read-merge-write under a single lock."""

    def __init__(self, store: GroupingStore):
        self.store = store
        self._lock = asyncio.Lock()

    async def record_grouping(
        self,
        category: str,
        success: bool = True,
        duration_ms: float = 0.0,
    ) -> None:
        """
        Merge one grouping outcome into the stored stats.

        Failures to read or write the stats are logged and swallowed; stats
        never affect the outcome of a grouping request.

        Args:
            category: Category that was grouped
            success: Whether the grouping succeeded
            duration_ms: How long the grouping took
        """
        async with self._lock:
            try:
                stats = await self.store.read_stats()
                duration_ms = max(0.0, float(duration_ms))

                if success:
                    stats.total_grouped += 1
                    stats.category_count[category] = stats.category_count.get(category, 0) + 1
                    stats.grouping_successes += 1
                    stats.total_duration_ms += duration_ms
                else:
                    stats.grouping_failures += 1
                stats.last_duration_ms = duration_ms

                await self.store.write_stats(stats)
            except Exception as e:
                logger.warning(f"Failed to record grouping stats for '{category}': {error_message(e)}")

    async def get_stats(self) -> GroupingStats:
        return await self.store.read_stats()

    async def reset(self) -> GroupingStats:
        """Zero all counters and persist the reset."""
        async with self._lock:
            stats = GroupingStats(last_reset=datetime.now(UTC))
            await self.store.write_stats(stats)
            logger.info("Grouping stats reset")
            return stats
