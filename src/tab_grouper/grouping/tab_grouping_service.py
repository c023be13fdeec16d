"""
Tab grouping orchestration.

This module ties the grouping engine together: it resolves a tab's category,
gets the category's color, finds or creates the host group, applies title and
color, persists the mapping and records stats. It also hosts the
reconciliation handlers for host group events and the empty-group sweep.
"""

import asyncio
import time
from fnmatch import fnmatch
from typing import Awaitable, Callable, Iterable, Optional, TypeVar

from tab_grouper.config import get_logger, get_settings
from tab_grouper.grouping.category_resolver import CategoryResolver
from tab_grouper.grouping.cleanup import CleanupCoordinator
from tab_grouper.grouping.color_assigner import ColorAssigner
from tab_grouper.grouping.errors import PreconditionError, error_message, to_grouping_error
from tab_grouper.grouping.group_state import GroupStateCoordinator
from tab_grouper.grouping.lock_manager import LockManager
from tab_grouper.grouping.models import (
    BatchGroupResult,
    CleanupReport,
    GroupColor,
    GroupingSettings,
    GroupTabResult,
    Metadata,
    Tab,
    TabGroup,
)
from tab_grouper.grouping.stats_tracker import StatsTracker
from tab_grouper.host.base import HostTabAPI
from tab_grouper.storage.base import GroupingStore

logger = get_logger(__name__)

T = TypeVar("T")


class TabGroupingService:
    """
    Groups tabs by category and keeps host groups and grouping state in step.

    Grouping a tab runs entirely under a per-category lock, so two requests
    for the same category never both create a group or pick different colors;
    requests for different categories run concurrently.

    Key Design Decisions:
    - Preconditions (tab ID, window ID) are checked before any I/O or locking
    - Any failure aborts the remaining steps and is re-raised as a
      GroupingError; nothing already applied on the host is rolled back
    - Event handlers and the cleanup sweep are best-effort: they log and
      swallow errors instead of raising

    Attributes:
        host: Host tab/group API
        store: Persistent store
        color_assigner: Per-category color selection
        group_state: Owner of the category -> color / group ID mapping
        stats: Grouping statistics
        cleanup: Pending-cleanup bookkeeping
        category_resolver: Category decision function
        eligible_url_patterns: fnmatch patterns a tab URL must match for batch grouping
    """

    def __init__(
        self,
        host: HostTabAPI,
        store: GroupingStore,
        color_assigner: Optional[ColorAssigner] = None,
        group_state: Optional[GroupStateCoordinator] = None,
        stats: Optional[StatsTracker] = None,
        cleanup: Optional[CleanupCoordinator] = None,
        category_resolver: Optional[CategoryResolver] = None,
        lock_manager: Optional[LockManager] = None,
        eligible_url_patterns: Optional[list[str]] = None,
        timer: Callable[[], float] = time.perf_counter,
    ):
        """
        Initialize the TabGroupingService.

        Collaborators that are not provided are built from the application
        settings.

        Args:
            host: Host tab/group API
            store: Persistent store for state, stats and settings
            color_assigner: Color assigner. Must not share its lock manager with
                this service (locks are not re-entrant).
            group_state: Grouping state coordinator
            stats: Stats tracker
            cleanup: Cleanup coordinator
            category_resolver: Category resolver
            lock_manager: Lock manager for the per-category grouping lock
            eligible_url_patterns: URL patterns for batch grouping; empty means all tabs
            timer: Monotonic clock in seconds used for durations
        """
        settings = get_settings()

        self.host = host
        self.store = store
        self.color_assigner = color_assigner or ColorAssigner(
            host, neighbor_scope=settings.neighbor_scope
        )
        self.group_state = group_state or GroupStateCoordinator(store, self.color_assigner)
        self.stats = stats or StatsTracker(store)
        self.cleanup = cleanup or CleanupCoordinator()
        self.category_resolver = category_resolver or CategoryResolver(settings.fallback_category)
        self.eligible_url_patterns = (
            eligible_url_patterns
            if eligible_url_patterns is not None
            else list(settings.eligible_url_patterns)
        )
        self._locks = lock_manager or LockManager()
        self._timer = timer

    async def initialize(self) -> None:
        """Load persisted grouping state (idempotent)."""
        await self.group_state.initialize()

    # ------------------------------------------------------------------
    # Grouping
    # ------------------------------------------------------------------

    def resolve_category(
        self,
        tab: Tab,
        settings: GroupingSettings,
        metadata: Optional[Metadata] = None,
        requested_category: Optional[str] = None,
    ) -> str:
        """
        Resolve the category for a tab, filling missing metadata from the tab.

        Args:
            tab: Tab being grouped
            settings: Settings snapshot
            metadata: Page metadata, if the caller has any
            requested_category: Explicit category override

        Returns:
            Category string
        """
        normalized = (metadata or Metadata()).normalized(fallback_title=tab.title)
        return self.category_resolver.resolve(normalized, settings, requested_category)

    async def group_tab(
        self,
        tab: Tab,
        category: str,
        enabled_colors: Iterable[str],
    ) -> GroupTabResult:
        """
        Put a tab into its category's group, creating the group if needed.

        Args:
            tab: Tab to group (must have id and window_id)
            category: Category the tab belongs to
            enabled_colors: Colors the user allows

        Returns:
            The group ID and color now applied

        Raises:
            PreconditionError: If the tab has no id/window_id or the category is blank
            GroupingError: If any later step fails
        """
        if tab.id is None or tab.window_id is None:
            missing = "id" if tab.id is None else "window_id"
            raise PreconditionError(
                f"Cannot group tab without {missing}",
                details={"tab_id": tab.id, "window_id": tab.window_id},
            )
        category = (category or "").strip()
        if not category:
            raise PreconditionError("Cannot group tab without a category", details={"tab_id": tab.id})

        enabled_colors = list(enabled_colors)
        if not self.group_state.initialized:
            await self.initialize()

        async def operation() -> GroupTabResult:
            started = self._timer()
            try:
                color = await self.color_assigner.assign_color(
                    category, tab.id, tab.window_id, enabled_colors
                )
                group_id = await self._ensure_group(tab, category, color)
                await self.group_state.persist(category, group_id, color)
            except Exception as e:
                error = to_grouping_error(
                    e, message=f"Failed to group tab: {error_message(e)}", domain="runtime"
                )
                logger.error(
                    f"Grouping tab {tab.id} into '{category}' failed "
                    f"[{error.domain}/{error.code}]: {error.message}"
                )
                await self.stats.record_grouping(
                    category, success=False, duration_ms=self._elapsed_ms(started)
                )
                if error is e:
                    raise
                raise error from e

            await self.stats.record_grouping(
                category, success=True, duration_ms=self._elapsed_ms(started)
            )
            return GroupTabResult(group_id=group_id, color=color, category=category)

        return await self._locks.run_exclusive(category, operation)

    async def group_tabs(self, tabs: Iterable[Tab], settings: GroupingSettings) -> BatchGroupResult:
        """
        Group several tabs one after another.

        A failing tab does not stop the batch; its error is collected and the
        remaining tabs are still grouped.

        Args:
            tabs: Tabs to group
            settings: Settings snapshot

        Returns:
            Number of tabs grouped and the error messages for the rest
        """
        result = BatchGroupResult()
        enabled_colors = settings.enabled_color_list()

        for tab in tabs:
            try:
                category = self.resolve_category(tab, settings)
                await self.group_tab(tab, category, enabled_colors)
                result.count += 1
            except Exception as e:
                result.errors.append(f"tab {tab.id}: {error_message(e)}")

        logger.info(f"Batch grouped {result.count} tabs ({len(result.errors)} failed)")
        return result

    def is_eligible(self, tab: Tab) -> bool:
        """Check whether a tab's URL matches the batch grouping patterns."""
        if not self.eligible_url_patterns:
            return True
        return any(fnmatch(tab.url, pattern) for pattern in self.eligible_url_patterns)

    async def _ensure_group(self, tab: Tab, category: str, color: GroupColor) -> int:
        """Find or create the category's group in the tab's window and style it."""
        groups = await self.host.query_groups(window_id=tab.window_id, title=category)
        existing = next(
            (g for g in groups if g.window_id == tab.window_id and g.title == category),
            None,
        )

        if existing is not None:
            group_id = existing.id
            await self.host.group_tabs([tab.id], group_id)
        else:
            group_id = await self.host.group_tabs([tab.id])
            logger.info(f"Created group {group_id} for '{category}' in window {tab.window_id}")

        await self.host.update_group(group_id, title=category, color=color)
        return group_id

    def _elapsed_ms(self, started: float) -> float:
        return (self._timer() - started) * 1000

    # ------------------------------------------------------------------
    # Host event reconciliation
    # ------------------------------------------------------------------

    async def handle_group_removed(self, group_id: int) -> None:
        """Forget a group the host removed."""
        try:
            self.cleanup.clear_pending(group_id)
            await self.group_state.prune_group(group_id)
        except Exception as e:
            logger.warning(f"Failed to handle removal of group {group_id}: {error_message(e)}")

    async def handle_group_updated(self, group: TabGroup) -> None:
        """
        Reconcile a host-side rename or recolor of a group.

        Holds the locks of the new title and of every category currently
        mapped to the group, so an in-flight group_tab for the old title
        finishes before its entry moves.
        """
        try:
            self.cleanup.clear_pending(group.id)
            title = group.title.strip()
            if not title:
                return

            while True:
                keys = sorted({title, *self.group_state.categories_for_group(group.id)})

                async def apply(keys=keys) -> bool:
                    # Another category may have been mapped to the group while we waited
                    if not set(self.group_state.categories_for_group(group.id)) <= set(keys):
                        return False
                    await self.group_state.apply_group_update(group)
                    return True

                if await self._run_exclusive_many(keys, apply):
                    return
        except Exception as e:
            logger.warning(f"Failed to handle update of group {group.id}: {error_message(e)}")

    async def _run_exclusive_many(self, keys: list[str], task: Callable[[], Awaitable[T]]) -> T:
        """Run a task holding the locks for all keys, acquired in the given order."""
        if not keys:
            return await task()
        first, rest = keys[0], keys[1:]
        return await self._locks.run_exclusive(first, lambda: self._run_exclusive_many(rest, task))

    # ------------------------------------------------------------------
    # Empty group cleanup
    # ------------------------------------------------------------------

    async def auto_cleanup_empty_groups(self, grace_ms: int) -> CleanupReport:
        """
        Sweep all host groups and remove those empty for longer than the grace period.

        Args:
            grace_ms: Minimum time a group must stay empty before removal

        Returns:
            Groups removed in this pass and groups still waiting out their grace period
        """
        report = CleanupReport()
        try:
            groups = await self.host.query_groups()
        except Exception as e:
            logger.warning(f"Cleanup sweep skipped, could not list groups: {error_message(e)}")
            return report

        self.cleanup.retain_only(g.id for g in groups)

        for group in groups:
            try:
                tabs = await self.host.query_tabs(group_id=group.id)
                if tabs:
                    self.cleanup.clear_pending(group.id)
                    continue

                if await self._try_cleanup_group(group, grace_ms):
                    report.removed.append(group.id)
                elif self.cleanup.get_timestamp(group.id) is not None:
                    report.pending.append(group.id)
            except Exception as e:
                logger.warning(f"Cleanup of group {group.id} failed: {error_message(e)}")

        if report.removed:
            logger.info(f"Cleanup removed {len(report.removed)} empty groups")
        return report

    async def _try_cleanup_group(self, group: TabGroup, grace_ms: int) -> bool:
        self.cleanup.mark_pending(group.id)
        if self.cleanup.elapsed_ms(group.id) < max(0, grace_ms):
            return False

        async def confirm_and_remove() -> bool:
            # The group may have refilled or gained focus since the scan
            empty, active = await asyncio.gather(
                self._is_group_empty(group.id),
                self._is_group_active(group),
            )
            if active or not empty:
                self.cleanup.clear_pending(group.id)
                return False

            await self.host.remove_group(group.id)
            await self.group_state.prune_group(group.id)
            self.cleanup.clear_pending(group.id)
            logger.info(f"Removed empty group {group.id} ('{group.title}')")
            return True

        title = group.title.strip()
        if not title:
            return await confirm_and_remove()
        return await self._locks.run_exclusive(title, confirm_and_remove)

    async def _is_group_empty(self, group_id: int) -> bool:
        tabs = await self.host.query_tabs(group_id=group_id)
        return len(tabs) == 0

    async def _is_group_active(self, group: TabGroup) -> bool:
        try:
            active_tabs = await self.host.query_tabs(window_id=group.window_id, active=True)
        except Exception as e:
            logger.warning(f"Active check for group {group.id} failed, assuming inactive: {error_message(e)}")
            return False
        return any(t.group_id == group.id for t in active_tabs)
