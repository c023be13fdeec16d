"""
Ownership and reconciliation of the category -> color / group ID mapping.
"""

import asyncio
from typing import Optional

from tab_grouper.config import get_logger
from tab_grouper.grouping.color_assigner import ColorAssigner
from tab_grouper.grouping.errors import GroupingError, PersistenceError, error_message
from tab_grouper.grouping.models import GroupColor, GroupingState, TabGroup
from tab_grouper.storage.base import GroupingStore

logger = get_logger(__name__)


class GroupStateCoordinator:
    """
    Keeps the grouping state in memory and in the store.

    The in-memory maps are the source of truth between writes; every mutation
    writes the full mapping back to the store. The color assigner's cache is
    seeded from the color map on load and updated entry by entry after that.

    Key Design Decisions:
    - persist() raises on store failure (it is on the grouping critical path)
      but never rolls back the in-memory update
    - prune_group() and apply_group_update() are reconciliation paths: store
      failures are logged and swallowed
    - Store writes are serialized so the last write always carries the latest
      snapshot
    """

    def __init__(self, store: GroupingStore, color_assigner: ColorAssigner):
        """
        Initialize the coordinator.

        Args:
            store: Persistent store for the mapping
            color_assigner: Color assigner whose cache mirrors the color map
        """
        self.store = store
        self.color_assigner = color_assigner
        self._color_map: dict[str, GroupColor] = {}
        self._group_id_map: dict[str, int] = {}
        self._initialized = False
        self._load_lock = asyncio.Lock()
        self._write_lock = asyncio.Lock()

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> None:
        """
        Load the persisted mapping into memory.

        Idempotent: once loaded, later calls do nothing. Concurrent callers
        share a single load.

        Raises:
            PersistenceError: If the store cannot be read
        """
        if self._initialized:
            return

        async with self._load_lock:
            if self._initialized:
                return

            try:
                state = await self.store.read_grouping_state()
            except GroupingError:
                raise
            except Exception as e:
                raise PersistenceError(
                    f"Failed to load grouping state: {error_message(e)}", cause=e
                ) from e

            # Entries recorded before the load finished take precedence over the stored snapshot
            self._color_map = {**state.category_color_map, **self._color_map}
            self._group_id_map = {**state.category_group_id_map, **self._group_id_map}
            self._sync_color_cache()
            self._initialized = True
        logger.info(f"Loaded grouping state with {len(self._group_id_map)} tracked groups")

    async def persist(self, category: str, group_id: int, color: GroupColor) -> None:
        """
        Record the group and color for a category and write the mapping.

        Args:
            category: Category key
            group_id: Host group ID now holding the category
            color: Color applied to the group

        Raises:
            PersistenceError: If the store write fails (the in-memory update is kept)
        """
        self._group_id_map[category] = group_id
        self._color_map[category] = GroupColor(color)
        self.color_assigner.remember(category, color)

        try:
            await self._write()
        except Exception as e:
            raise PersistenceError(
                f"Failed to persist grouping state: {error_message(e)}",
                cause=e,
                details={"category": category, "group_id": group_id},
            ) from e

    async def prune_group(self, group_id: int) -> bool:
        """
        Forget every category pointing at a group.

        Args:
            group_id: Host group ID that no longer exists

        Returns:
            True if any entry was removed
        """
        removed = self.categories_for_group(group_id)
        if not removed:
            return False

        for category in removed:
            del self._group_id_map[category]
            self._color_map.pop(category, None)
            self.color_assigner.forget(category)
        logger.info(f"Pruned group {group_id} (categories: {removed})")

        try:
            await self._write()
        except Exception as e:
            logger.warning(f"Failed to persist pruned grouping state for group {group_id}: {error_message(e)}")
        return True

    async def apply_group_update(self, group: TabGroup) -> bool:
        """
        Reconcile a host-reported rename or recolor.

        If the group is tracked under a different title, its entry moves to the
        new title and takes the group's current color. If it is tracked under
        the same title with a different color, the color is updated.

        Args:
            group: Group as reported by the host

        Returns:
            True if the mapping changed
        """
        title = group.title.strip()
        if not title:
            return False

        mutated = False
        for category in self.categories_for_group(group.id):
            if category != title:
                previous_color = self._color_map.pop(category, None)
                del self._group_id_map[category]
                self.color_assigner.forget(category)
                self._group_id_map[title] = group.id
                new_color = group.color or previous_color
                if new_color is not None:
                    self._color_map[title] = new_color
                    self.color_assigner.remember(title, new_color)
                logger.info(f"Group {group.id} renamed '{category}' -> '{title}'")
                mutated = True
            elif group.color is not None and self._color_map.get(category) != group.color:
                self._color_map[category] = group.color
                self.color_assigner.remember(category, group.color)
                logger.info(f"Group {group.id} ('{category}') recolored to {group.color.value}")
                mutated = True

        if not mutated:
            return False

        try:
            await self._write()
        except Exception as e:
            logger.warning(f"Failed to persist group update for group {group.id}: {error_message(e)}")
        return True

    def get_state(self) -> GroupingState:
        """Get a copy of the current mapping."""
        return GroupingState(
            category_color_map=dict(self._color_map),
            category_group_id_map=dict(self._group_id_map),
        )

    def group_id_for(self, category: str) -> Optional[int]:
        return self._group_id_map.get(category)

    def color_for(self, category: str) -> Optional[GroupColor]:
        return self._color_map.get(category)

    def categories_for_group(self, group_id: int) -> list[str]:
        """All categories mapped to a group (normally at most one)."""
        return [category for category, gid in self._group_id_map.items() if gid == group_id]

    def _sync_color_cache(self) -> None:
        self.color_assigner.set_cache(self._color_map)

    async def _write(self) -> None:
        async with self._write_lock:
            await self.store.write_grouping_state(self.get_state())
