"""
Per-category color assignment with neighbor-color avoidance.
"""

import random
from typing import Iterable, Literal, Mapping, Optional

from tab_grouper.config import get_logger
from tab_grouper.grouping.errors import ConfigurationError
from tab_grouper.grouping.lock_manager import LockManager
from tab_grouper.grouping.models import GroupColor, to_group_color
from tab_grouper.host.base import HostTabAPI

logger = get_logger(__name__)


class ColorAssigner:
    """
    Chooses and remembers one color per category.

    A category keeps its color once assigned. A new category gets a random
    enabled color that no other group in the window is using, when one exists;
    otherwise any enabled color (visual collision beats failing the request).

    Concurrent first-time assignments for the same category are serialized so
    only one color is ever picked for it; different categories do not wait on
    each other.

    Attributes:
        host: Host API used to inspect neighbor groups
        neighbor_scope: "window" to avoid colors in the tab's window only,
            "all" to avoid colors used in any window
    """

    def __init__(
        self,
        host: HostTabAPI,
        cache: Optional[Mapping[str, str]] = None,
        lock_manager: Optional[LockManager] = None,
        neighbor_scope: Literal["window", "all"] = "window",
        rng: Optional[random.Random] = None,
    ):
        """
        Initialize the ColorAssigner.

        Args:
            host: Host API client
            cache: Initial category -> color cache (invalid colors are dropped)
            lock_manager: Lock manager for per-category assignment. Must not be
                shared with a caller that already holds the same category key.
            neighbor_scope: "window" (default) or "all"
            rng: Random source, injectable for deterministic tests
        """
        self.host = host
        self.neighbor_scope = neighbor_scope
        self._cache: dict[str, GroupColor] = self._normalize_cache(cache or {})
        self._locks = lock_manager or LockManager()
        self._rng = rng or random.Random()

    async def assign_color(
        self,
        category: str,
        tab_id: int,
        window_id: int,
        enabled_colors: Iterable[str],
    ) -> GroupColor:
        """
        Return the color for a category, assigning one if needed.

        Args:
            category: Category being grouped
            tab_id: Tab that triggered the assignment (its own group is not a neighbor)
            window_id: Window whose groups are the neighbors
            enabled_colors: Colors the user allows

        Returns:
            The category's color

        Raises:
            ConfigurationError: If no valid color is enabled
            HostOperationError: If the neighbor lookup fails
        """
        cached = self._cache.get(category)
        if cached is not None:
            logger.debug(f"Color cache hit for '{category}': {cached.value}")
            return cached

        palette = self._resolve_palette(enabled_colors)

        async def assign() -> GroupColor:
            # Another caller may have assigned it while we waited for the lock
            cached = self._cache.get(category)
            if cached is not None:
                return cached

            if not palette:
                raise ConfigurationError(
                    "No enabled colors available for group assignment",
                    details={"category": category},
                )

            neighbor_colors = await self._get_neighbor_colors(tab_id, window_id)
            available = [color for color in palette if color not in neighbor_colors]
            color = self._rng.choice(available) if available else self._rng.choice(palette)

            self._cache[category] = color
            logger.info(
                f"Assigned color {color.value} to '{category}' "
                f"(neighbors: {sorted(c.value for c in neighbor_colors)})"
            )
            return color

        return await self._locks.run_exclusive(category, assign)

    def get_cache(self) -> dict[str, GroupColor]:
        """Get a copy of the category -> color cache."""
        return dict(self._cache)

    def set_cache(self, cache: Mapping[str, str]) -> None:
        """Replace the cache (invalid colors are dropped)."""
        self._cache = self._normalize_cache(cache)

    def remember(self, category: str, color: str) -> None:
        """Cache a color decided elsewhere (e.g. reported by the host)."""
        normalized = to_group_color(color)
        if normalized is not None:
            self._cache[category] = normalized

    def forget(self, category: str) -> None:
        """Drop a category from the cache so its next assignment picks afresh."""
        self._cache.pop(category, None)

    async def _get_neighbor_colors(self, tab_id: int, window_id: int) -> set[GroupColor]:
        """
        Collect colors used by other groups.

        The requesting tab's own group (if any) is not a neighbor.
        """
        tabs = await self.host.query_tabs(window_id=window_id)
        own_group_id = next((t.group_id for t in tabs if t.id == tab_id), None)

        if self.neighbor_scope == "all":
            groups = await self.host.query_groups()
        else:
            groups = await self.host.query_groups(window_id=window_id)

        return {
            group.color
            for group in groups
            if group.id != own_group_id and group.color is not None
        }

    @staticmethod
    def _resolve_palette(enabled_colors: Iterable[str]) -> list[GroupColor]:
        palette: list[GroupColor] = []
        for raw in enabled_colors or []:
            color = to_group_color(raw)
            if color is not None and color not in palette:
                palette.append(color)
        return palette

    @staticmethod
    def _normalize_cache(cache: Mapping[str, str]) -> dict[str, GroupColor]:
        normalized = {}
        for category, raw in cache.items():
            color = to_group_color(raw)
            if color is not None:
                normalized[category] = color
        return normalized
