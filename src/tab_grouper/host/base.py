"""
Abstract base class for host tab/group backends.
"""

from abc import ABC, abstractmethod
from typing import Optional

from tab_grouper.grouping.models import GroupColor, Tab, TabGroup


class HostTabAPI(ABC):
    """Abstract interface for the browser's tab and tab group API.

    Implementations must raise HostOperationError for every rejected call.
    """

    @abstractmethod
    async def query_tabs(
        self,
        window_id: Optional[int] = None,
        group_id: Optional[int] = None,
        active: Optional[bool] = None,
    ) -> list[Tab]:
        """
        Query tabs matching all given filters.

        Args:
            window_id: Only tabs in this window
            group_id: Only tabs in this group
            active: Only active (or inactive) tabs

        Returns:
            List of matching tabs
        """
        pass

    @abstractmethod
    async def query_groups(
        self,
        window_id: Optional[int] = None,
        title: Optional[str] = None,
    ) -> list[TabGroup]:
        """
        Query tab groups matching all given filters.

        Args:
            window_id: Only groups in this window
            title: Only groups with exactly this title

        Returns:
            List of matching groups
        """
        pass

    @abstractmethod
    async def get_group(self, group_id: int) -> TabGroup:
        """
        Get a tab group by ID.

        Args:
            group_id: ID of the group

        Returns:
            The group
        """
        pass

    @abstractmethod
    async def group_tabs(self, tab_ids: list[int], group_id: Optional[int] = None) -> int:
        """
        Move tabs into a group, creating a new group if no ID is given.

        Args:
            tab_ids: Tabs to move
            group_id: Existing group to add the tabs to

        Returns:
            ID of the group now containing the tabs
        """
        pass

    @abstractmethod
    async def update_group(
        self,
        group_id: int,
        title: Optional[str] = None,
        color: Optional[GroupColor] = None,
    ) -> TabGroup:
        """
        Update a group's title and/or color.

        Args:
            group_id: ID of the group
            title: New title
            color: New color

        Returns:
            The updated group
        """
        pass

    @abstractmethod
    async def remove_group(self, group_id: int) -> None:
        """
        Remove a tab group.

        Args:
            group_id: ID of the group
        """
        pass

    async def close(self) -> None:
        """Release any resources held by the backend."""
        return None

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()
