"""
Abstract base class for grouping state storage backends.
"""

from abc import ABC, abstractmethod

from tab_grouper.grouping.models import GroupingSettings, GroupingState, GroupingStats


class GroupingStore(ABC):
    """Abstract interface for persisting grouping state, stats and settings.

    Writes replace the whole document (last writer wins); merging is the
    caller's job. Implementations raise PersistenceError on failure.
    """

    @abstractmethod
    async def read_grouping_state(self) -> GroupingState:
        """
        Load the category -> color / group ID mapping.

        Returns:
            Stored state, or an empty state if nothing was saved yet
        """
        pass

    @abstractmethod
    async def write_grouping_state(self, state: GroupingState) -> None:
        """
        Replace the stored grouping state.

        Args:
            state: Full mapping to store
        """
        pass

    @abstractmethod
    async def read_stats(self) -> GroupingStats:
        """
        Load grouping statistics.

        Returns:
            Stored stats, or zeroed stats if nothing was saved yet
        """
        pass

    @abstractmethod
    async def write_stats(self, stats: GroupingStats) -> None:
        """
        Replace the stored statistics.

        Args:
            stats: Stats to store
        """
        pass

    @abstractmethod
    async def read_settings(self) -> GroupingSettings:
        """
        Load the user's grouping settings.

        Returns:
            Stored settings, or defaults if nothing was saved yet
        """
        pass

    @abstractmethod
    async def write_settings(self, settings: GroupingSettings) -> None:
        """
        Replace the stored settings.

        Args:
            settings: Settings to store
        """
        pass

    @abstractmethod
    def close(self):
        """Close the storage backend."""
        pass

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
