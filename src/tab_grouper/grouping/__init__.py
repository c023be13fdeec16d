"""
Tab grouping engine.

This package provides:
- Category resolution from page metadata (CategoryResolver)
- Per-category color assignment (ColorAssigner)
- Grouping state ownership and reconciliation (GroupStateCoordinator)
- Empty group cleanup (CleanupCoordinator, CleanupScheduler)
- Orchestration of the above (TabGroupingService)

Only the dependency-free pieces are re-exported here; import the services
from their modules.
"""

from tab_grouper.grouping.category_resolver import CategoryResolver
from tab_grouper.grouping.errors import (
    ConfigurationError,
    GroupingError,
    HostOperationError,
    PersistenceError,
    PreconditionError,
)
from tab_grouper.grouping.lock_manager import LockManager
from tab_grouper.grouping.models import (
    GroupColor,
    GroupingSettings,
    GroupingState,
    GroupingStats,
    Metadata,
    Tab,
    TabGroup,
)

__all__ = [
    "CategoryResolver",
    "ConfigurationError",
    "GroupingError",
    "HostOperationError",
    "PersistenceError",
    "PreconditionError",
    "LockManager",
    "GroupColor",
    "GroupingSettings",
    "GroupingState",
    "GroupingStats",
    "Metadata",
    "Tab",
    "TabGroup",
]
