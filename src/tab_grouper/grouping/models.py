"""
Data models for tab grouping.

This module defines the records the grouping engine reads from the host
(tabs and tab groups), the metadata and settings snapshots it decides with,
and the grouping state and statistics it persists.
"""

from datetime import datetime, UTC
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class GroupColor(str, Enum):
    """Available colors for tab groups (host tab group palette)."""
    GREY = "grey"
    BLUE = "blue"
    RED = "red"
    YELLOW = "yellow"
    GREEN = "green"
    PINK = "pink"
    PURPLE = "purple"
    CYAN = "cyan"


AVAILABLE_COLORS: tuple[GroupColor, ...] = tuple(GroupColor)

DEFAULT_FALLBACK_CATEGORY = "Other"

DEFAULT_CLEANUP_GRACE_MS = 300_000

CATEGORY_KEYWORDS: dict[str, list[str]] = {
    "Gaming": ["gameplay", "gaming", "twitch", "esports", "fps", "rpg", "speedrun", "fortnite", "minecraft"],
    "Music": ["music", "song", "album", "artist", "concert", "cover", "remix", "lyrics"],
    "Tech": ["tech", "gadget", "review", "iphone", "laptop", "cpu", "gpu", "software", "coding"],
    "Cooking": ["recipe", "cooking", "food", "kitchen", "chef", "baking", "meal", "cuisine"],
    "Fitness": ["workout", "gym", "exercise", "fitness", "yoga", "training", "diet", "health"],
    "Education": ["tutorial", "course", "learn", "how to", "guide", "lesson", "education"],
    "News": ["news", "breaking", "current events", "politics", "world", "daily"],
    "Entertainment": ["movie", "series", "trailer", "reaction", "comedy", "funny", "meme"],
}


def is_group_color(value: Any) -> bool:
    """Check whether a value names a color in the host palette."""
    if isinstance(value, GroupColor):
        return True
    return isinstance(value, str) and value in GroupColor._value2member_map_


def to_group_color(value: Any) -> Optional[GroupColor]:
    """Convert a raw color value to GroupColor, or None if it is not in the palette."""
    if not is_group_color(value):
        return None
    return GroupColor(value)


def _trimmed(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, (list, tuple)):
        return []
    return [item.strip() for item in value if isinstance(item, str) and item.strip()]


def _non_negative_int(value: Any) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return 0
    return number if number > 0 else 0


class Tab(BaseModel):
    """Represents a browser tab as reported by the host.

    Attributes:
        id: Host tab ID (may be missing for tabs the host cannot address)
        window_id: Host window ID containing this tab
        title: The title of the tab
        url: The URL of the tab
        group_id: Tab group the tab belongs to, None when ungrouped
        active: Whether the tab is the active tab of its window
    """

    id: Optional[int] = None
    window_id: Optional[int] = None
    title: str = ""
    url: str = ""
    group_id: Optional[int] = None
    active: bool = False

    @field_validator('group_id', mode='before')
    @classmethod
    def ungrouped_as_none(cls, v):
        """The host reports ungrouped tabs with a negative group ID."""
        if v is None:
            return None
        return v if int(v) >= 0 else None

    @field_validator('title', 'url', mode='before')
    @classmethod
    def convert_none_to_empty_string(cls, v):
        return v if v is not None else ""


class TabGroup(BaseModel):
    """Represents a host tab group.

    Attributes:
        id: Host group ID
        window_id: Window the group lives in
        title: Group title (the category it was created for)
        color: Group color, None if the host reported a color outside the palette
    """

    id: int
    window_id: int
    title: str = ""
    color: Optional[GroupColor] = None

    @field_validator('color', mode='before')
    @classmethod
    def drop_unknown_color(cls, v):
        return to_group_color(v)

    @field_validator('title', mode='before')
    @classmethod
    def convert_none_to_empty_string(cls, v):
        return v if v is not None else ""


class Metadata(BaseModel):
    """Best-effort page metadata used for category resolution.

    All fields are optional; strings are trimmed and empty keywords dropped.
    """

    title: str = ""
    channel: str = ""
    description: str = ""
    keywords: list[str] = Field(default_factory=list)
    external_category: Optional[Union[int, str]] = None

    @field_validator('title', 'channel', 'description', mode='before')
    @classmethod
    def trim_strings(cls, v):
        return _trimmed(v)

    @field_validator('keywords', mode='before')
    @classmethod
    def clean_keywords(cls, v):
        return _string_list(v)

    @field_validator('external_category', mode='before')
    @classmethod
    def normalize_external_category(cls, v):
        if isinstance(v, bool):
            return None
        if isinstance(v, int):
            return v
        if isinstance(v, str):
            return v.strip() or None
        return None

    def normalized(self, fallback_title: str = "") -> "Metadata":
        """Return a copy whose empty title is filled from the tab title."""
        if self.title or not fallback_title:
            return self
        return self.model_copy(update={"title": fallback_title.strip()})


class GroupingSettings(BaseModel):
    """User settings snapshot consulted by a grouping request.

    Values are normalized on construction so that stored settings written by
    older versions (or edited by hand) are always usable.
    """

    ai_category_detection: bool = True
    category_keywords: dict[str, list[str]] = Field(
        default_factory=lambda: {k: list(v) for k, v in CATEGORY_KEYWORDS.items()}
    )
    channel_category_map: dict[str, str] = Field(default_factory=dict)
    enabled_colors: dict[GroupColor, bool] = Field(
        default_factory=lambda: {color: True for color in AVAILABLE_COLORS}
    )
    auto_cleanup_enabled: bool = True
    auto_cleanup_grace_ms: int = DEFAULT_CLEANUP_GRACE_MS
    extension_enabled: bool = True
    debug_logging: bool = False

    model_config = ConfigDict(frozen=True)

    @field_validator('category_keywords', mode='before')
    @classmethod
    def merge_category_keywords(cls, v):
        """Merge user keywords over the built-in table.

        An empty keyword list for a built-in category keeps the built-in keywords.
        """
        if not isinstance(v, dict):
            return {k: list(words) for k, words in CATEGORY_KEYWORDS.items()}

        merged: dict[str, list[str]] = {}
        for category in [*CATEGORY_KEYWORDS, *(k for k in v if k not in CATEGORY_KEYWORDS)]:
            if not isinstance(category, str) or not category.strip():
                continue
            keywords = _string_list(v.get(category))
            if keywords:
                merged[category] = keywords
            else:
                merged[category] = list(CATEGORY_KEYWORDS.get(category, []))
        return merged

    @field_validator('channel_category_map', mode='before')
    @classmethod
    def clean_channel_map(cls, v):
        if not isinstance(v, dict):
            return {}
        cleaned: dict[str, str] = {}
        for channel, category in v.items():
            channel = _trimmed(channel)
            if not channel:
                continue
            cleaned[channel] = _trimmed(category) or DEFAULT_FALLBACK_CATEGORY
        return cleaned

    @field_validator('enabled_colors', mode='before')
    @classmethod
    def normalize_enabled_colors(cls, v):
        """Cover every palette color; restore the full palette if all are disabled."""
        if not isinstance(v, dict):
            return {color: True for color in AVAILABLE_COLORS}

        raw = {getattr(key, "value", key): enabled for key, enabled in v.items()}
        normalized = {color: raw.get(color.value) is not False for color in AVAILABLE_COLORS}
        if not any(normalized.values()):
            return {color: True for color in AVAILABLE_COLORS}
        return normalized

    @field_validator('auto_cleanup_grace_ms', mode='before')
    @classmethod
    def validate_grace(cls, v):
        try:
            grace = int(v)
        except (TypeError, ValueError):
            return DEFAULT_CLEANUP_GRACE_MS
        return grace if grace >= 0 else DEFAULT_CLEANUP_GRACE_MS

    def enabled_color_list(self) -> list[GroupColor]:
        """Enabled colors in palette order (never empty after normalization)."""
        enabled = [color for color in AVAILABLE_COLORS if self.enabled_colors.get(color)]
        return enabled or list(AVAILABLE_COLORS)


class GroupingState(BaseModel):
    """Persisted category -> color and category -> group ID mapping."""

    category_color_map: dict[str, GroupColor] = Field(default_factory=dict)
    category_group_id_map: dict[str, int] = Field(default_factory=dict)

    @field_validator('category_color_map', mode='before')
    @classmethod
    def drop_invalid_colors(cls, v):
        if not isinstance(v, dict):
            return {}
        return {k: c for k, c in v.items() if isinstance(k, str) and is_group_color(c)}

    @field_validator('category_group_id_map', mode='before')
    @classmethod
    def drop_invalid_ids(cls, v):
        if not isinstance(v, dict):
            return {}
        cleaned = {}
        for category, group_id in v.items():
            if isinstance(category, str) and isinstance(group_id, int) and not isinstance(group_id, bool):
                cleaned[category] = group_id
        return cleaned


class GroupingStats(BaseModel):
    """Grouping outcome counters.

    Attributes:
        total_grouped: Tabs grouped successfully since the last reset
        category_count: Successful groupings per category
        grouping_successes: Successful group_tab calls
        grouping_failures: Failed group_tab calls
        total_duration_ms: Sum of successful grouping durations
        last_duration_ms: Duration of the most recent grouping attempt
        last_reset: When the counters were last reset
    """

    total_grouped: int = 0
    category_count: dict[str, int] = Field(default_factory=dict)
    grouping_successes: int = 0
    grouping_failures: int = 0
    total_duration_ms: float = 0.0
    last_duration_ms: float = 0.0
    last_reset: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @model_validator(mode='before')
    @classmethod
    def migrate_legacy_payload(cls, data):
        """Accept stats written before the snake_case schema."""
        if not isinstance(data, dict):
            return {}
        nested = data.get("groupingStats")
        if isinstance(nested, dict):
            data = nested
        data = dict(data)
        if "totalTabs" in data and "total_grouped" not in data:
            data["total_grouped"] = data.pop("totalTabs")
        if "categoryCount" in data and "category_count" not in data:
            data["category_count"] = data.pop("categoryCount")
        if "lastReset" in data and "last_reset" not in data:
            data.pop("lastReset")
        return data

    @field_validator('total_grouped', 'grouping_successes', 'grouping_failures', mode='before')
    @classmethod
    def coerce_counts(cls, v):
        return _non_negative_int(v)

    @field_validator('category_count', mode='before')
    @classmethod
    def coerce_category_count(cls, v):
        if not isinstance(v, dict):
            return {}
        return {
            category.strip(): _non_negative_int(count)
            for category, count in v.items()
            if isinstance(category, str) and category.strip()
        }

    @field_validator('total_duration_ms', 'last_duration_ms', mode='before')
    @classmethod
    def coerce_durations(cls, v):
        try:
            duration = float(v)
        except (TypeError, ValueError):
            return 0.0
        return duration if duration > 0 else 0.0


class GroupTabResult(BaseModel):
    """Result of grouping a single tab."""

    group_id: int
    color: GroupColor
    category: str


class BatchGroupResult(BaseModel):
    """Result of grouping several tabs; failures are counted, not fatal."""

    count: int = 0
    errors: list[str] = Field(default_factory=list)


class CleanupReport(BaseModel):
    """Outcome of one cleanup sweep.

    Attributes:
        removed: Group IDs removed during this pass
        pending: Group IDs still empty but inside their grace period
    """

    removed: list[int] = Field(default_factory=list)
    pending: list[int] = Field(default_factory=list)
