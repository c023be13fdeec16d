"""
Category resolution for grouping requests.

Resolution is a fixed-priority chain of strategies; the first one that
produces a non-empty category wins:

1. Explicit override supplied by the caller
2. Channel -> category mapping from the user's settings
3. Keyword scoring over title, description and keywords (if enabled)
4. Platform-provided category label mapped onto our categories
5. Fallback category
"""

import re
from typing import Callable, Optional, Union

from tab_grouper.config import get_logger
from tab_grouper.grouping.models import DEFAULT_FALLBACK_CATEGORY, GroupingSettings, Metadata

logger = get_logger(__name__)

EXTERNAL_CATEGORY_MAP: dict[str, str] = {
    "Music": "Music",
    "Gaming": "Gaming",
    "Entertainment": "Entertainment",
    "Sports": "Fitness",
    "News & Politics": "News",
    "Education": "Education",
    "Tech": "Tech",
    "Cooking": "Cooking",
    "Howto & Style": "Education",
    "Travel & Events": "Entertainment",
    "People & Blogs": "Entertainment",
    "Comedy": "Entertainment",
    "Film & Animation": "Entertainment",
    "Autos": "Tech",
    "Pets & Animals": "Entertainment",
    "Nonprofits & Activism": "News",
}


def map_external_category(label: Optional[Union[int, str]]) -> str:
    """
    Map a platform-provided category label onto one of our categories.

    Args:
        label: Category label reported by the page (e.g. "News & Politics")

    Returns:
        Mapped category, or "" if the label is unknown
    """
    if label is None or label == "":
        return ""
    return EXTERNAL_CATEGORY_MAP.get(str(label).strip(), "")


def score_keywords(text: str, category_keywords: dict[str, list[str]]) -> dict[str, int]:
    """
    Count whole-word keyword hits per category.

    Args:
        text: Text to search (already lower-cased by the caller)
        category_keywords: Category -> keywords

    Returns:
        Category -> score, only for categories with at least one hit.
        Insertion order follows ``category_keywords``.
    """
    scores: dict[str, int] = {}
    for category, keywords in category_keywords.items():
        score = 0
        for keyword in keywords or []:
            keyword = keyword.strip()
            if not keyword:
                continue
            pattern = re.compile(rf"\b{re.escape(keyword)}\b", re.IGNORECASE)
            score += len(pattern.findall(text))
        if score > 0:
            scores[category] = score
    return scores


class CategoryResolver:
    """
    Decides which category a tab belongs to.

    The resolver is pure: it only looks at the metadata, the settings snapshot
    and the requested category, and never performs I/O.
    """

    def __init__(self, fallback_category: str = DEFAULT_FALLBACK_CATEGORY):
        """
        Initialize the resolver.

        Args:
            fallback_category: Category used when no strategy matches
        """
        self.fallback_category = fallback_category.strip() or DEFAULT_FALLBACK_CATEGORY

    def resolve(
        self,
        metadata: Optional[Metadata],
        settings: GroupingSettings,
        requested_category: Optional[str] = None,
        fallback_category: Optional[str] = None,
    ) -> str:
        """
        Resolve the category for a tab.

        Args:
            metadata: Page metadata (may be None)
            settings: Settings snapshot for this request
            requested_category: Explicit category from the caller; wins when non-blank
            fallback_category: Per-call fallback override

        Returns:
            Non-empty category string
        """
        metadata = metadata or Metadata()
        strategies: list[tuple[str, Callable[[], str]]] = [
            ("override", lambda: requested_category or ""),
            ("channel", lambda: self._from_channel(metadata, settings)),
            ("keywords", lambda: self._from_keywords(metadata, settings)),
            ("external", lambda: map_external_category(metadata.external_category)),
        ]

        for name, strategy in strategies:
            category = (strategy() or "").strip()
            if category:
                logger.debug(f"Resolved category '{category}' via {name}")
                return category

        fallback = (fallback_category or "").strip()
        return fallback or self.fallback_category

    def _from_channel(self, metadata: Metadata, settings: GroupingSettings) -> str:
        if not metadata.channel:
            return ""
        return settings.channel_category_map.get(metadata.channel, "")

    def _from_keywords(self, metadata: Metadata, settings: GroupingSettings) -> str:
        if not settings.ai_category_detection:
            return ""

        text = f"{metadata.title} {metadata.description} {' '.join(metadata.keywords)}".lower()
        scores = score_keywords(text, settings.category_keywords)

        best_category = ""
        best_score = 0
        for category, score in scores.items():
            # Strictly greater: ties keep the first category seen
            if score > best_score:
                best_category = category
                best_score = score
        return best_category
