"""
Duplicate detection for folder items.

Each item gets an identity key: the normalized URL for websites, the path for
applications and the target folder id for folder references. The first occurrence
of a key is kept and later ones count as duplicates.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .folder import ApplicationItem, FolderItem, FolderReferenceItem, WebsiteItem
from .urls import normalize_url, parse_website_urls

logger = logging.getLogger(__name__)


@dataclass
class DuplicateReport:
    has_duplicates: bool = False
    duplicate_count: int = 0
    unique_items: List[FolderItem] = field(default_factory=list)


def get_item_key(item: FolderItem) -> Optional[str]:
    """
    Identity key of an item, or None when the item has nothing to identify it by.

    Example:
        >>> get_item_key(WebsiteItem("1", "x", "x.com"))
        'website:https://x.com'
    """
    if isinstance(item, WebsiteItem):
        url = normalize_url(item.url)
        return f"website:{url}" if url else None
    if isinstance(item, ApplicationItem):
        return f"app:{item.path}" if item.path else None
    if isinstance(item, FolderReferenceItem):
        return f"folder:{item.folder_id}" if item.folder_id else None
    raise TypeError(f"Unsupported folder item: {item!r}")


def find_duplicate_items(items: List[FolderItem]) -> DuplicateReport:
    """
    Scan items in order and separate first occurrences from duplicates.

    Items without a key are always kept. Applying this to its own
    ``unique_items`` finds no further duplicates.
    """
    seen = set()
    unique_items = []
    duplicate_count = 0

    for item in items:
        key = get_item_key(item)
        if key is None:
            unique_items.append(item)
        elif key in seen:
            duplicate_count += 1
        else:
            seen.add(key)
            unique_items.append(item)

    return DuplicateReport(
        has_duplicates=duplicate_count > 0,
        duplicate_count=duplicate_count,
        unique_items=unique_items,
    )


def find_existing_duplicates(new_items: List[FolderItem], existing_items: List[FolderItem]) -> List[FolderItem]:
    """New items whose identity key already appears among the existing items."""
    existing_keys = {get_item_key(item) for item in existing_items}
    existing_keys.discard(None)
    return [item for item in new_items if get_item_key(item) in existing_keys]


def find_duplicate_urls(url_text: str, existing_items: List[FolderItem]) -> List[Dict[str, str]]:
    """
    URLs in pasted text that already exist as website items.

    Returns:
        List of ``{"url": ..., "name": ...}`` using the existing item's name
    """
    existing_by_url = {}
    for item in existing_items:
        if isinstance(item, WebsiteItem) and item.url:
            existing_by_url.setdefault(normalize_url(item.url), item)

    return [{"url": url, "name": existing_by_url[url].name}
            for url in parse_website_urls(url_text) if url in existing_by_url]
