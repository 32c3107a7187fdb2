"""
Multi-level sorting for folders and folder items.

Three independently configured levels (primary, secondary, tertiary) form a
comparator chain. Preferences are stored as strings such as ``"alphabetical-asc"``
or ``"none"``.
"""

import locale
import logging
from dataclasses import dataclass
from functools import cmp_to_key, lru_cache
from typing import Callable, List, Optional, Sequence, TypeVar

from .folder import Folder, FolderItem
from .collaborators import Application, get_item_display_name

logger = logging.getLogger(__name__)

T = TypeVar("T")

SORT_ALPHABETICAL = "alphabetical"
SORT_LENGTH = "length"
SORT_RECENT = "recent"
SORT_NONE = "none"

SORT_METHODS = (SORT_ALPHABETICAL, SORT_LENGTH, SORT_RECENT, SORT_NONE)
SORT_DIRECTIONS = ("asc", "desc")

DEFAULT_SORT = "alphabetical-asc"
NO_SORT = "none"

_METHOD_ALIASES = {"recency": SORT_RECENT}


@dataclass(frozen=True)
class SortConfig:
    method: str = SORT_NONE
    direction: str = "asc"


@lru_cache(maxsize=64)
def parse_sort_preference(value: str) -> SortConfig:
    """
    Parse a preference value into a SortConfig.

    Args:
        value: ``"none"`` or ``"<method>-<direction>"``

    Returns:
        SortConfig; unknown values fall back to no sorting

    Example:
        >>> parse_sort_preference("length-desc")
        SortConfig(method='length', direction='desc')
    """
    if not value or value == SORT_NONE:
        return SortConfig(SORT_NONE, "asc")

    method, _, direction = value.partition("-")
    method = _METHOD_ALIASES.get(method, method)
    if method not in SORT_METHODS:
        logger.warning(f"Unknown sort preference '{value}', leaving order unchanged")
        return SortConfig(SORT_NONE, "asc")
    if direction not in SORT_DIRECTIONS:
        direction = "asc"
    return SortConfig(method, direction)


def _locale_compare(a: str, b: str) -> int:
    result = locale.strcoll(a.casefold(), b.casefold())
    if result == 0:
        result = locale.strcoll(a, b)
    return result


def compare(a: T, b: T, config: SortConfig, get_name: Callable[[T], str],
            get_time: Callable[[T], Optional[int]]) -> int:
    """
    Compare two entries under one sort level.

    ``recent`` puts the most recently used entry first in ascending direction;
    entries never used count as the oldest possible value.
    """
    if config.method == SORT_ALPHABETICAL:
        result = _locale_compare(get_name(a), get_name(b))
    elif config.method == SORT_LENGTH:
        result = len(get_name(a)) - len(get_name(b))
    elif config.method == SORT_RECENT:
        result = (get_time(b) or 0) - (get_time(a) or 0)
    else:
        return 0

    if result > 0:
        result = 1
    elif result < 0:
        result = -1
    return -result if config.direction == "desc" else result


def _sort_chain(entries: Sequence[T], preferences: Sequence[str],
                get_name: Callable[[T], str], get_time: Callable[[T], Optional[int]]) -> List[T]:
    configs = [parse_sort_preference(value) for value in preferences]

    if all(config.method == SORT_NONE for config in configs):
        return list(entries)

    def chained(a: T, b: T) -> int:
        for config in configs:
            result = compare(a, b, config, get_name, get_time)
            if result != 0:
                return result
        return 0

    # sorted() is stable, so fully tied entries keep their stored order
    return sorted(entries, key=cmp_to_key(chained))


def sort_folders(folders: Sequence[Folder], primary: str = DEFAULT_SORT,
                 secondary: str = NO_SORT, tertiary: str = NO_SORT) -> List[Folder]:
    """
    Sort folders through the primary/secondary/tertiary chain.

    Returns:
        New list; the stored order when every level is ``none``
    """
    return _sort_chain(folders, (primary, secondary, tertiary),
                       lambda folder: folder.name, lambda folder: folder.last_used)


def sort_folder_items(items: Sequence[FolderItem], primary: str = DEFAULT_SORT,
                      secondary: str = NO_SORT, tertiary: str = NO_SORT,
                      applications: Optional[List[Application]] = None,
                      folders: Optional[List[Folder]] = None) -> List[FolderItem]:
    """
    Sort items of a folder through the primary/secondary/tertiary chain.

    Display names resolve through the application catalog and the folder list when
    they are given, so an application item sorts by the catalog's name.
    """
    if applications is None and folders is None:
        get_name = lambda item: item.name
    else:
        get_name = lambda item: get_item_display_name(item, applications, folders)

    return _sort_chain(items, (primary, secondary, tertiary), get_name, lambda item: item.last_used)
