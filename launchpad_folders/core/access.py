"""
Recency bookkeeping for folders and items.

These helpers are best-effort: a missing id or an unchanged timestamp returns None
so the caller skips the write.
"""

import time
from dataclasses import replace
from typing import List, Optional

from .folder import Folder


def now_ms() -> int:
    """Current time in milliseconds since the epoch, the unit stored in ``lastUsed``."""
    return int(time.time() * 1000)


def touch_folder(folders: List[Folder], folder_id: str, now: Optional[int] = None) -> Optional[List[Folder]]:
    now = now_ms() if now is None else now
    for index, folder in enumerate(folders):
        if folder.id == folder_id:
            if folder.last_used == now:
                return None
            updated = list(folders)
            updated[index] = folder.with_changes(last_used=now)
            return updated
    return None


def touch_item(folders: List[Folder], folder_id: str, item_id: str,
               now: Optional[int] = None) -> Optional[List[Folder]]:
    now = now_ms() if now is None else now
    for index, folder in enumerate(folders):
        if folder.id != folder_id:
            continue
        for item_index, item in enumerate(folder.items):
            if item.id != item_id:
                continue
            if item.last_used == now:
                return None
            items = list(folder.items)
            items[item_index] = replace(item, last_used=now)
            updated = list(folders)
            updated[index] = folder.with_changes(items=items)
            return updated
        return None
    return None
