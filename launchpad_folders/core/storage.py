"""
Folder Store for Launchpad Folders

This module owns the in-memory folder collection and its write-through persistence
to a blob store. The whole collection is always read and written as one JSON blob.

Key Features:
- Cached reads with a single in-flight load shared by concurrent callers
- Write-through saves: the cache is updated before the write, writes persist in order
- Orphaned nested-folder references reconciled on every fresh load
- Folder and item mutations, each committed as exactly one write
- Nesting constraints double-checked at write time
- Best-effort recency recording
"""

import json
import asyncio
import logging
from typing import Callable, Dict, List, Optional, Union

from .folder import (
    Folder,
    FolderItem,
    FolderReferenceItem,
    WebsiteItem,
    FolderNotFoundError,
    FolderValidationError,
    ItemNotFoundError,
    copy_item_with_new_id,
    create_folder_reference_item,
    generate_id,
    is_valid_hex_color,
    new_folder,
    normalize_hex_color,
)
from .blob_store import BlobDecodeError, BlobStore, JsonFileBlobStore, StorageError
from .validation import cleanup_orphaned_references
from .hierarchy import check_nesting_constraints
from .dedupe import find_duplicate_items, find_existing_duplicates
from .access import touch_folder, touch_item
from .collaborators import ConfirmationPrompt, FaviconAcquirer, ask_confirmation

logger = logging.getLogger(__name__)

STORAGE_KEY = "launchpad-folders"

UPDATABLE_FIELDS = ("name", "items", "icon", "color")

Listener = Callable[[List[Folder]], None]


def _pluralize(count: int, singular: str) -> str:
    return singular if count == 1 else f"{singular}s"


class FolderStore:
    """
    Cached, write-through store for the folder collection.

    Every instance owns its cache and in-flight load handle, so several stores
    (for example one per test) never share state.
    """

    def __init__(self, blob_store: Optional[BlobStore] = None, storage_key: str = STORAGE_KEY):
        """
        Args:
            blob_store: Persistent store for the serialized collection. Defaults to a
                JsonFileBlobStore in the resolved data directory.
            storage_key: Name of the blob holding the collection
        """
        self._blob_store = blob_store if blob_store is not None else JsonFileBlobStore()
        self._storage_key = storage_key
        self._cache: Optional[List[Folder]] = None
        self._pending: Optional[asyncio.Future] = None
        self._generation = 0
        self._write_lock = asyncio.Lock()
        self._listeners: List[Listener] = []

    @property
    def blob_store(self) -> BlobStore:
        return self._blob_store

    # Cache

    async def load(self) -> List[Folder]:
        """
        Return the current collection.

        Served from the cache when possible. Otherwise one load task reads the blob
        store and every concurrent caller awaits that same task.

        Raises:
            StorageError: If the blob store cannot be read
        """
        if self._cache is not None:
            return self._cache

        pending = self._pending
        if pending is None:
            pending = asyncio.ensure_future(self._load_from_store(self._generation))
            pending.add_done_callback(self._clear_pending)
            self._pending = pending

        # A cancelled caller must not cancel the load other callers are awaiting
        return await asyncio.shield(pending)

    def _clear_pending(self, future: asyncio.Future) -> None:
        if self._pending is future:
            self._pending = None

    async def _load_from_store(self, generation: int) -> List[Folder]:
        try:
            raw = await self._blob_store.get(self._storage_key)
        except (BlobDecodeError, UnicodeDecodeError) as e:
            logger.warning(f"Stored folders are not readable text, starting with an empty collection: {e}")
            raw = None
        except StorageError:
            raise
        except OSError as e:
            raise StorageError(f"Failed to read folders: {e}")

        folders = self._decode(raw)

        cleaned, changed = cleanup_orphaned_references(folders)
        if changed and generation == self._generation:
            logger.info("Persisting folders after orphaned reference cleanup")
            await self.save(cleaned)
            return cleaned

        if generation == self._generation:
            self._cache = cleaned
        return cleaned

    def _decode(self, raw: Optional[str]) -> List[Folder]:
        """Decode the persisted blob; undecodable data yields an empty collection."""
        if raw is None or not raw.strip():
            return []

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning(f"Stored folders are not valid JSON, starting with an empty collection: {e}")
            return []

        if not isinstance(data, list):
            logger.warning("Stored folders are not a list, starting with an empty collection")
            return []

        folders = []
        seen_ids = set()
        for entry in data:
            try:
                folder = Folder.from_dict(entry, salvage=True)
            except FolderValidationError as e:
                logger.warning(f"Skipping corrupted folder record: {e}")
                continue
            if folder.id in seen_ids:
                logger.warning(f"Skipping folder with duplicate id '{folder.id}'")
                continue
            seen_ids.add(folder.id)
            folders.append(folder)
        return folders

    @staticmethod
    def encode(folders: List[Folder]) -> str:
        return json.dumps([folder.to_dict() for folder in folders], ensure_ascii=False)

    async def save(self, folders: List[Folder]) -> None:
        """
        Replace the whole collection.

        The cache is updated before the write is awaited, so readers see the new
        state immediately. Writes reach the blob store in the order they were issued.

        Raises:
            StorageError: If the write fails; the cache is dropped so the next load
                re-reads the persisted state
        """
        folders = list(folders)
        self._cache = folders
        self._generation += 1
        payload = self.encode(folders)

        async with self._write_lock:
            try:
                await self._blob_store.set(self._storage_key, payload)
            except (StorageError, OSError) as e:
                logger.error(f"Failed to save {len(folders)} folders: {e}")
                # A later save may already own the cache
                if self._cache is folders:
                    self.invalidate()
                if isinstance(e, StorageError):
                    raise
                raise StorageError(f"Failed to save folders: {e}")

        self._notify(folders)

    def invalidate(self) -> None:
        """Force the next load to re-read the blob store."""
        self._cache = None
        self._pending = None
        self._generation += 1

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register a callback invoked with the collection after every save.

        Returns:
            Callable removing the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, folders: List[Folder]) -> None:
        for listener in list(self._listeners):
            try:
                listener(folders)
            except Exception as e:
                logger.warning(f"Folder listener failed: {e}")

    # Lookups

    async def get_folder_by_id(self, folder_id: str) -> Optional[Folder]:
        for folder in await self.load():
            if folder.id == folder_id:
                return folder
        return None

    async def require_folder(self, folder_id: str) -> Folder:
        """
        Raises:
            FolderNotFoundError: If no folder has this id
        """
        folder = await self.get_folder_by_id(folder_id)
        if folder is None:
            raise FolderNotFoundError(f"Folder not found: {folder_id}")
        return folder

    @staticmethod
    def _index_of(folders: List[Folder], folder_id: str) -> int:
        for index, folder in enumerate(folders):
            if folder.id == folder_id:
                return index
        raise FolderNotFoundError(f"Folder not found: {folder_id}")

    @staticmethod
    def _item_index(folder: Folder, item_id: str) -> int:
        for index, item in enumerate(folder.items):
            if item.id == item_id:
                return index
        raise ItemNotFoundError(f"Item '{item_id}' not found in folder '{folder.name}'")

    async def _commit(self, before: List[Folder], after: List[Folder]) -> None:
        check_nesting_constraints(before, after)
        await self.save(after)

    # Folder mutations

    async def add_folder(self, folder: Folder) -> Folder:
        """
        Append a folder to the collection.

        Raises:
            FolderValidationError: If a folder with the same id exists or item ids repeat
            NestingConstraintError: If the folder's references break a nesting invariant
        """
        folders = await self.load()
        if any(existing.id == folder.id for existing in folders):
            raise FolderValidationError(f"Folder id already exists: {folder.id}")
        _check_unique_item_ids(folder.items, folder.name)

        await self._commit(folders, folders + [folder])
        logger.info(f"Created folder '{folder.name}' with {len(folder.items)} items")
        return folder

    async def create_folder(self, name: str, items: Optional[List[FolderItem]] = None,
                            icon: Optional[str] = None, color: Optional[str] = None) -> Folder:
        """Create a folder with a generated id and append it."""
        return await self.add_folder(new_folder(name, items, icon, color))

    async def update_folder(self, folder_id: str, **updates) -> Folder:
        """
        Replace whole fields of a folder (``name``, ``items``, ``icon``, ``color``) in one write.

        Args:
            folder_id: Folder to update
            **updates: Field replacements; ``None`` clears ``icon``/``color``

        Returns:
            The updated folder

        Raises:
            FolderNotFoundError: If the folder does not exist
            FolderValidationError: If a field is unknown or invalid
            NestingConstraintError: If new folder references break a nesting invariant
        """
        unknown = set(updates) - set(UPDATABLE_FIELDS)
        if unknown:
            raise FolderValidationError(f"Cannot update folder fields: {', '.join(sorted(unknown))}")

        changes = dict(updates)
        if "name" in changes:
            name = changes["name"]
            if not isinstance(name, str) or not name.strip():
                raise FolderValidationError("Folder name cannot be empty")
            changes["name"] = name.strip()
        if changes.get("color"):
            if not is_valid_hex_color(changes["color"]):
                raise FolderValidationError(f"Invalid folder color: {changes['color']}")
            changes["color"] = normalize_hex_color(changes["color"])
        if "items" in changes:
            changes["items"] = list(changes["items"])
            _check_unique_item_ids(changes["items"], folder_id)

        folders = await self.load()
        index = self._index_of(folders, folder_id)
        updated = list(folders)
        updated[index] = folders[index].with_changes(**changes)

        await self._commit(folders, updated)
        return updated[index]

    async def delete_folder(self, folder_id: str) -> Folder:
        """
        Delete a folder and strip every reference to it, in one write.

        Returns:
            The deleted folder

        Raises:
            FolderNotFoundError: If the folder does not exist
        """
        folders = await self.load()
        deleted = folders[self._index_of(folders, folder_id)]

        remaining = []
        cleanup_count = 0
        for folder in folders:
            if folder.id == folder_id:
                continue
            kept = [item for item in folder.items
                    if not (isinstance(item, FolderReferenceItem) and item.folder_id == folder_id)]
            if len(kept) != len(folder.items):
                cleanup_count += 1
                folder = folder.with_changes(items=kept)
            remaining.append(folder)

        await self.save(remaining)

        if cleanup_count > 0:
            logger.info(f"Deleted folder '{deleted.name}' and removed references from {cleanup_count} folders")
        else:
            logger.info(f"Deleted folder '{deleted.name}'")
        return deleted

    async def replace_all(self, folders: List[Folder]) -> None:
        """
        Replace the entire collection verbatim.

        Raises:
            FolderValidationError: If folder ids repeat
        """
        seen = set()
        for folder in folders:
            if folder.id in seen:
                raise FolderValidationError(f"Duplicate folder id: {folder.id}")
            seen.add(folder.id)
        await self.save(folders)

    # Item mutations

    async def replace_items(self, folder_id: str, items: List[FolderItem]) -> Folder:
        return await self.update_folder(folder_id, items=items)

    async def add_items(self, folder_id: str, items: List[FolderItem],
                        confirm_duplicates: Optional[ConfirmationPrompt] = None) -> List[FolderItem]:
        """
        Append items to a folder.

        When some new items duplicate existing ones, the confirmation prompt decides
        whether the duplicates are added too; without a prompt they are skipped.

        Returns:
            The items actually added
        """
        folder = await self.require_folder(folder_id)
        items = list(items)

        duplicates = find_existing_duplicates(items, folder.items)
        if duplicates:
            names = "\n".join(f"- {item.name} ({item.type})" for item in duplicates)
            message = (f"{len(duplicates)} {_pluralize(len(duplicates), 'item')} already "
                       f"exist in '{folder.name}':\n\n{names}\n\nAdd them anyway?")
            if not await ask_confirmation(confirm_duplicates, message):
                duplicate_ids = {id(item) for item in duplicates}
                items = [item for item in items if id(item) not in duplicate_ids]

        if not items:
            return []

        await self.update_folder(folder_id, items=folder.items + items)
        logger.info(f"Added {len(items)} {_pluralize(len(items), 'item')} to folder '{folder.name}'")
        return items

    async def remove_item(self, folder_id: str, item_id: str) -> FolderItem:
        """
        Raises:
            FolderNotFoundError: If the folder does not exist
            ItemNotFoundError: If the item is not in the folder
        """
        folder = await self.require_folder(folder_id)
        index = self._item_index(folder, item_id)
        removed = folder.items[index]
        await self.update_folder(folder_id, items=folder.items[:index] + folder.items[index + 1:])
        return removed

    async def duplicate_item(self, folder_id: str, item_id: str) -> FolderItem:
        """
        Append a copy of an item with a new id.

        Raises:
            NestingConstraintError: When duplicating a folder reference, since a
                folder can only have one parent
        """
        folder = await self.require_folder(folder_id)
        copy = copy_item_with_new_id(folder.items[self._item_index(folder, item_id)])
        await self.update_folder(folder_id, items=folder.items + [copy])
        return copy

    async def move_item(self, source_folder_id: str, item_id: str, destination_folder_id: str) -> FolderItem:
        """
        Move an item to another folder in one write.

        The item is removed from the source and appended to the destination under a
        new id.

        Returns:
            The item as stored in the destination

        Raises:
            FolderNotFoundError / ItemNotFoundError: If an id is unknown
            FolderValidationError: If source and destination are the same folder
            NestingConstraintError: If a moved folder reference would create a cycle
        """
        if source_folder_id == destination_folder_id:
            raise FolderValidationError("Cannot move an item into the folder it is already in")

        folders = await self.load()
        source_index = self._index_of(folders, source_folder_id)
        destination_index = self._index_of(folders, destination_folder_id)

        source = folders[source_index]
        item_index = self._item_index(source, item_id)
        moved = copy_item_with_new_id(source.items[item_index])

        destination = folders[destination_index]
        updated = list(folders)
        updated[source_index] = source.with_changes(items=source.items[:item_index] + source.items[item_index + 1:])
        updated[destination_index] = destination.with_changes(items=destination.items + [moved])

        await self._commit(folders, updated)
        logger.info(f"Moved '{moved.name}' from '{source.name}' to '{destination.name}'")
        return moved

    async def empty_folder(self, folder_id: str) -> int:
        """Remove every item of a folder, keeping the folder. Returns the number removed."""
        folder = await self.require_folder(folder_id)
        if not folder.items:
            return 0
        await self.update_folder(folder_id, items=[])
        return len(folder.items)

    async def remove_duplicate_items(self, folder_id: str, confirm: Optional[ConfirmationPrompt] = None) -> int:
        """
        Keep the first occurrence of every item and drop the rest.

        Args:
            folder_id: Folder to clean up
            confirm: Optional prompt; when given and declined nothing is removed

        Returns:
            Number of items removed
        """
        folder = await self.require_folder(folder_id)
        report = find_duplicate_items(folder.items)
        if not report.has_duplicates:
            return 0

        if confirm is not None:
            message = (f"Remove {report.duplicate_count} duplicate {_pluralize(report.duplicate_count, 'item')} "
                       f"from '{folder.name}'? The first occurrence of each item will be kept.")
            if not await ask_confirmation(confirm, message):
                return 0

        await self.update_folder(folder_id, items=report.unique_items)
        logger.info(f"Removed {report.duplicate_count} duplicate items from folder '{folder.name}'")
        return report.duplicate_count

    # Nesting

    async def nest_folder(self, parent_id: str, child_id: str) -> FolderReferenceItem:
        """
        Nest ``child_id`` inside ``parent_id`` by appending a folder reference.

        Raises:
            NestingConstraintError: If the child is the parent, an ancestor of it,
                or already has a parent
        """
        folders = await self.load()
        parent = folders[self._index_of(folders, parent_id)]
        reference = create_folder_reference_item(child_id, folders)
        await self.update_folder(parent_id, items=parent.items + [reference])
        return reference

    async def create_nested_folder(self, parent_id: str, name: str, items: Optional[List[FolderItem]] = None,
                                   icon: Optional[str] = None, color: Optional[str] = None) -> Folder:
        """Create a folder and nest it inside ``parent_id`` in one write."""
        folders = await self.load()
        parent_index = self._index_of(folders, parent_id)
        child = new_folder(name, items, icon, color)
        _check_unique_item_ids(child.items, child.name)

        parent = folders[parent_index]
        updated = list(folders)
        updated[parent_index] = parent.with_changes(
            items=parent.items + [FolderReferenceItem(id=generate_id(), name=child.name, folder_id=child.id)])
        updated.append(child)

        await self._commit(folders, updated)
        logger.info(f"Created folder '{child.name}' nested in '{parent.name}'")
        return child

    # Access recording

    async def record_folder_access(self, folder_id: str, now: Optional[int] = None) -> bool:
        """Stamp a folder's ``lastUsed``. Unknown ids are ignored. Returns True when written."""
        updated = touch_folder(await self.load(), folder_id, now)
        if updated is None:
            return False
        await self.save(updated)
        return True

    async def record_item_access(self, folder_id: str, item_id: str, now: Optional[int] = None) -> bool:
        """Stamp an item's ``lastUsed``. Unknown ids are ignored. Returns True when written."""
        updated = touch_item(await self.load(), folder_id, item_id, now)
        if updated is None:
            return False
        await self.save(updated)
        return True

    # Decoration

    async def refresh_item_icon(self, folder_id: str, item_id: str, acquirer: FaviconAcquirer) -> Optional[str]:
        """
        Ask the favicon acquirer for a website item's icon and store it.

        The collection is re-read after the acquirer returns, since other writes may
        have happened meanwhile; if the item is gone by then nothing is written.

        Returns:
            The icon reference, or None when none was found

        Raises:
            FolderValidationError: If the item is not a website
        """
        folder = await self.require_folder(folder_id)
        item = folder.items[self._item_index(folder, item_id)]
        if not isinstance(item, WebsiteItem):
            raise FolderValidationError(f"Item '{item.name}' is not a website")

        icon = await acquirer.acquire(item.url)
        if not icon:
            return None

        folders = await self.load()
        for index, current in enumerate(folders):
            if current.id != folder_id:
                continue
            items = list(current.items)
            for item_index, current_item in enumerate(items):
                if current_item.id == item_id and isinstance(current_item, WebsiteItem):
                    if current_item.icon == icon:
                        return icon
                    items[item_index] = WebsiteItem(current_item.id, current_item.name, current_item.url,
                                                    icon, current_item.last_used)
                    updated = list(folders)
                    updated[index] = current.with_changes(items=items)
                    await self.save(updated)
                    return icon
        return icon


def _check_unique_item_ids(items: List[FolderItem], folder_label: str) -> None:
    seen = set()
    for item in items:
        if item.id in seen:
            raise FolderValidationError(f"Folder '{folder_label}' contains duplicate item id '{item.id}'")
        seen.add(item.id)


def create_storage(storage_path: Optional[str] = None) -> FolderStore:
    """
    Factory function to create a FolderStore persisting to JSON files.

    Args:
        storage_path: Optional custom storage directory

    Returns:
        Configured FolderStore instance
    """
    return FolderStore(JsonFileBlobStore(storage_path))
