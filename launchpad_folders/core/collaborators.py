"""
Interfaces of the collaborators the folder store relies on.

None of these are needed for structural correctness: the application catalog only
resolves display names, the favicon acquirer only decorates website items, the
confirmation prompt gates destructive operations, and the clipboard sink receives
exported text.
"""

import inspect
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional, Protocol, Union

from .folder import ApplicationItem, Folder, FolderItem, FolderReferenceItem, WebsiteItem

logger = logging.getLogger(__name__)

ConfirmationPrompt = Callable[[str], Union[bool, Awaitable[bool]]]


@dataclass
class Application:
    name: str
    path: Optional[str] = None
    bundle_id: Optional[str] = None


class ApplicationCatalog(Protocol):
    def list_applications(self) -> List[Application]:
        ...


class FaviconAcquirer(Protocol):
    async def acquire(self, url: str) -> Optional[str]:
        """Return a local image reference for the URL, or None."""
        ...


class ClipboardSink(Protocol):
    def copy(self, text: str) -> None:
        ...


async def ask_confirmation(confirm: Optional[ConfirmationPrompt], message: str) -> bool:
    """
    Ask the confirmation prompt; a missing prompt counts as a declined confirmation.

    Accepts both plain and coroutine callables.
    """
    if confirm is None:
        logger.info(f"No confirmation prompt available, declining: {message}")
        return False
    answer = confirm(message)
    if inspect.isawaitable(answer):
        answer = await answer
    return bool(answer)


def find_application_by_item_path(item_path: str, applications: List[Application]) -> Optional[Application]:
    """
    Find an application by an item's stored path.

    Tries, in order: exact path, path without trailing slash, name or bundle id,
    and finally a case-insensitive path match.
    """
    if not item_path:
        return None

    for app in applications:
        if app.path == item_path:
            return app

    normalized = item_path.rstrip("/")
    for app in applications:
        if app.path and app.path.rstrip("/") == normalized:
            return app

    for app in applications:
        if app.name == item_path or app.bundle_id == item_path:
            return app

    lower_path = item_path.lower()
    for app in applications:
        if app.path and app.path.lower() == lower_path:
            return app

    return None


def get_item_display_name(item: FolderItem, applications: Optional[List[Application]] = None,
                          folders: Optional[List[Folder]] = None) -> str:
    """
    Display name of an item.

    Folder references show the current name of their target folder, applications
    the catalog's name; the stored name is the fallback in every case.
    """
    if isinstance(item, FolderReferenceItem):
        if folders:
            for folder in folders:
                if folder.id == item.folder_id:
                    return folder.name
        return item.name
    if isinstance(item, WebsiteItem):
        return item.name
    if isinstance(item, ApplicationItem):
        if not applications or not item.path:
            return item.name
        app = find_application_by_item_path(item.path, applications)
        return app.name if app and app.name else item.name
    raise TypeError(f"Unsupported folder item: {item!r}")


def create_application_item(app_path: str, applications: Optional[List[Application]] = None) -> ApplicationItem:
    """Create an application item, named from the catalog when the path is known there."""
    from .folder import generate_id

    app = None
    for candidate in applications or []:
        if candidate.path == app_path or candidate.name == app_path:
            app = candidate
            break
    return ApplicationItem(id=generate_id(), name=app.name if app else app_path, path=app_path)
