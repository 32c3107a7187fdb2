"""
Folder Data Model for Launchpad Folders

This module provides the Folder class and the three item variants a folder can hold:
applications, websites, and references to other folders (nesting). Items are tagged
by their serialized ``type`` field and each variant carries only its own fields.
"""

import re
import uuid
import logging
from dataclasses import dataclass, field, replace
from typing import Dict, List, Any, Optional, Set, Union

logger = logging.getLogger(__name__)

ITEM_TYPE_APPLICATION = "application"
ITEM_TYPE_WEBSITE = "website"
ITEM_TYPE_FOLDER = "folder"

ITEM_TYPES = (ITEM_TYPE_APPLICATION, ITEM_TYPE_WEBSITE, ITEM_TYPE_FOLDER)

_HEX_COLOR_RE = re.compile(r"^#?([0-9A-Fa-f]{3}){1,2}$")


class FolderError(Exception):
    """Base exception for folder-related operations"""
    pass


class FolderValidationError(FolderError):
    """Exception raised when folder or item data is invalid"""
    pass


class FolderNotFoundError(FolderError):
    """Exception raised when a mutation targets a folder that does not exist"""
    pass


class ItemNotFoundError(FolderNotFoundError):
    """Exception raised when a mutation targets an item that does not exist"""
    pass


class NestingConstraintError(FolderError):
    """Exception raised when a nesting would create a cycle or a second parent"""
    pass


def generate_id() -> str:
    """Generate a new unique identifier for a folder or item."""
    return str(uuid.uuid4())


@dataclass
class ApplicationItem:
    """An item launching a local application by path or bundle identifier."""
    id: str
    name: str
    path: str
    last_used: Optional[int] = None

    type = ITEM_TYPE_APPLICATION

    def to_dict(self) -> Dict[str, Any]:
        result = {"id": self.id, "name": self.name, "type": self.type, "path": self.path}
        if self.last_used is not None:
            result["lastUsed"] = self.last_used
        return result


@dataclass
class WebsiteItem:
    """An item opening a URL. ``icon`` is a cached favicon path used for decoration only."""
    id: str
    name: str
    url: str
    icon: Optional[str] = None
    last_used: Optional[int] = None

    type = ITEM_TYPE_WEBSITE

    def to_dict(self) -> Dict[str, Any]:
        result = {"id": self.id, "name": self.name, "type": self.type, "url": self.url}
        if self.icon:
            result["icon"] = self.icon
        if self.last_used is not None:
            result["lastUsed"] = self.last_used
        return result


@dataclass
class FolderReferenceItem:
    """An item nesting another folder by id."""
    id: str
    name: str
    folder_id: str
    last_used: Optional[int] = None

    type = ITEM_TYPE_FOLDER

    def to_dict(self) -> Dict[str, Any]:
        result = {"id": self.id, "name": self.name, "type": self.type, "folderId": self.folder_id}
        if self.last_used is not None:
            result["lastUsed"] = self.last_used
        return result


FolderItem = Union[ApplicationItem, WebsiteItem, FolderReferenceItem]


def _require_string(data: Dict[str, Any], key: str, context: str) -> str:
    value = data.get(key)
    if not isinstance(value, str):
        raise FolderValidationError(f"{context} field '{key}' must be a string")
    return value


def _optional_timestamp(data: Dict[str, Any], context: str) -> Optional[int]:
    value = data.get("lastUsed")
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise FolderValidationError(f"{context} field 'lastUsed' must be a number")
    return int(value)


def item_from_dict(data: Dict[str, Any]) -> FolderItem:
    """
    Create an item variant from its serialized dictionary.

    Args:
        data: Dictionary with at least ``id``, ``name`` and ``type``

    Returns:
        ApplicationItem, WebsiteItem or FolderReferenceItem

    Raises:
        FolderValidationError: If the type is unknown or a required field is missing
    """
    if not isinstance(data, dict):
        raise FolderValidationError("Item data must be a dictionary")

    item_type = data.get("type")
    item_id = _require_string(data, "id", "Item")
    name = _require_string(data, "name", f"Item '{item_id}'")
    context = f"Item '{item_id}'"
    last_used = _optional_timestamp(data, context)

    if item_type == ITEM_TYPE_APPLICATION:
        return ApplicationItem(item_id, name, _require_string(data, "path", context), last_used)
    if item_type == ITEM_TYPE_WEBSITE:
        icon = data.get("icon")
        if icon is not None and not isinstance(icon, str):
            raise FolderValidationError(f"{context} field 'icon' must be a string")
        return WebsiteItem(item_id, name, _require_string(data, "url", context), icon or None, last_used)
    if item_type == ITEM_TYPE_FOLDER:
        return FolderReferenceItem(item_id, name, _require_string(data, "folderId", context), last_used)

    raise FolderValidationError(f"{context} has unknown type: {item_type!r}")


def _without_invalid_optionals(data: Dict[str, Any], context: str) -> Dict[str, Any]:
    """Copy of ``data`` without optional fields whose values are unusable."""
    cleaned = dict(data)
    last_used = cleaned.get("lastUsed")
    if last_used is not None and (isinstance(last_used, bool) or not isinstance(last_used, (int, float))):
        logger.warning(f"{context}: dropping invalid 'lastUsed' value {last_used!r}")
        del cleaned["lastUsed"]
    for key in ("icon", "color"):
        if cleaned.get(key) is not None and not isinstance(cleaned[key], str):
            logger.warning(f"{context}: dropping invalid '{key}' value {cleaned[key]!r}")
            del cleaned[key]
    return cleaned


def _salvage_items(folder_id: str, raw_items: List[Any]) -> List[FolderItem]:
    items: List[FolderItem] = []
    seen: Set[str] = set()
    for raw in raw_items:
        try:
            if isinstance(raw, dict):
                raw = _without_invalid_optionals(raw, f"Folder '{folder_id}' item '{raw.get('id')}'")
            item = item_from_dict(raw)
        except FolderValidationError as e:
            logger.warning(f"Folder '{folder_id}': skipping corrupted item: {e}")
            continue
        if item.id in seen:
            logger.warning(f"Folder '{folder_id}': skipping item with duplicate id '{item.id}'")
            continue
        seen.add(item.id)
        items.append(item)
    return items


@dataclass
class Folder:
    """
    A named, ordered collection of items, itself nestable inside another folder
    through a FolderReferenceItem.

    Folders are treated as values: mutations produce new instances through
    ``with_changes`` instead of editing a cached instance in place.
    """
    id: str
    name: str
    items: List[FolderItem] = field(default_factory=list)
    icon: Optional[str] = None
    color: Optional[str] = None
    last_used: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert folder to dictionary representation for storage/API.

        Returns:
            Dictionary containing all folder data, optional fields omitted when unset
        """
        result = {
            "id": self.id,
            "name": self.name,
            "items": [item.to_dict() for item in self.items],
        }
        if self.icon:
            result["icon"] = self.icon
        if self.color:
            result["color"] = self.color
        if self.last_used is not None:
            result["lastUsed"] = self.last_used
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any], salvage: bool = False) -> 'Folder':
        """
        Create Folder instance from dictionary data.

        Args:
            data: Dictionary containing folder data
            salvage: Recover what can be recovered instead of rejecting the folder.
                Unusable optional fields are dropped, items that stay invalid without
                them are skipped, and repeated item ids keep their first occurrence.
                Only an unusable ``id``, ``name`` or ``items`` still raises.

        Returns:
            Folder instance

        Raises:
            FolderValidationError: If data is invalid or missing required fields
        """
        if not isinstance(data, dict):
            raise FolderValidationError("Folder data must be a dictionary")

        folder_id = _require_string(data, "id", "Folder")
        if not folder_id:
            raise FolderValidationError("Folder id cannot be empty")
        name = _require_string(data, "name", f"Folder '{folder_id}'")

        raw_items = data.get("items")
        if not isinstance(raw_items, list):
            raise FolderValidationError(f"Folder '{folder_id}' field 'items' must be a list")

        if salvage:
            items = _salvage_items(folder_id, raw_items)
            data = _without_invalid_optionals(data, f"Folder '{folder_id}'")
        else:
            items = [item_from_dict(item) for item in raw_items]

        seen: Set[str] = set()
        for item in items:
            if item.id in seen:
                raise FolderValidationError(f"Folder '{folder_id}' contains duplicate item id '{item.id}'")
            seen.add(item.id)

        for key in ("icon", "color"):
            if data.get(key) is not None and not isinstance(data[key], str):
                raise FolderValidationError(f"Folder '{folder_id}' field '{key}' must be a string")

        return cls(
            id=folder_id,
            name=name,
            items=items,
            icon=data.get("icon") or None,
            color=data.get("color") or None,
            last_used=_optional_timestamp(data, f"Folder '{folder_id}'"),
        )

    def with_changes(self, **changes) -> 'Folder':
        """Return a copy of this folder with whole-field replacements applied."""
        return replace(self, **changes)

    def find_item(self, item_id: str) -> Optional[FolderItem]:
        for item in self.items:
            if item.id == item_id:
                return item
        return None

    def nested_folder_ids(self) -> List[str]:
        """Target ids of this folder's folder-reference items, in item order."""
        return [item.folder_id for item in self.items
                if isinstance(item, FolderReferenceItem) and item.folder_id]

    def __str__(self) -> str:
        return f"Folder({self.name}, {len(self.items)} items)"


def new_folder(name: str, items: Optional[List[FolderItem]] = None,
               icon: Optional[str] = None, color: Optional[str] = None) -> Folder:
    """
    Create a new folder with a generated id.

    Raises:
        FolderValidationError: If the name is empty or the color is invalid
    """
    if not isinstance(name, str) or not name.strip():
        raise FolderValidationError("Folder name cannot be empty")
    if color and not is_valid_hex_color(color):
        raise FolderValidationError(f"Invalid folder color: {color}")
    return Folder(
        id=generate_id(),
        name=name.strip(),
        items=list(items or []),
        icon=icon or None,
        color=normalize_hex_color(color) if color else None,
    )


def copy_item_with_new_id(item: FolderItem) -> FolderItem:
    """Duplicate an item: same content, fresh id."""
    return replace(item, id=generate_id())


def create_website_item(url: str, name: Optional[str] = None, icon: Optional[str] = None) -> WebsiteItem:
    """Create a website item, naming it after the URL's domain when no name is given."""
    from .urls import extract_domain

    return WebsiteItem(id=generate_id(), name=name or extract_domain(url), url=url, icon=icon)


def create_folder_reference_item(folder_id: str, folders: List[Folder]) -> FolderReferenceItem:
    """Create a nesting item, named after the target folder when it can be found."""
    target = build_folder_lookup(folders).get(folder_id)
    return FolderReferenceItem(id=generate_id(), name=target.name if target else folder_id, folder_id=folder_id)


def build_folder_lookup(folders: List[Folder]) -> Dict[str, Folder]:
    """
    Build a lookup dictionary for folders by ID.

    Args:
        folders: List of folder objects

    Returns:
        Dictionary mapping folder IDs to folder objects
    """
    return {folder.id: folder for folder in folders}


def get_nested_folder_ids(folders: List[Folder]) -> Set[str]:
    """Ids of every folder that is the target of some folder-reference item."""
    nested = set()
    for folder in folders:
        nested.update(folder.nested_folder_ids())
    return nested


def get_top_level_folders(folders: List[Folder]) -> List[Folder]:
    """
    Get all top-level folders (those not nested inside another folder).

    Args:
        folders: List of folder objects

    Returns:
        List of folders in their given order
    """
    nested = get_nested_folder_ids(folders)
    return [folder for folder in folders if folder.id not in nested]


def is_valid_hex_color(color: str) -> bool:
    """Accept ``#RGB``, ``RGB``, ``#RRGGBB`` and ``RRGGBB``."""
    if not color:
        return False
    return bool(_HEX_COLOR_RE.match(color))


def normalize_hex_color(color: str) -> str:
    """
    Normalize a hex color to uppercase ``#RRGGBB``.

    Examples: ``"ccc"`` -> ``"#CCCCCC"``, ``"#ab12ef"`` -> ``"#AB12EF"``
    """
    if not color:
        return color
    hex_value = color if color.startswith("#") else f"#{color}"
    if len(hex_value) == 4:
        r, g, b = hex_value[1], hex_value[2], hex_value[3]
        hex_value = f"#{r}{r}{g}{g}{b}{b}"
    return hex_value.upper()
