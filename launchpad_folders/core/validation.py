"""
Validation System for Launchpad Folders

This module provides integrity checks for folder collections, with particular focus
on dangling nested-folder references and the nesting invariants.

Key Features:
- Orphan reconciliation: drops folder references whose target no longer exists
- Structural validation of raw folder dictionaries
- Collection-wide integrity reporting (unique ids, single parent, acyclic nesting)
"""

import logging
from typing import List, Dict, Set, Tuple, Any
from dataclasses import dataclass, field

from .folder import Folder, FolderReferenceItem
from .hierarchy import NestingGraph

logger = logging.getLogger(__name__)


@dataclass
class ValidationResult:
    """
    Result container for validation operations.

    Provides structured feedback about validation success/failure
    with detailed error and warning messages.
    """
    is_valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def add_error(self, message: str) -> None:
        """Add an error message and mark result as invalid"""
        self.errors.append(message)
        self.is_valid = False

    def add_warning(self, message: str) -> None:
        """Add a warning message"""
        self.warnings.append(message)

    def merge(self, other: 'ValidationResult') -> None:
        """Merge another validation result into this one"""
        self.errors.extend(other.errors)
        self.warnings.extend(other.warnings)
        if not other.is_valid:
            self.is_valid = False


def cleanup_orphaned_references(folders: List[Folder]) -> Tuple[List[Folder], bool]:
    """
    Remove folder-reference items that point at folders no longer in the collection.

    Folders whose item lists are unchanged are returned as the same objects.

    Args:
        folders: Complete collection

    Returns:
        Tuple of (cleaned_folders, changed). When nothing changed the input list
        itself is returned.
    """
    folder_ids = {folder.id for folder in folders}
    changed = False
    cleaned = []

    for folder in folders:
        kept = [item for item in folder.items
                if not (isinstance(item, FolderReferenceItem) and item.folder_id not in folder_ids)]
        if len(kept) != len(folder.items):
            removed = len(folder.items) - len(kept)
            logger.warning(f"Removed {removed} orphaned folder reference(s) from folder '{folder.name}'")
            cleaned.append(folder.with_changes(items=kept))
            changed = True
        else:
            cleaned.append(folder)

    return (cleaned, True) if changed else (folders, False)


def validate_folder_structure(folder_data: Any) -> ValidationResult:
    """
    Validate a raw folder dictionary without converting it.

    Checks the fields a folder record must carry: string ``id``, string ``name``
    and a list of ``items``.

    Example:
        >>> validate_folder_structure({"id": "a", "name": "A", "items": []}).is_valid
        True
    """
    result = ValidationResult(is_valid=True)

    if not isinstance(folder_data, dict):
        result.add_error(f"Invalid folder data type: {type(folder_data).__name__}")
        return result

    if not isinstance(folder_data.get("id"), str) or not folder_data.get("id"):
        result.add_error("Field 'id' must be a non-empty string")
    if not isinstance(folder_data.get("name"), str):
        result.add_error("Field 'name' must be a string")
    elif not folder_data["name"].strip():
        result.add_warning("Folder name is empty")
    if not isinstance(folder_data.get("items"), list):
        result.add_error("Field 'items' must be a list")

    return result


def validate_collection_integrity(folders: List[Folder]) -> ValidationResult:
    """
    Check a collection against the nesting invariants.

    Reports duplicate folder ids, duplicate item ids within a folder, dangling
    references, folders with more than one referencing item, and nesting cycles.

    Args:
        folders: Complete collection

    Returns:
        ValidationResult listing every violation found
    """
    result = ValidationResult(is_valid=True)

    seen_ids: Set[str] = set()
    for folder in folders:
        if folder.id in seen_ids:
            result.add_error(f"Duplicate folder id '{folder.id}'")
        seen_ids.add(folder.id)

        item_ids: Set[str] = set()
        for item in folder.items:
            if item.id in item_ids:
                result.add_error(f"Folder '{folder.name}' has duplicate item id '{item.id}'")
            item_ids.add(item.id)

    graph = NestingGraph(folders)
    names: Dict[str, str] = {folder.id: folder.name for folder in folders}

    for folder in folders:
        for child_id in folder.nested_folder_ids():
            if child_id == folder.id:
                result.add_error(f"Folder '{folder.name}' is nested inside itself")
            elif child_id not in seen_ids:
                result.add_error(f"Folder '{folder.name}' references missing folder '{child_id}'")

    for child_id in graph.parents:
        count = graph.reference_count(child_id)
        if count > 1:
            result.add_error(
                f"Folder '{names.get(child_id, child_id)}' is referenced {count} times; only one parent is allowed")

    for cycle in graph.find_cycles():
        path = " -> ".join(names.get(node, node) for node in cycle)
        result.add_error(f"Circular nesting detected: {path}")

    return result
