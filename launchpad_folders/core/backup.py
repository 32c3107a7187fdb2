"""
Backup export and import for Launchpad Folders

Exports are JSON documents of the form::

    {"version": 1, "exportedAt": "<ISO-8601>", "folders": [...], "preferences": {...}}

A single-folder export carries the folder together with every folder it nests,
directly or transitively. Imports are validated against ``schemas/backup-schema.json``
before any state changes, then either merged (new folder ids only) or used to
replace the whole collection after confirmation.
"""

import os
import re
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

import jsonschema

from .folder import Folder, FolderValidationError, FolderNotFoundError
from .hierarchy import NestingGraph
from .validation import ValidationResult
from .blob_store import atomic_write_text
from .collaborators import ConfirmationPrompt, ask_confirmation

logger = logging.getLogger(__name__)

BACKUP_VERSION = 1

IMPORT_MODE_MERGE = "merge"
IMPORT_MODE_REPLACE = "replace"
IMPORT_MODES = (IMPORT_MODE_MERGE, IMPORT_MODE_REPLACE)

SCHEMA_PATH = os.path.join(os.path.dirname(os.path.dirname(__file__)), "schemas", "backup-schema.json")

_schema_cache: Optional[Dict[str, Any]] = None


class ImportValidationError(FolderValidationError):
    """Exception raised when an import document fails validation; nothing was changed"""

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.errors = list(errors or [])


@dataclass
class ImportResult:
    mode: str
    imported: int = 0
    skipped: int = 0
    cancelled: bool = False
    message: str = ""
    preferences: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mode": self.mode,
            "imported": self.imported,
            "skipped": self.skipped,
            "cancelled": self.cancelled,
            "message": self.message,
        }


def _load_schema() -> Dict[str, Any]:
    global _schema_cache
    if _schema_cache is None:
        with open(SCHEMA_PATH, "r", encoding="utf-8") as schema_file:
            _schema_cache = json.load(schema_file)
    return _schema_cache


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _document(folders: List[Folder], preferences: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    document = {
        "version": BACKUP_VERSION,
        "exportedAt": _timestamp(),
        "folders": [folder.to_dict() for folder in folders],
    }
    if preferences:
        document["preferences"] = dict(preferences)
    return document


def export_folder(folders: List[Folder], folder_id: str,
                  preferences: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Export one folder with its transitive nested closure.

    Each folder appears once, in depth-first pre-order starting at the root, and
    cyclic data terminates. References to folders missing from the collection are
    left out of the closure.

    Raises:
        FolderNotFoundError: If the root folder does not exist
    """
    lookup = {folder.id: folder for folder in folders}
    if folder_id not in lookup:
        raise FolderNotFoundError(f"Folder not found: {folder_id}")

    graph = NestingGraph(folders)
    closure = [lookup[folder_id]] + [lookup[child_id] for child_id in graph.descendants_of(folder_id)
                                     if child_id in lookup]

    logger.info(f"Exported folder '{lookup[folder_id].name}' with {len(closure) - 1} nested folders")
    return _document(closure, preferences)


def export_all_folders(folders: List[Folder], preferences: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Export the whole collection."""
    logger.info(f"Exported {len(folders)} folders")
    return _document(list(folders), preferences)


def dump_export_document(document: Dict[str, Any]) -> str:
    return json.dumps(document, indent=2, ensure_ascii=False)


def _safe_file_part(name: str) -> str:
    safe = re.sub(r"[^A-Za-z0-9_-]+", "-", name).strip("-").lower()
    return safe or "folder"


def write_export_file(document: Dict[str, Any], directory: str, folder_name: Optional[str] = None) -> str:
    """
    Write an export document to a timestamped file.

    Args:
        document: Export document
        directory: Target directory, created when missing
        folder_name: Name of the exported folder for single-folder exports

    Returns:
        Path of the written file

    Raises:
        StorageError: If the file cannot be written
    """
    stamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S")
    if folder_name:
        filename = f"launchpad-folder-{_safe_file_part(folder_name)}-{stamp}.json"
    else:
        filename = f"launchpad-folders-backup-{stamp}.json"

    os.makedirs(directory, exist_ok=True)
    filepath = os.path.join(directory, filename)
    atomic_write_text(filepath, dump_export_document(document))
    logger.info(f"Wrote export to {filepath}")
    return filepath


def validate_import_data(data: Any) -> ValidationResult:
    """
    Validate an import document.

    Checks the document against the backup schema, then that folder ids are unique.

    Args:
        data: Parsed JSON document

    Returns:
        ValidationResult with one error per problem found
    """
    result = ValidationResult(is_valid=True)

    validator = jsonschema.Draft7Validator(_load_schema())
    for error in sorted(validator.iter_errors(data), key=lambda e: list(e.path)):
        location = "/".join(str(part) for part in error.path)
        result.add_error(f"{location}: {error.message}" if location else error.message)

    if not result.is_valid:
        return result

    seen = set()
    for folder_data in data["folders"]:
        if folder_data["id"] in seen:
            result.add_error(f"Duplicate folder id: {folder_data['id']}")
        seen.add(folder_data["id"])

    return result


def parse_import_document(data: Union[str, bytes, Dict[str, Any]]) -> Dict[str, Any]:
    """
    Parse and validate an import document.

    Raises:
        ImportValidationError: If the text is not JSON or the document is invalid
    """
    if isinstance(data, (str, bytes)):
        try:
            data = json.loads(data)
        except json.JSONDecodeError as e:
            raise ImportValidationError("Import file is not valid JSON", [str(e)])

    result = validate_import_data(data)
    if not result.is_valid:
        raise ImportValidationError("Invalid import file format", result.errors)
    return data


def _decode_folders(folder_dicts: List[Dict[str, Any]]) -> List[Folder]:
    folders = []
    errors = []
    for folder_data in folder_dicts:
        try:
            folders.append(Folder.from_dict(folder_data))
        except FolderValidationError as e:
            errors.append(str(e))
    if errors:
        raise ImportValidationError("Invalid folder data in import file", errors)
    return folders


async def import_folders(store, data: Union[str, bytes, Dict[str, Any]], mode: str = IMPORT_MODE_MERGE,
                         confirm: Optional[ConfirmationPrompt] = None) -> ImportResult:
    """
    Import folders from a backup document.

    Args:
        store: FolderStore receiving the folders
        data: JSON text or parsed document
        mode: ``"merge"`` appends folders whose ids are new, ``"replace"``
            replaces the whole collection
        confirm: Prompt consulted before a replace; a missing or declined prompt
            cancels the import

    Returns:
        ImportResult describing what happened

    Raises:
        ImportValidationError: If the document is invalid; nothing is written
        FolderValidationError: If the mode is unknown
        StorageError: If the write fails
    """
    if mode not in IMPORT_MODES:
        raise FolderValidationError(f"Unknown import mode: {mode}")

    document = parse_import_document(data)
    incoming = _decode_folders(document["folders"])
    preferences = document.get("preferences")

    if mode == IMPORT_MODE_REPLACE:
        message = (f"Replace all folders with {len(incoming)} imported "
                   f"{'folder' if len(incoming) == 1 else 'folders'}? This cannot be undone.")
        if not await ask_confirmation(confirm, message):
            logger.info("Replace import cancelled")
            return ImportResult(mode, cancelled=True, message="Import cancelled")

        await store.replace_all(incoming)
        store.invalidate()
        logger.info(f"Replaced folders with {len(incoming)} imported folders")
        return ImportResult(mode, imported=len(incoming),
                            message=f"Replaced all folders with {len(incoming)} imported",
                            preferences=preferences)

    existing = await store.load()
    existing_ids = {folder.id for folder in existing}
    new_folders = [folder for folder in incoming if folder.id not in existing_ids]
    skipped = len(incoming) - len(new_folders)

    if not new_folders:
        logger.info("Import contained no new folders")
        return ImportResult(mode, skipped=skipped, message="Nothing to import: all folders already exist",
                            preferences=preferences)

    await store.save(existing + new_folders)
    store.invalidate()
    logger.info(f"Merged {len(new_folders)} imported folders, skipped {skipped} existing")
    return ImportResult(mode, imported=len(new_folders), skipped=skipped,
                        message=f"Imported {len(new_folders)} folders",
                        preferences=preferences)
