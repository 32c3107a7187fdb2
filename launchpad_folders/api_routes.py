"""
API Routes for Launchpad Folders

This module provides REST API endpoints for managing folders and their items.
Every handler works through the FolderStore stored on the application, and answers
with the standard envelope ``{success, message, data, errors}``.
"""

import logging
from typing import Any, Dict, List, Optional

from aiohttp import web
from aiohttp.web_request import Request
from aiohttp.web_response import Response

from .core.folder import (
    FolderError,
    FolderNotFoundError,
    FolderValidationError,
    NestingConstraintError,
    ITEM_TYPE_WEBSITE,
    create_website_item,
    generate_id,
    get_top_level_folders,
    item_from_dict,
)
from .core.blob_store import StorageError
from .core.storage import FolderStore
from .core.sorting import sort_folder_items, sort_folders
from .core.urls import collect_folder_urls, extract_domain, format_urls_as_list, format_urls_as_markdown, \
    parse_website_urls_with_titles
from .core.hierarchy import available_nesting_targets, movable_destinations
from .core.validation import validate_collection_integrity
from .core.collaborators import create_application_item
from .core.backup import ImportValidationError, export_all_folders, export_folder, import_folders
from .preferences import Preferences, save_preferences

logger = logging.getLogger(__name__)

STORE_KEY = web.AppKey("folder_store", FolderStore)
PREFERENCES_KEY = web.AppKey("preferences", Preferences)
PREFERENCES_DIR_KEY = web.AppKey("preferences_dir", str)

API_PREFIX = "/launchpad"


def create_success_response(message: str, data: Any, status: int = 200) -> Response:
    """
    Create a standardized success response.

    Args:
        message: Success message
        data: Response data
        status: HTTP status code

    Returns:
        JSON response object
    """
    return web.json_response({
        "success": True,
        "message": message,
        "data": data,
        "errors": []
    }, status=status)


def create_error_response(message: str, errors: List[str], status: int = 400) -> Response:
    """
    Create a standardized error response.

    Args:
        message: Error message
        errors: List of error details
        status: HTTP status code

    Returns:
        JSON response object
    """
    return web.json_response({
        "success": False,
        "message": message,
        "data": None,
        "errors": errors
    }, status=status)


def error_response_from_exception(error: Exception, action: str) -> Response:
    """Map store exceptions onto HTTP status codes."""
    if isinstance(error, FolderNotFoundError):
        return create_error_response("Not found", [str(error)], status=404)
    if isinstance(error, ImportValidationError):
        return create_error_response(str(error), error.errors or [str(error)], status=400)
    if isinstance(error, NestingConstraintError):
        return create_error_response("Nesting not allowed", [str(error)], status=400)
    if isinstance(error, FolderValidationError):
        return create_error_response("Validation error", [str(error)], status=400)
    logger.error(f"Failed to {action}: {error}")
    return create_error_response(f"Failed to {action}", [str(error)], status=500)


async def read_json_object(request: Request) -> Dict[str, Any]:
    """
    Read the request body as a JSON object.

    Raises:
        FolderValidationError: If the body is not JSON or not an object
    """
    try:
        data = await request.json()
    except ValueError as e:
        # JSONDecodeError, or UnicodeDecodeError for a body that is not UTF-8
        raise FolderValidationError(f"Invalid JSON format: {e}")
    if not isinstance(data, dict):
        raise FolderValidationError("Request body must be a JSON object")
    return data


def parse_item_payload(data: Any):
    """Build an item from request data; ``id`` is generated and website names default to the domain."""
    if not isinstance(data, dict):
        raise FolderValidationError("Item data must be a JSON object")
    data = dict(data)
    data.setdefault("id", generate_id())
    if data.get("type") == ITEM_TYPE_WEBSITE and not data.get("name") and isinstance(data.get("url"), str):
        data["name"] = extract_domain(data["url"])
    return item_from_dict(data)


def _items_from_request(data: Dict[str, Any]) -> List:
    items = [parse_item_payload(item) for item in data.get("items") or []]

    url_text = data.get("urls")
    if url_text:
        if not isinstance(url_text, str):
            raise FolderValidationError("Field 'urls' must be a string")
        items.extend(create_website_item(entry.url, entry.title)
                     for entry in parse_website_urls_with_titles(url_text))

    for app_path in data.get("applications") or []:
        if not isinstance(app_path, str) or not app_path:
            raise FolderValidationError("Application paths must be non-empty strings")
        items.append(create_application_item(app_path))

    return items


def _store(request: Request) -> FolderStore:
    return request.app[STORE_KEY]


def _sort_levels(request: Request) -> tuple:
    primary, secondary, tertiary = request.app[PREFERENCES_KEY].sort_levels()
    return (request.query.get("primary", primary),
            request.query.get("secondary", secondary),
            request.query.get("tertiary", tertiary))


def _allow_duplicates(data: Dict[str, Any]):
    allow = bool(data.get("allowDuplicates"))
    return lambda message: allow


# Folders

async def get_folders(request: Request) -> Response:
    """Get all folders, sorted by the preferred sort levels; ``?topLevel=1`` hides nested ones"""
    try:
        folders = await _store(request).load()
        if request.query.get("topLevel") in ("1", "true"):
            folders = get_top_level_folders(folders)
        ordered = sort_folders(folders, *_sort_levels(request))
        return create_success_response(
            "Folders retrieved successfully",
            [folder.to_dict() for folder in ordered]
        )
    except (FolderError, StorageError) as e:
        return error_response_from_exception(e, "retrieve folders")


async def create_folder(request: Request) -> Response:
    """Create a folder, optionally nested inside ``parentId``"""
    try:
        data = await read_json_object(request)
        name = data.get("name")
        if not isinstance(name, str) or not name.strip():
            return create_error_response("Missing required field: name", ["Field 'name' is required"], status=400)

        items = _items_from_request(data)
        color = data.get("color") or request.app[PREFERENCES_KEY].default_color
        parent_id = data.get("parentId")
        store = _store(request)

        if parent_id:
            folder = await store.create_nested_folder(parent_id, name, items, data.get("icon"), color)
        else:
            folder = await store.create_folder(name, items, data.get("icon"), color)

        return create_success_response(f"Folder '{folder.name}' created successfully", folder.to_dict(), status=201)
    except (FolderError, StorageError) as e:
        return error_response_from_exception(e, "create folder")


async def get_folder(request: Request) -> Response:
    """Get a specific folder by id"""
    try:
        folder = await _store(request).require_folder(request.match_info["id"])
        return create_success_response("Folder retrieved successfully", folder.to_dict())
    except (FolderError, StorageError) as e:
        return error_response_from_exception(e, "retrieve folder")


async def update_folder(request: Request) -> Response:
    """Replace whole fields of a folder"""
    try:
        data = await read_json_object(request)
        updates = {}
        if "name" in data:
            updates["name"] = data["name"]
        for key in ("icon", "color"):
            if key in data:
                updates[key] = data[key] or None
        if "items" in data:
            if not isinstance(data["items"], list):
                raise FolderValidationError("Field 'items' must be a list")
            updates["items"] = [parse_item_payload(item) for item in data["items"]]

        folder = await _store(request).update_folder(request.match_info["id"], **updates)
        return create_success_response(f"Folder '{folder.name}' updated successfully", folder.to_dict())
    except (FolderError, StorageError) as e:
        return error_response_from_exception(e, "update folder")


async def delete_folder(request: Request) -> Response:
    """Delete a folder and every reference to it"""
    try:
        deleted = await _store(request).delete_folder(request.match_info["id"])
        return create_success_response(f"Folder '{deleted.name}' deleted successfully", {"id": deleted.id})
    except (FolderError, StorageError) as e:
        return error_response_from_exception(e, "delete folder")


async def record_folder_access(request: Request) -> Response:
    try:
        recorded = await _store(request).record_folder_access(request.match_info["id"])
        return create_success_response("Access recorded", {"recorded": recorded})
    except (FolderError, StorageError) as e:
        return error_response_from_exception(e, "record folder access")


async def get_integrity_report(request: Request) -> Response:
    """Report violations of the nesting invariants in the stored collection"""
    try:
        result = validate_collection_integrity(await _store(request).load())
        return create_success_response(
            "Collection is consistent" if result.is_valid else "Collection has integrity problems",
            {"isValid": result.is_valid, "errors": result.errors, "warnings": result.warnings}
        )
    except (FolderError, StorageError) as e:
        return error_response_from_exception(e, "check collection integrity")


# Items

async def get_folder_items(request: Request) -> Response:
    """Get the items of a folder, sorted by the preferred sort levels"""
    try:
        store = _store(request)
        folder = await store.require_folder(request.match_info["id"])
        folders = await store.load()
        items = sort_folder_items(folder.items, *_sort_levels(request), folders=folders)
        return create_success_response("Items retrieved successfully", [item.to_dict() for item in items])
    except (FolderError, StorageError) as e:
        return error_response_from_exception(e, "retrieve items")


async def add_items(request: Request) -> Response:
    """
    Add items to a folder.

    The body may carry ``items`` (serialized items), ``urls`` (one URL or markdown
    link per line) and ``applications`` (paths). Items duplicating existing ones are
    skipped unless ``allowDuplicates`` is true.
    """
    try:
        data = await read_json_object(request)
        items = _items_from_request(data)
        if not items:
            return create_error_response("No items to add", ["Provide items, urls or applications"], status=400)

        added = await _store(request).add_items(request.match_info["id"], items, _allow_duplicates(data))
        return create_success_response(
            f"Added {len(added)} items",
            {"added": [item.to_dict() for item in added], "skipped": len(items) - len(added)},
            status=201
        )
    except (FolderError, StorageError) as e:
        return error_response_from_exception(e, "add items")


async def remove_item(request: Request) -> Response:
    try:
        removed = await _store(request).remove_item(request.match_info["id"], request.match_info["item_id"])
        return create_success_response(f"Removed '{removed.name}'", removed.to_dict())
    except (FolderError, StorageError) as e:
        return error_response_from_exception(e, "remove item")


async def duplicate_item(request: Request) -> Response:
    try:
        copy = await _store(request).duplicate_item(request.match_info["id"], request.match_info["item_id"])
        return create_success_response(f"Duplicated '{copy.name}'", copy.to_dict(), status=201)
    except (FolderError, StorageError) as e:
        return error_response_from_exception(e, "duplicate item")


async def move_item(request: Request) -> Response:
    """Move an item to ``destinationId``"""
    try:
        data = await read_json_object(request)
        destination_id = data.get("destinationId")
        if not destination_id:
            return create_error_response("Missing required field: destinationId",
                                         ["Field 'destinationId' is required"], status=400)
        moved = await _store(request).move_item(request.match_info["id"], request.match_info["item_id"],
                                                destination_id)
        return create_success_response(f"Moved '{moved.name}'", moved.to_dict())
    except (FolderError, StorageError) as e:
        return error_response_from_exception(e, "move item")


async def get_move_destinations(request: Request) -> Response:
    try:
        store = _store(request)
        folder = await store.require_folder(request.match_info["id"])
        item = folder.find_item(request.match_info["item_id"])
        if item is None:
            return create_error_response("Not found", [f"Item not found: {request.match_info['item_id']}"],
                                         status=404)
        destinations = movable_destinations(await store.load(), folder.id, item)
        return create_success_response("Destinations retrieved successfully",
                                       [{"id": f.id, "name": f.name} for f in destinations])
    except (FolderError, StorageError) as e:
        return error_response_from_exception(e, "list move destinations")


async def record_item_access(request: Request) -> Response:
    try:
        recorded = await _store(request).record_item_access(request.match_info["id"],
                                                            request.match_info["item_id"])
        return create_success_response("Access recorded", {"recorded": recorded})
    except (FolderError, StorageError) as e:
        return error_response_from_exception(e, "record item access")


async def empty_folder(request: Request) -> Response:
    try:
        removed = await _store(request).empty_folder(request.match_info["id"])
        return create_success_response(f"Removed {removed} items", {"removed": removed})
    except (FolderError, StorageError) as e:
        return error_response_from_exception(e, "empty folder")


async def remove_duplicate_items(request: Request) -> Response:
    try:
        removed = await _store(request).remove_duplicate_items(request.match_info["id"])
        message = f"Removed {removed} duplicate items" if removed else "No duplicate items found"
        return create_success_response(message, {"removed": removed})
    except (FolderError, StorageError) as e:
        return error_response_from_exception(e, "remove duplicate items")


# Nesting

async def nest_folder(request: Request) -> Response:
    """Nest ``childId`` inside the folder"""
    try:
        data = await read_json_object(request)
        child_id = data.get("childId")
        if not child_id:
            return create_error_response("Missing required field: childId", ["Field 'childId' is required"],
                                         status=400)
        reference = await _store(request).nest_folder(request.match_info["id"], child_id)
        return create_success_response(f"Nested '{reference.name}'", reference.to_dict(), status=201)
    except (FolderError, StorageError) as e:
        return error_response_from_exception(e, "nest folder")


async def get_nesting_candidates(request: Request) -> Response:
    try:
        store = _store(request)
        folder = await store.require_folder(request.match_info["id"])
        candidates = available_nesting_targets(await store.load(), folder.id)
        return create_success_response("Nesting candidates retrieved successfully",
                                       [{"id": f.id, "name": f.name} for f in candidates])
    except (FolderError, StorageError) as e:
        return error_response_from_exception(e, "list nesting candidates")


# URLs

async def get_folder_urls(request: Request) -> Response:
    """Collect website URLs of a folder and its nested folders; ``?format=markdown|list``"""
    output_format = request.query.get("format", "markdown")
    if output_format not in ("markdown", "list"):
        return create_error_response("Invalid format", ["format must be 'markdown' or 'list'"], status=400)

    try:
        store = _store(request)
        folder = await store.require_folder(request.match_info["id"])
        urls = collect_folder_urls(folder, await store.load())
        if output_format == "markdown":
            text = format_urls_as_markdown(urls, folder.name)
        else:
            text = format_urls_as_list(urls)
        return create_success_response(f"Collected {len(urls)} URLs", {"count": len(urls), "text": text})
    except (FolderError, StorageError) as e:
        return error_response_from_exception(e, "collect URLs")


# Backup

async def export_single_folder(request: Request) -> Response:
    try:
        folders = await _store(request).load()
        document = export_folder(folders, request.match_info["id"], request.app[PREFERENCES_KEY].as_dict())
        return create_success_response(f"Exported {len(document['folders'])} folders", document)
    except (FolderError, StorageError) as e:
        return error_response_from_exception(e, "export folder")


async def export_everything(request: Request) -> Response:
    try:
        folders = await _store(request).load()
        document = export_all_folders(folders, request.app[PREFERENCES_KEY].as_dict())
        return create_success_response(f"Exported {len(document['folders'])} folders", document)
    except (FolderError, StorageError) as e:
        return error_response_from_exception(e, "export folders")


async def import_backup(request: Request) -> Response:
    """
    Import a backup document.

    Body: ``{"mode": "merge"|"replace", "confirm": bool, "document": {...}}``.
    A replace without ``confirm: true`` is cancelled.
    """
    try:
        data = await read_json_object(request)
        if "document" not in data:
            return create_error_response("Missing required field: document", ["Field 'document' is required"],
                                         status=400)
        confirmed = bool(data.get("confirm"))
        result = await import_folders(_store(request), data["document"], data.get("mode", "merge"),
                                      lambda message: confirmed)

        response_data = result.to_dict()
        message = result.message
        if result.preferences and not result.cancelled:
            preferences = request.app[PREFERENCES_KEY]
            preferences_dir = request.app.get(PREFERENCES_DIR_KEY)
            if preferences.update_from(result.preferences) and preferences_dir:
                try:
                    save_preferences(preferences, preferences_dir)
                except StorageError as e:
                    # Folders are already committed; report the preferences failure on its own
                    logger.error(f"Imported preferences could not be saved: {e}")
                    response_data["preferencesError"] = str(e)
                    message = f"{message} Preferences were applied but could not be saved."

        return create_success_response(message, response_data)
    except (FolderError, StorageError) as e:
        return error_response_from_exception(e, "import folders")


def setup_routes(app: web.Application, prefix: str = API_PREFIX) -> None:
    """Register every folder endpoint on the application."""
    routes = web.RouteTableDef()

    routes.get(f"{prefix}/folders")(get_folders)
    routes.post(f"{prefix}/folders")(create_folder)
    routes.get(f"{prefix}/folders/{{id}}")(get_folder)
    routes.put(f"{prefix}/folders/{{id}}")(update_folder)
    routes.delete(f"{prefix}/folders/{{id}}")(delete_folder)
    routes.post(f"{prefix}/folders/{{id}}/access")(record_folder_access)

    routes.get(f"{prefix}/folders/{{id}}/items")(get_folder_items)
    routes.post(f"{prefix}/folders/{{id}}/items")(add_items)
    routes.delete(f"{prefix}/folders/{{id}}/items/{{item_id}}")(remove_item)
    routes.post(f"{prefix}/folders/{{id}}/items/{{item_id}}/duplicate")(duplicate_item)
    routes.post(f"{prefix}/folders/{{id}}/items/{{item_id}}/move")(move_item)
    routes.get(f"{prefix}/folders/{{id}}/items/{{item_id}}/destinations")(get_move_destinations)
    routes.post(f"{prefix}/folders/{{id}}/items/{{item_id}}/access")(record_item_access)
    routes.post(f"{prefix}/folders/{{id}}/empty")(empty_folder)
    routes.post(f"{prefix}/folders/{{id}}/dedupe")(remove_duplicate_items)

    routes.post(f"{prefix}/folders/{{id}}/nest")(nest_folder)
    routes.get(f"{prefix}/folders/{{id}}/nesting-candidates")(get_nesting_candidates)
    routes.get(f"{prefix}/folders/{{id}}/urls")(get_folder_urls)

    routes.get(f"{prefix}/folders/{{id}}/export")(export_single_folder)
    routes.get(f"{prefix}/export")(export_everything)
    routes.post(f"{prefix}/import")(import_backup)
    routes.get(f"{prefix}/integrity")(get_integrity_report)

    app.add_routes(routes)
    logger.info(f"Registered folder API routes under {prefix}")


def create_app(store: FolderStore, preferences: Optional[Preferences] = None,
               preferences_dir: Optional[str] = None) -> web.Application:
    """
    Build an aiohttp application serving the folder API.

    Args:
        store: Folder store backing every handler
        preferences: Sort, view and default color preferences; defaults when omitted
        preferences_dir: Directory where imported preferences are saved, if any
    """
    app = web.Application()
    app[STORE_KEY] = store
    app[PREFERENCES_KEY] = preferences or Preferences()
    if preferences_dir:
        app[PREFERENCES_DIR_KEY] = preferences_dir
    setup_routes(app)
    return app
