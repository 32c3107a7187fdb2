"""
Core System Components for Launchpad Folders

This package contains the data structures and operations behind the folder
collection:

- folder: Folder and item data structures, identifiers and colors
- blob_store: Persistent blob storage (memory and JSON files)
- storage: Cached, write-through folder store with every mutation
- hierarchy: Nesting graph, ancestor checks and write-time constraints
- validation: Orphan reconciliation and integrity reporting
- sorting: Three-level sort chains for folders and items
- dedupe: Duplicate detection by item identity
- urls: URL normalization, parsing and recursive collection
- access: Recency bookkeeping
- backup: Export documents and validated import
- collaborators: Interfaces of the application catalog, favicon acquirer,
  confirmation prompt and clipboard
"""

from .folder import (
    Folder,
    FolderItem,
    ApplicationItem,
    WebsiteItem,
    FolderReferenceItem,
    FolderError,
    FolderValidationError,
    FolderNotFoundError,
    ItemNotFoundError,
    NestingConstraintError,
    generate_id,
    item_from_dict,
    new_folder,
    create_website_item,
    create_folder_reference_item,
    get_top_level_folders,
)

from .blob_store import (
    BlobStore,
    MemoryBlobStore,
    JsonFileBlobStore,
    StorageError,
    BlobDecodeError,
)

from .storage import (
    FolderStore,
    STORAGE_KEY,
    create_storage,
)

from .hierarchy import (
    NestingGraph,
    available_nesting_targets,
    movable_destinations,
    check_nesting_constraints,
)

from .validation import (
    ValidationResult,
    cleanup_orphaned_references,
    validate_folder_structure,
    validate_collection_integrity,
)

from .sorting import (
    SortConfig,
    parse_sort_preference,
    sort_folders,
    sort_folder_items,
)

from .dedupe import (
    DuplicateReport,
    get_item_key,
    find_duplicate_items,
    find_duplicate_urls,
)

from .urls import (
    CollectedUrl,
    normalize_url,
    parse_website_urls,
    collect_folder_urls,
    format_urls_as_markdown,
    format_urls_as_list,
)

from .backup import (
    BACKUP_VERSION,
    ImportResult,
    ImportValidationError,
    export_folder,
    export_all_folders,
    import_folders,
    validate_import_data,
)

from .collaborators import (
    Application,
    ApplicationCatalog,
    FaviconAcquirer,
    ClipboardSink,
    ConfirmationPrompt,
    create_application_item,
)

__all__ = [
    # Core data structures
    "Folder",
    "FolderItem",
    "ApplicationItem",
    "WebsiteItem",
    "FolderReferenceItem",
    "generate_id",
    "item_from_dict",
    "new_folder",
    "create_website_item",
    "create_folder_reference_item",
    "get_top_level_folders",

    # Exceptions
    "FolderError",
    "FolderValidationError",
    "FolderNotFoundError",
    "ItemNotFoundError",
    "NestingConstraintError",
    "StorageError",
    "BlobDecodeError",
    "ImportValidationError",

    # Storage classes and functions
    "BlobStore",
    "MemoryBlobStore",
    "JsonFileBlobStore",
    "FolderStore",
    "STORAGE_KEY",
    "create_storage",

    # Hierarchy and validation
    "NestingGraph",
    "available_nesting_targets",
    "movable_destinations",
    "check_nesting_constraints",
    "ValidationResult",
    "cleanup_orphaned_references",
    "validate_folder_structure",
    "validate_collection_integrity",

    # Sorting, duplicates and URLs
    "SortConfig",
    "parse_sort_preference",
    "sort_folders",
    "sort_folder_items",
    "DuplicateReport",
    "get_item_key",
    "find_duplicate_items",
    "find_duplicate_urls",
    "CollectedUrl",
    "normalize_url",
    "parse_website_urls",
    "collect_folder_urls",
    "format_urls_as_markdown",
    "format_urls_as_list",

    # Backup
    "BACKUP_VERSION",
    "ImportResult",
    "export_folder",
    "export_all_folders",
    "import_folders",
    "validate_import_data",

    # Collaborators
    "Application",
    "ApplicationCatalog",
    "FaviconAcquirer",
    "ClipboardSink",
    "ConfirmationPrompt",
    "create_application_item",
]
