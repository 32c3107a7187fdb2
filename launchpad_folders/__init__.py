"""
Launchpad Folders

Organizes applications, websites and other folders into a user-editable tree of
named collections, persisted as one JSON blob and read through an in-memory cache.

This package includes:
- Folder store with nesting invariants and orphan reconciliation
- Multi-level sorting and duplicate detection
- Recursive URL collection rendered as markdown or a flat list
- Backup export and validated import
- aiohttp JSON API over the store
"""

__version__ = "0.1.0"
__description__ = "Hierarchical folders of applications and websites with backup and URL export"
