"""
URL Collection and Formatting for Launchpad Folders

Recursively gathers website URLs from a folder and every folder nested inside it,
and renders them either as an indented markdown list or as a flat list. Also holds
the URL helpers shared by item creation and duplicate detection.
"""

import re
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Set
from urllib.parse import urlparse

from .folder import Folder, FolderReferenceItem, WebsiteItem, ApplicationItem

logger = logging.getLogger(__name__)

_SCHEME_RE = re.compile(r"^https?://", re.IGNORECASE)
_DOT_TEXT_RE = re.compile(r"([a-z0-9])dot([a-z0-9])", re.IGNORECASE)
_MARKDOWN_LINK_RE = re.compile(r"^\[([^\]]+)\]\(([^)]+)\)$")


@dataclass
class CollectedUrl:
    """A website URL found during collection, with the folder it came from."""
    url: str
    folder_name: Optional[str]
    depth: int


@dataclass
class ParsedUrlEntry:
    url: str
    title: Optional[str] = None


def normalize_url(url: str) -> str:
    """
    Normalize a user-entered URL.

    Trims whitespace and prefixes ``https://`` when no scheme is present. Scheme-less
    input also has spelled-out dots converted, so ``githubdotcom`` becomes
    ``https://github.com``.

    Args:
        url: Raw URL text

    Returns:
        Normalized URL, or an empty string for blank input
    """
    trimmed = (url or "").strip()
    if not trimmed:
        return ""
    if _SCHEME_RE.match(trimmed):
        return trimmed
    with_dots = _DOT_TEXT_RE.sub(r"\1.\2", trimmed)
    return f"https://{with_dots}"


def is_valid_url(url: str) -> bool:
    """True for absolute http(s) URLs with a host and no whitespace."""
    if not url or any(c.isspace() for c in url):
        return False
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def extract_domain(url: str) -> str:
    """Hostname without a leading ``www.``; the input itself when it cannot be parsed."""
    try:
        hostname = urlparse(url).hostname
    except ValueError:
        hostname = None
    if not hostname:
        return url
    return hostname[4:] if hostname.startswith("www.") else hostname


def _parse_url_line(line: str) -> Optional[ParsedUrlEntry]:
    trimmed = line.strip()
    if not trimmed:
        return None

    match = _MARKDOWN_LINK_RE.match(trimmed)
    if match:
        url = normalize_url(match.group(2).strip())
        if is_valid_url(url):
            return ParsedUrlEntry(url=url, title=match.group(1).strip() or None)

    url = normalize_url(trimmed)
    if is_valid_url(url):
        return ParsedUrlEntry(url=url)
    return None


def parse_website_urls_with_titles(text: str) -> List[ParsedUrlEntry]:
    """
    Parse one URL per line, accepting plain URLs and markdown links ``[title](url)``.
    Invalid lines are dropped.
    """
    if not text or not text.strip():
        return []
    entries = []
    for line in text.split("\n"):
        entry = _parse_url_line(line)
        if entry is not None:
            entries.append(entry)
    return entries


def parse_website_urls(text: str) -> List[str]:
    return [entry.url for entry in parse_website_urls_with_titles(text)]


def extract_website_urls(items: List) -> str:
    """
    Render the website items of a list back into editable text, one per line.
    Items whose name differs from their domain keep it through markdown link syntax.
    """
    lines = []
    for item in items:
        if not isinstance(item, WebsiteItem) or not item.url:
            continue
        if item.name and item.name != extract_domain(item.url):
            lines.append(f"[{item.name}]({item.url})")
        else:
            lines.append(item.url)
    return "\n".join(lines)


def collect_folder_urls(folder: Folder, all_folders: List[Folder], depth: int = 0,
                        visited: Optional[Set[str]] = None,
                        folder_map: Optional[Dict[str, Folder]] = None) -> List[CollectedUrl]:
    """
    Recursively collect website URLs from a folder and its nested folders.

    A folder's own websites come first, followed by the contents of each nested folder
    in item order. Each folder is visited at most once, so malformed cyclic data still
    terminates.

    Args:
        folder: Folder to start from
        all_folders: Complete collection, used to resolve folder references
        depth: Current nesting depth (0 for the starting folder)
        visited: Ids of folders already walked
        folder_map: Lookup by id, built on the first call

    Returns:
        List of CollectedUrl records in traversal order

    Example:
        >>> b = Folder("b", "B", [WebsiteItem("w", "x", "https://x.com")])
        >>> a = Folder("a", "A", [FolderReferenceItem("r", "B", "b")])
        >>> collect_folder_urls(a, [a, b])
        [CollectedUrl(url='https://x.com', folder_name='B', depth=1)]
    """
    if visited is None:
        visited = set()
    if folder.id in visited:
        return []
    visited.add(folder.id)

    if folder_map is None:
        folder_map = {f.id: f for f in all_folders}

    urls = []
    for item in folder.items:
        if isinstance(item, WebsiteItem) and item.url:
            urls.append(CollectedUrl(
                url=item.url,
                folder_name=folder.name if depth > 0 else None,
                depth=depth,
            ))

    for item in folder.items:
        if isinstance(item, FolderReferenceItem):
            nested = folder_map.get(item.folder_id)
            if nested is not None:
                urls.extend(collect_folder_urls(nested, all_folders, depth + 1, visited, folder_map))
        elif not isinstance(item, (WebsiteItem, ApplicationItem)):
            raise TypeError(f"Unsupported folder item: {item!r}")

    return urls


def format_urls_as_markdown(urls: List[CollectedUrl], root_folder_name: Optional[str] = None) -> str:
    """
    Format collected URLs as a markdown bullet list.

    URLs from nested folders are indented under a bold heading for their folder. The
    root folder is shown as a heading only when at least one URL comes from below it.
    """
    if not urls:
        return ""

    has_nested_urls = any(u.depth > 0 for u in urls)
    show_root = has_nested_urls and bool(root_folder_name)

    lines = []
    if show_root:
        lines.append(f"- **{root_folder_name}**")

    current_folder = None
    for entry in urls:
        actual_depth = entry.depth + 1 if show_root else entry.depth

        if entry.depth > 0 and entry.folder_name and entry.folder_name != current_folder:
            lines.append(f"{'  ' * (actual_depth - 1)}- **{entry.folder_name}**")
            current_folder = entry.folder_name

        lines.append(f"{'  ' * actual_depth}- {entry.url}")

    return "\n".join(lines)


def format_urls_as_list(urls: List[CollectedUrl]) -> str:
    """One URL per line, shortest first, ties in string order."""
    if not urls:
        return ""
    return "\n".join(sorted((u.url for u in urls), key=lambda url: (len(url), url)))
