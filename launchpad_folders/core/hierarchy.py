"""
Nesting Hierarchy for Launchpad Folders

Folders nest through folder-reference items, so the hierarchy is a graph derived
from item lists rather than stored parent pointers. ``NestingGraph`` builds that
adjacency once and answers ancestor, parent and candidate questions over it.
Every traversal keeps a visited set so malformed cyclic data cannot loop forever.
"""

import logging
from typing import Dict, List, Optional, Set, Tuple

from .folder import Folder, FolderItem, FolderReferenceItem, NestingConstraintError

logger = logging.getLogger(__name__)


class NestingGraph:
    """
    Adjacency view over a folder collection.

    Attributes:
        children: folder id -> child folder ids in item order (duplicates collapsed)
        parents: child folder id -> set of folder ids referencing it
    """

    def __init__(self, folders: List[Folder]):
        self.folder_ids: Set[str] = {folder.id for folder in folders}
        self.children: Dict[str, List[str]] = {}
        self.parents: Dict[str, Set[str]] = {}
        self._parent_map: Dict[str, str] = {}
        self._reference_counts: Dict[str, int] = {}

        for folder in folders:
            child_ids = self.children.setdefault(folder.id, [])
            for child_id in folder.nested_folder_ids():
                if child_id not in child_ids:
                    child_ids.append(child_id)
                self.parents.setdefault(child_id, set()).add(folder.id)
                # Last reference observed in scan order wins
                self._parent_map[child_id] = folder.id
                self._reference_counts[child_id] = self._reference_counts.get(child_id, 0) + 1

    def is_ancestor(self, candidate_id: str, target_id: str) -> bool:
        """
        Check whether ``candidate_id`` transitively contains ``target_id``.

        Depth-first search over child edges starting at the candidate. The candidate
        is its own ancestor only when it sits on a cycle.
        """
        visited = set()
        stack = list(self.children.get(candidate_id, []))
        while stack:
            node = stack.pop()
            if node == target_id:
                return True
            if node in visited:
                continue
            visited.add(node)
            stack.extend(self.children.get(node, []))
        return False

    def ancestors_of(self, folder_id: str) -> Set[str]:
        """All folders that directly or indirectly contain ``folder_id`` (excluding itself)."""
        ancestors = set()
        stack = list(self.parents.get(folder_id, ()))
        while stack:
            node = stack.pop()
            if node in ancestors:
                continue
            ancestors.add(node)
            stack.extend(self.parents.get(node, ()))
        ancestors.discard(folder_id)
        return ancestors

    def descendants_of(self, folder_id: str) -> List[str]:
        """Every folder reachable from ``folder_id`` in depth-first pre-order, excluding itself."""
        result = []
        visited = {folder_id}

        def walk(node: str) -> None:
            for child in self.children.get(node, []):
                if child in visited:
                    continue
                visited.add(child)
                result.append(child)
                walk(child)

        walk(folder_id)
        return result

    def parent_of(self, folder_id: str) -> Optional[str]:
        return self._parent_map.get(folder_id)

    def parent_map(self) -> Dict[str, str]:
        """child id -> parent id, keeping the last reference seen in scan order."""
        return dict(self._parent_map)

    def reference_count(self, folder_id: str) -> int:
        return self._reference_counts.get(folder_id, 0)

    def find_cycles(self) -> List[List[str]]:
        """
        Detect nesting cycles using DFS with a recursion stack.

        Returns:
            One path per detected cycle, first node repeated at the end
        """
        cycles = []
        visited: Set[str] = set()

        for start in self.children:
            if start in visited:
                continue
            recursion_stack: Set[str] = set()
            path: List[str] = []

            def dfs(node: str) -> None:
                if node in recursion_stack:
                    cycles.append(path[path.index(node):] + [node])
                    return
                if node in visited:
                    return
                visited.add(node)
                recursion_stack.add(node)
                path.append(node)
                for neighbor in self.children.get(node, []):
                    dfs(neighbor)
                recursion_stack.discard(node)
                path.pop()

            dfs(start)

        return cycles


def available_nesting_targets(folders: List[Folder], folder_id: Optional[str] = None) -> List[Folder]:
    """
    Folders that may be nested inside the folder being edited.

    Excluded are the folder itself, its ancestors (nesting them would create a
    cycle), and folders that already have a parent other than the folder being
    edited. ``folder_id`` is None while creating a new folder.

    Args:
        folders: Complete collection
        folder_id: Id of the folder being edited, if any

    Returns:
        Allowed folders in collection order
    """
    graph = NestingGraph(folders)
    ancestors = graph.ancestors_of(folder_id) if folder_id else set()
    current_children = set(graph.children.get(folder_id, [])) if folder_id else set()

    available = []
    for folder in folders:
        if folder.id == folder_id:
            continue
        if folder.id in ancestors:
            continue
        parent_id = graph.parent_of(folder.id)
        if parent_id and parent_id != folder_id and folder.id not in current_children:
            continue
        available.append(folder)
    return available


def movable_destinations(folders: List[Folder], source_folder_id: str, item: FolderItem) -> List[Folder]:
    """
    Folders an item may be moved to from ``source_folder_id``.

    A folder reference cannot be moved into the folder it points at, nor into any
    folder that folder contains.
    """
    graph = NestingGraph(folders)
    blocked = {source_folder_id}
    if isinstance(item, FolderReferenceItem):
        blocked.add(item.folder_id)
        blocked.update(graph.descendants_of(item.folder_id))
    return [folder for folder in folders if folder.id not in blocked]


def _reference_edges(folders: List[Folder]) -> List[Tuple[str, str]]:
    edges = []
    for folder in folders:
        for child_id in folder.nested_folder_ids():
            edges.append((folder.id, child_id))
    return edges


def check_nesting_constraints(before: List[Folder], after: List[Folder]) -> None:
    """
    Verify the nesting edges introduced between two states of the collection.

    Only edges present in ``after`` but not in ``before`` are checked, so anomalies
    already present in stored data do not block unrelated edits.

    Raises:
        NestingConstraintError: If a new edge targets a missing folder, nests a folder
            in itself, gives a folder a second parent, or closes a cycle
    """
    existing = {}
    for edge in _reference_edges(before):
        existing[edge] = existing.get(edge, 0) + 1

    new_edges = []
    for edge in _reference_edges(after):
        if existing.get(edge, 0) > 0:
            existing[edge] -= 1
        else:
            new_edges.append(edge)

    if not new_edges:
        return

    graph = NestingGraph(after)
    for parent_id, child_id in new_edges:
        if child_id == parent_id:
            raise NestingConstraintError(f"Folder '{parent_id}' cannot be nested inside itself")
        if child_id not in graph.folder_ids:
            raise NestingConstraintError(f"Cannot nest missing folder '{child_id}' in '{parent_id}'")
        if graph.reference_count(child_id) > 1:
            raise NestingConstraintError(
                f"Folder '{child_id}' is already nested elsewhere and can only have one parent")
        if graph.is_ancestor(child_id, parent_id):
            raise NestingConstraintError(
                f"Nesting '{child_id}' in '{parent_id}' would create a circular reference")
