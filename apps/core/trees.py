"""
Folder forest helpers shared by note folders and file folders.

Folders are loaded flat (one query per owner) and linked through a
parent-id index; nothing here queries the database.
"""
from collections import defaultdict
from typing import Dict, Iterable, List, Mapping, Optional

from apps.core.exceptions import ValidationFailed


def _sort_key(folder):
    return (folder.name.casefold(), folder.name, folder.id)


def folder_node(folder) -> dict:
    return {
        'id': folder.id,
        'name': folder.name,
        'parent_id': folder.parent_id,
        'children': [],
    }


def build_tree(folders: Iterable, to_node=folder_node) -> List[dict]:
    """
    Build a forest of nested nodes from a flat list of one owner's folders.

    Roots are folders whose parent_id is None. Children are ordered by name
    at every level. Folders whose parent is not in the list are not
    reachable from a root and are left out; parents are validated when they
    are assigned, not here.
    """
    children_of: Dict[Optional[int], list] = defaultdict(list)
    for folder in folders:
        children_of[folder.parent_id].append(folder)

    for siblings in children_of.values():
        siblings.sort(key=_sort_key)

    roots = []
    # (folder, list the node should be appended to)
    stack = [(folder, roots) for folder in reversed(children_of[None])]
    while stack:
        folder, target = stack.pop()
        node = to_node(folder)
        target.append(node)
        for child in reversed(children_of.get(folder.id, ())):
            stack.append((child, node['children']))

    return roots


def ensure_acyclic(folder_id, new_parent_id, parent_of: Mapping) -> None:
    """
    Reject a parent assignment that would put folder_id under itself.

    Args:
        folder_id: Folder being re-parented (None for a new folder)
        new_parent_id: Proposed parent id (None for root)
        parent_of: Mapping of folder id -> parent id for the owner's folders

    Raises:
        ValidationFailed: if the parent chain of new_parent_id reaches
            folder_id or loops
    """
    if new_parent_id is None or folder_id is None:
        return

    seen = set()
    current = new_parent_id
    while current is not None:
        if current == folder_id:
            raise ValidationFailed(
                'A folder cannot be moved inside itself or one of its subfolders',
                details={'folder_id': folder_id, 'parent_id': new_parent_id}
            )
        if current in seen:
            raise ValidationFailed(
                'Folder hierarchy contains a cycle',
                details={'folder_id': current}
            )
        seen.add(current)
        current = parent_of.get(current)
