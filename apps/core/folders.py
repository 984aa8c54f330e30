"""
Owner-scoped folder operations shared by note folders and file folders.

Subclasses set folder_model; every folder they touch belongs to the acting
user, and a folder id outside that user's folders is reported as missing.
"""
import logging
from typing import Any, Dict, List, Optional

from django.db import transaction

from apps.core.exceptions import NotFound, ValidationFailed
from apps.core.ownership import assert_owner
from apps.core.trees import build_tree, ensure_acyclic

logger = logging.getLogger(__name__)


def parse_folder_filter(value):
    """
    Interpret a folder_id query value.

    Returns:
        (apply, folder_id): apply is False for an absent or empty value
        (all folders); folder_id is None for 'null' (root only)
    """
    if value is None or value == '':
        return False, None
    if value == 'null':
        return True, None
    try:
        return True, int(value)
    except (TypeError, ValueError):
        raise ValidationFailed('folder_id must be a number, "null" or empty', details={'folder_id': value})


class OwnedFolderService:
    """Folder tree, lookup and CRUD for one folder model."""

    folder_model = None

    @classmethod
    def folders_of(cls, user):
        return cls.folder_model.objects.for_owner(user).only('id', 'name', 'parent_id')

    @classmethod
    def folder_tree(cls, user) -> List[dict]:
        """The user's folders as a name-sorted forest."""
        return build_tree(cls.folders_of(user))

    @classmethod
    def find_folder(cls, folder_id):
        folder = cls.folder_model.objects.filter(id=folder_id).first()
        if folder is None:
            raise NotFound('Folder not found', details={'id': folder_id})
        return folder

    @classmethod
    def resolve_folder(cls, user, folder_id: Optional[int]):
        """
        Load a folder the user owns, or None for the root.

        Raises:
            NotFound: if folder_id is not one of the user's folders
        """
        if folder_id is None:
            return None
        folder = cls.folder_model.objects.filter(id=folder_id, owner=user).first()
        if folder is None:
            raise NotFound('Folder not found', details={'folder_id': folder_id})
        return folder

    @classmethod
    def create_folder(cls, user, data: Dict[str, Any]):
        parent = cls.resolve_folder(user, data.get('parent_id'))
        folder = cls.folder_model.objects.create(owner=user, parent=parent, name=data['name'])

        logger.info(
            f"{cls.folder_model.__name__} created",
            extra={'user_id': user.id, 'folder_id': folder.id}
        )
        return folder

    @classmethod
    def update_folder(cls, user, folder, data: Dict[str, Any]):
        """
        Rename and re-parent a folder. A missing parent_id moves it to the root.

        Raises:
            Forbidden: folder belongs to another user
            NotFound: parent is not one of the user's folders
            ValidationFailed: parent is the folder itself or a descendant
        """
        assert_owner(folder, user)
        parent = cls.resolve_folder(user, data.get('parent_id'))

        if parent is not None:
            parent_of = dict(cls.folders_of(user).values_list('id', 'parent_id'))
            ensure_acyclic(folder.id, parent.id, parent_of)

        folder.name = data['name']
        folder.parent = parent
        folder.save(update_fields=['name', 'parent', 'updated_at'])
        return folder

    @classmethod
    def delete_folder(cls, user, folder):
        """Delete a folder; its subfolders and items move to the root."""
        assert_owner(folder, user)
        folder_id = folder.id
        with transaction.atomic():
            folder.delete()

        logger.info(
            f"{cls.folder_model.__name__} deleted",
            extra={'user_id': user.id, 'folder_id': folder_id}
        )
