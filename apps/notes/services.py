"""
Notes service.

Every operation takes the acting user explicitly and is confined to that
user's notes and folders; there is no admin override.
"""
import logging
from typing import Any, Dict, Iterable

from django.db import transaction

from apps.core.exceptions import NotFound
from apps.core.folders import OwnedFolderService, parse_folder_filter
from apps.core.ownership import assert_owner
from apps.notes.models import Folder, Note

logger = logging.getLogger(__name__)


class NotesService(OwnedFolderService):
    """Service for notes and note folders."""

    folder_model = Folder
    SEARCH_FIELDS = ('title', 'content')

    @classmethod
    def paginate_notes(cls, user, filters: Dict[str, Any]):
        """
        The user's notes, newest first.

        Args:
            user: Acting user
            filters: search, and folder_id ('' or absent for all folders,
                'null' for notes at the root, a number for one folder)

        Returns:
            QuerySet of notes; the view paginates it
        """
        notes = Note.objects.for_owner(user).select_related('folder')

        apply, folder_id = parse_folder_filter(filters.get('folder_id'))
        if apply:
            notes = notes.filter(folder_id=folder_id) if folder_id is not None else notes.filter(folder__isnull=True)

        search = (filters.get('search') or '').strip()
        if search:
            notes = notes.search(search, cls.SEARCH_FIELDS)

        return notes.order_by('-created_at', '-id')

    @classmethod
    def find_note(cls, note_id) -> Note:
        note = Note.objects.select_related('folder').filter(id=note_id).first()
        if note is None:
            raise NotFound('Note not found', details={'id': note_id})
        return note

    @classmethod
    def get_note(cls, user, note: Note) -> Note:
        assert_owner(note, user)
        return note

    @classmethod
    def create_note(cls, user, data: Dict[str, Any]) -> Note:
        folder = cls.resolve_folder(user, data.get('folder_id'))
        note = Note.objects.create(
            owner=user,
            folder=folder,
            title=data['title'],
            content=data.get('content') or '',
        )

        logger.info("Note created", extra={'user_id': user.id, 'note_id': note.id})
        return note

    @classmethod
    def update_note(cls, user, note: Note, data: Dict[str, Any]) -> Note:
        """Replace title, content and folder; a missing folder_id moves the note to the root."""
        assert_owner(note, user)
        folder = cls.resolve_folder(user, data.get('folder_id'))

        note.folder = folder
        note.title = data['title']
        note.content = data.get('content') or ''
        note.save(update_fields=['folder', 'title', 'content', 'updated_at'])
        return note

    @classmethod
    def delete_note(cls, user, note: Note):
        assert_owner(note, user)
        note_id = note.id
        note.delete()
        logger.info("Note deleted", extra={'user_id': user.id, 'note_id': note_id})

    @classmethod
    def bulk_delete_notes(cls, user, ids: Iterable[int]) -> int:
        """
        Delete the listed notes the user owns. Ids of other users' notes
        are ignored.

        Returns:
            Number of notes deleted
        """
        with transaction.atomic():
            deleted, _ = Note.objects.for_owner(user).filter(id__in=list(ids)).delete()

        logger.info("Notes bulk deleted", extra={'user_id': user.id, 'count': deleted})
        return deleted
