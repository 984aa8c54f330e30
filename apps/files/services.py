"""
File service.

Blobs are stored through Django's default storage under
user-files/<user id>/; rows hold the metadata. Every operation takes the
acting user explicitly and is confined to that user's files and folders.
"""
import logging
import mimetypes
import os
import uuid
from typing import Any, Dict, Iterable

from django.core.files.storage import default_storage
from django.db import transaction

from apps.core.exceptions import NotFound, UnsupportedFileType
from apps.core.folders import OwnedFolderService, parse_folder_filter
from apps.core.ownership import assert_owner
from apps.files.models import FileFolder, FileItem

logger = logging.getLogger(__name__)


class FileService(OwnedFolderService):
    """Service for uploaded files and file folders."""

    folder_model = FileFolder
    SEARCH_FIELDS = ('title', 'original_name')

    STORAGE_PREFIX = 'user-files'
    MAX_UPLOAD_BYTES = 50 * 1024 * 1024

    TEXT_MIME_TYPES = frozenset({
        'text/plain',
        'text/csv',
        'application/json',
        'application/xml',
        'text/xml',
    })
    TEXT_EXTENSIONS = frozenset({'txt', 'log', 'md', 'csv', 'json', 'xml'})
    TEXT_MAX_BYTES = 400 * 1024
    TRUNCATED_MARKER = '\n\n--- TRUNCATED ---'

    @classmethod
    def paginate_files(cls, user, filters: Dict[str, Any]):
        """
        The user's files, newest first.

        Args:
            user: Acting user
            filters: search (title and original name) and folder_id with
                the same semantics as notes

        Returns:
            QuerySet of files; the view paginates it
        """
        files = FileItem.objects.for_owner(user).select_related('folder')

        apply, folder_id = parse_folder_filter(filters.get('folder_id'))
        if apply:
            files = files.filter(folder_id=folder_id) if folder_id is not None else files.filter(folder__isnull=True)

        search = (filters.get('search') or '').strip()
        if search:
            files = files.search(search, cls.SEARCH_FIELDS)

        return files.order_by('-created_at', '-id')

    @classmethod
    def find_file(cls, file_id) -> FileItem:
        file = FileItem.objects.select_related('folder').filter(id=file_id).first()
        if file is None:
            raise NotFound('File not found', details={'id': file_id})
        return file

    @classmethod
    def storage_name_for(cls, user, original_name: str) -> str:
        _, ext = os.path.splitext(original_name)
        return f"{cls.STORAGE_PREFIX}/{user.id}/{uuid.uuid4().hex}{ext.lower()}"

    @classmethod
    def store_file(cls, user, upload, data: Dict[str, Any]) -> FileItem:
        """
        Save an uploaded file and record it.

        The title defaults to the original file name without its extension.

        Raises:
            NotFound: folder_id is not one of the user's folders
        """
        folder = cls.resolve_folder(user, data.get('folder_id'))

        original_name = os.path.basename(upload.name)
        mime_type = getattr(upload, 'content_type', None) or mimetypes.guess_type(original_name)[0] or ''

        path = default_storage.save(cls.storage_name_for(user, original_name), upload)
        try:
            file = FileItem.objects.create(
                owner=user,
                folder=folder,
                title=data.get('title') or os.path.splitext(original_name)[0],
                original_name=original_name,
                path=path,
                mime_type=mime_type,
                size=upload.size or 0,
            )
        except Exception:
            # Do not leave an orphaned blob behind a failed insert
            default_storage.delete(path)
            raise

        logger.info(
            "File stored",
            extra={'user_id': user.id, 'file_id': file.id, 'size': file.size, 'mime_type': mime_type}
        )
        return file

    @classmethod
    def update_file(cls, user, file: FileItem, data: Dict[str, Any]) -> FileItem:
        """Set title and folder; a missing folder_id moves the file to the root."""
        assert_owner(file, user)
        folder = cls.resolve_folder(user, data.get('folder_id'))

        file.title = data['title']
        file.folder = folder
        file.save(update_fields=['title', 'folder', 'updated_at'])
        return file

    @classmethod
    def open_file(cls, user, file: FileItem):
        """
        Open the blob for download or preview.

        Raises:
            Forbidden: file belongs to another user
            NotFound: the blob is missing from storage
        """
        assert_owner(file, user)
        if not default_storage.exists(file.path):
            logger.warning(
                "File blob missing from storage",
                extra={'user_id': user.id, 'file_id': file.id, 'path': file.path}
            )
            raise NotFound('File content not found', details={'id': file.id})
        return default_storage.open(file.path, 'rb')

    @classmethod
    def is_text(cls, file: FileItem) -> bool:
        return file.mime_type in cls.TEXT_MIME_TYPES or file.extension in cls.TEXT_EXTENSIONS

    @classmethod
    def read_text(cls, user, file: FileItem) -> Dict[str, Any]:
        """
        Read a text file for inline viewing.

        Content over 400 KB is cut and marked as truncated.

        Raises:
            UnsupportedFileType: neither the mime type nor the extension is textual
        """
        assert_owner(file, user)
        if not cls.is_text(file):
            raise UnsupportedFileType(
                'This file cannot be displayed as text',
                details={'id': file.id, 'mime_type': file.mime_type}
            )

        with cls.open_file(user, file) as handle:
            raw = handle.read(cls.TEXT_MAX_BYTES + 1)

        truncated = len(raw) > cls.TEXT_MAX_BYTES
        content = raw[:cls.TEXT_MAX_BYTES].decode('utf-8', errors='replace')
        if truncated:
            content += cls.TRUNCATED_MARKER

        return {
            'content': content,
            'truncated': truncated,
            'mime_type': file.mime_type,
        }

    @classmethod
    def _remove_blob(cls, file: FileItem):
        """Remove the stored blob; a blob that is already gone is not an error."""
        try:
            if default_storage.exists(file.path):
                default_storage.delete(file.path)
        except OSError:
            logger.warning(
                "Could not remove file blob",
                extra={'file_id': file.id, 'path': file.path},
                exc_info=True
            )

    @classmethod
    def delete_file(cls, user, file: FileItem):
        """Delete the blob, then the row."""
        assert_owner(file, user)
        file_id = file.id
        cls._remove_blob(file)
        file.delete()
        logger.info("File deleted", extra={'user_id': user.id, 'file_id': file_id})

    @classmethod
    def bulk_delete_files(cls, user, ids: Iterable[int]) -> int:
        """
        Delete the listed files the user owns. Ids of other users' files
        are ignored.

        Returns:
            Number of files deleted
        """
        with transaction.atomic():
            files = list(FileItem.objects.for_owner(user).filter(id__in=list(ids)))
            for file in files:
                cls._remove_blob(file)
            FileItem.objects.filter(id__in=[file.id for file in files]).delete()

        logger.info("Files bulk deleted", extra={'user_id': user.id, 'count': len(files)})
        return len(files)
