"""
File storage models.

Implements per-user uploaded files organized in a folder tree:
- FileFolder (nested through parent; owner-scoped)
- FileItem (metadata row; the blob lives in Django's default storage)

Deleting a folder moves its subfolders and files to the root.
"""
import os

from django.conf import settings
from django.db import models

from apps.core.models import OwnedQuerySet, TimestampedModel


class FileFolder(TimestampedModel):
    """File folder. parent is null for top-level folders."""

    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='file_folders',
    )
    parent = models.ForeignKey(
        'self',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='children',
    )
    name = models.CharField(max_length=120)

    objects = OwnedQuerySet.as_manager()

    class Meta:
        db_table = 'file_folders'
        ordering = ['name']
        indexes = [
            models.Index(fields=['owner', 'parent'], name='file_folders_owner_parent_idx'),
        ]

    def __str__(self):
        return self.name


class FileItem(TimestampedModel):
    """
    Uploaded file.

    path is the storage name under user-files/<owner id>/; the original
    client file name is kept for downloads.
    """

    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='files',
    )
    folder = models.ForeignKey(
        FileFolder,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='files',
    )
    title = models.CharField(max_length=255)
    original_name = models.CharField(max_length=255)
    path = models.CharField(max_length=500, help_text="Storage name of the blob")
    mime_type = models.CharField(max_length=150, blank=True, default='')
    size = models.PositiveBigIntegerField(default=0, help_text="Size in bytes")

    objects = OwnedQuerySet.as_manager()

    class Meta:
        db_table = 'files'
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['owner', 'folder'], name='files_owner_folder_idx'),
        ]

    def __str__(self):
        return self.title

    @property
    def extension(self):
        """Lowercased extension of the original name, without the dot."""
        return os.path.splitext(self.original_name)[1].lstrip('.').lower()
