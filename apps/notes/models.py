"""
Notes models.

Implements per-user markdown notes organized in a folder tree:
- Folder (nested through parent; owner-scoped)
- Note (optionally inside a folder)

Deleting a folder moves its subfolders and notes to the root.
"""
from django.conf import settings
from django.db import models

from apps.core.models import OwnedQuerySet, TimestampedModel


class Folder(TimestampedModel):
    """Note folder. parent is null for top-level folders."""

    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='note_folders',
    )
    parent = models.ForeignKey(
        'self',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='children',
    )
    name = models.CharField(max_length=80)

    objects = OwnedQuerySet.as_manager()

    class Meta:
        db_table = 'folders'
        ordering = ['name']
        indexes = [
            models.Index(fields=['owner', 'parent'], name='folders_owner_parent_idx'),
        ]

    def __str__(self):
        return self.name


class Note(TimestampedModel):
    """Markdown note."""

    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='notes',
    )
    folder = models.ForeignKey(
        Folder,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='notes',
    )
    title = models.CharField(max_length=120)
    content = models.TextField(null=True, blank=True, help_text="Markdown content")

    objects = OwnedQuerySet.as_manager()

    class Meta:
        db_table = 'notes'
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['owner', 'folder'], name='notes_owner_folder_idx'),
        ]

    def __str__(self):
        return self.title
