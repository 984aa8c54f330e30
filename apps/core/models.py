"""
Core models for Notes Hub.
Provides TimestampedModel with integer primary keys and timestamps, and
BaseModel which adds soft delete on top of it.
"""
from django.db import models
from django.utils import timezone


class BaseModelManager(models.Manager):
    """Manager that excludes soft-deleted objects by default."""

    def get_queryset(self):
        return super().get_queryset().filter(deleted_at__isnull=True)


class BaseModelQuerySet(models.QuerySet):
    """QuerySet with soft delete support."""

    def delete(self):
        """Soft delete all objects in queryset."""
        return self.update(deleted_at=timezone.now())

    def hard_delete(self):
        """Permanently delete all objects in queryset."""
        return super().delete()

    def with_deleted(self):
        """Include soft-deleted objects."""
        return self.model.objects_with_deleted.all()


class TimestampedModel(models.Model):
    """
    Abstract base model with an integer primary key and timestamps.

    Integer ids are part of the authorization contract: the seeded roles
    (ids 1, 2, 3) and the root user (id 1) are identified by them.
    """
    id = models.BigAutoField(
        primary_key=True,
        help_text="Unique identifier"
    )

    created_at = models.DateTimeField(
        auto_now_add=True,
        db_index=True,
        help_text="Timestamp when the record was created"
    )

    updated_at = models.DateTimeField(
        auto_now=True,
        db_index=True,
        help_text="Timestamp when the record was last updated"
    )

    class Meta:
        abstract = True
        ordering = ['-created_at']


class BaseModel(TimestampedModel):
    """
    Abstract base model with soft delete.

    Used for records that must survive deletion for referential history
    (user accounts). Everything else is hard deleted.
    """
    deleted_at = models.DateTimeField(
        null=True,
        blank=True,
        db_index=True,
        help_text="Timestamp when the record was soft deleted"
    )

    # Default manager excludes soft-deleted objects
    objects = BaseModelManager.from_queryset(BaseModelQuerySet)()

    # Manager that includes soft-deleted objects
    objects_with_deleted = models.Manager.from_queryset(BaseModelQuerySet)()

    class Meta:
        abstract = True
        ordering = ['-created_at']

    def delete(self, using=None, keep_parents=False):
        """Soft delete the object."""
        self.deleted_at = timezone.now()
        self.save(using=using, update_fields=['deleted_at', 'updated_at'])

    def hard_delete(self, using=None, keep_parents=False):
        """Permanently delete the object."""
        return super().delete(using=using, keep_parents=keep_parents)

    def restore(self):
        """Restore a soft-deleted object."""
        self.deleted_at = None
        self.save(update_fields=['deleted_at', 'updated_at'])

    @property
    def is_deleted(self):
        """Check if the object is soft deleted."""
        return self.deleted_at is not None


class OwnedQuerySet(models.QuerySet):
    """QuerySet for per-user resources (notes, files and their folders)."""

    def for_owner(self, user):
        """Rows belonging to a specific user."""
        return self.filter(owner=user)

    def search(self, query, fields):
        """Case-insensitive substring search over fields."""
        condition = models.Q()
        for field in fields:
            condition |= models.Q(**{f'{field}__icontains': query})
        return self.filter(condition)
