"""
Ownership guard for per-user resources (notes, files and their folders).
"""
import logging

from apps.core.exceptions import Forbidden

logger = logging.getLogger(__name__)


def assert_owner(resource, acting_user):
    """
    Raise Forbidden unless acting_user owns resource.

    Applies to every read, update, delete, download and preview of notes,
    files and folders, on top of the permission gate.
    """
    if resource.owner_id != acting_user.id:
        logger.warning(
            "Ownership check failed",
            extra={
                'user_id': acting_user.id,
                'object_type': resource.__class__.__name__,
                'object_id': resource.pk,
            }
        )
        raise Forbidden(
            f"You do not own this {resource.__class__.__name__.lower()}",
            details={'id': resource.pk}
        )
