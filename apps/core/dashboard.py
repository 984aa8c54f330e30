"""
Dashboard statistics for the signed-in user.

Note and file figures always cover the caller's own content. Users, roles
and permissions are counted only for admins.
"""
import logging
from datetime import datetime, time, timedelta
from typing import Any, Dict, Iterable, List, Mapping, Optional

from django.db.models import Count, Sum
from django.db.models.functions import TruncDate
from django.utils import timezone

from apps.files.models import FileFolder, FileItem
from apps.notes.models import Folder, Note
from apps.rbac.constants import ADMIN_ROLE, MASTER_ROLE
from apps.rbac.models import Permission, Role, User
from apps.rbac.services import RBACService

logger = logging.getLogger(__name__)

SERIES_DAYS = 7
RECENT_LIMIT = 5
TOP_MIMES_LIMIT = 5
UNKNOWN_MIME = 'unknown'

# Holding any of these marks the caller as an admin for the dashboard
ADMIN_DASHBOARD_PERMISSIONS = frozenset({'users.view', 'roles.manage'})


def series_days(today, days: int = SERIES_DAYS) -> List:
    """The last `days` dates, oldest first, ending with today."""
    return [today - timedelta(days=offset) for offset in range(days - 1, -1, -1)]


def build_daily_series(counts: Mapping, days: Iterable) -> List[Dict[str, Any]]:
    """
    One point per day; days without rows count zero.

    >>> from datetime import date
    >>> build_daily_series({date(2024, 1, 2): 3}, [date(2024, 1, 1), date(2024, 1, 2)])[1]['value']
    3
    """
    return [
        {
            'date': day.isoformat(),
            'label': day.strftime('%a'),
            'value': int(counts.get(day, 0)),
        }
        for day in days
    ]


class DashboardService:
    """Aggregates counts, recent items and trends for the dashboard."""

    @classmethod
    def is_admin(cls, user, permissions: Optional[Iterable[str]] = None) -> bool:
        role_names = {role.name for role in RBACService.roles_of(user)}
        if role_names & {MASTER_ROLE, ADMIN_ROLE}:
            return True

        if permissions is None:
            permissions = RBACService.effective_permissions(user)
        return bool(ADMIN_DASHBOARD_PERMISSIONS & set(permissions))

    @classmethod
    def _daily_counts(cls, queryset, since) -> Dict:
        rows = (
            queryset.filter(created_at__gte=since)
            .annotate(day=TruncDate('created_at'))
            .order_by()
            .values('day')
            .annotate(count=Count('id'))
            .values_list('day', 'count')
        )
        return dict(rows)

    @classmethod
    def _top_mimes(cls, files) -> List[Dict[str, Any]]:
        rows = (
            files.order_by()
            .values('mime_type')
            .annotate(count=Count('id'))
            .order_by('-count', 'mime_type')[:TOP_MIMES_LIMIT]
        )
        return [{'mime': row['mime_type'] or UNKNOWN_MIME, 'count': row['count']} for row in rows]

    @classmethod
    def summary(cls, user, permissions: Optional[Iterable[str]] = None) -> Dict[str, Any]:
        """
        Build the dashboard payload.

        Args:
            user: Acting user
            permissions: The request's effective permission snapshot, if
                already computed

        Returns:
            Dict with is_admin, stats, series, recent and top sections
        """
        is_admin = cls.is_admin(user, permissions)

        notes = Note.objects.for_owner(user)
        files = FileItem.objects.for_owner(user)

        days = series_days(timezone.localdate())
        since = timezone.make_aware(datetime.combine(days[0], time.min))

        stats = {
            'users': User.objects.count() if is_admin else None,
            'roles': Role.objects.count() if is_admin else None,
            'permissions': Permission.objects.count() if is_admin else None,
            'notes': notes.count(),
            'note_folders': Folder.objects.for_owner(user).count(),
            'files': files.count(),
            'file_folders': FileFolder.objects.for_owner(user).count(),
            'storage_bytes': files.aggregate(total=Sum('size'))['total'] or 0,
        }

        recent_notes = list(
            notes.order_by('-created_at', '-id')
            .values('id', 'title', 'created_at', 'updated_at')[:RECENT_LIMIT]
        )
        recent_files = list(
            files.order_by('-created_at', '-id')
            .values('id', 'title', 'original_name', 'mime_type', 'size', 'created_at')[:RECENT_LIMIT]
        )

        logger.debug("Dashboard built", extra={'user_id': user.id, 'is_admin': is_admin})

        return {
            'is_admin': is_admin,
            'stats': stats,
            'series': {
                'notes_last_7d': build_daily_series(cls._daily_counts(notes, since), days),
                'files_last_7d': build_daily_series(cls._daily_counts(files, since), days),
            },
            'recent': {
                'notes': recent_notes,
                'files': recent_files,
            },
            'top': {
                'mimes': cls._top_mimes(files),
            },
        }
