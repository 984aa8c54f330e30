"""
Tests for the dashboard service and GET /v1/dashboard/.
"""
from datetime import date, timedelta

import pytest
from django.utils import timezone
from rest_framework import status

from apps.core.dashboard import DashboardService, build_daily_series, series_days
from apps.files.models import FileFolder, FileItem
from apps.notes.models import Folder, Note
from apps.rbac.models import Permission, Role, User


def make_file(owner, title='file', mime_type='text/plain', size=10):
    return FileItem.objects.create(
        owner=owner, title=title, original_name=f'{title}.txt',
        path=f'user-files/{owner.id}/{title}', mime_type=mime_type, size=size
    )


class TestSeriesHelpers:

    def test_series_days_end_today(self):
        days = series_days(date(2024, 3, 10))

        assert len(days) == 7
        assert days[0] == date(2024, 3, 4)
        assert days[-1] == date(2024, 3, 10)

    def test_missing_days_count_zero(self):
        days = [date(2024, 3, 9), date(2024, 3, 10)]

        series = build_daily_series({date(2024, 3, 10): 4}, days)

        assert series == [
            {'date': '2024-03-09', 'label': 'Sat', 'value': 0},
            {'date': '2024-03-10', 'label': 'Sun', 'value': 4},
        ]


@pytest.mark.django_db
class TestDashboardService:

    def test_member_sees_only_own_content(self, member_user, other_member):
        Note.objects.create(owner=member_user, title='Mine')
        Note.objects.create(owner=other_member, title='Theirs')
        Folder.objects.create(owner=member_user, name='Work')
        FileFolder.objects.create(owner=other_member, name='Docs')
        make_file(member_user, 'a', size=100)
        make_file(member_user, 'b', size=50)
        make_file(other_member, 'c', size=999)

        stats = DashboardService.summary(member_user)['stats']

        assert stats['notes'] == 1
        assert stats['note_folders'] == 1
        assert stats['files'] == 2
        assert stats['file_folders'] == 0
        assert stats['storage_bytes'] == 150

    def test_empty_storage_is_zero(self, member_user):
        assert DashboardService.summary(member_user)['stats']['storage_bytes'] == 0

    def test_admin_counts_hidden_from_members(self, member_user):
        summary = DashboardService.summary(member_user)

        assert summary['is_admin'] is False
        assert summary['stats']['users'] is None
        assert summary['stats']['roles'] is None
        assert summary['stats']['permissions'] is None

    @pytest.mark.parametrize('fixture', ['admin_user', 'master_user'])
    def test_admin_counts_for_admins(self, request, fixture):
        user = request.getfixturevalue(fixture)

        summary = DashboardService.summary(user)

        assert summary['is_admin'] is True
        assert summary['stats']['users'] == User.objects.count()
        assert summary['stats']['roles'] == Role.objects.count()
        assert summary['stats']['permissions'] == Permission.objects.count()

    def test_users_view_grant_counts_as_admin(self, member_user):
        assert DashboardService.is_admin(member_user, frozenset({'notes.view', 'users.view'})) is True

    def test_series_counts_recent_days_only(self, member_user):
        Note.objects.create(owner=member_user, title='Today')
        old = Note.objects.create(owner=member_user, title='Old')
        Note.objects.filter(id=old.id).update(created_at=timezone.now() - timedelta(days=30))
        make_file(member_user)

        series = DashboardService.summary(member_user)['series']

        assert len(series['notes_last_7d']) == 7
        assert series['notes_last_7d'][-1]['date'] == timezone.localdate().isoformat()
        assert series['notes_last_7d'][-1]['value'] == 1
        assert sum(point['value'] for point in series['notes_last_7d']) == 1
        assert series['files_last_7d'][-1]['value'] == 1

    def test_recent_items_are_newest_first_and_capped(self, member_user):
        notes = [Note.objects.create(owner=member_user, title=f'Note {i}') for i in range(7)]

        recent = DashboardService.summary(member_user)['recent']['notes']

        assert [item['id'] for item in recent] == [note.id for note in reversed(notes[2:])]
        assert set(recent[0]) == {'id', 'title', 'created_at', 'updated_at'}

    def test_top_mimes(self, member_user):
        for index in range(3):
            make_file(member_user, f'png{index}', mime_type='image/png')
        make_file(member_user, 'txt', mime_type='text/plain')
        make_file(member_user, 'blank1', mime_type='')
        make_file(member_user, 'blank2', mime_type='')

        mimes = DashboardService.summary(member_user)['top']['mimes']

        assert mimes == [
            {'mime': 'image/png', 'count': 3},
            {'mime': 'unknown', 'count': 2},
            {'mime': 'text/plain', 'count': 1},
        ]


@pytest.mark.django_db
class TestDashboardAPI:

    def test_anonymous_is_401(self, api_client, rbac_seed):
        assert api_client.get('/v1/dashboard/').status_code == status.HTTP_401_UNAUTHORIZED

    def test_member_dashboard(self, member_client, member_user):
        Note.objects.create(owner=member_user, title='Mine')

        response = member_client.get('/v1/dashboard/')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['is_admin'] is False
        assert response.data['stats']['notes'] == 1
        assert response.data['stats']['users'] is None
        assert response.data['recent']['notes'][0]['title'] == 'Mine'

    def test_master_dashboard_includes_admin_counts(self, master_client):
        response = master_client.get('/v1/dashboard/')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['is_admin'] is True
        assert response.data['stats']['users'] == User.objects.count()
