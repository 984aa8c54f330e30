"""
Tests for the notes API: ownership, folder filters and folder trees.
"""
import pytest
from rest_framework import status

from apps.notes.models import Folder, Note


@pytest.fixture
def make_note():
    def _make_note(owner, title='Note', content='', folder=None):
        return Note.objects.create(owner=owner, title=title, content=content, folder=folder)
    return _make_note


@pytest.fixture
def make_folder():
    def _make_folder(owner, name, parent=None):
        return Folder.objects.create(owner=owner, name=name, parent=parent)
    return _make_folder


@pytest.mark.django_db
class TestNotesCrud:

    def test_create_and_read_note(self, member_client):
        response = member_client.post('/v1/notes/', {'title': 'Groceries', 'content': 'milk'}, format='json')

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['folder_id'] is None

        note_id = response.data['id']
        response = member_client.get(f'/v1/notes/{note_id}/')
        assert response.data['title'] == 'Groceries'
        assert response.data['content'] == 'milk'

    def test_create_in_folder(self, member_client, member_user, make_folder):
        folder = make_folder(member_user, 'Work')

        response = member_client.post(
            '/v1/notes/', {'title': 'Plan', 'folder_id': folder.id}, format='json'
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['folder_name'] == 'Work'

    def test_foreign_folder_is_404(self, member_client, other_member, make_folder):
        foreign = make_folder(other_member, 'Private')

        response = member_client.post(
            '/v1/notes/', {'title': 'Plan', 'folder_id': foreign.id}, format='json'
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert not Note.objects.exists()

    def test_update_without_folder_moves_to_root(self, member_client, member_user, make_note, make_folder):
        note = make_note(member_user, folder=make_folder(member_user, 'Work'))

        response = member_client.put(f'/v1/notes/{note.id}/', {'title': 'Moved'}, format='json')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['folder_id'] is None
        assert response.data['content'] == ''

    def test_delete_note(self, member_client, member_user, make_note):
        note = make_note(member_user)

        response = member_client.delete(f'/v1/notes/{note.id}/')

        assert response.status_code == status.HTTP_204_NO_CONTENT
        assert not Note.objects.filter(id=note.id).exists()

    def test_missing_note_is_404(self, member_client):
        assert member_client.get('/v1/notes/9999/').status_code == status.HTTP_404_NOT_FOUND


@pytest.mark.django_db
class TestNoteOwnership:

    def test_other_users_note_is_403(self, member_client, other_member, make_note):
        note = make_note(other_member, title='Diary')

        assert member_client.get(f'/v1/notes/{note.id}/').status_code == status.HTTP_403_FORBIDDEN
        assert member_client.put(
            f'/v1/notes/{note.id}/', {'title': 'Mine now'}, format='json'
        ).status_code == status.HTTP_403_FORBIDDEN
        assert member_client.delete(f'/v1/notes/{note.id}/').status_code == status.HTTP_403_FORBIDDEN

        note.refresh_from_db()
        assert note.title == 'Diary'

    def test_master_has_no_override(self, master_client, member_user, make_note):
        note = make_note(member_user)
        assert master_client.get(f'/v1/notes/{note.id}/').status_code == status.HTTP_403_FORBIDDEN

    def test_list_only_shows_own_notes(self, member_client, member_user, other_member, make_note):
        make_note(member_user, title='Mine')
        make_note(other_member, title='Theirs')

        response = member_client.get('/v1/notes/')

        assert response.data['count'] == 1
        assert response.data['results'][0]['title'] == 'Mine'

    def test_bulk_delete_ignores_other_users_notes(self, member_client, member_user, other_member, make_note):
        mine = make_note(member_user)
        theirs = make_note(other_member)

        response = member_client.delete('/v1/notes/bulk/', {'ids': [mine.id, theirs.id]}, format='json')

        assert response.data == {'deleted': 1}
        assert Note.objects.filter(id=theirs.id).exists()

    def test_user_without_notes_permission_is_403(self, client_for, rbac_seed):
        from apps.rbac.models import User

        user = User.objects.create_user(username='bare', email='bare@example.com', password='password')

        assert client_for(user).get('/v1/notes/').status_code == status.HTTP_403_FORBIDDEN


@pytest.mark.django_db
class TestNoteFilters:

    @pytest.fixture
    def notes(self, member_user, make_note, make_folder):
        work = make_folder(member_user, 'Work')
        make_note(member_user, title='Root note', content='shopping list')
        make_note(member_user, title='Work note', content='quarterly plan', folder=work)
        return work

    def test_empty_folder_filter_lists_all(self, member_client, notes):
        response = member_client.get('/v1/notes/', {'folder_id': ''})
        assert response.data['count'] == 2

    def test_null_folder_filter_lists_root_only(self, member_client, notes):
        response = member_client.get('/v1/notes/', {'folder_id': 'null'})
        assert [n['title'] for n in response.data['results']] == ['Root note']

    def test_folder_filter(self, member_client, notes):
        response = member_client.get('/v1/notes/', {'folder_id': notes.id})
        assert [n['title'] for n in response.data['results']] == ['Work note']

    def test_invalid_folder_filter_is_422(self, member_client, notes):
        response = member_client.get('/v1/notes/', {'folder_id': 'abc'})

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
        assert response.data['error']['code'] == 'VALIDATION_FAILED'

    def test_search_matches_title_and_content(self, member_client, notes):
        assert member_client.get('/v1/notes/', {'search': 'QUARTERLY'}).data['count'] == 1
        assert member_client.get('/v1/notes/', {'search': 'note'}).data['count'] == 2

    def test_newest_first(self, member_client, notes):
        titles = [n['title'] for n in member_client.get('/v1/notes/').data['results']]
        assert titles == ['Work note', 'Root note']


@pytest.mark.django_db
class TestNoteFolders:

    def test_tree(self, member_client, member_user, other_member, make_folder):
        work = make_folder(member_user, 'Work')
        make_folder(member_user, 'beta', parent=work)
        make_folder(member_user, 'Alpha', parent=work)
        make_folder(member_user, 'Archive')
        make_folder(other_member, 'Hidden')

        response = member_client.get('/v1/notes/folders/')

        assert response.status_code == status.HTTP_200_OK
        tree = response.data['folders']
        assert [node['name'] for node in tree] == ['Archive', 'Work']
        assert [child['name'] for child in tree[1]['children']] == ['Alpha', 'beta']

    def test_create_folder(self, member_client):
        response = member_client.post('/v1/notes/folders/', {'name': 'Ideas'}, format='json')

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['parent_id'] is None

    def test_move_under_descendant_is_422(self, member_client, member_user, make_folder):
        parent = make_folder(member_user, 'Parent')
        child = make_folder(member_user, 'Child', parent=parent)

        response = member_client.put(
            f'/v1/notes/folders/{parent.id}/', {'name': 'Parent', 'parent_id': child.id}, format='json'
        )

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
        parent.refresh_from_db()
        assert parent.parent_id is None

    def test_move_under_itself_is_422(self, member_client, member_user, make_folder):
        folder = make_folder(member_user, 'Loop')

        response = member_client.put(
            f'/v1/notes/folders/{folder.id}/', {'name': 'Loop', 'parent_id': folder.id}, format='json'
        )

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    def test_rename_other_users_folder_is_403(self, member_client, other_member, make_folder):
        folder = make_folder(other_member, 'Theirs')

        response = member_client.put(f'/v1/notes/folders/{folder.id}/', {'name': 'Mine'}, format='json')

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_delete_folder_moves_content_to_root(self, member_client, member_user, make_folder, make_note):
        folder = make_folder(member_user, 'Old')
        sub = make_folder(member_user, 'Sub', parent=folder)
        note = make_note(member_user, folder=folder)

        response = member_client.delete(f'/v1/notes/folders/{folder.id}/')

        assert response.status_code == status.HTTP_204_NO_CONTENT
        note.refresh_from_db()
        sub.refresh_from_db()
        assert note.folder_id is None
        assert sub.parent_id is None
