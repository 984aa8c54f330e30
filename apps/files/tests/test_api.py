"""
Tests for the files API: uploads, downloads, text reads and ownership.
"""
import pytest
from django.core.files.base import ContentFile
from django.core.files.storage import default_storage
from django.core.files.uploadedfile import SimpleUploadedFile
from rest_framework import status

from apps.files.models import FileFolder, FileItem
from apps.files.services import FileService


@pytest.fixture
def stored_file():
    """Write content to storage and record it for owner."""
    def _stored_file(owner, name='notes.txt', content=b'hello world', mime_type='text/plain', folder=None):
        path = default_storage.save(FileService.storage_name_for(owner, name), ContentFile(content))
        return FileItem.objects.create(
            owner=owner,
            folder=folder,
            title=name.rsplit('.', 1)[0],
            original_name=name,
            path=path,
            mime_type=mime_type,
            size=len(content),
        )
    return _stored_file


@pytest.mark.django_db
class TestUpload:

    def test_upload_stores_blob_under_user_directory(self, member_client, member_user):
        upload = SimpleUploadedFile('report.csv', b'a,b\n1,2\n', content_type='text/csv')

        response = member_client.post('/v1/files/', {'file': upload}, format='multipart')

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['title'] == 'report'
        assert response.data['original_name'] == 'report.csv'
        assert response.data['size'] == 8

        file = FileItem.objects.get(id=response.data['id'])
        assert file.path.startswith(f'user-files/{member_user.id}/')
        assert file.path.endswith('.csv')
        assert default_storage.exists(file.path)

    def test_upload_into_folder_with_title(self, member_client, member_user):
        folder = FileFolder.objects.create(owner=member_user, name='Docs')
        upload = SimpleUploadedFile('a.txt', b'text', content_type='text/plain')

        response = member_client.post(
            '/v1/files/', {'file': upload, 'title': 'Readme', 'folder_id': folder.id}, format='multipart'
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['title'] == 'Readme'
        assert response.data['folder'] == {'id': folder.id, 'name': 'Docs', 'parent_id': None}

    def test_upload_into_foreign_folder_is_404(self, member_client, other_member):
        folder = FileFolder.objects.create(owner=other_member, name='Theirs')
        upload = SimpleUploadedFile('a.txt', b'text', content_type='text/plain')

        response = member_client.post(
            '/v1/files/', {'file': upload, 'folder_id': folder.id}, format='multipart'
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert not FileItem.objects.exists()

    def test_upload_requires_file(self, member_client):
        response = member_client.post('/v1/files/', {'title': 'nothing'}, format='multipart')
        assert response.status_code == status.HTTP_400_BAD_REQUEST


@pytest.mark.django_db
class TestDownloadAndPreview:

    def test_download_is_attachment(self, member_client, member_user, stored_file):
        file = stored_file(member_user)

        response = member_client.get(f'/v1/files/{file.id}/download/')

        assert response.status_code == status.HTTP_200_OK
        assert b''.join(response.streaming_content) == b'hello world'
        assert response['X-Content-Type-Options'] == 'nosniff'
        assert 'attachment' in response['Content-Disposition']
        assert 'notes.txt' in response['Content-Disposition']

    def test_preview_is_inline(self, member_client, member_user, stored_file):
        file = stored_file(member_user, name='photo.png', content=b'\x89PNG', mime_type='image/png')

        response = member_client.get(f'/v1/files/{file.id}/preview/')

        assert response.status_code == status.HTTP_200_OK
        assert response['Content-Type'] == 'image/png'
        assert response['Content-Disposition'].startswith('inline')
        response.close()

    def test_missing_blob_is_404(self, member_client, member_user, stored_file):
        file = stored_file(member_user)
        default_storage.delete(file.path)

        response = member_client.get(f'/v1/files/{file.id}/download/')

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_other_users_file_is_403(self, member_client, other_member, stored_file):
        file = stored_file(other_member)

        assert member_client.get(f'/v1/files/{file.id}/download/').status_code == status.HTTP_403_FORBIDDEN
        assert member_client.get(f'/v1/files/{file.id}/text/').status_code == status.HTTP_403_FORBIDDEN


@pytest.mark.django_db
class TestTextRead:

    def test_read_text(self, member_client, member_user, stored_file):
        file = stored_file(member_user)

        response = member_client.get(f'/v1/files/{file.id}/text/')

        assert response.status_code == status.HTTP_200_OK
        assert response.data == {'content': 'hello world', 'truncated': False, 'mime_type': 'text/plain'}

    def test_extension_makes_file_textual(self, member_client, member_user, stored_file):
        file = stored_file(member_user, name='app.log', content=b'started', mime_type='application/octet-stream')

        response = member_client.get(f'/v1/files/{file.id}/text/')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['content'] == 'started'

    def test_large_text_is_truncated(self, member_client, member_user, stored_file):
        content = b'x' * (FileService.TEXT_MAX_BYTES + 10)
        file = stored_file(member_user, name='big.txt', content=content)

        response = member_client.get(f'/v1/files/{file.id}/text/')

        assert response.data['truncated'] is True
        assert response.data['content'] == 'x' * FileService.TEXT_MAX_BYTES + '\n\n--- TRUNCATED ---'

    def test_text_at_limit_is_not_truncated(self, member_client, member_user, stored_file):
        file = stored_file(member_user, name='edge.txt', content=b'y' * FileService.TEXT_MAX_BYTES)

        response = member_client.get(f'/v1/files/{file.id}/text/')

        assert response.data['truncated'] is False

    def test_binary_file_is_415(self, member_client, member_user, stored_file):
        file = stored_file(member_user, name='photo.png', content=b'\x89PNG', mime_type='image/png')

        response = member_client.get(f'/v1/files/{file.id}/text/')

        assert response.status_code == status.HTTP_415_UNSUPPORTED_MEDIA_TYPE
        assert response.data['error']['code'] == 'UNSUPPORTED_FILE_TYPE'


@pytest.mark.django_db
class TestFileManagement:

    def test_list_filters_by_folder_and_search(self, member_client, member_user, other_member, stored_file):
        folder = FileFolder.objects.create(owner=member_user, name='Docs')
        stored_file(member_user, name='invoice.txt', folder=folder)
        stored_file(member_user, name='todo.txt')
        stored_file(other_member, name='secret.txt')

        assert member_client.get('/v1/files/').data['count'] == 2
        assert member_client.get('/v1/files/', {'folder_id': 'null'}).data['results'][0]['title'] == 'todo'
        assert member_client.get('/v1/files/', {'folder_id': folder.id}).data['count'] == 1
        assert member_client.get('/v1/files/', {'search': 'INVOICE'}).data['count'] == 1

    def test_rename_and_move_to_root(self, member_client, member_user, stored_file):
        folder = FileFolder.objects.create(owner=member_user, name='Docs')
        file = stored_file(member_user, folder=folder)

        response = member_client.put(f'/v1/files/{file.id}/', {'title': 'Renamed'}, format='json')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['title'] == 'Renamed'
        assert response.data['folder'] is None

    def test_delete_removes_blob(self, member_client, member_user, stored_file):
        file = stored_file(member_user)

        response = member_client.delete(f'/v1/files/{file.id}/')

        assert response.status_code == status.HTTP_204_NO_CONTENT
        assert not default_storage.exists(file.path)
        assert not FileItem.objects.filter(id=file.id).exists()

    def test_bulk_delete_is_owner_scoped(self, member_client, member_user, other_member, stored_file):
        mine = stored_file(member_user)
        theirs = stored_file(other_member)

        response = member_client.delete('/v1/files/bulk/', {'ids': [mine.id, theirs.id]}, format='json')

        assert response.data == {'deleted': 1}
        assert not default_storage.exists(mine.path)
        assert default_storage.exists(theirs.path)

    def test_deleting_folder_moves_files_to_root(self, member_client, member_user, stored_file):
        folder = FileFolder.objects.create(owner=member_user, name='Docs')
        file = stored_file(member_user, folder=folder)

        response = member_client.delete(f'/v1/files/folders/{folder.id}/')

        assert response.status_code == status.HTTP_204_NO_CONTENT
        file.refresh_from_db()
        assert file.folder_id is None

    def test_folder_tree(self, member_client, member_user):
        docs = FileFolder.objects.create(owner=member_user, name='Docs')
        scans = FileFolder.objects.create(owner=member_user, name='Scans', parent=docs)

        response = member_client.get('/v1/files/folders/')

        assert response.data['folders'] == [{
            'id': docs.id,
            'name': 'Docs',
            'parent_id': None,
            'children': [{'id': scans.id, 'name': 'Scans', 'parent_id': docs.id, 'children': []}],
        }]
