"""
File API views for uploads, downloads and file folders.
"""
from django.http import FileResponse
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework import status
from drf_spectacular.utils import extend_schema, OpenApiParameter
from drf_spectacular.types import OpenApiTypes

from apps.core.listing import ItemResultsSetPagination, paginated_response
from apps.core.permissions import HasPermissions, MethodPermissionsMixin, requires_permissions
from apps.files.serializers import (
    FileFolderSerializer, FileFolderWriteSerializer, FileItemSerializer,
    FileUploadSerializer, FileUpdateSerializer
)
from apps.files.services import FileService
from apps.rbac.serializers import BulkIdsSerializer


def _file_response(user, file, as_attachment):
    handle = FileService.open_file(user, file)
    response = FileResponse(
        handle,
        as_attachment=as_attachment,
        filename=file.original_name,
        content_type=file.mime_type or 'application/octet-stream',
    )
    response['X-Content-Type-Options'] = 'nosniff'
    return response


class FileListView(MethodPermissionsMixin, APIView):
    """
    List and upload files.

    GET /v1/files/ - List the caller's files with search and folder filter
    POST /v1/files/ - Upload a file (multipart)
    """
    permission_classes = [HasPermissions]
    parser_classes = [MultiPartParser, FormParser, JSONParser]

    @extend_schema(
        tags=['Files'],
        summary="List files",
        description="Paginated list of the caller's files, newest first",
        parameters=[
            OpenApiParameter(
                name='search',
                type=OpenApiTypes.STR,
                location=OpenApiParameter.QUERY,
                description='Search in title and original file name'
            ),
            OpenApiParameter(
                name='folder_id',
                type=OpenApiTypes.STR,
                location=OpenApiParameter.QUERY,
                description='Empty for all files, "null" for files at the root, or a folder id'
            ),
            OpenApiParameter(
                name='per_page',
                type=OpenApiTypes.INT,
                location=OpenApiParameter.QUERY,
                description='Page size (default 12)'
            ),
        ],
        responses={200: FileItemSerializer(many=True)}
    )
    @requires_permissions('files.view')
    def get(self, request):
        files = FileService.paginate_files(request.user, request.query_params)
        return paginated_response(request, files, FileItemSerializer, ItemResultsSetPagination)

    @extend_schema(
        tags=['Files'],
        summary="Upload file",
        description="Upload up to 50 MB. The title defaults to the file name without extension.",
        request={'multipart/form-data': FileUploadSerializer},
        responses={201: FileItemSerializer, 400: OpenApiTypes.OBJECT, 404: OpenApiTypes.OBJECT}
    )
    @requires_permissions('files.create')
    def post(self, request):
        serializer = FileUploadSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        data = dict(serializer.validated_data)
        upload = data.pop('file')
        file = FileService.store_file(request.user, upload, data)
        return Response(FileItemSerializer(file).data, status=status.HTTP_201_CREATED)


class FileDetailView(MethodPermissionsMixin, APIView):
    """
    Update or delete a file.

    PUT /v1/files/{id}/
    DELETE /v1/files/{id}/
    """
    permission_classes = [HasPermissions]

    @extend_schema(
        tags=['Files'],
        summary="Update file",
        description="Rename or move a file. Omitting folder_id moves it to the root.",
        request=FileUpdateSerializer,
        responses={200: FileItemSerializer, 403: OpenApiTypes.OBJECT, 404: OpenApiTypes.OBJECT}
    )
    @requires_permissions('files.update')
    def put(self, request, file_id):
        file = FileService.find_file(file_id)
        serializer = FileUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        file = FileService.update_file(request.user, file, serializer.validated_data)
        return Response(FileItemSerializer(file).data)

    @extend_schema(
        tags=['Files'],
        summary="Delete file",
        description="Removes the stored content, then the record.",
        responses={204: None, 403: OpenApiTypes.OBJECT, 404: OpenApiTypes.OBJECT}
    )
    @requires_permissions('files.delete')
    def delete(self, request, file_id):
        FileService.delete_file(request.user, FileService.find_file(file_id))
        return Response(status=status.HTTP_204_NO_CONTENT)


@extend_schema(
    tags=['Files'],
    summary="Bulk delete files",
    description="Deletes the listed files the caller owns; other ids are ignored.",
    request=BulkIdsSerializer,
    responses={200: OpenApiTypes.OBJECT}
)
@requires_permissions('files.delete')
class FileBulkDeleteView(APIView):
    """
    DELETE /v1/files/bulk/
    """
    permission_classes = [HasPermissions]

    def delete(self, request):
        serializer = BulkIdsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        deleted = FileService.bulk_delete_files(request.user, serializer.validated_data['ids'])
        return Response({'deleted': deleted})


@extend_schema(
    tags=['Files'],
    summary="Download file",
    responses={(200, 'application/octet-stream'): OpenApiTypes.BINARY, 403: OpenApiTypes.OBJECT, 404: OpenApiTypes.OBJECT}
)
@requires_permissions('files.view')
class FileDownloadView(APIView):
    """
    GET /v1/files/{id}/download/ - Content as an attachment
    """
    permission_classes = [HasPermissions]

    def get(self, request, file_id):
        return _file_response(request.user, FileService.find_file(file_id), as_attachment=True)


@extend_schema(
    tags=['Files'],
    summary="Preview file",
    responses={(200, 'application/octet-stream'): OpenApiTypes.BINARY, 403: OpenApiTypes.OBJECT, 404: OpenApiTypes.OBJECT}
)
@requires_permissions('files.view')
class FilePreviewView(APIView):
    """
    GET /v1/files/{id}/preview/ - Content inline, for the browser to render
    """
    permission_classes = [HasPermissions]

    def get(self, request, file_id):
        return _file_response(request.user, FileService.find_file(file_id), as_attachment=False)


@extend_schema(
    tags=['Files'],
    summary="Read file as text",
    description="Text content for plain text, CSV, JSON and XML files, truncated at 400 KB.",
    responses={200: OpenApiTypes.OBJECT, 403: OpenApiTypes.OBJECT, 404: OpenApiTypes.OBJECT, 415: OpenApiTypes.OBJECT}
)
@requires_permissions('files.view')
class FileTextView(APIView):
    """
    GET /v1/files/{id}/text/
    """
    permission_classes = [HasPermissions]

    def get(self, request, file_id):
        return Response(FileService.read_text(request.user, FileService.find_file(file_id)))


class FileFolderListView(MethodPermissionsMixin, APIView):
    """
    GET /v1/files/folders/ - The caller's folder tree
    POST /v1/files/folders/ - Create a folder
    """
    permission_classes = [HasPermissions]

    @extend_schema(
        tags=['Files - Folders'],
        summary="Folder tree",
        description="The caller's file folders as a nested, name-sorted tree",
        responses={200: OpenApiTypes.OBJECT}
    )
    @requires_permissions('files.view')
    def get(self, request):
        return Response({'folders': FileService.folder_tree(request.user)})

    @extend_schema(
        tags=['Files - Folders'],
        summary="Create folder",
        request=FileFolderWriteSerializer,
        responses={201: FileFolderSerializer, 404: OpenApiTypes.OBJECT}
    )
    @requires_permissions('folders_files.manage')
    def post(self, request):
        serializer = FileFolderWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        folder = FileService.create_folder(request.user, serializer.validated_data)
        return Response(FileFolderSerializer(folder).data, status=status.HTTP_201_CREATED)


@requires_permissions('folders_files.manage')
class FileFolderDetailView(APIView):
    """
    PUT /v1/files/folders/{id}/ - Rename or move a folder
    DELETE /v1/files/folders/{id}/ - Delete a folder; its content moves to the root
    """
    permission_classes = [HasPermissions]

    @extend_schema(
        tags=['Files - Folders'],
        summary="Update folder",
        request=FileFolderWriteSerializer,
        responses={200: FileFolderSerializer, 403: OpenApiTypes.OBJECT, 404: OpenApiTypes.OBJECT, 422: OpenApiTypes.OBJECT}
    )
    def put(self, request, folder_id):
        folder = FileService.find_folder(folder_id)
        serializer = FileFolderWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        folder = FileService.update_folder(request.user, folder, serializer.validated_data)
        return Response(FileFolderSerializer(folder).data)

    @extend_schema(
        tags=['Files - Folders'],
        summary="Delete folder",
        responses={204: None, 403: OpenApiTypes.OBJECT, 404: OpenApiTypes.OBJECT}
    )
    def delete(self, request, folder_id):
        FileService.delete_folder(request.user, FileService.find_folder(folder_id))
        return Response(status=status.HTTP_204_NO_CONTENT)
