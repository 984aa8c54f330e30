"""
Notes API views for notes and note folders.
"""
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework import status
from drf_spectacular.utils import extend_schema, OpenApiParameter
from drf_spectacular.types import OpenApiTypes

from apps.core.listing import ItemResultsSetPagination, paginated_response
from apps.core.permissions import HasPermissions, MethodPermissionsMixin, requires_permissions
from apps.notes.serializers import (
    FolderSerializer, FolderWriteSerializer, NoteSerializer, NoteWriteSerializer
)
from apps.notes.services import NotesService
from apps.rbac.serializers import BulkIdsSerializer


class NoteListView(MethodPermissionsMixin, APIView):
    """
    List and create notes.

    GET /v1/notes/ - List the caller's notes with search and folder filter
    POST /v1/notes/ - Create a note
    """
    permission_classes = [HasPermissions]

    @extend_schema(
        tags=['Notes'],
        summary="List notes",
        description="Paginated list of the caller's notes, newest first",
        parameters=[
            OpenApiParameter(
                name='search',
                type=OpenApiTypes.STR,
                location=OpenApiParameter.QUERY,
                description='Search in title and content'
            ),
            OpenApiParameter(
                name='folder_id',
                type=OpenApiTypes.STR,
                location=OpenApiParameter.QUERY,
                description='Empty for all notes, "null" for notes at the root, or a folder id'
            ),
            OpenApiParameter(
                name='per_page',
                type=OpenApiTypes.INT,
                location=OpenApiParameter.QUERY,
                description='Page size (default 12)'
            ),
        ],
        responses={200: NoteSerializer(many=True)}
    )
    @requires_permissions('notes.view')
    def get(self, request):
        notes = NotesService.paginate_notes(request.user, request.query_params)
        return paginated_response(request, notes, NoteSerializer, ItemResultsSetPagination)

    @extend_schema(
        tags=['Notes'],
        summary="Create note",
        request=NoteWriteSerializer,
        responses={201: NoteSerializer, 400: OpenApiTypes.OBJECT, 404: OpenApiTypes.OBJECT}
    )
    @requires_permissions('notes.create')
    def post(self, request):
        serializer = NoteWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        note = NotesService.create_note(request.user, serializer.validated_data)
        return Response(NoteSerializer(note).data, status=status.HTTP_201_CREATED)


class NoteDetailView(MethodPermissionsMixin, APIView):
    """
    Retrieve, update, or delete a note.

    GET /v1/notes/{id}/
    PUT /v1/notes/{id}/
    DELETE /v1/notes/{id}/
    """
    permission_classes = [HasPermissions]

    @extend_schema(
        tags=['Notes'],
        summary="Get note",
        responses={200: NoteSerializer, 403: OpenApiTypes.OBJECT, 404: OpenApiTypes.OBJECT}
    )
    @requires_permissions('notes.view')
    def get(self, request, note_id):
        note = NotesService.get_note(request.user, NotesService.find_note(note_id))
        return Response(NoteSerializer(note).data)

    @extend_schema(
        tags=['Notes'],
        summary="Update note",
        description="Replaces title, content and folder. Omitting folder_id moves the note to the root.",
        request=NoteWriteSerializer,
        responses={200: NoteSerializer, 403: OpenApiTypes.OBJECT, 404: OpenApiTypes.OBJECT}
    )
    @requires_permissions('notes.update')
    def put(self, request, note_id):
        note = NotesService.find_note(note_id)
        serializer = NoteWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        note = NotesService.update_note(request.user, note, serializer.validated_data)
        return Response(NoteSerializer(note).data)

    @extend_schema(
        tags=['Notes'],
        summary="Delete note",
        responses={204: None, 403: OpenApiTypes.OBJECT, 404: OpenApiTypes.OBJECT}
    )
    @requires_permissions('notes.delete')
    def delete(self, request, note_id):
        NotesService.delete_note(request.user, NotesService.find_note(note_id))
        return Response(status=status.HTTP_204_NO_CONTENT)


@extend_schema(
    tags=['Notes'],
    summary="Bulk delete notes",
    description="Deletes the listed notes the caller owns; other ids are ignored.",
    request=BulkIdsSerializer,
    responses={200: OpenApiTypes.OBJECT}
)
@requires_permissions('notes.delete')
class NoteBulkDeleteView(APIView):
    """
    DELETE /v1/notes/bulk/
    """
    permission_classes = [HasPermissions]

    def delete(self, request):
        serializer = BulkIdsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        deleted = NotesService.bulk_delete_notes(request.user, serializer.validated_data['ids'])
        return Response({'deleted': deleted})


class FolderListView(MethodPermissionsMixin, APIView):
    """
    GET /v1/notes/folders/ - The caller's folder tree
    POST /v1/notes/folders/ - Create a folder
    """
    permission_classes = [HasPermissions]

    @extend_schema(
        tags=['Notes - Folders'],
        summary="Folder tree",
        description="The caller's note folders as a nested, name-sorted tree",
        responses={200: OpenApiTypes.OBJECT}
    )
    @requires_permissions('notes.view')
    def get(self, request):
        return Response({'folders': NotesService.folder_tree(request.user)})

    @extend_schema(
        tags=['Notes - Folders'],
        summary="Create folder",
        request=FolderWriteSerializer,
        responses={201: FolderSerializer, 404: OpenApiTypes.OBJECT}
    )
    @requires_permissions('folders.manage')
    def post(self, request):
        serializer = FolderWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        folder = NotesService.create_folder(request.user, serializer.validated_data)
        return Response(FolderSerializer(folder).data, status=status.HTTP_201_CREATED)


@requires_permissions('folders.manage')
class FolderDetailView(APIView):
    """
    PUT /v1/notes/folders/{id}/ - Rename or move a folder
    DELETE /v1/notes/folders/{id}/ - Delete a folder; its content moves to the root
    """
    permission_classes = [HasPermissions]

    @extend_schema(
        tags=['Notes - Folders'],
        summary="Update folder",
        request=FolderWriteSerializer,
        responses={200: FolderSerializer, 403: OpenApiTypes.OBJECT, 404: OpenApiTypes.OBJECT, 422: OpenApiTypes.OBJECT}
    )
    def put(self, request, folder_id):
        folder = NotesService.find_folder(folder_id)
        serializer = FolderWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        folder = NotesService.update_folder(request.user, folder, serializer.validated_data)
        return Response(FolderSerializer(folder).data)

    @extend_schema(
        tags=['Notes - Folders'],
        summary="Delete folder",
        responses={204: None, 403: OpenApiTypes.OBJECT, 404: OpenApiTypes.OBJECT}
    )
    def delete(self, request, folder_id):
        NotesService.delete_folder(request.user, NotesService.find_folder(folder_id))
        return Response(status=status.HTTP_204_NO_CONTENT)
