"""
File serializers for REST API endpoints.
"""
from rest_framework import serializers

from apps.files.models import FileFolder, FileItem
from apps.files.services import FileService


class FileFolderSerializer(serializers.ModelSerializer):
    """Serializer for a single file folder."""

    class Meta:
        model = FileFolder
        fields = ['id', 'parent_id', 'name', 'created_at', 'updated_at']
        read_only_fields = fields


class FileFolderWriteSerializer(serializers.Serializer):
    """Payload for creating or updating a file folder."""

    name = serializers.CharField(max_length=120)
    parent_id = serializers.IntegerField(required=False, allow_null=True, min_value=1)


class FileItemSerializer(serializers.ModelSerializer):
    """Serializer for FileItem model."""

    folder = serializers.SerializerMethodField()

    class Meta:
        model = FileItem
        fields = [
            'id', 'folder_id', 'folder', 'title', 'original_name',
            'mime_type', 'size', 'created_at', 'updated_at'
        ]
        read_only_fields = fields

    def get_folder(self, obj):
        if not obj.folder_id:
            return None
        return {
            'id': obj.folder.id,
            'name': obj.folder.name,
            'parent_id': obj.folder.parent_id,
        }


class FileUploadSerializer(serializers.Serializer):
    """Multipart payload for uploading a file."""

    file = serializers.FileField()
    title = serializers.CharField(max_length=255, required=False, allow_blank=True)
    folder_id = serializers.IntegerField(required=False, allow_null=True, min_value=1)

    def validate_file(self, value):
        """Validate upload size (50 MB)."""
        if value.size > FileService.MAX_UPLOAD_BYTES:
            raise serializers.ValidationError("File must not be larger than 50 MB.")
        return value


class FileUpdateSerializer(serializers.Serializer):
    """Payload for renaming or moving a file."""

    title = serializers.CharField(max_length=255)
    folder_id = serializers.IntegerField(required=False, allow_null=True, min_value=1)
