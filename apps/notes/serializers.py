"""
Notes serializers for REST API endpoints.
"""
from rest_framework import serializers

from apps.notes.models import Folder, Note


class FolderSerializer(serializers.ModelSerializer):
    """Serializer for a single note folder."""

    class Meta:
        model = Folder
        fields = ['id', 'parent_id', 'name', 'created_at', 'updated_at']
        read_only_fields = fields


class FolderWriteSerializer(serializers.Serializer):
    """Payload for creating or updating a note folder."""

    name = serializers.CharField(max_length=80)
    parent_id = serializers.IntegerField(required=False, allow_null=True, min_value=1)


class NoteSerializer(serializers.ModelSerializer):
    """Serializer for Note model."""

    folder_name = serializers.SerializerMethodField()

    class Meta:
        model = Note
        fields = [
            'id', 'folder_id', 'folder_name', 'title', 'content',
            'created_at', 'updated_at'
        ]
        read_only_fields = fields

    def get_folder_name(self, obj):
        return obj.folder.name if obj.folder_id else None


class NoteWriteSerializer(serializers.Serializer):
    """Payload for creating or updating a note."""

    title = serializers.CharField(max_length=120)
    content = serializers.CharField(required=False, allow_blank=True, allow_null=True, trim_whitespace=False)
    folder_id = serializers.IntegerField(required=False, allow_null=True, min_value=1)
