from rest_framework import serializers
from .models import (
    Note, NoteTag, NoteMention, NoteReaction, NoteAttachment,
    NoteFollowup, NoteRevision, NoteTemplate, NoteLink
)
from backend.core.models import User
from backend.core.serializers import UserSummarySerializer


class NoteTagSerializer(serializers.ModelSerializer):
    class Meta:
        model = NoteTag
        fields = ['id', 'name', 'color', 'created_at']
        read_only_fields = ['created_at']

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Tag name cannot be empty")
        return value


class NoteMentionSerializer(serializers.ModelSerializer):
    user = UserSummarySerializer(read_only=True)
    note_excerpt = serializers.CharField(source='note.excerpt', read_only=True)
    entity_type = serializers.CharField(source='note.entity_type', read_only=True)
    entity_id = serializers.CharField(source='note.entity_id', read_only=True)

    class Meta:
        model = NoteMention
        fields = ['id', 'note', 'user', 'notified', 'notified_at', 'note_excerpt',
                  'entity_type', 'entity_id', 'created_at']
        read_only_fields = fields


class NoteReactionSerializer(serializers.ModelSerializer):
    username = serializers.CharField(source='user.username', read_only=True)

    class Meta:
        model = NoteReaction
        fields = ['id', 'note', 'user', 'username', 'emoji', 'created_at']
        read_only_fields = fields


class NoteAttachmentSerializer(serializers.ModelSerializer):
    url = serializers.SerializerMethodField()
    uploaded_by_username = serializers.CharField(source='uploaded_by.username', read_only=True, default=None)

    class Meta:
        model = NoteAttachment
        fields = ['id', 'note', 'file_name', 'mime_type', 'size_bytes', 'url',
                  'uploaded_by', 'uploaded_by_username', 'uploaded_at']
        read_only_fields = fields

    def get_url(self, obj):
        if not obj.file:
            return None
        request = self.context.get('request')
        url = obj.file.url
        return request.build_absolute_uri(url) if request else url


class NoteFollowupSerializer(serializers.ModelSerializer):
    assignee_username = serializers.CharField(source='assignee.username', read_only=True, default=None)
    todo_title = serializers.CharField(source='todo.title', read_only=True, default=None)

    class Meta:
        model = NoteFollowup
        fields = ['id', 'note', 'todo', 'todo_title', 'due_at', 'assignee', 'assignee_username',
                  'status', 'completed_at', 'created_at']
        read_only_fields = ['note', 'todo', 'completed_at', 'created_at']


class NoteFollowupCreateSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=255, required=False, allow_blank=True)
    description = serializers.CharField(required=False, allow_blank=True)
    assignee = serializers.PrimaryKeyRelatedField(
        queryset=User.objects.filter(is_active=True),
        required=False, allow_null=True
    )
    due_at = serializers.DateTimeField(required=False, allow_null=True)


class NoteMentionCreateSerializer(serializers.Serializer):
    user_id = serializers.PrimaryKeyRelatedField(queryset=User.objects.filter(is_active=True))


class NoteRevisionSerializer(serializers.ModelSerializer):
    editor_username = serializers.CharField(source='editor.username', read_only=True, default=None)

    class Meta:
        model = NoteRevision
        fields = ['id', 'note', 'editor', 'editor_username', 'previous_content',
                  'new_content', 'delta', 'edited_at']
        read_only_fields = fields


class NoteTemplateSerializer(serializers.ModelSerializer):
    created_by_username = serializers.CharField(source='created_by.username', read_only=True, default=None)

    class Meta:
        model = NoteTemplate
        fields = ['id', 'name', 'content', 'description', 'scope', 'entity_type', 'status_context',
                  'variables', 'is_active', 'created_by', 'created_by_username', 'created_at', 'updated_at']
        read_only_fields = ['created_by', 'created_at', 'updated_at']

    def validate_variables(self, value):
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            raise serializers.ValidationError("variables must be a list of names")
        return value

    def validate(self, attrs):
        scope = attrs.get('scope', getattr(self.instance, 'scope', 'global'))
        entity_type = attrs.get('entity_type', getattr(self.instance, 'entity_type', ''))
        if scope == 'entity' and not entity_type:
            raise serializers.ValidationError({'entity_type': 'Required for entity-scoped templates'})
        return attrs


class NoteLinkSerializer(serializers.ModelSerializer):
    class Meta:
        model = NoteLink
        fields = ['id', 'link_type', 'target_id', 'display_text', 'url']
        read_only_fields = fields


class NoteSerializer(serializers.ModelSerializer):
    """Note with author, tags and reaction summary; replies are added by the thread view"""
    author = UserSummarySerializer(read_only=True)
    tags = serializers.SerializerMethodField()
    reactions = serializers.SerializerMethodField()
    attachments_count = serializers.SerializerMethodField()
    mentioned_user_ids = serializers.SerializerMethodField()
    is_deleted = serializers.BooleanField(read_only=True)
    can_edit = serializers.SerializerMethodField()

    class Meta:
        model = Note
        fields = [
            'id', 'entity_type', 'entity_id', 'visibility', 'content', 'rendered_html', 'plain_text',
            'parent_note', 'thread_depth', 'author', 'source', 'template',
            'is_pinned', 'pinned_at', 'pinned_by', 'is_deleted', 'deleted_at', 'deleted_by', 'delete_reason',
            'tags', 'reactions', 'attachments_count', 'mentioned_user_ids', 'can_edit',
            'created_at', 'updated_at', 'edited_at'
        ]
        read_only_fields = fields

    def get_tags(self, obj):
        return [
            {'id': a.tag.id, 'name': a.tag.name, 'color': a.tag.color}
            for a in obj.tag_assignments.all()
        ]

    def get_reactions(self, obj):
        summary = {}
        for reaction in obj.reactions.all():
            entry = summary.setdefault(reaction.emoji, {'emoji': reaction.emoji, 'count': 0, 'user_ids': []})
            entry['count'] += 1
            entry['user_ids'].append(reaction.user_id)
        return list(summary.values())

    def get_attachments_count(self, obj):
        return len(obj.attachments.all())

    def get_mentioned_user_ids(self, obj):
        return [m.user_id for m in obj.mentions.all()]

    def get_can_edit(self, obj):
        request = self.context.get('request')
        if request is None or not request.user.is_authenticated:
            return False
        return obj.author_id == request.user.pk and not obj.is_deleted and obj.source != 'system'


class NoteThreadSerializer(NoteSerializer):
    """Note with its visible replies, oldest first"""
    replies = serializers.SerializerMethodField()

    class Meta(NoteSerializer.Meta):
        fields = NoteSerializer.Meta.fields + ['replies']
        read_only_fields = fields

    def get_replies(self, obj):
        children = self.context.get('children', {}).get(obj.id, [])
        return NoteThreadSerializer(children, many=True, context=self.context).data


class NoteCreateSerializer(serializers.Serializer):
    entity_type = serializers.ChoiceField(choices=Note.ENTITY_TYPE_CHOICES)
    entity_id = serializers.CharField(max_length=100)
    content = serializers.CharField(required=False, allow_blank=True, trim_whitespace=False)
    visibility = serializers.ChoiceField(choices=Note.VISIBILITY_CHOICES, default='internal')
    parent_note = serializers.PrimaryKeyRelatedField(queryset=Note.objects.all(), required=False, allow_null=True)
    template = serializers.PrimaryKeyRelatedField(
        queryset=NoteTemplate.objects.filter(is_active=True), required=False, allow_null=True
    )
    variables = serializers.DictField(required=False, default=dict)
    tag_ids = serializers.ListField(child=serializers.IntegerField(), required=False, default=list)
    mention_user_ids = serializers.ListField(child=serializers.IntegerField(), required=False, default=list)

    def validate_visibility(self, value):
        if value == 'system':
            raise serializers.ValidationError("System visibility is reserved for application notes")
        return value

    def validate_tag_ids(self, value):
        missing = set(value) - set(NoteTag.objects.filter(pk__in=value).values_list('pk', flat=True))
        if missing:
            raise serializers.ValidationError(f"Unknown tag ids: {sorted(missing)}")
        return value

    def validate(self, attrs):
        content = attrs.get('content') or ''
        template = attrs.get('template')
        if not content.strip() and template is None:
            raise serializers.ValidationError({'content': 'Content or a template is required'})
        return attrs


class NoteUpdateSerializer(serializers.Serializer):
    content = serializers.CharField(required=False, trim_whitespace=False)
    visibility = serializers.ChoiceField(choices=Note.VISIBILITY_CHOICES, required=False)

    def validate_visibility(self, value):
        if value == 'system':
            raise serializers.ValidationError("System visibility is reserved for application notes")
        return value
