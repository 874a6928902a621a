from django.contrib import admin
from .models import (
    Note, NoteTag, NoteTagAssignment, NoteMention, NoteReaction,
    NoteAttachment, NoteFollowup, NoteRevision, NoteTemplate, NoteLink
)


class NoteTagAssignmentInline(admin.TabularInline):
    model = NoteTagAssignment
    extra = 0


class NoteAttachmentInline(admin.TabularInline):
    model = NoteAttachment
    extra = 0
    readonly_fields = ['file_name', 'mime_type', 'size_bytes', 'uploaded_by', 'uploaded_at']


class NoteRevisionInline(admin.TabularInline):
    model = NoteRevision
    extra = 0
    readonly_fields = ['editor', 'previous_content', 'new_content', 'delta', 'edited_at']


@admin.register(Note)
class NoteAdmin(admin.ModelAdmin):
    list_display = ['id', 'entity_type', 'entity_id', 'visibility', 'author', 'thread_depth',
                    'is_pinned', 'deleted_at', 'created_at']
    list_filter = ['entity_type', 'visibility', 'source', 'is_pinned', 'created_at']
    search_fields = ['entity_id', 'plain_text', 'author__username']
    readonly_fields = ['plain_text', 'rendered_html', 'thread_depth', 'created_at', 'updated_at', 'edited_at']
    raw_id_fields = ['parent_note']
    inlines = [NoteTagAssignmentInline, NoteAttachmentInline, NoteRevisionInline]


@admin.register(NoteTag)
class NoteTagAdmin(admin.ModelAdmin):
    list_display = ['name', 'color', 'created_at']
    search_fields = ['name']


@admin.register(NoteMention)
class NoteMentionAdmin(admin.ModelAdmin):
    list_display = ['note', 'user', 'notified', 'notified_at', 'created_at']
    list_filter = ['notified']


@admin.register(NoteReaction)
class NoteReactionAdmin(admin.ModelAdmin):
    list_display = ['note', 'user', 'emoji', 'created_at']


@admin.register(NoteFollowup)
class NoteFollowupAdmin(admin.ModelAdmin):
    list_display = ['note', 'todo', 'assignee', 'status', 'due_at', 'completed_at']
    list_filter = ['status']


@admin.register(NoteTemplate)
class NoteTemplateAdmin(admin.ModelAdmin):
    list_display = ['name', 'scope', 'entity_type', 'status_context', 'is_active', 'updated_at']
    list_filter = ['scope', 'entity_type', 'is_active']
    search_fields = ['name', 'content']


@admin.register(NoteLink)
class NoteLinkAdmin(admin.ModelAdmin):
    list_display = ['note', 'link_type', 'target_id', 'display_text']
    list_filter = ['link_type']
