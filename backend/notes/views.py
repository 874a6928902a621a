from rest_framework import status
from rest_framework.decorators import api_view, permission_classes, parser_classes
from rest_framework.parsers import MultiPartParser, FormParser
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.conf import settings
from django.db import transaction
from django.shortcuts import get_object_or_404
from django.utils import timezone
import logging
import mimetypes
from .filters import NoteFilter, NoteTemplateFilter
from .models import (
    Note, NoteTag, NoteTagAssignment, NoteMention, NoteReaction,
    NoteAttachment, NoteFollowup, NoteTemplate
)
from .serializers import (
    NoteSerializer, NoteThreadSerializer, NoteCreateSerializer, NoteUpdateSerializer,
    NoteTagSerializer, NoteMentionSerializer, NoteReactionSerializer, NoteAttachmentSerializer,
    NoteFollowupSerializer, NoteFollowupCreateSerializer, NoteMentionCreateSerializer, NoteRevisionSerializer,
    NoteTemplateSerializer, NoteLinkSerializer
)
from . import services
from backend.core.utils import create_audit_log, paginate_queryset, with_fresh_data_headers

logger = logging.getLogger(__name__)

NOTE_PREFETCH = ('tag_assignments__tag', 'reactions', 'attachments', 'mentions')


def _note_queryset():
    return Note.objects.select_related('author').prefetch_related(*NOTE_PREFETCH)


def _note_reference(note):
    return f"{note.entity_type}:{note.entity_id}"


def _note_response(request, note, response_status=status.HTTP_200_OK):
    note = _note_queryset().get(pk=note.pk)
    return Response(NoteSerializer(note, context={'request': request}).data, status=response_status)


def build_thread(notes):
    """
    Arrange notes into roots (pinned first, then newest) with replies oldest first.

    A reply whose parent is not part of `notes` (filtered out or deleted) is
    shown at the top level so it stays visible.
    """
    ids = {note.id for note in notes}
    children = {}
    roots = []
    for note in notes:
        if note.parent_note_id in ids:
            children.setdefault(note.parent_note_id, []).append(note)
        else:
            roots.append(note)
    for replies in children.values():
        replies.sort(key=lambda n: (n.created_at, n.id))
    roots.sort(key=lambda n: (n.created_at, n.id), reverse=True)
    roots.sort(key=lambda n: not n.is_pinned)
    return roots, children


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def note_create(request):
    """Create a note or a reply on an entity"""
    serializer = NoteCreateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data

    template = data.get('template')
    content = data.get('content') or ''
    source = 'manual'
    if template is not None:
        source = 'template'
        if not content.strip():
            content = services.render_template(template.content, data.get('variables'))

    note = services.create_note(
        author=request.user,
        entity_type=data['entity_type'],
        entity_id=data['entity_id'],
        content=content,
        visibility=data['visibility'],
        parent_note=data.get('parent_note'),
        source=source,
        template=template,
        tag_ids=data.get('tag_ids'),
        mention_user_ids=data.get('mention_user_ids'),
    )
    create_audit_log(
        request=request,
        action='note_create',
        model_name='Note',
        object_id=note.id,
        object_name=note.excerpt,
        object_reference=_note_reference(note),
        changes={
            'visibility': note.visibility,
            'parent_note': note.parent_note_id,
            'thread_depth': note.thread_depth,
            'tags': list(note.tag_assignments.values_list('tag_id', flat=True)),
            'mentions': list(note.mentions.values_list('user_id', flat=True)),
        }
    )
    return _note_response(request, note, status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def note_thread(request, entity_type, entity_id):
    """Threaded notes of one entity"""
    if entity_type not in dict(Note.ENTITY_TYPE_CHOICES):
        return Response({'error': f"Unknown entity type '{entity_type}'"}, status=status.HTTP_400_BAD_REQUEST)

    queryset = _note_queryset().filter(entity_type=entity_type, entity_id=entity_id)
    note_filter = NoteFilter(request.query_params, queryset=queryset)
    if not note_filter.is_valid():
        return Response(note_filter.errors, status=status.HTTP_400_BAD_REQUEST)

    notes = list(note_filter.qs)
    roots, children = build_thread(notes)
    serializer = NoteThreadSerializer(roots, many=True, context={'request': request, 'children': children})
    return with_fresh_data_headers(Response({
        'entity_type': entity_type,
        'entity_id': entity_id,
        'count': len(notes),
        'pinned_count': sum(1 for note in roots if note.is_pinned),
        'results': serializer.data,
    }))


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def note_detail(request, pk):
    """Retrieve, edit (author only) or soft delete (author only, with reason) a note"""
    note = get_object_or_404(_note_queryset(), pk=pk)

    if request.method == 'GET':
        return Response(NoteSerializer(note, context={'request': request}).data)
    elif request.method == 'PATCH':
        serializer = NoteUpdateSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        old_visibility = note.visibility
        note, revision = services.update_note(
            note, request.user,
            content=serializer.validated_data.get('content'),
            visibility=serializer.validated_data.get('visibility'),
        )
        create_audit_log(
            request=request,
            action='note_update',
            model_name='Note',
            object_id=note.id,
            object_name=note.excerpt,
            object_reference=_note_reference(note),
            changes={
                'content_changed': revision is not None,
                'revision_id': revision.id if revision else None,
                'old_visibility': old_visibility,
                'new_visibility': note.visibility,
            }
        )
        return _note_response(request, note)
    else:  # DELETE
        reason = request.data.get('delete_reason') or request.data.get('reason') or request.query_params.get('reason')
        note = services.soft_delete_note(note, request.user, reason)
        create_audit_log(
            request=request,
            action='note_delete',
            model_name='Note',
            object_id=note.id,
            object_name=note.excerpt,
            object_reference=_note_reference(note),
            changes={'delete_reason': note.delete_reason}
        )
        return _note_response(request, note)


@api_view(['POST', 'DELETE'])
@permission_classes([IsAuthenticated])
def note_pin(request, pk):
    """Pin (POST) or unpin (DELETE) a top-level note"""
    note = get_object_or_404(Note, pk=pk)

    if request.method == 'POST':
        changed = services.pin_note(note, request.user)
        action = 'note_pin'
    else:
        changed = services.unpin_note(note, request.user)
        action = 'note_unpin'

    if changed:
        create_audit_log(
            request=request,
            action=action,
            model_name='Note',
            object_id=note.id,
            object_name=note.excerpt,
            object_reference=_note_reference(note)
        )
    return _note_response(request, note)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def note_search(request):
    """Full-text search over note plain text"""
    query = request.query_params.get('q', '').strip()
    if not query:
        return Response({'error': 'Search query (q) is required'}, status=status.HTTP_400_BAD_REQUEST)

    queryset = _note_queryset().filter(plain_text__icontains=query)
    note_filter = NoteFilter(request.query_params, queryset=queryset)
    if not note_filter.is_valid():
        return Response(note_filter.errors, status=status.HTTP_400_BAD_REQUEST)
    queryset = note_filter.qs.order_by('-created_at')
    return Response(paginate_queryset(request, queryset, NoteSerializer))


# Tags
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def note_tag_list_create(request):
    """List or create note tags"""
    if request.method == 'GET':
        return Response(NoteTagSerializer(NoteTag.objects.all(), many=True).data)
    else:
        serializer = NoteTagSerializer(data=request.data)
        if serializer.is_valid():
            tag = serializer.save()
            create_audit_log(
                request=request,
                action='create',
                model_name='NoteTag',
                object_id=tag.id,
                object_name=tag.name
            )
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['POST', 'DELETE'])
@permission_classes([IsAuthenticated])
def note_tag_assign(request, pk, tag_id):
    """Assign (POST) or remove (DELETE) a tag on a note"""
    note = get_object_or_404(Note, pk=pk)
    tag = get_object_or_404(NoteTag, pk=tag_id)

    if request.method == 'POST':
        services.ensure_not_deleted(note, 'tag')
        assignment, created = NoteTagAssignment.objects.get_or_create(note=note, tag=tag)
        if created:
            create_audit_log(
                request=request,
                action='tag_assign',
                model_name='Note',
                object_id=note.id,
                object_name=note.excerpt,
                object_reference=_note_reference(note),
                changes={'tag_id': tag.id, 'tag': tag.name}
            )
        return _note_response(request, note, status.HTTP_201_CREATED if created else status.HTTP_200_OK)
    else:  # DELETE
        deleted, _ = NoteTagAssignment.objects.filter(note=note, tag=tag).delete()
        if not deleted:
            return Response({'error': 'Tag is not assigned to this note'}, status=status.HTTP_404_NOT_FOUND)
        create_audit_log(
            request=request,
            action='tag_remove',
            model_name='Note',
            object_id=note.id,
            object_name=note.excerpt,
            object_reference=_note_reference(note),
            changes={'tag_id': tag.id, 'tag': tag.name}
        )
        return Response(status=status.HTTP_204_NO_CONTENT)


# Mentions
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def note_mentions(request, pk):
    """List mentions on a note or mention a user (`user_id`)"""
    note = get_object_or_404(Note, pk=pk)

    if request.method == 'GET':
        mentions = note.mentions.select_related('user', 'note')
        return Response(NoteMentionSerializer(mentions, many=True).data)

    services.ensure_not_deleted(note, 'mention on')
    serializer = NoteMentionCreateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    user = serializer.validated_data['user_id']

    mention, created = NoteMention.objects.get_or_create(note=note, user=user)
    if created:
        create_audit_log(
            request=request,
            action='mention_add',
            model_name='Note',
            object_id=note.id,
            object_name=note.excerpt,
            object_reference=_note_reference(note),
            changes={'user_id': user.id, 'username': user.username}
        )
    return Response(
        NoteMentionSerializer(mention).data,
        status=status.HTTP_201_CREATED if created else status.HTTP_200_OK
    )


@api_view(['PATCH'])
@permission_classes([IsAuthenticated])
def note_mention_read(request, pk):
    """Mark one of your mentions as read"""
    mention = get_object_or_404(NoteMention.objects.select_related('note', 'user'), pk=pk)
    if mention.user_id != request.user.pk:
        return Response({'error': 'You can only mark your own mentions as read'}, status=status.HTTP_403_FORBIDDEN)

    if not mention.notified:
        mention.notified = True
        mention.notified_at = timezone.now()
        mention.save(update_fields=['notified', 'notified_at'])
        create_audit_log(
            request=request,
            action='mention_read',
            model_name='NoteMention',
            object_id=mention.id,
            object_name=mention.note.excerpt,
            object_reference=_note_reference(mention.note)
        )
    return Response(NoteMentionSerializer(mention).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def my_mentions(request):
    """Unread mentions of the current user (`all=true` includes read ones)"""
    mentions = NoteMention.objects.filter(
        user=request.user,
        note__deleted_at__isnull=True
    ).select_related('note', 'user')
    include_read = request.query_params.get('all', 'false').lower() in ('true', '1')
    if not include_read:
        mentions = mentions.filter(notified=False)
    return with_fresh_data_headers(Response(NoteMentionSerializer(mentions, many=True).data))


# Reactions
@api_view(['GET', 'POST', 'DELETE'])
@permission_classes([IsAuthenticated])
def note_reactions(request, pk):
    """List reactions, add one, or remove your own (`emoji`)"""
    note = get_object_or_404(Note, pk=pk)

    if request.method == 'GET':
        reactions = note.reactions.select_related('user')
        return Response({
            'reactions': NoteReactionSerializer(reactions, many=True).data,
            'summary': services.reaction_summary(note),
        })
    elif request.method == 'POST':
        reaction, created = services.add_reaction(note, request.user, request.data.get('emoji'))
        if created:
            create_audit_log(
                request=request,
                action='reaction_add',
                model_name='Note',
                object_id=note.id,
                object_name=note.excerpt,
                object_reference=_note_reference(note),
                changes={'emoji': reaction.emoji}
            )
        return Response(
            NoteReactionSerializer(reaction).data,
            status=status.HTTP_201_CREATED if created else status.HTTP_200_OK
        )
    else:  # DELETE
        emoji = request.data.get('emoji') or request.query_params.get('emoji')
        if not emoji:
            return Response({'emoji': ['This field is required.']}, status=status.HTTP_400_BAD_REQUEST)
        deleted, _ = NoteReaction.objects.filter(note=note, user=request.user, emoji=emoji).delete()
        if not deleted:
            return Response({'error': 'Reaction not found'}, status=status.HTTP_404_NOT_FOUND)
        create_audit_log(
            request=request,
            action='reaction_remove',
            model_name='Note',
            object_id=note.id,
            object_name=note.excerpt,
            object_reference=_note_reference(note),
            changes={'emoji': emoji}
        )
        return Response(status=status.HTTP_204_NO_CONTENT)


# Attachments
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
@parser_classes([MultiPartParser, FormParser])
def note_attachments(request, pk):
    """List or upload attachments (multipart field `files`)"""
    note = get_object_or_404(Note, pk=pk)

    if request.method == 'GET':
        serializer = NoteAttachmentSerializer(note.attachments.select_related('uploaded_by'), many=True,
                                              context={'request': request})
        return Response(serializer.data)

    services.ensure_not_deleted(note, 'attach files to')
    files = request.FILES.getlist('files')
    if not files:
        return Response({'error': 'No files uploaded'}, status=status.HTTP_400_BAD_REQUEST)
    max_files = settings.NOTES_MAX_ATTACHMENTS_PER_UPLOAD
    if len(files) > max_files:
        return Response({'error': f"At most {max_files} files per upload"}, status=status.HTTP_400_BAD_REQUEST)

    max_bytes = settings.NOTES_MAX_ATTACHMENT_BYTES
    uploaded = []
    failed = []
    for upload in files:
        if upload.size > max_bytes:
            failed.append({'file_name': upload.name, 'error': f"File exceeds the {max_bytes // (1024 * 1024)} MB limit"})
            continue
        try:
            attachment = NoteAttachment.objects.create(
                note=note,
                file=upload,
                file_name=upload.name,
                mime_type=upload.content_type or mimetypes.guess_type(upload.name)[0] or '',
                size_bytes=upload.size,
                uploaded_by=request.user
            )
        except OSError as e:
            logger.error(f"Failed to store attachment {upload.name} on note {note.id}: {e}")
            failed.append({'file_name': upload.name, 'error': 'Could not store file'})
            continue
        uploaded.append(attachment)
        create_audit_log(
            request=request,
            action='attachment_add',
            model_name='Note',
            object_id=note.id,
            object_name=note.excerpt,
            object_reference=_note_reference(note),
            changes={'attachment_id': attachment.id, 'file_name': attachment.file_name, 'size': attachment.size_bytes}
        )

    return Response(
        {
            'uploaded': NoteAttachmentSerializer(uploaded, many=True, context={'request': request}).data,
            'failed': failed,
        },
        status=status.HTTP_201_CREATED if uploaded else status.HTTP_400_BAD_REQUEST
    )


@api_view(['DELETE'])
@permission_classes([IsAuthenticated])
def note_attachment_delete(request, pk):
    """Remove an attachment (uploader or note author)"""
    attachment = get_object_or_404(NoteAttachment.objects.select_related('note'), pk=pk)
    note = attachment.note
    if request.user.pk not in (attachment.uploaded_by_id, note.author_id):
        return Response(
            {'error': 'Only the uploader or the note author can remove this attachment'},
            status=status.HTTP_403_FORBIDDEN
        )

    file_name = attachment.file_name
    stored_file = attachment.file
    attachment.delete()
    try:
        stored_file.delete(save=False)
    except OSError as e:
        logger.warning(f"Could not delete attachment file {file_name}: {e}")

    create_audit_log(
        request=request,
        action='attachment_delete',
        model_name='Note',
        object_id=note.id,
        object_name=note.excerpt,
        object_reference=_note_reference(note),
        changes={'attachment_id': pk, 'file_name': file_name}
    )
    return Response(status=status.HTTP_204_NO_CONTENT)


# Follow-ups
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def note_followups(request, pk):
    """List follow-ups of a note or create one with its Todo"""
    from backend.todos.serializers import TodoSerializer

    note = get_object_or_404(Note, pk=pk)

    if request.method == 'GET':
        followups = note.followups.select_related('todo', 'assignee')
        return Response(NoteFollowupSerializer(followups, many=True).data)

    serializer = NoteFollowupCreateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    followup, todo = services.create_followup(
        note, request.user,
        assignee=serializer.validated_data.get('assignee'),
        due_at=serializer.validated_data.get('due_at'),
        title=serializer.validated_data.get('title'),
        description=serializer.validated_data.get('description', ''),
    )
    create_audit_log(
        request=request,
        action='followup_create',
        model_name='Note',
        object_id=note.id,
        object_name=note.excerpt,
        object_reference=_note_reference(note),
        changes={'followup_id': followup.id, 'todo_id': todo.id, 'assignee': followup.assignee_id}
    )
    return Response({
        'followup': NoteFollowupSerializer(followup).data,
        'todo': TodoSerializer(todo).data,
    }, status=status.HTTP_201_CREATED)


@api_view(['PATCH'])
@permission_classes([IsAuthenticated])
def note_followup_detail(request, pk):
    """Update a follow-up; status, due date and assignee carry over to its Todo"""
    followup = get_object_or_404(NoteFollowup.objects.select_related('note', 'todo'), pk=pk)
    old_status = followup.status

    serializer = NoteFollowupSerializer(followup, data=request.data, partial=True)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    with transaction.atomic():
        new_status = serializer.validated_data.pop('status', None)
        followup = serializer.save()
        followup = services.update_followup(followup, new_status)

    create_audit_log(
        request=request,
        action='followup_update',
        model_name='NoteFollowup',
        object_id=followup.id,
        object_name=followup.note.excerpt,
        object_reference=_note_reference(followup.note),
        changes={'old_status': old_status, 'new_status': followup.status}
    )
    return Response(NoteFollowupSerializer(followup).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def note_revisions(request, pk):
    """Edit history, newest first"""
    note = get_object_or_404(Note, pk=pk)
    revisions = note.revisions.select_related('editor')
    return Response(NoteRevisionSerializer(revisions, many=True).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def note_links(request, pk):
    """Smart links found in the note text"""
    note = get_object_or_404(Note, pk=pk)
    return Response(NoteLinkSerializer(note.links.all(), many=True).data)


# Templates
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def note_template_list_create(request):
    """List templates or create one"""
    if request.method == 'GET':
        template_filter = NoteTemplateFilter(request.query_params, queryset=NoteTemplate.objects.select_related('created_by'))
        if not template_filter.is_valid():
            return Response(template_filter.errors, status=status.HTTP_400_BAD_REQUEST)
        return Response(NoteTemplateSerializer(template_filter.qs, many=True).data)
    else:
        serializer = NoteTemplateSerializer(data=request.data)
        if serializer.is_valid():
            template = serializer.save(created_by=request.user)
            create_audit_log(
                request=request,
                action='create',
                model_name='NoteTemplate',
                object_id=template.id,
                object_name=template.name
            )
            return Response(NoteTemplateSerializer(template).data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def note_template_detail(request, pk):
    """Retrieve, update or delete a template"""
    template = get_object_or_404(NoteTemplate, pk=pk)

    if request.method == 'GET':
        return Response(NoteTemplateSerializer(template).data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = NoteTemplateSerializer(template, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            create_audit_log(
                request=request,
                action='update',
                model_name='NoteTemplate',
                object_id=template.id,
                object_name=template.name,
                changes={'fields': sorted(request.data.keys())}
            )
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        template_id = template.id
        name = template.name
        template.delete()
        create_audit_log(
            request=request,
            action='delete',
            model_name='NoteTemplate',
            object_id=template_id,
            object_name=name
        )
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def note_template_render(request, pk):
    """Template content with `variables` substituted"""
    template = get_object_or_404(NoteTemplate, pk=pk)
    variables = request.data.get('variables') or {}
    if not isinstance(variables, dict):
        return Response({'variables': ['Expected an object of name/value pairs.']}, status=status.HTTP_400_BAD_REQUEST)

    content = services.render_template(template.content, variables)
    return Response({
        'template': template.id,
        'content': content,
        'plain_text': services.derive_plain_text(content),
        'missing_variables': sorted({
            match.group(1) for match in services.PLACEHOLDER_RE.finditer(content)
        }),
    })
