"""
Rules for notes: threading, pinning, soft delete, ownership and the
derived fields (plain text, mentions, smart links, revision deltas).

Views call into this module; rule violations are raised as DRF
ValidationError / PermissionDenied and rendered by the exception handler.
"""
import difflib
import html
import logging
import re

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.utils import timezone
from django.utils.html import linebreaks, strip_tags
from rest_framework.exceptions import PermissionDenied, ValidationError

from .models import Note, NoteFollowup, NoteLink, NoteMention, NoteReaction, NoteRevision, NoteTag, NoteTagAssignment

User = get_user_model()
logger = logging.getLogger(__name__)

BLOCK_TAG_RE = re.compile(r'<\s*br\s*/?>|</\s*(p|div|li|tr|h[1-6]|blockquote)\s*>', re.IGNORECASE)
HTML_TAG_RE = re.compile(r'<[a-zA-Z/][^>]*>')
SCRIPT_RE = re.compile(r'<(script|style)[^>]*>.*?</\1\s*>', re.IGNORECASE | re.DOTALL)
WHITESPACE_RE = re.compile(r'\s+')

MENTION_RE = re.compile(r'(?<![\w.+-])@([\w.+-]+)')
PLACEHOLDER_RE = re.compile(r'\{\{\s*(\w+)\s*\}\}')

URL_RE = re.compile(r'https?://[^\s<>"\']+')
ORDER_RE = re.compile(r'(?<![\w&])#(\d{3,})\b')
POSTNL_RE = re.compile(r'\b(3S[A-Z0-9]{8,})\b')
UPS_RE = re.compile(r'\b(1Z[A-Z0-9]{16})\b')
SKU_RE = re.compile(r'\bSKU:\s*([A-Za-z0-9][\w.-]*)', re.IGNORECASE)
EMAIL_RE = re.compile(r'\b[\w.+-]+@[\w-]+(?:\.[\w-]+)+\b')

LINK_DISPLAY_MAX_LENGTH = 255

POSTNL_TRACK_URL = 'https://jouw.postnl.nl/track-and-trace/{code}'
UPS_TRACK_URL = 'https://www.ups.com/track?tracknum={code}'


def max_thread_depth():
    return getattr(settings, 'NOTES_MAX_THREAD_DEPTH', 2)


def max_pinned_per_entity():
    return getattr(settings, 'NOTES_MAX_PINNED_PER_ENTITY', 3)


# Derived fields

def derive_plain_text(content):
    """HTML stripped, entities unescaped, whitespace collapsed"""
    if not content:
        return ''
    text = SCRIPT_RE.sub(' ', content)
    text = BLOCK_TAG_RE.sub(' ', text)
    text = html.unescape(strip_tags(text))
    return WHITESPACE_RE.sub(' ', text).strip()


def render_content_html(content):
    """Stored HTML for rich content, paragraphs for plain text"""
    if not content:
        return ''
    if HTML_TAG_RE.search(content):
        return SCRIPT_RE.sub('', content)
    return linebreaks(content, autoescape=True)


def extract_mention_usernames(text):
    usernames = []
    for match in MENTION_RE.finditer(text or ''):
        username = match.group(1).rstrip('.')
        if username and username not in usernames:
            usernames.append(username)
    return usernames


def extract_links(text):
    """
    Smart links found in plain text, in order of appearance per type.

    Returns dicts with link_type, target_id, display_text and url. URLs are
    matched first and blanked out so addresses inside them are not reported
    twice. Long URLs are kept whole in target_id and url; only the
    display text is shortened.
    """
    text = text or ''
    links = []
    seen = set()

    def add(link_type, target_id, display_text, url=''):
        if (link_type, target_id) in seen:
            return
        seen.add((link_type, target_id))
        if len(display_text) > LINK_DISPLAY_MAX_LENGTH:
            display_text = f"{display_text[:LINK_DISPLAY_MAX_LENGTH - 3]}..."
        links.append({
            'link_type': link_type,
            'target_id': target_id,
            'display_text': display_text,
            'url': url,
        })

    for match in URL_RE.finditer(text):
        url = match.group(0).rstrip('.,;:)!?')
        add('url', url, url, url)
    text = URL_RE.sub(' ', text)

    for match in ORDER_RE.finditer(text):
        add('order', match.group(1), f"#{match.group(1)}", f"/orders?search={match.group(1)}")
    for match in POSTNL_RE.finditer(text):
        code = match.group(1)
        add('tracking', code, code, POSTNL_TRACK_URL.format(code=code))
    for match in UPS_RE.finditer(text):
        code = match.group(1)
        add('tracking', code, code, UPS_TRACK_URL.format(code=code))
    for match in SKU_RE.finditer(text):
        sku = match.group(1).rstrip('.')
        add('sku', sku, f"SKU: {sku}")
    for match in EMAIL_RE.finditer(text):
        address = match.group(0)
        add('email', address.lower(), address, f"mailto:{address}")

    return links


def compute_delta(previous_content, new_content):
    """Line-level difflib opcodes between two versions of a note"""
    old_lines = (previous_content or '').splitlines()
    new_lines = (new_content or '').splitlines()
    matcher = difflib.SequenceMatcher(None, old_lines, new_lines)
    delta = []
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        entry = {'op': tag, 'old_start': i1, 'old_end': i2, 'new_start': j1, 'new_end': j2}
        if tag != 'equal':
            entry['old'] = old_lines[i1:i2]
            entry['new'] = new_lines[j1:j2]
        delta.append(entry)
    return delta


def render_template(content, variables):
    """Substitute {{name}} placeholders; unknown names stay as they are"""
    variables = variables or {}

    def replace(match):
        name = match.group(1)
        if name in variables and variables[name] is not None:
            return str(variables[name])
        return match.group(0)

    return PLACEHOLDER_RE.sub(replace, content or '')


def _apply_content(note, content):
    note.content = content
    note.plain_text = derive_plain_text(content)
    note.rendered_html = render_content_html(content)


def sync_links(note):
    """Replace the note's smart links with the ones in its current text"""
    note.links.all().delete()
    NoteLink.objects.bulk_create([
        NoteLink(note=note, **link) for link in extract_links(note.plain_text)
    ])


def sync_mentions(note, user_ids=None):
    """
    Add mentions for explicit user ids and @username tokens in the text.

    Existing mentions are kept so their read state survives edits.
    Returns the newly created mentions.
    """
    users = User.objects.filter(is_active=True)
    usernames = extract_mention_usernames(note.plain_text)
    wanted = set()
    if user_ids:
        wanted.update(users.filter(pk__in=user_ids).values_list('pk', flat=True))
    if usernames:
        wanted.update(users.filter(username__in=usernames).values_list('pk', flat=True))

    existing = set(note.mentions.values_list('user_id', flat=True))
    created = []
    for user_id in sorted(wanted - existing):
        created.append(NoteMention.objects.create(note=note, user_id=user_id))
    return created


# Guards

def ensure_not_deleted(note, action='modify'):
    if note.is_deleted:
        raise ValidationError({'error': f"Cannot {action} a deleted note"})


def ensure_author(note, user, action='modify'):
    if note.author_id != user.pk:
        raise PermissionDenied(f"Only the author can {action} this note")


def ensure_not_system(note, action='modify'):
    if note.source == 'system':
        raise PermissionDenied(f"Cannot {action} a note written by the application")


def validate_parent(parent, entity_type, entity_id):
    """Thread depth for a reply to `parent`"""
    if parent.is_deleted:
        raise ValidationError({'parent_note': 'Cannot reply to a deleted note'})
    if parent.entity_type != entity_type or parent.entity_id != str(entity_id):
        raise ValidationError({'parent_note': 'Reply must be on the same entity as its parent'})
    depth = parent.thread_depth + 1
    if depth > max_thread_depth():
        raise ValidationError({'parent_note': f"Maximum thread depth of {max_thread_depth()} reached"})
    return depth


# Operations

@transaction.atomic
def create_note(*, author, entity_type, entity_id, content, visibility='internal', parent_note=None,
                source='manual', template=None, tag_ids=None, mention_user_ids=None):
    """Create a note with its derived fields, tags, mentions and links"""
    if not derive_plain_text(content):
        raise ValidationError({'content': 'Note content cannot be empty'})

    depth = 0
    if parent_note is not None:
        depth = validate_parent(parent_note, entity_type, entity_id)

    note = Note(
        entity_type=entity_type,
        entity_id=str(entity_id),
        visibility=visibility,
        parent_note=parent_note,
        thread_depth=depth,
        author=author,
        source=source,
        template=template,
    )
    _apply_content(note, content)
    note.save()

    if tag_ids:
        tags = NoteTag.objects.filter(pk__in=tag_ids)
        NoteTagAssignment.objects.bulk_create([NoteTagAssignment(note=note, tag=tag) for tag in tags])
    sync_mentions(note, mention_user_ids)
    sync_links(note)

    logger.info(f"Note {note.id} created on {note.entity_type}:{note.entity_id} (depth {depth})")
    return note


def create_system_note(entity_type, entity_id, content, user=None):
    """
    Application-written note (status changes and the like).

    Best-effort: a failure is logged and None returned so the calling
    operation still succeeds.
    """
    try:
        return create_note(
            author=user if user is not None and user.is_authenticated else None,
            entity_type=entity_type,
            entity_id=entity_id,
            content=content,
            visibility='system',
            source='system',
        )
    except Exception as e:
        logger.error(f"Failed to create system note on {entity_type}:{entity_id}: {str(e)}")
        return None


@transaction.atomic
def update_note(note, user, content=None, visibility=None):
    """Author edit; a content change records a revision"""
    ensure_not_deleted(note, 'edit')
    ensure_not_system(note, 'edit')
    ensure_author(note, user, 'edit')

    revision = None
    update_fields = ['updated_at']
    if visibility is not None and visibility != note.visibility:
        if visibility == 'system':
            raise ValidationError({'visibility': 'System visibility is reserved for application notes'})
        note.visibility = visibility
        update_fields.append('visibility')

    if content is not None and content != note.content:
        if not derive_plain_text(content):
            raise ValidationError({'content': 'Note content cannot be empty'})
        previous_content = note.content
        _apply_content(note, content)
        note.edited_at = timezone.now()
        update_fields += ['content', 'plain_text', 'rendered_html', 'edited_at']
        revision = NoteRevision.objects.create(
            note=note,
            editor=user,
            previous_content=previous_content,
            new_content=content,
            delta=compute_delta(previous_content, content),
        )

    note.save(update_fields=update_fields)
    if revision is not None:
        sync_mentions(note)
        sync_links(note)
    return note, revision


@transaction.atomic
def soft_delete_note(note, user, reason):
    ensure_not_system(note, 'delete')
    ensure_author(note, user, 'delete')
    if note.is_deleted:
        raise ValidationError({'error': 'Note is already deleted'})
    reason = (reason or '').strip()
    if not reason:
        raise ValidationError({'delete_reason': 'A reason is required to delete a note'})

    note.deleted_at = timezone.now()
    note.deleted_by = user
    note.delete_reason = reason
    note.is_pinned = False
    note.pinned_at = None
    note.pinned_by = None
    note.pin_slot = None
    note.save(update_fields=['deleted_at', 'deleted_by', 'delete_reason', 'is_pinned',
                             'pinned_at', 'pinned_by', 'pin_slot', 'updated_at'])
    logger.info(f"Note {note.id} deleted by {user.username}")
    return note


@transaction.atomic
def pin_note(note, user):
    """
    Pin a root note; returns False when it was already pinned.

    Each pinned note takes a free slot 1..limit on its entity. The unique
    (entity_type, entity_id, pin_slot) constraint rejects a concurrent pin
    that picked the same slot, so the cap holds without locking.
    """
    ensure_not_deleted(note, 'pin')
    if note.parent_note_id is not None:
        raise ValidationError({'error': 'Only top-level notes can be pinned'})
    if note.is_pinned:
        return False

    used_slots = set(
        Note.objects.filter(entity_type=note.entity_type, entity_id=note.entity_id, pin_slot__isnull=False)
        .values_list('pin_slot', flat=True)
    )
    limit = max_pinned_per_entity()
    free_slots = [slot for slot in range(1, limit + 1) if slot not in used_slots]
    if len(used_slots) >= limit or not free_slots:
        logger.info(f"Pin of note {note.id} rejected: {len(used_slots)} pinned on {note.entity_type}:{note.entity_id}")
        raise ValidationError({'error': f"At most {limit} notes can be pinned per item"})

    note.is_pinned = True
    note.pinned_at = timezone.now()
    note.pinned_by = user
    note.pin_slot = free_slots[0]
    try:
        with transaction.atomic():
            note.save(update_fields=['is_pinned', 'pinned_at', 'pinned_by', 'pin_slot', 'updated_at'])
    except IntegrityError:
        logger.info(f"Pin of note {note.id} lost slot {note.pin_slot} to a concurrent pin")
        note.is_pinned = False
        note.pinned_at = None
        note.pinned_by = None
        note.pin_slot = None
        raise ValidationError({'error': 'Another note was pinned at the same time, please try again'})
    return True


def unpin_note(note, user):
    """Returns False when the note was not pinned"""
    if not note.is_pinned:
        return False
    note.is_pinned = False
    note.pinned_at = None
    note.pinned_by = None
    note.pin_slot = None
    note.save(update_fields=['is_pinned', 'pinned_at', 'pinned_by', 'pin_slot', 'updated_at'])
    return True


def add_reaction(note, user, emoji):
    """Returns (reaction, created)"""
    ensure_not_deleted(note, 'react to')
    emoji = (emoji or '').strip()
    if not emoji:
        raise ValidationError({'emoji': 'This field is required.'})
    return NoteReaction.objects.get_or_create(note=note, user=user, emoji=emoji)


def reaction_summary(note):
    summary = {}
    for reaction in note.reactions.select_related('user'):
        entry = summary.setdefault(reaction.emoji, {'emoji': reaction.emoji, 'count': 0, 'users': []})
        entry['count'] += 1
        entry['users'].append(reaction.user.username)
    return list(summary.values())


@transaction.atomic
def create_followup(note, user, assignee=None, due_at=None, title=None, description=''):
    """Follow-up with a Todo on the team board"""
    from backend.todos.models import Todo

    ensure_not_deleted(note, 'follow up on')
    if not title:
        title = f"Follow-up: {note.plain_text[:50]}..."

    todo_links = {}
    if note.entity_type == 'order' and note.entity_id.isdigit():
        todo_links['order_id'] = int(note.entity_id)
    elif note.entity_type == 'return' and note.entity_id.isdigit():
        todo_links['return_request_id'] = int(note.entity_id)
    elif note.entity_type == 'case' and note.entity_id.isdigit():
        todo_links['case_id'] = int(note.entity_id)
    elif note.entity_type == 'customer' and note.entity_id.isdigit():
        todo_links['customer_id'] = int(note.entity_id)
    elif note.entity_type == 'repair' and note.entity_id.isdigit():
        todo_links['repair_id'] = int(note.entity_id)
    todo_links = _existing_todo_links(todo_links)

    todo = Todo.objects.create(
        title=title[:255],
        description=description or note.plain_text,
        assigned_user=assignee,
        created_by=user,
        due_date=due_at,
        **todo_links
    )
    followup = NoteFollowup.objects.create(note=note, todo=todo, due_at=due_at, assignee=assignee)
    return followup, todo


def _existing_todo_links(todo_links):
    from backend.cases.models import Case
    from backend.orders.models import Order
    from backend.parties.models import Customer
    from backend.repairs.models import Repair
    from backend.returns.models import Return

    models_by_field = {
        'order_id': Order,
        'return_request_id': Return,
        'case_id': Case,
        'customer_id': Customer,
        'repair_id': Repair,
    }
    return {
        field: value for field, value in todo_links.items()
        if models_by_field[field].objects.filter(pk=value).exists()
    }


FOLLOWUP_TODO_STATUS = {
    'pending': 'todo',
    'in_progress': 'in_progress',
    'completed': 'done',
}


@transaction.atomic
def update_followup(followup, new_status=None):
    """
    Apply a status change and copy the follow-up onto its Todo.

    The Todo always takes the follow-up's due date and assignee. Its status
    only moves when the follow-up status changed; a cancelled follow-up
    leaves the Todo's status alone.
    """
    status_changed = new_status is not None and new_status != followup.status
    if status_changed:
        followup.status = new_status
        if new_status == 'completed':
            if followup.completed_at is None:
                followup.completed_at = timezone.now()
        else:
            followup.completed_at = None
        followup.save(update_fields=['status', 'completed_at'])

    todo = followup.todo
    if todo is None:
        return followup
    todo.due_date = followup.due_at
    todo.assigned_user = followup.assignee
    todo_status = FOLLOWUP_TODO_STATUS.get(followup.status)
    if status_changed and todo_status is not None and todo_status != todo.status:
        todo.status = todo_status
        todo.completed_at = followup.completed_at if todo_status == 'done' else None
    todo.save(update_fields=['status', 'completed_at', 'due_date', 'assigned_user', 'updated_at'])
    return followup
