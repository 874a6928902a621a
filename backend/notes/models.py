from django.db import models
from backend.core.models import User


class Note(models.Model):
    """
    Threaded note attached to any back-office entity.

    The target is polymorphic: (entity_type, entity_id) with no foreign key,
    so a note can hang off an order, return, case, e-mail thread and so on.
    Notes are soft-deleted; the row and its content stay for the audit trail.
    """
    ENTITY_TYPE_CHOICES = [
        ('customer', 'Customer'),
        ('order', 'Order'),
        ('repair', 'Repair'),
        ('emailThread', 'E-mail thread'),
        ('case', 'Case'),
        ('return', 'Return'),
        ('purchaseOrder', 'Purchase order'),
        ('todo', 'Todo'),
    ]
    VISIBILITY_CHOICES = [
        ('internal', 'Internal'),
        ('customer_visible', 'Customer visible'),
        ('system', 'System'),
    ]
    SOURCE_CHOICES = [
        ('manual', 'Manual'),
        ('system', 'System'),
        ('template', 'Template'),
        ('email', 'E-mail'),
    ]

    entity_type = models.CharField(max_length=20, choices=ENTITY_TYPE_CHOICES)
    entity_id = models.CharField(max_length=100)
    visibility = models.CharField(max_length=20, choices=VISIBILITY_CHOICES, default='internal')
    content = models.TextField()
    rendered_html = models.TextField(blank=True)
    plain_text = models.TextField(blank=True)
    parent_note = models.ForeignKey('self', on_delete=models.CASCADE, null=True, blank=True, related_name='replies')
    thread_depth = models.PositiveSmallIntegerField(default=0)
    author = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='notes')
    source = models.CharField(max_length=20, choices=SOURCE_CHOICES, default='manual')
    template = models.ForeignKey('NoteTemplate', on_delete=models.SET_NULL, null=True, blank=True, related_name='notes')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    edited_at = models.DateTimeField(null=True, blank=True)
    is_pinned = models.BooleanField(default=False)
    pinned_at = models.DateTimeField(null=True, blank=True)
    pinned_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='pinned_notes')
    # 1..NOTES_MAX_PINNED_PER_ENTITY while pinned, unique per entity
    pin_slot = models.PositiveSmallIntegerField(null=True, blank=True)
    deleted_at = models.DateTimeField(null=True, blank=True)
    deleted_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='deleted_notes')
    delete_reason = models.TextField(blank=True)

    def __str__(self):
        return f"{self.entity_type}:{self.entity_id} #{self.pk}"

    @property
    def is_deleted(self):
        return self.deleted_at is not None

    @property
    def excerpt(self):
        text = self.plain_text or ''
        return text if len(text) <= 80 else f"{text[:77]}..."

    class Meta:
        db_table = 'notes'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['entity_type', 'entity_id'], name='idx_note_entity'),
            models.Index(fields=['entity_type', 'entity_id', 'is_pinned'], name='idx_note_entity_pinned'),
            models.Index(fields=['parent_note'], name='idx_note_parent'),
            models.Index(fields=['author'], name='idx_note_author'),
            models.Index(fields=['-created_at'], name='idx_note_created'),
        ]
        constraints = [
            models.UniqueConstraint(fields=['entity_type', 'entity_id', 'pin_slot'], name='uniq_note_pin_slot'),
        ]


class NoteTag(models.Model):
    """Label that can be put on notes"""
    name = models.CharField(max_length=50, unique=True)
    color = models.CharField(max_length=20, default='#6b7280')
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'note_tags'
        ordering = ['name']


class NoteTagAssignment(models.Model):
    note = models.ForeignKey(Note, on_delete=models.CASCADE, related_name='tag_assignments')
    tag = models.ForeignKey(NoteTag, on_delete=models.CASCADE, related_name='assignments')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'note_tag_assignments'
        constraints = [
            models.UniqueConstraint(fields=['note', 'tag'], name='uniq_note_tag'),
        ]


class NoteMention(models.Model):
    """User @mentioned in a note"""
    note = models.ForeignKey(Note, on_delete=models.CASCADE, related_name='mentions')
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='note_mentions')
    notified = models.BooleanField(default=False)
    notified_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'note_mentions'
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(fields=['note', 'user'], name='uniq_note_mention'),
        ]


class NoteReaction(models.Model):
    """Emoji reaction on a note; one per user per emoji"""
    note = models.ForeignKey(Note, on_delete=models.CASCADE, related_name='reactions')
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='note_reactions')
    emoji = models.CharField(max_length=32)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'note_reactions'
        ordering = ['created_at']
        constraints = [
            models.UniqueConstraint(fields=['note', 'user', 'emoji'], name='uniq_note_reaction'),
        ]


class NoteAttachment(models.Model):
    note = models.ForeignKey(Note, on_delete=models.CASCADE, related_name='attachments')
    file = models.FileField(upload_to='note_attachments/%Y/%m/')
    file_name = models.CharField(max_length=255)
    mime_type = models.CharField(max_length=100, blank=True)
    size_bytes = models.PositiveIntegerField(default=0)
    uploaded_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='note_attachments')
    uploaded_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.file_name

    class Meta:
        db_table = 'note_attachments'
        ordering = ['uploaded_at']


class NoteFollowup(models.Model):
    """Follow-up task spawned from a note"""
    STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('in_progress', 'In Progress'),
        ('completed', 'Completed'),
        ('cancelled', 'Cancelled'),
    ]

    note = models.ForeignKey(Note, on_delete=models.CASCADE, related_name='followups')
    todo = models.ForeignKey('todos.Todo', on_delete=models.SET_NULL, null=True, blank=True, related_name='note_followups')
    due_at = models.DateTimeField(null=True, blank=True)
    assignee = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='note_followups')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending')
    completed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'note_followups'
        ordering = ['-created_at']


class NoteRevision(models.Model):
    """Content before and after an edit"""
    note = models.ForeignKey(Note, on_delete=models.CASCADE, related_name='revisions')
    editor = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='note_revisions')
    previous_content = models.TextField()
    new_content = models.TextField()
    delta = models.JSONField(default=list, blank=True)
    edited_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'note_revisions'
        ordering = ['-edited_at', '-id']


class NoteTemplate(models.Model):
    """Reusable note text with {{variable}} placeholders"""
    SCOPE_CHOICES = [
        ('global', 'Global'),
        ('entity', 'Entity'),
    ]

    name = models.CharField(max_length=100)
    content = models.TextField()
    description = models.TextField(blank=True)
    scope = models.CharField(max_length=20, choices=SCOPE_CHOICES, default='global')
    entity_type = models.CharField(max_length=20, choices=Note.ENTITY_TYPE_CHOICES, blank=True)
    status_context = models.CharField(max_length=50, blank=True)
    variables = models.JSONField(default=list, blank=True)
    is_active = models.BooleanField(default=True)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='note_templates')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'note_templates'
        ordering = ['name']


class NoteLink(models.Model):
    """Reference detected in a note's text (order number, tracking code, ...)"""
    LINK_TYPE_CHOICES = [
        ('order', 'Order'),
        ('tracking', 'Tracking'),
        ('sku', 'SKU'),
        ('email', 'E-mail'),
        ('url', 'URL'),
    ]

    note = models.ForeignKey(Note, on_delete=models.CASCADE, related_name='links')
    link_type = models.CharField(max_length=20, choices=LINK_TYPE_CHOICES)
    target_id = models.TextField()
    display_text = models.CharField(max_length=255)
    url = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'note_links'
        ordering = ['id']
