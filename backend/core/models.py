from django.contrib.auth.models import AbstractUser
from django.db import models


class User(AbstractUser):
    """Back-office user with an application role"""
    ROLE_CHOICES = [
        ('ADMIN', 'Admin'),
        ('SUPPORT', 'Support'),
        ('TECHNICUS', 'Technicus'),
    ]

    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default='SUPPORT')
    phone = models.CharField(max_length=20, blank=True, null=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    @property
    def display_name(self):
        full_name = self.get_full_name()
        return full_name or self.username

    class Meta:
        db_table = 'users'


class Setting(models.Model):
    """System settings"""
    key = models.CharField(max_length=100, unique=True)
    value = models.TextField()
    description = models.TextField(blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.key

    class Meta:
        db_table = 'settings'


class AuditLog(models.Model):
    """Audit log for every mutation"""
    ACTION_CHOICES = [
        ('create', 'Create'),
        ('update', 'Update'),
        ('delete', 'Delete'),
        ('view', 'View'),
        ('status_change', 'Status Changed'),
        ('archive', 'Archived'),
        ('unarchive', 'Unarchived'),
        ('receive', 'Received'),
        ('file_upload', 'File Uploaded'),
        ('file_delete', 'File Deleted'),
        ('photo_upload', 'Photo Uploaded'),
        ('photo_delete', 'Photo Deleted'),
        ('note_create', 'Note Created'),
        ('note_update', 'Note Updated'),
        ('note_delete', 'Note Deleted'),
        ('note_pin', 'Note Pinned'),
        ('note_unpin', 'Note Unpinned'),
        ('tag_assign', 'Tag Assigned'),
        ('tag_remove', 'Tag Removed'),
        ('mention_add', 'Mention Added'),
        ('mention_read', 'Mention Read'),
        ('reaction_add', 'Reaction Added'),
        ('reaction_remove', 'Reaction Removed'),
        ('attachment_add', 'Attachment Added'),
        ('attachment_delete', 'Attachment Deleted'),
        ('followup_create', 'Follow-up Created'),
        ('followup_update', 'Follow-up Updated'),
        ('link_add', 'Link Added'),
        ('link_remove', 'Link Removed'),
    ]

    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, related_name='audit_logs')
    action = models.CharField(max_length=50, choices=ACTION_CHOICES)
    model_name = models.CharField(max_length=100)
    object_id = models.CharField(max_length=100)
    object_name = models.CharField(max_length=255, blank=True, null=True, help_text="Human-readable name of the object (e.g., return number, note excerpt)")
    object_reference = models.CharField(max_length=255, blank=True, null=True, help_text="Reference identifier (e.g., return number, case number, PO number)")
    changes = models.JSONField(default=dict, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'audit_logs'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['-created_at'], name='idx_audit_created'),
            models.Index(fields=['action'], name='idx_audit_action'),
            models.Index(fields=['model_name'], name='idx_audit_model'),
            models.Index(fields=['object_reference'], name='idx_audit_reference'),
        ]


class Activity(models.Model):
    """Dashboard activity feed entry"""
    type = models.CharField(max_length=100)
    description = models.TextField()
    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='activities')
    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.type}: {self.description[:50]}"

    class Meta:
        db_table = 'activities'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['-created_at'], name='idx_activity_created'),
            models.Index(fields=['type'], name='idx_activity_type'),
        ]
