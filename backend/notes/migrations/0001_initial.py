# Generated manually
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


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


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ('todos', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='NoteTemplate',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=100)),
                ('content', models.TextField()),
                ('description', models.TextField(blank=True)),
                ('scope', models.CharField(choices=[('global', 'Global'), ('entity', 'Entity')], default='global', max_length=20)),
                ('entity_type', models.CharField(blank=True, choices=ENTITY_TYPE_CHOICES, max_length=20)),
                ('status_context', models.CharField(blank=True, max_length=50)),
                ('variables', models.JSONField(blank=True, default=list)),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='note_templates', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'note_templates',
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='NoteTag',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=50, unique=True)),
                ('color', models.CharField(default='#6b7280', max_length=20)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
            ],
            options={
                'db_table': 'note_tags',
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='Note',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('entity_type', models.CharField(choices=ENTITY_TYPE_CHOICES, max_length=20)),
                ('entity_id', models.CharField(max_length=100)),
                ('visibility', models.CharField(choices=[('internal', 'Internal'), ('customer_visible', 'Customer visible'), ('system', 'System')], default='internal', max_length=20)),
                ('content', models.TextField()),
                ('rendered_html', models.TextField(blank=True)),
                ('plain_text', models.TextField(blank=True)),
                ('thread_depth', models.PositiveSmallIntegerField(default=0)),
                ('source', models.CharField(choices=[('manual', 'Manual'), ('system', 'System'), ('template', 'Template'), ('email', 'E-mail')], default='manual', max_length=20)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('edited_at', models.DateTimeField(blank=True, null=True)),
                ('is_pinned', models.BooleanField(default=False)),
                ('pinned_at', models.DateTimeField(blank=True, null=True)),
                ('deleted_at', models.DateTimeField(blank=True, null=True)),
                ('delete_reason', models.TextField(blank=True)),
                ('author', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='notes', to=settings.AUTH_USER_MODEL)),
                ('deleted_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='deleted_notes', to=settings.AUTH_USER_MODEL)),
                ('parent_note', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='replies', to='notes.note')),
                ('pinned_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='pinned_notes', to=settings.AUTH_USER_MODEL)),
                ('template', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='notes', to='notes.notetemplate')),
            ],
            options={
                'db_table': 'notes',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['entity_type', 'entity_id'], name='idx_note_entity'),
                    models.Index(fields=['entity_type', 'entity_id', 'is_pinned'], name='idx_note_entity_pinned'),
                    models.Index(fields=['parent_note'], name='idx_note_parent'),
                    models.Index(fields=['author'], name='idx_note_author'),
                    models.Index(fields=['-created_at'], name='idx_note_created'),
                ],
            },
        ),
        migrations.CreateModel(
            name='NoteTagAssignment',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('note', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='tag_assignments', to='notes.note')),
                ('tag', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='assignments', to='notes.notetag')),
            ],
            options={
                'db_table': 'note_tag_assignments',
                'constraints': [
                    models.UniqueConstraint(fields=('note', 'tag'), name='uniq_note_tag'),
                ],
            },
        ),
        migrations.CreateModel(
            name='NoteMention',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('notified', models.BooleanField(default=False)),
                ('notified_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('note', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='mentions', to='notes.note')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='note_mentions', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'note_mentions',
                'ordering': ['-created_at'],
                'constraints': [
                    models.UniqueConstraint(fields=('note', 'user'), name='uniq_note_mention'),
                ],
            },
        ),
        migrations.CreateModel(
            name='NoteReaction',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('emoji', models.CharField(max_length=32)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('note', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='reactions', to='notes.note')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='note_reactions', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'note_reactions',
                'ordering': ['created_at'],
                'constraints': [
                    models.UniqueConstraint(fields=('note', 'user', 'emoji'), name='uniq_note_reaction'),
                ],
            },
        ),
        migrations.CreateModel(
            name='NoteAttachment',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('file', models.FileField(upload_to='note_attachments/%Y/%m/')),
                ('file_name', models.CharField(max_length=255)),
                ('mime_type', models.CharField(blank=True, max_length=100)),
                ('size_bytes', models.PositiveIntegerField(default=0)),
                ('uploaded_at', models.DateTimeField(auto_now_add=True)),
                ('note', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='attachments', to='notes.note')),
                ('uploaded_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='note_attachments', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'note_attachments',
                'ordering': ['uploaded_at'],
            },
        ),
        migrations.CreateModel(
            name='NoteFollowup',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('due_at', models.DateTimeField(blank=True, null=True)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('in_progress', 'In Progress'), ('completed', 'Completed'), ('cancelled', 'Cancelled')], default='pending', max_length=20)),
                ('completed_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('assignee', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='note_followups', to=settings.AUTH_USER_MODEL)),
                ('note', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='followups', to='notes.note')),
                ('todo', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='note_followups', to='todos.todo')),
            ],
            options={
                'db_table': 'note_followups',
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='NoteRevision',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('previous_content', models.TextField()),
                ('new_content', models.TextField()),
                ('delta', models.JSONField(blank=True, default=list)),
                ('edited_at', models.DateTimeField(auto_now_add=True)),
                ('editor', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='note_revisions', to=settings.AUTH_USER_MODEL)),
                ('note', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='revisions', to='notes.note')),
            ],
            options={
                'db_table': 'note_revisions',
                'ordering': ['-edited_at', '-id'],
            },
        ),
        migrations.CreateModel(
            name='NoteLink',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('link_type', models.CharField(choices=[('order', 'Order'), ('tracking', 'Tracking'), ('sku', 'SKU'), ('email', 'E-mail'), ('url', 'URL')], max_length=20)),
                ('target_id', models.CharField(max_length=255)),
                ('display_text', models.CharField(max_length=255)),
                ('url', models.CharField(blank=True, max_length=500)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('note', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='links', to='notes.note')),
            ],
            options={
                'db_table': 'note_links',
                'ordering': ['id'],
            },
        ),
    ]
