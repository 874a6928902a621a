# Generated manually
from django.db import migrations, models


def assign_pin_slots(apps, schema_editor):
    Note = apps.get_model('notes', 'Note')
    slots = {}
    pinned = Note.objects.filter(is_pinned=True, deleted_at__isnull=True).order_by('pinned_at', 'id')
    for note in pinned:
        key = (note.entity_type, note.entity_id)
        slots[key] = slots.get(key, 0) + 1
        note.pin_slot = slots[key]
        note.save(update_fields=['pin_slot'])


class Migration(migrations.Migration):

    dependencies = [
        ('notes', '0001_initial'),
    ]

    operations = [
        migrations.AlterField(
            model_name='notelink',
            name='target_id',
            field=models.TextField(),
        ),
        migrations.AlterField(
            model_name='notelink',
            name='url',
            field=models.TextField(blank=True),
        ),
        migrations.AddField(
            model_name='note',
            name='pin_slot',
            field=models.PositiveSmallIntegerField(blank=True, null=True),
        ),
        migrations.RunPython(assign_pin_slots, migrations.RunPython.noop),
    ]
