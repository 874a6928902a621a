# Generated manually
from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ('notes', '0002_notelink_text_and_pin_slot'),
    ]

    operations = [
        migrations.AddConstraint(
            model_name='note',
            constraint=models.UniqueConstraint(fields=('entity_type', 'entity_id', 'pin_slot'), name='uniq_note_pin_slot'),
        ),
    ]
