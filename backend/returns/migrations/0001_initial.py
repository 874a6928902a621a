# Generated manually
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ('parties', '0001_initial'),
        ('orders', '0001_initial'),
        ('cases', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='Return',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('return_number', models.CharField(max_length=30, unique=True)),
                ('status', models.CharField(choices=[('nieuw', 'Nieuw'), ('onderweg', 'Onderweg'), ('ontvangen_controle', 'Ontvangen - controle'), ('akkoord_terugbetaling', 'Akkoord terugbetaling'), ('vermiste_pakketten', 'Vermiste pakketten'), ('wachten_klant', 'Wachten op klant'), ('opnieuw_versturen', 'Opnieuw versturen'), ('klaar', 'Klaar'), ('niet_ontvangen', 'Niet ontvangen')], default='nieuw', max_length=30)),
                ('return_reason', models.CharField(blank=True, choices=[('wrong_item', 'Wrong item'), ('damaged', 'Damaged'), ('defective', 'Defective'), ('size_issue', 'Size issue'), ('changed_mind', 'Changed mind'), ('other', 'Other')], max_length=20)),
                ('other_reason', models.TextField(blank=True)),
                ('tracking_number', models.CharField(blank=True, max_length=100)),
                ('requested_at', models.DateTimeField(blank=True, null=True)),
                ('received_at', models.DateTimeField(blank=True, null=True)),
                ('expected_return_date', models.DateField(blank=True, null=True)),
                ('completed_at', models.DateTimeField(blank=True, null=True)),
                ('refund_amount', models.IntegerField(blank=True, help_text='Amount in cents', null=True)),
                ('refund_status', models.CharField(choices=[('pending', 'Pending'), ('processing', 'Processing'), ('completed', 'Completed'), ('failed', 'Failed')], default='pending', max_length=20)),
                ('refund_method', models.CharField(blank=True, choices=[('original_payment', 'Original payment'), ('store_credit', 'Store credit'), ('exchange', 'Exchange')], max_length=20)),
                ('customer_notes', models.TextField(blank=True)),
                ('internal_notes', models.TextField(blank=True)),
                ('condition_notes', models.TextField(blank=True)),
                ('photos', models.JSONField(blank=True, default=list)),
                ('priority', models.CharField(choices=[('low', 'Low'), ('medium', 'Medium'), ('high', 'High'), ('urgent', 'Urgent')], default='medium', max_length=10)),
                ('tags', models.JSONField(blank=True, default=list)),
                ('is_archived', models.BooleanField(default=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('assigned_user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='assigned_returns', to=settings.AUTH_USER_MODEL)),
                ('case', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='returns', to='cases.case')),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='created_returns', to=settings.AUTH_USER_MODEL)),
                ('customer', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='returns', to='parties.customer')),
                ('order', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='returns', to='orders.order')),
            ],
            options={
                'db_table': 'returns',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['status', 'is_archived'], name='idx_return_status_archived'),
                    models.Index(fields=['tracking_number'], name='idx_return_tracking'),
                    models.Index(fields=['-created_at'], name='idx_return_created'),
                ],
            },
        ),
        migrations.CreateModel(
            name='ReturnItem',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('sku', models.CharField(blank=True, max_length=100)),
                ('product_name', models.CharField(max_length=255)),
                ('quantity', models.PositiveIntegerField(default=1)),
                ('unit_price', models.IntegerField(blank=True, help_text='Amount in cents', null=True)),
                ('condition', models.CharField(blank=True, choices=[('new', 'New'), ('opened', 'Opened'), ('used', 'Used'), ('damaged', 'Damaged'), ('defective', 'Defective')], max_length=20)),
                ('image_url', models.URLField(blank=True)),
                ('restockable', models.BooleanField(default=False)),
                ('restocked_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('return_request', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='items', to='returns.return')),
            ],
            options={
                'db_table': 'return_items',
                'ordering': ['id'],
            },
        ),
    ]
