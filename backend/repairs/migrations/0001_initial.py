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
            name='Repair',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('repair_number', models.CharField(max_length=30, unique=True)),
                ('repair_type', models.CharField(choices=[('customer', 'Customer'), ('inventory', 'Inventory')], default='customer', max_length=20)),
                ('title', models.CharField(max_length=255)),
                ('description', models.TextField(blank=True)),
                ('status', models.CharField(choices=[('new', 'Nieuw'), ('diagnosing', 'Diagnose'), ('waiting_parts', 'Wachten op onderdelen'), ('repair_in_progress', 'In reparatie'), ('quality_check', 'Kwaliteitscontrole'), ('completed', 'Klaar'), ('returned', 'Teruggestuurd'), ('canceled', 'Geannuleerd')], default='new', max_length=30)),
                ('priority', models.CharField(choices=[('low', 'Low'), ('medium', 'Medium'), ('high', 'High'), ('urgent', 'Urgent')], default='medium', max_length=10)),
                ('issue_category', models.CharField(blank=True, max_length=100)),
                ('product_sku', models.CharField(blank=True, max_length=100)),
                ('product_name', models.CharField(blank=True, max_length=255)),
                ('estimated_cost', models.IntegerField(blank=True, help_text='Amount in cents', null=True)),
                ('actual_cost', models.IntegerField(blank=True, help_text='Amount in cents', null=True)),
                ('parts_needed', models.JSONField(blank=True, default=list)),
                ('timeline', models.JSONField(blank=True, default=list)),
                ('sla_deadline', models.DateTimeField(blank=True, null=True)),
                ('completed_at', models.DateTimeField(blank=True, null=True)),
                ('is_archived', models.BooleanField(default=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('assigned_user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='assigned_repairs', to=settings.AUTH_USER_MODEL)),
                ('case', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='repairs', to='cases.case')),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='created_repairs', to=settings.AUTH_USER_MODEL)),
                ('customer', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='repairs', to='parties.customer')),
                ('order', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='repairs', to='orders.order')),
            ],
            options={
                'db_table': 'repairs',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['status', 'is_archived'], name='idx_repair_status_archived'),
                    models.Index(fields=['assigned_user', 'status'], name='idx_repair_assignee_status'),
                    models.Index(fields=['-created_at'], name='idx_repair_created'),
                ],
            },
        ),
    ]
