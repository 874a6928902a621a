from django.db import models
from django.utils import timezone
from backend.core.models import User
from backend.parties.models import Customer
from backend.orders.models import Order
from backend.cases.models import Case


class Repair(models.Model):
    """Repair of a customer's product or of own stock, tracked per status"""
    STATUS_CHOICES = [
        ('new', 'Nieuw'),
        ('diagnosing', 'Diagnose'),
        ('waiting_parts', 'Wachten op onderdelen'),
        ('repair_in_progress', 'In reparatie'),
        ('quality_check', 'Kwaliteitscontrole'),
        ('completed', 'Klaar'),
        ('returned', 'Teruggestuurd'),
        ('canceled', 'Geannuleerd'),
    ]
    OPEN_STATUSES = ['new', 'diagnosing', 'waiting_parts', 'repair_in_progress', 'quality_check']
    FINISHED_STATUSES = ['completed', 'returned']

    REPAIR_TYPE_CHOICES = [
        ('customer', 'Customer'),
        ('inventory', 'Inventory'),
    ]
    PRIORITY_CHOICES = [
        ('low', 'Low'),
        ('medium', 'Medium'),
        ('high', 'High'),
        ('urgent', 'Urgent'),
    ]

    repair_number = models.CharField(max_length=30, unique=True)
    repair_type = models.CharField(max_length=20, choices=REPAIR_TYPE_CHOICES, default='customer')
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    customer = models.ForeignKey(Customer, on_delete=models.SET_NULL, null=True, blank=True, related_name='repairs')
    order = models.ForeignKey(Order, on_delete=models.SET_NULL, null=True, blank=True, related_name='repairs')
    case = models.ForeignKey(Case, on_delete=models.SET_NULL, null=True, blank=True, related_name='repairs')
    assigned_user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='assigned_repairs')
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='created_repairs')
    status = models.CharField(max_length=30, choices=STATUS_CHOICES, default='new')
    priority = models.CharField(max_length=10, choices=PRIORITY_CHOICES, default='medium')
    issue_category = models.CharField(max_length=100, blank=True)
    product_sku = models.CharField(max_length=100, blank=True)
    product_name = models.CharField(max_length=255, blank=True)
    estimated_cost = models.IntegerField(null=True, blank=True, help_text='Amount in cents')
    actual_cost = models.IntegerField(null=True, blank=True, help_text='Amount in cents')
    parts_needed = models.JSONField(default=list, blank=True)
    timeline = models.JSONField(default=list, blank=True)
    sla_deadline = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    is_archived = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.repair_number} - {self.title}"

    @classmethod
    def status_label(cls, value):
        return dict(cls.STATUS_CHOICES).get(value, value)

    @property
    def is_overdue(self):
        return (
            self.sla_deadline is not None
            and self.status in self.OPEN_STATUSES
            and self.sla_deadline < timezone.now()
        )

    class Meta:
        db_table = 'repairs'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status', 'is_archived'], name='idx_repair_status_archived'),
            models.Index(fields=['assigned_user', 'status'], name='idx_repair_assignee_status'),
            models.Index(fields=['-created_at'], name='idx_repair_created'),
        ]
