from django.db import models
from backend.core.models import User
from backend.parties.models import Customer
from backend.orders.models import Order


class Case(models.Model):
    """Customer-service case grouping orders, e-mails, returns and repairs"""
    STATUS_CHOICES = [
        ('new', 'New'),
        ('in_progress', 'In Progress'),
        ('waiting_customer', 'Waiting for Customer'),
        ('resolved', 'Resolved'),
    ]
    PRIORITY_CHOICES = [
        ('low', 'Low'),
        ('medium', 'Medium'),
        ('high', 'High'),
        ('urgent', 'Urgent'),
    ]
    SOURCE_CHOICES = [
        ('email', 'E-mail'),
        ('shopify', 'Shopify'),
        ('manual', 'Manual'),
    ]

    case_number = models.CharField(max_length=20, unique=True)
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    customer = models.ForeignKey(Customer, on_delete=models.SET_NULL, null=True, blank=True, related_name='cases')
    customer_email = models.EmailField(blank=True)
    order = models.ForeignKey(Order, on_delete=models.SET_NULL, null=True, blank=True, related_name='cases')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='new')
    priority = models.CharField(max_length=10, choices=PRIORITY_CHOICES, default='medium')
    case_type = models.CharField(max_length=50, blank=True)
    source = models.CharField(max_length=20, choices=SOURCE_CHOICES, default='manual')
    assigned_user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='assigned_cases')
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='created_cases')
    sla_deadline = models.DateTimeField(null=True, blank=True)
    resolved_at = models.DateTimeField(null=True, blank=True)
    archived = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.case_number

    def add_event(self, event_type, message, user=None, metadata=None):
        """Append an entry to the case timeline"""
        return self.events.create(
            event_type=event_type,
            message=message,
            created_by=user if user and user.is_authenticated else None,
            metadata=metadata or {},
        )

    class Meta:
        db_table = 'cases'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status', 'archived'], name='idx_case_status_archived'),
            models.Index(fields=['assigned_user'], name='idx_case_assigned'),
        ]


class CaseItem(models.Model):
    """Products a case is about"""
    case = models.ForeignKey(Case, on_delete=models.CASCADE, related_name='items')
    sku = models.CharField(max_length=100, blank=True)
    product_name = models.CharField(max_length=255)
    quantity = models.PositiveIntegerField(default=1)
    unit_price = models.IntegerField(default=0, help_text='Amount in cents')

    class Meta:
        db_table = 'case_items'
        ordering = ['id']


class CaseLink(models.Model):
    """Link from a case to another record"""
    LINK_TYPE_CHOICES = [
        ('order', 'Order'),
        ('email', 'E-mail'),
        ('repair', 'Repair'),
        ('todo', 'Todo'),
        ('return', 'Return'),
    ]

    case = models.ForeignKey(Case, on_delete=models.CASCADE, related_name='links')
    link_type = models.CharField(max_length=20, choices=LINK_TYPE_CHOICES)
    linked_id = models.CharField(max_length=100)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='case_links')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'case_links'
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(fields=['case', 'link_type', 'linked_id'], name='uniq_case_link'),
        ]


class CaseEvent(models.Model):
    """Timeline entry on a case"""
    EVENT_TYPE_CHOICES = [
        ('created', 'Created'),
        ('status_change', 'Status Change'),
        ('note_added', 'Note Added'),
        ('link_added', 'Link Added'),
        ('link_removed', 'Link Removed'),
        ('sla_set', 'SLA Set'),
        ('assigned', 'Assigned'),
        ('email_sent', 'E-mail Sent'),
        ('email_received', 'E-mail Received'),
    ]

    case = models.ForeignKey(Case, on_delete=models.CASCADE, related_name='events')
    event_type = models.CharField(max_length=30, choices=EVENT_TYPE_CHOICES)
    message = models.TextField()
    metadata = models.JSONField(default=dict, blank=True)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='case_events')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'case_events'
        ordering = ['-created_at', '-id']
