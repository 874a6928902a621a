from django.db import models
from backend.core.models import User
from backend.parties.models import Customer
from backend.orders.models import Order
from backend.cases.models import Case


class Return(models.Model):
    """Customer return (RMA) tracked on the returns kanban"""
    # Kanban column order; any status may move to any other
    STATUS_CHOICES = [
        ('nieuw', 'Nieuw'),
        ('onderweg', 'Onderweg'),
        ('ontvangen_controle', 'Ontvangen - controle'),
        ('akkoord_terugbetaling', 'Akkoord terugbetaling'),
        ('vermiste_pakketten', 'Vermiste pakketten'),
        ('wachten_klant', 'Wachten op klant'),
        ('opnieuw_versturen', 'Opnieuw versturen'),
        ('klaar', 'Klaar'),
        ('niet_ontvangen', 'Niet ontvangen'),
    ]
    REASON_CHOICES = [
        ('wrong_item', 'Wrong item'),
        ('damaged', 'Damaged'),
        ('defective', 'Defective'),
        ('size_issue', 'Size issue'),
        ('changed_mind', 'Changed mind'),
        ('other', 'Other'),
    ]
    REFUND_STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('processing', 'Processing'),
        ('completed', 'Completed'),
        ('failed', 'Failed'),
    ]
    REFUND_METHOD_CHOICES = [
        ('original_payment', 'Original payment'),
        ('store_credit', 'Store credit'),
        ('exchange', 'Exchange'),
    ]
    PRIORITY_CHOICES = [
        ('low', 'Low'),
        ('medium', 'Medium'),
        ('high', 'High'),
        ('urgent', 'Urgent'),
    ]

    return_number = models.CharField(max_length=30, unique=True)
    customer = models.ForeignKey(Customer, on_delete=models.SET_NULL, null=True, blank=True, related_name='returns')
    order = models.ForeignKey(Order, on_delete=models.SET_NULL, null=True, blank=True, related_name='returns')
    case = models.ForeignKey(Case, on_delete=models.SET_NULL, null=True, blank=True, related_name='returns')
    assigned_user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='assigned_returns')
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='created_returns')
    status = models.CharField(max_length=30, choices=STATUS_CHOICES, default='nieuw')
    return_reason = models.CharField(max_length=20, choices=REASON_CHOICES, blank=True)
    other_reason = models.TextField(blank=True)
    tracking_number = models.CharField(max_length=100, blank=True)
    requested_at = models.DateTimeField(null=True, blank=True)
    received_at = models.DateTimeField(null=True, blank=True)
    expected_return_date = models.DateField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    refund_amount = models.IntegerField(null=True, blank=True, help_text='Amount in cents')
    refund_status = models.CharField(max_length=20, choices=REFUND_STATUS_CHOICES, default='pending')
    refund_method = models.CharField(max_length=20, choices=REFUND_METHOD_CHOICES, blank=True)
    customer_notes = models.TextField(blank=True)
    internal_notes = models.TextField(blank=True)
    condition_notes = models.TextField(blank=True)
    photos = models.JSONField(default=list, blank=True)
    priority = models.CharField(max_length=10, choices=PRIORITY_CHOICES, default='medium')
    tags = models.JSONField(default=list, blank=True)
    is_archived = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.return_number

    @classmethod
    def status_label(cls, value):
        return dict(cls.STATUS_CHOICES).get(value, value)

    class Meta:
        db_table = 'returns'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status', 'is_archived'], name='idx_return_status_archived'),
            models.Index(fields=['tracking_number'], name='idx_return_tracking'),
            models.Index(fields=['-created_at'], name='idx_return_created'),
        ]


class ReturnItem(models.Model):
    """Product line on a return"""
    CONDITION_CHOICES = [
        ('new', 'New'),
        ('opened', 'Opened'),
        ('used', 'Used'),
        ('damaged', 'Damaged'),
        ('defective', 'Defective'),
    ]

    return_request = models.ForeignKey(Return, on_delete=models.CASCADE, related_name='items')
    sku = models.CharField(max_length=100, blank=True)
    product_name = models.CharField(max_length=255)
    quantity = models.PositiveIntegerField(default=1)
    unit_price = models.IntegerField(null=True, blank=True, help_text='Amount in cents')
    condition = models.CharField(max_length=20, choices=CONDITION_CHOICES, blank=True)
    image_url = models.URLField(blank=True)
    restockable = models.BooleanField(default=False)
    restocked_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.product_name} x{self.quantity}"

    class Meta:
        db_table = 'return_items'
        ordering = ['id']
