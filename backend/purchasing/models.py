from django.db import models
from backend.parties.models import Supplier
from backend.core.models import User


class PurchaseOrder(models.Model):
    """Purchase order placed with a supplier"""
    STATUS_CHOICES = [
        ('aangekocht', 'Aangekocht'),
        ('ontvangen', 'Ontvangen'),
        ('verwerkt', 'Verwerkt'),
    ]

    po_number = models.CharField(max_length=30, unique=True)
    title = models.CharField(max_length=255)
    supplier = models.ForeignKey(Supplier, on_delete=models.PROTECT, related_name='purchase_orders')
    order_date = models.DateField()
    expected_delivery_date = models.DateField(null=True, blank=True)
    received_date = models.DateField(null=True, blank=True)
    total_amount = models.IntegerField(default=0, help_text='Amount in cents')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='aangekocht')
    is_paid = models.BooleanField(default=False)
    archived = models.BooleanField(default=False)
    notes = models.TextField(blank=True)
    case = models.ForeignKey('cases.Case', on_delete=models.SET_NULL, null=True, blank=True, related_name='purchase_orders')
    order = models.ForeignKey('orders.Order', on_delete=models.SET_NULL, null=True, blank=True, related_name='purchase_orders')
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='created_purchase_orders')
    assigned_buyer = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='bought_purchase_orders')
    received_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='received_purchase_orders')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.po_number

    def get_items_total(self):
        """Sum of item subtotals in cents"""
        return sum(item.subtotal for item in self.items.all())

    class Meta:
        db_table = 'purchase_orders'
        ordering = ['-order_date', '-created_at']
        indexes = [
            models.Index(fields=['status'], name='idx_po_status'),
            models.Index(fields=['supplier', 'status'], name='idx_po_supplier_status'),
            models.Index(fields=['-order_date', '-created_at'], name='idx_po_date_created'),
        ]


class PurchaseOrderItem(models.Model):
    """Purchase order line items"""
    purchase_order = models.ForeignKey(PurchaseOrder, on_delete=models.CASCADE, related_name='items')
    sku = models.CharField(max_length=100)
    product_name = models.CharField(max_length=255)
    quantity = models.PositiveIntegerField()
    unit_price = models.IntegerField(default=0, help_text='Amount in cents')
    subtotal = models.IntegerField(default=0, help_text='Amount in cents')
    received_quantity = models.PositiveIntegerField(default=0)

    def save(self, *args, **kwargs):
        self.subtotal = self.quantity * self.unit_price
        super().save(*args, **kwargs)

    class Meta:
        db_table = 'purchase_order_items'
        ordering = ['id']
        indexes = [
            models.Index(fields=['purchase_order', 'sku'], name='idx_poitem_po_sku'),
        ]


class PurchaseOrderFile(models.Model):
    """Invoice, delivery note or other document attached to a purchase order"""
    purchase_order = models.ForeignKey(PurchaseOrder, on_delete=models.CASCADE, related_name='files')
    file = models.FileField(upload_to='purchase_orders/%Y/%m/')
    file_name = models.CharField(max_length=255)
    file_type = models.CharField(max_length=100, blank=True)
    file_size = models.PositiveIntegerField(default=0)
    uploaded_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='purchase_order_files')
    uploaded_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.file_name

    class Meta:
        db_table = 'purchase_order_files'
        ordering = ['-uploaded_at']
