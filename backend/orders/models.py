from django.db import models
from backend.parties.models import Customer


class Order(models.Model):
    """Shop order mirrored from Shopify"""
    STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('processing', 'Processing'),
        ('shipped', 'Shipped'),
        ('delivered', 'Delivered'),
        ('cancelled', 'Cancelled'),
        ('refunded', 'Refunded'),
    ]

    shopify_order_id = models.CharField(max_length=100, unique=True)
    order_number = models.CharField(max_length=50)
    customer = models.ForeignKey(Customer, on_delete=models.SET_NULL, null=True, blank=True, related_name='orders')
    customer_email = models.EmailField(blank=True)
    total_amount = models.IntegerField(default=0, help_text='Amount in cents')
    currency = models.CharField(max_length=3, default='EUR')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending')
    fulfillment_status = models.CharField(max_length=50, blank=True)
    payment_status = models.CharField(max_length=50, blank=True)
    order_data = models.JSONField(default=dict, blank=True)
    order_date = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.order_number

    def line_items(self):
        """Line items from the Shopify payload"""
        items = (self.order_data or {}).get('line_items') or []
        return items if isinstance(items, list) else []

    def find_line_item(self, sku=None, title=None):
        """Line item matching the SKU, or the title when no SKU matches"""
        for item in self.line_items():
            if sku and item.get('sku') == sku:
                return item
        if title:
            for item in self.line_items():
                if item.get('title') == title or item.get('name') == title:
                    return item
        return None

    class Meta:
        db_table = 'orders'
        ordering = ['-order_date', '-created_at']
        indexes = [
            models.Index(fields=['status'], name='idx_order_status'),
            models.Index(fields=['order_number'], name='idx_order_number'),
            models.Index(fields=['customer_email'], name='idx_order_customer_email'),
        ]
