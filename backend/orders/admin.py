from django.contrib import admin
from .models import Order


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ['order_number', 'customer_email', 'total_amount', 'currency', 'status', 'payment_status', 'order_date']
    list_filter = ['status', 'payment_status', 'fulfillment_status', 'order_date']
    search_fields = ['order_number', 'shopify_order_id', 'customer_email']
    ordering = ['-order_date']
    readonly_fields = ['created_at', 'updated_at']
