from django.contrib import admin
from .models import Return, ReturnItem


class ReturnItemInline(admin.TabularInline):
    model = ReturnItem
    extra = 0
    fields = ['sku', 'product_name', 'quantity', 'unit_price', 'condition', 'restockable', 'restocked_at']


@admin.register(Return)
class ReturnAdmin(admin.ModelAdmin):
    list_display = ['return_number', 'status', 'priority', 'order', 'customer', 'assigned_user', 'refund_status', 'is_archived', 'created_at']
    list_filter = ['status', 'priority', 'refund_status', 'return_reason', 'is_archived', 'created_at']
    search_fields = ['return_number', 'tracking_number', 'order__order_number', 'customer__email']
    ordering = ['-created_at']
    inlines = [ReturnItemInline]
    readonly_fields = ['return_number', 'created_at', 'updated_at']
