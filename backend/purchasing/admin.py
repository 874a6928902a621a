from django.contrib import admin
from .models import PurchaseOrder, PurchaseOrderItem, PurchaseOrderFile


class PurchaseOrderItemInline(admin.TabularInline):
    model = PurchaseOrderItem
    extra = 1
    fields = ['sku', 'product_name', 'quantity', 'unit_price', 'subtotal', 'received_quantity']
    readonly_fields = ['subtotal']


class PurchaseOrderFileInline(admin.TabularInline):
    model = PurchaseOrderFile
    extra = 0
    fields = ['file', 'file_name', 'file_type', 'file_size', 'uploaded_by', 'uploaded_at']
    readonly_fields = ['uploaded_at']


@admin.register(PurchaseOrder)
class PurchaseOrderAdmin(admin.ModelAdmin):
    list_display = ['po_number', 'title', 'supplier', 'order_date', 'status', 'get_total', 'is_paid', 'archived', 'created_by']
    list_filter = ['status', 'is_paid', 'archived', 'supplier', 'order_date']
    search_fields = ['po_number', 'title', 'notes', 'supplier__name']
    ordering = ['-order_date', '-created_at']
    inlines = [PurchaseOrderItemInline, PurchaseOrderFileInline]
    readonly_fields = ['po_number', 'created_at', 'updated_at']

    def get_total(self, obj):
        return f"€{obj.total_amount / 100:.2f}"
    get_total.short_description = 'Total'
