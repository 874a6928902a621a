from django.contrib import admin
from .models import Repair


@admin.register(Repair)
class RepairAdmin(admin.ModelAdmin):
    list_display = ['repair_number', 'title', 'repair_type', 'status', 'priority', 'assigned_user', 'sla_deadline', 'is_archived', 'created_at']
    list_filter = ['status', 'repair_type', 'priority', 'is_archived', 'created_at']
    search_fields = ['repair_number', 'title', 'product_sku', 'product_name', 'customer__email']
    ordering = ['-created_at']
    readonly_fields = ['repair_number', 'timeline', 'created_at', 'updated_at']
