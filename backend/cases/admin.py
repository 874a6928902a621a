from django.contrib import admin
from .models import Case, CaseItem, CaseLink, CaseEvent


class CaseItemInline(admin.TabularInline):
    model = CaseItem
    extra = 0
    fields = ['sku', 'product_name', 'quantity', 'unit_price']


class CaseLinkInline(admin.TabularInline):
    model = CaseLink
    extra = 0
    fields = ['link_type', 'linked_id', 'created_by', 'created_at']
    readonly_fields = ['created_at']


@admin.register(Case)
class CaseAdmin(admin.ModelAdmin):
    list_display = ['case_number', 'title', 'status', 'priority', 'customer_email', 'assigned_user', 'archived', 'created_at']
    list_filter = ['status', 'priority', 'source', 'archived', 'created_at']
    search_fields = ['case_number', 'title', 'customer_email']
    ordering = ['-created_at']
    inlines = [CaseItemInline, CaseLinkInline]
    readonly_fields = ['case_number', 'created_at', 'updated_at']


@admin.register(CaseEvent)
class CaseEventAdmin(admin.ModelAdmin):
    list_display = ['case', 'event_type', 'message', 'created_by', 'created_at']
    list_filter = ['event_type', 'created_at']
    search_fields = ['case__case_number', 'message']
    ordering = ['-created_at']
