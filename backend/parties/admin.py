from django.contrib import admin
from .models import Customer, Supplier


@admin.register(Customer)
class CustomerAdmin(admin.ModelAdmin):
    list_display = ['email', 'first_name', 'last_name', 'phone', 'shopify_customer_id', 'created_at']
    list_filter = ['created_at']
    search_fields = ['email', 'first_name', 'last_name', 'phone']
    ordering = ['-created_at']


@admin.register(Supplier)
class SupplierAdmin(admin.ModelAdmin):
    list_display = ['supplier_code', 'name', 'contact_person', 'email', 'phone', 'city', 'active', 'created_at']
    list_filter = ['active', 'country', 'created_at']
    search_fields = ['name', 'supplier_code', 'email', 'contact_person']
    ordering = ['name']
