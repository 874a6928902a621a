from rest_framework import serializers
from .models import Customer, Supplier


class CustomerSerializer(serializers.ModelSerializer):
    full_name = serializers.CharField(read_only=True)

    class Meta:
        model = Customer
        fields = [
            'id', 'email', 'first_name', 'last_name', 'full_name', 'phone',
            'shopify_customer_id', 'address', 'created_at', 'updated_at'
        ]


class CustomerSummarySerializer(serializers.ModelSerializer):
    full_name = serializers.CharField(read_only=True)

    class Meta:
        model = Customer
        fields = ['id', 'email', 'full_name']


class SupplierSerializer(serializers.ModelSerializer):
    class Meta:
        model = Supplier
        fields = [
            'id', 'supplier_code', 'name', 'contact_person', 'email', 'phone', 'website',
            'address', 'postal_code', 'city', 'country', 'vat_number', 'iban',
            'payment_terms', 'notes', 'active', 'created_at', 'updated_at'
        ]

    def validate_supplier_code(self, value):
        return value.strip().upper()
