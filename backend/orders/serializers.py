from rest_framework import serializers
from .models import Order


class OrderListSerializer(serializers.ModelSerializer):
    customer_name = serializers.CharField(source='customer.full_name', read_only=True, default=None)

    class Meta:
        model = Order
        fields = [
            'id', 'shopify_order_id', 'order_number', 'customer', 'customer_name', 'customer_email',
            'total_amount', 'currency', 'status', 'fulfillment_status', 'payment_status', 'order_date'
        ]


class OrderSerializer(serializers.ModelSerializer):
    customer_name = serializers.CharField(source='customer.full_name', read_only=True, default=None)
    line_items = serializers.SerializerMethodField()

    class Meta:
        model = Order
        fields = [
            'id', 'shopify_order_id', 'order_number', 'customer', 'customer_name', 'customer_email',
            'total_amount', 'currency', 'status', 'fulfillment_status', 'payment_status',
            'order_data', 'line_items', 'order_date', 'created_at', 'updated_at'
        ]
        read_only_fields = ['created_at', 'updated_at']

    def get_line_items(self, obj):
        return obj.line_items()

    def validate_order_data(self, value):
        line_items = value.get('line_items') if isinstance(value, dict) else None
        if line_items is not None and not isinstance(line_items, list):
            raise serializers.ValidationError('line_items must be a list')
        return value
