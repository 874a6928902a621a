from rest_framework import serializers
from django.db import transaction
from django.utils import timezone
from .models import Repair
from backend.core.utils import next_sequence_number


def generate_repair_number():
    """REP-<year>-NNN, sequential per year"""
    prefix = f"REP-{timezone.now().year}-"
    return next_sequence_number(Repair.objects.all(), 'repair_number', prefix)


class RepairListSerializer(serializers.ModelSerializer):
    order_number = serializers.CharField(source='order.order_number', read_only=True, default=None)
    customer_name = serializers.CharField(source='customer.full_name', read_only=True, default=None)
    assigned_user_username = serializers.CharField(source='assigned_user.username', read_only=True, default=None)
    status_label = serializers.SerializerMethodField()
    is_overdue = serializers.BooleanField(read_only=True)

    class Meta:
        model = Repair
        fields = [
            'id', 'repair_number', 'repair_type', 'title', 'status', 'status_label', 'priority',
            'issue_category', 'product_sku', 'product_name', 'order', 'order_number',
            'customer', 'customer_name', 'assigned_user', 'assigned_user_username',
            'sla_deadline', 'is_overdue', 'is_archived', 'created_at', 'updated_at'
        ]

    def get_status_label(self, obj):
        return Repair.status_label(obj.status)


class RepairSerializer(serializers.ModelSerializer):
    order_number = serializers.CharField(source='order.order_number', read_only=True, default=None)
    customer_name = serializers.CharField(source='customer.full_name', read_only=True, default=None)
    case_number = serializers.CharField(source='case.case_number', read_only=True, default=None)
    assigned_user_username = serializers.CharField(source='assigned_user.username', read_only=True, default=None)
    status_label = serializers.SerializerMethodField()
    is_overdue = serializers.BooleanField(read_only=True)
    parts_needed = serializers.ListField(child=serializers.CharField(max_length=255), required=False)

    class Meta:
        model = Repair
        fields = [
            'id', 'repair_number', 'repair_type', 'title', 'description',
            'customer', 'customer_name', 'order', 'order_number', 'case', 'case_number',
            'assigned_user', 'assigned_user_username', 'created_by',
            'status', 'status_label', 'priority', 'issue_category', 'product_sku', 'product_name',
            'estimated_cost', 'actual_cost', 'parts_needed', 'timeline', 'sla_deadline',
            'is_overdue', 'completed_at', 'is_archived', 'created_at', 'updated_at'
        ]
        read_only_fields = ['repair_number', 'created_by', 'timeline', 'completed_at', 'created_at', 'updated_at']

    def get_status_label(self, obj):
        return Repair.status_label(obj.status)

    def validate_estimated_cost(self, value):
        if value is not None and value < 0:
            raise serializers.ValidationError('Estimated cost cannot be negative')
        return value

    def validate_actual_cost(self, value):
        if value is not None and value < 0:
            raise serializers.ValidationError('Actual cost cannot be negative')
        return value

    def validate(self, attrs):
        repair_type = attrs.get('repair_type', getattr(self.instance, 'repair_type', 'customer'))
        if repair_type == 'inventory':
            product = attrs.get('product_sku', getattr(self.instance, 'product_sku', '')) or \
                attrs.get('product_name', getattr(self.instance, 'product_name', ''))
            if not product:
                raise serializers.ValidationError({'product_sku': 'Inventory repairs need a product SKU or name'})

        order = attrs.get('order')
        if order is not None and attrs.get('customer') is None and self.instance is None:
            attrs['customer'] = order.customer
        return attrs

    def create(self, validated_data):
        with transaction.atomic():
            validated_data['repair_number'] = generate_repair_number()
            return super().create(validated_data)
