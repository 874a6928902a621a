from rest_framework import serializers
from django.db import transaction
from django.utils import timezone
from .models import Return, ReturnItem
from backend.core.utils import next_sequence_number


def generate_return_number():
    """RET-<year>-NNN, sequential per year"""
    prefix = f"RET-{timezone.now().year}-"
    return next_sequence_number(Return.objects.all(), 'return_number', prefix)


def validate_items_against_order(order, items_data):
    """
    Check requested return items against the order's line items.

    Each item must match a line item by SKU (or by title when it has no SKU match)
    and must not return more than was ordered. Orders without line items are not checked.
    """
    if order is None or not order.line_items():
        return
    errors = []
    for index, item in enumerate(items_data):
        line_item = order.find_line_item(sku=item.get('sku'), title=item.get('product_name'))
        label = item.get('sku') or item.get('product_name') or f"item {index + 1}"
        if line_item is None:
            errors.append(f"{label} is not part of order {order.order_number}")
            continue
        try:
            quantity = int(item.get('quantity', 1))
        except (TypeError, ValueError):
            errors.append(f"{label}: quantity must be a whole number")
            continue
        ordered = int(line_item.get('quantity') or 0)
        if quantity > ordered:
            errors.append(f"{label}: cannot return {quantity}, only {ordered} ordered")
    if errors:
        raise serializers.ValidationError({'items': errors})


class ReturnItemSerializer(serializers.ModelSerializer):
    quantity = serializers.IntegerField(min_value=1, default=1)

    class Meta:
        model = ReturnItem
        fields = [
            'id', 'sku', 'product_name', 'quantity', 'unit_price', 'condition',
            'image_url', 'restockable', 'restocked_at', 'created_at'
        ]
        read_only_fields = ['created_at']


class ReturnListSerializer(serializers.ModelSerializer):
    order_number = serializers.CharField(source='order.order_number', read_only=True, default=None)
    customer_name = serializers.CharField(source='customer.full_name', read_only=True, default=None)
    customer_email = serializers.CharField(source='customer.email', read_only=True, default=None)
    assigned_user_username = serializers.CharField(source='assigned_user.username', read_only=True, default=None)
    status_label = serializers.SerializerMethodField()

    class Meta:
        model = Return
        fields = [
            'id', 'return_number', 'status', 'status_label', 'priority', 'return_reason',
            'order', 'order_number', 'customer', 'customer_name', 'customer_email',
            'assigned_user', 'assigned_user_username', 'tracking_number', 'refund_amount',
            'refund_status', 'tags', 'is_archived', 'created_at', 'updated_at'
        ]

    def get_status_label(self, obj):
        return Return.status_label(obj.status)


class ReturnSerializer(serializers.ModelSerializer):
    items = ReturnItemSerializer(many=True, read_only=True)
    order_number = serializers.CharField(source='order.order_number', read_only=True, default=None)
    customer_name = serializers.CharField(source='customer.full_name', read_only=True, default=None)
    customer_email = serializers.CharField(source='customer.email', read_only=True, default=None)
    case_number = serializers.CharField(source='case.case_number', read_only=True, default=None)
    assigned_user_username = serializers.CharField(source='assigned_user.username', read_only=True, default=None)
    status_label = serializers.SerializerMethodField()
    tags = serializers.ListField(child=serializers.CharField(max_length=50), required=False)

    class Meta:
        model = Return
        fields = [
            'id', 'return_number', 'customer', 'customer_name', 'customer_email', 'order', 'order_number',
            'case', 'case_number', 'assigned_user', 'assigned_user_username', 'created_by',
            'status', 'status_label', 'return_reason', 'other_reason', 'tracking_number',
            'requested_at', 'received_at', 'expected_return_date', 'completed_at',
            'refund_amount', 'refund_status', 'refund_method', 'customer_notes', 'internal_notes',
            'condition_notes', 'photos', 'priority', 'tags', 'is_archived', 'items',
            'created_at', 'updated_at'
        ]
        read_only_fields = ['return_number', 'created_by', 'photos', 'created_at', 'updated_at']

    def get_status_label(self, obj):
        return Return.status_label(obj.status)

    def validate_refund_amount(self, value):
        if value is not None and value < 0:
            raise serializers.ValidationError('Refund amount cannot be negative')
        return value

    def validate(self, attrs):
        reason = attrs.get('return_reason', getattr(self.instance, 'return_reason', ''))
        other_reason = attrs.get('other_reason', getattr(self.instance, 'other_reason', ''))
        if reason == 'other' and not (other_reason or '').strip():
            raise serializers.ValidationError({'other_reason': 'Describe the reason when choosing "other"'})

        order = attrs.get('order')
        if order is not None and attrs.get('customer') is None and self.instance is None:
            attrs['customer'] = order.customer

        items_data = self.context.get('items_data') or []
        if items_data:
            validate_items_against_order(order, items_data)
        return attrs

    def create(self, validated_data):
        items_data = self.context.get('items_data') or []
        validated_data.setdefault('requested_at', timezone.now())
        with transaction.atomic():
            validated_data['return_number'] = generate_return_number()
            return_request = super().create(validated_data)
            for item_data in items_data:
                item_serializer = ReturnItemSerializer(data=item_data)
                item_serializer.is_valid(raise_exception=True)
                item_serializer.save(return_request=return_request)
        return return_request
