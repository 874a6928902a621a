from rest_framework import serializers
from django.db import transaction
from .models import Case, CaseItem, CaseLink, CaseEvent
from backend.core.utils import next_sequence_number


class CaseItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = CaseItem
        fields = ['id', 'sku', 'product_name', 'quantity', 'unit_price']


class CaseLinkSerializer(serializers.ModelSerializer):
    created_by_username = serializers.CharField(source='created_by.username', read_only=True, default=None)

    class Meta:
        model = CaseLink
        fields = ['id', 'case', 'link_type', 'linked_id', 'created_by', 'created_by_username', 'created_at']
        read_only_fields = ['case', 'created_by', 'created_at']


class CaseEventSerializer(serializers.ModelSerializer):
    created_by_username = serializers.CharField(source='created_by.username', read_only=True, default=None)

    class Meta:
        model = CaseEvent
        fields = ['id', 'event_type', 'message', 'metadata', 'created_by', 'created_by_username', 'created_at']


class CaseListSerializer(serializers.ModelSerializer):
    customer_name = serializers.CharField(source='customer.full_name', read_only=True, default=None)
    assigned_user_username = serializers.CharField(source='assigned_user.username', read_only=True, default=None)

    class Meta:
        model = Case
        fields = [
            'id', 'case_number', 'title', 'status', 'priority', 'source', 'customer', 'customer_name',
            'customer_email', 'assigned_user', 'assigned_user_username', 'sla_deadline', 'archived', 'created_at'
        ]


class CaseSerializer(serializers.ModelSerializer):
    items = CaseItemSerializer(many=True, read_only=True)
    customer_name = serializers.CharField(source='customer.full_name', read_only=True, default=None)
    order_number = serializers.CharField(source='order.order_number', read_only=True, default=None)
    assigned_user_username = serializers.CharField(source='assigned_user.username', read_only=True, default=None)

    class Meta:
        model = Case
        fields = [
            'id', 'case_number', 'title', 'description', 'customer', 'customer_name', 'customer_email',
            'order', 'order_number', 'status', 'priority', 'case_type', 'source', 'assigned_user',
            'assigned_user_username', 'created_by', 'sla_deadline', 'resolved_at', 'archived',
            'items', 'created_at', 'updated_at'
        ]
        read_only_fields = ['case_number', 'created_by', 'resolved_at', 'created_at', 'updated_at']

    def validate(self, attrs):
        items_data = self.context.get('items_data') or []
        order = attrs.get('order', getattr(self.instance, 'order', None))
        if items_data and order is not None and order.line_items():
            missing = [
                item.get('sku') for item in items_data
                if item.get('sku') and order.find_line_item(sku=item.get('sku')) is None
            ]
            if missing:
                raise serializers.ValidationError({
                    'items': f"SKU(s) not found in order {order.order_number}: {', '.join(missing)}"
                })
        if not attrs.get('customer_email') and attrs.get('customer') is not None:
            attrs['customer_email'] = attrs['customer'].email
        return attrs

    def create(self, validated_data):
        items_data = self.context.get('items_data') or []
        with transaction.atomic():
            validated_data['case_number'] = next_sequence_number(Case.objects.all(), 'case_number', 'CASE-')
            case = super().create(validated_data)
            for item_data in items_data:
                item_serializer = CaseItemSerializer(data=item_data)
                item_serializer.is_valid(raise_exception=True)
                item_serializer.save(case=case)
        return case
