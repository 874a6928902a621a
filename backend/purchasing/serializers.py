from rest_framework import serializers
from django.db import transaction
from .models import PurchaseOrder, PurchaseOrderItem, PurchaseOrderFile
from backend.core.utils import next_sequence_number


def generate_po_number(order_date):
    """PO-<year>-NNN, sequential per order year"""
    prefix = f"PO-{order_date.year}-"
    return next_sequence_number(PurchaseOrder.objects.all(), 'po_number', prefix)


class PurchaseOrderItemSerializer(serializers.ModelSerializer):
    quantity = serializers.IntegerField(min_value=1)
    unit_price = serializers.IntegerField(min_value=0, default=0)

    class Meta:
        model = PurchaseOrderItem
        fields = ['id', 'sku', 'product_name', 'quantity', 'unit_price', 'subtotal', 'received_quantity']
        read_only_fields = ['subtotal']

    def validate(self, attrs):
        quantity = attrs.get('quantity', getattr(self.instance, 'quantity', 0))
        received = attrs.get('received_quantity', getattr(self.instance, 'received_quantity', 0))
        if received > quantity:
            raise serializers.ValidationError({'received_quantity': 'Cannot receive more than was ordered'})
        return attrs


class PurchaseOrderFileSerializer(serializers.ModelSerializer):
    uploaded_by_username = serializers.CharField(source='uploaded_by.username', read_only=True, default=None)
    url = serializers.SerializerMethodField()

    class Meta:
        model = PurchaseOrderFile
        fields = ['id', 'file_name', 'file_type', 'file_size', 'url', 'uploaded_by', 'uploaded_by_username', 'uploaded_at']

    def get_url(self, obj):
        if not obj.file:
            return None
        request = self.context.get('request')
        return request.build_absolute_uri(obj.file.url) if request else obj.file.url


class PurchaseOrderListSerializer(serializers.ModelSerializer):
    supplier_name = serializers.CharField(source='supplier.name', read_only=True)
    items_count = serializers.SerializerMethodField()

    class Meta:
        model = PurchaseOrder
        fields = [
            'id', 'po_number', 'title', 'supplier', 'supplier_name', 'order_date',
            'expected_delivery_date', 'received_date', 'total_amount', 'status',
            'is_paid', 'archived', 'items_count', 'created_at'
        ]

    def get_items_count(self, obj):
        return len(obj.items.all())


class PurchaseOrderSerializer(serializers.ModelSerializer):
    items = PurchaseOrderItemSerializer(many=True, read_only=True)
    files = PurchaseOrderFileSerializer(many=True, read_only=True)
    supplier_name = serializers.CharField(source='supplier.name', read_only=True)
    case_number = serializers.CharField(source='case.case_number', read_only=True, default=None)
    order_number = serializers.CharField(source='order.order_number', read_only=True, default=None)
    total_amount = serializers.IntegerField(min_value=0, required=False)

    class Meta:
        model = PurchaseOrder
        fields = [
            'id', 'po_number', 'title', 'supplier', 'supplier_name', 'order_date',
            'expected_delivery_date', 'received_date', 'total_amount', 'status', 'is_paid',
            'archived', 'notes', 'case', 'case_number', 'order', 'order_number',
            'created_by', 'assigned_buyer', 'received_by', 'items', 'files',
            'created_at', 'updated_at'
        ]
        read_only_fields = ['po_number', 'created_by', 'received_by', 'created_at', 'updated_at']

    def validate(self, attrs):
        expected = attrs.get('expected_delivery_date', getattr(self.instance, 'expected_delivery_date', None))
        order_date = attrs.get('order_date', getattr(self.instance, 'order_date', None))
        if expected and order_date and expected < order_date:
            raise serializers.ValidationError({'expected_delivery_date': 'Expected delivery cannot be before the order date'})

        items_data = self.context.get('items_data')
        if items_data is not None:
            item_serializer = PurchaseOrderItemSerializer(data=items_data, many=True)
            if not item_serializer.is_valid():
                raise serializers.ValidationError({'items': item_serializer.errors})
            self._validated_items = item_serializer.validated_data
        else:
            self._validated_items = None
        return attrs

    def _write_items(self, purchase_order):
        purchase_order.items.all().delete()
        for item_data in self._validated_items:
            PurchaseOrderItem.objects.create(purchase_order=purchase_order, **item_data)
        purchase_order.total_amount = purchase_order.get_items_total()
        purchase_order.save(update_fields=['total_amount', 'updated_at'])

    def create(self, validated_data):
        with transaction.atomic():
            validated_data['po_number'] = generate_po_number(validated_data['order_date'])
            purchase_order = super().create(validated_data)
            if self._validated_items:
                self._write_items(purchase_order)
        return purchase_order

    def update(self, instance, validated_data):
        with transaction.atomic():
            instance = super().update(instance, validated_data)
            if self._validated_items is not None:
                self._write_items(instance)
        return instance
