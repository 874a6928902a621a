from rest_framework import status
from rest_framework.decorators import api_view, permission_classes, parser_classes
from rest_framework.parsers import MultiPartParser, FormParser
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db import transaction
from django.db.models import Q
from django.shortcuts import get_object_or_404
from django.utils import timezone
from django.utils.dateparse import parse_date
import logging
from .models import PurchaseOrder, PurchaseOrderFile
from .serializers import (
    PurchaseOrderSerializer, PurchaseOrderListSerializer, PurchaseOrderFileSerializer
)
from backend.core.utils import create_audit_log, paginate_queryset, with_fresh_data_headers

logger = logging.getLogger(__name__)


def parse_bool(value):
    return str(value).lower() in ('true', '1', 'yes')


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def purchase_order_list_create(request):
    """List all purchase orders or create a new purchase order"""
    if request.method == 'GET':
        queryset = PurchaseOrder.objects.select_related('supplier').prefetch_related('items')

        supplier = request.query_params.get('supplier', None)
        status_filter = request.query_params.get('status', None)
        archived = request.query_params.get('archived', 'false')
        is_paid = request.query_params.get('is_paid', None)
        date_from = request.query_params.get('date_from', None)
        date_to = request.query_params.get('date_to', None)
        search = request.query_params.get('search', None)

        if supplier:
            queryset = queryset.filter(supplier_id=supplier)
        if status_filter:
            queryset = queryset.filter(status=status_filter)
        if archived != 'all':
            queryset = queryset.filter(archived=parse_bool(archived))
        if is_paid is not None:
            queryset = queryset.filter(is_paid=parse_bool(is_paid))
        if date_from:
            queryset = queryset.filter(order_date__gte=date_from)
        if date_to:
            queryset = queryset.filter(order_date__lte=date_to)
        if search:
            queryset = queryset.filter(
                Q(po_number__icontains=search) |
                Q(title__icontains=search) |
                Q(supplier__name__icontains=search) |
                Q(items__sku__icontains=search)
            ).distinct()

        queryset = queryset.order_by('-order_date', '-id')
        response = Response(paginate_queryset(request, queryset, PurchaseOrderListSerializer, default_limit=15))
        return with_fresh_data_headers(response)
    else:  # POST
        data = request.data.copy()
        items_data = data.pop('items', [])

        serializer = PurchaseOrderSerializer(
            data=data,
            context={'items_data': items_data, 'request': request}
        )
        if serializer.is_valid():
            purchase_order = serializer.save(created_by=request.user)
            create_audit_log(
                request=request,
                action='create',
                model_name='PurchaseOrder',
                object_id=purchase_order.id,
                object_name=purchase_order.title,
                object_reference=purchase_order.po_number,
                changes={
                    'supplier_id': purchase_order.supplier_id,
                    'items_count': len(items_data),
                    'total_amount': purchase_order.total_amount,
                }
            )
            return Response(
                PurchaseOrderSerializer(purchase_order, context={'request': request}).data,
                status=status.HTTP_201_CREATED
            )
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def purchase_order_detail(request, pk):
    """Retrieve, update or delete a purchase order"""
    purchase_order = get_object_or_404(
        PurchaseOrder.objects.select_related('supplier', 'case', 'order').prefetch_related('items', 'files'),
        pk=pk
    )

    if request.method == 'GET':
        return Response(PurchaseOrderSerializer(purchase_order, context={'request': request}).data)
    elif request.method in ('PUT', 'PATCH'):
        data = request.data.copy()
        items_data = data.pop('items', None)
        old_status = purchase_order.status

        serializer = PurchaseOrderSerializer(
            purchase_order,
            data=data,
            partial=request.method == 'PATCH',
            context={'items_data': items_data, 'request': request}
        )
        if serializer.is_valid():
            purchase_order = serializer.save()
            create_audit_log(
                request=request,
                action='status_change' if purchase_order.status != old_status else 'update',
                model_name='PurchaseOrder',
                object_id=purchase_order.id,
                object_name=purchase_order.title,
                object_reference=purchase_order.po_number,
                changes={
                    'fields': sorted(request.data.keys()),
                    'old_status': old_status,
                    'new_status': purchase_order.status,
                    'items_replaced': items_data is not None,
                }
            )
            purchase_order = PurchaseOrder.objects.prefetch_related('items', 'files').get(pk=purchase_order.pk)
            return Response(PurchaseOrderSerializer(purchase_order, context={'request': request}).data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        po_number = purchase_order.po_number
        purchase_order_id = purchase_order.id
        stored_files = [f.file.name for f in purchase_order.files.all() if f.file]
        items_count = purchase_order.items.count()

        with transaction.atomic():
            purchase_order.delete()
            create_audit_log(
                request=request,
                action='delete',
                model_name='PurchaseOrder',
                object_id=purchase_order_id,
                object_name=f"Purchase order {po_number}",
                object_reference=po_number,
                changes={'items_count': items_count, 'files_count': len(stored_files)}
            )

        # File cleanup is best effort; the database rows are already gone
        from django.core.files.storage import default_storage
        for name in stored_files:
            try:
                default_storage.delete(name)
            except OSError as e:
                logger.warning(f"Could not delete file {name} of purchase order {po_number}: {e}")

        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def purchase_order_receive(request, pk):
    """
    Mark a purchase order as received.

    Body (all optional):
        received_date: date of delivery, defaults to today
        items: [{id, received_quantity}] partial deliveries; unlisted items are received in full
    """
    purchase_order = get_object_or_404(PurchaseOrder.objects.prefetch_related('items'), pk=pk)

    if purchase_order.status == 'verwerkt':
        return Response({'error': 'Purchase order is already processed'}, status=status.HTTP_400_BAD_REQUEST)

    received_date = timezone.localdate()
    if request.data.get('received_date'):
        try:
            received_date = parse_date(str(request.data['received_date']))
        except ValueError:
            received_date = None
        if received_date is None:
            return Response({'error': 'received_date must be a YYYY-MM-DD date'}, status=status.HTTP_400_BAD_REQUEST)

    received_map = {}
    for entry in request.data.get('items', []) or []:
        try:
            received_map[int(entry['id'])] = int(entry['received_quantity'])
        except (KeyError, TypeError, ValueError):
            return Response(
                {'error': 'Each item needs an id and a whole-number received_quantity'},
                status=status.HTTP_400_BAD_REQUEST
            )

    items = list(purchase_order.items.all())
    known_ids = {item.id for item in items}
    unknown = set(received_map) - known_ids
    if unknown:
        return Response(
            {'error': f"Items not on this purchase order: {sorted(unknown)}"},
            status=status.HTTP_400_BAD_REQUEST
        )
    for item in items:
        received = received_map.get(item.id, item.quantity)
        if received < 0 or received > item.quantity:
            return Response(
                {'error': f"Received quantity for {item.sku} must be between 0 and {item.quantity}"},
                status=status.HTTP_400_BAD_REQUEST
            )

    with transaction.atomic():
        for item in items:
            item.received_quantity = received_map.get(item.id, item.quantity)
            item.save(update_fields=['received_quantity'])

        purchase_order.status = 'ontvangen'
        purchase_order.received_date = received_date
        purchase_order.received_by = request.user
        purchase_order.save(update_fields=['status', 'received_date', 'received_by', 'updated_at'])

    purchase_order.refresh_from_db()
    create_audit_log(
        request=request,
        action='receive',
        model_name='PurchaseOrder',
        object_id=purchase_order.id,
        object_name=purchase_order.title,
        object_reference=purchase_order.po_number,
        changes={
            'received_date': str(purchase_order.received_date),
            'partial_items': sorted(received_map),
        }
    )
    return Response(PurchaseOrderSerializer(purchase_order, context={'request': request}).data)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
@parser_classes([MultiPartParser, FormParser])
def purchase_order_files(request, pk):
    """List or upload documents for a purchase order (multipart field `files`)"""
    purchase_order = get_object_or_404(PurchaseOrder, pk=pk)

    if request.method == 'GET':
        files = purchase_order.files.select_related('uploaded_by')
        return Response(PurchaseOrderFileSerializer(files, many=True, context={'request': request}).data)

    uploads = request.FILES.getlist('files')
    if not uploads:
        return Response({'error': 'No files uploaded'}, status=status.HTTP_400_BAD_REQUEST)

    uploaded, failed = [], []
    for upload in uploads:
        try:
            po_file = PurchaseOrderFile.objects.create(
                purchase_order=purchase_order,
                file=upload,
                file_name=upload.name,
                file_type=upload.content_type or '',
                file_size=upload.size,
                uploaded_by=request.user
            )
            uploaded.append(po_file)
        except OSError as e:
            logger.error(f"Failed to store file {upload.name} for purchase order {purchase_order.po_number}: {e}")
            failed.append({'file_name': upload.name, 'error': 'Could not store file'})

    if uploaded:
        create_audit_log(
            request=request,
            action='file_upload',
            model_name='PurchaseOrder',
            object_id=purchase_order.id,
            object_reference=purchase_order.po_number,
            changes={'files': [f.file_name for f in uploaded], 'failed': [f['file_name'] for f in failed]}
        )

    return Response(
        {
            'uploaded': PurchaseOrderFileSerializer(uploaded, many=True, context={'request': request}).data,
            'failed': failed,
        },
        status=status.HTTP_201_CREATED if uploaded else status.HTTP_400_BAD_REQUEST
    )


@api_view(['DELETE'])
@permission_classes([IsAuthenticated])
def purchase_order_file_delete(request, pk, file_id):
    """Remove a document from a purchase order"""
    po_file = get_object_or_404(PurchaseOrderFile.objects.select_related('purchase_order'), pk=file_id, purchase_order_id=pk)
    purchase_order = po_file.purchase_order
    file_name = po_file.file_name
    try:
        po_file.file.delete(save=False)
    except OSError as e:
        logger.warning(f"Could not delete stored file {file_name}: {e}")
    po_file.delete()

    create_audit_log(
        request=request,
        action='file_delete',
        model_name='PurchaseOrder',
        object_id=purchase_order.id,
        object_reference=purchase_order.po_number,
        changes={'file_name': file_name}
    )
    return Response(status=status.HTTP_204_NO_CONTENT)
