from rest_framework import status
from rest_framework.decorators import api_view, permission_classes, parser_classes
from rest_framework.parsers import MultiPartParser, FormParser, JSONParser
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.conf import settings
from django.core.files.storage import default_storage
from django.db.models import Count
from django.shortcuts import get_object_or_404
from django.utils import timezone
from PIL import Image, UnidentifiedImageError
import logging
import os
import uuid
from .filters import ReturnFilter
from .models import Return, ReturnItem
from .serializers import ReturnSerializer, ReturnListSerializer, ReturnItemSerializer, validate_items_against_order
from backend.core.cache_utils import cached_query, RETURN_STATS_CACHE_TTL, RETURN_STATS_PREFIX
from backend.core.utils import create_audit_log, record_activity, paginate_queryset, with_fresh_data_headers

logger = logging.getLogger(__name__)

ALLOWED_PHOTO_TYPES = {
    'image/jpeg': 'JPEG',
    'image/png': 'PNG',
    'image/gif': 'GIF',
    'image/webp': 'WEBP',
}

# Status transitions that stamp a timestamp the first time they happen
STATUS_TIMESTAMPS = {
    'ontvangen_controle': 'received_at',
    'klaar': 'completed_at',
}


@cached_query(cache_ttl=RETURN_STATS_CACHE_TTL, key_prefix=RETURN_STATS_PREFIX)
def get_return_stats():
    """Active return counts per kanban column plus archived total"""
    counts = dict(
        Return.objects.filter(is_archived=False).order_by()
        .values('status').annotate(total=Count('id')).values_list('status', 'total')
    )
    return {
        'by_status': [
            {'status': value, 'label': label, 'count': counts.get(value, 0)}
            for value, label in Return.STATUS_CHOICES
        ],
        'total': sum(counts.values()),
        'archived': Return.objects.filter(is_archived=True).count(),
    }


def apply_status_change(request, return_request, old_status):
    """Side effects of moving a return to another kanban column"""
    from backend.notes.services import create_system_note

    new_status = return_request.status
    timestamp_field = STATUS_TIMESTAMPS.get(new_status)
    if timestamp_field and getattr(return_request, timestamp_field) is None:
        setattr(return_request, timestamp_field, timezone.now())
        return_request.save(update_fields=[timestamp_field, 'updated_at'])

    old_label = Return.status_label(old_status)
    new_label = Return.status_label(new_status)
    record_activity(
        'return_status_changed',
        f"Return {return_request.return_number} moved from {old_label} to {new_label}",
        request=request,
        metadata={'return_id': return_request.id, 'from': old_status, 'to': new_status}
    )
    create_system_note(
        entity_type='return',
        entity_id=return_request.id,
        content=f"Status changed from {old_label} to {new_label}",
        user=request.user
    )


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def return_list_create(request):
    """List returns or create a return (optionally with items)"""
    if request.method == 'GET':
        queryset = Return.objects.select_related('customer', 'order', 'assigned_user')
        params = request.query_params.copy()
        params.setdefault('archived', 'false')
        if params.get('archived') == 'all':
            params.pop('archived')
        return_filter = ReturnFilter(params, queryset=queryset)
        if not return_filter.is_valid():
            return Response(return_filter.errors, status=status.HTTP_400_BAD_REQUEST)
        queryset = return_filter.qs.order_by('-created_at')
        return with_fresh_data_headers(Response(paginate_queryset(request, queryset, ReturnListSerializer, default_limit=50)))
    else:
        data = request.data.copy()
        items_data = data.pop('items', [])

        serializer = ReturnSerializer(data=data, context={'items_data': items_data, 'request': request})
        if serializer.is_valid():
            return_request = serializer.save(created_by=request.user)
            create_audit_log(
                request=request,
                action='create',
                model_name='Return',
                object_id=return_request.id,
                object_name=f"Return {return_request.return_number}",
                object_reference=return_request.return_number,
                changes={
                    'order_id': return_request.order_id,
                    'items_count': len(items_data),
                    'status': return_request.status,
                }
            )
            record_activity(
                'return_created',
                f"Return {return_request.return_number} created",
                request=request,
                metadata={'return_id': return_request.id}
            )
            return Response(ReturnSerializer(return_request).data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def return_detail(request, pk):
    """Retrieve, update or delete a return"""
    return_request = get_object_or_404(
        Return.objects.select_related('customer', 'order', 'case', 'assigned_user').prefetch_related('items'),
        pk=pk
    )

    if request.method == 'GET':
        return Response(ReturnSerializer(return_request).data)
    elif request.method == 'PATCH':
        old_status = return_request.status
        serializer = ReturnSerializer(return_request, data=request.data, partial=True)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        return_request = serializer.save()

        status_changed = return_request.status != old_status
        if status_changed:
            apply_status_change(request, return_request, old_status)

        create_audit_log(
            request=request,
            action='status_change' if status_changed else 'update',
            model_name='Return',
            object_id=return_request.id,
            object_name=f"Return {return_request.return_number}",
            object_reference=return_request.return_number,
            changes={
                'fields': sorted(request.data.keys()),
                'old_status': old_status,
                'new_status': return_request.status,
            }
        )
        return Response(ReturnSerializer(return_request).data)
    else:  # DELETE
        return_id = return_request.id
        return_number = return_request.return_number
        photos = list(return_request.photos or [])
        return_request.delete()

        for photo_path in photos:
            try:
                default_storage.delete(photo_path)
            except OSError as e:
                logger.warning(f"Could not delete photo {photo_path} of return {return_number}: {e}")

        create_audit_log(
            request=request,
            action='delete',
            model_name='Return',
            object_id=return_id,
            object_name=f"Return {return_number}",
            object_reference=return_number
        )
        record_activity(
            'return_deleted',
            f"Return {return_number} deleted",
            request=request,
            metadata={'return_id': return_id}
        )
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def return_from_case(request, case_id):
    """Create a return prefilled from a case and its items"""
    from backend.cases.models import Case

    case = get_object_or_404(Case.objects.select_related('customer', 'order'), pk=case_id)

    data = {
        'customer': case.customer_id,
        'order': case.order_id,
        'case': case.id,
        'assigned_user': case.assigned_user_id,
        'internal_notes': case.description,
    }
    data.update({key: value for key, value in request.data.items() if key != 'items'})
    items_data = [
        {
            'sku': item.sku,
            'product_name': item.product_name,
            'quantity': item.quantity,
            'unit_price': item.unit_price,
        }
        for item in case.items.all()
    ]

    serializer = ReturnSerializer(data=data, context={'items_data': items_data, 'request': request})
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    return_request = serializer.save(created_by=request.user)

    case.add_event(
        'link_added',
        f"Return {return_request.return_number} created from case",
        user=request.user,
        metadata={'link_type': 'return', 'linked_id': str(return_request.id)}
    )
    case.links.get_or_create(link_type='return', linked_id=str(return_request.id),
                             defaults={'created_by': request.user})
    create_audit_log(
        request=request,
        action='create',
        model_name='Return',
        object_id=return_request.id,
        object_name=f"Return {return_request.return_number}",
        object_reference=return_request.return_number,
        changes={'case_id': case.id, 'case_number': case.case_number, 'items_count': len(items_data)}
    )
    return Response(ReturnSerializer(return_request).data, status=status.HTTP_201_CREATED)


@api_view(['POST', 'DELETE'])
@permission_classes([IsAuthenticated])
@parser_classes([MultiPartParser, FormParser, JSONParser])
def return_photos(request, pk):
    """Upload a photo (POST, field `photo`) or remove one (DELETE, `photo_path`)"""
    return_request = get_object_or_404(Return, pk=pk)

    if request.method == 'POST':
        photo = request.FILES.get('photo')
        if not photo:
            return Response({'error': 'No photo uploaded'}, status=status.HTTP_400_BAD_REQUEST)
        if photo.content_type not in ALLOWED_PHOTO_TYPES:
            return Response(
                {'error': 'Only JPEG, PNG, GIF and WebP images are allowed'},
                status=status.HTTP_400_BAD_REQUEST
            )
        if photo.size > settings.RETURN_PHOTO_MAX_BYTES:
            max_mb = settings.RETURN_PHOTO_MAX_BYTES // (1024 * 1024)
            return Response({'error': f"Photo exceeds the {max_mb} MB limit"}, status=status.HTTP_400_BAD_REQUEST)

        try:
            with Image.open(photo) as image:
                image_format = image.format
                image.verify()
        except (UnidentifiedImageError, OSError, SyntaxError):
            return Response({'error': 'File is not a valid image'}, status=status.HTTP_400_BAD_REQUEST)
        if image_format != ALLOWED_PHOTO_TYPES[photo.content_type]:
            return Response({'error': 'Image content does not match its type'}, status=status.HTTP_400_BAD_REQUEST)

        photo.seek(0)
        extension = os.path.splitext(photo.name)[1].lower() or '.jpg'
        photo_path = default_storage.save(f"returns/{return_request.id}/{uuid.uuid4().hex}{extension}", photo)

        return_request.photos = list(return_request.photos or []) + [photo_path]
        return_request.save(update_fields=['photos', 'updated_at'])
        create_audit_log(
            request=request,
            action='photo_upload',
            model_name='Return',
            object_id=return_request.id,
            object_reference=return_request.return_number,
            changes={'photo_path': photo_path, 'size': photo.size}
        )
        return Response({'photo_path': photo_path, 'photos': return_request.photos}, status=status.HTTP_201_CREATED)
    else:  # DELETE
        photo_path = request.data.get('photo_path') or request.query_params.get('photo_path')
        if not photo_path:
            return Response({'error': 'photo_path is required'}, status=status.HTTP_400_BAD_REQUEST)
        if photo_path not in (return_request.photos or []):
            return Response({'error': 'Photo not found on this return'}, status=status.HTTP_404_NOT_FOUND)

        return_request.photos = [p for p in return_request.photos if p != photo_path]
        return_request.save(update_fields=['photos', 'updated_at'])
        try:
            default_storage.delete(photo_path)
        except OSError as e:
            logger.warning(f"Could not delete photo file {photo_path}: {e}")
        create_audit_log(
            request=request,
            action='photo_delete',
            model_name='Return',
            object_id=return_request.id,
            object_reference=return_request.return_number,
            changes={'photo_path': photo_path}
        )
        return Response({'photos': return_request.photos})


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def return_items(request, pk):
    """List or add items on a return"""
    return_request = get_object_or_404(Return.objects.select_related('order'), pk=pk)

    if request.method == 'GET':
        return Response(ReturnItemSerializer(return_request.items.all(), many=True).data)

    serializer = ReturnItemSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    validate_items_against_order(return_request.order, [request.data])

    item = serializer.save(return_request=return_request)
    create_audit_log(
        request=request,
        action='update',
        model_name='Return',
        object_id=return_request.id,
        object_reference=return_request.return_number,
        changes={'item_added': item.product_name, 'sku': item.sku, 'quantity': item.quantity}
    )
    return Response(ReturnItemSerializer(item).data, status=status.HTTP_201_CREATED)


@api_view(['PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def return_item_detail(request, pk, item_id):
    """Update or remove a single return item"""
    item = get_object_or_404(ReturnItem.objects.select_related('return_request'), pk=item_id, return_request_id=pk)
    return_request = item.return_request

    if request.method == 'PATCH':
        serializer = ReturnItemSerializer(item, data=request.data, partial=True)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        item = serializer.save()
        if request.data.get('restocked') and item.restocked_at is None:
            item.restockable = True
            item.restocked_at = timezone.now()
            item.save(update_fields=['restockable', 'restocked_at'])
        create_audit_log(
            request=request,
            action='update',
            model_name='ReturnItem',
            object_id=item.id,
            object_name=item.product_name,
            object_reference=return_request.return_number,
            changes={'fields': sorted(request.data.keys())}
        )
        return Response(ReturnItemSerializer(item).data)
    else:  # DELETE
        item_name = item.product_name
        item.delete()
        create_audit_log(
            request=request,
            action='delete',
            model_name='ReturnItem',
            object_id=item_id,
            object_name=item_name,
            object_reference=return_request.return_number
        )
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def return_stats(request):
    """Return counts per kanban column"""
    return Response(get_return_stats())
