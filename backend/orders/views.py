from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db.models import Q, Count, Sum
from django.shortcuts import get_object_or_404
from .models import Order
from .serializers import OrderSerializer, OrderListSerializer
from backend.core.cache_utils import cached_query, ORDER_STATS_CACHE_TTL, ORDER_STATS_PREFIX
from backend.core.utils import create_audit_log, paginate_queryset, with_fresh_data_headers


@cached_query(cache_ttl=ORDER_STATS_CACHE_TTL, key_prefix=ORDER_STATS_PREFIX)
def get_order_stats():
    """Counts per status and revenue of non-cancelled orders"""
    counts = dict(
        Order.objects.order_by().values('status').annotate(total=Count('id')).values_list('status', 'total')
    )
    revenue = Order.objects.exclude(status__in=['cancelled', 'refunded']).aggregate(
        total=Sum('total_amount')
    )['total'] or 0
    return {
        'by_status': {value: counts.get(value, 0) for value, _ in Order.STATUS_CHOICES},
        'total': sum(counts.values()),
        'total_revenue': revenue,
    }


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def order_list_create(request):
    """List orders or register an order"""
    if request.method == 'GET':
        queryset = Order.objects.select_related('customer')

        status_filter = request.query_params.get('status', None)
        customer = request.query_params.get('customer', None)
        search = request.query_params.get('search', None)

        if status_filter:
            queryset = queryset.filter(status=status_filter)
        if customer:
            queryset = queryset.filter(customer_id=customer)
        if search:
            queryset = queryset.filter(
                Q(order_number__icontains=search) |
                Q(customer_email__icontains=search) |
                Q(shopify_order_id__icontains=search)
            )

        queryset = queryset.order_by('-order_date', '-id')
        return with_fresh_data_headers(Response(paginate_queryset(request, queryset, OrderListSerializer)))
    else:
        serializer = OrderSerializer(data=request.data)
        if serializer.is_valid():
            order = serializer.save()
            create_audit_log(
                request=request,
                action='create',
                model_name='Order',
                object_id=order.id,
                object_name=f"Order {order.order_number}",
                object_reference=order.order_number
            )
            return Response(OrderSerializer(order).data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PATCH'])
@permission_classes([IsAuthenticated])
def order_detail(request, pk):
    """Retrieve or update an order"""
    order = get_object_or_404(Order.objects.select_related('customer'), pk=pk)

    if request.method == 'GET':
        return Response(OrderSerializer(order).data)

    old_status = order.status
    serializer = OrderSerializer(order, data=request.data, partial=True)
    if serializer.is_valid():
        serializer.save()
        create_audit_log(
            request=request,
            action='status_change' if order.status != old_status else 'update',
            model_name='Order',
            object_id=order.id,
            object_name=f"Order {order.order_number}",
            object_reference=order.order_number,
            changes={'fields': sorted(request.data.keys()), 'old_status': old_status, 'new_status': order.status}
        )
        return Response(serializer.data)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def order_stats(request):
    """Order counts per status and revenue"""
    return Response(get_order_stats())
