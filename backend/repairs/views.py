from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db.models import Count
from django.shortcuts import get_object_or_404
from django.utils import timezone
from .filters import RepairFilter
from .models import Repair
from .serializers import RepairSerializer, RepairListSerializer
from backend.core.utils import create_audit_log, record_activity, paginate_queryset, with_fresh_data_headers
from backend.core.views import is_admin_user


def can_delete_repairs(user):
    """Admins and support staff; technicians work on repairs but do not remove them"""
    if is_admin_user(user):
        return True
    return user.role != 'TECHNICUS' and not user.groups.filter(name='Technicus').exists()


def link_repair_to_case(request, repair):
    """Record the repair on its case's links and timeline"""
    if repair.case is None:
        return
    _, created = repair.case.links.get_or_create(
        link_type='repair',
        linked_id=str(repair.id),
        defaults={'created_by': request.user}
    )
    if created:
        repair.case.add_event(
            'link_added',
            f"Repair {repair.repair_number} linked",
            user=request.user,
            metadata={'link_type': 'repair', 'linked_id': str(repair.id)}
        )


def apply_status_change(request, repair, old_status):
    """Timeline entry, completion stamp, activity and system note for a status move"""
    from backend.notes.services import create_system_note

    new_status = repair.status
    now = timezone.now()
    update_fields = ['timeline', 'updated_at']
    repair.timeline = list(repair.timeline or []) + [{
        'from': old_status,
        'to': new_status,
        'at': now.isoformat(),
        'user_id': request.user.id,
        'username': request.user.username,
    }]
    if new_status in Repair.FINISHED_STATUSES and repair.completed_at is None:
        repair.completed_at = now
        update_fields.append('completed_at')
    repair.save(update_fields=update_fields)

    old_label = Repair.status_label(old_status)
    new_label = Repair.status_label(new_status)
    record_activity(
        'repair_status_changed',
        f"Repair {repair.repair_number} moved from {old_label} to {new_label}",
        request=request,
        metadata={'repair_id': repair.id, 'from': old_status, 'to': new_status}
    )
    create_system_note(
        entity_type='repair',
        entity_id=repair.id,
        content=f"Status changed from {old_label} to {new_label}",
        user=request.user
    )


def _created_response(request, repair, changes):
    link_repair_to_case(request, repair)
    create_audit_log(
        request=request,
        action='create',
        model_name='Repair',
        object_id=repair.id,
        object_name=repair.title,
        object_reference=repair.repair_number,
        changes=changes
    )
    record_activity(
        'repair_created',
        f"Repair {repair.repair_number} created: {repair.title}",
        request=request,
        metadata={'repair_id': repair.id}
    )
    return Response(RepairSerializer(repair).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def repair_list_create(request):
    """List repairs or create a repair"""
    if request.method == 'GET':
        queryset = Repair.objects.select_related('customer', 'order', 'assigned_user')
        params = request.query_params.copy()
        params.setdefault('archived', 'false')
        if params.get('archived') == 'all':
            params.pop('archived')
        repair_filter = RepairFilter(params, queryset=queryset)
        if not repair_filter.is_valid():
            return Response(repair_filter.errors, status=status.HTTP_400_BAD_REQUEST)
        queryset = repair_filter.qs.order_by('-created_at')
        return with_fresh_data_headers(Response(paginate_queryset(request, queryset, RepairListSerializer, default_limit=50)))

    serializer = RepairSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    repair = serializer.save(created_by=request.user)
    return _created_response(request, repair, {
        'repair_type': repair.repair_type,
        'order_id': repair.order_id,
        'case_id': repair.case_id,
        'status': repair.status,
    })


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def repair_detail(request, pk):
    """Retrieve, update or delete a repair"""
    repair = get_object_or_404(
        Repair.objects.select_related('customer', 'order', 'case', 'assigned_user'),
        pk=pk
    )

    if request.method == 'GET':
        return Response(RepairSerializer(repair).data)
    elif request.method == 'PATCH':
        old_status = repair.status
        old_case_id = repair.case_id
        serializer = RepairSerializer(repair, data=request.data, partial=True)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        repair = serializer.save()

        status_changed = repair.status != old_status
        if status_changed:
            apply_status_change(request, repair, old_status)
        if repair.case_id != old_case_id:
            link_repair_to_case(request, repair)

        create_audit_log(
            request=request,
            action='status_change' if status_changed else 'update',
            model_name='Repair',
            object_id=repair.id,
            object_name=repair.title,
            object_reference=repair.repair_number,
            changes={
                'fields': sorted(request.data.keys()),
                'old_status': old_status,
                'new_status': repair.status,
            }
        )
        return Response(RepairSerializer(repair).data)
    else:  # DELETE
        if not can_delete_repairs(request.user):
            return Response({'error': 'Not authorized to delete repairs'}, status=status.HTTP_403_FORBIDDEN)

        repair_id = repair.id
        repair_number = repair.repair_number
        title = repair.title
        repair.delete()
        create_audit_log(
            request=request,
            action='delete',
            model_name='Repair',
            object_id=repair_id,
            object_name=title,
            object_reference=repair_number
        )
        record_activity(
            'repair_deleted',
            f"Repair {repair_number} deleted: {title}",
            request=request,
            metadata={'repair_id': repair_id}
        )
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def repair_from_case(request, case_id):
    """Create a repair prefilled from a case"""
    from backend.cases.models import Case

    case = get_object_or_404(Case.objects.select_related('customer', 'order'), pk=case_id)

    data = {
        'title': case.title,
        'description': case.description,
        'customer': case.customer_id,
        'order': case.order_id,
        'case': case.id,
    }
    first_item = case.items.first()
    if first_item is not None:
        data['product_sku'] = first_item.sku
        data['product_name'] = first_item.product_name
    data.update(request.data.items())

    serializer = RepairSerializer(data=data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    repair = serializer.save(created_by=request.user)
    return _created_response(request, repair, {'case_id': case.id, 'case_number': case.case_number})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def repair_stats(request):
    """Counts per status, open, overdue and urgent repairs and average repair time"""
    active = Repair.objects.filter(is_archived=False)
    counts = dict(
        active.order_by().values('status').annotate(total=Count('id')).values_list('status', 'total')
    )
    open_repairs = active.filter(status__in=Repair.OPEN_STATUSES)

    finished = active.filter(status__in=Repair.FINISHED_STATUSES, completed_at__isnull=False)
    durations = [
        max((completed_at - created_at).total_seconds(), 0) / 86400
        for created_at, completed_at in finished.values_list('created_at', 'completed_at')
    ]

    top_issues = (
        active.exclude(issue_category='').order_by()
        .values('issue_category').annotate(count=Count('id')).order_by('-count', 'issue_category')[:5]
    )
    return Response({
        'by_status': [
            {'status': value, 'label': label, 'count': counts.get(value, 0)}
            for value, label in Repair.STATUS_CHOICES
        ],
        'total': sum(counts.values()),
        'open': open_repairs.count(),
        'overdue': open_repairs.filter(sla_deadline__lt=timezone.now()).count(),
        'urgent': open_repairs.filter(priority='urgent').count(),
        'average_repair_days': round(sum(durations) / len(durations), 1) if durations else 0,
        'top_issue_categories': list(top_issues),
    })
