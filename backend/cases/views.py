from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db import IntegrityError, transaction
from django.db.models import Q
from django.shortcuts import get_object_or_404
from django.utils import timezone
from .models import Case, CaseLink
from .serializers import (
    CaseSerializer, CaseListSerializer, CaseLinkSerializer, CaseEventSerializer
)
from backend.core.utils import create_audit_log, record_activity, paginate_queryset, with_fresh_data_headers


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def case_list_create(request):
    """List cases or open a new case"""
    if request.method == 'GET':
        queryset = Case.objects.select_related('customer', 'assigned_user')

        status_filter = request.query_params.get('status', None)
        archived = request.query_params.get('archived', 'false')
        assigned_user = request.query_params.get('assigned_user', None)
        search = request.query_params.get('search', None)

        if status_filter:
            queryset = queryset.filter(status=status_filter)
        if archived != 'all':
            queryset = queryset.filter(archived=archived.lower() in ('true', '1'))
        if assigned_user:
            queryset = queryset.filter(assigned_user_id=assigned_user)
        if search:
            queryset = queryset.filter(
                Q(case_number__icontains=search) |
                Q(title__icontains=search) |
                Q(customer_email__icontains=search)
            )

        queryset = queryset.order_by('-created_at')
        return with_fresh_data_headers(Response(paginate_queryset(request, queryset, CaseListSerializer)))
    else:
        data = request.data.copy()
        items_data = data.pop('items', [])

        serializer = CaseSerializer(data=data, context={'items_data': items_data, 'request': request})
        if serializer.is_valid():
            case = serializer.save(created_by=request.user)
            case.add_event('created', f"Case {case.case_number} created", user=request.user)
            create_audit_log(
                request=request,
                action='create',
                model_name='Case',
                object_id=case.id,
                object_name=case.title,
                object_reference=case.case_number,
                changes={'items_count': len(items_data)}
            )
            record_activity(
                'case_created',
                f"Case {case.case_number} created: {case.title}",
                request=request,
                metadata={'case_id': case.id}
            )
            return Response(CaseSerializer(case).data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def case_detail(request, pk):
    """Retrieve, update or delete a case"""
    case = get_object_or_404(Case.objects.select_related('customer', 'order', 'assigned_user'), pk=pk)

    if request.method == 'GET':
        return Response(CaseSerializer(case).data)
    elif request.method == 'PATCH':
        old_status = case.status
        old_assigned = case.assigned_user_id
        old_sla = case.sla_deadline

        serializer = CaseSerializer(case, data=request.data, partial=True)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        case = serializer.save()

        if case.status != old_status:
            if case.status == 'resolved':
                case.resolved_at = timezone.now()
            elif old_status == 'resolved':
                case.resolved_at = None
            case.save(update_fields=['resolved_at', 'updated_at'])
            case.add_event(
                'status_change',
                f"Status changed from {old_status} to {case.status}",
                user=request.user,
                metadata={'from': old_status, 'to': case.status}
            )
        if case.assigned_user_id != old_assigned:
            assignee = case.assigned_user.username if case.assigned_user else 'nobody'
            case.add_event('assigned', f"Assigned to {assignee}", user=request.user,
                           metadata={'assigned_user': case.assigned_user_id})
        if case.sla_deadline and case.sla_deadline != old_sla:
            case.add_event('sla_set', f"SLA deadline set to {case.sla_deadline.isoformat()}", user=request.user)

        create_audit_log(
            request=request,
            action='status_change' if case.status != old_status else 'update',
            model_name='Case',
            object_id=case.id,
            object_name=case.title,
            object_reference=case.case_number,
            changes={'fields': sorted(request.data.keys()), 'old_status': old_status, 'new_status': case.status}
        )
        return Response(CaseSerializer(case).data)
    else:  # DELETE
        case_id = case.id
        case_number = case.case_number
        case.delete()
        create_audit_log(
            request=request,
            action='delete',
            model_name='Case',
            object_id=case_id,
            object_name=case_number,
            object_reference=case_number
        )
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST', 'DELETE'])
@permission_classes([IsAuthenticated])
def case_archive(request, pk):
    """Archive (POST) or unarchive (DELETE) a case"""
    case = get_object_or_404(Case, pk=pk)
    case.archived = request.method == 'POST'
    case.save(update_fields=['archived', 'updated_at'])
    create_audit_log(
        request=request,
        action='archive' if case.archived else 'unarchive',
        model_name='Case',
        object_id=case.id,
        object_name=case.title,
        object_reference=case.case_number
    )
    return Response(CaseSerializer(case).data)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def case_links(request, pk):
    """List or add links from a case"""
    case = get_object_or_404(Case, pk=pk)

    if request.method == 'GET':
        links = case.links.select_related('created_by')
        link_type = request.query_params.get('link_type')
        if link_type:
            links = links.filter(link_type=link_type)
        return Response(CaseLinkSerializer(links, many=True).data)

    serializer = CaseLinkSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    try:
        with transaction.atomic():
            link = serializer.save(case=case, created_by=request.user)
    except IntegrityError:
        return Response({'error': 'This record is already linked to the case'}, status=status.HTTP_400_BAD_REQUEST)

    case.add_event(
        'link_added',
        f"Linked {link.link_type} {link.linked_id}",
        user=request.user,
        metadata={'link_type': link.link_type, 'linked_id': link.linked_id}
    )
    create_audit_log(
        request=request,
        action='link_add',
        model_name='Case',
        object_id=case.id,
        object_reference=case.case_number,
        changes={'link_type': link.link_type, 'linked_id': link.linked_id}
    )
    return Response(CaseLinkSerializer(link).data, status=status.HTTP_201_CREATED)


@api_view(['DELETE'])
@permission_classes([IsAuthenticated])
def case_link_delete(request, pk, link_id):
    """Remove a link from a case"""
    link = get_object_or_404(CaseLink.objects.select_related('case'), pk=link_id, case_id=pk)
    case = link.case
    link_type, linked_id = link.link_type, link.linked_id
    link.delete()

    case.add_event(
        'link_removed',
        f"Unlinked {link_type} {linked_id}",
        user=request.user,
        metadata={'link_type': link_type, 'linked_id': linked_id}
    )
    create_audit_log(
        request=request,
        action='link_remove',
        model_name='Case',
        object_id=case.id,
        object_reference=case.case_number,
        changes={'link_type': link_type, 'linked_id': linked_id}
    )
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def case_events(request, pk):
    """Case timeline, newest first"""
    case = get_object_or_404(Case, pk=pk)
    events = case.events.select_related('created_by')
    return Response(CaseEventSerializer(events, many=True).data)
