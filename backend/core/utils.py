"""Utility functions for audit logging and the activity feed"""
import logging

from django.contrib.auth import get_user_model

from .models import AuditLog, Activity

User = get_user_model()
logger = logging.getLogger(__name__)


def get_client_ip(request):
    """Extract client IP address from request"""
    if not request or not hasattr(request, 'META'):
        return None
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        ip = x_forwarded_for.split(',')[0].strip()
    else:
        ip = request.META.get('REMOTE_ADDR')
    return ip or None


def _request_user(request, user=None):
    if user:
        return user
    if request is not None and hasattr(request, 'user'):
        return request.user
    return None


def create_audit_log(request=None, action=None, model_name=None, object_id=None,
                     changes=None, user=None, object_name=None, object_reference=None):
    """
    Create an audit log entry

    Args:
        request: Django request object (for user and IP) - optional if user is provided
        action: Action type (create, update, delete, note_pin, etc.)
        model_name: Name of the model being acted upon
        object_id: ID of the object (as string)
        changes: Dictionary of changes made
        user: Optional user override (defaults to request.user if request provided)
        object_name: Human-readable name of the object (e.g., return number, note excerpt)
        object_reference: Reference identifier (e.g., return number, case number)
    """
    try:
        audit_user = _request_user(request, user)
        ip_address = get_client_ip(request) if request else None

        if not action or not model_name or not object_id:
            logger.warning(f"Audit log creation skipped: missing required fields (action={action}, model_name={model_name}, object_id={object_id})")
            return None

        return AuditLog.objects.create(
            user=audit_user if audit_user and audit_user.is_authenticated else None,
            action=action,
            model_name=model_name,
            object_id=str(object_id),
            object_name=object_name[:255] if object_name else object_name,
            object_reference=object_reference,
            changes=changes or {},
            ip_address=ip_address
        )
    except Exception as e:
        # Don't fail the main operation if audit logging fails
        logger.error(f"Failed to create audit log: {str(e)}")
        return None


def record_activity(activity_type, description, request=None, user=None, metadata=None):
    """Append an entry to the dashboard activity feed"""
    try:
        activity_user = _request_user(request, user)
        return Activity.objects.create(
            type=activity_type,
            description=description,
            user=activity_user if activity_user and activity_user.is_authenticated else None,
            metadata=metadata or {},
        )
    except Exception as e:
        logger.error(f"Failed to record activity {activity_type}: {str(e)}")
        return None


def paginate_queryset(request, queryset, serializer_class, default_limit=25, context=None):
    """Paginate a queryset the way list endpoints report pages"""
    from django.core.paginator import Paginator

    try:
        page = int(request.query_params.get('page', 1))
        limit = int(request.query_params.get('limit', default_limit))
    except (TypeError, ValueError):
        page, limit = 1, default_limit
    limit = max(1, min(limit, 200))

    paginator = Paginator(queryset, limit)
    page_obj = paginator.get_page(page)
    serializer = serializer_class(page_obj, many=True, context=context or {'request': request})
    return {
        'results': serializer.data,
        'count': paginator.count,
        'next': page_obj.next_page_number() if page_obj.has_next() else None,
        'previous': page_obj.previous_page_number() if page_obj.has_previous() else None,
        'page': page_obj.number,
        'page_size': limit,
        'total_pages': paginator.num_pages,
    }


def with_fresh_data_headers(response):
    """Short private caching so clients refetch after mutations"""
    from django.utils import timezone

    response['Cache-Control'] = 'private, max-age=10, must-revalidate'
    response['X-Data-Version'] = timezone.now().isoformat()
    return response


def next_sequence_number(queryset, field, prefix, width=3):
    """
    Next human-readable number for `prefix` + zero-padded counter.

    Scans existing values starting with the prefix and returns one past the
    highest numeric suffix, e.g. ('RET-2025-', 3) -> 'RET-2025-031'.
    """
    highest = 0
    for value in queryset.filter(**{f'{field}__startswith': prefix}).values_list(field, flat=True):
        suffix = value[len(prefix):]
        if suffix.isdigit():
            highest = max(highest, int(suffix))
    return f"{prefix}{str(highest + 1).zfill(width)}"
