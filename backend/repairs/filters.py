import django_filters
from django.db.models import Q
from django.utils import timezone
from .models import Repair


class RepairFilter(django_filters.FilterSet):
    """Filters for the repairs board"""

    search = django_filters.CharFilter(method='filter_search', label='Search')
    status = django_filters.MultipleChoiceFilter(choices=Repair.STATUS_CHOICES)
    repair_type = django_filters.ChoiceFilter(choices=Repair.REPAIR_TYPE_CHOICES)
    customer = django_filters.NumberFilter(field_name='customer_id')
    order = django_filters.NumberFilter(field_name='order_id')
    case = django_filters.NumberFilter(field_name='case_id')
    assigned_user = django_filters.NumberFilter(field_name='assigned_user_id')
    priority = django_filters.ChoiceFilter(choices=Repair.PRIORITY_CHOICES)
    archived = django_filters.BooleanFilter(field_name='is_archived')
    overdue = django_filters.BooleanFilter(method='filter_overdue')
    created_from = django_filters.DateFilter(field_name='created_at', lookup_expr='date__gte')
    created_to = django_filters.DateFilter(field_name='created_at', lookup_expr='date__lte')

    class Meta:
        model = Repair
        fields = ['search', 'status', 'repair_type', 'customer', 'order', 'case', 'assigned_user',
                  'priority', 'archived', 'overdue', 'created_from', 'created_to']

    def filter_search(self, queryset, name, value):
        """Match repair number, title, description, product SKU or product name"""
        value = (value or '').strip()
        if not value:
            return queryset
        return queryset.filter(
            Q(repair_number__icontains=value) |
            Q(title__icontains=value) |
            Q(description__icontains=value) |
            Q(product_sku__icontains=value) |
            Q(product_name__icontains=value)
        )

    def filter_overdue(self, queryset, name, value):
        overdue = Q(sla_deadline__lt=timezone.now(), status__in=Repair.OPEN_STATUSES)
        return queryset.filter(overdue) if value else queryset.exclude(overdue)
