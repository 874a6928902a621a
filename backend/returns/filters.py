import django_filters
from django.db.models import Q
from .models import Return


class ReturnFilter(django_filters.FilterSet):
    """Filters for the returns list and kanban"""

    search = django_filters.CharFilter(method='filter_search', label='Search')
    status = django_filters.MultipleChoiceFilter(choices=Return.STATUS_CHOICES)
    customer = django_filters.NumberFilter(field_name='customer_id')
    order = django_filters.NumberFilter(field_name='order_id')
    case = django_filters.NumberFilter(field_name='case_id')
    assigned_user = django_filters.NumberFilter(field_name='assigned_user_id')
    priority = django_filters.ChoiceFilter(choices=Return.PRIORITY_CHOICES)
    archived = django_filters.BooleanFilter(field_name='is_archived')
    created_from = django_filters.DateFilter(field_name='created_at', lookup_expr='date__gte')
    created_to = django_filters.DateFilter(field_name='created_at', lookup_expr='date__lte')

    class Meta:
        model = Return
        fields = ['search', 'status', 'customer', 'order', 'case', 'assigned_user',
                  'priority', 'archived', 'created_from', 'created_to']

    def filter_search(self, queryset, name, value):
        """Match return number, tracking number, order number or customer e-mail"""
        value = (value or '').strip()
        if not value:
            return queryset
        return queryset.filter(
            Q(return_number__icontains=value) |
            Q(tracking_number__icontains=value) |
            Q(order__order_number__icontains=value) |
            Q(customer__email__icontains=value)
        )
