import django_filters
from django.db.models import Q
from .models import Note, NoteTag, NoteTemplate


class NoteFilter(django_filters.FilterSet):
    """Filters for an entity's note thread and for note search"""

    visibility = django_filters.ChoiceFilter(choices=Note.VISIBILITY_CHOICES)
    author = django_filters.NumberFilter(field_name='author_id')
    tag = django_filters.ModelMultipleChoiceFilter(
        field_name='tag_assignments__tag',
        queryset=NoteTag.objects.all(),
        distinct=True,
    )
    entity_type = django_filters.ChoiceFilter(choices=Note.ENTITY_TYPE_CHOICES)
    include_deleted = django_filters.BooleanFilter(method='filter_include_deleted')

    class Meta:
        model = Note
        fields = ['visibility', 'author', 'tag', 'entity_type', 'include_deleted']

    def filter_include_deleted(self, queryset, name, value):
        # Applied in qs so the default (absent) also hides deleted notes
        return queryset

    @property
    def qs(self):
        queryset = super().qs
        if not self.form.cleaned_data.get('include_deleted'):
            queryset = queryset.filter(deleted_at__isnull=True)
        return queryset


class NoteTemplateFilter(django_filters.FilterSet):
    entity_type = django_filters.CharFilter(method='filter_entity_type')
    active = django_filters.BooleanFilter(field_name='is_active')

    class Meta:
        model = NoteTemplate
        fields = ['entity_type', 'active']

    def filter_entity_type(self, queryset, name, value):
        """Templates for the entity type plus global ones"""
        return queryset.filter(Q(entity_type=value) | Q(scope='global'))
