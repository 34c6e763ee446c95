import django_filters
from django.db.models import Q

from .models import Animal


class AnimalFilter(django_filters.FilterSet):
    """Filter animals by farm, type, stage and free-text search"""

    search = django_filters.CharFilter(method='filter_search', label='Search')
    farm = django_filters.NumberFilter(field_name='farm_id', lookup_expr='exact')
    livestock_type = django_filters.CharFilter(field_name='livestock_type', lookup_expr='iexact')
    gender = django_filters.CharFilter(field_name='gender', lookup_expr='iexact')
    life_stage = django_filters.CharFilter(field_name='life_stage', lookup_expr='iexact')
    is_milking = django_filters.BooleanFilter(field_name='is_milking')
    is_pregnant = django_filters.BooleanFilter(field_name='is_pregnant')
    missing_weight = django_filters.BooleanFilter(method='filter_missing_weight', label='Missing weight')

    class Meta:
        model = Animal
        fields = ['search', 'farm', 'livestock_type', 'gender', 'life_stage', 'is_milking', 'is_pregnant', 'missing_weight']

    def filter_search(self, queryset, name, value):
        value = (value or '').strip()
        if not value:
            return queryset
        return queryset.filter(
            Q(ear_tag__icontains=value) | Q(name__icontains=value) | Q(breed__icontains=value)
        )

    def filter_missing_weight(self, queryset, name, value):
        if value is None:
            return queryset
        return queryset.filter(current_weight_kg__isnull=value)
