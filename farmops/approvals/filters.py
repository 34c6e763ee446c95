import django_filters

from .models import PendingActivity


class PendingActivityFilter(django_filters.FilterSet):
    farm = django_filters.NumberFilter(field_name='farm_id')
    status = django_filters.ChoiceFilter(choices=PendingActivity.STATUS_CHOICES)
    activity_type = django_filters.ChoiceFilter(choices=PendingActivity.ACTIVITY_TYPE_CHOICES)
    submitted_by = django_filters.NumberFilter(field_name='submitted_by_id')
    mine = django_filters.BooleanFilter(method='filter_mine', label='Submitted by me')

    class Meta:
        model = PendingActivity
        fields = ['farm', 'status', 'activity_type', 'submitted_by', 'mine']

    def filter_mine(self, queryset, name, value):
        if not value or self.request is None:
            return queryset
        return queryset.filter(submitted_by=self.request.user)
