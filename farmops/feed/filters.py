import django_filters
from django.db.models import Q

from .models import FeedInventory, FeedStockTransaction


class FeedInventoryFilter(django_filters.FilterSet):
    search = django_filters.CharFilter(field_name='feed_type', lookup_expr='icontains', label='Search')
    category = django_filters.CharFilter(method='filter_category', label='Category')
    in_stock = django_filters.BooleanFilter(method='filter_in_stock', label='In Stock')

    class Meta:
        model = FeedInventory
        fields = ['search', 'category', 'in_stock']

    def filter_category(self, queryset, name, value):
        """Uncategorized lots count as roughage"""
        if value == 'roughage':
            return queryset.filter(Q(category='roughage') | Q(category__isnull=True) | Q(category=''))
        return queryset.filter(category=value)

    def filter_in_stock(self, queryset, name, value):
        if value is None:
            return queryset
        if value:
            return queryset.filter(quantity_kg__gt=0)
        return queryset.filter(quantity_kg__lte=0)


class FeedTransactionFilter(django_filters.FilterSet):
    feed_inventory = django_filters.NumberFilter(field_name='feed_inventory_id')
    transaction_type = django_filters.ChoiceFilter(choices=FeedStockTransaction.TRANSACTION_TYPE_CHOICES)
    date_from = django_filters.DateFilter(field_name='created_at', lookup_expr='date__gte')
    date_to = django_filters.DateFilter(field_name='created_at', lookup_expr='date__lte')

    class Meta:
        model = FeedStockTransaction
        fields = ['feed_inventory', 'transaction_type', 'date_from', 'date_to']
