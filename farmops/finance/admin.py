from django.contrib import admin
from .models import FarmRevenue


@admin.register(FarmRevenue)
class FarmRevenueAdmin(admin.ModelAdmin):
    list_display = ['farm', 'source', 'amount', 'transaction_date', 'linked_milk_log', 'created_at']
    list_filter = ['source', 'transaction_date']
    search_fields = ['farm__name', 'notes']
    raw_id_fields = ['linked_milk_log']
