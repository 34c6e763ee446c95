from rest_framework import serializers
from .models import FarmRevenue


class FarmRevenueSerializer(serializers.ModelSerializer):
    class Meta:
        model = FarmRevenue
        fields = ['id', 'farm', 'source', 'amount', 'transaction_date', 'linked_milk_log', 'notes', 'created_by', 'created_at']
        read_only_fields = ['created_by', 'created_at']

    def validate(self, attrs):
        milk_log = attrs.get('linked_milk_log')
        farm = attrs.get('farm') or getattr(self.instance, 'farm', None)
        if milk_log and farm and milk_log.animal.farm_id != farm.id:
            raise serializers.ValidationError({'linked_milk_log': 'Milk record belongs to another farm'})
        return attrs


class MilkSaleSerializer(serializers.Serializer):
    farm_id = serializers.IntegerField()
    price_per_liter = serializers.DecimalField(max_digits=10, decimal_places=2)
    record_ids = serializers.ListField(child=serializers.IntegerField(), required=False, allow_empty=True)
    liters = serializers.DecimalField(max_digits=10, decimal_places=2, required=False, allow_null=True)
    livestock_type = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    transaction_date = serializers.DateField(required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)
