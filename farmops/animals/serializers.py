from rest_framework import serializers

from .services import AnimalError, normalize_session
from .models import (
    Animal, WeightRecord, MilkingRecord, FeedingRecord, HealthRecord,
    InjectionRecord, BodyConditionRecord, VaccinationSchedule,
)


class AnimalSerializer(serializers.ModelSerializer):
    farm_name = serializers.CharField(source='farm.name', read_only=True)

    class Meta:
        model = Animal
        fields = [
            'id', 'farm', 'farm_name', 'ear_tag', 'name', 'livestock_type', 'gender', 'breed',
            'birth_date', 'life_stage', 'milking_stage', 'is_milking', 'is_pregnant',
            'is_quarantined', 'calving_interval_days', 'expected_heat_date',
            'current_weight_kg', 'ovr_score', 'is_deleted', 'created_at', 'updated_at',
        ]
        read_only_fields = ['farm', 'current_weight_kg', 'ovr_score', 'is_deleted', 'created_at', 'updated_at']

    def validate_ear_tag(self, value):
        value = (value or '').strip() or None
        if value and self.instance is not None:
            clash = Animal.objects.filter(
                farm=self.instance.farm, ear_tag=value, is_deleted=False
            ).exclude(pk=self.instance.pk)
            if clash.exists():
                raise serializers.ValidationError(f'An animal with ear tag {value} already exists on this farm')
        return value


class AnimalCreateSerializer(AnimalSerializer):
    farm_id = serializers.IntegerField(write_only=True)
    initial_weight_kg = serializers.DecimalField(max_digits=8, decimal_places=2, min_value=0, required=False, allow_null=True, write_only=True)
    weight_date = serializers.DateField(required=False, allow_null=True, write_only=True)

    class Meta(AnimalSerializer.Meta):
        fields = AnimalSerializer.Meta.fields + ['farm_id', 'initial_weight_kg', 'weight_date']


class WeightRecordSerializer(serializers.ModelSerializer):
    class Meta:
        model = WeightRecord
        fields = ['id', 'animal', 'weight_kg', 'measurement_date', 'measurement_method', 'notes', 'recorded_by', 'created_at']
        read_only_fields = ['animal', 'recorded_by', 'created_at']


class MilkingRecordSerializer(serializers.ModelSerializer):
    session = serializers.CharField(required=False, allow_blank=True, allow_null=True)

    class Meta:
        model = MilkingRecord
        fields = ['id', 'animal', 'record_date', 'liters', 'session', 'is_sold', 'sale_amount', 'created_by', 'created_at']
        read_only_fields = ['animal', 'is_sold', 'sale_amount', 'created_by', 'created_at']

    def validate_session(self, value):
        try:
            return normalize_session(value)
        except AnimalError as e:
            raise serializers.ValidationError(e.message)


class FeedingRecordSerializer(serializers.ModelSerializer):
    class Meta:
        model = FeedingRecord
        fields = ['id', 'animal', 'record_datetime', 'feed_type', 'kilograms', 'notes', 'created_by', 'created_at']
        read_only_fields = ['animal', 'created_by', 'created_at']


class HealthRecordSerializer(serializers.ModelSerializer):
    class Meta:
        model = HealthRecord
        fields = ['id', 'animal', 'visit_date', 'diagnosis', 'treatment', 'notes', 'is_resolved', 'created_by', 'created_at']
        read_only_fields = ['animal', 'created_by', 'created_at']


class InjectionRecordSerializer(serializers.ModelSerializer):
    class Meta:
        model = InjectionRecord
        fields = ['id', 'animal', 'record_datetime', 'medicine_name', 'dosage', 'instructions', 'withdrawal_until', 'created_by', 'created_at']
        read_only_fields = ['animal', 'created_by', 'created_at']


class BodyConditionRecordSerializer(serializers.ModelSerializer):
    class Meta:
        model = BodyConditionRecord
        fields = ['id', 'animal', 'score', 'assessment_date', 'notes', 'assessor', 'created_at']
        read_only_fields = ['animal', 'assessor', 'created_at']


class VaccinationScheduleSerializer(serializers.ModelSerializer):
    class Meta:
        model = VaccinationSchedule
        fields = ['id', 'animal', 'vaccine_name', 'due_date', 'completed_date', 'notes', 'created_at']
        read_only_fields = ['animal', 'created_at']


class PopulateWeightsSerializer(serializers.Serializer):
    farmId = serializers.IntegerField()
