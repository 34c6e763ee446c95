from django.contrib import admin
from .models import (
    Animal, WeightRecord, MilkingRecord, FeedingRecord, HealthRecord,
    InjectionRecord, BodyConditionRecord, VaccinationSchedule,
)


class WeightRecordInline(admin.TabularInline):
    model = WeightRecord
    extra = 0
    fields = ['measurement_date', 'weight_kg', 'measurement_method', 'notes']


@admin.register(Animal)
class AnimalAdmin(admin.ModelAdmin):
    list_display = ['ear_tag', 'name', 'farm', 'livestock_type', 'gender', 'life_stage', 'current_weight_kg', 'ovr_score', 'is_deleted']
    list_filter = ['livestock_type', 'gender', 'is_milking', 'is_pregnant', 'is_deleted']
    search_fields = ['ear_tag', 'name', 'breed', 'farm__name']
    readonly_fields = ['current_weight_kg', 'ovr_score', 'previous_ovr_score', 'ovr_scored_on', 'created_at', 'updated_at']
    inlines = [WeightRecordInline]


@admin.register(WeightRecord)
class WeightRecordAdmin(admin.ModelAdmin):
    list_display = ['animal', 'weight_kg', 'measurement_date', 'measurement_method']
    list_filter = ['measurement_method']
    search_fields = ['animal__ear_tag']


@admin.register(MilkingRecord)
class MilkingRecordAdmin(admin.ModelAdmin):
    list_display = ['animal', 'record_date', 'session', 'liters', 'is_sold', 'sale_amount']
    list_filter = ['session', 'is_sold']
    search_fields = ['animal__ear_tag']


@admin.register(FeedingRecord)
class FeedingRecordAdmin(admin.ModelAdmin):
    list_display = ['animal', 'record_datetime', 'feed_type', 'kilograms']
    search_fields = ['animal__ear_tag', 'feed_type']


@admin.register(HealthRecord)
class HealthRecordAdmin(admin.ModelAdmin):
    list_display = ['animal', 'visit_date', 'diagnosis', 'is_resolved']
    list_filter = ['is_resolved']
    search_fields = ['animal__ear_tag', 'diagnosis']


@admin.register(InjectionRecord)
class InjectionRecordAdmin(admin.ModelAdmin):
    list_display = ['animal', 'record_datetime', 'medicine_name', 'dosage', 'withdrawal_until']
    search_fields = ['animal__ear_tag', 'medicine_name']


admin.site.register(BodyConditionRecord)
admin.site.register(VaccinationSchedule)
