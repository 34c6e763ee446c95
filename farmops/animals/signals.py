"""
Keep derived animal fields current
Refreshes current weight and drops cached OVR results when records change
"""
from django.db.models.signals import post_save, post_delete
from django.dispatch import receiver
import logging

from farmops.core.cache_utils import invalidate_ovr_cache
from .models import (
    Animal, WeightRecord, MilkingRecord, HealthRecord, InjectionRecord,
    BodyConditionRecord, VaccinationSchedule,
)
from .services import refresh_current_weight

logger = logging.getLogger(__name__)

OVR_SOURCE_MODELS = (
    MilkingRecord, HealthRecord, InjectionRecord, BodyConditionRecord, VaccinationSchedule,
)


@receiver(post_save, sender=WeightRecord)
@receiver(post_delete, sender=WeightRecord)
def sync_current_weight(sender, instance, **kwargs):
    """Animal.current_weight_kg follows the latest weight record"""
    animal = Animal.objects.filter(pk=instance.animal_id).first()
    if animal is None:
        return
    refresh_current_weight(animal)
    invalidate_ovr_cache(instance.animal_id)


@receiver(post_save, sender=Animal)
def invalidate_animal_ovr(sender, instance, **kwargs):
    invalidate_ovr_cache(instance.pk)


def _invalidate_record_ovr(sender, instance, **kwargs):
    invalidate_ovr_cache(instance.animal_id)


for model in OVR_SOURCE_MODELS:
    post_save.connect(_invalidate_record_ovr, sender=model, dispatch_uid=f'ovr_save_{model.__name__}')
    post_delete.connect(_invalidate_record_ovr, sender=model, dispatch_uid=f'ovr_delete_{model.__name__}')
