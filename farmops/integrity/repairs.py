"""
Repairs for drift found by the integrity checks

Each repair rewrites the derived values from their source of truth and
returns {check_name, fixed_count, ...}.
"""
import logging

from django.db import transaction

from farmops.animals.models import Animal, MilkingRecord
from farmops.animals.services import refresh_current_weight
from farmops.core.cache_utils import invalidate_ovr_cache
from farmops.finance.models import FarmRevenue

logger = logging.getLogger(__name__)

REPAIR_NOTE = 'Auto-fixed by integrity repair'


def repair_weight_sync(farm):
    """Reset current_weight_kg of every weighed animal to its latest record"""
    fixed = 0
    animals = Animal.objects.filter(farm=farm, is_deleted=False, weight_records__isnull=False).distinct().order_by('id')
    with transaction.atomic():
        for animal in animals:
            before = animal.current_weight_kg
            if refresh_current_weight(animal) != before:
                invalidate_ovr_cache(animal.id)
                fixed += 1

    logger.info(f"Repaired {fixed} animal weights on farm {farm.id}")
    return {'check_name': 'weight_sync', 'fixed_count': fixed}


def repair_milk_revenue_sync(farm, user=None):
    """
    Give every sold milking record exactly one revenue of its sale amount.

    Missing revenues are created, wrong amounts corrected and extra
    revenues linked to the same record deleted.
    """
    created = corrected = removed = 0
    with transaction.atomic():
        sold = (
            MilkingRecord.objects.select_for_update()
            .filter(animal__farm=farm, is_sold=True, sale_amount__isnull=False)
            .order_by('id')
        )
        for record in sold:
            linked = list(FarmRevenue.objects.filter(farm=farm, linked_milk_log=record).order_by('id'))
            if not linked:
                FarmRevenue.objects.create(
                    farm=farm,
                    source='milk_sale',
                    amount=record.sale_amount,
                    transaction_date=record.record_date,
                    linked_milk_log=record,
                    notes=REPAIR_NOTE,
                    created_by=user or farm.owner,
                )
                created += 1
                continue

            keep, extras = linked[0], linked[1:]
            if extras:
                FarmRevenue.objects.filter(pk__in=[r.pk for r in extras]).delete()
                removed += len(extras)
            if keep.amount != record.sale_amount:
                keep.amount = record.sale_amount
                keep.save(update_fields=['amount'])
                corrected += 1

    logger.info(
        f"Repaired milk revenues on farm {farm.id}: {created} created, "
        f"{corrected} corrected, {removed} duplicates removed"
    )
    return {
        'check_name': 'milk_revenue_sync',
        'fixed_count': created + corrected + removed,
        'created': created,
        'corrected': corrected,
        'duplicates_removed': removed,
    }


def run_all_repairs(farm, user=None):
    return [repair_milk_revenue_sync(farm, user=user), repair_weight_sync(farm)]
