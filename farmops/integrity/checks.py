"""
Data integrity checks

Each check compares a stored or cached value with its source of truth
and reports every row that disagrees. Checks never raise: an error is
reported as a failed check whose details start with "Error:".
"""
import logging
from collections import defaultdict
from functools import wraps

from django.db.models import OuterRef, Subquery

from farmops.animals.models import Animal, MilkingRecord, WeightRecord
from farmops.core.cache_utils import get_cached_feed_summary
from farmops.feed.models import FeedInventory, FeedStockTransaction
from farmops.feed.services import compute_feed_summary
from farmops.finance.models import FarmRevenue

logger = logging.getLogger(__name__)

CACHE_TOLERANCE_KG = 0.1


def _discrepancy(obj_id, field, expected, actual):
    return {'id': str(obj_id), 'field': field, 'expected': expected, 'actual': actual}


def integrity_check(check_name):
    """Wrap a check body that fills in a result dict"""
    def decorator(func):
        @wraps(func)
        def wrapper(farm, *args, **kwargs):
            result = {'passed': True, 'check_name': check_name, 'details': '', 'discrepancies': []}
            try:
                func(farm, result, *args, **kwargs)
            except Exception as e:
                logger.error(f"Integrity check {check_name} failed on farm {farm.id}: {str(e)}", exc_info=True)
                result['passed'] = False
                result['details'] = f"Error: {str(e)}"
            return result
        return wrapper
    return decorator


@integrity_check('milk_revenue_sync')
def check_milk_revenue_sync(farm, result):
    """Every sold milking record with a sale amount has a matching revenue"""
    sold = MilkingRecord.objects.filter(
        animal__farm=farm, is_sold=True, sale_amount__isnull=False
    ).order_by('id')
    revenues = defaultdict(list)
    for r in FarmRevenue.objects.filter(farm=farm, linked_milk_log__isnull=False).order_by('id'):
        revenues[r.linked_milk_log_id].append(r)

    sold_count = 0
    for record in sold:
        sold_count += 1
        linked = revenues.get(record.id) or []
        if len(linked) > 1:
            result['discrepancies'].append(_discrepancy(
                record.id, 'duplicate_revenue', 1, len(linked)
            ))
        revenue = linked[0] if linked else None
        if revenue is None:
            result['discrepancies'].append(_discrepancy(
                record.id, 'missing_revenue', f"Revenue entry for {record.sale_amount}", 'No linked revenue found'
            ))
        elif revenue.amount != record.sale_amount:
            result['discrepancies'].append(_discrepancy(
                record.id, 'amount_mismatch', float(record.sale_amount), float(revenue.amount or 0)
            ))

    result['passed'] = not result['discrepancies']
    if result['passed']:
        result['details'] = f"All {sold_count} milk sales have matching revenues"
    else:
        fields = [d['field'] for d in result['discrepancies']]
        result['details'] = (
            f"Found {fields.count('missing_revenue')} orphaned sales, "
            f"{fields.count('amount_mismatch')} amount mismatches"
        )
        if 'duplicate_revenue' in fields:
            result['details'] += f", {fields.count('duplicate_revenue')} duplicate revenues"


@integrity_check('weight_sync')
def check_weight_sync(farm, result):
    """Current weight of each live animal equals its latest weight record"""
    latest = (
        WeightRecord.objects.filter(animal=OuterRef('pk'))
        .order_by('-measurement_date', '-created_at', '-id')
        .values('weight_kg')[:1]
    )
    animals = (
        Animal.objects.filter(farm=farm, is_deleted=False, current_weight_kg__isnull=False)
        .annotate(latest_weight=Subquery(latest))
        .order_by('id')
    )

    checked = 0
    for animal in animals:
        checked += 1
        if animal.latest_weight is not None and animal.latest_weight != animal.current_weight_kg:
            result['discrepancies'].append(_discrepancy(
                animal.id, f"animal_{animal.ear_tag or animal.id}",
                float(animal.latest_weight), float(animal.current_weight_kg),
            ))

    result['passed'] = not result['discrepancies']
    result['details'] = (
        f"All {checked} animal weights are in sync" if result['passed']
        else f"Found {len(result['discrepancies'])} out-of-sync weights"
    )


@integrity_check('feed_ledger_sync')
def check_feed_ledger_sync(farm, result):
    """Each lot's quantity equals the balance after its latest stock transaction"""
    latest_balance = (
        FeedStockTransaction.objects.filter(feed_inventory=OuterRef('pk'))
        .order_by('-created_at', '-id')
        .values('balance_after')[:1]
    )
    lots = FeedInventory.objects.filter(farm=farm).annotate(ledger_balance=Subquery(latest_balance)).order_by('id')

    checked = 0
    for lot in lots:
        checked += 1
        if lot.ledger_balance is None:
            if lot.quantity_kg:
                result['discrepancies'].append(_discrepancy(
                    lot.id, 'missing_ledger', float(lot.quantity_kg), 'No stock transactions'
                ))
        elif lot.ledger_balance != lot.quantity_kg:
            result['discrepancies'].append(_discrepancy(
                lot.id, f"lot_{lot.feed_type}", float(lot.ledger_balance), float(lot.quantity_kg)
            ))

    result['passed'] = not result['discrepancies']
    result['details'] = (
        f"All {checked} feed lots match their ledgers" if result['passed']
        else f"Found {len(result['discrepancies'])} lots out of sync with their ledgers"
    )


@integrity_check('feed_inventory_cache_sync')
def check_feed_inventory_cache_sync(farm, result):
    """The cached feed summary agrees with the database"""
    cached = get_cached_feed_summary(farm.id)
    if cached is None:
        result['details'] = 'No cached feed summary'
        return

    fresh = compute_feed_summary(farm)
    if cached.get('item_count') != fresh['item_count']:
        result['discrepancies'].append(_discrepancy(
            farm.id, 'item_count', fresh['item_count'], cached.get('item_count')
        ))
    for field in ('concentrate_kg', 'roughage_kg'):
        cached_value = float(cached.get(field) or 0)
        if abs(cached_value - fresh[field]) > CACHE_TOLERANCE_KG:
            result['discrepancies'].append(_discrepancy(farm.id, field, fresh[field], cached_value))

    result['passed'] = not result['discrepancies']
    result['details'] = (
        'Cached feed summary matches the database' if result['passed']
        else f"Found {len(result['discrepancies'])} stale cached values"
    )


CHECKS = [
    check_milk_revenue_sync,
    check_weight_sync,
    check_feed_ledger_sync,
    check_feed_inventory_cache_sync,
]


def run_all_integrity_checks(farm):
    results = [check(farm) for check in CHECKS]
    failed = [r['check_name'] for r in results if not r['passed']]
    if failed:
        logger.warning(f"Integrity checks failed on farm {farm.id}: {', '.join(failed)}")
    return results
