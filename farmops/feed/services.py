"""
Feed inventory services

Lots are consumed first-in first-out. Every change to a lot's balance is
mirrored by a FeedStockTransaction whose balance_after equals the new
quantity_kg.
"""
import logging
import math
from datetime import date, timedelta
from decimal import Decimal

from django.db import transaction
from django.db.models import Count, Q

from farmops.core.cache_utils import get_cached_feed_summary, cache_feed_summary
from farmops.core.exceptions import ServiceError
from .models import FeedInventory, FeedStockTransaction

logger = logging.getLogger(__name__)

# kg/day per head
CONSUMPTION_RATES = {
    'cattle': 12,
    'carabao': 10,
    'goat': 1.5,
    'sheep': 2,
}
DEFAULT_CONSUMPTION_RATE = 10

ROUGHAGE_SHARE = 0.7
CONCENTRATE_SHARE = 0.3

EXPIRY_WARNING_DAYS = 30


class FeedError(ServiceError):
    pass


def normalize_feed_type(feed_type):
    """Trim, collapse whitespace and lowercase a feed type"""
    return ' '.join((feed_type or '').split()).lower()


def _to_decimal(value):
    return value if isinstance(value, Decimal) else Decimal(str(value))


def find_inventory_lots(farm, feed_type, for_update=False):
    """
    Find in-stock lots for a feed type, oldest first.

    Strategies are tried in order and the first one returning rows wins:
    exact, contains, hay/bale, concentrate, first significant word.
    Returns (lots, strategy); strategy is None when nothing matched.
    """
    normalized = normalize_feed_type(feed_type)
    if not normalized:
        return [], None

    base = FeedInventory.objects.filter(farm=farm, quantity_kg__gt=0)
    if for_update:
        base = base.select_for_update()
    base = base.order_by('created_at', 'id')

    strategies = [
        ('exact', Q(feed_type__iexact=normalized)),
        ('contains', Q(feed_type__icontains=normalized)),
    ]
    if 'hay' in normalized:
        strategies.append(('hay_bale', Q(feed_type__icontains='bale') | Q(feed_type__icontains='hay')))
    if 'concentrate' in normalized:
        strategies.append(('concentrate', Q(feed_type__icontains='concentrate')))
    significant_word = normalized.split(' ')[0]
    if len(significant_word) > 3:
        strategies.append(('first_word', Q(feed_type__icontains=significant_word)))

    for strategy, condition in strategies:
        lots = list(base.filter(condition))
        if lots:
            logger.info(f'Feed type "{feed_type}" matched {len(lots)} lot(s) by {strategy}')
            return lots, strategy

    return [], None


def deduct_feed_inventory(farm, feed_type, total_kg, user=None, original_quantity=None, original_unit='kg', note=None):
    """
    Deduct total_kg of a feed type from the farm's lots, FIFO.

    Never raises: a missing match or a shortfall is logged and reported in
    the returned summary, so callers can record feedings regardless.
    """
    total_kg = _to_decimal(total_kg)
    summary = {
        'feed_type': feed_type,
        'requested_kg': float(total_kg),
        'matched_strategy': None,
        'deducted_kg': 0.0,
        'remaining_kg': float(total_kg),
        'transactions': [],
    }
    if total_kg <= 0:
        return summary

    if original_quantity is None:
        original_quantity = total_kg
    note = note or f"Bulk feeding: {original_quantity} {original_unit} distributed proportionally"

    try:
        with transaction.atomic():
            lots, strategy = find_inventory_lots(farm, feed_type, for_update=True)
            summary['matched_strategy'] = strategy
            if not lots:
                logger.warning(f'No inventory found for feed type: "{feed_type}" on farm {farm.id}')
                return summary

            remaining = total_kg
            for lot in lots:
                if remaining <= 0:
                    break
                deduct_amount = min(lot.quantity_kg, remaining)
                lot.quantity_kg = lot.quantity_kg - deduct_amount
                lot.save(update_fields=['quantity_kg', 'last_updated'])

                entry = FeedStockTransaction.objects.create(
                    feed_inventory=lot,
                    transaction_type='consumption',
                    quantity_change_kg=-deduct_amount,
                    balance_after=lot.quantity_kg,
                    notes=note,
                    created_by=user,
                )
                remaining -= deduct_amount
                summary['transactions'].append(entry.id)
                logger.info(f"Deducted {deduct_amount} kg from {lot.feed_type}, remaining: {remaining} kg")

            summary['deducted_kg'] = float(total_kg - remaining)
            summary['remaining_kg'] = float(remaining)
            if remaining > 0:
                logger.warning(f"Could not deduct full amount of {feed_type}. Remaining: {remaining} kg")
    except Exception as e:
        logger.error(f"Error deducting {feed_type} from inventory on farm {farm.id}: {str(e)}", exc_info=True)
        summary['error'] = str(e)
        summary['transactions'] = []
        summary['deducted_kg'] = 0.0
        summary['remaining_kg'] = float(total_kg)
    return summary


def add_stock(farm, data, user=None):
    """Create a lot and its opening addition entry"""
    quantity = _to_decimal(data.get('quantity_kg') or 0)
    if quantity < 0:
        raise FeedError('quantity_kg cannot be negative')

    fields = {key: value for key, value in data.items() if key != 'quantity_kg'}
    fields['feed_type'] = ' '.join((fields.get('feed_type') or '').split())
    if not fields['feed_type']:
        raise FeedError('feed_type is required')

    with transaction.atomic():
        lot = FeedInventory.objects.create(farm=farm, quantity_kg=quantity, created_by=user, **fields)
        FeedStockTransaction.objects.create(
            feed_inventory=lot,
            transaction_type='addition',
            quantity_change_kg=quantity,
            balance_after=quantity,
            notes=data.get('notes') or 'Initial stock',
            created_by=user,
        )
    logger.info(f"Added feed lot {lot.id} ({lot.feed_type}, {quantity} kg) on farm {farm.id}")
    return lot


def restock(lot_id, quantity_kg, user=None, notes=None):
    """Add stock to an existing lot"""
    quantity = _to_decimal(quantity_kg)
    if quantity <= 0:
        raise FeedError('quantity_kg must be positive')
    with transaction.atomic():
        lot = FeedInventory.objects.select_for_update().get(pk=lot_id)
        lot.quantity_kg = lot.quantity_kg + quantity
        lot.save(update_fields=['quantity_kg', 'last_updated'])
        entry = FeedStockTransaction.objects.create(
            feed_inventory=lot,
            transaction_type='addition',
            quantity_change_kg=quantity,
            balance_after=lot.quantity_kg,
            notes=notes or 'Stock added',
            created_by=user,
        )
    return lot, entry


def adjust_stock(lot_id, new_quantity_kg, user=None, notes=None):
    """Set a lot to a counted quantity, recording the difference"""
    new_quantity = _to_decimal(new_quantity_kg)
    if new_quantity < 0:
        raise FeedError('Quantity cannot be negative')
    with transaction.atomic():
        lot = FeedInventory.objects.select_for_update().get(pk=lot_id)
        change = new_quantity - lot.quantity_kg
        lot.quantity_kg = new_quantity
        lot.save(update_fields=['quantity_kg', 'last_updated'])
        entry = FeedStockTransaction.objects.create(
            feed_inventory=lot,
            transaction_type='adjustment',
            quantity_change_kg=change,
            balance_after=new_quantity,
            notes=notes or 'Stock count adjustment',
            created_by=user,
        )
    return lot, entry


def calculate_stockout_date(current_stock, daily_consumption, today=None):
    """
    Days until a stock runs out at a daily consumption rate.

    No consumption means the stock never runs out: days_remaining is
    infinite and there is no stock-out date.
    """
    daily_consumption = float(daily_consumption or 0)
    if daily_consumption <= 0:
        return {'days_remaining': math.inf, 'stockout_date': None, 'status': 'healthy'}

    days_remaining = math.floor(float(current_stock) / daily_consumption)
    today = today or date.today()
    if days_remaining > 60:
        status = 'healthy'
    elif days_remaining > 30:
        status = 'warning'
    else:
        status = 'critical'
    return {
        'days_remaining': days_remaining,
        'stockout_date': today + timedelta(days=days_remaining),
        'status': status,
    }


def calculate_inventory_value(items):
    """Sum of quantity_kg * cost_per_unit; a missing cost counts as zero"""
    total = 0.0
    for item in items:
        if isinstance(item, dict):
            quantity, cost = item.get('quantity_kg'), item.get('cost_per_unit')
        else:
            quantity, cost = item.quantity_kg, item.cost_per_unit
        total += float(quantity or 0) * float(cost or 0)
    return total


def calculate_total_daily_consumption(animal_counts):
    """kg/day for a herd given [{livestock_type, count}]"""
    total = 0.0
    for row in animal_counts:
        rate = CONSUMPTION_RATES.get((row['livestock_type'] or '').lower(), DEFAULT_CONSUMPTION_RATE)
        total += rate * row['count']
    return total


def _days_or_none(stock, daily):
    return math.floor(stock / daily) if daily > 0 else None


def compute_feed_summary(farm, today=None):
    """Aggregate a farm's feed inventory from the database"""
    from farmops.animals.models import Animal

    today = today or date.today()
    items = list(FeedInventory.objects.filter(farm=farm))

    by_category = {'concentrates': 0.0, 'roughage': 0.0, 'minerals': 0.0, 'supplements': 0.0}
    for item in items:
        by_category[item.category or 'roughage'] += float(item.quantity_kg or 0)
    total_kg = sum(by_category.values())

    animal_counts = (
        Animal.objects.filter(farm=farm, is_deleted=False)
        .values('livestock_type')
        .annotate(count=Count('id'))
    )
    daily = calculate_total_daily_consumption(animal_counts)
    roughage_days = _days_or_none(by_category['roughage'], daily * ROUGHAGE_SHARE)
    concentrate_days = _days_or_none(
        by_category['concentrates'] + by_category['minerals'] + by_category['supplements'],
        daily * CONCENTRATE_SHARE,
    )

    expiry_cutoff = today + timedelta(days=EXPIRY_WARNING_DAYS)
    stockout = calculate_stockout_date(total_kg, daily, today=today)
    return {
        'farm_id': farm.id,
        'item_count': len(items),
        'total_kg': round(total_kg, 2),
        'concentrate_kg': round(by_category['concentrates'], 2),
        'roughage_kg': round(by_category['roughage'], 2),
        'minerals_kg': round(by_category['minerals'], 2),
        'supplements_kg': round(by_category['supplements'], 2),
        'daily_consumption_kg': round(daily, 2),
        'roughage_days': roughage_days,
        'concentrate_days': concentrate_days,
        # Roughage alone keeps the herd alive
        'feed_stock_days': roughage_days,
        'stockout_date': stockout['stockout_date'].isoformat() if stockout['stockout_date'] else None,
        'stockout_status': stockout['status'],
        'total_value': round(calculate_inventory_value(items), 2),
        'expiring_count': sum(1 for i in items if i.expiry_date and i.expiry_date <= expiry_cutoff),
        'low_stock_count': sum(1 for i in items if i.reorder_threshold and i.quantity_kg <= i.reorder_threshold),
    }


def get_feed_summary(farm, use_cache=True):
    """Feed summary of a farm, served from the cache when present"""
    if use_cache:
        cached = get_cached_feed_summary(farm.id)
        if cached is not None:
            return cached
    summary = compute_feed_summary(farm)
    cache_feed_summary(farm.id, summary)
    return summary
