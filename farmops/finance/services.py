"""Revenue recording and milk sales"""
import logging
from datetime import date
from decimal import Decimal

from django.db import transaction

from farmops.animals.models import MilkingRecord
from farmops.core.exceptions import ServiceError
from .models import FarmRevenue

logger = logging.getLogger(__name__)


class MilkSaleError(ServiceError):
    pass


def unsold_milk(farm, livestock_type=None, for_update=False):
    """Unsold milking records of a farm, oldest first; for_update locks them"""
    queryset = MilkingRecord.objects.all()
    if for_update:
        queryset = queryset.select_for_update(of=('self',))
    queryset = queryset.filter(
        animal__farm=farm, animal__is_deleted=False, is_sold=False
    ).select_related('animal')
    if livestock_type:
        queryset = queryset.filter(animal__livestock_type=livestock_type)
    return queryset.order_by('record_date', 'created_at', 'id')


def select_milk_for_sale(farm, liters, livestock_type=None, for_update=False):
    """
    Pick whole unsold records FIFO while they fit in the requested liters.

    A record is never split, so the selection can fall short of the request.
    """
    remaining = Decimal(str(liters))
    selected = []
    for record in unsold_milk(farm, livestock_type, for_update=for_update):
        if record.liters > remaining:
            break
        selected.append(record)
        remaining -= record.liters
    return selected


def record_milk_sale(farm, price_per_liter, record_ids=None, liters=None, livestock_type=None,
                     transaction_date=None, user=None, notes=None):
    """
    Mark milking records as sold and book one revenue per record.

    Records come from record_ids, or FIFO from liters. Every sold record
    gets sale_amount = liters * price and a linked milk_sale revenue of the
    same amount.
    """
    price = Decimal(str(price_per_liter))
    if price <= 0:
        raise MilkSaleError('Please enter a valid price')
    transaction_date = transaction_date or date.today()

    with transaction.atomic():
        if record_ids:
            records = list(
                MilkingRecord.objects.select_for_update()
                .filter(pk__in=record_ids, animal__farm=farm)
                .order_by('record_date', 'created_at', 'id')
            )
            if len(records) != len(set(record_ids)):
                raise MilkSaleError('Some milk records were not found on this farm', status_code=404)
            if any(record.is_sold for record in records):
                raise MilkSaleError('Some milk records are already sold')
        elif liters:
            records = select_milk_for_sale(farm, liters, livestock_type, for_update=True)
        else:
            raise MilkSaleError('Either record_ids or liters is required')

        if not records:
            raise MilkSaleError('No milk records to sell')

        revenues = []
        for record in records:
            sale_amount = (record.liters * price).quantize(Decimal('0.01'))
            # Sold only if still unsold; a concurrent sale rolls this one back
            updated = MilkingRecord.objects.filter(pk=record.pk, is_sold=False).update(
                is_sold=True, sale_amount=sale_amount,
            )
            if not updated:
                raise MilkSaleError('Some milk records are already sold', status_code=409)
            record.is_sold = True
            record.sale_amount = sale_amount
            revenues.append(FarmRevenue.objects.create(
                farm=farm,
                source='milk_sale',
                amount=sale_amount,
                transaction_date=transaction_date,
                linked_milk_log=record,
                notes=notes or f"{record.liters}L from {record.animal} @ {price}/L",
                created_by=user,
            ))

    total_liters = sum(record.liters for record in records)
    total_amount = sum(revenue.amount for revenue in revenues)
    logger.info(f"Milk sale on farm {farm.id}: {total_liters}L for {total_amount} ({len(records)} records)")
    return {
        'records_sold': len(records),
        'total_liters': total_liters,
        'total_amount': total_amount,
        'revenue_ids': [revenue.id for revenue in revenues],
    }
