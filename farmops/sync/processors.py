"""
Handlers that replay offline queue items against the database.

Each handler takes a QueueItem, writes what the item describes and
returns a JSON-serializable server response. Errors are raised as
ServiceError subclasses; the sync loop decides whether to retry.
"""
import logging
from datetime import datetime, time
from datetime import timezone as dt_timezone
from decimal import Decimal, InvalidOperation

from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime

from farmops.animals.models import Animal, MilkingRecord, FeedingRecord, HealthRecord
from farmops.animals.services import AnimalError, create_animal, normalize_session
from farmops.approvals.services import submit_activity
from farmops.farms.permissions import get_farm_for_user
from farmops.feed.services import deduct_feed_inventory
from .queue import QueueItemError

logger = logging.getLogger(__name__)

ASSISTANT_WAKE_PHRASES = ('doc aga', 'dok aga')


def _farm(item, fallback_farm_id=None):
    """The item's farm, checked against the submitting user's access"""
    farm_id = item.farm_id or (item.payload or {}).get('farmId') or fallback_farm_id
    if not farm_id:
        raise QueueItemError('FARM_ID_MISSING')
    try:
        farm_id = int(farm_id)
    except (TypeError, ValueError):
        raise QueueItemError('FARM_ID_MISSING')
    manage = item.item_type != 'voice_activity'
    return get_farm_for_user(farm_id, item.user, manage=manage)


def _decimal(value, field):
    if value is None or value == '':
        raise QueueItemError(f'{field} is required')
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        raise QueueItemError(f'{field} must be a number')
    if amount < 0:
        raise QueueItemError(f'{field} cannot be negative')
    return amount


def _date(value):
    parsed = parse_date(str(value)[:10]) if value else None
    return parsed or timezone.localdate()


def _datetime(value):
    parsed = parse_datetime(str(value)) if value else None
    if parsed is None and value:
        day = parse_date(str(value)[:10])
        if day is not None:
            return timezone.make_aware(datetime.combine(day, time.min))
    return parsed or timezone.now()


def _timestamp(value):
    """Device timestamps arrive as epoch milliseconds or ISO strings"""
    if value in (None, ''):
        return None
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000, tz=dt_timezone.utc)
    return parse_datetime(str(value))


def _farm_animals(farm, raw_ids):
    """Map the given ids to live animals of the farm, failing on any stranger"""
    try:
        ids = [int(i) for i in raw_ids]
    except (TypeError, ValueError):
        raise QueueItemError('Animal ids must be integers')
    animals = {a.id: a for a in Animal.objects.filter(farm=farm, is_deleted=False, pk__in=ids)}
    missing = [i for i in ids if i not in animals]
    if missing:
        raise QueueItemError(f"Animals not found on this farm: {', '.join(map(str, missing))}")
    return [animals[i] for i in ids]


def _session(value):
    try:
        return normalize_session(value)
    except AnimalError as e:
        raise QueueItemError(e.message)


def process_animal_form(item):
    payload = item.payload or {}
    form_data = dict(payload.get('formData') or {})
    if not form_data:
        raise QueueItemError('No form data in queue item')
    farm = _farm(item, fallback_farm_id=form_data.get('farm_id'))

    initial_weight = payload.get('initialWeight') or {}
    weight_kg = initial_weight.get('weight_kg') or form_data.get('initial_weight_kg')
    if initial_weight.get('measurement_date'):
        form_data['weight_date'] = parse_date(str(initial_weight['measurement_date'])[:10])
    if form_data.get('birth_date'):
        form_data['birth_date'] = parse_date(str(form_data['birth_date'])[:10])

    animal = create_animal(farm, form_data, user=item.user, initial_weight_kg=weight_kg)
    return {'animal_id': animal.id, 'ear_tag': animal.ear_tag, 'name': animal.name}


def _create_milk(farm, item, rows):
    animals = _farm_animals(farm, [row.get('animalId') for row in rows])
    records = MilkingRecord.objects.bulk_create([
        MilkingRecord(
            animal=animal,
            record_date=_date(row.get('recordDate')),
            liters=_decimal(row.get('liters'), 'liters'),
            session=_session(row.get('session')),
            created_by=item.user,
        )
        for animal, row in zip(animals, rows)
    ])
    return {'milking_record_ids': [r.id for r in records], 'count': len(records)}


def process_bulk_milk(item):
    farm = _farm(item)
    rows = (item.payload or {}).get('milkRecords') or []
    if not rows:
        raise QueueItemError('No milk records in queue item')
    return _create_milk(farm, item, rows)


def process_single_milk(item):
    farm = _farm(item)
    row = (item.payload or {}).get('singleMilk')
    if not row:
        raise QueueItemError('No single milk data in queue item')
    return _create_milk(farm, item, [row])


def process_bulk_feed(item):
    """Feeding records for each animal, then FIFO deduction of the total"""
    payload = item.payload or {}
    farm = _farm(item)
    rows = payload.get('feedRecords') or []
    feed_type = (payload.get('feedType') or '').strip()
    if not rows or not feed_type:
        raise QueueItemError('No feed records in queue item')

    animals = _farm_animals(farm, [row.get('animalId') for row in rows])
    record_datetime = _datetime(payload.get('recordDate'))
    amounts = [_decimal(row.get('kilograms'), 'kilograms') for row in rows]
    records = FeedingRecord.objects.bulk_create([
        FeedingRecord(
            animal=animal,
            record_datetime=record_datetime,
            feed_type=feed_type,
            kilograms=amount,
            created_by=item.user,
        )
        for animal, amount in zip(animals, amounts)
    ])

    total_kg = payload.get('totalKg')
    total_kg = _decimal(total_kg, 'totalKg') if total_kg not in (None, '') else sum(amounts, Decimal('0'))
    inventory = deduct_feed_inventory(
        farm, feed_type, total_kg, user=item.user,
        note=f"Offline sync: Bulk feeding {len(records)} animals",
    )
    return {'feeding_record_ids': [r.id for r in records], 'count': len(records), 'inventory': inventory}


def _create_health(farm, item, animal_ids, visit_date, diagnosis, treatment=None, notes=None):
    if not diagnosis:
        raise QueueItemError('diagnosis is required')
    animals = _farm_animals(farm, animal_ids)
    records = HealthRecord.objects.bulk_create([
        HealthRecord(
            animal=animal,
            visit_date=_date(visit_date),
            diagnosis=diagnosis,
            treatment=treatment or None,
            notes=notes or None,
            created_by=item.user,
        )
        for animal in animals
    ])
    return {'health_record_ids': [r.id for r in records], 'count': len(records)}


def process_bulk_health(item):
    payload = item.payload or {}
    farm = _farm(item)
    rows = payload.get('healthRecords') or []
    if not rows:
        raise QueueItemError('No health records in queue item')
    return _create_health(
        farm, item, [row.get('animalId') for row in rows], payload.get('recordDate'),
        payload.get('diagnosis'), payload.get('treatment'), payload.get('notes'),
    )


def process_single_health(item):
    farm = _farm(item)
    row = (item.payload or {}).get('singleHealth')
    if not row:
        raise QueueItemError('No single health data in queue item')
    return _create_health(
        farm, item, [row.get('animalId')], row.get('visitDate'),
        row.get('diagnosis'), row.get('treatment'), row.get('notes'),
    )


def is_assistant_query(transcription):
    text = (transcription or '').lower()
    return any(phrase in text for phrase in ASSISTANT_WAKE_PHRASES)


def process_voice_activity(item):
    """
    Submit a confirmed voice transcription as a pending activity.

    Transcriptions addressed to the assistant are not farm activities and
    complete without writing anything.
    """
    payload = item.payload or {}
    farm = _farm(item)
    transcription = payload.get('transcription')
    if not transcription or not payload.get('transcriptionConfirmed'):
        raise QueueItemError('TRANSCRIPTION_NOT_CONFIRMED')

    if is_assistant_query(transcription):
        logger.info(f"Queue item {item.id} is an assistant query, nothing to record")
        return {'skipped': True, 'reason': 'assistant_query'}

    activity_type = payload.get('activityType') or payload.get('activity_type')
    if not activity_type:
        raise QueueItemError('NEEDS_ACTIVITY_TYPE')

    activity_data = dict(payload.get('activityData') or payload.get('activity_data') or {})
    activity_data.setdefault('transcription', transcription)
    animal_ids = payload.get('animalIds') or payload.get('animal_ids')
    if not animal_ids and payload.get('animalId'):
        animal_ids = [payload['animalId']]

    submitted_at = _timestamp(payload.get('timestamp'))
    activity = submit_activity(
        farm, item.user, activity_type,
        activity_data=activity_data, animal_ids=animal_ids or [],
        submitted_at=submitted_at or item.created_at,
    )
    return {'pending_activity_id': activity.id, 'status': activity.status}


PROCESSORS = {
    'animal_form': process_animal_form,
    'bulk_milk': process_bulk_milk,
    'single_milk': process_single_milk,
    'bulk_feed': process_bulk_feed,
    'bulk_health': process_bulk_health,
    'single_health': process_single_health,
    'voice_activity': process_voice_activity,
}


def process_item(item):
    processor = PROCESSORS.get(item.item_type)
    if processor is None:
        raise QueueItemError(f'Unknown queue item type: {item.item_type}')
    return processor(item)
