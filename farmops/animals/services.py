"""Animal services: weights, OVR inputs and animal creation"""
import logging
from datetime import date, timedelta
from decimal import Decimal

from django.core.cache import cache
from django.db import transaction
from django.db.models import Sum

from farmops.core.cache_utils import ovr_cache_key, OVR_CACHE_TTL
from farmops.core.exceptions import ServiceError
from .growth import calculate_overall_adg, get_expected_adg
from .models import (
    Animal, WeightRecord, MilkingRecord, HealthRecord, InjectionRecord,
    BodyConditionRecord, VaccinationSchedule,
)
from .ovr import calculate_ovr_score, calculate_status_aura
from .weights import estimate_weight_by_age

logger = logging.getLogger(__name__)

ESTIMATED_WEIGHT_NOTE = "Auto-populated estimate based on age and stage"

# Typical Philippine dairy yield, liters/day
MILK_BENCHMARK_LITERS = 8
DEFAULT_ADG_BENCHMARK = 500
MILK_WINDOW_DAYS = 30
BCS_CRITICAL_LOW = 2.0
BCS_CRITICAL_HIGH = 4.5
HEAT_WINDOW_DAYS = 1


class AnimalError(ServiceError):
    pass


CREATE_FIELDS = (
    'name', 'livestock_type', 'gender', 'breed', 'birth_date', 'life_stage',
    'milking_stage', 'is_milking', 'is_pregnant',
)

SESSION_ALIASES = {
    'am': 'AM',
    'morning': 'AM',
    'pm': 'PM',
    'evening': 'PM',
    'afternoon': 'PM',
}


def normalize_session(value):
    """Map morning/evening style session names onto AM/PM; empty means AM"""
    if value is None or value == '':
        return 'AM'
    normalized = SESSION_ALIASES.get(str(value).strip().lower())
    if normalized is None:
        raise AnimalError(f'Unknown milking session: {value}')
    return normalized


def refresh_current_weight(animal):
    """Set current_weight_kg to the latest weight record (None when none left)"""
    latest = (
        WeightRecord.objects.filter(animal=animal)
        .order_by('-measurement_date', '-created_at', '-id')
        .first()
    )
    new_weight = latest.weight_kg if latest else None
    if animal.current_weight_kg != new_weight:
        Animal.objects.filter(pk=animal.pk).update(current_weight_kg=new_weight)
        animal.current_weight_kg = new_weight
    return new_weight


def create_animal(farm, data, user=None, initial_weight_kg=None):
    """
    Create an animal, rejecting a duplicate live ear tag on the farm.

    An initial weight, when given, is stored as an actual weight record.
    """
    ear_tag = (data.get('ear_tag') or '').strip() or None
    if ear_tag and Animal.objects.filter(farm=farm, ear_tag=ear_tag, is_deleted=False).exists():
        raise AnimalError(f'An animal with ear tag {ear_tag} already exists on this farm')

    fields = {key: value for key, value in data.items() if key in CREATE_FIELDS}
    fields['ear_tag'] = ear_tag
    with transaction.atomic():
        animal = Animal.objects.create(farm=farm, created_by=user, **fields)
        if initial_weight_kg:
            WeightRecord.objects.create(
                animal=animal,
                weight_kg=Decimal(str(initial_weight_kg)),
                measurement_date=data.get('weight_date') or date.today(),
                measurement_method='actual',
                recorded_by=user,
                notes='Initial weight',
            )
    logger.info(f"Animal {animal.id} ({ear_tag}) created on farm {farm.id}")
    return animal


def populate_weights(farm, user=None, today=None):
    """
    Give every live animal with a birth date and no current weight an
    estimated weight record dated today.

    Returns {success, populated, total} where total counts all live
    animals of the farm.
    """
    today = today or date.today()
    animals = list(Animal.objects.filter(farm=farm, is_deleted=False).order_by('id'))
    populated = 0

    for animal in animals:
        if animal.current_weight_kg:
            continue
        if not animal.birth_date:
            continue

        estimated = estimate_weight_by_age(
            animal.birth_date,
            gender=animal.gender or 'female',
            livestock_type=animal.livestock_type or 'cattle',
            today=today,
        )
        try:
            with transaction.atomic():
                WeightRecord.objects.create(
                    animal=animal,
                    weight_kg=Decimal(estimated),
                    measurement_date=today,
                    measurement_method='estimated',
                    notes=ESTIMATED_WEIGHT_NOTE,
                    recorded_by=user,
                )
        except Exception as e:
            logger.error(f"Error inserting weight for animal {animal.id}: {str(e)}")
            continue
        populated += 1

    logger.info(f"Populated {populated} estimated weights on farm {farm.id} ({len(animals)} animals)")
    return {'success': True, 'populated': populated, 'total': len(animals)}


def _average_daily_milk(animal, today):
    """Mean of per-day milk totals over the recent window"""
    daily = (
        MilkingRecord.objects.filter(animal=animal, record_date__gte=today - timedelta(days=MILK_WINDOW_DAYS))
        .values('record_date')
        .annotate(total=Sum('liters'))
    )
    totals = [float(row['total']) for row in daily]
    return sum(totals) / len(totals) if totals else None


def build_ovr_inputs(animal, today=None):
    """Collect OVR and status-aura inputs from the animal's records"""
    today = today or date.today()

    weights = list(WeightRecord.objects.filter(animal=animal).values('weight_kg', 'measurement_date'))
    adg = calculate_overall_adg(weights, animal.livestock_type, animal.gender, animal.life_stage)
    expected = get_expected_adg(animal.livestock_type, animal.gender, animal.life_stage)

    vaccinations = list(VaccinationSchedule.objects.filter(animal=animal))
    completed = [v for v in vaccinations if v.completed_date]
    overdue = [v for v in vaccinations if not v.completed_date and v.due_date < today]
    compliance = round(len(completed) / len(vaccinations) * 100) if vaccinations else 100

    has_active_health_issue = HealthRecord.objects.filter(animal=animal, is_resolved=False).exclude(diagnosis__isnull=True).exclude(diagnosis='').exists()
    has_withdrawal = InjectionRecord.objects.filter(animal=animal, withdrawal_until__gte=today).exists()

    latest_bcs = BodyConditionRecord.objects.filter(animal=animal).order_by('-assessment_date', '-created_at').first()
    bcs_value = float(latest_bcs.score) if latest_bcs else None

    is_milking = animal.is_milking or (animal.milking_stage is not None and animal.milking_stage.lower() not in ('', 'dry'))
    in_heat_window = bool(animal.expected_heat_date) and abs((animal.expected_heat_date - today).days) <= HEAT_WINDOW_DAYS

    inputs = {
        'avg_daily_milk': _average_daily_milk(animal, today),
        'milk_benchmark': MILK_BENCHMARK_LITERS,
        'adg_grams': adg['adg_grams'] if adg else None,
        'adg_benchmark': expected['optimal'] if expected and expected['optimal'] else DEFAULT_ADG_BENCHMARK,
        'vaccination_compliance': compliance,
        'has_active_health_issues': has_active_health_issue,
        'has_withdrawal_period': has_withdrawal,
        'overdue_vaccine_count': len(overdue),
        'is_pregnant': animal.is_pregnant,
        'calving_interval_days': animal.calving_interval_days,
        'adg_percent_of_expected': adg['percent_of_expected'] if adg else None,
        'latest_bcs': bcs_value,
        'livestock_type': animal.livestock_type,
        'life_stage': animal.life_stage,
        'gender': animal.gender,
        'is_milking': is_milking,
    }
    aura_inputs = {
        'has_active_withdrawal': has_withdrawal,
        'is_quarantined': animal.is_quarantined,
        'has_active_health_issue': has_active_health_issue,
        'has_overdue_vaccine': bool(overdue),
        'is_bcs_critical': bcs_value is not None and (bcs_value < BCS_CRITICAL_LOW or bcs_value > BCS_CRITICAL_HIGH),
        'is_in_heat_window': in_heat_window,
    }
    return inputs, aura_inputs


def compute_animal_ovr(animal, today=None, use_cache=True):
    """
    OVR result for an animal plus its status aura.

    The score is snapshotted once per day on the animal; the trend compares
    against the snapshot of the previous scoring day.
    """
    today = today or date.today()
    cache_key = ovr_cache_key(animal.id)
    if use_cache:
        cached = cache.get(cache_key)
        if cached is not None:
            return cached

    inputs, aura_inputs = build_ovr_inputs(animal, today)

    if animal.ovr_scored_on and animal.ovr_scored_on < today:
        previous = animal.ovr_score
    else:
        previous = animal.previous_ovr_score

    result = calculate_ovr_score(inputs, previous_score=previous)
    result['status_aura'] = calculate_status_aura(**aura_inputs)
    result['animal_id'] = animal.id

    Animal.objects.filter(pk=animal.pk).update(
        ovr_score=result['score'],
        previous_ovr_score=previous,
        ovr_scored_on=today,
    )
    animal.ovr_score, animal.previous_ovr_score, animal.ovr_scored_on = result['score'], previous, today

    cache.set(cache_key, result, OVR_CACHE_TTL)
    return result
