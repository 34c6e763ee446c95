"""
Average daily gain (ADG) metrics.

Records are dicts or objects with ``weight_kg`` and ``measurement_date``
(a date or an ISO date string).
"""
from datetime import date, datetime

DEFAULT_OPTIMAL_ADG = 800

# Expected ADG in grams/day by livestock type, gender and life stage
EXPECTED_ADG = {
    'cattle': {
        'female': {
            'Calf': {'min': 700, 'max': 1000, 'optimal': 850},
            'Heifer Calf': {'min': 600, 'max': 800, 'optimal': 700},
            'Breeding Heifer': {'min': 500, 'max': 700, 'optimal': 600},
            'Pregnant Heifer': {'min': 300, 'max': 500, 'optimal': 400},
            'First-Calf Heifer': {'min': 200, 'max': 400, 'optimal': 300},
            'Mature Cow': {'min': 0, 'max': 200, 'optimal': 100},
        },
        'male': {
            'Bull Calf': {'min': 900, 'max': 1200, 'optimal': 1050},
            'Young Bull': {'min': 600, 'max': 900, 'optimal': 750},
            'Mature Bull': {'min': 0, 'max': 300, 'optimal': 150},
        },
    },
    'goat': {
        'female': {
            'Kid': {'min': 80, 'max': 120, 'optimal': 100},
            'Young Doe': {'min': 60, 'max': 100, 'optimal': 80},
            'Mature Doe': {'min': 0, 'max': 30, 'optimal': 15},
        },
        'male': {
            'Kid': {'min': 80, 'max': 120, 'optimal': 100},
            'Young Buck': {'min': 80, 'max': 120, 'optimal': 100},
            'Mature Buck': {'min': 0, 'max': 30, 'optimal': 15},
        },
    },
    'sheep': {
        'female': {
            'Lamb': {'min': 150, 'max': 250, 'optimal': 200},
            'Young Ewe': {'min': 80, 'max': 150, 'optimal': 115},
            'Mature Ewe': {'min': 0, 'max': 50, 'optimal': 25},
        },
        'male': {
            'Lamb': {'min': 150, 'max': 300, 'optimal': 225},
            'Young Ram': {'min': 100, 'max': 180, 'optimal': 140},
            'Mature Ram': {'min': 0, 'max': 50, 'optimal': 25},
        },
    },
    'carabao': {
        'female': {
            'Calf': {'min': 300, 'max': 400, 'optimal': 350},
            'Young Female': {'min': 400, 'max': 600, 'optimal': 500},
            'Mature Female': {'min': 0, 'max': 100, 'optimal': 50},
        },
        'male': {
            'Calf': {'min': 300, 'max': 400, 'optimal': 350},
            'Young Bull': {'min': 500, 'max': 800, 'optimal': 650},
            'Mature Bull': {'min': 0, 'max': 100, 'optimal': 50},
        },
    },
}


def _get(record, name):
    if isinstance(record, dict):
        return record[name]
    return getattr(record, name)


def _as_date(value):
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def gender_key(gender):
    return 'male' if (gender or '').lower() == 'male' else 'female'


def get_expected_adg(livestock_type, gender, life_stage):
    """Expected {min, max, optimal} ADG for a stage, or None when unknown"""
    if not life_stage:
        return None
    type_key = (livestock_type or 'cattle').lower()
    return EXPECTED_ADG.get(type_key, {}).get(gender_key(gender), {}).get(life_stage)


def get_adg_status(percent_of_expected):
    if percent_of_expected >= 100:
        return 'excellent'
    if percent_of_expected >= 80:
        return 'good'
    if percent_of_expected >= 60:
        return 'fair'
    return 'poor'


def calculate_adg(current, previous, livestock_type='cattle', gender='female', life_stage=None):
    """
    ADG between two weight measurements.

    The day count is the absolute distance between the dates and the gain
    is ``current - previous``, so swapping the arguments flips the sign of
    the gain figures and keeps their magnitude. Returns None when both
    measurements fall on the same day.
    """
    days_between = abs((_as_date(_get(current, 'measurement_date')) - _as_date(_get(previous, 'measurement_date'))).days)
    if days_between < 1:
        return None

    total_gain_kg = float(_get(current, 'weight_kg')) - float(_get(previous, 'weight_kg'))
    adg_kg = total_gain_kg / days_between
    adg_grams = adg_kg * 1000

    expected = get_expected_adg(livestock_type, gender, life_stage)
    optimal = (expected or {}).get('optimal') or DEFAULT_OPTIMAL_ADG

    percent_of_expected = round(adg_grams / optimal * 100)
    return {
        'adg_grams': round(adg_grams),
        'adg_kg': round(adg_kg, 2),
        'total_gain_kg': round(total_gain_kg, 1),
        'days_between': days_between,
        'status': get_adg_status(percent_of_expected),
        'percent_of_expected': percent_of_expected,
    }


def calculate_overall_adg(records, livestock_type='cattle', gender='female', life_stage=None):
    """ADG from the oldest to the newest record; None for fewer than two"""
    records = list(records)
    if len(records) < 2:
        return None
    ordered = sorted(records, key=lambda r: _as_date(_get(r, 'measurement_date')))
    return calculate_adg(ordered[-1], ordered[0], livestock_type, gender, life_stage)


def format_adg(adg_grams):
    if abs(adg_grams) >= 1000:
        return f"{adg_grams / 1000:.2f} kg/day"
    return f"{round(adg_grams)} g/day"
