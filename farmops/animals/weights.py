"""Weight estimation from age, gender and livestock type"""
import math
from datetime import date

# Weight ranges by livestock type, gender and stage (kg). Stage order matters:
# young, growing, mature.
WEIGHT_RANGES = {
    'cattle': {
        'female': {
            'Calf': (40, 120),
            'Heifer Calf': (120, 200),
            'Breeding Heifer': (200, 380),
            'Pregnant Heifer': (350, 450),
            'First-Calf Heifer': (400, 500),
            'Mature Cow': (450, 650),
        },
        'male': {
            'Bull Calf': (40, 180),
            'Young Bull': (180, 400),
            'Mature Bull': (400, 800),
        },
    },
    'goat': {
        'female': {'Kid': (5, 15), 'Young Doe': (15, 30), 'Mature Doe': (30, 60)},
        'male': {'Kid': (5, 15), 'Young Buck': (15, 40), 'Mature Buck': (40, 80)},
    },
    'sheep': {
        'female': {'Lamb': (8, 20), 'Young Ewe': (20, 40), 'Mature Ewe': (40, 80)},
        'male': {'Lamb': (8, 20), 'Young Ram': (20, 50), 'Mature Ram': (50, 120)},
    },
    'carabao': {
        'female': {'Calf': (20, 60), 'Young Female': (60, 200), 'Mature Female': (200, 500)},
        'male': {'Calf': (20, 60), 'Young Bull': (60, 250), 'Mature Bull': (250, 700)},
    },
}

FALLBACK_WEIGHTS = {'goat': 30, 'sheep': 40, 'carabao': 250, 'cattle': 300}


def age_in_months(birth_date, today=None):
    """Whole 30-day months since birth"""
    today = today or date.today()
    return (today - birth_date).days // 30


def stage_for_age(livestock_type, gender, months):
    """Pick the weight stage an animal of this age falls in"""
    is_male = (gender or '').lower() == 'male'
    ranges = WEIGHT_RANGES.get(livestock_type, WEIGHT_RANGES['cattle'])
    stages = list(ranges['male' if is_male else 'female'])

    if livestock_type in ('goat', 'sheep'):
        bands = [(6, stages[0]), (12, stages[1])]
        mature = stages[2]
    elif livestock_type == 'cattle' and not is_male:
        bands = [(8, 'Calf'), (12, 'Heifer Calf'), (24, 'Breeding Heifer')]
        mature = 'Mature Cow'
    else:
        # cattle males and carabao of either gender
        bands = [(12, stages[0]), (24, stages[1])]
        mature = stages[2]

    for limit, stage in bands:
        if months < limit:
            return stage
    return mature


def get_weight_range(livestock_type, gender, stage):
    """(min, max) for a stage, or None when the stage is unknown"""
    ranges = WEIGHT_RANGES.get(livestock_type or 'cattle', {})
    return ranges.get('male' if (gender or '').lower() == 'male' else 'female', {}).get(stage)


def estimate_weight_by_age(birth_date, gender='female', livestock_type='cattle', life_stage=None, today=None):
    """
    Estimate a weight (kg) as the midpoint of the stage range.

    A ``life_stage`` known for the type and gender picks the range
    directly; otherwise the stage comes from the age bands.
    """
    livestock_type = livestock_type or 'cattle'
    weight_range = get_weight_range(livestock_type, gender, life_stage) if life_stage else None
    if weight_range is None:
        stage = stage_for_age(livestock_type, gender, age_in_months(birth_date, today))
        weight_range = get_weight_range(livestock_type, gender, stage)
    if not weight_range:
        return FALLBACK_WEIGHTS.get(livestock_type, FALLBACK_WEIGHTS['cattle'])
    low, high = weight_range
    # Half-up, so 27.5 kg estimates as 28
    return math.floor((low + high) / 2 + 0.5)
