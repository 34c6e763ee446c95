"""
Overall performance rating (OVR) for an animal.

``calculate_ovr_score`` takes a dict of inputs:

    avg_daily_milk, milk_benchmark       liters/day and expected liters/day
    adg_grams, adg_benchmark             grams/day and expected grams/day
    vaccination_compliance               0-100
    has_active_health_issues, has_withdrawal_period, overdue_vaccine_count
    is_pregnant, calving_interval_days, heat_cycle_regularity (0-100)
    adg_percent_of_expected, weight_status (on_track/above/below/critical)
    latest_bcs, bcs_optimal_min, bcs_optimal_max
    livestock_type, life_stage, gender, is_milking

Missing keys and None values count as "no data".
"""
import math

DAIRY_WEIGHTS = {
    'production': 0.30,
    'health': 0.25,
    'fertility': 0.20,
    'growth': 0.15,
    'body_condition': 0.10,
}

BEEF_WEIGHTS = {
    'production': 0.40,
    'health': 0.25,
    'fertility': 0.15,
    'growth': 0.15,
    'body_condition': 0.05,
}

WEIGHT_STATUS_SCORES = {
    'on_track': 80,
    'above': 90,
    'below': 60,
    'critical': 30,
}

NEUTRAL_SCORE = 50


def _clamp(value, low=0, high=100):
    return min(high, max(low, value))


def _value(inputs, key, default):
    value = inputs.get(key)
    return default if value is None else value


def _round_half_up(value):
    return math.floor(value + 0.5)


def production_score(inputs):
    """Milk yield for milking females, ADG otherwise; 83 points at benchmark"""
    avg_daily_milk = inputs.get('avg_daily_milk')
    milk_benchmark = inputs.get('milk_benchmark')
    is_female = (inputs.get('gender') or '').lower() == 'female'
    if inputs.get('is_milking') and is_female and avg_daily_milk is not None and milk_benchmark and milk_benchmark > 0:
        return _clamp(avg_daily_milk / milk_benchmark * 83)

    adg_grams = inputs.get('adg_grams')
    adg_benchmark = inputs.get('adg_benchmark')
    if adg_grams is not None and adg_benchmark and adg_benchmark > 0:
        return _clamp(adg_grams / adg_benchmark * 83)

    return NEUTRAL_SCORE


def health_score(inputs):
    score = _value(inputs, 'vaccination_compliance', 100)
    if inputs.get('has_active_health_issues'):
        score -= 30
    if inputs.get('has_withdrawal_period'):
        score -= 20
    score -= (inputs.get('overdue_vaccine_count') or 0) * 10
    return _clamp(score)


def fertility_score(inputs):
    """Males and young stock get a neutral-positive 75"""
    if (inputs.get('gender') or '').lower() == 'male' or inputs.get('life_stage') in ('calf', 'kid'):
        return 75

    score = 50
    if inputs.get('is_pregnant'):
        score += 25

    interval = inputs.get('calving_interval_days')
    if interval is not None:
        if 365 <= interval <= 400:
            score += 25
        elif interval < 365:
            score += 15
        elif interval <= 450:
            score += 10
        else:
            score -= 10

    regularity = inputs.get('heat_cycle_regularity')
    if regularity is not None:
        score += regularity / 100 * 20

    return _clamp(score)


def growth_score(inputs):
    percent = inputs.get('adg_percent_of_expected')
    if percent is not None:
        return _clamp(percent * 0.8)
    weight_status = inputs.get('weight_status')
    if weight_status:
        return WEIGHT_STATUS_SCORES.get(weight_status, NEUTRAL_SCORE)
    return NEUTRAL_SCORE


def body_condition_score(inputs):
    bcs = inputs.get('latest_bcs')
    if bcs is None:
        return NEUTRAL_SCORE
    optimal_min = _value(inputs, 'bcs_optimal_min', 2.5)
    optimal_max = _value(inputs, 'bcs_optimal_max', 4.0)
    if optimal_min <= bcs <= optimal_max:
        return 100
    if bcs < optimal_min:
        return max(0, 100 - (optimal_min - bcs) * 40)
    return max(0, 100 - (bcs - optimal_max) * 30)


def get_ovr_tier(score):
    if score >= 90:
        return 'diamond'
    if score >= 80:
        return 'gold'
    if score >= 60:
        return 'silver'
    return 'bronze'


def is_dairy(inputs):
    return inputs.get('livestock_type') == 'cattle' and bool(inputs.get('is_milking'))


def calculate_ovr_score(inputs, previous_score=None):
    """
    Weighted 0-100 rating with tier, component breakdown and trend.

    The final score is clamped to [0, 100] and the tier is taken from the
    clamped score.
    """
    weights = DAIRY_WEIGHTS if is_dairy(inputs) else BEEF_WEIGHTS
    breakdown = {
        'production': production_score(inputs),
        'health': health_score(inputs),
        'fertility': fertility_score(inputs),
        'growth': growth_score(inputs),
        'body_condition': body_condition_score(inputs),
    }

    score = _clamp(_round_half_up(sum(breakdown[key] * weights[key] for key in weights)))

    trend = 'stable'
    if previous_score is not None:
        if score > previous_score + 2:
            trend = 'up'
        elif score < previous_score - 2:
            trend = 'down'

    return {
        'score': score,
        'tier': get_ovr_tier(score),
        'breakdown': {key: round(value, 1) for key, value in breakdown.items()},
        'trend': trend,
        'profile': 'dairy' if is_dairy(inputs) else 'beef',
    }


def calculate_status_aura(has_active_withdrawal=False, is_quarantined=False, has_active_health_issue=False,
                          has_overdue_vaccine=False, is_bcs_critical=False, is_in_heat_window=False):
    """Triage color: red needs attention now, yellow needs watching"""
    if has_active_withdrawal or is_quarantined or has_active_health_issue:
        return 'red'
    if has_overdue_vaccine or is_bcs_critical or is_in_heat_window:
        return 'yellow'
    return 'green'
