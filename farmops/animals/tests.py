"""
Test suite for the animals app
Tests: ADG metrics, weight estimates, OVR scoring, current-weight sync and the animal endpoints
"""
from datetime import date, timedelta
from decimal import Decimal

from django.core.cache import cache
from django.test import TestCase, SimpleTestCase, override_settings
from rest_framework import status

from farmops.core.models import AuditLog
from farmops.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from farmops.animals.growth import (
    calculate_adg, calculate_overall_adg, get_adg_status, get_expected_adg, format_adg,
)
from farmops.animals.models import Animal, WeightRecord
from farmops.animals.ovr import calculate_ovr_score, calculate_status_aura, get_ovr_tier
from farmops.animals.services import (
    AnimalError, create_animal, normalize_session, populate_weights, ESTIMATED_WEIGHT_NOTE,
)
from farmops.animals.weights import estimate_weight_by_age, stage_for_age


class GrowthMetricsTests(SimpleTestCase):
    """Test ADG helpers"""

    def setUp(self):
        self.earlier = {'weight_kg': 270, 'measurement_date': '2024-01-01'}
        self.later = {'weight_kg': 300, 'measurement_date': date(2024, 1, 31)}

    def test_calculate_adg(self):
        result = calculate_adg(self.later, self.earlier)
        self.assertEqual(result['days_between'], 30)
        self.assertEqual(result['adg_grams'], 1000)
        self.assertEqual(result['adg_kg'], 1.0)
        self.assertEqual(result['total_gain_kg'], 30.0)
        # Default optimal is 800 g/day
        self.assertEqual(result['percent_of_expected'], 125)
        self.assertEqual(result['status'], 'excellent')

    def test_swapping_records_flips_sign(self):
        forward = calculate_adg(self.later, self.earlier)
        backward = calculate_adg(self.earlier, self.later)
        self.assertEqual(backward['days_between'], forward['days_between'])
        self.assertEqual(backward['adg_grams'], -forward['adg_grams'])
        self.assertEqual(backward['adg_kg'], -forward['adg_kg'])
        self.assertEqual(backward['total_gain_kg'], -forward['total_gain_kg'])

    def test_same_day_returns_none(self):
        same_day = {'weight_kg': 280, 'measurement_date': '2024-01-01'}
        self.assertIsNone(calculate_adg(same_day, self.earlier))

    def test_expected_adg_by_stage(self):
        self.assertEqual(get_expected_adg('cattle', 'male', 'Bull Calf')['optimal'], 1050)
        self.assertIsNone(get_expected_adg('cattle', 'female', None))
        self.assertIsNone(get_expected_adg('cattle', 'female', 'Unknown Stage'))

        result = calculate_adg(self.later, self.earlier, 'cattle', 'male', 'Bull Calf')
        self.assertEqual(result['percent_of_expected'], 95)
        self.assertEqual(result['status'], 'good')

    def test_overall_adg_uses_oldest_and_newest(self):
        middle = {'weight_kg': 100, 'measurement_date': '2024-01-15'}
        result = calculate_overall_adg([self.later, middle, self.earlier])
        self.assertEqual(result['adg_grams'], 1000)
        self.assertIsNone(calculate_overall_adg([self.earlier]))
        self.assertIsNone(calculate_overall_adg([]))

    def test_adg_status_thresholds(self):
        self.assertEqual(get_adg_status(100), 'excellent')
        self.assertEqual(get_adg_status(80), 'good')
        self.assertEqual(get_adg_status(60), 'fair')
        self.assertEqual(get_adg_status(59), 'poor')
        order = ['poor', 'fair', 'good', 'excellent']
        ranks = [order.index(get_adg_status(p)) for p in range(-50, 200, 5)]
        self.assertEqual(ranks, sorted(ranks))

    def test_format_adg(self):
        self.assertEqual(format_adg(850), '850 g/day')
        self.assertEqual(format_adg(1250), '1.25 kg/day')


class WeightEstimateTests(SimpleTestCase):
    """Test weight estimation by age"""

    today = date(2024, 6, 1)

    def born_months_ago(self, months):
        return self.today - timedelta(days=months * 30)

    def test_female_cattle_calf(self):
        self.assertEqual(estimate_weight_by_age(self.born_months_ago(5), 'female', 'cattle', today=self.today), 80)

    def test_midpoint_rounds_half_up(self):
        # Young Doe range 15-30 kg
        self.assertEqual(estimate_weight_by_age(self.born_months_ago(8), 'female', 'goat', today=self.today), 23)

    def test_mature_carabao_bull(self):
        self.assertEqual(estimate_weight_by_age(self.born_months_ago(30), 'male', 'carabao', today=self.today), 475)

    def test_known_life_stage_picks_range(self):
        weight = estimate_weight_by_age(self.born_months_ago(2), 'female', 'cattle', life_stage='Mature Cow', today=self.today)
        self.assertEqual(weight, 550)

    def test_stage_bands(self):
        self.assertEqual(stage_for_age('cattle', 'female', 7), 'Calf')
        self.assertEqual(stage_for_age('cattle', 'female', 10), 'Heifer Calf')
        self.assertEqual(stage_for_age('cattle', 'female', 20), 'Breeding Heifer')
        self.assertEqual(stage_for_age('cattle', 'female', 40), 'Mature Cow')
        self.assertEqual(stage_for_age('sheep', 'male', 5), 'Lamb')
        self.assertEqual(stage_for_age('sheep', 'male', 11), 'Young Ram')


class OVRScoreTests(SimpleTestCase):
    """Test OVR scoring"""

    def test_no_data_scores_neutral_beef(self):
        result = calculate_ovr_score({})
        # 50*.40 + 100*.25 + 50*.15 + 50*.15 + 50*.05 = 62.5
        self.assertEqual(result['score'], 63)
        self.assertEqual(result['tier'], 'silver')
        self.assertEqual(result['profile'], 'beef')
        self.assertEqual(result['trend'], 'stable')

    def test_none_values_count_as_no_data(self):
        result = calculate_ovr_score({
            'vaccination_compliance': None, 'bcs_optimal_min': None, 'bcs_optimal_max': None,
            'overdue_vaccine_count': None, 'adg_percent_of_expected': None,
        })
        self.assertEqual(result, calculate_ovr_score({}))

        result = calculate_ovr_score({'latest_bcs': 3.0, 'bcs_optimal_min': None, 'bcs_optimal_max': None})
        self.assertEqual(result['breakdown']['body_condition'], 100)
        self.assertEqual(result['breakdown']['health'], 100)

    def test_dairy_profile(self):
        inputs = {
            'livestock_type': 'cattle', 'is_milking': True, 'gender': 'female',
            'avg_daily_milk': 8, 'milk_benchmark': 8,
        }
        result = calculate_ovr_score(inputs)
        self.assertEqual(result['profile'], 'dairy')
        self.assertEqual(result['breakdown']['production'], 83)
        self.assertEqual(result['score'], 72)

    def test_score_stays_within_bounds(self):
        best = calculate_ovr_score({
            'adg_grams': 100000, 'adg_benchmark': 500, 'adg_percent_of_expected': 1000,
            'is_pregnant': True, 'calving_interval_days': 380, 'heat_cycle_regularity': 100,
            'latest_bcs': 3.0,
        })
        worst = calculate_ovr_score({
            'adg_grams': -100000, 'adg_benchmark': 500, 'adg_percent_of_expected': -1000,
            'vaccination_compliance': 0, 'has_active_health_issues': True, 'has_withdrawal_period': True,
            'overdue_vaccine_count': 20, 'calving_interval_days': 900, 'latest_bcs': 5.0,
            'bcs_optimal_min': 1.0, 'bcs_optimal_max': 1.5,
        })
        self.assertEqual(best['score'], 100)
        self.assertEqual(best['tier'], 'diamond')
        self.assertGreaterEqual(worst['score'], 0)
        self.assertLessEqual(worst['score'], 100)
        self.assertEqual(worst['tier'], 'bronze')
        for value in worst['breakdown'].values():
            self.assertGreaterEqual(value, 0)

    def test_trend(self):
        self.assertEqual(calculate_ovr_score({}, previous_score=60)['trend'], 'up')
        self.assertEqual(calculate_ovr_score({}, previous_score=61)['trend'], 'stable')
        self.assertEqual(calculate_ovr_score({}, previous_score=66)['trend'], 'down')

    def test_tiers(self):
        self.assertEqual(get_ovr_tier(90), 'diamond')
        self.assertEqual(get_ovr_tier(80), 'gold')
        self.assertEqual(get_ovr_tier(60), 'silver')
        self.assertEqual(get_ovr_tier(59), 'bronze')

    def test_status_aura(self):
        self.assertEqual(calculate_status_aura(), 'green')
        self.assertEqual(calculate_status_aura(is_in_heat_window=True), 'yellow')
        self.assertEqual(calculate_status_aura(is_quarantined=True, has_overdue_vaccine=True), 'red')


class SessionNormalizationTests(SimpleTestCase):

    def test_aliases(self):
        self.assertEqual(normalize_session(None), 'AM')
        self.assertEqual(normalize_session(''), 'AM')
        self.assertEqual(normalize_session('Morning'), 'AM')
        self.assertEqual(normalize_session('pm'), 'PM')
        self.assertEqual(normalize_session(' evening '), 'PM')

    def test_unknown_session(self):
        with self.assertRaises(AnimalError):
            normalize_session('noon')


class AnimalServiceTests(TestCase):
    """Test animal services and weight signals"""

    def setUp(self):
        cache.clear()
        self.owner = TestDataFactory.create_user()
        self.farm = TestDataFactory.create_farm(owner=self.owner)

    def test_current_weight_follows_latest_record(self):
        animal = TestDataFactory.create_animal(self.farm)
        TestDataFactory.create_weight_record(animal, 200, date.today() - timedelta(days=10))
        latest = TestDataFactory.create_weight_record(animal, 215, date.today())
        animal.refresh_from_db()
        self.assertEqual(animal.current_weight_kg, Decimal('215.00'))

        latest.delete()
        animal.refresh_from_db()
        self.assertEqual(animal.current_weight_kg, Decimal('200.00'))

    def test_create_animal_rejects_duplicate_ear_tag(self):
        create_animal(self.farm, {'ear_tag': 'A-1', 'livestock_type': 'goat'})
        with self.assertRaises(AnimalError):
            create_animal(self.farm, {'ear_tag': 'A-1'})

    def test_deleted_animal_frees_ear_tag(self):
        animal = create_animal(self.farm, {'ear_tag': 'A-2'})
        animal.is_deleted = True
        animal.save()
        self.assertEqual(create_animal(self.farm, {'ear_tag': 'A-2'}).ear_tag, 'A-2')

    def test_create_animal_with_initial_weight(self):
        animal = create_animal(self.farm, {'ear_tag': 'A-3'}, initial_weight_kg='180.5')
        animal.refresh_from_db()
        self.assertEqual(animal.current_weight_kg, Decimal('180.50'))
        self.assertEqual(animal.weight_records.get().measurement_method, 'actual')

    def test_populate_weights(self):
        today = date.today()
        calf = TestDataFactory.create_animal(self.farm, birth_date=today - timedelta(days=150))
        weighed = TestDataFactory.create_animal(self.farm, birth_date=today - timedelta(days=150))
        TestDataFactory.create_weight_record(weighed, 95)
        TestDataFactory.create_animal(self.farm, birth_date=None)

        result = populate_weights(self.farm, today=today)
        self.assertEqual(result, {'success': True, 'populated': 1, 'total': 3})

        record = WeightRecord.objects.get(animal=calf)
        self.assertEqual(record.weight_kg, Decimal('80.00'))
        self.assertEqual(record.measurement_method, 'estimated')
        self.assertEqual(record.notes, ESTIMATED_WEIGHT_NOTE)
        calf.refresh_from_db()
        self.assertEqual(calf.current_weight_kg, Decimal('80.00'))

        # Second run has nothing left to fill in
        self.assertEqual(populate_weights(self.farm, today=today)['populated'], 0)


class AnimalAPITests(TestCase):
    """Test animal endpoints"""

    def setUp(self):
        cache.clear()
        self.owner = TestDataFactory.create_user()
        self.farm = TestDataFactory.create_farm(owner=self.owner)
        self.farmhand = TestDataFactory.create_user()
        TestDataFactory.add_member(self.farm, self.farmhand, role='farmhand')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.owner)

    def test_create_animal(self):
        data = {
            'farm_id': self.farm.id,
            'ear_tag': 'COW-1',
            'livestock_type': 'cattle',
            'gender': 'female',
            'initial_weight_kg': '250.00',
        }
        response = self.client.post('/api/v1/animals/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['current_weight_kg'], '250.00')
        self.assertTrue(AuditLog.objects.filter(model_name='Animal', action='create').exists())

    def test_create_duplicate_ear_tag(self):
        TestDataFactory.create_animal(self.farm, ear_tag='COW-2')
        response = self.client.post('/api/v1/animals/', {'farm_id': self.farm.id, 'ear_tag': 'COW-2'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('error', response.data)

    def test_list_animals_paginated(self):
        TestDataFactory.create_animal(self.farm)
        TestDataFactory.create_animal(self.farm)
        TestDataFactory.create_animal(TestDataFactory.create_farm())
        response = self.client.get('/api/v1/animals/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 2)
        self.assertEqual(response.data['page'], 1)

    def test_outsider_cannot_read_animal(self):
        animal = TestDataFactory.create_animal(self.farm)
        self.client.authenticate_user(TestDataFactory.create_user())
        response = self.client.get(f'/api/v1/animals/{animal.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertIn('error', response.data)

    def test_soft_delete(self):
        animal = TestDataFactory.create_animal(self.farm)
        response = self.client.delete(f'/api/v1/animals/{animal.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertTrue(Animal.objects.get(pk=animal.id).is_deleted)

    def test_milking_record_session_alias(self):
        animal = TestDataFactory.create_animal(self.farm)
        data = {'record_date': date.today().isoformat(), 'liters': '6.50', 'session': 'evening'}
        response = self.client.post(f'/api/v1/animals/{animal.id}/records/milkings/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['session'], 'PM')

    def test_farmhand_cannot_write_records(self):
        animal = TestDataFactory.create_animal(self.farm)
        self.client.authenticate_user(self.farmhand)
        data = {'weight_kg': '100.00', 'measurement_date': date.today().isoformat()}
        response = self.client.post(f'/api/v1/animals/{animal.id}/records/weights/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        response = self.client.get(f'/api/v1/animals/{animal.id}/records/weights/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_unknown_record_type(self):
        animal = TestDataFactory.create_animal(self.farm)
        response = self.client.get(f'/api/v1/animals/{animal.id}/records/photos/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_ovr_endpoint(self):
        animal = TestDataFactory.create_animal(self.farm)
        response = self.client.get(f'/api/v1/animals/{animal.id}/ovr/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn(response.data['tier'], ['diamond', 'gold', 'silver', 'bronze'])
        self.assertEqual(response.data['status_aura'], 'green')
        animal.refresh_from_db()
        self.assertEqual(animal.ovr_score, response.data['score'])

    def test_growth_endpoint(self):
        animal = TestDataFactory.create_animal(self.farm)
        TestDataFactory.create_weight_record(animal, 100, date.today() - timedelta(days=20))
        TestDataFactory.create_weight_record(animal, 110, date.today())
        response = self.client.get(f'/api/v1/animals/{animal.id}/growth/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['overall']['adg_grams'], 500)
        self.assertEqual(response.data['overall_display'], '500 g/day')


class PopulateWeightsEndpointTests(TestCase):
    """Test the populate-weights function endpoint"""

    url = '/api/v1/functions/populate-weights/'

    def setUp(self):
        cache.clear()
        self.owner = TestDataFactory.create_user()
        self.farm = TestDataFactory.create_farm(owner=self.owner)
        TestDataFactory.create_animal(self.farm, birth_date=date.today() - timedelta(days=400))
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.owner)

    def test_populate(self):
        response = self.client.post(self.url, {'farmId': self.farm.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data, {'success': True, 'populated': 1, 'total': 1})
        self.assertTrue(AuditLog.objects.filter(action='weight_populate').exists())

    def test_missing_farm_id(self):
        response = self.client.post(self.url, {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'farmId is required')

    def test_unknown_farm(self):
        response = self.client.post(self.url, {'farmId': 999999}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_farmhand_forbidden(self):
        farmhand = TestDataFactory.create_user()
        TestDataFactory.add_member(self.farm, farmhand, role='farmhand')
        self.client.authenticate_user(farmhand)
        response = self.client.post(self.url, {'farmId': self.farm.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    @override_settings(RATE_LIMITS={'populate-weights': (1, 60)})
    def test_rate_limited(self):
        self.client.post(self.url, {'farmId': self.farm.id}, format='json')
        response = self.client.post(self.url, {'farmId': self.farm.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_429_TOO_MANY_REQUESTS)
        self.assertIn('Retry-After', response)
