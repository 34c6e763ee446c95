"""
Test suite for the integrity app
Tests: each consistency check, the repairs, the farm report endpoint and the check_data_integrity command
"""
from datetime import date
from decimal import Decimal
from io import StringIO
from unittest import mock

from django.core.cache import cache
from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase
from rest_framework import status

from farmops.core.models import AuditLog
from farmops.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from farmops.animals.models import Animal
from farmops.feed.models import FeedInventory
from farmops.feed.services import get_feed_summary
from farmops.finance.models import FarmRevenue
from farmops.finance.services import record_milk_sale
from farmops.integrity.checks import (
    check_feed_inventory_cache_sync, check_feed_ledger_sync, check_milk_revenue_sync,
    check_weight_sync, run_all_integrity_checks,
)
from farmops.integrity.repairs import repair_milk_revenue_sync, repair_weight_sync


class IntegrityCheckTests(TestCase):
    """Test the individual checks"""

    def setUp(self):
        cache.clear()
        self.farm = TestDataFactory.create_farm()
        self.cow = TestDataFactory.create_animal(self.farm, ear_tag='COW-1')

    def test_clean_farm_passes(self):
        results = run_all_integrity_checks(self.farm)
        self.assertEqual(
            [r['check_name'] for r in results],
            ['milk_revenue_sync', 'weight_sync', 'feed_ledger_sync', 'feed_inventory_cache_sync'],
        )
        self.assertTrue(all(r['passed'] for r in results))

    def test_milk_sales_with_revenues(self):
        TestDataFactory.create_milking_record(self.cow, '5.00')
        record_milk_sale(self.farm, '40', liters=5)
        result = check_milk_revenue_sync(self.farm)
        self.assertTrue(result['passed'])
        self.assertEqual(result['details'], 'All 1 milk sales have matching revenues')

    def test_milk_revenue_mismatch_and_missing(self):
        first = TestDataFactory.create_milking_record(self.cow, '5.00', record_date='2024-04-01')
        second = TestDataFactory.create_milking_record(self.cow, '4.00', record_date='2024-04-02')
        record_milk_sale(self.farm, '40', record_ids=[first.id, second.id])
        FarmRevenue.objects.filter(linked_milk_log=first).update(amount=Decimal('150.00'))
        FarmRevenue.objects.filter(linked_milk_log=second).delete()

        result = check_milk_revenue_sync(self.farm)
        self.assertFalse(result['passed'])
        self.assertEqual(result['details'], 'Found 1 orphaned sales, 1 amount mismatches')
        by_field = {d['field']: d for d in result['discrepancies']}
        self.assertEqual(by_field['amount_mismatch']['expected'], 200.0)
        self.assertEqual(by_field['amount_mismatch']['actual'], 150.0)
        self.assertEqual(by_field['missing_revenue']['id'], str(second.id))

    def test_duplicate_milk_revenue(self):
        record = TestDataFactory.create_milking_record(self.cow, '5.00')
        record_milk_sale(self.farm, '40', record_ids=[record.id])
        FarmRevenue.objects.create(
            farm=self.farm, source='milk_sale', amount=Decimal('200.00'),
            transaction_date=date.today(), linked_milk_log=record,
        )

        result = check_milk_revenue_sync(self.farm)
        self.assertFalse(result['passed'])
        self.assertEqual(result['details'], 'Found 0 orphaned sales, 0 amount mismatches, 1 duplicate revenues')
        self.assertEqual(result['discrepancies'], [
            {'id': str(record.id), 'field': 'duplicate_revenue', 'expected': 1, 'actual': 2},
        ])

    def test_weight_out_of_sync(self):
        TestDataFactory.create_weight_record(self.cow, '300.00')
        self.assertTrue(check_weight_sync(self.farm)['passed'])

        Animal.objects.filter(pk=self.cow.pk).update(current_weight_kg=Decimal('280.00'))
        result = check_weight_sync(self.farm)
        self.assertFalse(result['passed'])
        self.assertEqual(result['discrepancies'], [
            {'id': str(self.cow.id), 'field': 'animal_COW-1', 'expected': 300.0, 'actual': 280.0},
        ])

    def test_feed_ledger_mismatch(self):
        lot = TestDataFactory.create_feed_lot(self.farm, feed_type='Corn Silage', quantity_kg='50.00')
        self.assertTrue(check_feed_ledger_sync(self.farm)['passed'])

        FeedInventory.objects.filter(pk=lot.pk).update(quantity_kg=Decimal('45.00'))
        result = check_feed_ledger_sync(self.farm)
        self.assertFalse(result['passed'])
        self.assertEqual(result['discrepancies'][0]['field'], 'lot_Corn Silage')
        self.assertEqual(result['discrepancies'][0]['expected'], 50.0)

    def test_lot_without_ledger(self):
        FeedInventory.objects.create(farm=self.farm, feed_type='Rice Bran', quantity_kg=Decimal('5.00'))
        FeedInventory.objects.create(farm=self.farm, feed_type='Empty Sack', quantity_kg=Decimal('0.00'))
        result = check_feed_ledger_sync(self.farm)
        self.assertEqual([d['field'] for d in result['discrepancies']], ['missing_ledger'])

    def test_cache_check_without_cache(self):
        result = check_feed_inventory_cache_sync(self.farm)
        self.assertTrue(result['passed'])
        self.assertEqual(result['details'], 'No cached feed summary')

    def test_stale_cache(self):
        lot = TestDataFactory.create_feed_lot(self.farm, feed_type='Napier Grass', quantity_kg='100.00', category='roughage')
        get_feed_summary(self.farm)
        self.assertTrue(check_feed_inventory_cache_sync(self.farm)['passed'])

        # Queryset updates skip the invalidation signal
        FeedInventory.objects.filter(pk=lot.pk).update(quantity_kg=Decimal('60.00'))
        result = check_feed_inventory_cache_sync(self.farm)
        self.assertFalse(result['passed'])
        self.assertEqual(result['discrepancies'][0]['field'], 'roughage_kg')
        self.assertEqual(result['discrepancies'][0]['expected'], 60.0)
        self.assertEqual(result['discrepancies'][0]['actual'], 100.0)

    def test_small_cache_drift_is_tolerated(self):
        lot = TestDataFactory.create_feed_lot(self.farm, feed_type='Napier Grass', quantity_kg='100.00', category='roughage')
        get_feed_summary(self.farm)
        FeedInventory.objects.filter(pk=lot.pk).update(quantity_kg=Decimal('99.95'))
        self.assertTrue(check_feed_inventory_cache_sync(self.farm)['passed'])

    def test_check_errors_are_reported(self):
        get_feed_summary(self.farm)
        with mock.patch('farmops.integrity.checks.compute_feed_summary', side_effect=RuntimeError('db down')):
            result = check_feed_inventory_cache_sync(self.farm)
        self.assertFalse(result['passed'])
        self.assertEqual(result['details'], 'Error: db down')


class IntegrityRepairTests(TestCase):
    """Test repairing weight and milk revenue drift"""

    def setUp(self):
        cache.clear()
        self.owner = TestDataFactory.create_user()
        self.farm = TestDataFactory.create_farm(owner=self.owner)
        self.cow = TestDataFactory.create_animal(self.farm, ear_tag='COW-1')

    def test_repair_weight_sync(self):
        TestDataFactory.create_weight_record(self.cow, '300.00')
        Animal.objects.filter(pk=self.cow.pk).update(current_weight_kg=Decimal('280.00'))
        unweighed = TestDataFactory.create_animal(self.farm, ear_tag='COW-2')

        self.assertEqual(repair_weight_sync(self.farm), {'check_name': 'weight_sync', 'fixed_count': 1})
        self.cow.refresh_from_db()
        self.assertEqual(self.cow.current_weight_kg, Decimal('300.00'))
        unweighed.refresh_from_db()
        self.assertIsNone(unweighed.current_weight_kg)
        self.assertTrue(check_weight_sync(self.farm)['passed'])
        self.assertEqual(repair_weight_sync(self.farm)['fixed_count'], 0)

    def test_repair_milk_revenues(self):
        first = TestDataFactory.create_milking_record(self.cow, '5.00', record_date='2024-04-01')
        second = TestDataFactory.create_milking_record(self.cow, '4.00', record_date='2024-04-02')
        third = TestDataFactory.create_milking_record(self.cow, '3.00', record_date='2024-04-03')
        record_milk_sale(self.farm, '40', record_ids=[first.id, second.id, third.id])
        FarmRevenue.objects.filter(linked_milk_log=first).update(amount=Decimal('150.00'))
        FarmRevenue.objects.filter(linked_milk_log=second).delete()
        FarmRevenue.objects.create(
            farm=self.farm, source='milk_sale', amount=Decimal('120.00'),
            transaction_date=date(2024, 4, 3), linked_milk_log=third,
        )

        result = repair_milk_revenue_sync(self.farm)
        self.assertEqual(result, {
            'check_name': 'milk_revenue_sync',
            'fixed_count': 3,
            'created': 1,
            'corrected': 1,
            'duplicates_removed': 1,
        })
        self.assertEqual(FarmRevenue.objects.get(linked_milk_log=first).amount, Decimal('200.00'))
        created = FarmRevenue.objects.get(linked_milk_log=second)
        self.assertEqual(created.amount, Decimal('160.00'))
        self.assertEqual(created.transaction_date, date(2024, 4, 2))
        self.assertEqual(created.created_by, self.owner)
        self.assertEqual(FarmRevenue.objects.filter(linked_milk_log=third).count(), 1)
        self.assertTrue(check_milk_revenue_sync(self.farm)['passed'])


class IntegrityReportTests(TestCase):
    """Test the integrity report endpoint and command"""

    def setUp(self):
        cache.clear()
        self.owner = TestDataFactory.create_user()
        self.farm = TestDataFactory.create_farm(owner=self.owner)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.owner)

    def test_owner_report(self):
        response = self.client.get(f'/api/v1/integrity/farms/{self.farm.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['passed'])
        self.assertEqual(response.data['farm_name'], self.farm.name)
        self.assertEqual(len(response.data['checks']), 4)

    def test_farmhand_forbidden(self):
        farmhand = TestDataFactory.create_user()
        TestDataFactory.add_member(self.farm, farmhand)
        self.client.authenticate_user(farmhand)
        response = self.client.get(f'/api/v1/integrity/farms/{self.farm.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_staff_sees_any_farm(self):
        self.client.authenticate_user(TestDataFactory.create_user(is_staff=True))
        response = self.client.get(f'/api/v1/integrity/farms/{self.farm.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        response = self.client.get('/api/v1/integrity/farms/999999/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data, {'error': 'Farm not found'})

    def test_command_passes(self):
        out = StringIO()
        call_command('check_data_integrity', farm_id=self.farm.id, stdout=out)
        self.assertIn('All checks passed', out.getvalue())

    def test_command_lists_discrepancies(self):
        for i in range(7):
            FeedInventory.objects.create(farm=self.farm, feed_type=f'Lot {i}', quantity_kg=Decimal('1.00'))

        out = StringIO()
        call_command('check_data_integrity', farm_id=self.farm.id, stdout=out)
        self.assertIn('... and 2 more (use --show-all)', out.getvalue())
        self.assertIn('1 check(s) failed', out.getvalue())

        out = StringIO()
        call_command('check_data_integrity', farm_id=self.farm.id, show_all=True, stdout=out)
        self.assertNotIn('use --show-all', out.getvalue())

    def test_command_clears_stale_cache(self):
        lot = TestDataFactory.create_feed_lot(self.farm, feed_type='Napier Grass', quantity_kg='100.00', category='roughage')
        get_feed_summary(self.farm)
        FeedInventory.objects.filter(pk=lot.pk).update(quantity_kg=Decimal('60.00'))

        out = StringIO()
        call_command('check_data_integrity', farm_id=self.farm.id, clear_cache=True, stdout=out)
        self.assertIn('1 check(s) failed', out.getvalue())
        self.assertIn(f'Cleared cached feed summary for farm #{self.farm.id}', out.getvalue())
        self.assertTrue(check_feed_inventory_cache_sync(self.farm)['passed'])

    def test_command_unknown_farm(self):
        with self.assertRaises(CommandError):
            call_command('check_data_integrity', farm_id=999999)

    def test_repair_endpoint(self):
        cow = TestDataFactory.create_animal(self.farm, ear_tag='COW-1')
        TestDataFactory.create_weight_record(cow, '300.00')
        Animal.objects.filter(pk=cow.pk).update(current_weight_kg=Decimal('280.00'))

        response = self.client.post(f'/api/v1/integrity/farms/{self.farm.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.authenticate_user(TestDataFactory.create_user(is_staff=True))
        response = self.client.post(f'/api/v1/integrity/farms/{self.farm.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['passed'])
        fixed = {r['check_name']: r['fixed_count'] for r in response.data['repairs']}
        self.assertEqual(fixed, {'milk_revenue_sync': 0, 'weight_sync': 1})
        self.assertTrue(AuditLog.objects.filter(action='integrity_fix', object_id=str(self.farm.id)).exists())

    def test_command_fix(self):
        cow = TestDataFactory.create_animal(self.farm, ear_tag='COW-1')
        TestDataFactory.create_weight_record(cow, '300.00')
        Animal.objects.filter(pk=cow.pk).update(current_weight_kg=Decimal('280.00'))

        out = StringIO()
        call_command('check_data_integrity', farm_id=self.farm.id, fix=True, stdout=out)
        self.assertIn('Repaired weight_sync: 1 fixed', out.getvalue())
        self.assertIn('All checks passed', out.getvalue())
