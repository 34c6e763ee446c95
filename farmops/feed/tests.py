"""
Test suite for the feed app
Tests: lot matching, FIFO deduction, the stock ledger, stock-out projections, cached summaries and endpoints
"""
import math
from datetime import date, timedelta
from decimal import Decimal

from django.core.cache import cache
from django.test import TestCase, SimpleTestCase
from rest_framework import status

from farmops.core.cache_utils import get_cached_feed_summary
from farmops.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from farmops.feed.models import FeedInventory, FeedStockTransaction
from farmops.feed.services import (
    FeedError, adjust_stock, calculate_inventory_value, calculate_stockout_date,
    calculate_total_daily_consumption, compute_feed_summary, deduct_feed_inventory,
    find_inventory_lots, get_feed_summary, normalize_feed_type, restock,
)


class FeedCalculationTests(SimpleTestCase):
    """Test the pure feed calculations"""

    def test_normalize_feed_type(self):
        self.assertEqual(normalize_feed_type('  Corn   Silage '), 'corn silage')
        self.assertEqual(normalize_feed_type(None), '')

    def test_normalize_feed_type_is_idempotent(self):
        samples = [
            None,
            '',
            '   ',
            'Corn Silage',
            '\tNAPIER\tgrass\n',
            'Rice\r\nBran',
            'Dairy Concentrate  18%',
            ' Hay　Bale ',
            'MiXeD   CaSe   Pellets',
            'ÅNGSTRÖM Pellets',
        ]
        for sample in samples:
            with self.subTest(sample=sample):
                once = normalize_feed_type(sample)
                self.assertEqual(normalize_feed_type(once), once)
                self.assertEqual(once, once.strip())
                self.assertNotIn('  ', once)

        self.assertEqual(normalize_feed_type('Dairy Concentrate  18%'), 'dairy concentrate 18%')
        self.assertEqual(normalize_feed_type(' Hay　Bale '), 'hay bale')

    def test_stockout_without_consumption(self):
        result = calculate_stockout_date(100, 0)
        self.assertEqual(result['days_remaining'], math.inf)
        self.assertIsNone(result['stockout_date'])
        self.assertEqual(result['status'], 'healthy')

    def test_stockout_statuses(self):
        today = date(2024, 3, 1)
        self.assertEqual(calculate_stockout_date(100, 1, today=today)['status'], 'healthy')
        self.assertEqual(calculate_stockout_date(100, 3, today=today)['status'], 'warning')
        self.assertEqual(calculate_stockout_date(10, 1, today=today)['status'], 'critical')

    def test_stockout_date(self):
        today = date(2024, 3, 1)
        result = calculate_stockout_date(100, 3, today=today)
        self.assertEqual(result['days_remaining'], 33)
        self.assertEqual(result['stockout_date'], today + timedelta(days=33))

    def test_inventory_value_ignores_missing_cost(self):
        items = [
            {'quantity_kg': Decimal('10'), 'cost_per_unit': Decimal('2')},
            {'quantity_kg': Decimal('5'), 'cost_per_unit': None},
        ]
        self.assertEqual(calculate_inventory_value(items), 20.0)

    def test_total_daily_consumption(self):
        counts = [
            {'livestock_type': 'cattle', 'count': 2},
            {'livestock_type': 'goat', 'count': 4},
            {'livestock_type': 'llama', 'count': 1},
        ]
        # 2*12 + 4*1.5 + 1*10 (default rate)
        self.assertEqual(calculate_total_daily_consumption(counts), 40.0)


class FeedMatchingTests(TestCase):
    """Test the cascading lot lookup"""

    def setUp(self):
        cache.clear()
        self.farm = TestDataFactory.create_farm()

    def test_exact_match_is_case_insensitive(self):
        lot = TestDataFactory.create_feed_lot(self.farm, feed_type='Corn Silage')
        lots, strategy = find_inventory_lots(self.farm, '  corn  silage')
        self.assertEqual(strategy, 'exact')
        self.assertEqual(lots, [lot])

    def test_contains_match(self):
        lot = TestDataFactory.create_feed_lot(self.farm, feed_type='Corn Silage')
        lots, strategy = find_inventory_lots(self.farm, 'silage')
        self.assertEqual(strategy, 'contains')
        self.assertEqual(lots, [lot])

    def test_hay_matches_bales(self):
        lot = TestDataFactory.create_feed_lot(self.farm, feed_type='Napier Bale', category='roughage')
        lots, strategy = find_inventory_lots(self.farm, 'hay')
        self.assertEqual(strategy, 'hay_bale')
        self.assertEqual(lots, [lot])

    def test_concentrate_match(self):
        lot = TestDataFactory.create_feed_lot(self.farm, feed_type='Concentrate 18%')
        lots, strategy = find_inventory_lots(self.farm, 'dairy concentrate mix')
        self.assertEqual(strategy, 'concentrate')
        self.assertEqual(lots, [lot])

    def test_first_word_match(self):
        lot = TestDataFactory.create_feed_lot(self.farm, feed_type='Molasses')
        lots, strategy = find_inventory_lots(self.farm, 'molasses liquid')
        self.assertEqual(strategy, 'first_word')
        self.assertEqual(lots, [lot])

    def test_short_first_word_is_not_used(self):
        TestDataFactory.create_feed_lot(self.farm, feed_type='Oat Grain')
        lots, strategy = find_inventory_lots(self.farm, 'oat straw')
        self.assertEqual(lots, [])
        self.assertIsNone(strategy)

    def test_empty_lots_are_skipped(self):
        TestDataFactory.create_feed_lot(self.farm, feed_type='Corn Silage', quantity_kg='0')
        lots, strategy = find_inventory_lots(self.farm, 'corn silage')
        self.assertEqual(lots, [])
        self.assertIsNone(strategy)

    def test_other_farms_are_ignored(self):
        TestDataFactory.create_feed_lot(TestDataFactory.create_farm(), feed_type='Corn Silage')
        lots, _ = find_inventory_lots(self.farm, 'corn silage')
        self.assertEqual(lots, [])

    def test_lots_are_oldest_first(self):
        first = TestDataFactory.create_feed_lot(self.farm, feed_type='Corn Silage')
        second = TestDataFactory.create_feed_lot(self.farm, feed_type='Corn Silage')
        lots, _ = find_inventory_lots(self.farm, 'corn silage')
        self.assertEqual(lots, [first, second])


class FeedDeductionTests(TestCase):
    """Test FIFO deduction and the ledger it writes"""

    def setUp(self):
        cache.clear()
        self.user = TestDataFactory.create_user()
        self.farm = TestDataFactory.create_farm(owner=self.user)
        self.older = TestDataFactory.create_feed_lot(self.farm, feed_type='Corn Silage', quantity_kg='30.00')
        self.newer = TestDataFactory.create_feed_lot(self.farm, feed_type='Corn Silage', quantity_kg='50.00')

    def test_oldest_lot_is_used_first(self):
        summary = deduct_feed_inventory(self.farm, 'Corn Silage', Decimal('40'), user=self.user)
        self.older.refresh_from_db()
        self.newer.refresh_from_db()
        self.assertEqual(self.older.quantity_kg, Decimal('0.00'))
        self.assertEqual(self.newer.quantity_kg, Decimal('40.00'))
        self.assertEqual(summary['matched_strategy'], 'exact')
        self.assertEqual(summary['deducted_kg'], 40.0)
        self.assertEqual(summary['remaining_kg'], 0.0)
        self.assertEqual(len(summary['transactions']), 2)

    def test_ledger_balances_follow_lots(self):
        deduct_feed_inventory(self.farm, 'Corn Silage', 40)
        entries = FeedStockTransaction.objects.filter(transaction_type='consumption').order_by('id')
        self.assertEqual([e.quantity_change_kg for e in entries], [Decimal('-30.00'), Decimal('-10.00')])
        self.assertEqual([e.balance_after for e in entries], [Decimal('0.00'), Decimal('40.00')])
        self.assertTrue(entries[0].notes.startswith('Bulk feeding: 40'))

    def test_shortfall_is_reported(self):
        summary = deduct_feed_inventory(self.farm, 'Corn Silage', 100)
        self.assertEqual(summary['deducted_kg'], 80.0)
        self.assertEqual(summary['remaining_kg'], 20.0)
        self.assertFalse(FeedInventory.objects.filter(farm=self.farm, quantity_kg__gt=0).exists())

    def test_unknown_feed_deducts_nothing(self):
        summary = deduct_feed_inventory(self.farm, 'Pellets', 10)
        self.assertIsNone(summary['matched_strategy'])
        self.assertEqual(summary['deducted_kg'], 0.0)
        self.assertEqual(summary['remaining_kg'], 10.0)
        self.assertNotIn('error', summary)

    def test_zero_quantity_is_a_no_op(self):
        summary = deduct_feed_inventory(self.farm, 'Corn Silage', 0)
        self.assertEqual(summary['transactions'], [])
        self.assertFalse(FeedStockTransaction.objects.filter(transaction_type='consumption').exists())

    def test_custom_note(self):
        deduct_feed_inventory(self.farm, 'Corn Silage', 5, note='Offline sync: Bulk feeding 2 animals')
        entry = FeedStockTransaction.objects.get(transaction_type='consumption')
        self.assertEqual(entry.notes, 'Offline sync: Bulk feeding 2 animals')


class FeedStockTests(TestCase):
    """Test lot creation, restocking and count adjustments"""

    def setUp(self):
        cache.clear()
        self.farm = TestDataFactory.create_farm()

    def test_add_stock_writes_opening_entry(self):
        lot = TestDataFactory.create_feed_lot(self.farm, feed_type='  Rice   Bran ', quantity_kg='25.00')
        self.assertEqual(lot.feed_type, 'Rice Bran')
        entry = lot.transactions.get()
        self.assertEqual(entry.transaction_type, 'addition')
        self.assertEqual(entry.balance_after, Decimal('25.00'))

    def test_add_stock_requires_feed_type(self):
        with self.assertRaises(FeedError):
            TestDataFactory.create_feed_lot(self.farm, feed_type='   ')

    def test_restock(self):
        lot = TestDataFactory.create_feed_lot(self.farm, quantity_kg='10.00')
        lot, entry = restock(lot.id, '15.50')
        self.assertEqual(lot.quantity_kg, Decimal('25.50'))
        self.assertEqual(entry.quantity_change_kg, Decimal('15.50'))
        self.assertEqual(entry.balance_after, Decimal('25.50'))

    def test_restock_rejects_non_positive(self):
        lot = TestDataFactory.create_feed_lot(self.farm)
        with self.assertRaises(FeedError):
            restock(lot.id, 0)

    def test_adjust_stock_records_difference(self):
        lot = TestDataFactory.create_feed_lot(self.farm, quantity_kg='40.00')
        lot, entry = adjust_stock(lot.id, '32.00')
        self.assertEqual(entry.transaction_type, 'adjustment')
        self.assertEqual(entry.quantity_change_kg, Decimal('-8.00'))
        self.assertEqual(entry.balance_after, Decimal('32.00'))

    def test_adjust_stock_rejects_negative(self):
        lot = TestDataFactory.create_feed_lot(self.farm)
        with self.assertRaises(FeedError):
            adjust_stock(lot.id, -1)


class FeedSummaryTests(TestCase):
    """Test summary aggregation and its cache"""

    def setUp(self):
        cache.clear()
        self.farm = TestDataFactory.create_farm()
        TestDataFactory.create_animal(self.farm)
        TestDataFactory.create_animal(self.farm)
        self.today = date.today()
        TestDataFactory.create_feed_lot(
            self.farm, feed_type='Concentrate 18%', quantity_kg='80.00', category='concentrates',
            cost_per_unit=Decimal('2.00'), reorder_threshold=Decimal('100.00'),
            expiry_date=self.today + timedelta(days=10),
        )
        TestDataFactory.create_feed_lot(self.farm, feed_type='Mineral Block', quantity_kg='10.00', category='minerals')
        TestDataFactory.create_feed_lot(self.farm, feed_type='Napier Grass', quantity_kg='200.00', category=None)

    def test_compute_feed_summary(self):
        summary = compute_feed_summary(self.farm, today=self.today)
        self.assertEqual(summary['item_count'], 3)
        self.assertEqual(summary['total_kg'], 290.0)
        self.assertEqual(summary['concentrate_kg'], 80.0)
        self.assertEqual(summary['roughage_kg'], 200.0)
        self.assertEqual(summary['minerals_kg'], 10.0)
        self.assertEqual(summary['daily_consumption_kg'], 24.0)
        # 200 / (24 * 0.7) and 90 / (24 * 0.3)
        self.assertEqual(summary['roughage_days'], 11)
        self.assertEqual(summary['concentrate_days'], 12)
        self.assertEqual(summary['feed_stock_days'], 11)
        self.assertEqual(summary['stockout_status'], 'critical')
        self.assertEqual(summary['stockout_date'], (self.today + timedelta(days=12)).isoformat())
        self.assertEqual(summary['total_value'], 160.0)
        self.assertEqual(summary['expiring_count'], 1)
        self.assertEqual(summary['low_stock_count'], 1)

    def test_summary_without_animals(self):
        farm = TestDataFactory.create_farm()
        TestDataFactory.create_feed_lot(farm, quantity_kg='50.00')
        summary = compute_feed_summary(farm)
        self.assertIsNone(summary['roughage_days'])
        self.assertIsNone(summary['stockout_date'])
        self.assertEqual(summary['stockout_status'], 'healthy')

    def test_summary_is_cached(self):
        summary = get_feed_summary(self.farm)
        self.assertEqual(get_cached_feed_summary(self.farm.id), summary)

    def test_lot_change_invalidates_cache(self):
        get_feed_summary(self.farm)
        TestDataFactory.create_feed_lot(self.farm, quantity_kg='5.00')
        self.assertIsNone(get_cached_feed_summary(self.farm.id))
        self.assertEqual(get_feed_summary(self.farm)['item_count'], 4)

    def test_herd_change_invalidates_cache(self):
        get_feed_summary(self.farm)
        TestDataFactory.create_animal(self.farm)
        self.assertIsNone(get_cached_feed_summary(self.farm.id))


class FeedAPITests(TestCase):
    """Test feed inventory endpoints"""

    def setUp(self):
        cache.clear()
        self.owner = TestDataFactory.create_user()
        self.farm = TestDataFactory.create_farm(owner=self.owner)
        self.farmhand = TestDataFactory.create_user()
        TestDataFactory.add_member(self.farm, self.farmhand, role='farmhand')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.owner)

    def test_list_requires_farm(self):
        response = self.client.get('/api/v1/feed-inventory/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'farm query parameter is required')

    def test_list_filters(self):
        TestDataFactory.create_feed_lot(self.farm, feed_type='Napier Grass', category=None)
        TestDataFactory.create_feed_lot(self.farm, feed_type='Concentrate 18%', quantity_kg='0')
        response = self.client.get(f'/api/v1/feed-inventory/?farm={self.farm.id}&category=roughage')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([lot['feed_type'] for lot in response.data], ['Napier Grass'])

        response = self.client.get(f'/api/v1/feed-inventory/?farm={self.farm.id}&in_stock=false')
        self.assertEqual([lot['feed_type'] for lot in response.data], ['Concentrate 18%'])

    def test_create_lot(self):
        data = {'farm_id': self.farm.id, 'feed_type': 'Rice Bran', 'quantity_kg': '60.00', 'category': 'concentrates'}
        response = self.client.post('/api/v1/feed-inventory/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['quantity_kg'], '60.00')
        self.assertEqual(FeedStockTransaction.objects.filter(feed_inventory_id=response.data['id']).count(), 1)

    def test_farmhand_cannot_create_lot(self):
        self.client.authenticate_user(self.farmhand)
        data = {'farm_id': self.farm.id, 'feed_type': 'Rice Bran', 'quantity_kg': '60.00'}
        response = self.client.post('/api/v1/feed-inventory/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertIn('error', response.data)

    def test_farmhand_can_read(self):
        lot = TestDataFactory.create_feed_lot(self.farm)
        self.client.authenticate_user(self.farmhand)
        response = self.client.get(f'/api/v1/feed-inventory/{lot.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_patch_does_not_touch_quantity(self):
        lot = TestDataFactory.create_feed_lot(self.farm, quantity_kg='20.00')
        response = self.client.patch(
            f'/api/v1/feed-inventory/{lot.id}/', {'supplier': 'Co-op', 'quantity_kg': '999'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        lot.refresh_from_db()
        self.assertEqual(lot.supplier, 'Co-op')
        self.assertEqual(lot.quantity_kg, Decimal('20.00'))

    def test_restock_endpoint(self):
        lot = TestDataFactory.create_feed_lot(self.farm, quantity_kg='20.00')
        response = self.client.post(f'/api/v1/feed-inventory/{lot.id}/restock/', {'quantity_kg': '5.00'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['balance_after'], '25.00')

    def test_adjust_endpoint(self):
        lot = TestDataFactory.create_feed_lot(self.farm, quantity_kg='20.00')
        response = self.client.post(f'/api/v1/feed-inventory/{lot.id}/adjust/', {'new_quantity_kg': '18.00'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['quantity_change_kg'], '-2.00')

    def test_transactions_list(self):
        lot = TestDataFactory.create_feed_lot(self.farm, quantity_kg='20.00')
        restock(lot.id, 5)
        response = self.client.get(f'/api/v1/farms/{self.farm.id}/feed-transactions/?transaction_type=addition')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 2)

    def test_summary_endpoint(self):
        TestDataFactory.create_feed_lot(self.farm, quantity_kg='20.00')
        response = self.client.get(f'/api/v1/farms/{self.farm.id}/feed-summary/?refresh=1')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['item_count'], 1)
