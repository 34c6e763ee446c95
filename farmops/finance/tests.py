"""
Test suite for the finance app
Tests: FIFO milk selection, milk sales with linked revenues and the revenue endpoints
"""
from datetime import date, timedelta
from decimal import Decimal
from unittest import mock

from django.core.cache import cache
from django.test import TestCase
from rest_framework import status

from farmops.core.models import AuditLog
from farmops.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from farmops.finance.models import FarmRevenue
from farmops.finance.services import MilkSaleError, record_milk_sale, select_milk_for_sale


class MilkSaleServiceTests(TestCase):
    """Test milk sale bookkeeping"""

    def setUp(self):
        cache.clear()
        self.user = TestDataFactory.create_user()
        self.farm = TestDataFactory.create_farm(owner=self.user)
        self.cow = TestDataFactory.create_animal(self.farm)
        today = date.today()
        self.oldest = TestDataFactory.create_milking_record(self.cow, '4.00', record_date=today - timedelta(days=2))
        self.middle = TestDataFactory.create_milking_record(self.cow, '5.00', record_date=today - timedelta(days=1))
        self.newest = TestDataFactory.create_milking_record(self.cow, '6.00', record_date=today)

    def test_selection_is_fifo_and_never_splits(self):
        selected = select_milk_for_sale(self.farm, Decimal('10'))
        self.assertEqual(selected, [self.oldest, self.middle])

    def test_selection_filters_livestock_type(self):
        goat = TestDataFactory.create_animal(self.farm, livestock_type='goat')
        goat_milk = TestDataFactory.create_milking_record(goat, '1.00', record_date=date.today() - timedelta(days=5))
        self.assertEqual(select_milk_for_sale(self.farm, 10, livestock_type='goat'), [goat_milk])

    def test_sale_by_liters_books_one_revenue_per_record(self):
        result = record_milk_sale(self.farm, '50', liters=Decimal('9'), user=self.user)
        self.assertEqual(result['records_sold'], 2)
        self.assertEqual(result['total_liters'], Decimal('9.00'))
        self.assertEqual(result['total_amount'], Decimal('450.00'))

        self.oldest.refresh_from_db()
        self.assertTrue(self.oldest.is_sold)
        self.assertEqual(self.oldest.sale_amount, Decimal('200.00'))
        revenue = FarmRevenue.objects.get(linked_milk_log=self.oldest)
        self.assertEqual(revenue.source, 'milk_sale')
        self.assertEqual(revenue.amount, self.oldest.sale_amount)
        self.assertFalse(FarmRevenue.objects.filter(linked_milk_log=self.newest).exists())

    def test_sale_by_record_ids(self):
        result = record_milk_sale(self.farm, '40', record_ids=[self.newest.id])
        self.assertEqual(result['total_amount'], Decimal('240.00'))
        self.newest.refresh_from_db()
        self.assertTrue(self.newest.is_sold)

    def test_sold_records_are_not_sold_again(self):
        record_milk_sale(self.farm, '40', record_ids=[self.newest.id])
        with self.assertRaises(MilkSaleError):
            record_milk_sale(self.farm, '40', record_ids=[self.newest.id])
        self.assertEqual(select_milk_for_sale(self.farm, 100), [self.oldest, self.middle])

    def test_concurrent_sale_of_the_same_records(self):
        # Rows read before another request sold them
        stale = select_milk_for_sale(self.farm, Decimal('9'))
        record_milk_sale(self.farm, '50', liters=Decimal('9'))

        with mock.patch('farmops.finance.services.select_milk_for_sale', return_value=stale):
            with self.assertRaises(MilkSaleError) as ctx:
                record_milk_sale(self.farm, '50', liters=Decimal('9'))
        self.assertEqual(ctx.exception.status_code, 409)
        self.assertEqual(FarmRevenue.objects.filter(linked_milk_log=self.oldest).count(), 1)
        self.assertEqual(FarmRevenue.objects.count(), 2)

    def test_records_from_another_farm(self):
        other = TestDataFactory.create_animal(TestDataFactory.create_farm())
        record = TestDataFactory.create_milking_record(other, '3.00')
        with self.assertRaises(MilkSaleError) as ctx:
            record_milk_sale(self.farm, '40', record_ids=[record.id])
        self.assertEqual(ctx.exception.status_code, 404)

    def test_invalid_price(self):
        with self.assertRaises(MilkSaleError):
            record_milk_sale(self.farm, '0', liters=5)

    def test_nothing_fits(self):
        with self.assertRaises(MilkSaleError):
            record_milk_sale(self.farm, '40', liters=Decimal('3'))
        self.assertFalse(FarmRevenue.objects.exists())


class FinanceAPITests(TestCase):
    """Test revenue and milk sale endpoints"""

    def setUp(self):
        cache.clear()
        self.owner = TestDataFactory.create_user()
        self.farm = TestDataFactory.create_farm(owner=self.owner)
        self.cow = TestDataFactory.create_animal(self.farm)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.owner)

    def test_create_revenue(self):
        data = {'farm': self.farm.id, 'source': 'animal_sale', 'amount': '15000.00', 'transaction_date': '2024-05-01'}
        response = self.client.post('/api/v1/revenues/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(AuditLog.objects.filter(model_name='FarmRevenue', action='create').exists())

    def test_linked_milk_log_must_match_farm(self):
        other = TestDataFactory.create_animal(TestDataFactory.create_farm())
        record = TestDataFactory.create_milking_record(other, '3.00')
        data = {
            'farm': self.farm.id, 'source': 'milk_sale', 'amount': '100.00',
            'transaction_date': '2024-05-01', 'linked_milk_log': record.id,
        }
        response = self.client.post('/api/v1/revenues/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('linked_milk_log', response.data['fields'])

    def test_list_revenues_with_total(self):
        FarmRevenue.objects.create(farm=self.farm, source='other', amount=Decimal('100.00'), transaction_date=date(2024, 1, 5))
        FarmRevenue.objects.create(farm=self.farm, source='milk_sale', amount=Decimal('50.00'), transaction_date=date(2024, 2, 5))
        FarmRevenue.objects.create(
            farm=TestDataFactory.create_farm(), source='other', amount=Decimal('999.00'), transaction_date=date(2024, 1, 5)
        )
        response = self.client.get('/api/v1/revenues/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['results']), 2)
        self.assertEqual(response.data['total_amount'], Decimal('150.00'))

        response = self.client.get('/api/v1/revenues/?date_from=2024-02-01')
        self.assertEqual(response.data['total_amount'], Decimal('50.00'))

    def test_farmhand_cannot_delete_revenue(self):
        revenue = FarmRevenue.objects.create(farm=self.farm, amount=Decimal('10.00'), transaction_date=date.today())
        farmhand = TestDataFactory.create_user()
        TestDataFactory.add_member(self.farm, farmhand)
        self.client.authenticate_user(farmhand)
        self.assertEqual(self.client.get(f'/api/v1/revenues/{revenue.id}/').status_code, status.HTTP_200_OK)
        response = self.client.delete(f'/api/v1/revenues/{revenue.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_milk_sale_endpoint(self):
        record = TestDataFactory.create_milking_record(self.cow, '5.00')
        data = {'farm_id': self.farm.id, 'price_per_liter': '45.00', 'record_ids': [record.id]}
        response = self.client.post('/api/v1/milk-sales/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['records_sold'], 1)
        self.assertTrue(AuditLog.objects.filter(action='milk_sale').exists())

    def test_milk_sale_requires_source(self):
        response = self.client.post('/api/v1/milk-sales/', {'farm_id': self.farm.id, 'price_per_liter': '45.00'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Either record_ids or liters is required')
