from decimal import Decimal

from django.test import TestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from hospitality.exceptions import BadRequest, Conflict, Forbidden
from hospitality.testing import authenticate, make_hotel, make_staff
from hotels.models import Staff

from . import services
from .models import InventoryItem, StockStatus, StockTransaction


def make_item(hotel, name='Rice', current='50', minimum='10', maximum=None, **kwargs):
    return InventoryItem.objects.create(
        hotel=hotel, name=name, category='food', unit='kg', purchase_price=Decimal('100'),
        quantity_current=Decimal(current), quantity_minimum=Decimal(minimum),
        quantity_maximum=Decimal(maximum) if maximum is not None else None, **kwargs
    )


class StockStatusTests(TestCase):
    """Derived stock level classification"""

    def setUp(self):
        self.hotel = make_hotel()

    def test_classification(self):
        cases = [
            ('0', StockStatus.OUT_OF_STOCK),
            ('3', StockStatus.CRITICAL),
            ('5', StockStatus.CRITICAL),
            ('8', StockStatus.LOW),
            ('10', StockStatus.LOW),
            ('40', StockStatus.IN_STOCK),
            ('100', StockStatus.OVERSTOCKED),
        ]
        for current, expected in cases:
            item = InventoryItem(hotel=self.hotel, quantity_current=Decimal(current),
                                 quantity_minimum=Decimal('10'), quantity_maximum=Decimal('100'))
            self.assertEqual(item.stock_status, expected, current)

    def test_no_maximum_never_overstocked(self):
        item = InventoryItem(hotel=self.hotel, quantity_current=Decimal('10000'), quantity_minimum=Decimal('10'))
        self.assertEqual(item.stock_status, StockStatus.IN_STOCK)


class StockLedgerTests(TestCase):
    def setUp(self):
        self.hotel = make_hotel()
        self.manager = make_staff(self.hotel)

    def test_opening_stock_is_a_purchase(self):
        item = services.create_inventory_item(self.manager, {
            'name': 'Milk', 'category': 'beverage', 'unit': 'l', 'sku': 'mlk-1',
            'quantity_current': Decimal('20'), 'purchase_price': Decimal('60'),
        })

        self.assertEqual(item.sku, 'MLK-1')
        self.assertIsNotNone(item.last_restocked)
        entry = item.transactions.get()
        self.assertEqual(entry.transaction_type, StockTransaction.Type.PURCHASE)
        self.assertEqual(entry.previous_stock, Decimal('0'))
        self.assertEqual(entry.new_stock, Decimal('20'))
        self.assertEqual(entry.total_price, Decimal('1200'))

    def test_empty_item_has_no_ledger(self):
        item = services.create_inventory_item(self.manager, {
            'name': 'Salt', 'category': 'food', 'unit': 'kg', 'purchase_price': Decimal('20'),
        })
        self.assertFalse(item.transactions.exists())

    def test_duplicate_sku_conflicts(self):
        make_item(self.hotel, sku='RICE-1')
        with self.assertRaises(Conflict):
            services.create_inventory_item(self.manager, {
                'name': 'Rice again', 'category': 'food', 'unit': 'kg', 'sku': 'rice-1',
                'purchase_price': Decimal('90'),
            })

    def test_update_ignores_quantities(self):
        item = make_item(self.hotel)
        item = services.update_inventory_item(self.manager, item.pk, {
            'name': 'Basmati Rice', 'quantity_current': Decimal('999'), 'quantity_minimum': Decimal('1'),
        })
        item.refresh_from_db()
        self.assertEqual(item.name, 'Basmati Rice')
        self.assertEqual(item.quantity_current, Decimal('50'))
        self.assertEqual(item.quantity_minimum, Decimal('10'))

    def test_add_stock(self):
        item = make_item(self.hotel)
        item, entry = services.adjust_stock(self.manager, item.pk, '15', 'add', 'Weekly delivery', cost='90')

        self.assertEqual(item.quantity_current, Decimal('65'))
        self.assertIsNotNone(item.last_restocked)
        self.assertEqual(entry.transaction_type, StockTransaction.Type.PURCHASE)
        self.assertEqual(entry.total_price, Decimal('1350'))
        self.assertEqual(entry.performed_by, self.manager)

    def test_deduct_stock_types(self):
        item = make_item(self.hotel)
        item, entry = services.adjust_stock(self.manager, item.pk, '5', 'deduct', 'Wastage')
        self.assertEqual(entry.transaction_type, StockTransaction.Type.WASTAGE)

        item, entry = services.adjust_stock(self.manager, item.pk, '5', 'deduct', 'Staff meal')
        self.assertEqual(entry.transaction_type, StockTransaction.Type.USAGE)
        self.assertEqual(item.quantity_current, Decimal('40'))
        self.assertEqual(entry.previous_stock, Decimal('45'))

    def test_deduct_beyond_stock_fails(self):
        item = make_item(self.hotel, current='3')
        with self.assertRaises(BadRequest):
            services.adjust_stock(self.manager, item.pk, '4', 'deduct')
        item.refresh_from_db()
        self.assertEqual(item.quantity_current, Decimal('3'))
        self.assertFalse(StockTransaction.objects.exists())

    def test_invalid_adjustments(self):
        item = make_item(self.hotel)
        with self.assertRaises(BadRequest):
            services.adjust_stock(self.manager, item.pk, '0', 'add')
        with self.assertRaises(BadRequest):
            services.adjust_stock(self.manager, item.pk, '1', 'transfer')

    def test_other_hotel_cannot_adjust(self):
        item = make_item(self.hotel)
        outsider = make_staff(make_hotel(code='OTH', name='Other'))
        with self.assertRaises(Forbidden):
            services.adjust_stock(outsider, item.pk, '1', 'add')

    def test_ledger_rows_are_immutable(self):
        item = make_item(self.hotel)
        _, entry = services.adjust_stock(self.manager, item.pk, '1', 'add')

        entry.reason = 'edited'
        with self.assertRaises(ValueError):
            entry.save()
        with self.assertRaises(ValueError):
            entry.delete()
        self.assertEqual(StockTransaction.objects.get().reason, '')

    def test_low_stock_listing(self):
        make_item(self.hotel, name='Rice', current='50')
        make_item(self.hotel, name='Dal', current='10')
        make_item(self.hotel, name='Oil', current='2')
        make_item(make_hotel(code='OTH', name='Other'), name='Sugar', current='1')

        names = [item.name for item in services.low_stock_items(self.manager)]
        self.assertEqual(names, ['Oil', 'Dal'])


class InventoryAPITests(APITestCase):
    def setUp(self):
        self.hotel = make_hotel()
        self.manager = make_staff(self.hotel)
        authenticate(self.client, self.manager)

    def test_create_and_adjust(self):
        response = self.client.post(reverse('inventory_list'), {
            'name': 'Milk', 'category': 'beverage', 'unit': 'l', 'quantity_current': '20',
            'quantity_minimum': '5', 'purchase_price': '60',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        item_id = response.data['data']['id']
        self.assertEqual(response.data['data']['stock_status'], StockStatus.IN_STOCK)

        response = self.client.post(reverse('inventory_adjust', kwargs={'item_id': item_id}),
                                    {'quantity': '16', 'type': 'deduct', 'reason': 'wastage'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['item']['stock_status'], StockStatus.CRITICAL)
        self.assertEqual(response.data['data']['transaction']['transaction_type'], 'wastage')

        response = self.client.get(reverse('inventory_transactions', kwargs={'item_id': item_id}))
        self.assertEqual(response.data['pagination']['totalItems'], 2)

        response = self.client.get(reverse('inventory_low_stock'))
        self.assertEqual(len(response.data['data']), 1)

    def test_patch_does_not_touch_stock(self):
        item = make_item(self.hotel)
        response = self.client.patch(reverse('inventory_detail', kwargs={'item_id': item.pk}),
                                     {'quantity_current': '0', 'notes': 'Top shelf'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(Decimal(response.data['data']['quantity_current']), Decimal('50'))
        self.assertEqual(response.data['data']['notes'], 'Top shelf')

    def test_cashier_cannot_adjust(self):
        item = make_item(self.hotel)
        authenticate(self.client, make_staff(self.hotel, role=Staff.Role.CASHIER))
        response = self.client.post(reverse('inventory_adjust', kwargs={'item_id': item.pk}),
                                    {'quantity': '1', 'type': 'add'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertFalse(response.data['success'])

    def test_duplicate_sku_returns_409(self):
        make_item(self.hotel, sku='RICE-1')
        response = self.client.post(reverse('inventory_list'), {
            'name': 'Rice', 'category': 'food', 'unit': 'kg', 'sku': 'RICE-1', 'purchase_price': '100',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
