from datetime import timedelta
from decimal import Decimal
from io import StringIO
from unittest import mock

from django.core.management import CommandError, call_command
from django.test import TestCase, override_settings
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from hospitality.exceptions import BadRequest, Forbidden, NotFound
from hospitality.testing import authenticate, make_hotel, make_staff
from hotels.models import Staff
from inventory.models import InventoryItem, StockTransaction
from notifications import sink
from notifications.sink import EventSink
from rooms.models import Booking, BookingStatus, Room, RoomStatus

from . import services
from .models import (
    MenuCategory, MenuItem, MenuItemVariant, MenuSubCategory, Order, OrderPaymentStatus, OrderStatus,
    RecipeIngredient, Table, TableStatus,
)


class MenuFixtureMixin:
    def make_menu(self):
        self.hotel = make_hotel()
        self.cashier = make_staff(self.hotel, role=Staff.Role.CASHIER)
        self.category = MenuCategory.objects.create(hotel=self.hotel, name='Beverages')
        self.chai = MenuItem.objects.create(hotel=self.hotel, category=self.category, name='Masala Chai',
                                            price=Decimal('40'))
        MenuItemVariant.objects.create(menu_item=self.chai, name='Large', price=Decimal('60'))
        self.milk = InventoryItem.objects.create(hotel=self.hotel, name='Milk', category='beverage', unit='l',
                                                 quantity_current=Decimal('10'), purchase_price=Decimal('60'))
        RecipeIngredient.objects.create(menu_item=self.chai, inventory_item=self.milk,
                                        quantity=Decimal('2'), unit='l')
        self.table = Table.objects.create(hotel=self.hotel, table_number='t1')

    def cart(self, quantity=1, variant=None, menu_item=None):
        line = {'menu_item': (menu_item or self.chai).pk, 'quantity': quantity}
        if variant:
            line['variant'] = variant
        return [line]


class MenuItemTests(MenuFixtureMixin, TestCase):
    def setUp(self):
        self.make_menu()

    def test_can_order_needs_available_and_active(self):
        self.assertTrue(self.chai.can_order())
        self.chai.is_available = False
        self.assertFalse(self.chai.can_order())
        self.chai.is_available = True
        self.chai.is_active = False
        self.assertFalse(self.chai.can_order())

    def test_get_price_falls_back_to_base_price(self):
        self.assertEqual(self.chai.get_price('Large'), Decimal('60'))
        self.assertEqual(self.chai.get_price('Jumbo'), Decimal('40'))
        self.assertEqual(self.chai.get_price(), Decimal('40'))

    def test_moving_category_drops_foreign_subcategory(self):
        hot = MenuSubCategory.objects.create(hotel=self.hotel, category=self.category, name='Hot')
        self.chai.subcategory = hot
        self.chai.save()
        desserts = MenuCategory.objects.create(hotel=self.hotel, name='Desserts')

        item = services.update_menu_item(make_staff(self.hotel), self.chai.pk, {'category': desserts})
        item.refresh_from_db()
        self.assertEqual(item.category, desserts)
        self.assertIsNone(item.subcategory)

    def test_subcategory_must_match_category(self):
        hot = MenuSubCategory.objects.create(hotel=self.hotel, category=self.category, name='Hot')
        desserts = MenuCategory.objects.create(hotel=self.hotel, name='Desserts')

        with self.assertRaises(BadRequest):
            services.update_menu_item(make_staff(self.hotel), self.chai.pk,
                                      {'category': desserts, 'subcategory': hot})
        self.chai.refresh_from_db()
        self.assertEqual(self.chai.category, self.category)


@override_settings(GST_RATE=Decimal('5'))
class OrderServiceTests(MenuFixtureMixin, TestCase):
    def setUp(self):
        self.make_menu()

    def order(self, **data):
        data.setdefault('order_type', 'takeaway')
        data.setdefault('items', self.cart())
        return services.create_order(self.cashier, data)

    def test_order_pricing_and_number(self):
        order = self.order(items=self.cart(quantity=3, variant='Large'))

        self.assertRegex(order.order_number, r'^ORD\d{9}$')
        self.assertEqual(order.subtotal, Decimal('180'))
        self.assertEqual(order.tax, Decimal('9'))
        self.assertEqual(order.total, Decimal('189'))
        self.assertEqual(order.status, OrderStatus.PENDING)
        self.assertEqual(order.payment_status, OrderPaymentStatus.UNPAID)

        self.chai.refresh_from_db()
        self.assertEqual(self.chai.total_orders, 3)

    def test_tax_is_rounded_up(self):
        cheap = MenuItem.objects.create(hotel=self.hotel, category=self.category, name='Biscuit',
                                        price=Decimal('15'))
        order = self.order(items=self.cart(menu_item=cheap))
        # 5% of 15 = 0.75
        self.assertEqual(order.tax, Decimal('1'))
        self.assertEqual(order.total, Decimal('16'))

    def test_lines_are_frozen(self):
        order = self.order()
        self.chai.price = Decimal('99')
        self.chai.name = 'Renamed'
        self.chai.save()

        line = order.items.get()
        self.assertEqual(line.price, Decimal('40'))
        self.assertEqual(line.name, 'Masala Chai')

    def test_unavailable_item_is_rejected(self):
        self.chai.is_available = False
        self.chai.save()
        with self.assertRaises(BadRequest):
            self.order()
        self.assertFalse(Order.objects.exists())

    def test_item_from_another_hotel_is_not_found(self):
        other = make_hotel(code='OTH', name='Other')
        category = MenuCategory.objects.create(hotel=other, name='Food')
        foreign = MenuItem.objects.create(hotel=other, category=category, name='Dosa', price=Decimal('80'))
        with self.assertRaises(NotFound):
            self.order(items=self.cart(menu_item=foreign))

    def test_dine_in_occupies_table(self):
        order = self.order(order_type='dine-in', table_number='T1')
        self.table.refresh_from_db()
        self.assertEqual(order.table, self.table)
        self.assertEqual(self.table.status, TableStatus.OCCUPIED)

        with self.assertRaises(NotFound):
            self.order(order_type='dine-in', table_number='T99')

    def test_room_service_needs_room_of_the_hotel(self):
        with self.assertRaises(BadRequest):
            self.order(order_type='room-service')

        room = Room.objects.create(hotel=self.hotel, room_number='101', base_price=Decimal('1000'))
        order = self.order(order_type='room-service', room=room.pk)
        self.assertEqual(order.room, room)

    def test_payment_at_creation_serves_order(self):
        order = self.order(payment_mode='CASH')
        self.assertEqual(order.payment_status, OrderPaymentStatus.PAID)
        self.assertEqual(order.status, OrderStatus.SERVED)
        self.assertEqual(order.paid_by, self.cashier)

    def test_status_lifecycle_with_ready_pass_through(self):
        order = self.order()
        order = services.update_order_status(self.cashier, order.pk, OrderStatus.PREPARING)
        self.assertEqual(order.prepared_by, self.cashier)
        self.assertIsNotNone(order.preparing_at)

        order = services.update_order_status(self.cashier, order.pk, OrderStatus.READY)
        self.assertEqual(order.status, OrderStatus.SERVED)
        self.assertIsNotNone(order.ready_at)
        self.assertIsNotNone(order.served_at)
        self.assertEqual(order.served_by, self.cashier)

    def test_illegal_transitions(self):
        order = self.order()
        with self.assertRaises(BadRequest):
            services.update_order_status(self.cashier, order.pk, OrderStatus.SERVED)
        with self.assertRaises(BadRequest):
            services.update_order_status(self.cashier, order.pk, OrderStatus.COMPLETED)

        services.update_order_status(self.cashier, order.pk, OrderStatus.CANCELLED)
        with self.assertRaises(BadRequest):
            services.update_order_status(self.cashier, order.pk, OrderStatus.PREPARING)

    def test_served_order_cannot_be_cancelled(self):
        order = self.order(payment_mode='UPI')
        with self.assertRaises(BadRequest):
            services.update_order_status(self.cashier, order.pk, OrderStatus.CANCELLED)

    def test_kitchen_staff_cannot_cancel(self):
        cook = make_staff(self.hotel, role=Staff.Role.KITCHEN_STAFF)
        order = self.order()
        with self.assertRaises(Forbidden):
            services.update_order_status(cook, order.pk, OrderStatus.CANCELLED)
        order = services.update_order_status(cook, order.pk, OrderStatus.PREPARING)
        self.assertEqual(order.status, OrderStatus.PREPARING)

    def test_payment_rules(self):
        order = self.order()
        order = services.mark_order_paid(self.cashier, order.pk, 'CARD')
        self.assertEqual(order.status, OrderStatus.SERVED)
        self.assertEqual(order.payment_mode, 'CARD')
        self.assertIsNotNone(order.paid_at)

        with self.assertRaises(BadRequest):
            services.mark_order_paid(self.cashier, order.pk, 'CASH')

        cancelled = self.order()
        services.update_order_status(self.cashier, cancelled.pk, OrderStatus.CANCELLED)
        with self.assertRaises(BadRequest):
            services.mark_order_paid(self.cashier, cancelled.pk, 'CASH')

        with self.assertRaises(BadRequest):
            services.mark_order_paid(self.cashier, self.order().pk, 'CHEQUE')

    def test_checkout_requires_payment(self):
        order = self.order()
        with self.assertRaises(BadRequest):
            services.checkout_order(self.cashier, order.pk)
        self.milk.refresh_from_db()
        self.assertEqual(self.milk.quantity_current, Decimal('10'))

    def test_checkout_deducts_inventory(self):
        order = self.order(items=self.cart(quantity=3))
        services.mark_order_paid(self.cashier, order.pk, 'CASH')

        order = services.checkout_order(self.cashier, order.pk)

        self.assertEqual(order.status, OrderStatus.COMPLETED)
        self.assertIsNotNone(order.completed_at)
        self.milk.refresh_from_db()
        self.assertEqual(self.milk.quantity_current, Decimal('4'))
        self.assertIsNotNone(self.milk.last_used)

        ledger = StockTransaction.objects.filter(inventory_item=self.milk, transaction_type='sale')
        self.assertEqual(ledger.count(), 1)
        entry = ledger.get()
        self.assertEqual(entry.previous_stock - entry.new_stock, Decimal('6'))
        self.assertEqual(entry.reference_type, 'order')
        self.assertEqual(entry.reference_number, order.order_number)

        with self.assertRaises(BadRequest):
            services.checkout_order(self.cashier, order.pk)

    def test_shortage_leaves_every_item_untouched(self):
        sugar = InventoryItem.objects.create(hotel=self.hotel, name='Sugar', category='food', unit='kg',
                                             quantity_current=Decimal('1'), purchase_price=Decimal('45'))
        RecipeIngredient.objects.create(menu_item=self.chai, inventory_item=sugar,
                                        quantity=Decimal('0.5'), unit='kg')
        order = self.order(items=self.cart(quantity=3))
        services.mark_order_paid(self.cashier, order.pk, 'CASH')

        with self.assertRaises(BadRequest) as ctx:
            services.checkout_order(self.cashier, order.pk)

        self.assertIn('Sugar', str(ctx.exception.detail))
        self.milk.refresh_from_db()
        sugar.refresh_from_db()
        self.assertEqual(self.milk.quantity_current, Decimal('10'))
        self.assertEqual(sugar.quantity_current, Decimal('1'))
        self.assertFalse(StockTransaction.objects.exists())
        order.refresh_from_db()
        self.assertEqual(order.status, OrderStatus.SERVED)

    def test_checkout_releases_table_once_no_orders_remain(self):
        first = self.order(order_type='dine-in', table_number='T1', payment_mode='CASH')
        second = self.order(order_type='dine-in', table_number='T1')

        services.checkout_order(self.cashier, first.pk)
        self.table.refresh_from_db()
        self.assertEqual(self.table.status, TableStatus.OCCUPIED)

        services.update_order_status(self.cashier, second.pk, OrderStatus.CANCELLED)
        self.table.refresh_from_db()
        self.assertEqual(self.table.status, TableStatus.AVAILABLE)

    def test_other_hotel_cannot_see_order(self):
        order = self.order()
        outsider = make_staff(make_hotel(code='OTH', name='Other'))
        with self.assertRaises(Forbidden):
            services.get_order(outsider, order.pk)

    def test_events_follow_commit(self):
        with mock.patch.object(EventSink, 'publish', return_value=True) as publish:
            with self.captureOnCommitCallbacks(execute=True):
                order = self.order(order_type='dine-in', table_number='T1')
            with self.captureOnCommitCallbacks(execute=True):
                services.mark_order_paid(self.cashier, order.pk, 'CASH')

        events = [call.args[0] for call in publish.call_args_list]
        self.assertEqual(events, [sink.TABLE_UPDATED, sink.ORDER_CREATED, sink.ORDER_PAID])

    def test_nothing_is_published_for_rejected_work(self):
        self.chai.is_available = False
        self.chai.save()
        with mock.patch.object(EventSink, 'publish', return_value=True) as publish:
            with self.captureOnCommitCallbacks(execute=True):
                with self.assertRaises(BadRequest):
                    self.order()
        publish.assert_not_called()


@override_settings(GST_RATE=Decimal('5'))
class PublicOrderTests(MenuFixtureMixin, TestCase):
    def setUp(self):
        self.make_menu()

    def place(self, **data):
        payload = {
            'order_type': 'dine-in',
            'table_number': 'T1',
            'customer_name': 'Ravi',
            'customer_phone': '9876543210',
            'items': self.cart(quantity=2),
        }
        payload.update(data)
        return services.place_public_order(self.hotel.code.lower(), payload)

    def test_public_dine_in_reserves_table_until_paid(self):
        order = self.place()
        self.table.refresh_from_db()
        self.assertTrue(order.is_public_order)
        self.assertIsNone(order.created_by)
        self.assertEqual(self.table.status, TableStatus.RESERVED)

        order = services.mark_order_paid(self.cashier, order.pk, 'CASH')
        self.table.refresh_from_db()
        self.assertEqual(order.status, OrderStatus.SERVED)
        self.assertEqual(self.table.status, TableStatus.OCCUPIED)

    def test_first_status_change_confirms_table(self):
        order = self.place()
        services.update_order_status(self.cashier, order.pk, OrderStatus.PREPARING)
        self.table.refresh_from_db()
        self.assertEqual(self.table.status, TableStatus.OCCUPIED)

    def test_cancelling_pending_order_frees_table_directly(self):
        order = self.place()
        with mock.patch.object(EventSink, 'publish', return_value=True) as publish:
            with self.captureOnCommitCallbacks(execute=True):
                services.update_order_status(self.cashier, order.pk, OrderStatus.CANCELLED, 'Guest left')

        table_states = [call.args[1]['status'] for call in publish.call_args_list
                        if call.args[0] == sink.TABLE_UPDATED]
        self.assertEqual(table_states, [TableStatus.AVAILABLE])
        self.table.refresh_from_db()
        self.assertEqual(self.table.status, TableStatus.AVAILABLE)

    def test_reserved_table_cannot_take_another_public_order(self):
        self.place()
        with self.assertRaises(BadRequest):
            self.place()

    def test_hotel_tax_rate_overrides_gst(self):
        self.hotel.tax_rate = Decimal('18')
        self.hotel.save()
        order = self.place()
        # 80 * 18% = 14.4
        self.assertEqual(order.tax, Decimal('15'))
        self.assertEqual(order.total, Decimal('95'))

    def test_inactive_hotel_is_not_found(self):
        self.hotel.status = 'inactive'
        self.hotel.save()
        with self.assertRaises(NotFound):
            self.place()

    def test_room_service_needs_occupied_room(self):
        room = Room.objects.create(hotel=self.hotel, room_number='101', base_price=Decimal('1000'))
        with self.assertRaises(BadRequest):
            self.place(order_type='room-service', room_number='101', table_number='')

        booking = Booking.objects.create(
            booking_number='BKG00000001', hotel=self.hotel, room=room, guest_name='Guest',
            guest_phone='9000000000', check_in=timezone.now(), check_out=timezone.now() + timedelta(days=1),
            room_charges=0, subtotal=0, tax=0, total=0, status=BookingStatus.CHECKED_IN,
        )
        Room.objects.filter(pk=room.pk).update(status=RoomStatus.OCCUPIED, current_booking=booking)

        order = self.place(order_type='room-service', room_number='101', table_number='')
        self.assertEqual(order.room, room)
        self.assertEqual(order.booking, booking)

    def test_track_order(self):
        order = self.place()
        self.assertEqual(services.track_public_order(self.hotel.code, order.order_number), order)
        with self.assertRaises(NotFound):
            services.track_public_order(self.hotel.code, 'ORD000000000')


@override_settings(GST_RATE=Decimal('5'))
class OrderAPITests(MenuFixtureMixin, APITestCase):
    """Order endpoints end to end"""

    def setUp(self):
        self.make_menu()
        authenticate(self.client, self.cashier)

    def test_public_flow(self):
        self.client.defaults.pop('HTTP_X_API_KEY')
        url = reverse('public_order_create', kwargs={'hotel_code': self.hotel.code})
        response = self.client.post(url, {
            'order_type': 'dine-in', 'table_number': 'T1', 'customer_name': 'Ravi',
            'customer_phone': '9876543210', 'items': self.cart(quantity=2),
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        order_number = response.data['data']['order_number']
        self.assertEqual(Decimal(response.data['data']['total']), Decimal('84'))

        track_url = reverse('public_order_track', kwargs={'hotel_code': self.hotel.code,
                                                          'order_number': order_number})
        response = self.client.get(track_url)
        self.assertEqual(response.data['data']['status'], OrderStatus.PENDING)

        authenticate(self.client, self.cashier)
        order = Order.objects.get(order_number=order_number)
        response = self.client.patch(reverse('order_payment', kwargs={'order_id': order.pk}),
                                     {'payment_mode': 'CASH'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['status'], OrderStatus.SERVED)

        response = self.client.post(reverse('order_checkout', kwargs={'order_id': order.pk}))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['status'], OrderStatus.COMPLETED)
        self.table.refresh_from_db()
        self.assertEqual(self.table.status, TableStatus.AVAILABLE)

    def test_public_menu(self):
        MenuItem.objects.create(hotel=self.hotel, category=self.category, name='Cold Coffee',
                                price=Decimal('90'), is_available=False)
        snacks = MenuCategory.objects.create(hotel=self.hotel, name='Snacks', display_order=1)
        MenuItem.objects.create(hotel=self.hotel, category=snacks, name='Samosa', price=Decimal('20'))
        empty = MenuCategory.objects.create(hotel=self.hotel, name='Desserts')
        MenuItem.objects.create(hotel=self.hotel, category=empty, name='Kulfi', price=Decimal('50'),
                                is_active=False)

        self.client.defaults.clear()
        response = self.client.get(reverse('public_menu', kwargs={'hotel_code': 'grd'}))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        data = response.data['data']
        self.assertEqual([section['category']['name'] for section in data['menu']], ['Beverages', 'Snacks'])
        self.assertEqual(data['total_items'], 2)
        chai = data['menu'][0]['items'][0]
        self.assertEqual(chai['id'], self.chai.pk)
        self.assertEqual(chai['variants'], [{'name': 'Large', 'price': '60.00'}])

    def test_public_menu_of_inactive_hotel(self):
        self.hotel.status = 'inactive'
        self.hotel.save()
        response = self.client.get(reverse('public_menu', kwargs={'hotel_code': self.hotel.code}))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_public_delivery_needs_address(self):
        url = reverse('public_order_create', kwargs={'hotel_code': self.hotel.code})
        response = self.client.post(url, {
            'order_type': 'delivery', 'customer_name': 'Ravi', 'customer_phone': '98765',
            'customer_address': 'short', 'items': self.cart(),
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('customer_phone: Phone number must be 10 digits', response.data['errors'])

    def test_kitchen_queue(self):
        services.create_order(self.cashier, {'order_type': 'takeaway', 'items': self.cart()})
        services.create_order(self.cashier, {'order_type': 'takeaway', 'items': self.cart(), 'payment_mode': 'CASH'})

        authenticate(self.client, make_staff(self.hotel, role=Staff.Role.KITCHEN_STAFF))
        response = self.client.get(reverse('kitchen_orders'))
        self.assertEqual(len(response.data['data']), 1)
        response = self.client.get(reverse('running_orders'))
        self.assertEqual(len(response.data['data']), 2)

    def test_kitchen_staff_cannot_take_payment(self):
        order = services.create_order(self.cashier, {'order_type': 'takeaway', 'items': self.cart()})
        authenticate(self.client, make_staff(self.hotel, role=Staff.Role.KITCHEN_STAFF))
        response = self.client.patch(reverse('order_payment', kwargs={'order_id': order.pk}),
                                     {'payment_mode': 'CASH'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_create_menu_item_with_recipe(self):
        authenticate(self.client, make_staff(self.hotel, role=Staff.Role.MANAGER))
        response = self.client.post(reverse('menu_item_list'), {
            'category': self.category.pk, 'name': 'Cold Coffee', 'price': '90.00',
            'variants': [{'name': 'Large', 'price': '120.00'}],
            'ingredients': [{'inventory_item': self.milk.pk, 'quantity': '0.250', 'unit': 'l'}],
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        item = MenuItem.objects.get(name='Cold Coffee')
        self.assertEqual(item.get_price('Large'), Decimal('120'))
        self.assertEqual(item.ingredients.get().inventory_item, self.milk)


class SeedMenuCommandTests(TestCase):
    def test_seed_is_idempotent(self):
        hotel = make_hotel()
        out = StringIO()
        call_command('seed_menu', 'grd', stdout=out)
        call_command('seed_menu', 'grd', stdout=out)

        self.assertEqual(Table.objects.filter(hotel=hotel).count(), 8)
        self.assertEqual(MenuItem.objects.filter(hotel=hotel).count(), 3)
        opening = StockTransaction.objects.filter(hotel=hotel)
        self.assertEqual(opening.count(), 4)
        milk = opening.get(inventory_item__name='Milk')
        self.assertEqual(milk.reason, 'Initial stock')
        self.assertEqual(milk.total_price, Decimal('1200'))
        chai = MenuItem.objects.get(hotel=hotel, name='Masala Chai')
        self.assertEqual(chai.get_price('Large'), Decimal('60'))
        self.assertEqual(chai.ingredients.count(), 2)

    def test_unknown_hotel(self):
        with self.assertRaises(CommandError):
            call_command('seed_menu', 'NOPE', stdout=StringIO())
