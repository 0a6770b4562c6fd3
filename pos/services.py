"""
Order fulfilment: cart pricing, the order status machine, payment and
checkout with inventory deduction, plus the table side effects of each step.
"""

import logging
from itertools import groupby
from operator import attrgetter

from django.db import transaction
from django.db.models import F
from django.utils import timezone

from hospitality.exceptions import BadRequest, Conflict, Forbidden, NotFound
from hospitality.money import get_gst_rate, price_breakdown, to_decimal
from hospitality.numbering import save_with_unique_number
from hotels.access import ensure_hotel_access, resolve_hotel
from hotels.models import Hotel, Staff
from inventory.services import deduct_for_order
from notifications import sink
from rooms.models import Booking, Room, RoomStatus

from .models import (
    MenuCategory, MenuItem, MenuItemVariant, Order, OrderItem,
    OrderPaymentStatus, OrderStatus, OrderType, PaymentMode, RecipeIngredient,
    Table, TableStatus,
)

logger = logging.getLogger(__name__)

ORDER_NUMBER_PREFIX = 'ORD'
ORDER_NUMBER_DIGITS = 5

ORDER_TRANSITIONS = {
    OrderStatus.PENDING: (OrderStatus.PREPARING, OrderStatus.CANCELLED),
    OrderStatus.PREPARING: (OrderStatus.READY, OrderStatus.CANCELLED),
    OrderStatus.READY: (OrderStatus.SERVED, OrderStatus.CANCELLED),
    # completed only through checkout_order
    OrderStatus.SERVED: (OrderStatus.COMPLETED,),
    OrderStatus.COMPLETED: (),
    OrderStatus.CANCELLED: (),
}

OPEN_STATUSES = (OrderStatus.PENDING, OrderStatus.PREPARING, OrderStatus.READY, OrderStatus.SERVED)
KITCHEN_STATUSES = (OrderStatus.PENDING, OrderStatus.PREPARING)

# What the kitchen may move an order to
KITCHEN_TARGETS = (OrderStatus.PREPARING, OrderStatus.READY)


def can_transition(current, target):
    return target in ORDER_TRANSITIONS.get(current, ())


def _serialize_order(order):
    from .serializers import OrderSerializer
    return OrderSerializer(order).data


def _serialize_table(table):
    from .serializers import TableSerializer
    return TableSerializer(table).data


def _set_table_status(table, new_status):
    if table.status == new_status:
        return
    table.status = new_status
    table.save(update_fields=['status', 'updated_at'])
    sink.emit(sink.TABLE_UPDATED, _serialize_table(table))


def _locked_table(table_id):
    return Table.objects.select_for_update().get(pk=table_id)


def _confirm_table(order):
    """A reserved table becomes occupied once staff first act on its order"""
    if order.table_id is None:
        return
    table = _locked_table(order.table_id)
    if table.status == TableStatus.RESERVED:
        _set_table_status(table, TableStatus.OCCUPIED)


def _release_table(order):
    """Free the table of a finished dine-in order unless another open order still holds it"""
    if order.order_type != OrderType.DINE_IN or order.table_id is None:
        return
    table = _locked_table(order.table_id)
    still_open = Order.objects.filter(table_id=table.pk, status__in=OPEN_STATUSES).exclude(pk=order.pk)
    if not still_open.exists():
        _set_table_status(table, TableStatus.AVAILABLE)


def build_order_lines(hotel, cart):
    """
    Freeze each cart line against the live menu.

    Returns the unsaved OrderItem rows and their subtotal. Later menu price
    changes never reach these rows.
    """
    if not cart:
        raise BadRequest('Order must contain at least one item')

    lines = []
    subtotal = to_decimal(0)
    for entry in cart:
        quantity = entry.get('quantity', 1)
        if quantity < 1:
            raise BadRequest('Item quantity must be at least 1')
        try:
            menu_item = MenuItem.objects.get(pk=entry['menu_item'], hotel=hotel)
        except MenuItem.DoesNotExist:
            raise NotFound(f"Menu item {entry['menu_item']} not found")
        if not menu_item.can_order():
            raise BadRequest(f'{menu_item.name} is not available')

        variant = entry.get('variant') or ''
        price = to_decimal(menu_item.get_price(variant))
        line_subtotal = price * quantity
        subtotal += line_subtotal
        lines.append(OrderItem(
            menu_item=menu_item,
            name=menu_item.name,
            variant=variant,
            quantity=quantity,
            price=price,
            subtotal=line_subtotal,
            special_instructions=entry.get('special_instructions', ''),
        ))
    return lines, subtotal


def _persist_order(order, lines):
    save_with_unique_number(order, 'order_number', ORDER_NUMBER_PREFIX, ORDER_NUMBER_DIGITS)
    for line in lines:
        line.order = order
    OrderItem.objects.bulk_create(lines)
    for line in lines:
        MenuItem.objects.filter(pk=line.menu_item_id).update(total_orders=F('total_orders') + line.quantity)


def _apply_payment(order, actor, payment_mode, now):
    order.payment_mode = payment_mode
    order.payment_status = OrderPaymentStatus.PAID
    order.paid_at = now
    order.paid_by = actor
    order.status = OrderStatus.SERVED
    order.served_at = order.served_at or now
    order.served_by = order.served_by or actor


def create_order(actor, data, gst_rate=None):
    """Staff-placed order; `data` is the validated payload of CreateOrderSerializer"""
    hotel = resolve_hotel(actor, data.get('hotel'))
    order_type = data.get('order_type') or OrderType.DINE_IN
    gst_rate = get_gst_rate() if gst_rate is None else gst_rate

    with transaction.atomic():
        lines, subtotal = build_order_lines(hotel, data.get('items'))
        pricing = price_breakdown(subtotal, gst_rate)

        order = Order(
            hotel=hotel,
            order_type=order_type,
            customer_name=data.get('customer_name', ''),
            customer_phone=data.get('customer_phone', ''),
            customer_email=data.get('customer_email', ''),
            customer_address=data.get('customer_address', ''),
            special_instructions=data.get('special_instructions', ''),
            subtotal=pricing['subtotal'],
            tax=pricing['tax'],
            total=pricing['total'],
            created_by=actor,
        )

        if order_type == OrderType.ROOM_SERVICE:
            _attach_room(order, hotel, data.get('room'), data.get('booking'))

        table = None
        table_number = (data.get('table_number') or '').strip().upper()
        if order_type == OrderType.DINE_IN and table_number:
            try:
                table = Table.objects.select_for_update().get(hotel=hotel, table_number=table_number)
            except Table.DoesNotExist:
                raise NotFound(f'Table {table_number} not found')
            order.table = table
            order.table_number = table.table_number

        if data.get('payment_mode'):
            _apply_payment(order, actor, data['payment_mode'], timezone.now())

        _persist_order(order, lines)

        if table is not None:
            _set_table_status(table, TableStatus.OCCUPIED)

        logger.info("Order %s created (%s, total %s)", order.order_number, order.order_type, order.total)
        sink.emit(sink.ORDER_CREATED, _serialize_order(order))

    return order


def _attach_room(order, hotel, room_id, booking_id):
    if not room_id and not booking_id:
        raise BadRequest('Room or booking is required for room service')

    booking = None
    if booking_id:
        try:
            booking = Booking.objects.select_related('room').get(pk=booking_id)
        except Booking.DoesNotExist:
            raise NotFound('Booking not found')
        if booking.hotel_id != hotel.pk:
            raise BadRequest('Booking does not belong to this hotel')

    if room_id:
        try:
            room = Room.objects.get(pk=room_id)
        except Room.DoesNotExist:
            raise NotFound('Room not found')
        if room.hotel_id != hotel.pk:
            raise BadRequest('Room does not belong to this hotel')
    else:
        room = booking.room

    order.room = room
    order.booking = booking


def get_public_hotel(hotel_code):
    try:
        return Hotel.objects.get(code=(hotel_code or '').strip().upper(), status='active')
    except Hotel.DoesNotExist:
        raise NotFound('Hotel not found')


def get_public_menu(hotel_code):
    """
    Orderable items of an active hotel grouped by category.

    Only active, available items in active categories are listed, and
    categories left without items are dropped.
    """
    hotel = get_public_hotel(hotel_code)
    items = (
        MenuItem.objects
        .filter(hotel=hotel, is_active=True, is_available=True, category__is_active=True)
        .select_related('category')
        .prefetch_related('variants')
        .order_by('category__display_order', 'category__name', 'category_id', 'name')
    )
    sections = [
        {'category': category, 'items': list(group)}
        for category, group in groupby(items, key=attrgetter('category'))
    ]
    return hotel, sections


def place_public_order(hotel_code, data):
    """
    Guest-placed order from a QR menu.

    A dine-in order reserves its table until staff confirm it. Tax follows
    the hotel's own rate when it has one.
    """
    hotel = get_public_hotel(hotel_code)
    order_type = data['order_type']
    gst_rate = hotel.tax_rate if hotel.tax_rate is not None else get_gst_rate()

    with transaction.atomic():
        lines, subtotal = build_order_lines(hotel, data.get('items'))
        pricing = price_breakdown(subtotal, gst_rate)

        order = Order(
            hotel=hotel,
            order_type=order_type,
            customer_name=data['customer_name'].strip(),
            customer_phone=data['customer_phone'],
            customer_email=data.get('customer_email', ''),
            customer_address=data.get('customer_address', ''),
            special_instructions=data.get('special_instructions', ''),
            subtotal=pricing['subtotal'],
            tax=pricing['tax'],
            total=pricing['total'],
            is_public_order=True,
        )

        table = None
        if order_type == OrderType.DINE_IN:
            table_number = data['table_number'].strip().upper()
            try:
                table = Table.objects.select_for_update().get(hotel=hotel, table_number=table_number, is_active=True)
            except Table.DoesNotExist:
                raise NotFound(f'Table {table_number} not found')
            if table.status != TableStatus.AVAILABLE:
                raise BadRequest(f'Table {table_number} is not available')
            order.table = table
            order.table_number = table.table_number

        elif order_type == OrderType.ROOM_SERVICE:
            room_number = data['room_number'].strip().upper()
            try:
                room = Room.objects.get(hotel=hotel, room_number=room_number)
            except Room.DoesNotExist:
                raise NotFound(f'Room {room_number} not found')
            if room.status != RoomStatus.OCCUPIED:
                raise BadRequest(f'Room {room_number} is not occupied')
            order.room = room
            order.booking_id = room.current_booking_id

        _persist_order(order, lines)

        if table is not None:
            _set_table_status(table, TableStatus.RESERVED)

        logger.info("Public order %s placed at %s", order.order_number, hotel.code)
        sink.emit(sink.ORDER_NEW_PUBLIC, _serialize_order(order))

    return order


def track_public_order(hotel_code, order_number):
    hotel = get_public_hotel(hotel_code)
    try:
        return Order.objects.prefetch_related('items').get(hotel=hotel, order_number=order_number.upper())
    except Order.DoesNotExist:
        raise NotFound('Order not found')


def get_order(actor, order_id):
    try:
        order = Order.objects.select_related('hotel', 'table', 'room').prefetch_related('items').get(pk=order_id)
    except Order.DoesNotExist:
        raise NotFound('Order not found')
    ensure_hotel_access(actor, order.hotel_id, 'Access denied to this order')
    return order


def _lock_order(actor, order_id):
    order = get_order(actor, order_id)
    return Order.objects.select_for_update().get(pk=order.pk)


def update_order_status(actor, order_id, new_status, reason=''):
    """
    Move an order along the kitchen lifecycle.

    Asking for `ready` stamps it and continues straight on to `served`.
    """
    if new_status == OrderStatus.COMPLETED:
        raise BadRequest('Orders are completed through checkout')
    if actor.role == Staff.Role.KITCHEN_STAFF and new_status not in KITCHEN_TARGETS:
        raise Forbidden('Kitchen staff can only mark orders as preparing or ready')

    with transaction.atomic():
        order = _lock_order(actor, order_id)
        previous = order.status
        if not can_transition(previous, new_status):
            raise BadRequest(f'Cannot change order status from {previous} to {new_status}')

        now = timezone.now()
        if new_status == OrderStatus.PREPARING:
            order.preparing_at = now
            order.prepared_by = actor
        elif new_status in (OrderStatus.READY, OrderStatus.SERVED):
            if new_status == OrderStatus.READY:
                order.ready_at = now
            new_status = OrderStatus.SERVED
            order.served_at = now
            order.served_by = actor
        elif new_status == OrderStatus.CANCELLED:
            order.cancelled_at = now
            order.cancellation_reason = reason or ''

        order.status = new_status
        order.save()

        if new_status == OrderStatus.CANCELLED:
            _release_table(order)
        elif previous == OrderStatus.PENDING:
            _confirm_table(order)

        logger.info("Order %s moved from %s to %s", order.order_number, previous, new_status)
        sink.emit(sink.ORDER_UPDATED, _serialize_order(order))

    return order


def mark_order_paid(actor, order_id, payment_mode):
    if payment_mode not in PaymentMode.values:
        raise BadRequest('Payment mode must be one of CASH, UPI, CARD')

    with transaction.atomic():
        order = _lock_order(actor, order_id)
        if order.status == OrderStatus.CANCELLED:
            raise BadRequest('Cannot take payment for a cancelled order')
        if order.is_paid:
            raise BadRequest('Order is already paid')

        previous = order.status
        _apply_payment(order, actor, payment_mode, timezone.now())
        order.save()

        if previous == OrderStatus.PENDING:
            _confirm_table(order)

        logger.info("Order %s paid by %s", order.order_number, payment_mode)
        sink.emit(sink.ORDER_PAID, _serialize_order(order))

    return order


def checkout_order(actor, order_id):
    """Complete a paid, served order and consume its ingredients from stock"""
    with transaction.atomic():
        order = _lock_order(actor, order_id)
        if order.status == OrderStatus.COMPLETED:
            raise BadRequest('Order is already completed')
        if order.status == OrderStatus.CANCELLED:
            raise BadRequest('Cannot checkout a cancelled order')
        if not order.is_paid:
            raise BadRequest('Order must be paid before checkout')
        if not can_transition(order.status, OrderStatus.COMPLETED):
            raise BadRequest('Order must be served before checkout')

        deduct_for_order(order, actor)

        order.status = OrderStatus.COMPLETED
        order.completed_at = timezone.now()
        order.save()
        _release_table(order)

        logger.info("Order %s completed", order.order_number)
        sink.emit(sink.ORDER_COMPLETED, _serialize_order(order))

    return order


def create_table(actor, data, hotel_id=None):
    hotel = resolve_hotel(actor, hotel_id)
    table_number = (data.get('table_number') or '').strip().upper()
    if Table.objects.filter(hotel=hotel, table_number=table_number).exists():
        raise Conflict(f'Table {table_number} already exists in this hotel')
    return Table.objects.create(hotel=hotel, **data)


def update_table_status(actor, table_id, new_status):
    with transaction.atomic():
        try:
            table = _locked_table(table_id)
        except Table.DoesNotExist:
            raise NotFound('Table not found')
        ensure_hotel_access(actor, table.hotel_id, 'Access denied to this table')
        _set_table_status(table, new_status)
    return table


def create_menu_category(actor, data, hotel_id=None):
    hotel = resolve_hotel(actor, hotel_id)
    if MenuCategory.objects.filter(hotel=hotel, name__iexact=data['name']).exists():
        raise Conflict(f"Category {data['name']} already exists")
    return MenuCategory.objects.create(hotel=hotel, **data)


def _check_menu_links(hotel, category=None, subcategory=None, ingredients=()):
    if category is not None and category.hotel_id != hotel.pk:
        raise BadRequest('Category does not belong to this hotel')
    if subcategory is not None and subcategory.category_id != getattr(category, 'pk', subcategory.category_id):
        raise BadRequest('Subcategory does not belong to the category')
    for ingredient in ingredients:
        if ingredient['inventory_item'].hotel_id != hotel.pk:
            raise BadRequest(f"{ingredient['inventory_item'].name} does not belong to this hotel")


def _replace_children(menu_item, variants, ingredients):
    if variants is not None:
        menu_item.variants.all().delete()
        MenuItemVariant.objects.bulk_create(
            MenuItemVariant(menu_item=menu_item, **variant) for variant in variants
        )
    if ingredients is not None:
        menu_item.ingredients.all().delete()
        RecipeIngredient.objects.bulk_create(
            RecipeIngredient(menu_item=menu_item, **ingredient) for ingredient in ingredients
        )


def create_menu_item(actor, data, hotel_id=None):
    """`data` is the validated payload of MenuItemSerializer, with nested variants and recipe"""
    hotel = resolve_hotel(actor, hotel_id)
    data = dict(data)
    variants = data.pop('variants', [])
    ingredients = data.pop('ingredients', [])
    _check_menu_links(hotel, data.get('category'), data.get('subcategory'), ingredients)

    with transaction.atomic():
        menu_item = MenuItem.objects.create(hotel=hotel, **data)
        _replace_children(menu_item, variants, ingredients)

    logger.info("Menu item %s created in hotel %s", menu_item.name, hotel.code)
    return menu_item


def update_menu_item(actor, menu_item_id, data):
    try:
        menu_item = MenuItem.objects.get(pk=menu_item_id)
    except MenuItem.DoesNotExist:
        raise NotFound('Menu item not found')
    ensure_hotel_access(actor, menu_item.hotel_id, 'Access denied to this menu item')

    data = dict(data)
    variants = data.pop('variants', None)
    ingredients = data.pop('ingredients', None)
    category = data.get('category', menu_item.category)
    if 'subcategory' in data:
        subcategory = data['subcategory']
    else:
        subcategory = menu_item.subcategory
        if subcategory is not None and subcategory.category_id != category.pk:
            # a subcategory never follows its item into another category
            subcategory = data['subcategory'] = None
    _check_menu_links(menu_item.hotel, category, subcategory, ingredients or ())

    with transaction.atomic():
        for field, value in data.items():
            setattr(menu_item, field, value)
        menu_item.save()
        _replace_children(menu_item, variants, ingredients)

    return menu_item
