"""
Stock ledger operations.

Stock levels only move through the functions here, and every movement
appends one StockTransaction recording the stock before and after it.
"""

import logging
from collections import defaultdict

from django.db import transaction
from django.db.models import F
from django.utils import timezone

from hospitality.exceptions import BadRequest, Conflict, NotFound
from hospitality.money import ZERO, to_decimal
from hotels.access import ensure_hotel_access, resolve_hotel, scope_queryset

from .models import InventoryItem, StockTransaction

logger = logging.getLogger(__name__)

# Only adjust_stock and deduct_for_order may change these
QUANTITY_FIELDS = ('quantity_current', 'quantity_minimum', 'quantity_maximum')

ADD = 'add'
DEDUCT = 'deduct'


def get_inventory_item(actor, item_id):
    try:
        item = InventoryItem.objects.get(pk=item_id)
    except InventoryItem.DoesNotExist:
        raise NotFound('Inventory item not found')
    ensure_hotel_access(actor, item.hotel_id, 'Access denied to this inventory item')
    return item


def _check_sku(sku, exclude_id=None):
    if not sku:
        return
    duplicates = InventoryItem.objects.filter(sku=sku.strip().upper())
    if exclude_id is not None:
        duplicates = duplicates.exclude(pk=exclude_id)
    if duplicates.exists():
        raise Conflict(f'An inventory item with SKU {sku.upper()} already exists')


def create_inventory_item(actor, data, hotel_id=None):
    """Create an item; opening stock is booked as a purchase"""
    hotel = resolve_hotel(actor, hotel_id)
    _check_sku(data.get('sku'))
    return open_inventory_item(hotel, data, actor)


def open_inventory_item(hotel, data, actor=None):
    """Insert the item and the purchase row for any opening stock"""
    with transaction.atomic():
        item = InventoryItem(hotel=hotel, created_by=actor, **data)
        opening_stock = to_decimal(item.quantity_current)
        if opening_stock > 0:
            item.last_restocked = timezone.now()
        item.save()

        if opening_stock > 0:
            StockTransaction.objects.create(
                hotel=hotel,
                inventory_item=item,
                transaction_type=StockTransaction.Type.PURCHASE,
                quantity=opening_stock,
                unit=item.unit,
                previous_stock=ZERO,
                new_stock=opening_stock,
                unit_price=item.purchase_price,
                total_price=to_decimal(item.purchase_price) * opening_stock,
                reference_type=StockTransaction.Reference.SYSTEM,
                reason='Initial stock',
                performed_by=actor,
            )

    logger.info("Inventory item %s created in hotel %s with %s %s", item.name, hotel.code,
                item.quantity_current, item.unit)
    return item


def update_inventory_item(actor, item_id, data):
    """Update descriptive fields; stock quantities in `data` are ignored"""
    item = get_inventory_item(actor, item_id)
    data = {key: value for key, value in data.items() if key not in QUANTITY_FIELDS}
    if 'sku' in data:
        _check_sku(data['sku'], exclude_id=item.pk)

    for field, value in data.items():
        setattr(item, field, value)
    item.save()
    return item


def adjust_stock(actor, item_id, quantity, adjustment_type, reason='', cost=None):
    """
    Manual stock movement.

    Adding books a purchase and stamps last_restocked. Deducting books
    wastage when the reason says so, usage otherwise, and never takes stock
    below zero.
    """
    quantity = to_decimal(quantity)
    if quantity <= 0:
        raise BadRequest('Valid quantity is required')
    if adjustment_type not in (ADD, DEDUCT):
        raise BadRequest('Adjustment type must be add or deduct')

    with transaction.atomic():
        item = get_inventory_item(actor, item_id)
        item = InventoryItem.objects.select_for_update().get(pk=item.pk)
        previous = item.quantity_current
        now = timezone.now()

        if adjustment_type == ADD:
            item.quantity_current = previous + quantity
            item.last_restocked = now
            transaction_type = StockTransaction.Type.PURCHASE
        else:
            if quantity > previous:
                logger.warning("Stock deduction refused for %s: %s requested, %s on hand",
                               item.name, quantity, previous)
                raise BadRequest(f'Insufficient stock for {item.name}: {previous} {item.unit} available')
            item.quantity_current = previous - quantity
            item.last_used = now
            if (reason or '').strip().lower() == 'wastage':
                transaction_type = StockTransaction.Type.WASTAGE
            else:
                transaction_type = StockTransaction.Type.USAGE

        item.save(update_fields=['quantity_current', 'last_restocked', 'last_used', 'updated_at'])

        unit_price = to_decimal(cost) if cost is not None else item.purchase_price
        stock_transaction = StockTransaction.objects.create(
            hotel_id=item.hotel_id,
            inventory_item=item,
            transaction_type=transaction_type,
            quantity=quantity,
            unit=item.unit,
            previous_stock=previous,
            new_stock=item.quantity_current,
            unit_price=unit_price,
            total_price=to_decimal(unit_price) * quantity,
            reference_type=StockTransaction.Reference.MANUAL,
            reason=reason or '',
            performed_by=actor,
        )

    logger.info("Stock of %s adjusted %s%s (%s -> %s)", item.name, '+' if adjustment_type == ADD else '-',
                quantity, previous, item.quantity_current)
    return item, stock_transaction


def required_stock_for_order(order):
    """Total stock each inventory item must give up to fulfil `order`, keyed by item id"""
    required = defaultdict(lambda: ZERO)
    lines = order.items.select_related('menu_item').prefetch_related('menu_item__ingredients')
    for line in lines:
        if line.menu_item is None:
            continue
        for ingredient in line.menu_item.ingredients.all():
            required[ingredient.inventory_item_id] += ingredient.quantity * line.quantity
    return dict(required)


def deduct_for_order(order, actor=None):
    """
    Consume the recipe ingredients of every line of `order`.

    All affected items are locked and checked before any of them changes, so a
    shortage on one ingredient leaves every stock level untouched. Each item
    gets one sale transaction per order.
    """
    required = required_stock_for_order(order)
    if not required:
        return []

    with transaction.atomic():
        items = InventoryItem.objects.select_for_update().filter(pk__in=required).order_by('pk')
        items = list(items)

        for item in items:
            needed = required[item.pk]
            if item.quantity_current < needed:
                logger.warning("Order %s blocked: %s needs %s %s, %s available",
                               order.order_number, item.name, needed, item.unit, item.quantity_current)
                raise BadRequest(
                    f'Insufficient stock for {item.name}: required {needed} {item.unit}, '
                    f'available {item.quantity_current} {item.unit}'
                )

        now = timezone.now()
        transactions = []
        for item in items:
            needed = required[item.pk]
            previous = item.quantity_current
            item.quantity_current = previous - needed
            item.last_used = now
            item.save(update_fields=['quantity_current', 'last_used', 'updated_at'])

            transactions.append(StockTransaction.objects.create(
                hotel_id=item.hotel_id,
                inventory_item=item,
                transaction_type=StockTransaction.Type.SALE,
                quantity=needed,
                unit=item.unit,
                previous_stock=previous,
                new_stock=item.quantity_current,
                unit_price=item.purchase_price,
                total_price=to_decimal(item.purchase_price) * needed,
                reference_type=StockTransaction.Reference.ORDER,
                reference_id=str(order.pk),
                reference_number=order.order_number,
                reason=f'Used for order {order.order_number}',
                performed_by=actor,
            ))

    logger.info("Order %s consumed stock of %d inventory item(s)", order.order_number, len(transactions))
    return transactions


def low_stock_items(actor, hotel_id=None):
    items = InventoryItem.objects.filter(is_active=True, quantity_current__lte=F('quantity_minimum'))
    return scope_queryset(actor, items, hotel_id).order_by('quantity_current')
