from decimal import Decimal

from django.core.management.base import BaseCommand, CommandError
from django.db import transaction

from hotels.models import Hotel
from inventory.models import InventoryItem
from inventory.services import open_inventory_item
from pos.models import MenuCategory, MenuItem, MenuItemVariant, RecipeIngredient, Table


class Command(BaseCommand):
    help = 'Seed a hotel with tables, stock, and a menu whose recipes draw on that stock'

    def add_arguments(self, parser):
        parser.add_argument('hotel_code', help='Code of the hotel to seed')
        parser.add_argument(
            '--clear',
            action='store_true',
            help='Clear existing menu items and tables of the hotel before seeding',
        )

    def handle(self, *args, **options):
        try:
            hotel = Hotel.objects.get(code=options['hotel_code'].upper())
        except Hotel.DoesNotExist:
            raise CommandError(f"Hotel {options['hotel_code']} does not exist")

        with transaction.atomic():
            if options['clear']:
                self.stdout.write('Clearing existing menu items and tables...')
                RecipeIngredient.objects.filter(menu_item__hotel=hotel).delete()
                MenuItem.objects.filter(hotel=hotel).delete()
                Table.objects.filter(hotel=hotel).delete()
                self.stdout.write(self.style.SUCCESS('Successfully cleared menu items and tables'))

            self.seed_tables(hotel)
            stock = self.seed_stock(hotel)
            self.seed_menu(hotel, stock)

        self.stdout.write("\nMenu of %s:" % hotel.name)
        self.stdout.write("-" * 50)
        for item in MenuItem.objects.filter(hotel=hotel).select_related('category').order_by('category__name', 'name'):
            self.stdout.write(
                f"ID: {item.id:3d} | {item.category.name:12s} | {item.name:20s} | {item.price:8.2f}"
            )

    def seed_tables(self, hotel):
        for number in range(1, 9):
            Table.objects.get_or_create(hotel=hotel, table_number=f'T{number}',
                                        defaults={'capacity': 2 if number <= 4 else 4})

    def seed_stock(self, hotel):
        stock_items = [
            {"name": "Milk", "category": "beverage", "unit": "l", "quantity_current": Decimal('20'),
             "purchase_price": Decimal('60')},
            {"name": "Tea Leaves", "category": "beverage", "unit": "kg", "quantity_current": Decimal('5'),
             "purchase_price": Decimal('400')},
            {"name": "Basmati Rice", "category": "food", "unit": "kg", "quantity_current": Decimal('50'),
             "purchase_price": Decimal('110')},
            {"name": "Paneer", "category": "food", "unit": "kg", "quantity_current": Decimal('8'),
             "purchase_price": Decimal('380')},
        ]

        stock = {}
        for data in stock_items:
            item = InventoryItem.objects.filter(hotel=hotel, name=data['name']).first()
            created = item is None
            if created:
                item = open_inventory_item(hotel, data)
            stock[item.name] = item
            self.stdout.write(f"{'Created' if created else 'Already exists'}: {item}")
        return stock

    def seed_menu(self, hotel, stock):
        beverages, _ = MenuCategory.objects.get_or_create(hotel=hotel, name='Beverages')
        mains, _ = MenuCategory.objects.get_or_create(hotel=hotel, name='Main Course')

        menu_items = [
            {
                "name": "Masala Chai",
                "category": beverages,
                "price": Decimal('40'),
                "variants": [("Large", Decimal('60'))],
                "recipe": [("Milk", Decimal('0.150'), 'l'), ("Tea Leaves", Decimal('0.005'), 'kg')],
            },
            {
                "name": "Paneer Tikka",
                "category": mains,
                "price": Decimal('280'),
                "variants": [("Half", Decimal('160'))],
                "recipe": [("Paneer", Decimal('0.200'), 'kg')],
            },
            {
                "name": "Veg Biryani",
                "category": mains,
                "price": Decimal('240'),
                "variants": [],
                "recipe": [("Basmati Rice", Decimal('0.250'), 'kg')],
            },
        ]

        created_items = []
        for data in menu_items:
            item, created = MenuItem.objects.get_or_create(
                hotel=hotel,
                name=data['name'],
                defaults={'category': data['category'], 'price': data['price']}
            )
            if not created:
                self.stdout.write(f"Already exists: {item.name}")
                continue

            created_items.append(item)
            for name, price in data['variants']:
                MenuItemVariant.objects.create(menu_item=item, name=name, price=price)
            for stock_name, quantity, unit in data['recipe']:
                RecipeIngredient.objects.create(menu_item=item, inventory_item=stock[stock_name],
                                                quantity=quantity, unit=unit)
            self.stdout.write(f"Created: {item.name} - {item.price:.2f}")

        self.stdout.write(self.style.SUCCESS(f'\nTotal new menu items created: {len(created_items)}'))
