"""
Management command to seed the database with sample data.

Generates:
- Warehouse categories
- Items with a mix of in-stock, low-stock and out-of-stock quantities
- One admin, one manager and a handful of regular users

Usage:
    python manage.py seed_data
    python manage.py seed_data --clear  # Clear existing data first
    python manage.py seed_data --items 200 --password secret123
"""
import random
from decimal import Decimal

from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone

from accounts.models import User
from inventory import ledger
from inventory.models import Category, Item


CATEGORY_TEMPLATES = {
    'Office Supplies': ['Paper A4 Ream', 'Ballpoint Pen Box', 'Stapler', 'Binder Clip Set', 'Sticky Notes'],
    'Cleaning Materials': ['Floor Cleaner 5L', 'Hand Soap Refill', 'Microfiber Cloth', 'Trash Bags Roll'],
    'Electronics': ['HDMI Cable', 'USB-C Charger', 'Wireless Mouse', 'Extension Cord', 'Projector'],
    'Tools': ['Cordless Drill', 'Measuring Tape', 'Screwdriver Set', 'Ladder 2m', 'Safety Helmet'],
    'Pantry': ['Coffee Beans 1kg', 'Mineral Water Gallon', 'Tea Bags Box', 'Sugar 1kg'],
}

DEPARTMENTS = ['Operations', 'Finance', 'IT', 'Marketing', 'Procurement']


class Command(BaseCommand):
    help = 'Seed the database with sample categories, items, and users'

    def add_arguments(self, parser):
        parser.add_argument(
            '--clear',
            action='store_true',
            help='Clear existing data before seeding',
        )
        parser.add_argument(
            '--items',
            type=int,
            default=60,
            help='Number of items to create (default: 60)',
        )
        parser.add_argument(
            '--users',
            type=int,
            default=5,
            help='Number of regular users to create (default: 5)',
        )
        parser.add_argument(
            '--password',
            default='password123',
            help='Password for every seeded user (default: password123)',
        )

    def handle(self, *args, **options):
        if options['clear']:
            self.stdout.write('Clearing existing data...')
            self._clear_data()

        self.stdout.write('Starting database seeding...')

        with transaction.atomic():
            categories = self._create_categories()
            self._create_items(options['items'], categories)
            self._create_users(options['users'], options['password'])

        self.stdout.write(self.style.SUCCESS('Database seeding completed successfully!'))

    def _clear_data(self):
        """Clear all workflow and inventory data. Users are kept."""
        from loans.models import Loan
        from notifications.models import Notification
        from requisitions.models import Request

        Notification.objects.all().delete()
        Loan.objects.all().delete()
        Request.objects.all().delete()
        Item.objects.all().delete()
        Category.objects.all().delete()

        self.stdout.write(self.style.WARNING('All existing data cleared.'))

    def _create_categories(self):
        categories = []
        for name in CATEGORY_TEMPLATES:
            category, created = Category.objects.get_or_create(
                name=name,
                defaults={'description': f"{name} kept in the main warehouse"}
            )
            categories.append(category)
            if created:
                self.stdout.write(f'  Created category: {name}')

        self.stdout.write(self.style.SUCCESS(f'Created {len(categories)} categories'))
        return categories

    def _create_items(self, count, categories):
        """Create items; bulk_create skips save(), so status is derived here."""
        now = timezone.now()
        items = []
        existing_names = set(Item.objects.values_list('name', flat=True))

        for i in range(count):
            category = random.choice(categories)
            base_name = random.choice(CATEGORY_TEMPLATES[category.name])
            name = base_name if base_name not in existing_names else f"{base_name} #{i + 1}"
            existing_names.add(name)

            min_quantity = random.randint(0, 10)
            # Roughly a fifth of the items start low or out of stock
            quantity = random.choice([0, random.randint(1, max(min_quantity, 1))]) \
                if random.random() < 0.2 else random.randint(min_quantity + 1, 200)

            items.append(Item(
                name=name,
                description=f"{base_name} for {category.name.lower()}",
                category=category.name,
                price=Decimal(str(round(random.uniform(1, 250), 2))),
                quantity=quantity,
                min_quantity=min_quantity,
                status=ledger.derive_status(quantity, min_quantity),
                last_restocked=now if quantity > 0 else None,
            ))

        Item.objects.bulk_create(items)
        self.stdout.write(self.style.SUCCESS(f'Created {len(items)} items'))

    def _create_users(self, count, password):
        accounts = [
            ('admin@gudang.local', 'Warehouse Admin', User.Role.ADMIN),
            ('manager@gudang.local', 'Warehouse Manager', User.Role.MANAGER),
        ] + [
            (f'user{i + 1}@gudang.local', f'Staff Member {i + 1}', User.Role.USER)
            for i in range(count)
        ]

        created = 0
        for email, name, role in accounts:
            if User.objects.filter(email=email).exists():
                continue
            User.objects.create_user(
                email=email,
                password=password,
                name=name,
                role=role,
                department=random.choice(DEPARTMENTS),
                is_staff=role == User.Role.ADMIN,
            )
            created += 1

        self.stdout.write(self.style.SUCCESS(f'Created {created} users'))
