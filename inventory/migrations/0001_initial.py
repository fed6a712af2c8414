from decimal import Decimal

import django.core.validators
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='Category',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(db_index=True, help_text='Unique category name', max_length=100, unique=True)),
                ('description', models.TextField(blank=True, default='')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Category',
                'verbose_name_plural': 'Categories',
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='Item',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(db_index=True, help_text='Item name for display and search', max_length=200)),
                ('description', models.TextField(blank=True, default='')),
                ('category', models.CharField(db_index=True, default='other', max_length=100)),
                ('unit', models.CharField(default='pcs', max_length=20)),
                ('price', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12, validators=[django.core.validators.MinValueValidator(Decimal('0.00'))])),
                ('quantity', models.PositiveIntegerField(default=0, help_text='Current on-hand quantity')),
                ('min_quantity', models.PositiveIntegerField(default=0, help_text='Reorder threshold for low stock')),
                ('status', models.CharField(choices=[('in-stock', 'In stock'), ('low-stock', 'Low stock'), ('out-of-stock', 'Out of stock')], db_index=True, default='out-of-stock', editable=False, max_length=20)),
                ('is_active', models.BooleanField(db_index=True, default=True, help_text='False once the item is soft-deleted')),
                ('last_restocked', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Item',
                'verbose_name_plural': 'Items',
                'ordering': ['name'],
                'indexes': [
                    models.Index(fields=['name', 'is_active'], name='item_name_active_idx'),
                    models.Index(fields=['status', 'is_active'], name='item_status_active_idx'),
                ],
            },
        ),
    ]
