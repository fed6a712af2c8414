import uuid

import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('inventory', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Request',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('project_name', models.CharField(help_text='Project or purpose the items are requested for', max_length=200)),
                ('reason', models.TextField(blank=True, default='')),
                ('priority', models.CharField(choices=[('low', 'Low'), ('medium', 'Medium'), ('high', 'High')], default='medium', max_length=10)),
                ('due_date', models.DateField(blank=True, null=True)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('approved', 'Approved'), ('denied', 'Denied'), ('fulfilled', 'Fulfilled'), ('out_of_stock', 'Out of stock')], db_index=True, default='pending', help_text='Current request status', max_length=20)),
                ('approved_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('approved_by', models.ForeignKey(blank=True, help_text='Admin or manager who made the decision', null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='reviewed_requests', to=settings.AUTH_USER_MODEL)),
                ('requester', models.ForeignKey(help_text='User who submitted the request', on_delete=django.db.models.deletion.PROTECT, related_name='requests', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Request',
                'verbose_name_plural': 'Requests',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['requester', 'status'], name='request_requester_status_idx'),
                    models.Index(fields=['status', 'created_at'], name='request_status_created_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='RequestLine',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('quantity', models.PositiveIntegerField(help_text='Quantity requested', validators=[django.core.validators.MinValueValidator(1)])),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('item', models.ForeignKey(help_text='Requested item', on_delete=django.db.models.deletion.PROTECT, related_name='request_lines', to='inventory.item')),
                ('request', models.ForeignKey(help_text='Parent request', on_delete=django.db.models.deletion.CASCADE, related_name='lines', to='requisitions.request')),
            ],
            options={
                'verbose_name': 'Request Line',
                'verbose_name_plural': 'Request Lines',
                'ordering': ['id'],
                'constraints': [
                    models.UniqueConstraint(fields=('request', 'item'), name='unique_request_item_line'),
                ],
            },
        ),
    ]
