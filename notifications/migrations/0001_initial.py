import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Notification',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('type', models.CharField(choices=[('request_submitted', 'Request submitted'), ('request_approved', 'Request approved'), ('request_rejected', 'Request rejected'), ('request_fulfilled', 'Request fulfilled'), ('loan_submitted', 'Loan submitted'), ('loan_approved', 'Loan approved'), ('loan_rejected', 'Loan rejected'), ('loan_cancelled', 'Loan cancelled'), ('item_returned', 'Item returned'), ('loan_due', 'Loan due soon'), ('loan_overdue', 'Loan overdue')], max_length=30)),
                ('title', models.CharField(max_length=200)),
                ('message', models.TextField()),
                ('related_id', models.CharField(blank=True, default='', help_text='Id of the request or loan the notification is about', max_length=64)),
                ('is_read', models.BooleanField(default=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('user', models.ForeignKey(help_text='Recipient', on_delete=django.db.models.deletion.CASCADE, related_name='notifications', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Notification',
                'verbose_name_plural': 'Notifications',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['user', 'is_read'], name='notification_user_read_idx'),
                ],
            },
        ),
    ]
