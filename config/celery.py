"""
Celery application for background work.

Tasks:
    - notifications.tasks: notification rows written after workflow commits
    - loans.tasks: periodic overdue sweep (scheduled via Celery Beat)
"""
import os

from celery import Celery

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings')

app = Celery('gudang')
app.config_from_object('django.conf:settings', namespace='CELERY')
app.autodiscover_tasks()
