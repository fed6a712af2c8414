"""
Notification Service Layer - writing and reading per-user notifications.
"""
import logging
from typing import Dict, List, Optional

from django.db import transaction

from accounts.models import User
from core.exceptions import NotFoundError, ValidationError
from .models import Notification

logger = logging.getLogger(__name__)


def notify_user(user_id, type: str, title: str, message: str, related_id='') -> Notification:
    notification = Notification.objects.create(
        user_id=user_id,
        type=type,
        title=title,
        message=message,
        related_id=str(related_id or ''),
    )
    logger.debug(f"Notified user {user_id}: {type}")
    return notification


def notify_staff(
    type: str,
    title: str,
    message: str,
    related_id='',
    exclude_user_id: Optional[int] = None,
) -> List[Notification]:
    """Write one notification for every active admin and manager."""
    staff = User.objects.filter(is_active=True, role__in=User.STAFF_ROLES)
    if exclude_user_id is not None:
        staff = staff.exclude(pk=exclude_user_id)

    notifications = Notification.objects.bulk_create([
        Notification(
            user=user,
            type=type,
            title=title,
            message=message,
            related_id=str(related_id or ''),
        )
        for user in staff
    ])
    logger.debug(f"Notified {len(notifications)} staff users: {type}")
    return notifications


def list_for_user(user_id):
    return Notification.objects.filter(user_id=user_id).order_by('-created_at')


def unread_count(user_id) -> int:
    return Notification.objects.filter(user_id=user_id, is_read=False).count()


def create_notification(data: Dict) -> Notification:
    if not User.objects.filter(pk=data['user_id']).exists():
        raise ValidationError(f"User {data['user_id']} does not exist")
    return notify_user(
        data['user_id'],
        data['type'],
        data['title'],
        data['message'],
        data.get('related_id', ''),
    )


def mark_read(notification_id) -> Notification:
    try:
        notification = Notification.objects.get(pk=notification_id)
    except (Notification.DoesNotExist, ValueError, TypeError):
        raise NotFoundError(f"Notification {notification_id} not found")

    if not notification.is_read:
        notification.is_read = True
        notification.save(update_fields=['is_read'])
    return notification


def mark_all_read(user_id) -> int:
    with transaction.atomic():
        count = Notification.objects.filter(user_id=user_id, is_read=False).update(is_read=True)
    logger.info(f"Marked {count} notifications read for user {user_id}")
    return count


def delete_notification(notification_id) -> None:
    deleted, _ = Notification.objects.filter(pk=notification_id).delete()
    if not deleted:
        raise NotFoundError(f"Notification {notification_id} not found")
