"""
Notification Models - the audit trail of workflow events, one row per
recipient.
"""
import uuid

from django.conf import settings
from django.db import models


class Notification(models.Model):
    """
    A message to one user. Rows are append-only apart from is_read.
    """

    class Type(models.TextChoices):
        REQUEST_SUBMITTED = 'request_submitted', 'Request submitted'
        REQUEST_APPROVED = 'request_approved', 'Request approved'
        REQUEST_REJECTED = 'request_rejected', 'Request rejected'
        REQUEST_FULFILLED = 'request_fulfilled', 'Request fulfilled'
        LOAN_SUBMITTED = 'loan_submitted', 'Loan submitted'
        LOAN_APPROVED = 'loan_approved', 'Loan approved'
        LOAN_REJECTED = 'loan_rejected', 'Loan rejected'
        LOAN_CANCELLED = 'loan_cancelled', 'Loan cancelled'
        ITEM_RETURNED = 'item_returned', 'Item returned'
        LOAN_DUE = 'loan_due', 'Loan due soon'
        LOAN_OVERDUE = 'loan_overdue', 'Loan overdue'

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='notifications',
        help_text="Recipient"
    )
    type = models.CharField(max_length=30, choices=Type.choices)
    title = models.CharField(max_length=200)
    message = models.TextField()
    related_id = models.CharField(
        max_length=64,
        blank=True,
        default='',
        help_text="Id of the request or loan the notification is about"
    )
    is_read = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        verbose_name = 'Notification'
        verbose_name_plural = 'Notifications'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['user', 'is_read'], name='notification_user_read_idx'),
        ]

    def __str__(self):
        return f"{self.type} -> {self.user_id}: {self.title}"
