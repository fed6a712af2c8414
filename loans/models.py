"""
Loan Models - equipment borrowed for a period and returned to stock.

Loan Status Flow:
    PENDING -> ACTIVE        (approve: stock taken out)
    PENDING -> REJECTED
    PENDING -> CANCELLED
    ACTIVE  -> RETURNED      (stock put back)
    ACTIVE  -> OVERDUE       (periodic sweep only)
    OVERDUE -> RETURNED      (stock put back)
"""
import uuid

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone

from inventory.models import Item


class Loan(models.Model):
    """
    A single-item request with a return date.
    """

    class Status(models.TextChoices):
        PENDING = 'pending', 'Pending'
        ACTIVE = 'active', 'Active'
        REJECTED = 'rejected', 'Rejected'
        OVERDUE = 'overdue', 'Overdue'
        RETURNED = 'returned', 'Returned'
        CANCELLED = 'cancelled', 'Cancelled'

    TRANSITIONS = {
        Status.PENDING.value: frozenset({
            Status.ACTIVE.value,
            Status.REJECTED.value,
            Status.CANCELLED.value,
        }),
        Status.ACTIVE.value: frozenset({
            Status.RETURNED.value,
            Status.OVERDUE.value,
        }),
        Status.OVERDUE.value: frozenset({
            Status.RETURNED.value,
        }),
    }

    # Loans that still hold (or may take) stock
    OPEN_STATUSES = (Status.PENDING, Status.ACTIVE, Status.OVERDUE)

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='loans',
        help_text="Borrower"
    )
    item = models.ForeignKey(
        Item,
        on_delete=models.PROTECT,
        related_name='loans',
        help_text="Borrowed item"
    )
    quantity = models.PositiveIntegerField(
        default=1,
        validators=[MinValueValidator(1)]
    )
    start_date = models.DateTimeField()
    end_date = models.DateTimeField(help_text="Agreed return date")
    actual_return_date = models.DateTimeField(null=True, blank=True)
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING,
        db_index=True
    )
    purpose = models.TextField(blank=True, default='')
    notes = models.TextField(blank=True, default='')
    approved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='reviewed_loans'
    )
    approved_at = models.DateTimeField(null=True, blank=True)
    reminders_sent = models.PositiveIntegerField(
        default=0,
        help_text="Due-date reminders already sent to the borrower"
    )
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Loan'
        verbose_name_plural = 'Loans'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status', 'end_date'], name='loan_status_end_idx'),
            models.Index(fields=['user', 'status'], name='loan_user_status_idx'),
        ]

    def __str__(self):
        return f"Loan {self.id} - {self.quantity}x {self.item.name} ({self.status})"

    def can_transition_to(self, target: str) -> bool:
        return str(target) in self.TRANSITIONS.get(str(self.status), frozenset())

    @property
    def is_past_due(self) -> bool:
        return self.status == self.Status.ACTIVE and self.end_date < timezone.now()
