"""
Requisition Models - stock requests and their line items.

Request Status Flow:
    PENDING -> APPROVED      (stock deducted for every line)
    PENDING -> DENIED
    PENDING -> FULFILLED
    PENDING -> OUT_OF_STOCK
All states other than PENDING are terminal.
"""
import uuid

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models

from inventory.models import Item


class Request(models.Model):
    """
    A user's request to take one or more items out of the warehouse.
    """

    class Status(models.TextChoices):
        PENDING = 'pending', 'Pending'
        APPROVED = 'approved', 'Approved'
        DENIED = 'denied', 'Denied'
        FULFILLED = 'fulfilled', 'Fulfilled'
        OUT_OF_STOCK = 'out_of_stock', 'Out of stock'

    class Priority(models.TextChoices):
        LOW = 'low', 'Low'
        MEDIUM = 'medium', 'Medium'
        HIGH = 'high', 'High'

    TRANSITIONS = {
        Status.PENDING.value: frozenset({
            Status.APPROVED.value,
            Status.DENIED.value,
            Status.FULFILLED.value,
            Status.OUT_OF_STOCK.value,
        }),
    }

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    project_name = models.CharField(
        max_length=200,
        help_text="Project or purpose the items are requested for"
    )
    requester = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='requests',
        help_text="User who submitted the request"
    )
    reason = models.TextField(blank=True, default='')
    priority = models.CharField(
        max_length=10,
        choices=Priority.choices,
        default=Priority.MEDIUM
    )
    due_date = models.DateField(null=True, blank=True)
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING,
        db_index=True,
        help_text="Current request status"
    )
    approved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='reviewed_requests',
        help_text="Admin or manager who made the decision"
    )
    approved_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Request'
        verbose_name_plural = 'Requests'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['requester', 'status'], name='request_requester_status_idx'),
            models.Index(fields=['status', 'created_at'], name='request_status_created_idx'),
        ]

    def __str__(self):
        return f"Request {self.id} - {self.project_name} ({self.status})"

    def can_transition_to(self, target: str) -> bool:
        return str(target) in self.TRANSITIONS.get(str(self.status), frozenset())

    @property
    def is_terminal(self) -> bool:
        return str(self.status) not in self.TRANSITIONS

    @property
    def item_count(self) -> int:
        # Uses the prefetched lines when present
        return len(self.lines.all())


class RequestLine(models.Model):
    """
    One (item, quantity) pair of a request. Immutable after creation.
    """
    request = models.ForeignKey(
        Request,
        on_delete=models.CASCADE,
        related_name='lines',
        help_text="Parent request"
    )
    item = models.ForeignKey(
        Item,
        on_delete=models.PROTECT,  # Items on a request are soft-deleted, never removed
        related_name='request_lines',
        help_text="Requested item"
    )
    quantity = models.PositiveIntegerField(
        validators=[MinValueValidator(1)],
        help_text="Quantity requested"
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = 'Request Line'
        verbose_name_plural = 'Request Lines'
        ordering = ['id']
        constraints = [
            models.UniqueConstraint(
                fields=['request', 'item'],
                name='unique_request_item_line'
            )
        ]

    def __str__(self):
        return f"{self.quantity}x {self.item.name}"
