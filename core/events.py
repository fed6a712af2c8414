"""
Domain events emitted by the approval workflows.

Events are sent only after the owning transaction commits, and receivers are
isolated with send_robust(): a failing consumer is logged and never reaches
the caller or the committed state.
"""
import logging

from django.db import transaction
from django.dispatch import Signal

logger = logging.getLogger(__name__)

# kwargs: request_id
request_submitted = Signal()

# kwargs: request_id, status
request_status_changed = Signal()

# kwargs: loan_id
loan_submitted = Signal()

# kwargs: loan_id, status
loan_status_changed = Signal()

# kwargs: loan_id
loan_due_soon = Signal()


def dispatch(signal: Signal, sender, **kwargs) -> None:
    for receiver, result in signal.send_robust(sender=sender, **kwargs):
        if isinstance(result, Exception):
            logger.error(
                f"Event receiver {getattr(receiver, '__name__', receiver)} failed: {result}",
                exc_info=(type(result), result, result.__traceback__),
            )


def emit_on_commit(signal: Signal, sender, **kwargs) -> None:
    """Schedule an event for after the current transaction commits."""
    transaction.on_commit(lambda: dispatch(signal, sender, **kwargs))
