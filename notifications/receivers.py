"""
Signal receivers that turn workflow events into notification tasks.

Queueing failures are logged and dropped; the workflow that emitted the
event has already committed.
"""
import logging

from django.dispatch import receiver

from core import events
from . import tasks

logger = logging.getLogger(__name__)


def _queue(task, *args):
    try:
        task.delay(*args)
    except Exception as e:
        logger.error(f"Failed to queue {task.name}{args}: {e}")


@receiver(events.request_submitted, dispatch_uid='notify_request_submitted')
def on_request_submitted(sender, request_id, **kwargs):
    _queue(tasks.notify_request_submitted, str(request_id))


@receiver(events.request_status_changed, dispatch_uid='notify_request_status')
def on_request_status_changed(sender, request_id, status, **kwargs):
    _queue(tasks.notify_request_status, str(request_id), str(status))


@receiver(events.loan_submitted, dispatch_uid='notify_loan_submitted')
def on_loan_submitted(sender, loan_id, **kwargs):
    _queue(tasks.notify_loan_submitted, str(loan_id))


@receiver(events.loan_status_changed, dispatch_uid='notify_loan_status')
def on_loan_status_changed(sender, loan_id, status, **kwargs):
    _queue(tasks.notify_loan_status, str(loan_id), str(status))


@receiver(events.loan_due_soon, dispatch_uid='notify_loan_due_soon')
def on_loan_due_soon(sender, loan_id, **kwargs):
    _queue(tasks.notify_loan_due_soon, str(loan_id))
