"""
Celery tasks for loans.

Tasks:
    - check_overdue_loans: Periodic sweep scheduled by Celery Beat
"""
import logging
from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task
def check_overdue_loans():
    """
    Flip past-due active loans to overdue and remind borrowers whose loans
    are due within 24 hours.
    """
    from django.utils import timezone
    from loans.services import mark_overdue_loans, send_due_soon_reminders

    now = timezone.now()
    overdue = mark_overdue_loans(now)
    reminded = send_due_soon_reminders(now)

    logger.info(f"[CELERY] Loan sweep: {overdue} overdue, {reminded} due-soon reminders")
    return {'overdue': overdue, 'reminded': reminded}
