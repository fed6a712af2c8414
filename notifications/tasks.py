"""
Celery tasks that build notification text for workflow events and write
the rows.

Tasks:
    - notify_request_submitted: staff + requester confirmation
    - notify_request_status: requester, after approve/deny/fulfil/out-of-stock
    - notify_loan_submitted: staff + borrower confirmation
    - notify_loan_status: borrower (and staff for returns and overdue loans)
    - notify_loan_due_soon: borrower reminder
"""
import logging

from celery import shared_task
from django.db import DatabaseError

logger = logging.getLogger(__name__)

RETRY_OPTIONS = dict(
    bind=True,
    max_retries=3,
    default_retry_delay=60,
    autoretry_for=(DatabaseError,),
    retry_backoff=True,
)


def _describe_lines(request) -> str:
    return ', '.join(f"{line.quantity}x {line.item.name}" for line in request.lines.all())


@shared_task(**RETRY_OPTIONS)
def notify_request_submitted(self, request_id: str):
    from requisitions.models import Request
    from .models import Notification
    from .services import notify_staff, notify_user

    try:
        request = Request.objects.select_related('requester').prefetch_related(
            'lines__item'
        ).get(pk=request_id)
    except Request.DoesNotExist:
        logger.error(f"Request {request_id} not found for notification")
        return {'status': 'error', 'message': f'Request {request_id} not found'}

    requester = request.requester
    lines = _describe_lines(request)

    staff = notify_staff(
        Notification.Type.REQUEST_SUBMITTED,
        'New Stock Request',
        f"{requester.name or requester.email} requested {lines} for \"{request.project_name}\" "
        f"(priority: {request.priority})",
        related_id=request.id,
        exclude_user_id=requester.id,
    )
    notify_user(
        requester.id,
        Notification.Type.REQUEST_SUBMITTED,
        'Request Submitted',
        f"Your request for \"{request.project_name}\" has been submitted and is pending approval.",
        related_id=request.id,
    )

    logger.info(f"[CELERY] Request {request.id} submitted: notified {len(staff)} staff")
    return {'status': 'success', 'request_id': str(request.id), 'staff_notified': len(staff)}


REQUEST_STATUS_MESSAGES = {
    'approved': ('request_approved', 'Request Approved',
                 'Your request for "{project}" has been approved.'),
    'denied': ('request_rejected', 'Request Denied',
               'Your request for "{project}" has been denied.'),
    'fulfilled': ('request_fulfilled', 'Request Fulfilled',
                  'Your request for "{project}" has been fulfilled.'),
    'out_of_stock': ('request_rejected', 'Items Out of Stock',
                     'Your request for "{project}" cannot be served: items are out of stock.'),
}


@shared_task(**RETRY_OPTIONS)
def notify_request_status(self, request_id: str, status: str):
    from requisitions.models import Request
    from .services import notify_user

    if status not in REQUEST_STATUS_MESSAGES:
        logger.warning(f"No notification for request status '{status}'")
        return {'status': 'skipped', 'message': f'No notification for {status}'}

    try:
        request = Request.objects.get(pk=request_id)
    except Request.DoesNotExist:
        logger.error(f"Request {request_id} not found for notification")
        return {'status': 'error', 'message': f'Request {request_id} not found'}

    type_, title, template = REQUEST_STATUS_MESSAGES[status]
    notify_user(
        request.requester_id,
        type_,
        title,
        template.format(project=request.project_name),
        related_id=request.id,
    )

    logger.info(f"[CELERY] Request {request.id} {status}: requester notified")
    return {'status': 'success', 'request_id': str(request.id)}


def _get_loan(loan_id):
    from loans.models import Loan

    try:
        return Loan.objects.select_related('user', 'item').get(pk=loan_id)
    except Loan.DoesNotExist:
        logger.error(f"Loan {loan_id} not found for notification")
        return None


@shared_task(**RETRY_OPTIONS)
def notify_loan_submitted(self, loan_id: str):
    from .models import Notification
    from .services import notify_staff, notify_user

    loan = _get_loan(loan_id)
    if loan is None:
        return {'status': 'error', 'message': f'Loan {loan_id} not found'}

    borrower = loan.user.name or loan.user.email
    notify_user(
        loan.user_id,
        Notification.Type.LOAN_SUBMITTED,
        'Loan Request Submitted',
        f"Your request for \"{loan.item.name}\" has been submitted and is pending approval.",
        related_id=loan.id,
    )
    staff = notify_staff(
        Notification.Type.LOAN_SUBMITTED,
        'New Loan Request',
        f"{borrower} requested {loan.quantity}x \"{loan.item.name}\"",
        related_id=loan.id,
        exclude_user_id=loan.user_id,
    )

    logger.info(f"[CELERY] Loan {loan.id} submitted: notified {len(staff)} staff")
    return {'status': 'success', 'loan_id': str(loan.id), 'staff_notified': len(staff)}


LOAN_STATUS_MESSAGES = {
    'active': ('loan_approved', 'Loan Approved',
               'Your request for "{item}" has been approved and is now active.'),
    'rejected': ('loan_rejected', 'Loan Request Rejected',
                 'Your request for "{item}" has been rejected.'),
    'cancelled': ('loan_cancelled', 'Loan Cancelled',
                  'Your request for "{item}" has been cancelled.'),
    'returned': ('item_returned', 'Item Returned',
                 '"{item}" has been returned. Thank you!'),
    'overdue': ('loan_overdue', 'Item Overdue',
                '"{item}" is overdue. Please return it as soon as possible.'),
}

# Statuses staff are told about as well as the borrower
STAFF_LOAN_MESSAGES = {
    'returned': ('Item Returned', '{borrower} returned "{item}"'),
    'overdue': ('Item Overdue', '{borrower} has an overdue item: "{item}"'),
}


@shared_task(**RETRY_OPTIONS)
def notify_loan_status(self, loan_id: str, status: str):
    from .services import notify_staff, notify_user

    if status not in LOAN_STATUS_MESSAGES:
        logger.warning(f"No notification for loan status '{status}'")
        return {'status': 'skipped', 'message': f'No notification for {status}'}

    loan = _get_loan(loan_id)
    if loan is None:
        return {'status': 'error', 'message': f'Loan {loan_id} not found'}

    type_, title, template = LOAN_STATUS_MESSAGES[status]
    message = template.format(item=loan.item.name)
    if status == 'rejected' and loan.notes:
        message = f"{message} Reason: {loan.notes}"
    notify_user(loan.user_id, type_, title, message, related_id=loan.id)

    staff_count = 0
    if status in STAFF_LOAN_MESSAGES:
        staff_title, staff_template = STAFF_LOAN_MESSAGES[status]
        staff_count = len(notify_staff(
            type_,
            staff_title,
            staff_template.format(borrower=loan.user.name or loan.user.email, item=loan.item.name),
            related_id=loan.id,
            exclude_user_id=loan.user_id,
        ))

    logger.info(f"[CELERY] Loan {loan.id} {status}: borrower and {staff_count} staff notified")
    return {'status': 'success', 'loan_id': str(loan.id)}


@shared_task(**RETRY_OPTIONS)
def notify_loan_due_soon(self, loan_id: str):
    from .models import Notification
    from .services import notify_user

    loan = _get_loan(loan_id)
    if loan is None:
        return {'status': 'error', 'message': f'Loan {loan_id} not found'}

    notify_user(
        loan.user_id,
        Notification.Type.LOAN_DUE,
        'Item Due Soon',
        f"\"{loan.item.name}\" is due on {loan.end_date:%Y-%m-%d %H:%M}. Please prepare to return it.",
        related_id=loan.id,
    )
    return {'status': 'success', 'loan_id': str(loan.id)}
