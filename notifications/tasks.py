"""
Celery tasks for transactional email.

Tasks:
    - send_welcome_email: after registration
    - send_order_confirmation: after a successful checkout
    - send_order_status_update: after an admin status change or a customer cancellation
    - send_password_reset_email: after a forgot-password request

SMTP failures are retried with backoff; a final failure is only logged. None
of these tasks is ever awaited by the request that queued it.
"""
import logging
import smtplib

from celery import Task, shared_task
from django.conf import settings
from django.core.mail import send_mail

from . import emails

logger = logging.getLogger(__name__)


class EmailTask(Task):
    """Logs the final failure once retries are exhausted."""

    def on_failure(self, exc, task_id, args, kwargs, einfo):
        logger.error(f"Email task {self.name}[{task_id}] failed permanently for {args}: {exc}")


RETRY_POLICY = dict(
    base=EmailTask,
    bind=True,
    max_retries=3,
    default_retry_delay=60,
    autoretry_for=(smtplib.SMTPException, ConnectionError, TimeoutError),
    retry_backoff=True,
)


def _deliver(to, subject, body):
    sent = send_mail(subject, body, settings.DEFAULT_FROM_EMAIL, [to], fail_silently=False)
    logger.info(f"Email '{subject}' sent to {to}")
    return sent


@shared_task(**RETRY_POLICY)
def send_welcome_email(self, user_id: str):
    from accounts.models import User

    try:
        user = User.objects.get(pk=user_id)
    except User.DoesNotExist:
        logger.error(f"User {user_id} not found for welcome email")
        return {'status': 'error', 'message': f'User {user_id} not found'}

    subject, body = emails.welcome(user)
    _deliver(user.email, subject, body)
    return {'status': 'success', 'user_id': user_id}


@shared_task(**RETRY_POLICY)
def send_order_confirmation(self, order_id: str):
    """
    Confirmation for a freshly placed order.

    Skipped when the order was cancelled before the worker picked it up.
    """
    from orders.models import Order

    try:
        order = Order.objects.select_related('user').prefetch_related('items').get(id=order_id)
    except Order.DoesNotExist:
        logger.error(f"Order {order_id} not found for confirmation")
        return {'status': 'error', 'message': f'Order {order_id} not found'}

    if order.status == Order.Status.CANCELLED:
        logger.warning(f"Order #{order.order_number} already cancelled, skipping confirmation")
        return {'status': 'skipped', 'message': f'Order {order_id} is cancelled'}

    subject, body = emails.order_confirmation(order, order.user.first_name)
    _deliver(order.user.email, subject, body)
    return {'status': 'success', 'order_id': order_id}


@shared_task(**RETRY_POLICY)
def send_order_status_update(self, order_id: str, new_status: str):
    from orders.models import Order

    try:
        order = Order.objects.select_related('user').get(id=order_id)
    except Order.DoesNotExist:
        logger.error(f"Order {order_id} not found for status update")
        return {'status': 'error', 'message': f'Order {order_id} not found'}

    subject, body = emails.order_status_update(order, order.user.first_name, new_status)
    _deliver(order.user.email, subject, body)
    return {'status': 'success', 'order_id': order_id, 'new_status': new_status}


@shared_task(**RETRY_POLICY)
def send_password_reset_email(self, user_id: str, raw_token: str):
    from accounts.models import User

    try:
        user = User.objects.get(pk=user_id)
    except User.DoesNotExist:
        logger.error(f"User {user_id} not found for password reset email")
        return {'status': 'error', 'message': f'User {user_id} not found'}

    subject, body = emails.password_reset(user, raw_token)
    _deliver(user.email, subject, body)
    return {'status': 'success', 'user_id': user_id}
