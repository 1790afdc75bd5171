"""
Fire-and-forget notification dispatch.

Every helper schedules its Celery task with ``transaction.on_commit`` so a
rolled-back operation never emails anybody, and the request returns without
waiting on the broker. Enqueue failures are logged and swallowed.
"""
import logging

from django.db import transaction

from . import tasks

logger = logging.getLogger(__name__)


def _enqueue(task, *args):
    def send():
        try:
            task.delay(*args)
            logger.info(f"Queued {task.name} for {args[0]}")
        except Exception as e:
            # Never fail the triggering operation because the queue is down
            logger.error(f"Failed to queue {task.name} for {args[0]}: {e}")

    transaction.on_commit(send)


def welcome_email(user):
    _enqueue(tasks.send_welcome_email, str(user.pk))


def order_confirmation(order):
    _enqueue(tasks.send_order_confirmation, str(order.pk))


def order_status_update(order):
    _enqueue(tasks.send_order_status_update, str(order.pk), order.status)


def password_reset_email(user, raw_token):
    _enqueue(tasks.send_password_reset_email, str(user.pk), raw_token)
