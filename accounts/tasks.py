"""
Periodic maintenance for the token revocation list.
"""
import logging

from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task
def purge_expired_tokens():
    """Delete revocation rows whose tokens have expired on their own."""
    from accounts.models import RevokedToken

    deleted, _ = RevokedToken.objects.expired().delete()
    if deleted:
        logger.info(f"Purged {deleted} expired revoked tokens")
    return {'purged': deleted}
