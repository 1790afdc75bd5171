"""
Bearer token issuance and verification.

Tokens are Django-signed, timestamped payloads ``{uid, role, jti}``. A token is
valid while its signature checks out, it is younger than
``AUTH_TOKEN_MAX_AGE`` and it is not on the revocation list.
"""
import logging
import uuid
from dataclasses import dataclass
from datetime import timedelta

from django.conf import settings
from django.core import signing
from django.db import IntegrityError
from django.utils import timezone

from core.exceptions import Unauthenticated
from .models import RevokedToken, token_digest

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TokenClaims:
    user_id: str
    role: str
    jti: str


def issue_token(user) -> str:
    payload = {'uid': str(user.pk), 'role': user.role, 'jti': uuid.uuid4().hex}
    return signing.dumps(payload, salt=settings.AUTH_TOKEN_SALT, compress=True)


def verify_token(token: str) -> TokenClaims:
    """
    Decode ``token`` or raise Unauthenticated.

    Revocation is checked here so every caller gets the full contract.
    """
    try:
        payload = signing.loads(
            token,
            salt=settings.AUTH_TOKEN_SALT,
            max_age=settings.AUTH_TOKEN_MAX_AGE,
        )
    except signing.SignatureExpired:
        raise Unauthenticated('Token has expired. Please login again.')
    except signing.BadSignature:
        raise Unauthenticated('Invalid or expired token')

    if RevokedToken.is_revoked(token):
        raise Unauthenticated('Token has been invalidated. Please login again.')

    try:
        return TokenClaims(user_id=payload['uid'], role=payload['role'], jti=payload['jti'])
    except (KeyError, TypeError):
        raise Unauthenticated('Invalid or expired token')


def revoke_token(token: str) -> None:
    """Put ``token`` on the revocation list until it would have expired anyway."""
    expires_at = timezone.now() + timedelta(seconds=settings.AUTH_TOKEN_MAX_AGE)
    try:
        RevokedToken.objects.get_or_create(
            digest=token_digest(token),
            defaults={'expires_at': expires_at},
        )
    except IntegrityError:
        # concurrent logout with the same token
        logger.debug("Token already revoked")
