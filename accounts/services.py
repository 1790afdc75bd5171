"""
Account Service Layer - registration, credentials and admin user management.
"""
import logging
import secrets
from datetime import timedelta

from django.conf import settings
from django.contrib.auth import authenticate
from django.db import transaction
from django.utils import timezone

from core.exceptions import Conflict, NotFound, Unauthenticated, ValidationFailed
from core.permissions import Role
from notifications import dispatch
from .models import User, token_digest
from .tokens import issue_token, revoke_token

logger = logging.getLogger(__name__)


def get_user(user_id) -> User:
    try:
        return User.objects.get(pk=user_id)
    except User.DoesNotExist:
        raise NotFound('User not found')


@transaction.atomic
def register_user(*, email, password, first_name, last_name):
    """
    Create a customer account and return ``(user, token)``.

    Self-registration always yields a customer; other roles are assigned by
    an admin.
    """
    email = email.strip().lower()
    if User.objects.filter(email__iexact=email).exists():
        raise Conflict('Email already registered')

    user = User.objects.create_user(
        email=email,
        password=password,
        first_name=first_name.strip(),
        last_name=last_name.strip(),
        role=Role.CUSTOMER,
    )
    logger.info(f"Registered user {user.pk} ({user.email})")

    dispatch.welcome_email(user)
    return user, issue_token(user)


def login(*, email, password):
    user = authenticate(username=email.strip().lower(), password=password)
    if user is None:
        logger.warning(f"Failed login for {email}")
        raise Unauthenticated('Invalid email or password')
    return user, issue_token(user)


def logout(token: str) -> None:
    revoke_token(token)


def update_profile(user, **changes):
    for field in ('first_name', 'last_name', 'profile_image'):
        if field in changes and changes[field] is not None:
            setattr(user, field, changes[field].strip())
    user.save()
    return user


def change_password(user, *, current_password, new_password):
    if not user.check_password(current_password):
        raise Unauthenticated('Current password is incorrect')
    user.set_password(new_password)
    user.save(update_fields=['password', 'updated_at'])
    logger.info(f"User {user.pk} changed password")


@transaction.atomic
def request_password_reset(email: str) -> None:
    """
    Issue a one-hour reset token and queue the email.

    Silent when the address is unknown so callers cannot discover registered emails.
    """
    user = User.objects.filter(email__iexact=email.strip()).first()
    if user is None:
        logger.info(f"Password reset requested for unknown email {email}")
        return

    raw_token = secrets.token_hex(32)
    user.reset_token_hash = token_digest(raw_token)
    user.reset_token_expires_at = timezone.now() + timedelta(seconds=settings.PASSWORD_RESET_TIMEOUT)
    user.save(update_fields=['reset_token_hash', 'reset_token_expires_at', 'updated_at'])

    dispatch.password_reset_email(user, raw_token)


def reset_password(*, token: str, new_password: str) -> None:
    user = User.objects.filter(
        reset_token_hash=token_digest(token),
        reset_token_expires_at__gt=timezone.now(),
    ).first()
    if user is None:
        raise ValidationFailed('Invalid or expired reset token')

    user.set_password(new_password)
    user.reset_token_hash = ''
    user.reset_token_expires_at = None
    user.save(update_fields=['password', 'reset_token_hash', 'reset_token_expires_at', 'updated_at'])
    logger.info(f"User {user.pk} reset password")


def admin_update_user(user_id, **changes):
    user = get_user(user_id)

    email = changes.get('email')
    if email:
        email = email.strip().lower()
        if User.objects.filter(email__iexact=email).exclude(pk=user.pk).exists():
            raise Conflict('Email already in use')
        user.email = email

    for field in ('first_name', 'last_name'):
        if changes.get(field):
            setattr(user, field, changes[field].strip())

    if changes.get('role'):
        user.role = changes['role']
        user.is_staff = user.role == Role.ADMIN

    user.save()
    logger.info(f"Admin updated user {user.pk}")
    return user


@transaction.atomic
def admin_delete_user(actor, user_id) -> None:
    """
    Delete an account together with its cart, reviews and cancelled orders.

    Refused while the user has orders that are not cancelled: those hold
    reserved stock and are the order history.
    """
    from orders.models import Order

    if str(actor.pk) == str(user_id):
        raise ValidationFailed('Cannot delete your own account')
    user = User.objects.select_for_update().filter(pk=user_id).first()
    if user is None:
        raise NotFound('User not found')
    if Order.objects.filter(user=user).exclude(status=Order.Status.CANCELLED).exists():
        raise Conflict('Cannot delete a user with existing orders')
    user.delete()
    logger.info(f"Admin {actor.pk} deleted user {user_id}")
