"""
Account Models - users with a single role, and the bearer-token revocation list.

Models:
    - User: email-identified account holding exactly one role
    - RevokedToken: logged-out tokens, kept until their natural expiry
"""
import hashlib
import uuid

from django.contrib.auth.base_user import BaseUserManager
from django.contrib.auth.models import AbstractUser
from django.core.validators import MinLengthValidator
from django.db import models
from django.utils import timezone

from core.roles import Role


class UserManager(BaseUserManager):
    """Manager for email-identified users."""

    use_in_migrations = True

    def _create_user(self, email, password, **extra_fields):
        if not email:
            raise ValueError('Email is required')
        email = self.normalize_email(email).lower()
        user = self.model(email=email, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_user(self, email, password=None, **extra_fields):
        extra_fields.setdefault('is_staff', False)
        extra_fields.setdefault('is_superuser', False)
        extra_fields.setdefault('role', Role.CUSTOMER)
        return self._create_user(email, password, **extra_fields)

    def create_superuser(self, email, password=None, **extra_fields):
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)
        extra_fields.setdefault('role', Role.ADMIN)
        return self._create_user(email, password, **extra_fields)


class User(AbstractUser):
    """
    Account holder. Login is by email; ``role`` drives every access check.
    """
    username = None

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    email = models.EmailField(
        unique=True,
        help_text="Login identifier, stored lower-cased"
    )
    first_name = models.CharField(max_length=150, validators=[MinLengthValidator(2)])
    last_name = models.CharField(max_length=150, validators=[MinLengthValidator(2)])
    role = models.CharField(
        max_length=20,
        choices=Role.CHOICES,
        default=Role.CUSTOMER,
        db_index=True,
        help_text="Exactly one role per user"
    )
    profile_image = models.URLField(
        max_length=500,
        blank=True,
        default='',
        help_text="Reference to an image on the external asset host"
    )
    reset_token_hash = models.CharField(max_length=64, blank=True, default='')
    reset_token_expires_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = ['first_name', 'last_name']

    objects = UserManager()

    class Meta:
        verbose_name = 'User'
        verbose_name_plural = 'Users'
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.email} ({self.role})"

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    @property
    def is_vendor(self) -> bool:
        return self.role == Role.VENDOR


def token_digest(token: str) -> str:
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


class RevokedTokenQuerySet(models.QuerySet):
    def active(self):
        return self.filter(expires_at__gt=timezone.now())

    def expired(self):
        return self.filter(expires_at__lte=timezone.now())


class RevokedToken(models.Model):
    """
    A bearer token invalidated by logout.

    Only the SHA-256 digest is stored. Rows past ``expires_at`` are ignored by
    lookups and purged by ``accounts.tasks.purge_expired_tokens``.
    """
    digest = models.CharField(max_length=64, unique=True)
    expires_at = models.DateTimeField(db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = RevokedTokenQuerySet.as_manager()

    class Meta:
        verbose_name = 'Revoked Token'
        verbose_name_plural = 'Revoked Tokens'

    def __str__(self):
        return f"{self.digest[:12]}… until {self.expires_at:%Y-%m-%d %H:%M}"

    @classmethod
    def is_revoked(cls, token: str) -> bool:
        return cls.objects.active().filter(digest=token_digest(token)).exists()
