"""
DRF authentication backend for ``Authorization: Bearer <token>``.
"""
from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework.authentication import BaseAuthentication, get_authorization_header

from core.exceptions import Unauthenticated
from .models import User
from .tokens import verify_token


class BearerTokenAuthentication(BaseAuthentication):
    keyword = 'Bearer'

    def authenticate(self, request):
        auth = get_authorization_header(request).split()
        if not auth or auth[0].lower() != self.keyword.lower().encode():
            return None
        if len(auth) != 2:
            raise Unauthenticated('Invalid token header')

        try:
            token = auth[1].decode()
        except UnicodeError:
            raise Unauthenticated('Invalid token header')

        claims = verify_token(token)
        try:
            user = User.objects.get(pk=claims.user_id)
        except (User.DoesNotExist, DjangoValidationError):
            raise Unauthenticated('User not found')
        if not user.is_active:
            raise Unauthenticated('User account is disabled')
        return user, token

    def authenticate_header(self, request):
        return f'{self.keyword} realm="api"'
