"""
Redis-based rate limiting for credential endpoints.
Fixed-window counter per (view, client IP); fails open when Redis is down.
"""
import logging
from functools import wraps

import redis
from django.conf import settings
from rest_framework import status
from rest_framework.response import Response

logger = logging.getLogger(__name__)

_redis_client = None


def get_redis_client():
    """Lazily connect so importing views never blocks on Redis."""
    global _redis_client
    if _redis_client is None:
        _redis_client = redis.Redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
    return _redis_client


def get_client_ip(request):
    """Extract client IP address from request."""
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        return x_forwarded_for.split(',')[0].strip()
    return request.META.get('REMOTE_ADDR', 'unknown')


def rate_limit(max_requests: int = 10, window_seconds: int = 60):
    """
    Limit a DRF view method to ``max_requests`` per ``window_seconds`` per IP.

    Usage:
        @rate_limit(5, 60)
        def post(self, request):
            ...
    """
    def decorator(view_func):
        @wraps(view_func)
        def wrapper(self, request, *args, **kwargs):
            if not getattr(settings, 'RATE_LIMIT_ENABLED', True):
                return view_func(self, request, *args, **kwargs)

            key = f"rate_limit:{self.__class__.__name__}:{view_func.__name__}:{get_client_ip(request)}"
            try:
                client = get_redis_client()
                current_count = client.incr(key)
                if current_count == 1:
                    client.expire(key, window_seconds)
                ttl = client.ttl(key)
            except redis.RedisError as e:
                logger.warning(f"Rate limiting unavailable, allowing request: {e}")
                return view_func(self, request, *args, **kwargs)

            if current_count > max_requests:
                logger.warning(f"Rate limit exceeded for {key}")
                return Response(
                    {
                        'success': False,
                        'error': f'Too many requests. Maximum {max_requests} per {window_seconds} seconds.',
                        'retry_after': ttl,
                    },
                    status=status.HTTP_429_TOO_MANY_REQUESTS,
                    headers={
                        'X-RateLimit-Limit': str(max_requests),
                        'X-RateLimit-Remaining': '0',
                        'Retry-After': str(ttl),
                    }
                )

            response = view_func(self, request, *args, **kwargs)
            response['X-RateLimit-Limit'] = str(max_requests)
            response['X-RateLimit-Remaining'] = str(max(0, max_requests - current_count))
            response['X-RateLimit-Reset'] = str(ttl)
            return response

        return wrapper
    return decorator
