"""
Success envelope shared by all API views.
"""
from rest_framework import status as http_status
from rest_framework.response import Response


def success(data=None, message=None, status=http_status.HTTP_200_OK, **extra):
    """Build ``{"success": true, "data": ..., "message": ...}`` responses."""
    body = {'success': True}
    if message:
        body['message'] = message
    body.update(extra)
    if data is not None:
        body['data'] = data
    return Response(body, status=status)


def success_list(items, message=None, **extra):
    """List responses also report ``count``."""
    return success(list(items), message=message, count=len(items), **extra)
