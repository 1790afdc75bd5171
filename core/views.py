"""
Operational endpoints.
"""
from django.db import DatabaseError, connection
from django.http import JsonResponse


def health_check(request):
    """Liveness probe for container orchestration; also pings the database."""
    try:
        with connection.cursor() as cursor:
            cursor.execute('SELECT 1')
        database = 'up'
    except DatabaseError:
        database = 'down'
    status = 200 if database == 'up' else 503
    return JsonResponse({'status': 'healthy' if status == 200 else 'degraded',
                         'service': 'storefront-api', 'database': database}, status=status)
