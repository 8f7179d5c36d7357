from django.core.cache import cache
from django.db import DatabaseError, connections
from django.http import JsonResponse

CACHE_CHECK_KEY = 'sync:healthz'


def healthz(request):
    """Database and rate-limit cache reachability for load balancers."""
    try:
        with connections['default'].cursor() as c:
            c.execute('SELECT 1')
            row = c.fetchone()
    except DatabaseError as e:
        return JsonResponse({'ok': False, 'error': str(e)}, status=500)
    try:
        cache.set(CACHE_CHECK_KEY, 1, 5)
        cache_ok = cache.get(CACHE_CHECK_KEY) == 1
    except Exception:  # backend-specific connection errors (redis, memcached)
        cache_ok = False
    db_ok = bool(row and row[0] == 1)
    return JsonResponse({'ok': db_ok and cache_ok, 'db': db_ok, 'cache': cache_ok}, status=200 if cache_ok else 503)
