"""
Sync error taxonomy and the unified API exception handler.

Every error surfaced by the sync services carries a stable ``code`` that
devices switch on, an HTTP status and whether the device may retry.
"""
from rest_framework.views import exception_handler as drf_exception_handler
from rest_framework.response import Response


class SyncError(Exception):
    code = 'SYNC_ERROR'
    status_code = 400
    retryable = False
    default_message = 'Sync request failed'

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {'success': False, 'error': self.message, 'code': self.code}


class SyncValidationError(SyncError):
    code = 'INVALID_REQUEST'
    default_message = 'Invalid sync request'


class InvalidCollectionError(SyncValidationError):
    code = 'INVALID_COLLECTION'

    def __init__(self, collection):
        self.collection = collection
        super().__init__(f'Unknown collection: {collection}')


class AccessDeniedError(SyncError):
    code = 'COLLECTION_ACCESS_DENIED'
    status_code = 403
    default_message = 'Access denied'

    def __init__(self, reason=None):
        super().__init__(f'Access denied: {reason}' if reason else None)


class RateLimitError(SyncError):
    code = 'RATE_LIMIT_EXCEEDED'
    status_code = 429
    retryable = True
    default_message = 'Rate limit exceeded for sync operations'

    def __init__(self, message=None, *, retry_after=None, limit=None):
        self.retry_after = retry_after
        self.limit = limit
        super().__init__(message)

    def to_dict(self) -> dict:
        data = super().to_dict()
        if self.retry_after is not None:
            data['retryAfter'] = self.retry_after
        return data


class CollectionSyncError(SyncError):
    code = 'COLLECTION_SYNC_ERROR'
    status_code = 500
    retryable = True
    default_message = 'Failed to sync collection'


class SyncSystemError(SyncError):
    code = 'SYSTEM_ERROR'
    status_code = 500
    default_message = 'Internal sync error'

    def __init__(self):
        # Never carries internal detail.
        super().__init__(None)


def api_exception_handler(exc, context):
    if isinstance(exc, SyncError):
        resp = Response(exc.to_dict(), status=exc.status_code)
        if isinstance(exc, RateLimitError) and exc.retry_after is not None:
            resp['Retry-After'] = str(exc.retry_after)
        return resp
    resp = drf_exception_handler(exc, context)
    if resp is None:
        return Response(SyncSystemError().to_dict(), status=500)
    # normalize response
    if isinstance(resp.data, dict):
        detail = resp.data.get('detail') or resp.data
    else:
        detail = resp.data
    code = 'INVALID_REQUEST' if resp.status_code == 400 else 'API_ERROR'
    return Response({'success': False, 'error': detail, 'code': code}, status=resp.status_code, headers=_passthrough_headers(resp))


def _passthrough_headers(resp):
    return {k: v for k, v in resp.items() if k in ('WWW-Authenticate', 'Retry-After')}
