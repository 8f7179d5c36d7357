"""
Sync coordinator: one device sync session across many collections.

A session moves through ``AUTHORIZING -> VALIDATING -> PULLING -> LOGGING
-> RESPONDING`` and ends ``COMPLETED`` or ``REJECTED``.  Only request
validation, the rate limit and unexpected internal failures end a session
early; a collection that cannot be synced is reported in its own result
entry and its siblings carry on.
"""
from __future__ import annotations

import base64
import enum
import gzip
import json
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Mapping, Optional

from django.core.serializers.json import DjangoJSONEncoder
from django.db import DatabaseError
from django.utils import timezone

from ..config import SyncConfig, get_sync_config
from ..exceptions import (
    AccessDeniedError,
    CollectionSyncError,
    InvalidCollectionError,
    RateLimitError,
    SyncError,
    SyncSystemError,
    SyncValidationError,
)
from . import realtime
from .access import AccessContext, ensure_collection_access, facility_scope
from .audit import best_effort, log_security_event, record_sync_session
from .puller import SyncCursor, clamp_paging, pull
from .ratelimit import RateLimiter
from .reconcile import EPOCH
from .store import DocumentStore, default_store, to_iso

logger = logging.getLogger(__name__)

COMPRESSION = 'gzip+base64'


class SessionState(enum.Enum):
    AUTHORIZING = 'authorizing'
    VALIDATING = 'validating'
    PULLING = 'pulling'
    LOGGING = 'logging'
    RESPONDING = 'responding'
    COMPLETED = 'completed'
    REJECTED = 'rejected'


@dataclass
class SyncRequest:
    device_id: str
    last_sync: Optional[datetime] = None
    collections: Optional[List[str]] = None
    page_limit: Optional[int] = None
    max_pages: Optional[int] = None
    page_cursor: Optional[str] = None
    page_cursors: Mapping[str, str] = field(default_factory=dict)
    compress: bool = False


@dataclass
class SyncSessionResult:
    device_id: str
    sync_timestamp: datetime
    results: Dict[str, Dict[str, Any]]
    next_sync_recommended: datetime
    facility_scoped: bool
    execution_time_ms: int
    rate_limit_remaining: int
    compressed_results: Optional[str] = None
    state: SessionState = SessionState.COMPLETED

    def to_response(self) -> Dict[str, Any]:
        return {
            'success': True,
            'syncTimestamp': to_iso(self.sync_timestamp),
            'results': self.results,
            'compressedResults': self.compressed_results,
            'compression': COMPRESSION if self.compressed_results else None,
            'nextSyncRecommended': to_iso(self.next_sync_recommended),
            'security': {
                'facilityScoped': self.facility_scoped,
                'executionTime': self.execution_time_ms,
                'rateLimitRemaining': self.rate_limit_remaining,
            },
        }


def compress_results(results: Dict[str, Any]) -> str:
    raw = json.dumps(results, cls=DjangoJSONEncoder).encode('utf-8')
    return base64.b64encode(gzip.compress(raw)).decode('ascii')


class _Session:
    """Tracks state transitions of one session for logging."""

    def __init__(self, device_id: str):
        self.device_id = device_id
        self.state = SessionState.AUTHORIZING
        self.started = time.monotonic()

    def enter(self, state: SessionState) -> None:
        logger.debug('sync session %s: %s -> %s', self.device_id, self.state.value, state.value)
        self.state = state

    @property
    def elapsed_ms(self) -> int:
        return int((time.monotonic() - self.started) * 1000)


def _target_collections(request: SyncRequest, config: SyncConfig) -> List[str]:
    if not request.collections:
        return list(config.default_collections)
    seen = []
    for name in request.collections:
        if name not in seen:
            seen.append(name)
    return seen


def _cursor_for(collection: str, request: SyncRequest, targets: List[str]) -> Optional[SyncCursor]:
    token = (request.page_cursors or {}).get(collection)
    if not token and len(targets) == 1:
        token = request.page_cursor
    return SyncCursor.from_token(collection, token)


def _sync_collection(collection: str, access: AccessContext, request: SyncRequest,
                     targets: List[str], last_sync: datetime, config: SyncConfig,
                     store: DocumentStore) -> Dict[str, Any]:
    try:
        if not config.is_known_collection(collection):
            raise InvalidCollectionError(collection)
        ensure_collection_access(access, collection, 'read')
        batch = config.batch_for(collection)
        page_limit, max_pages = clamp_paging(
            request.page_limit, request.max_pages, config.limits_for(access.role),
            default_page_limit=batch.page_limit, default_max_pages=batch.max_pages,
        )
        result = pull(
            collection, last_sync, facility_scope(access), _cursor_for(collection, request, targets),
            page_limit, max_pages, deleted_limit=batch.deleted_limit, config=config, store=store,
        )
    except (InvalidCollectionError, AccessDeniedError) as exc:
        logger.info('collection %s skipped for device %s: %s', collection, request.device_id, exc.message)
        return exc.to_dict()
    except DatabaseError as exc:
        logger.warning('failed to sync collection %s: %s', collection, exc, exc_info=True)
        log_security_event('sync_collection_error', user_id=access.user_id, device_id=request.device_id,
                           detail={'collection': collection, 'error': str(exc)})
        return CollectionSyncError().to_dict()
    return result.to_dict()


def run_sync_session(
    access: AccessContext,
    request: SyncRequest,
    *,
    config: Optional[SyncConfig] = None,
    rate_limiter: Optional[RateLimiter] = None,
    store: Optional[DocumentStore] = None,
    now: Optional[datetime] = None,
) -> SyncSessionResult:
    """Run one sync session for ``access`` and return the session result.

    Raises :class:`SyncValidationError`, :class:`RateLimitError` or
    :class:`SyncSystemError` when the session is rejected.
    """
    config = config or get_sync_config()
    rate_limiter = rate_limiter or RateLimiter(config)
    store = store or default_store
    session = _Session(request.device_id)
    try:
        session.enter(SessionState.VALIDATING)
        if not request.device_id or not str(request.device_id).strip():
            raise SyncValidationError('Device ID is required')
        sync_timestamp = now or timezone.now()
        last_sync = request.last_sync or EPOCH
        targets = _target_collections(request, config)

        decision = rate_limiter.check(access.user_id, request.device_id, access.role)
        if not decision.allowed:
            log_security_event('sync_rate_limit_exceeded', user_id=access.user_id, device_id=request.device_id,
                               detail={'role': access.role, 'limit': decision.limit})
            raise RateLimitError(retry_after=decision.retry_after, limit=decision.limit)

        session.enter(SessionState.PULLING)
        results = {
            collection: _sync_collection(collection, access, request, targets, last_sync, config, store)
            for collection in targets
        }

        session.enter(SessionState.LOGGING)
        synced = [c for c in targets if config.is_known_collection(c)]
        try:
            best_effort('heartbeat', lambda: realtime.heartbeat(
                access, request.device_id, synced, now=sync_timestamp, config=config))
        except AccessDeniedError as exc:
            logger.warning('heartbeat skipped for device %s: %s', request.device_id, exc.message)
        record_sync_session(
            device_id=request.device_id,
            user_id=access.user_id,
            facility_id=access.facility_id,
            role=access.role,
            sync_timestamp=sync_timestamp,
            last_sync_timestamp=last_sync,
            collections=synced,
            status=SessionState.COMPLETED.value,
            results=results,
            execution_time_ms=session.elapsed_ms,
        )
        log_security_event('sync_completed', user_id=access.user_id, device_id=request.device_id, detail={
            'role': access.role,
            'facilityId': access.facility_id,
            'collectionsCount': len(results),
            'executionTime': session.elapsed_ms,
        })

        session.enter(SessionState.RESPONDING)
        compressed = None
        if request.compress and config.limits_for(access.role).compression:
            try:
                compressed = compress_results(results)
            except (TypeError, ValueError, OSError) as exc:
                logger.warning('compression failed for device %s: %s', request.device_id, exc)

        limits = config.limits_for(access.role)
        session.enter(SessionState.COMPLETED)
        logger.info('sync completed for device %s, user %s, role %s', request.device_id, access.user_id, access.role)
        return SyncSessionResult(
            device_id=request.device_id,
            sync_timestamp=sync_timestamp,
            results=results,
            next_sync_recommended=timezone.now() + timedelta(seconds=limits.sync_interval_seconds),
            facility_scoped=access.facility_scoped,
            execution_time_ms=session.elapsed_ms,
            rate_limit_remaining=decision.remaining,
            compressed_results=compressed,
        )
    except SyncError as exc:
        session.enter(SessionState.REJECTED)
        logger.info('sync session %s rejected: %s', request.device_id, exc.code)
        raise
    except Exception as exc:
        session.enter(SessionState.REJECTED)
        logger.exception('sync session %s failed', request.device_id)
        log_security_event('sync_system_error', user_id=access.user_id, device_id=request.device_id or '',
                           detail={'error': str(exc)})
        raise SyncSystemError() from exc
