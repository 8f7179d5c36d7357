"""
Sync engine configuration.

``settings.SYNC_ENGINE`` (optionally overlaid by the JSON file named in
``settings.SYNC_CONFIG_PATH``) is parsed once per process into an
immutable :class:`SyncConfig`.  Services receive the config as an
argument and never mutate it; the cached instance is only rebuilt when
Django reports that the underlying settings changed (tests).
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from functools import lru_cache
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.core.signals import setting_changed
from django.dispatch import receiver

from .services.strategies import FieldOwnership, ResolutionStrategy

DEFAULT_LOGGING_TABLES = {
    'syncOperations': 'sync_operations',
    'queueProcessingLog': 'queue_processing_log',
    'conflictLog': 'conflict_log',
    'activeSyncSessions': 'active_sync_sessions',
    'syncNotifications': 'sync_notifications',
    'realtimeNotifications': 'realtime_notifications',
    'deletionLog': 'deletion_log',
}

# Least privileged role; unknown roles get its limits.
FALLBACK_ROLE = 'user'


def logging_table(key: str) -> str:
    """Return the table name for one of the sync trace models."""
    overrides = (getattr(settings, 'SYNC_ENGINE', None) or {}).get('loggingCollections') or {}
    return overrides.get(key) or DEFAULT_LOGGING_TABLES[key]


@dataclass(frozen=True)
class BatchLimits:
    page_limit: int = 100
    deleted_limit: int = 50
    max_pages: int = 10


@dataclass(frozen=True)
class RoleLimits:
    max_page_limit: int = 50
    max_pages: int = 3
    sync_interval_seconds: int = 1800
    compression: bool = False
    rate_limit_requests: int = 5
    rate_limit_duration: int = 3600


@dataclass(frozen=True)
class ValidationRules:
    required: Tuple[str, ...] = ()
    types: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))


@dataclass(frozen=True)
class SyncConfig:
    collections: Tuple[str, ...]
    default_collections: Tuple[str, ...]
    strategies: Mapping[str, ResolutionStrategy]
    default_strategy: ResolutionStrategy
    field_ownership: Mapping[str, FieldOwnership]
    batch_default: BatchLimits
    batch_overrides: Mapping[str, BatchLimits]
    role_limits: Mapping[str, RoleLimits]
    heartbeat_window_seconds: int
    validation_rules: Mapping[str, ValidationRules]

    def is_known_collection(self, name: Any) -> bool:
        return isinstance(name, str) and name in self.collections

    def strategy_for(self, collection: str) -> ResolutionStrategy:
        return self.strategies.get(collection, self.default_strategy)

    def ownership_for(self, collection: str) -> Optional[FieldOwnership]:
        return self.field_ownership.get(collection)

    def batch_for(self, collection: str) -> BatchLimits:
        return self.batch_overrides.get(collection, self.batch_default)

    def limits_for(self, role: str) -> RoleLimits:
        return self.role_limits.get(role) or self.role_limits.get(FALLBACK_ROLE) or RoleLimits()

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> 'SyncConfig':
        collections = tuple(raw.get('collections') or ())
        if not collections:
            raise ImproperlyConfigured('SYNC_ENGINE.collections must list at least one collection')
        default_collections = tuple(
            c for c in (raw.get('defaultCollections') or collections) if c in collections
        )

        strategy_names = dict(raw.get('conflictStrategies') or {})
        default_name = strategy_names.pop('default', ResolutionStrategy.SERVER_WINS.value)
        try:
            default_strategy = ResolutionStrategy.parse(default_name)
            strategies = {name: ResolutionStrategy.parse(value) for name, value in strategy_names.items()}
        except ValueError as exc:
            raise ImproperlyConfigured(str(exc)) from exc

        ownership = {
            name: FieldOwnership(
                client_fields=tuple(rule.get('client') or ()),
                server_fields=tuple(rule.get('server') or ()),
            )
            for name, rule in (raw.get('fieldOwnership') or {}).items()
        }

        batch = dict(raw.get('batch') or {})
        per_collection = batch.pop('collections', None) or {}
        batch_default = _batch_limits(batch, BatchLimits())
        batch_overrides = {
            name: _batch_limits(values, batch_default) for name, values in per_collection.items()
        }

        role_limits = {name: _role_limits(values) for name, values in (raw.get('roles') or {}).items()}

        realtime = raw.get('realtime') or {}
        validation = {
            name: ValidationRules(
                required=tuple(rule.get('required') or ()),
                types=MappingProxyType(dict(rule.get('types') or {})),
            )
            for name, rule in (raw.get('validation') or {}).items()
        }

        return cls(
            collections=collections,
            default_collections=default_collections,
            strategies=MappingProxyType(strategies),
            default_strategy=default_strategy,
            field_ownership=MappingProxyType(ownership),
            batch_default=batch_default,
            batch_overrides=MappingProxyType(batch_overrides),
            role_limits=MappingProxyType(role_limits),
            heartbeat_window_seconds=int(realtime.get('heartbeatWindowSeconds', 300)),
            validation_rules=MappingProxyType(validation),
        )


def _batch_limits(values: Mapping[str, Any], base: BatchLimits) -> BatchLimits:
    return BatchLimits(
        page_limit=int(values.get('pageLimit', base.page_limit)),
        deleted_limit=int(values.get('deletedLimit', base.deleted_limit)),
        max_pages=int(values.get('maxPages', base.max_pages)),
    )


def _role_limits(values: Mapping[str, Any]) -> RoleLimits:
    base = RoleLimits()
    rate = values.get('rateLimit') or {}
    return RoleLimits(
        max_page_limit=int(values.get('maxPageLimit', base.max_page_limit)),
        max_pages=int(values.get('maxPages', base.max_pages)),
        sync_interval_seconds=int(values.get('syncIntervalSeconds', base.sync_interval_seconds)),
        compression=bool(values.get('compression', base.compression)),
        rate_limit_requests=int(rate.get('requests', base.rate_limit_requests)),
        rate_limit_duration=int(rate.get('duration', base.rate_limit_duration)),
    )


def load_raw_config() -> Dict[str, Any]:
    raw = dict(getattr(settings, 'SYNC_ENGINE', None) or {})
    path = getattr(settings, 'SYNC_CONFIG_PATH', '')
    if path:
        try:
            with open(path, encoding='utf-8') as fh:
                raw.update(json.load(fh))
        except (OSError, ValueError) as exc:
            raise ImproperlyConfigured(f'cannot read sync configuration {path}: {exc}') from exc
    return raw


@lru_cache(maxsize=1)
def get_sync_config() -> SyncConfig:
    return SyncConfig.from_dict(load_raw_config())


@receiver(setting_changed)
def _reload_sync_config(*, setting, **kwargs):
    if setting in ('SYNC_ENGINE', 'SYNC_CONFIG_PATH'):
        get_sync_config.cache_clear()
