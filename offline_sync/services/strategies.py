"""
Conflict resolution strategies.

A strategy is a pure function of ``(server, client, context)`` returning
the document to store.  Strategies never read the clock or the database,
so the same inputs always produce the same output.  Documents are plain
dicts carrying the stored fields plus the ``$``-prefixed system fields.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Tuple

Document = Dict[str, Any]

# Identity and timestamps assigned by the store.
SYSTEM_IDENTITY_FIELDS: Tuple[str, ...] = ('$id', '$createdAt', '$updatedAt')
# Always taken from the server by ``merge_with_server_priority``.
CRITICAL_FIELDS: Tuple[str, ...] = SYSTEM_IDENTITY_FIELDS + ('facility_id',)


@dataclass(frozen=True)
class FieldOwnership:
    """Which fields of a collection a device may change during a conflict."""
    client_fields: Tuple[str, ...] = ()
    server_fields: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ResolutionContext:
    collection: str
    device_id: str = ''
    user_id: Optional[int] = None
    ownership: Optional[FieldOwnership] = field(default=None)


def _server_wins(server: Document, client: Document, context: ResolutionContext) -> Document:
    return dict(server)


def _client_wins(server: Document, client: Document, context: ResolutionContext) -> Document:
    merged = dict(client or {})
    for key in SYSTEM_IDENTITY_FIELDS:
        if key in server:
            merged[key] = server[key]
        else:
            merged.pop(key, None)
    return merged


def _merge_with_server_priority(server: Document, client: Document, context: ResolutionContext) -> Document:
    merged = dict(client or {})
    for key in CRITICAL_FIELDS:
        if key in server:
            merged[key] = server[key]
    for key, value in server.items():
        if key in CRITICAL_FIELDS:
            continue
        # Server-only fields are kept; shared fields that differ take the server value.
        if key not in merged or merged[key] != value:
            merged[key] = value
    return merged


def _merge_with_client_priority(server: Document, client: Document, context: ResolutionContext) -> Document:
    merged = dict(server)
    for key, value in (client or {}).items():
        if key in SYSTEM_IDENTITY_FIELDS:
            continue
        merged[key] = value
    return merged


def _field_level_merge(server: Document, client: Document, context: ResolutionContext) -> Document:
    ownership = context.ownership
    if ownership is None:
        return _server_wins(server, client, context)
    merged = dict(server)
    client = client or {}
    for key in ownership.client_fields:
        if key in client:
            merged[key] = client[key]
    for key in ownership.server_fields:
        if key in server:
            merged[key] = server[key]
        else:
            merged.pop(key, None)
    return merged


class ResolutionStrategy(enum.Enum):
    """Closed set of resolution strategies, each bound to its resolver."""

    SERVER_WINS = 'server_wins'
    CLIENT_WINS = 'client_wins'
    MERGE_WITH_SERVER_PRIORITY = 'merge_with_server_priority'
    MERGE_WITH_CLIENT_PRIORITY = 'merge_with_client_priority'
    FIELD_LEVEL_MERGE = 'field_level_merge'

    @property
    def resolver(self) -> Callable[[Document, Document, ResolutionContext], Document]:
        return _RESOLVERS[self]

    def resolve(self, server: Document, client: Document, context: ResolutionContext) -> Document:
        return self.resolver(server, client, context)

    @classmethod
    def parse(cls, name: str) -> 'ResolutionStrategy':
        try:
            return cls(name)
        except ValueError:
            raise ValueError(f"unknown conflict strategy: {name!r}") from None


_RESOLVERS: Dict[ResolutionStrategy, Callable[[Document, Document, ResolutionContext], Document]] = {
    ResolutionStrategy.SERVER_WINS: _server_wins,
    ResolutionStrategy.CLIENT_WINS: _client_wins,
    ResolutionStrategy.MERGE_WITH_SERVER_PRIORITY: _merge_with_server_priority,
    ResolutionStrategy.MERGE_WITH_CLIENT_PRIORITY: _merge_with_client_priority,
    ResolutionStrategy.FIELD_LEVEL_MERGE: _field_level_merge,
}
