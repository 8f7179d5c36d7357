"""
Document store primitives over :class:`SyncDocument`.

The rest of the engine only talks to the store through
:class:`DocumentStore`: get, idempotent create, patch update, delete with
a ledger entry, and a filtered listing ordered by document id.  Documents
leave the store as dicts carrying the stored fields plus the system
fields ``$id``, ``$collectionId``, ``$createdAt`` and ``$updatedAt``.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone as dt_timezone
from typing import Any, Dict, List, Optional, Tuple

from django.db import transaction
from django.db.models import Q

from ..models import SyncDocument

SYSTEM_FIELD_PREFIX = '$'


def to_iso(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.astimezone(dt_timezone.utc).isoformat(timespec='microseconds').replace('+00:00', 'Z')


def sanitize_document_data(data: Any) -> Dict[str, Any]:
    """Drop system fields a client may have forged."""
    if not isinstance(data, dict):
        return {}
    return {k: v for k, v in data.items() if not str(k).startswith(SYSTEM_FIELD_PREFIX)}


def owning_facility(collection: str, document_id: str, data: Dict[str, Any]) -> str:
    if collection == 'facilities':
        return str(document_id)
    value = data.get('facility_id')
    return str(value) if value not in (None, '') else ''


@dataclass(frozen=True)
class StoredDocument:
    collection: str
    document_id: str
    facility_id: str
    data: Dict[str, Any]
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_model(cls, obj: SyncDocument) -> 'StoredDocument':
        return cls(
            collection=obj.collection,
            document_id=obj.document_id,
            facility_id=obj.facility_id,
            data=dict(obj.data or {}),
            created_at=obj.created_at,
            updated_at=obj.updated_at,
        )

    def as_dict(self) -> Dict[str, Any]:
        return {
            **self.data,
            '$id': self.document_id,
            '$collectionId': self.collection,
            '$createdAt': to_iso(self.created_at),
            '$updatedAt': to_iso(self.updated_at),
        }


class DocumentStore:
    """Thin repository around the ``SyncDocument`` table."""

    def get(self, collection: str, document_id: str) -> Optional[StoredDocument]:
        obj = SyncDocument.objects.filter(collection=collection, document_id=document_id).first()
        return StoredDocument.from_model(obj) if obj else None

    def create(self, collection: str, document_id: str, data: Dict[str, Any]) -> Tuple[StoredDocument, bool]:
        """Create the document unless it already exists.

        A retried create returns the existing row untouched, so replays of
        the same offline operation never duplicate a record.
        """
        payload = sanitize_document_data(data)
        obj, created = SyncDocument.objects.get_or_create(
            collection=collection,
            document_id=document_id,
            defaults={
                'data': payload,
                'facility_id': owning_facility(collection, document_id, payload),
            },
        )
        return StoredDocument.from_model(obj), created

    def update(self, collection: str, document_id: str, data: Dict[str, Any]) -> StoredDocument:
        """Overlay ``data`` onto the stored fields.

        Raises ``SyncDocument.DoesNotExist`` if the document is missing.  A
        write that leaves the stored fields unchanged does not bump
        ``updated_at``.
        """
        obj = SyncDocument.objects.get(collection=collection, document_id=document_id)
        merged = {**(obj.data or {}), **sanitize_document_data(data)}
        if merged == obj.data:
            return StoredDocument.from_model(obj)
        obj.data = merged
        obj.facility_id = owning_facility(collection, document_id, merged)
        obj.save(update_fields=['data', 'facility_id', 'updated_at'])
        return StoredDocument.from_model(obj)

    def delete(self, collection: str, document_id: str, *, deleted_by=None, device_id: str = '') -> bool:
        """Remove a document and append it to the deletion ledger.

        Returns False when the document was already gone.
        """
        from .deletions import record_deletion

        with transaction.atomic():
            obj = SyncDocument.objects.filter(collection=collection, document_id=document_id).first()
            if obj is None:
                return False
            record_deletion(StoredDocument.from_model(obj), deleted_by=deleted_by, device_id=device_id)
            obj.delete()
        return True

    def _filtered(self, collection: str, *, updated_after: datetime, scope: Q, after_id: Optional[str]):
        qs = SyncDocument.objects.filter(collection=collection, updated_at__gt=updated_after).filter(scope)
        if after_id:
            qs = qs.filter(document_id__gt=after_id)
        return qs

    def list_documents(
        self,
        collection: str,
        *,
        updated_after: datetime,
        scope: Q,
        after_id: Optional[str] = None,
        limit: int = 100,
    ) -> List[StoredDocument]:
        qs = self._filtered(collection, updated_after=updated_after, scope=scope, after_id=after_id)
        return [StoredDocument.from_model(obj) for obj in qs.order_by('document_id')[:limit]]

    def count_documents(
        self,
        collection: str,
        *,
        updated_after: datetime,
        scope: Q,
        after_id: Optional[str] = None,
    ) -> int:
        return self._filtered(collection, updated_after=updated_after, scope=scope, after_id=after_id).count()


default_store = DocumentStore()
