"""
Deletion ledger.

An updated-since query cannot see rows that no longer exist, so every
removal from the document store is appended here and replayed to devices
as a delete change.
"""
from __future__ import annotations

from datetime import datetime
from typing import List

from django.db.models import Q

from ..models import DeletionLogEntry


def record_deletion(document, *, deleted_by=None, device_id: str = '') -> DeletionLogEntry:
    return DeletionLogEntry.objects.create(
        collection=document.collection,
        document_id=document.document_id,
        facility_id=document.facility_id,
        original_data=document.as_dict(),
        deleted_by_id=deleted_by if isinstance(deleted_by, int) else getattr(deleted_by, 'pk', None),
        device_id=device_id or '',
    )


def deletions_since(collection: str, watermark: datetime, scope: Q, limit: int) -> List[DeletionLogEntry]:
    """Deletions in ``collection`` after ``watermark``, oldest first, capped at ``limit``."""
    qs = (
        DeletionLogEntry.objects.filter(collection=collection, deleted_at__gt=watermark)
        .filter(scope)
        .order_by('deleted_at', 'id')
    )
    return list(qs[:max(0, limit)])
