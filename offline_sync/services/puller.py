"""
Change-set puller.

Produces one bounded, cursor-resumable page set of the documents in a
collection changed after a watermark, plus the deletions recorded after
the same watermark.

Pagination is keyed on the last document id seen, never on an offset,
so writes landing between two calls cannot shift a page boundary.  The
cursor is an explicit value: it comes in as an argument and the next one
goes out in the result.  A document updated while a device is paging may
show up in a later page or on the next sync cycle.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from django.db.models import Q

from ..config import RoleLimits, SyncConfig, get_sync_config
from ..exceptions import InvalidCollectionError
from .deletions import deletions_since
from .store import DocumentStore, default_store, to_iso

OPERATION_UPDATE = 'update'
OPERATION_DELETE = 'delete'


@dataclass(frozen=True)
class ChangeRecord:
    collection: str
    document_id: str
    data: Optional[Dict[str, Any]]
    updated_at: datetime
    operation: str = OPERATION_UPDATE

    def to_dict(self) -> Dict[str, Any]:
        out = {
            'id': self.document_id,
            'collection': self.collection,
            'operation': self.operation,
            'updatedAt': to_iso(self.updated_at),
        }
        if self.operation == OPERATION_DELETE:
            out['deletedAt'] = out['updatedAt']
        else:
            out['data'] = self.data
        return out


@dataclass(frozen=True)
class SyncCursor:
    """Resume point for a paged pull.

    The token is ``<page>:<last document id>``; a bare document id is
    read as page 0.
    """
    collection: str
    last_document_id: Optional[str] = None
    page: int = 0
    has_more: bool = False

    def to_token(self) -> Optional[str]:
        if self.last_document_id is None:
            return None
        if not self.page and ':' not in self.last_document_id:
            return self.last_document_id
        return f'{self.page}:{self.last_document_id}'

    @classmethod
    def from_token(cls, collection: str, token: Optional[str]) -> Optional['SyncCursor']:
        if not token:
            return None
        token = str(token)
        prefix, sep, rest = token.partition(':')
        if sep and rest and prefix.isdigit():
            return cls(collection=collection, last_document_id=rest, page=int(prefix), has_more=True)
        return cls(collection=collection, last_document_id=token, page=0, has_more=True)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'collection': self.collection,
            'lastDocumentId': self.last_document_id,
            'page': self.page,
            'hasMore': self.has_more,
        }


@dataclass(frozen=True)
class PullResult:
    collection: str
    updated: Tuple[ChangeRecord, ...] = ()
    deleted: Tuple[ChangeRecord, ...] = ()
    has_more: bool = False
    next_cursor: Optional[SyncCursor] = None
    pages_fetched: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'success': True,
            'updated': [r.to_dict() for r in self.updated],
            'deleted': [r.to_dict() for r in self.deleted],
            'hasMore': self.has_more,
            'nextCursor': self.next_cursor.to_token() if self.next_cursor else None,
            'pagesFetched': self.pages_fetched,
        }


def clamp_paging(requested_page_limit: Optional[int], requested_max_pages: Optional[int],
                 limits: RoleLimits, *, default_page_limit: int, default_max_pages: int) -> Tuple[int, int]:
    """Bound client-requested paging by the role ceiling; both values are at least 1."""
    page_limit = requested_page_limit or default_page_limit
    max_pages = requested_max_pages or default_max_pages
    return (
        max(1, min(int(page_limit), limits.max_page_limit)),
        max(1, min(int(max_pages), limits.max_pages)),
    )


def pull(
    collection: str,
    last_sync: datetime,
    scope: Q,
    cursor: Optional[SyncCursor],
    page_limit: int,
    max_pages: int,
    *,
    deleted_limit: Optional[int] = None,
    config: Optional[SyncConfig] = None,
    store: Optional[DocumentStore] = None,
) -> PullResult:
    config = config or get_sync_config()
    store = store or default_store
    if not config.is_known_collection(collection):
        raise InvalidCollectionError(collection)
    if deleted_limit is None:
        deleted_limit = config.batch_for(collection).deleted_limit
    page_limit = max(1, int(page_limit))
    max_pages = max(1, int(max_pages))

    start_after = cursor.last_document_id if cursor else None
    total = store.count_documents(collection, updated_after=last_sync, scope=scope, after_id=start_after)

    updated: List[ChangeRecord] = []
    last_id = start_after
    pages = 0
    has_more = False
    while True:
        docs = store.list_documents(
            collection, updated_after=last_sync, scope=scope, after_id=last_id, limit=page_limit,
        )
        pages += 1
        updated.extend(
            ChangeRecord(
                collection=collection,
                document_id=doc.document_id,
                data=doc.as_dict(),
                updated_at=doc.updated_at,
            )
            for doc in docs
        )
        if docs:
            last_id = docs[-1].document_id
        if len(docs) < page_limit or len(updated) >= total:
            break
        if pages >= max_pages:
            has_more = True
            break

    next_cursor = None
    if has_more:
        base_page = cursor.page if cursor else 0
        next_cursor = SyncCursor(collection=collection, last_document_id=last_id,
                                 page=base_page + pages, has_more=True)

    deleted = tuple(
        ChangeRecord(
            collection=collection,
            document_id=entry.document_id,
            data=None,
            updated_at=entry.deleted_at,
            operation=OPERATION_DELETE,
        )
        for entry in deletions_since(collection, last_sync, scope, deleted_limit)
    )

    return PullResult(
        collection=collection,
        updated=tuple(updated),
        deleted=deleted,
        has_more=has_more,
        next_cursor=next_cursor,
        pages_fetched=pages,
    )
