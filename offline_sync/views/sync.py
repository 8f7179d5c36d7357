from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from offline_sync.permissions import HasSyncRole
from offline_sync.serializers.sync import SyncRequestSerializer
from offline_sync.services.access import resolve_access
from offline_sync.services.coordinator import SyncRequest, run_sync_session


@api_view(['POST'])
@permission_classes([HasSyncRole])
def incremental_sync(request):
    """Pull changes for the requested collections since the device's last sync."""
    s = SyncRequestSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    access = resolve_access(request.user)
    data = s.validated_data
    result = run_sync_session(access, SyncRequest(
        device_id=data.get('deviceId', ''),
        last_sync=data.get('lastSyncTimestamp'),
        collections=data.get('collections'),
        page_limit=data.get('pageLimit'),
        max_pages=data.get('maxPages'),
        page_cursor=data.get('pageCursor'),
        page_cursors=data.get('pageCursors') or {},
        compress=data.get('compress', False),
    ))
    return Response(result.to_response())
