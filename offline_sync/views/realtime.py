from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from offline_sync.permissions import HasSyncRole
from offline_sync.serializers.sync import HeartbeatSerializer, NotificationQuerySerializer
from offline_sync.services.access import resolve_access
from offline_sync.services.realtime import heartbeat, pending_notifications
from offline_sync.services.store import to_iso


@api_view(['POST'])
@permission_classes([HasSyncRole])
def sync_heartbeat(request):
    s = HeartbeatSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    session = heartbeat(resolve_access(request.user), s.validated_data['deviceId'], s.validated_data['collections'])
    return Response({
        'success': True,
        'deviceId': session.device_id,
        'status': session.status,
        'collections': session.collections,
        'lastHeartbeat': to_iso(session.last_heartbeat),
    })


@api_view(['GET'])
@permission_classes([HasSyncRole])
def sync_notifications(request):
    q = NotificationQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    data = pending_notifications(
        resolve_access(request.user), q.validated_data['deviceId'], limit=q.validated_data.get('limit', 100),
    )
    return Response({'success': True, 'data': data, 'count': len(data)})
