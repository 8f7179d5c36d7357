from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from offline_sync.permissions import HasSyncRole
from offline_sync.serializers.sync import QueueSerializer
from offline_sync.services.access import resolve_access
from offline_sync.services.queue import process_queue


@api_view(['POST'])
@permission_classes([HasSyncRole])
def process_offline_queue(request):
    s = QueueSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    report = process_queue(
        resolve_access(request.user),
        s.validated_data['deviceId'],
        s.validated_data['queuedOperations'],
    )
    return Response(report.to_dict())
