from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from offline_sync.permissions import IsSyncAuditor
from offline_sync.serializers.sync import ConflictQuerySerializer
from offline_sync.services.access import resolve_access
from offline_sync.services.audit import list_conflicts


@api_view(['GET'])
@permission_classes([IsSyncAuditor])
def conflict_list(request):
    q = ConflictQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    data = list_conflicts(
        resolve_access(request.user),
        collection=q.validated_data.get('collection'),
        document_id=q.validated_data.get('documentId'),
        device_id=q.validated_data.get('deviceId'),
        since=q.validated_data.get('since'),
        limit=q.validated_data.get('limit', 50),
    )
    return Response({'success': True, 'data': data, 'count': len(data)})
