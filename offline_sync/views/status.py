from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from offline_sync.permissions import IsSyncAuditor
from offline_sync.serializers.sync import StatusQuerySerializer
from offline_sync.services.access import resolve_access
from offline_sync.services.status import summarize


@api_view(['GET'])
@permission_classes([IsSyncAuditor])
def sync_status(request):
    """Sync health for the recent window; supervisors only see their own facility."""
    q = StatusQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    summary = summarize(
        q.validated_data.get('sinceMinutes', 60),
        device_id=q.validated_data.get('deviceId'),
        user_id=q.validated_data.get('userId'),
        facility_id=q.validated_data.get('facilityId'),
        access=resolve_access(request.user),
    )
    return Response({'success': True, 'summary': summary.to_dict()})
