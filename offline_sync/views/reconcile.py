from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from offline_sync.permissions import HasSyncRole
from offline_sync.serializers.sync import ReconcileSerializer
from offline_sync.services.access import resolve_access
from offline_sync.services.reconcile import reconcile


@api_view(['POST'])
@permission_classes([HasSyncRole])
def reconcile_document(request):
    """Push one locally edited document; conflicts are resolved server side."""
    s = ReconcileSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    access = resolve_access(request.user)
    outcome = reconcile(
        s.validated_data['collection'],
        s.validated_data['documentId'],
        s.validated_data.get('clientData') or {},
        s.validated_data.get('clientTimestamp'),
        access=access,
        device_id=s.validated_data.get('deviceId', ''),
    )
    return Response(outcome.to_dict())
