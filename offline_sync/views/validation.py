from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from offline_sync.permissions import HasSyncRole
from offline_sync.serializers.sync import ValidateSerializer
from offline_sync.services.access import resolve_access
from offline_sync.services.validation import validate_documents


@api_view(['POST'])
@permission_classes([HasSyncRole])
def validate(request):
    s = ValidateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    return Response(validate_documents(
        resolve_access(request.user),
        s.validated_data['collection'],
        s.validated_data['documents'],
        s.validated_data.get('mode', 'validate'),
    ))
