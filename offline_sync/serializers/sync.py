from rest_framework import serializers


class SyncRequestSerializer(serializers.Serializer):
    # deviceId is checked by the coordinator so a missing id reports INVALID_REQUEST.
    deviceId = serializers.CharField(max_length=128, required=False, allow_blank=True, default='')
    lastSyncTimestamp = serializers.DateTimeField(required=False, allow_null=True)
    collections = serializers.ListField(child=serializers.CharField(max_length=64), required=False, allow_empty=True)
    pageLimit = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    maxPages = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    pageCursor = serializers.CharField(max_length=64, required=False, allow_blank=True, allow_null=True)
    pageCursors = serializers.DictField(child=serializers.CharField(max_length=64), required=False)
    compress = serializers.BooleanField(required=False, default=False)


class ReconcileSerializer(serializers.Serializer):
    collection = serializers.CharField(max_length=64)
    documentId = serializers.CharField(max_length=64)
    clientData = serializers.DictField(required=False, default=dict)
    clientTimestamp = serializers.JSONField(required=False, allow_null=True)
    deviceId = serializers.CharField(max_length=128, required=False, allow_blank=True, default='')

    def validate_documentId(self, v):
        v = (v or '').strip()
        if not v:
            raise serializers.ValidationError('documentId cannot be blank')
        return v


class QueueSerializer(serializers.Serializer):
    deviceId = serializers.CharField(max_length=128)
    queuedOperations = serializers.ListField(child=serializers.DictField(), allow_empty=True)


class ValidateSerializer(serializers.Serializer):
    collection = serializers.CharField(max_length=64)
    documents = serializers.ListField(child=serializers.DictField(), allow_empty=True)
    mode = serializers.ChoiceField(choices=['validate', 'upsert'], required=False, default='validate')


class StatusQuerySerializer(serializers.Serializer):
    sinceMinutes = serializers.IntegerField(min_value=1, max_value=60 * 24 * 30, required=False, default=60)
    deviceId = serializers.CharField(max_length=128, required=False)
    userId = serializers.IntegerField(min_value=1, required=False)
    facilityId = serializers.CharField(max_length=36, required=False)


class ConflictQuerySerializer(serializers.Serializer):
    collection = serializers.CharField(max_length=64, required=False)
    documentId = serializers.CharField(max_length=64, required=False)
    deviceId = serializers.CharField(max_length=128, required=False)
    since = serializers.DateTimeField(required=False)
    limit = serializers.IntegerField(min_value=1, max_value=200, required=False, default=50)


class HeartbeatSerializer(serializers.Serializer):
    deviceId = serializers.CharField(max_length=128)
    collections = serializers.ListField(child=serializers.CharField(max_length=64), required=False, default=list)


class NotificationQuerySerializer(serializers.Serializer):
    deviceId = serializers.CharField(max_length=128)
    limit = serializers.IntegerField(min_value=1, max_value=500, required=False, default=100)
