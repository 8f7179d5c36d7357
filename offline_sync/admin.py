"""
Django admin registrations for the sync models.

The trace models (deletion ledger, conflict log, session and queue logs)
are append-only, so their admins are read-only: compliance reviewers can
browse them but nobody edits history through ``/admin/``.
"""

from django.contrib import admin

from .models import (
    ActiveSyncSession,
    ConflictLog,
    DeletionLogEntry,
    Facility,
    QueueProcessingLog,
    RealtimeNotification,
    SecurityEvent,
    SyncDocument,
    SyncNotification,
    SyncOperationLog,
    User,
)


class ReadOnlyAdmin(admin.ModelAdmin):
    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(Facility)
class FacilityAdmin(admin.ModelAdmin):
    list_display = ('id', 'name', 'district', 'active', 'created_at')
    search_fields = ('id', 'name', 'district')
    list_filter = ('active',)


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ('username', 'role', 'facility', 'is_staff', 'is_superuser')
    list_filter = ('role', 'facility')
    search_fields = ('username', 'first_name', 'last_name')


@admin.register(SyncDocument)
class SyncDocumentAdmin(admin.ModelAdmin):
    list_display = ('collection', 'document_id', 'facility_id', 'updated_at')
    list_filter = ('collection',)
    search_fields = ('document_id', 'facility_id')
    readonly_fields = ('created_at', 'updated_at')


@admin.register(DeletionLogEntry)
class DeletionLogEntryAdmin(ReadOnlyAdmin):
    list_display = ('collection', 'document_id', 'facility_id', 'deleted_by', 'deleted_at')
    list_filter = ('collection',)
    search_fields = ('document_id',)


@admin.register(ConflictLog)
class ConflictLogAdmin(ReadOnlyAdmin):
    list_display = ('collection', 'document_id', 'strategy', 'device_id', 'user', 'timestamp')
    list_filter = ('collection', 'strategy')
    search_fields = ('document_id', 'device_id')


@admin.register(SyncOperationLog)
class SyncOperationLogAdmin(ReadOnlyAdmin):
    list_display = ('device_id', 'user', 'role', 'status', 'sync_timestamp', 'execution_time_ms')
    list_filter = ('status', 'role')
    search_fields = ('device_id',)


@admin.register(QueueProcessingLog)
class QueueProcessingLogAdmin(ReadOnlyAdmin):
    list_display = ('device_id', 'user', 'total_operations', 'success_count', 'failure_count', 'processed_at')
    search_fields = ('device_id',)


@admin.register(ActiveSyncSession)
class ActiveSyncSessionAdmin(admin.ModelAdmin):
    list_display = ('device_id', 'user', 'facility_id', 'status', 'last_heartbeat')
    list_filter = ('status',)
    search_fields = ('device_id',)


@admin.register(SyncNotification)
class SyncNotificationAdmin(ReadOnlyAdmin):
    list_display = ('device_id', 'collection', 'document_id', 'operation', 'status', 'timestamp')
    list_filter = ('status', 'operation')


@admin.register(RealtimeNotification)
class RealtimeNotificationAdmin(ReadOnlyAdmin):
    list_display = ('device_id', 'delivered', 'created_at')
    list_filter = ('delivered',)


@admin.register(SecurityEvent)
class SecurityEventAdmin(ReadOnlyAdmin):
    list_display = ('action', 'user', 'device_id', 'created_at')
    list_filter = ('action',)
