"""
Database models for the offline-sync backend.

The shared document store is a single table of JSON documents keyed by
``(collection, document_id)``; every other model is part of the durable
trace of sync activity (deletion ledger, conflict audit trail, session and
queue logs, realtime notifications).  Trace models are append-only: rows
are created once and read many times.

Table names of the trace models can be overridden through
``SYNC_ENGINE['loggingCollections']``.
"""
from __future__ import annotations

from django.contrib.auth.models import AbstractUser
from django.db import models

from .config import logging_table


class Facility(models.Model):
    """A health facility.  Every health worker is bound to at most one."""
    id = models.CharField(
        max_length=36,
        primary_key=True,
        help_text="Unique identifier for the facility (e.g. 'F1')",
    )
    name = models.CharField(max_length=255)
    district = models.CharField(max_length=255, blank=True)
    active = models.BooleanField(default=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name_plural = 'facilities'

    def __str__(self) -> str:
        return f"{self.name} ({self.id})"


class User(AbstractUser):
    """Health worker account with a role and an optional facility binding.

    Administrators see every facility; all other roles are scoped to the
    facility they are bound to.
    """
    ROLE_ADMINISTRATOR = 'administrator'
    ROLE_SUPERVISOR = 'supervisor'
    ROLE_DOCTOR = 'doctor'
    ROLE_USER = 'user'
    ROLE_CHOICES = [
        (ROLE_ADMINISTRATOR, 'Administrator'),
        (ROLE_SUPERVISOR, 'Supervisor'),
        (ROLE_DOCTOR, 'Doctor'),
        (ROLE_USER, 'User'),
    ]
    role = models.CharField(max_length=16, choices=ROLE_CHOICES, default=ROLE_USER)
    facility = models.ForeignKey(
        Facility, null=True, blank=True, on_delete=models.SET_NULL, related_name='users', db_index=True
    )

    def __str__(self) -> str:
        return f"{self.username} ({self.role})"


class SyncDocument(models.Model):
    """One document of a synchronised collection.

    ``updated_at`` is the store's authoritative modification time; it is
    the only clock used for incremental pulls and conflict detection.
    """
    collection = models.CharField(max_length=64)
    document_id = models.CharField(max_length=64)
    # Owning facility; blank means shared reference data visible to all.
    facility_id = models.CharField(max_length=36, blank=True, default='', db_index=True)
    data = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=['collection', 'document_id'], name='uniq_sync_document'),
        ]
        indexes = [
            models.Index(fields=['collection', 'updated_at'], name='syncdoc_coll_updated_idx'),
            models.Index(fields=['collection', 'facility_id', 'document_id'], name='syncdoc_coll_fac_doc_idx'),
        ]

    def __str__(self) -> str:
        return f"{self.collection}/{self.document_id}"


class DeletionLogEntry(models.Model):
    """Append-only record of a document removed from the store."""
    collection = models.CharField(max_length=64)
    document_id = models.CharField(max_length=64)
    facility_id = models.CharField(max_length=36, blank=True, default='', db_index=True)
    original_data = models.JSONField(default=dict, blank=True)
    deleted_by = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='+')
    device_id = models.CharField(max_length=128, blank=True, default='')
    deleted_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = logging_table('deletionLog')
        indexes = [
            models.Index(fields=['collection', 'deleted_at'], name='deletion_coll_deleted_idx'),
        ]

    def __str__(self) -> str:
        return f"deleted {self.collection}/{self.document_id} @ {self.deleted_at:%F %T}"


class ConflictLog(models.Model):
    """A detected conflict and how it was resolved, kept for compliance review."""
    collection = models.CharField(max_length=64)
    document_id = models.CharField(max_length=64)
    facility_id = models.CharField(max_length=36, blank=True, default='', db_index=True)
    server_data = models.JSONField(default=dict)
    client_data = models.JSONField(default=dict)
    resolved_data = models.JSONField(default=dict)
    strategy = models.CharField(max_length=40)
    device_id = models.CharField(max_length=128, blank=True, default='')
    user = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='+')
    timestamp = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = logging_table('conflictLog')
        indexes = [
            models.Index(fields=['timestamp'], name='conflict_timestamp_idx'),
            models.Index(fields=['collection', 'document_id', 'timestamp'], name='conflict_coll_doc_ts_idx'),
        ]

    def __str__(self) -> str:
        return f"conflict {self.collection}/{self.document_id} ({self.strategy})"


class SyncOperationLog(models.Model):
    """One row per completed sync session."""
    device_id = models.CharField(max_length=128)
    user = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='+')
    facility_id = models.CharField(max_length=36, blank=True, default='', db_index=True)
    role = models.CharField(max_length=16, blank=True)
    sync_timestamp = models.DateTimeField()
    last_sync_timestamp = models.DateTimeField()
    collections = models.JSONField(default=list)
    status = models.CharField(max_length=16, default='completed')
    results = models.JSONField(default=dict, blank=True)
    execution_time_ms = models.PositiveIntegerField(default=0)

    class Meta:
        db_table = logging_table('syncOperations')
        indexes = [
            models.Index(fields=['sync_timestamp'], name='syncop_timestamp_idx'),
            models.Index(fields=['device_id', 'sync_timestamp'], name='syncop_device_ts_idx'),
        ]

    def __str__(self) -> str:
        return f"sync {self.device_id} @ {self.sync_timestamp:%F %T} ({self.status})"


class QueueProcessingLog(models.Model):
    """Summary of one offline-queue replay from a device."""
    device_id = models.CharField(max_length=128)
    user = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='+')
    facility_id = models.CharField(max_length=36, blank=True, default='', db_index=True)
    total_operations = models.PositiveIntegerField(default=0)
    success_count = models.PositiveIntegerField(default=0)
    failure_count = models.PositiveIntegerField(default=0)
    results = models.JSONField(default=list, blank=True)
    processed_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = logging_table('queueProcessingLog')
        indexes = [models.Index(fields=['processed_at'], name='queuelog_processed_idx')]

    def __str__(self) -> str:
        return f"queue {self.device_id}: {self.success_count}/{self.total_operations}"


class ActiveSyncSession(models.Model):
    """Device currently listening for changes; kept alive by heartbeats."""
    STATUS_ACTIVE = 'active'
    STATUS_INACTIVE = 'inactive'
    STATUS_CHOICES = ((STATUS_ACTIVE, 'active'), (STATUS_INACTIVE, 'inactive'))

    device_id = models.CharField(max_length=128, unique=True)
    user = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='+')
    facility_id = models.CharField(max_length=36, blank=True, default='')
    collections = models.JSONField(default=list)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_ACTIVE, db_index=True)
    last_heartbeat = models.DateTimeField()
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = logging_table('activeSyncSessions')
        indexes = [models.Index(fields=['status', 'last_heartbeat'], name='session_status_hb_idx')]

    def __str__(self) -> str:
        return f"session {self.device_id} ({self.status})"


class SyncNotification(models.Model):
    """A change a listening device has not pulled yet."""
    device_id = models.CharField(max_length=128)
    user = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='+')
    collection = models.CharField(max_length=64)
    document_id = models.CharField(max_length=64)
    operation = models.CharField(max_length=16)
    status = models.CharField(max_length=16, default='pending', db_index=True)
    timestamp = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = logging_table('syncNotifications')
        indexes = [models.Index(fields=['device_id', 'timestamp'], name='syncnotif_device_ts_idx')]


class RealtimeNotification(models.Model):
    """Push payload for a device; ``delivered`` flips once the device has read it."""
    device_id = models.CharField(max_length=128)
    data = models.JSONField(default=dict)
    delivered = models.BooleanField(default=False, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = logging_table('realtimeNotifications')
        indexes = [models.Index(fields=['device_id', 'created_at'], name='rtnotif_device_created_idx')]


class SecurityEvent(models.Model):
    """Security-relevant sync events (denials, rate limits, system errors)."""
    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True)
    action = models.CharField(max_length=64)
    device_id = models.CharField(max_length=128, blank=True, default='')
    detail = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=['action', 'created_at'], name='secevent_action_created_idx'),
        ]

    def __str__(self):
        return f"{self.action}:{self.user_id}@{self.created_at:%F %T}"
