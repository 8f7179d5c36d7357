"""
URL mappings for the offline sync API.

Paths carry no trailing slash, matching what the mobile client calls.
"""
from django.urls import path, include

from .views import health
from .views.conflicts import conflict_list
from .views.queue import process_offline_queue
from .views.realtime import sync_heartbeat, sync_notifications
from .views.reconcile import reconcile_document
from .views.status import sync_status
from .views.sync import incremental_sync
from .views.validation import validate

urlpatterns = [
    path('metrics', include('django_prometheus.urls')),
    path('healthz', health.healthz),
    # Pull / push
    path('api/sync/incremental', incremental_sync),
    path('api/sync/reconcile', reconcile_document),
    path('api/sync/queue', process_offline_queue),
    path('api/sync/validate', validate),
    # Monitoring and audit
    path('api/sync/status', sync_status),
    path('api/sync/conflicts', conflict_list),
    # Realtime
    path('api/sync/heartbeat', sync_heartbeat),
    path('api/sync/notifications', sync_notifications),
]
