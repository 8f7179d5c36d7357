from django.apps import AppConfig


class OfflineSyncConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'offline_sync'
    verbose_name = 'Offline sync'

    def ready(self):
        from . import signals  # noqa: F401
