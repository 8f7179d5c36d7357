from django.core.management.base import BaseCommand

from offline_sync.services.realtime import expire_stale_sessions


class Command(BaseCommand):
    help = "Mark active sync sessions without a recent heartbeat as inactive."

    def handle(self, *args, **options):
        expired = expire_stale_sessions()
        self.stdout.write(self.style.SUCCESS(f"Expired {expired} stale sync sessions"))
