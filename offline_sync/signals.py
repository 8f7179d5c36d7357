"""
Document change hooks that feed the real-time sync trigger.

Notifications go out once the writing transaction commits, so a rolled
back write never reaches a device.
"""
from django.db import transaction
from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver

from .models import SyncDocument
from .services.realtime import notify_document_change


def notify_after_commit(instance, operation):
    collection, document_id, facility_id = instance.collection, instance.document_id, instance.facility_id
    transaction.on_commit(
        lambda: notify_document_change(collection, document_id, operation, facility_id=facility_id)
    )


@receiver(post_save, sender=SyncDocument)
def document_saved(sender, instance, created, **kwargs):
    if kwargs.get('raw'):
        return
    notify_after_commit(instance, 'create' if created else 'update')


@receiver(post_delete, sender=SyncDocument)
def document_deleted(sender, instance, **kwargs):
    notify_after_commit(instance, 'delete')
