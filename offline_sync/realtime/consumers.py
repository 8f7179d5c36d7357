import json

from asgiref.sync import sync_to_async
from channels.generic.websocket import AsyncWebsocketConsumer
from django.contrib.auth.models import AnonymousUser

from offline_sync.services.realtime import can_listen, device_group


class SyncUpdatesConsumer(AsyncWebsocketConsumer):
    """Pushes change notifications to one device while its session is live."""

    async def connect(self):
        user = self.scope.get("user") or AnonymousUser()
        if not user.is_authenticated:
            await self.close(code=4401)
            return
        self.device_id = self.scope["url_route"]["kwargs"]["device_id"]

        # only the device's registered user, or an administrator
        allowed = await sync_to_async(can_listen)(user, self.device_id)
        if not allowed:
            await self.close(code=4003)
            return

        self.group_name = device_group(self.device_id)
        await self.channel_layer.group_add(self.group_name, self.channel_name)
        await self.accept()
        await self.send(json.dumps({"type": "welcome", "deviceId": self.device_id}))

    async def disconnect(self, close_code):
        group = getattr(self, "group_name", None)
        if group:
            await self.channel_layer.group_discard(group, self.channel_name)

    async def sync_update(self, event):
        # event: {"type": "sync.update", "payload": {"collection": ..., "document_id": ..., "operation": ...}}
        await self.send(json.dumps(event["payload"]))
