import json

from asgiref.sync import async_to_sync
from channels.generic.websocket import AsyncWebsocketConsumer
from channels.layers import get_channel_layer


def org_group(organization_id) -> str:
    return f"org_{organization_id}"


def user_group(user_id) -> str:
    return f"user_{user_id}"


def _group_send(group: str, event_type: str, payload: dict) -> None:
    channel_layer = get_channel_layer()
    if channel_layer is None:
        return
    async_to_sync(channel_layer.group_send)(group, {"type": "org.event", "event": event_type, "data": payload})


def broadcast(organization_id, event_type: str, payload: dict) -> None:
    """Push an event to every socket of the organization (no-op without a layer)."""
    if organization_id is None:
        return
    _group_send(org_group(organization_id), event_type, payload)


def send_to_user(user_id, event_type: str, payload: dict) -> None:
    """Push an event to the sockets of one user only."""
    if user_id is None:
        return
    _group_send(user_group(user_id), event_type, payload)


class UpdatesConsumer(AsyncWebsocketConsumer):
    """Per care home stream of audit changes plus the user's own notifications."""

    async def connect(self):
        user = self.scope.get("user")
        if not (user and user.is_authenticated and user.organization_id):
            await self.close(code=4001)
            return
        self.groups_joined = [org_group(user.organization_id), user_group(user.id)]
        for group in self.groups_joined:
            await self.channel_layer.group_add(group, self.channel_name)
        await self.accept()
        await self.send(json.dumps({"type": "welcome", "message": "connected"}))

    async def disconnect(self, close_code):
        for group in getattr(self, "groups_joined", []):
            await self.channel_layer.group_discard(group, self.channel_name)

    async def org_event(self, event):
        # event: {"type": "org.event", "event": "audit.completed", "data": {...}}
        await self.send(json.dumps({"type": event["event"], "data": event["data"]}))
