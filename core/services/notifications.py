from __future__ import annotations

from typing import Optional

from django.db import transaction
from django.utils import timezone

from core.models import Notification, User
from core.realtime.consumers import broadcast, send_to_user


def serialize_notification(n: Notification) -> dict:
    return {
        'id': n.id,
        'type': n.type,
        'title': n.title,
        'message': n.message,
        'link': n.link or None,
        'metadata': n.metadata,
        'isRead': n.is_read,
        'senderId': n.sender_id,
        'createdAt': n.created_at.isoformat() if n.created_at else None,
    }


def notify(*, recipient: User, type: str, title: str, message: str, sender: Optional[User] = None,
           link: str = '', metadata: Optional[dict] = None, team=None) -> Notification:
    n = Notification.objects.create(
        recipient=recipient,
        sender=sender,
        type=type,
        title=title,
        message=message,
        link=link,
        metadata=metadata or {},
        organization_id=recipient.organization_id,
        team=team,
    )
    payload = {'recipientId': recipient.id, **serialize_notification(n)}
    transaction.on_commit(lambda: send_to_user(recipient.id, 'notification.created', payload))
    return n


def list_for_user(user: User, *, unread_only: bool = False, limit: int = 50):
    qs = Notification.objects.filter(recipient=user)
    if unread_only:
        qs = qs.filter(is_read=False)
    return list(qs.order_by('-created_at', '-id')[:limit])


def mark_read(user: User, notification_id: int) -> bool:
    return Notification.objects.filter(recipient=user, pk=notification_id).update(is_read=True) > 0


def mark_all_read(user: User) -> int:
    return Notification.objects.filter(recipient=user, is_read=False).update(is_read=True)


def unread_count(user: User) -> int:
    return Notification.objects.filter(recipient=user, is_read=False).count()


def broadcast_audit_change(response, change: str) -> None:
    broadcast(response.organization_id, 'audit.' + change, {
        'id': response.id,
        'templateId': response.template_id,
        'category': response.category,
        'status': response.status,
        'ts': timezone.now().isoformat(),
    })
