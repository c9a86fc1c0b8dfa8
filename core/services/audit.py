from typing import Optional, Any, Dict
import logging

from django.contrib.auth import get_user_model
from core.models import AuditEvent, Resident

User = get_user_model()
logger = logging.getLogger(__name__)


def client_ip(request) -> Optional[str]:
    forwarded = request.META.get('HTTP_X_FORWARDED_FOR')
    if forwarded:
        return forwarded.split(',')[0].strip()
    return request.META.get('REMOTE_ADDR')


def log_action(*, user: Optional[User], action: str, object_type: Optional[str] = None,
               object_id: Optional[Any] = None, resident: Optional[Resident] = None,
               detail: Optional[Dict[str, Any]] = None, ip: Optional[str] = None) -> AuditEvent:
    event = AuditEvent.objects.create(
        user=user if getattr(user, 'id', None) else None,
        action=action,
        object_type=object_type,
        object_id=str(object_id) if object_id is not None else None,
        resident=resident,
        detail=detail or {},
        ip=ip,
    )
    logger.info('audit %s %s:%s', action, object_type, object_id,
                extra={'user_id': getattr(user, 'id', None), 'operation': action})
    return event
