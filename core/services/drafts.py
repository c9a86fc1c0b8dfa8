"""
Draft reconciliation for the audit editor.

Opening an audit must never produce two drafts for the same scope, even
when the editor is opened twice at once (double click, two tabs).  The
first caller takes a short-lived cache lock for the draft key and moves
its state ``idle -> creating -> created``; a caller that loses the lock
waits for the winner's draft to become visible instead of inserting its
own.  The insert itself re-checks under a row lock on the template so
that two processes without a shared cache still converge.

Autosaves carry the hash of the content they were based on.  A save
whose content hashes to the stored value is skipped, and a save based
on an outdated hash is rejected with 409 so the client can reload.
"""
from __future__ import annotations

import hashlib
import json
import logging
from typing import Any, Optional

from django.conf import settings
from django.core.cache import cache
from django.db import transaction
from django.utils import timezone

from core.exceptions import CareAppError, ConflictError, ErrorType
from core.models import AuditResponse, AuditTemplate, Resident, User
from core.permissions import check_permission
from core.services.audits import response_scope
from core.services.notifications import broadcast_audit_change
from core.services.resilience import retry_operation
from core.services.security import sanitize_input

logger = logging.getLogger(__name__)

STATE_IDLE = 'idle'
STATE_CREATING = 'creating'
STATE_CREATED = 'created'

# A losing caller re-reads for about a second before giving up.
REREAD_ATTEMPTS = 5
REREAD_DELAY = 0.1


def content_hash(content: Any) -> str:
    """sha256 of the canonical (sorted keys, compact) JSON encoding."""
    encoded = json.dumps(content, sort_keys=True, separators=(',', ':'), ensure_ascii=False, default=str)
    return hashlib.sha256(encoded.encode('utf-8')).hexdigest()


def content_hash_for(items, overall_notes: Optional[str]) -> str:
    return content_hash({'items': items or [], 'overallNotes': overall_notes or ''})


def draft_key(template: AuditTemplate, organization_id, team_id=None, resident_id=None) -> str:
    return f"draft:{template.pk}:{organization_id}:{team_id or '-'}:{resident_id or '-'}"


def draft_state(key: str) -> str:
    return cache.get(f'{key}:state', STATE_IDLE)


def _lock_timeout() -> int:
    return getattr(settings, 'DRAFT_LOCK_TIMEOUT', 30)


def _find_open(template: AuditTemplate, team_id, resident_id) -> Optional[AuditResponse]:
    return (
        AuditResponse.objects.filter(
            response_scope(template, team_id=team_id, resident_id=resident_id),
            status__in=AuditResponse.OPEN_STATUSES,
        )
        .order_by('-updated_at', '-id')
        .first()
    )


def _insert_draft(template: AuditTemplate, user: User, team_id, resident: Optional[Resident]) -> tuple[AuditResponse, bool]:
    with transaction.atomic():
        # serialize concurrent inserts for this template
        AuditTemplate.objects.select_for_update().only('id').get(pk=template.pk)
        existing = _find_open(template, team_id, resident.pk if resident else None)
        if existing is not None:
            return existing, False
        draft = AuditResponse.objects.create(
            template=template,
            template_name=template.name,
            category=template.category,
            organization_id=template.organization_id,
            team_id=team_id,
            resident=resident,
            items=[],
            status=AuditResponse.STATUS_DRAFT,
            audited_by=user,
            frequency=template.frequency,
            content_hash=content_hash_for([], ''),
        )
    return draft, True


def get_or_create_draft(template: AuditTemplate, user: User, *, resident: Optional[Resident] = None,
                        team_id=None) -> tuple[AuditResponse, bool]:
    """Return ``(draft, created)`` for the scope, creating at most one draft."""
    check_permission(user, 'create_audit')
    if team_id is None and resident is None:
        team_id = user.team_id
    resident_id = resident.pk if resident else None

    existing = _find_open(template, team_id, resident_id)
    if existing is not None:
        return existing, False

    key = draft_key(template, template.organization_id, team_id, resident_id)
    lock_key = f'{key}:lock'
    state_key = f'{key}:state'
    if cache.add(lock_key, user.pk, timeout=_lock_timeout()):
        cache.set(state_key, STATE_CREATING, timeout=_lock_timeout())
        try:
            draft, created = _insert_draft(template, user, team_id, resident)
        except Exception:
            cache.set(state_key, STATE_IDLE, timeout=_lock_timeout())
            raise
        finally:
            cache.delete(lock_key)
        cache.set(state_key, STATE_CREATED, timeout=_lock_timeout())
        if created:
            logger.info('draft %s created for template %s', draft.id, template.id,
                        extra={'user_id': user.pk, 'operation': 'draft_create'})
            broadcast_audit_change(draft, 'draft_created')
        return draft, created

    # another request is creating this draft; wait for it to land
    def reread_draft() -> AuditResponse:
        found = _find_open(template, team_id, resident_id)
        if found is None:
            raise CareAppError('Draft is still being created', ErrorType.NOT_FOUND, context={'key': key})
        return found

    return retry_operation(reread_draft, max_retries=REREAD_ATTEMPTS, delay=REREAD_DELAY), False


def autosave(user: User, response: AuditResponse, items, *, overall_notes: Optional[str] = None,
             base_hash: Optional[str] = None) -> dict:
    """Store ``items`` on an open response unless nothing changed.

    Returns ``{"saved", "hash", "status", "updatedAt"}``.
    """
    check_permission(user, 'edit_audit')
    with transaction.atomic():
        locked = AuditResponse.objects.select_for_update().get(pk=response.pk)
        if locked.status == AuditResponse.STATUS_COMPLETED:
            raise CareAppError('Completed audits cannot be edited', ErrorType.VALIDATION,
                               context={'responseId': locked.id})
        notes = sanitize_input(overall_notes) if overall_notes is not None else locked.overall_notes
        digest = content_hash_for(items, notes)
        if digest == locked.content_hash:
            return _autosave_result(locked, saved=False)
        if base_hash is not None and base_hash != locked.content_hash:
            raise ConflictError(
                'This audit was changed elsewhere. Reload to see the latest version.',
                context={'responseId': locked.id, 'currentHash': locked.content_hash},
            )
        locked.items = items
        locked.overall_notes = notes
        locked.content_hash = digest
        locked.status = AuditResponse.STATUS_IN_PROGRESS
        locked.updated_at = timezone.now()
        locked.save(update_fields=['items', 'overall_notes', 'content_hash', 'status', 'updated_at'])
    return _autosave_result(locked, saved=True)


def _autosave_result(response: AuditResponse, *, saved: bool) -> dict:
    return {
        'saved': saved,
        'hash': response.content_hash,
        'status': response.status,
        'updatedAt': response.updated_at.isoformat() if response.updated_at else None,
    }
