"""
Food and fluid intake charts.

Entries are recorded against "today" and can be corrected until the
daily archive job (``manage.py archive_food_fluid_logs``, scheduled for
7am) locks the previous day's chart.  Every mutation leaves an audit
event named ``food_fluid_<action>``.
"""
from __future__ import annotations

import datetime
from typing import Optional

from django.db import transaction
from django.utils import timezone

from core.exceptions import CareAppError, ErrorType, with_error_handling
from core.models import FoodFluidLog, Resident, User
from core.permissions import check_permission
from core.services.audit import log_action
from core.services.resilience import safe_database_operation
from core.services.security import sanitize_input, validate_food_fluid_log

DRINK_NAMES = ('Water', 'Tea', 'Coffee', 'Juice', 'Milk')
TEXT_FIELDS = ('type_of_food_drink', 'portion_served', 'signature')
ARCHIVED_LIMIT = 100


def _audit(user, action: str, log: Optional[FoodFluidLog], resident: Resident, **detail):
    log_action(
        user=user,
        action=f'food_fluid_{action}',
        object_type='food_fluid_log',
        object_id=log.id if log else None,
        resident=resident,
        detail=detail,
    )


def create_log(user: User, resident: Resident, **fields) -> FoodFluidLog:
    check_permission(user, 'create_food_fluid')
    data = {k: sanitize_input(fields.get(k)) for k in TEXT_FIELDS}
    validate_food_fluid_log(
        section=fields.get('section'),
        amount_eaten=fields.get('amount_eaten'),
        fluid_consumed_ml=fields.get('fluid_consumed_ml'),
        **data,
    )
    now = timezone.now()
    with transaction.atomic():
        log = FoodFluidLog.objects.create(
            resident=resident,
            organization_id=resident.organization_id,
            timestamp=now,
            section=fields['section'],
            amount_eaten=fields.get('amount_eaten') or '',
            fluid_consumed_ml=fields.get('fluid_consumed_ml'),
            date=timezone.localdate(now),
            created_by=user,
            **data,
        )
        _audit(user, 'create', log, resident, section=log.section)
    return log


def _ensure_open(log: FoodFluidLog, verb: str) -> None:
    if log.is_archived:
        raise CareAppError(f'Cannot {verb} archived log entries', ErrorType.VALIDATION, context={'logId': log.id})


def update_log(user: User, log: FoodFluidLog, **fields) -> FoodFluidLog:
    check_permission(user, 'edit_food_fluid')
    _ensure_open(log, 'update')
    for key in TEXT_FIELDS:
        if key in fields:
            setattr(log, key, sanitize_input(fields[key]))
    if 'section' in fields:
        log.section = fields['section']
    if 'amount_eaten' in fields:
        log.amount_eaten = fields['amount_eaten'] or ''
    if 'fluid_consumed_ml' in fields:
        log.fluid_consumed_ml = fields['fluid_consumed_ml']
    validate_food_fluid_log(
        section=log.section,
        type_of_food_drink=log.type_of_food_drink,
        amount_eaten=log.amount_eaten,
        fluid_consumed_ml=log.fluid_consumed_ml,
        signature=log.signature,
    )
    with transaction.atomic():
        log.save()
        _audit(user, 'update', log, log.resident, fields=sorted(fields))
    return log


def delete_log(user: User, log: FoodFluidLog) -> None:
    check_permission(user, 'delete_food_fluid')
    _ensure_open(log, 'delete')
    resident = log.resident
    with transaction.atomic():
        _audit(user, 'delete', log, resident)
        log.delete()


def logs_for_date(resident_id, date: datetime.date, include_archived: Optional[bool] = None):
    """``include_archived``: None = all, True = archived only, False = live only."""
    qs = FoodFluidLog.objects.filter(resident_id=resident_id, date=date)
    if include_archived is not None:
        qs = qs.filter(is_archived=include_archived)
    return qs.order_by('-timestamp')


def current_day_logs(resident_id):
    return logs_for_date(resident_id, timezone.localdate(), include_archived=False)


def archived_logs(resident_id, limit: int = ARCHIVED_LIMIT):
    return FoodFluidLog.objects.filter(resident_id=resident_id, is_archived=True).order_by('-timestamp')[:limit]


def is_fluid_entry(log: FoodFluidLog) -> bool:
    return log.type_of_food_drink in DRINK_NAMES or bool(log.fluid_consumed_ml)


def daily_summary(resident_id, date: datetime.date) -> dict:
    logs = list(logs_for_date(resident_id, date, include_archived=False))
    sections: dict[str, int] = {}
    for log in logs:
        sections[log.section] = sections.get(log.section, 0) + 1
    last = max((log.timestamp for log in logs), default=None)
    return {
        'totalEntries': len(logs),
        'foodEntries': sum(1 for log in logs if log.type_of_food_drink and log.type_of_food_drink not in DRINK_NAMES),
        'fluidEntries': sum(1 for log in logs if is_fluid_entry(log)),
        'totalFluidIntakeMl': sum(log.fluid_consumed_ml or 0 for log in logs),
        'sectionBreakdown': sections,
        'lastRecorded': last.isoformat() if last else None,
    }


@with_error_handling('archive_food_fluid_logs')
def archive_previous_day_logs(target_date: Optional[datetime.date] = None) -> dict:
    target_date = target_date or (timezone.localdate() - datetime.timedelta(days=1))
    now = timezone.now()
    count = safe_database_operation(
        lambda: FoodFluidLog.objects.filter(date=target_date, is_archived=False).update(
            is_archived=True, archived_at=now
        ),
        'Failed to archive food and fluid logs',
    )
    return {'archivedCount': count, 'targetDate': target_date.isoformat(), 'archivedAt': now.isoformat()}
