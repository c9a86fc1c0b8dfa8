"""
Care file forms and the per-resident status map.

A resident's care file is a fixed set of forms (``CareFileForm.FORM_KEYS``).
Each submission is stored as a new row; the newest row per key decides
that form's status.  :func:`care_file_status` loads every form of the
resident in one query and reduces it to a map keyed by form key so the
care file page does not issue one query per form.
"""
from __future__ import annotations

from typing import Optional

from django.conf import settings
from django.db import transaction

from core.exceptions import CareAppError, ErrorType
from core.models import CareFileForm, Resident, User
from core.permissions import check_permission
from core.services.audit import log_action
from core.services.resilience import safe_database_operation

STATUS_NOT_STARTED = 'not-started'
STATUS_IN_PROGRESS = 'in-progress'
STATUS_PDF_GENERATING = 'pdf-generating'
STATUS_COMPLETED = 'completed'


def form_status(has_data: bool, saved_as_draft: Optional[bool], has_pdf: bool, pdf_url: Optional[str]) -> str:
    if not has_data:
        return STATUS_NOT_STARTED
    if saved_as_draft:
        return STATUS_IN_PROGRESS
    if not has_pdf or not pdf_url:
        return STATUS_PDF_GENERATING
    return STATUS_COMPLETED


def _pdf_url(form: CareFileForm, request=None) -> Optional[str]:
    if not form.pdf_file:
        return None
    url = form.pdf_file.url
    return request.build_absolute_uri(url) if request is not None else url


def _form_state(form: Optional[CareFileForm], request=None) -> dict:
    if form is None:
        return {
            'status': STATUS_NOT_STARTED,
            'hasData': False,
            'hasPdfFileId': False,
            'pdfUrl': None,
            'lastUpdated': None,
            'completedAt': None,
        }
    has_pdf = bool(form.pdf_file)
    url = _pdf_url(form, request)
    return {
        'status': form_status(True, form.saved_as_draft, has_pdf, url),
        'hasData': True,
        'hasPdfFileId': has_pdf,
        'pdfUrl': url,
        'lastUpdated': (form.updated_at or form.created_at).isoformat(),
        'completedAt': form.created_at.isoformat() if not form.saved_as_draft else None,
    }


def care_file_status(resident_id, request=None) -> dict[str, dict]:
    forms = safe_database_operation(
        lambda: list(CareFileForm.objects.filter(resident_id=resident_id).order_by('form_key', '-created_at', '-id')),
        'Failed to load care file',
    )
    latest: dict[str, CareFileForm] = {}
    for form in forms:
        latest.setdefault(form.form_key, form)
    return {key: _form_state(latest.get(key), request) for key in CareFileForm.FORM_KEYS}


def is_form_completed(states: dict, form_key: str) -> bool:
    return states.get(form_key, {}).get('status') == STATUS_COMPLETED


def is_form_in_progress(states: dict, form_key: str) -> bool:
    return states.get(form_key, {}).get('status') == STATUS_IN_PROGRESS


def can_download_pdf(states: dict, form_key: str) -> bool:
    state = states.get(form_key, {})
    return bool(state.get('hasPdfFileId') and state.get('pdfUrl'))


def overall_progress(states: dict) -> dict:
    total = len(states)
    completed = sum(1 for s in states.values() if s['status'] == STATUS_COMPLETED)
    return {
        'completed': completed,
        'total': total,
        'percentage': round(completed * 100 / total) if total else 0,
    }


# ---------------------------------------------------------------------
# Submissions
# ---------------------------------------------------------------------
def _check_key(form_key: str) -> None:
    if form_key not in CareFileForm.FORM_KEYS:
        raise CareAppError(f'Unknown care file form: {form_key}', ErrorType.VALIDATION, context={'formKey': form_key})


def submit_form(user: User, resident: Resident, form_key: str, data: dict, *, saved_as_draft: bool = False) -> CareFileForm:
    check_permission(user, 'create_care_file')
    _check_key(form_key)
    with transaction.atomic():
        form = CareFileForm.objects.create(
            resident=resident,
            organization_id=resident.organization_id,
            form_key=form_key,
            data=data,
            saved_as_draft=saved_as_draft,
            created_by=user,
        )
        log_action(user=user, action='care_file_submit', object_type='care_file_form', object_id=form.id,
                   resident=resident, detail={'formKey': form_key, 'draft': saved_as_draft})
    return form


def update_form(user: User, form: CareFileForm, data: dict, *, saved_as_draft: Optional[bool] = None) -> CareFileForm:
    check_permission(user, 'edit_care_file')
    form.data = data
    if saved_as_draft is not None:
        form.saved_as_draft = saved_as_draft
    # content changed: any previous PDF is out of date
    if form.pdf_file:
        form.pdf_file.delete(save=False)
    form.save()
    log_action(user=user, action='care_file_update', object_type='care_file_form', object_id=form.id,
               resident=form.resident, detail={'formKey': form.form_key})
    return form


def attach_pdf(user: User, form: CareFileForm, upload) -> CareFileForm:
    check_permission(user, 'edit_care_file')
    max_bytes = getattr(settings, 'UPLOAD_MAX_MB', 15) * 1024 * 1024
    allowed = getattr(settings, 'ALLOWED_UPLOAD_TYPES', ['application/pdf'])
    if upload.size > max_bytes:
        raise CareAppError('File is too large', ErrorType.VALIDATION, context={'size': upload.size})
    if getattr(upload, 'content_type', None) not in allowed:
        raise CareAppError('Unsupported file type', ErrorType.VALIDATION,
                           context={'contentType': getattr(upload, 'content_type', None)})
    if form.pdf_file:
        form.pdf_file.delete(save=False)
    form.pdf_file.save(upload.name, upload, save=True)
    log_action(user=user, action='care_file_pdf', object_type='care_file_form', object_id=form.id,
               resident=form.resident, detail={'formKey': form.form_key})
    return form


def forms_for_resident(resident_id, form_key: Optional[str] = None):
    qs = CareFileForm.objects.filter(resident_id=resident_id)
    if form_key:
        qs = qs.filter(form_key=form_key)
    return qs.order_by('-created_at', '-id')


def delete_form(user: User, form: CareFileForm) -> None:
    check_permission(user, 'delete_care_file')
    form_id, resident = form.id, form.resident
    if form.pdf_file:
        form.pdf_file.delete(save=False)
    form.delete()
    log_action(user=user, action='care_file_delete', object_type='care_file_form', object_id=form_id,
               resident=resident)
