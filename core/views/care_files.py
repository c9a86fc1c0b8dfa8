from __future__ import annotations

from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, parser_classes, permission_classes
from rest_framework.parsers import FormParser, MultiPartParser
from rest_framework.response import Response

from ..exceptions import CareAppError, ErrorType
from ..models import CareFileForm
from ..permissions import CanDelete, IsClinicalRole, IsStaff, check_permission
from ..serializers.care_files import FORM_SERIALIZERS, CareFileSubmitSerializer
from ..services import care_files as svc
from .common import iso, resident_for


def _serialize(form: CareFileForm, request=None) -> dict:
    url = None
    if form.pdf_file:
        url = request.build_absolute_uri(form.pdf_file.url) if request is not None else form.pdf_file.url
    return {
        'id': form.id,
        'residentId': form.resident_id,
        'formKey': form.form_key,
        'data': form.data,
        'savedAsDraft': form.saved_as_draft,
        'pdfUrl': url,
        'createdBy': form.created_by_id,
        'createdAt': iso(form.created_at),
        'updatedAt': iso(form.updated_at),
    }


@api_view(['GET', 'POST'])
@permission_classes([IsStaff])
def care_file_forms(request, resident_id: int):
    """List submissions (``?formKey=`` to narrow) or submit a form."""
    user, resident = resident_for(request, resident_id)
    if request.method == 'GET':
        check_permission(user, 'view_care_file')
        qs = svc.forms_for_resident(resident.id, request.query_params.get('formKey'))
        return Response([_serialize(f, request) for f in qs])
    s = CareFileSubmitSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    v = s.validated_data
    form = svc.submit_form(user, resident, v['formKey'], v['data'], saved_as_draft=v['savedAsDraft'])
    return Response(_serialize(form, request), status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsStaff])
def care_file_status(request, resident_id: int):
    """Status of every care file form plus overall progress."""
    user, resident = resident_for(request, resident_id)
    check_permission(user, 'view_care_file')
    states = svc.care_file_status(resident.id, request)
    return Response({'forms': states, 'progress': svc.overall_progress(states)})


@api_view(['GET', 'PATCH', 'PUT', 'DELETE'])
@permission_classes([IsStaff, CanDelete])
def care_file_form_detail(request, resident_id: int, pk: int):
    user, resident = resident_for(request, resident_id)
    form = get_object_or_404(CareFileForm, pk=pk, resident=resident)
    if request.method == 'GET':
        check_permission(user, 'view_care_file')
        return Response(_serialize(form, request))
    if request.method == 'DELETE':
        svc.delete_form(user, form)
        return Response(status=status.HTTP_204_NO_CONTENT)
    s = CareFileSubmitSerializer(data={
        'formKey': form.form_key,
        'data': request.data.get('data', form.data),
        'savedAsDraft': request.data.get('savedAsDraft', form.saved_as_draft),
    })
    s.is_valid(raise_exception=True)
    v = s.validated_data
    form = svc.update_form(user, form, v['data'], saved_as_draft=v['savedAsDraft'])
    return Response(_serialize(form, request))


@api_view(['POST'])
@permission_classes([IsClinicalRole])
@parser_classes([MultiPartParser, FormParser])
def care_file_pdf(request, resident_id: int, pk: int):
    user, resident = resident_for(request, resident_id)
    form = get_object_or_404(CareFileForm, pk=pk, resident=resident)
    upload = request.FILES.get('file')
    if upload is None:
        raise CareAppError('file is required', ErrorType.VALIDATION, context={'field': 'file'})
    form = svc.attach_pdf(user, form, upload)
    return Response(_serialize(form, request))


@api_view(['GET'])
@permission_classes([IsStaff])
def care_file_form_keys(request):
    return Response([
        {'formKey': key, 'validated': key in FORM_SERIALIZERS}
        for key in CareFileForm.FORM_KEYS
    ])
