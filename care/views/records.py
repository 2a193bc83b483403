"""
Medical record views.

Doctors write records; the author is always the calling doctor.
Patients may read only their own history.
"""
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import NotFound, PermissionDenied
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from care.models import MedicalRecord, Role
from care.permissions import IsAdminOrDoctor, IsAnyRole, account_role
from care.serializers.records import RecordCreateSerializer, RecordUpdateSerializer
from care.services.audit import log_action
from care.services.identity import resolve_entity_id
from care.services.records import create_record, delete_record, format_record, list_records, update_record
from care.views.common import caller_entity_id


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsAdminOrDoctor])
def records(request):
    if request.method == 'GET':
        return Response({'ok': True, 'data': [format_record(r) for r in list_records()]})

    if account_role(request) != Role.DOCTOR:
        raise PermissionDenied('only doctors can create medical records')
    doctor_id = caller_entity_id(request, Role.DOCTOR)
    s = RecordCreateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    v = s.validated_data
    record = create_record(
        patient_id=v['patientId'],
        doctor_id=doctor_id,
        diagnosis=v['diagnosis'],
        treatment=v['treatment'],
        recorded_at=v.get('recordedAt'),
    )
    if record is None:
        raise NotFound('patient not found')
    log_action(account=request.user, action='create', object_type='medical_record', object_id=record.id,
               detail={'patientId': record.patient_id})
    record = MedicalRecord.objects.select_related('doctor', 'patient').get(pk=record.pk)
    return Response({'ok': True, 'data': format_record(record)}, status=201)


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([IsAuthenticated, IsAnyRole])
def record_detail(request, record_id: int):
    record = MedicalRecord.objects.select_related('doctor', 'patient').filter(pk=record_id).first()
    if record is None:
        raise NotFound('medical record not found')
    role = account_role(request)

    if request.method == 'GET':
        if role == Role.PATIENT and record.patient_id != resolve_entity_id(request.user.id):
            raise PermissionDenied('forbidden for this medical record')
        return Response({'ok': True, 'data': format_record(record)})

    if request.method == 'DELETE':
        if role != Role.ADMIN:
            raise PermissionDenied('only administrators can delete medical records')
        delete_record(record_id)
        log_action(account=request.user, action='delete', object_type='medical_record', object_id=record_id)
        return Response({'ok': True, 'detail': 'Medical record deleted successfully'})

    if role not in (Role.ADMIN, Role.DOCTOR):
        raise PermissionDenied('only doctors and administrators can edit medical records')
    s = RecordUpdateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    v = s.validated_data
    updated = update_record(
        record_id,
        patient_id=v.get('patientId'),
        doctor_id=v.get('doctorId') if role == Role.ADMIN else None,
        diagnosis=v.get('diagnosis'),
        treatment=v.get('treatment'),
        recorded_at=v.get('recordedAt'),
    )
    if updated is None:
        raise NotFound('medical record, patient or doctor not found')
    log_action(account=request.user, action='update', object_type='medical_record', object_id=record_id)
    updated = MedicalRecord.objects.select_related('doctor', 'patient').get(pk=updated.pk)
    return Response({'ok': True, 'data': format_record(updated)})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAnyRole])
def patient_records(request, patient_id: int):
    """Records of one patient; a patient may only ask for their own."""
    if account_role(request) == Role.PATIENT and resolve_entity_id(request.user.id) != patient_id:
        raise PermissionDenied('forbidden for this patient')
    return Response({'ok': True, 'data': [format_record(r) for r in list_records(patient_id=patient_id)]})

