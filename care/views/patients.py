"""
Patient views.

Patients can read and edit only their own record; doctors can read any
patient (they need it to write medical records); administrators can do
everything, including deleting a patient together with its account.
"""
from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from care.models import Role
from care.permissions import IsAdminOrDoctor, IsAnyRole, IsPatientRole, account_role
from care.serializers.profiles import PatientUpdateSerializer
from care.services.profiles import list_entities
from care.services.records import format_record, list_records
from care.services.scheduling import format_appointment, list_appointments
from care.views.common import caller_entity_id, entity_detail, is_self, own_profile


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminOrDoctor])
def patient_list(request):
    return Response({'ok': True, 'data': list_entities(Role.PATIENT)})


def _can_view_patient(request, patient_id):
    if account_role(request) in (Role.ADMIN, Role.DOCTOR):
        return True
    return is_self(request, Role.PATIENT, patient_id)


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([IsAuthenticated, IsAnyRole])
def patient_detail(request, patient_id: int):
    return entity_detail(request, Role.PATIENT, patient_id, PatientUpdateSerializer, can_view=_can_view_patient)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsPatientRole])
def patient_profile(request):
    return own_profile(request, Role.PATIENT)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsPatientRole])
def patient_my_appointments(request):
    patient_id = caller_entity_id(request, Role.PATIENT)
    status = request.query_params.get('status') or None
    data = [format_appointment(a) for a in list_appointments(patient_id=patient_id, status=status)]
    return Response({'ok': True, 'data': data})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsPatientRole])
def patient_my_records(request):
    patient_id = caller_entity_id(request, Role.PATIENT)
    return Response({'ok': True, 'data': [format_record(r) for r in list_records(patient_id=patient_id)]})
