"""
Appointment views.

Who sees what:

* Admins see and manage every appointment.
* Doctors see their own calendar and may complete or cancel their own
  appointments.
* Patients book for themselves (their patient id is resolved from the
  account, never taken from the request), see their own appointments
  and may cancel them.

Scheduling rules live in :mod:`care.services.scheduling`; this module
only maps them onto HTTP: a time conflict is 409, a missing doctor or
patient is 404 and a forbidden status change is 400.
"""
from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import NotFound, PermissionDenied, ValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from care.exceptions import Conflict, InvalidStatusChange
from care.models import Appointment, AppointmentStatus, Role
from care.permissions import IsAdminOrPatient, IsAdminRole, IsAnyRole, account_role
from care.serializers.appointments import (
    AppointmentCancelSerializer,
    AppointmentCreateSerializer,
    AppointmentListQuerySerializer,
    AppointmentUpdateSerializer,
    ConflictQuerySerializer,
)
from care.services.audit import log_action
from care.services.identity import resolve_entity_id
from care.services.scheduling import (
    InvalidTransition,
    SchedulingConflict,
    cancel_appointment,
    create_appointment,
    delete_appointment,
    find_conflict,
    format_appointment,
    list_appointments,
    transition_history,
    update_appointment,
)


def _conflict_error(exc: SchedulingConflict) -> Conflict:
    return Conflict(str(exc), conflictingId=exc.conflicting_id)


def _invalid_transition_error(exc: InvalidTransition) -> InvalidStatusChange:
    return InvalidStatusChange(str(exc), current=exc.current, requested=exc.requested)


def _check_appointment_scope(request, appointment_id: int) -> Appointment:
    """Load the appointment and make sure the caller may touch it."""
    obj = Appointment.objects.select_related('doctor', 'patient').filter(pk=appointment_id).first()
    if not obj:
        raise NotFound('appointment not found')
    role = account_role(request)
    if role == Role.ADMIN:
        return obj
    own_id = resolve_entity_id(request.user.id)
    if role == Role.DOCTOR and own_id is not None and obj.doctor_id == own_id:
        return obj
    if role == Role.PATIENT and own_id is not None and obj.patient_id == own_id:
        return obj
    raise PermissionDenied('forbidden for this appointment')


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsAnyRole])
def appointments(request):
    if request.method == 'POST':
        return _create(request)

    q = AppointmentListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    role = account_role(request)
    doctor_id = q.validated_data.get('doctorId')
    patient_id = q.validated_data.get('patientId')
    if role != Role.ADMIN:
        own_id = resolve_entity_id(request.user.id)
        if own_id is None:
            raise NotFound('profile not found for this account')
        if role == Role.DOCTOR:
            doctor_id = own_id
        else:
            patient_id = own_id
    qs = list_appointments(doctor_id=doctor_id, patient_id=patient_id, status=q.validated_data.get('status'))
    return Response({'ok': True, 'data': [format_appointment(a) for a in qs]})


def _create(request):
    role = account_role(request)
    if role not in (Role.ADMIN, Role.PATIENT):
        raise PermissionDenied('only patients and administrators can book appointments')
    s = AppointmentCreateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    v = s.validated_data

    if role == Role.PATIENT:
        patient_id = resolve_entity_id(request.user.id)
        if patient_id is None:
            raise NotFound('patient profile not found for this account')
    else:
        patient_id = v.get('patientId')
        if patient_id is None:
            raise ValidationError({'patientId': ['This field is required.']})

    try:
        appointment = create_appointment(
            doctor_id=v['doctorId'],
            patient_id=patient_id,
            scheduled_at=v['scheduledAt'],
            operator=request.user,
            reason=v.get('reason') or '',
        )
    except SchedulingConflict as e:
        raise _conflict_error(e) from e
    if appointment is None:
        raise NotFound('doctor or patient not found')
    log_action(account=request.user, action='book', object_type='appointment', object_id=appointment.id,
               detail={'doctorId': appointment.doctor_id, 'patientId': appointment.patient_id})
    appointment = Appointment.objects.select_related('doctor', 'patient').get(pk=appointment.pk)
    return Response({'ok': True, 'data': format_appointment(appointment)}, status=201)


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([IsAuthenticated, IsAnyRole])
def appointment_detail(request, appointment_id: int):
    obj = _check_appointment_scope(request, appointment_id)
    role = account_role(request)

    if request.method == 'GET':
        return Response({'ok': True, 'data': format_appointment(obj)})

    if request.method == 'DELETE':
        if role != Role.ADMIN:
            raise PermissionDenied('only administrators can delete appointments')
        if not delete_appointment(appointment_id):
            raise NotFound('appointment not found')
        log_action(account=request.user, action='delete', object_type='appointment', object_id=appointment_id)
        return Response({'ok': True, 'detail': 'Appointment deleted successfully'})

    s = AppointmentUpdateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    v = s.validated_data
    status = v.get('status')
    if role != Role.ADMIN:
        # non-admins may only move the status of their own appointment
        moved = any(k in v for k in ('doctorId', 'patientId', 'scheduledAt'))
        if moved:
            raise PermissionDenied('only administrators can reschedule appointments')
        if role == Role.PATIENT and status not in (None, AppointmentStatus.CANCELLED):
            raise PermissionDenied('patients can only cancel appointments')

    try:
        updated = update_appointment(
            appointment_id,
            doctor_id=v.get('doctorId'),
            patient_id=v.get('patientId'),
            scheduled_at=v.get('scheduledAt'),
            status=status,
            operator=request.user,
            reason=v.get('reason') or '',
        )
    except SchedulingConflict as e:
        raise _conflict_error(e) from e
    except InvalidTransition as e:
        raise _invalid_transition_error(e) from e
    if updated is None:
        raise NotFound('appointment, doctor or patient not found')
    log_action(account=request.user, action='update', object_type='appointment', object_id=appointment_id,
               detail={'status': updated.status})
    updated = Appointment.objects.select_related('doctor', 'patient').get(pk=updated.pk)
    return Response({'ok': True, 'data': format_appointment(updated)})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAnyRole])
def appointment_cancel(request, appointment_id: int):
    _check_appointment_scope(request, appointment_id)
    s = AppointmentCancelSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    try:
        updated = cancel_appointment(appointment_id, operator=request.user, reason=s.validated_data.get('reason') or '')
    except InvalidTransition as e:
        raise _invalid_transition_error(e) from e
    if updated is None:
        raise NotFound('appointment not found')
    log_action(account=request.user, action='cancel', object_type='appointment', object_id=appointment_id)
    updated = Appointment.objects.select_related('doctor', 'patient').get(pk=updated.pk)
    return Response({'ok': True, 'data': format_appointment(updated)})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAnyRole])
def appointment_history(request, appointment_id: int):
    obj = _check_appointment_scope(request, appointment_id)
    return Response({'ok': True, 'data': transition_history(obj)})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminOrPatient])
def appointment_check_conflict(request):
    """Tell whether ``doctorId`` is free at ``at``.
    Query params:
      - doctorId, at (ISO 8601)
      - excludeId: appointment to ignore (when rescheduling it)
    """
    q = ConflictQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    v = q.validated_data
    conflict = find_conflict(v['doctorId'], v['at'], exclude_appointment_id=v.get('excludeId'))
    return Response({
        'ok': True,
        'conflict': conflict is not None,
        'conflictingId': conflict.pk if conflict is not None else None,
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def appointment_stats(request):
    """Count appointments per status."""
    counts = {s: 0 for s in AppointmentStatus.values}
    for status in Appointment.objects.values_list('status', flat=True):
        counts[status] = counts.get(status, 0) + 1
    return Response({'ok': True, 'data': counts})
