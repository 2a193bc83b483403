"""
Appointment scheduling.

A doctor may not have two appointments closer together than the
conflict window (30 minutes by default, open at both ends: exactly 30
minutes apart is allowed).  Booking and rescheduling lock the doctor's
row before checking for conflicts and writing, so concurrent requests
for the same doctor are serialized by the database instead of both
passing the check.

Status follows a small state machine: ``Scheduled`` may become
``Completed`` or ``Cancelled``; both of those are terminal.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Optional

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import transaction
from django.utils import timezone

from care.models import Appointment, AppointmentStatus, AppointmentTransition, Doctor, Patient

logger = logging.getLogger(__name__)

Account = get_user_model()


class SchedulingConflict(Exception):
    """The requested time overlaps another appointment of the same doctor."""

    def __init__(self, doctor_id: int, scheduled_at: datetime, conflicting_id: Optional[int] = None):
        super().__init__(
            f'An appointment already exists for doctor {doctor_id} within '
            f'{conflict_window_minutes()} minutes of {scheduled_at.isoformat()}'
        )
        self.doctor_id = doctor_id
        self.scheduled_at = scheduled_at
        self.conflicting_id = conflicting_id


class InvalidTransition(ValueError):
    def __init__(self, current: str, requested: str, message: Optional[str] = None):
        super().__init__(message or f'cannot change appointment status from {current} to {requested}')
        self.current = current
        self.requested = requested


def conflict_window_minutes() -> int:
    return int(getattr(settings, 'APPOINTMENT_CONFLICT_WINDOW_MINUTES', 30))


def _aware(value: datetime) -> datetime:
    if timezone.is_naive(value):
        return timezone.make_aware(value)
    return value


def can_transition(current: str, new: str) -> bool:
    """Return True if an appointment may go from ``current`` to ``new``."""
    if current == new:
        return True
    return new in AppointmentStatus.transitions().get(current, set())


def find_conflict(doctor_id: Optional[int], when: datetime, exclude_appointment_id: Optional[int] = None) -> Optional[Appointment]:
    """Return the nearest appointment of ``doctor_id`` that overlaps ``when``.

    An appointment overlaps when it lies strictly less than the conflict
    window away from ``when`` in either direction.  Cancelled
    appointments only count when ``APPOINTMENT_CONFLICT_INCLUDE_CANCELLED``
    is on.
    """
    if doctor_id is None:
        return None
    when = _aware(when)
    window = timedelta(minutes=conflict_window_minutes())
    qs = Appointment.objects.filter(
        doctor_id=doctor_id,
        scheduled_at__gt=when - window,
        scheduled_at__lt=when + window,
    )
    if not getattr(settings, 'APPOINTMENT_CONFLICT_INCLUDE_CANCELLED', False):
        qs = qs.exclude(status=AppointmentStatus.CANCELLED)
    if exclude_appointment_id is not None:
        qs = qs.exclude(pk=exclude_appointment_id)
    candidates = list(qs.only('id', 'scheduled_at'))
    if not candidates:
        return None
    return min(candidates, key=lambda a: abs(a.scheduled_at - when))


def check_conflict(doctor_id: Optional[int], when: datetime, exclude_appointment_id: Optional[int] = None) -> bool:
    """True means the booking must be rejected."""
    return find_conflict(doctor_id, when, exclude_appointment_id) is not None


def _operator(account):
    return account if isinstance(account, Account) and account.pk else None


def _record_transition(appointment: Appointment, from_status: Optional[str], to_status: str, operator=None, reason: str = ''):
    AppointmentTransition.objects.create(
        appointment=appointment,
        from_status=from_status,
        to_status=to_status,
        operator=_operator(operator),
        reason=reason,
    )


def _notify(appointment_id: int, doctor_id: Optional[int], status: str, scheduled_at: datetime, op: str):
    if doctor_id is None:
        return
    channel_layer = get_channel_layer()
    if channel_layer is None:
        return
    payload = {
        'type': 'appointment.changed',
        'op': op,
        'appointmentId': appointment_id,
        'doctorId': doctor_id,
        'status': status,
        'scheduledAt': scheduled_at.isoformat(),
    }
    async_to_sync(channel_layer.group_send)(f'appointments.doctor.{doctor_id}', payload)


def _notify_on_commit(appointment: Appointment, op: str):
    args = (appointment.pk, appointment.doctor_id, appointment.status, appointment.scheduled_at, op)
    transaction.on_commit(lambda: _notify(*args))


def _lock_doctors(*doctor_ids: Optional[int]) -> set[int]:
    """Lock the given doctor rows in id order and return the ids that exist."""
    locked = set()
    for pk in sorted({d for d in doctor_ids if d is not None}):
        if Doctor.objects.select_for_update().filter(pk=pk).first() is not None:
            locked.add(pk)
    return locked


def create_appointment(*, doctor_id: int, patient_id: int, scheduled_at: datetime, operator=None, reason: str = '') -> Optional[Appointment]:
    """Book a new ``Scheduled`` appointment.

    Returns None when the doctor or the patient does not exist and raises
    :class:`SchedulingConflict` when the slot overlaps another booking.
    """
    scheduled_at = _aware(scheduled_at)
    with transaction.atomic():
        doctor = Doctor.objects.select_for_update().filter(pk=doctor_id).first()
        if doctor is None or not Patient.objects.filter(pk=patient_id).exists():
            return None
        conflict = find_conflict(doctor.pk, scheduled_at)
        if conflict is not None:
            logger.info('booking for doctor %s at %s rejected, overlaps appointment %s',
                        doctor.pk, scheduled_at.isoformat(), conflict.pk)
            raise SchedulingConflict(doctor.pk, scheduled_at, conflict.pk)
        appointment = Appointment.objects.create(
            doctor=doctor,
            patient_id=patient_id,
            scheduled_at=scheduled_at,
            status=AppointmentStatus.SCHEDULED,
        )
        _record_transition(appointment, None, AppointmentStatus.SCHEDULED, operator, reason or 'booked')
        _notify_on_commit(appointment, 'created')
    return appointment


def update_appointment(
    appointment_id: int,
    *,
    doctor_id: Optional[int] = None,
    patient_id: Optional[int] = None,
    scheduled_at: Optional[datetime] = None,
    status: Optional[str] = None,
    operator=None,
    reason: str = '',
) -> Optional[Appointment]:
    """Overwrite the doctor, patient, time and status of an appointment.

    Arguments left as None keep their current value.  Returns None when
    the appointment (or a newly referenced doctor/patient) does not exist.
    Raises :class:`InvalidTransition` for a status change outside the
    state machine or for rescheduling a completed/cancelled appointment,
    and :class:`SchedulingConflict` when the resulting slot overlaps
    another appointment of the doctor.
    """
    with transaction.atomic():
        # doctor rows are locked before the appointment row, the same
        # order a doctor delete takes them in
        row = Appointment.objects.filter(pk=appointment_id).values('doctor_id').first()
        if row is None:
            return None
        locked = _lock_doctors(row['doctor_id'], doctor_id)
        appointment = Appointment.objects.select_for_update().filter(pk=appointment_id).first()
        if appointment is None:
            return None
        current = appointment.status
        new_status = status or current
        if not can_transition(current, new_status):
            raise InvalidTransition(current, new_status)

        new_doctor_id = doctor_id if doctor_id is not None else appointment.doctor_id
        new_patient_id = patient_id if patient_id is not None else appointment.patient_id
        new_time = _aware(scheduled_at) if scheduled_at is not None else appointment.scheduled_at
        rescheduled = (
            new_doctor_id != appointment.doctor_id
            or new_patient_id != appointment.patient_id
            or new_time != appointment.scheduled_at
        )
        if rescheduled and AppointmentStatus(current).is_terminal:
            raise InvalidTransition(current, new_status, f'a {current.lower()} appointment cannot be rescheduled')

        if new_doctor_id is not None and new_doctor_id not in locked:
            # reassigned by a concurrent update after the first read
            locked |= _lock_doctors(new_doctor_id)
            if new_doctor_id not in locked:
                return None
        if new_patient_id != appointment.patient_id and not Patient.objects.filter(pk=new_patient_id).exists():
            return None

        if new_status != AppointmentStatus.CANCELLED:
            conflict = find_conflict(new_doctor_id, new_time, exclude_appointment_id=appointment.pk)
            if conflict is not None:
                logger.info('update of appointment %s rejected, overlaps appointment %s', appointment.pk, conflict.pk)
                raise SchedulingConflict(new_doctor_id, new_time, conflict.pk)

        appointment.doctor_id = new_doctor_id
        appointment.patient_id = new_patient_id
        appointment.scheduled_at = new_time
        appointment.status = new_status
        appointment.save()
        if new_status != current:
            _record_transition(appointment, current, new_status, operator, reason)
        _notify_on_commit(appointment, 'updated')
    return appointment


def cancel_appointment(appointment_id: int, *, operator=None, reason: str = '') -> Optional[Appointment]:
    return update_appointment(appointment_id, status=AppointmentStatus.CANCELLED, operator=operator, reason=reason or 'cancelled')


def complete_appointment(appointment_id: int, *, operator=None, reason: str = '') -> Optional[Appointment]:
    return update_appointment(appointment_id, status=AppointmentStatus.COMPLETED, operator=operator, reason=reason or 'completed')


def delete_appointment(appointment_id: int) -> bool:
    """Hard-delete an appointment; False when it does not exist."""
    appointment = Appointment.objects.filter(pk=appointment_id).first()
    if appointment is None:
        return False
    with transaction.atomic():
        _notify_on_commit(appointment, 'deleted')
        appointment.delete()
    return True


def list_appointments(*, doctor_id: Optional[int] = None, patient_id: Optional[int] = None, status: Optional[str] = None):
    qs = Appointment.objects.select_related('doctor', 'patient')
    if doctor_id is not None:
        qs = qs.filter(doctor_id=doctor_id)
    if patient_id is not None:
        qs = qs.filter(patient_id=patient_id)
    if status:
        qs = qs.filter(status=status)
    return qs.order_by('scheduled_at', 'id')


def format_appointment(appointment: Appointment) -> dict:
    doctor = appointment.doctor
    patient = appointment.patient
    return {
        'id': appointment.id,
        'scheduledAt': appointment.scheduled_at.isoformat(),
        'status': appointment.status,
        'doctorId': appointment.doctor_id,
        'doctorName': doctor.name if doctor else 'Unknown',
        'specialty': doctor.specialty if doctor else 'Unknown',
        'patientId': appointment.patient_id,
        'patientName': patient.name if patient else 'Unknown',
        'createdAt': appointment.created_at.isoformat() if appointment.created_at else None,
        'updatedAt': appointment.updated_at.isoformat() if appointment.updated_at else None,
    }


def transition_history(appointment: Appointment) -> list[dict]:
    return [
        {
            'from': t.from_status,
            'to': t.to_status,
            'operator': t.operator_id or '',
            'timestamp': t.timestamp.isoformat(),
            'reason': t.reason,
        }
        for t in appointment.transitions.all().order_by('timestamp', 'id')
    ]
