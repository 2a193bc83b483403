"""
Database models for the clinic backend.

An :class:`Account` is the authentication record.  Each account owns
exactly one role entity (:class:`Doctor`, :class:`Patient` or
:class:`Admin`) through a unique back-reference, and appointments and
medical records point at the role entities rather than at accounts.
Deleting a doctor or patient nulls those references so that history is
kept (orphaning) instead of being removed.
"""
from __future__ import annotations

from django.contrib.auth.models import AbstractUser, BaseUserManager
from django.db import models


class Role(models.TextChoices):
    DOCTOR = 'Doctor', 'Doctor'
    PATIENT = 'Patient', 'Patient'
    ADMIN = 'Admin', 'Admin'

    @classmethod
    def parse(cls, value) -> Role | None:
        """Return the role matching ``value`` ignoring case, or None."""
        text = (str(value) if value is not None else '').strip().lower()
        for role in cls:
            if role.value.lower() == text:
                return role
        return None

    @property
    def id_prefix(self) -> str:
        return self.value[0]


class AppointmentStatus(models.TextChoices):
    SCHEDULED = 'Scheduled', 'Scheduled'
    COMPLETED = 'Completed', 'Completed'
    CANCELLED = 'Cancelled', 'Cancelled'

    @classmethod
    def transitions(cls) -> dict:
        return {
            cls.SCHEDULED: {cls.COMPLETED, cls.CANCELLED},
            cls.COMPLETED: set(),
            cls.CANCELLED: set(),
        }

    @property
    def is_terminal(self) -> bool:
        return not self.transitions()[self]


class AccountManager(BaseUserManager):
    use_in_migrations = True

    def _create_user(self, email, password, **extra_fields):
        if not email:
            raise ValueError('email is required')
        email = self.normalize_email(email)
        role = Role.parse(extra_fields.get('role'))
        if role is None:
            raise ValueError(f"unknown role: {extra_fields.get('role')!r}")
        extra_fields['role'] = role
        if not extra_fields.get('id'):
            from care.services.identity import next_account_id
            extra_fields['id'] = next_account_id(role)
        account = self.model(email=email, **extra_fields)
        account.set_password(password)
        account.save(using=self._db)
        return account

    def create_user(self, email, password=None, **extra_fields):
        extra_fields.setdefault('is_staff', False)
        extra_fields.setdefault('is_superuser', False)
        return self._create_user(email, password, **extra_fields)

    def create_superuser(self, email, password=None, **extra_fields):
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)
        extra_fields.setdefault('role', Role.ADMIN)
        return self._create_user(email, password, **extra_fields)


class Account(AbstractUser):
    """Authentication record identified by a role-prefixed string id (e.g. 'D007')."""
    id = models.CharField(max_length=10, primary_key=True)
    username = None
    email = models.EmailField(unique=True)
    role = models.CharField(max_length=10, choices=Role.choices, db_index=True)

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS: list[str] = []

    objects = AccountManager()

    def __str__(self) -> str:
        return f"{self.id} ({self.role})"


class RoleEntity(models.Model):
    """Profile fields shared by the three role entities.

    Subclasses declare the one-to-one ``account`` link themselves so that
    each gets its own reverse accessor on :class:`Account`.  The link is
    ``PROTECT``: an account can only go away together with its entity,
    see :func:`care.services.identity.delete_entity`.
    """
    name = models.CharField(max_length=100)
    phone = models.CharField(max_length=20, blank=True)
    email = models.EmailField(blank=True)

    class Meta:
        abstract = True

    def __str__(self) -> str:
        return f"{self.name} ({self.account_id})"


class Doctor(RoleEntity):
    account = models.OneToOneField(Account, on_delete=models.PROTECT, related_name='doctor')
    specialty = models.CharField(max_length=100, db_index=True)


class Patient(RoleEntity):
    account = models.OneToOneField(Account, on_delete=models.PROTECT, related_name='patient')


class Admin(RoleEntity):
    account = models.OneToOneField(Account, on_delete=models.PROTECT, related_name='admin')


class Appointment(models.Model):
    doctor = models.ForeignKey(
        Doctor, null=True, blank=True, on_delete=models.SET_NULL, related_name='appointments'
    )
    patient = models.ForeignKey(
        Patient, null=True, blank=True, on_delete=models.SET_NULL, related_name='appointments'
    )
    scheduled_at = models.DateTimeField()
    status = models.CharField(
        max_length=10, choices=AppointmentStatus.choices, default=AppointmentStatus.SCHEDULED, db_index=True
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=['doctor', 'scheduled_at'], name='appointment_doctor_at_idx'),
        ]

    def __str__(self) -> str:
        return f"Appointment #{self.id} d={self.doctor_id} p={self.patient_id} @ {self.scheduled_at:%F %H:%M}"


class AppointmentTransition(models.Model):
    """Records a status change of an appointment."""
    appointment = models.ForeignKey(Appointment, related_name='transitions', on_delete=models.CASCADE)
    from_status = models.CharField(max_length=10, null=True, blank=True)
    to_status = models.CharField(max_length=10)
    operator = models.ForeignKey(
        Account, null=True, blank=True, on_delete=models.SET_NULL, related_name='appointment_transitions'
    )
    timestamp = models.DateTimeField(auto_now_add=True)
    reason = models.CharField(max_length=255, blank=True)

    def __str__(self) -> str:
        return f"{self.appointment_id}: {self.from_status} → {self.to_status}"


class MedicalRecord(models.Model):
    patient = models.ForeignKey(
        Patient, null=True, blank=True, on_delete=models.SET_NULL, related_name='medical_records'
    )
    doctor = models.ForeignKey(
        Doctor, null=True, blank=True, on_delete=models.SET_NULL, related_name='medical_records'
    )
    diagnosis = models.TextField()
    treatment = models.TextField()
    recorded_at = models.DateTimeField()

    class Meta:
        indexes = [
            models.Index(fields=['patient', 'recorded_at'], name='record_patient_at_idx'),
        ]

    def __str__(self) -> str:
        return f"Record #{self.id} p={self.patient_id} d={self.doctor_id}"


class AuditEvent(models.Model):
    account = models.ForeignKey(Account, on_delete=models.SET_NULL, null=True, blank=True)
    action = models.CharField(max_length=64)
    object_type = models.CharField(max_length=64, blank=True, null=True)
    object_id = models.CharField(max_length=64, blank=True, null=True)
    detail = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=['action', 'created_at'], name='audit_action_at_idx'),
            models.Index(fields=['object_type', 'object_id', 'created_at'], name='audit_object_at_idx'),
        ]

    def __str__(self):
        return f"{self.action}:{self.account_id}@{self.created_at:%F %T}"
