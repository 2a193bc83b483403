from typing import Optional
import bleach
from django.utils import timezone
from care.models import MedicalRecord, Doctor, Patient


def _clean(text: str) -> str:
    return bleach.clean((text or '').strip(), tags=set(), strip=True)


def list_records(*, patient_id: Optional[int]=None, doctor_id: Optional[int]=None):
    qs = MedicalRecord.objects.select_related('doctor', 'patient')
    if patient_id is not None:
        qs = qs.filter(patient_id=patient_id)
    if doctor_id is not None:
        qs = qs.filter(doctor_id=doctor_id)
    return qs.order_by('-recorded_at', '-id')


def create_record(*, patient_id: int, doctor_id: int, diagnosis: str, treatment: str, recorded_at=None) -> Optional[MedicalRecord]:
    if not Patient.objects.filter(pk=patient_id).exists() or not Doctor.objects.filter(pk=doctor_id).exists():
        return None
    return MedicalRecord.objects.create(
        patient_id=patient_id,
        doctor_id=doctor_id,
        diagnosis=_clean(diagnosis),
        treatment=_clean(treatment),
        recorded_at=recorded_at or timezone.now(),
    )


def update_record(record_id: int, **fields) -> Optional[MedicalRecord]:
    record = MedicalRecord.objects.filter(pk=record_id).first()
    if not record:
        return None
    for key in ('diagnosis', 'treatment'):
        if fields.get(key) is not None:
            setattr(record, key, _clean(fields[key]))
    if fields.get('recorded_at') is not None:
        record.recorded_at = fields['recorded_at']
    if fields.get('patient_id') is not None:
        if not Patient.objects.filter(pk=fields['patient_id']).exists():
            return None
        record.patient_id = fields['patient_id']
    if fields.get('doctor_id') is not None:
        if not Doctor.objects.filter(pk=fields['doctor_id']).exists():
            return None
        record.doctor_id = fields['doctor_id']
    record.save()
    return record


def delete_record(record_id: int) -> bool:
    deleted, _ = MedicalRecord.objects.filter(pk=record_id).delete()
    return deleted > 0


def format_record(record: MedicalRecord) -> dict:
    doctor = record.doctor
    patient = record.patient
    return {
        'id': record.id,
        'diagnosis': record.diagnosis,
        'treatment': record.treatment,
        'recordedAt': record.recorded_at.isoformat(),
        'patientId': record.patient_id,
        'patientName': patient.name if patient else 'Unknown',
        'doctorId': record.doctor_id,
        'doctorName': doctor.name if doctor else 'Unknown',
        'specialty': doctor.specialty if doctor else 'Unknown',
    }
