from django.core.cache import cache
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from care.models import Role
from care.permissions import IsAdminOrPatient, IsAnyRole, IsDoctorRole, IsAdminRole
from care.serializers.profiles import DoctorListQuerySerializer, DoctorUpdateSerializer
from care.services.profiles import doctors_cache_key, list_doctors
from care.services.records import format_record, list_records
from care.services.scheduling import format_appointment, list_appointments
from care.views.common import caller_entity_id, entity_detail, own_profile

DOCTORS_CACHE_SECONDS = 300


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminOrPatient])
def doctor_list(request):
    """Return the doctor directory.
    Query params:
      - specialty: exact specialty, case-insensitive
      - q: optional search (name/specialty contains)
      - page, pageSize: pagination (optional)
    """
    q = DoctorListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    specialty = (q.validated_data.get('specialty') or '').strip() or None
    term = (q.validated_data.get('q') or '').strip() or None
    page = q.validated_data.get('page')
    page_size = q.validated_data.get('pageSize')

    cache_key = doctors_cache_key(specialty=specialty, q=term, page=page, page_size=page_size)
    cached = cache.get(cache_key)
    if cached:
        return Response(cached)

    doctors, total = list_doctors(specialty=specialty, q=term, page=page, page_size=page_size)
    payload = {'ok': True, 'data': doctors, 'pagination': {'total': total, 'page': page or 1, 'pageSize': page_size or total}}
    cache.set(cache_key, payload, DOCTORS_CACHE_SECONDS)
    return Response(payload)


def _can_view_doctor(request, doctor_id):
    # the directory is visible to every signed-in role
    return True


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([IsAuthenticated, IsAnyRole])
def doctor_detail(request, doctor_id: int):
    return entity_detail(request, Role.DOCTOR, doctor_id, DoctorUpdateSerializer, can_view=_can_view_doctor)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsDoctorRole])
def doctor_profile(request):
    return own_profile(request, Role.DOCTOR)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsDoctorRole])
def doctor_my_appointments(request):
    """Appointments of the calling doctor, optionally filtered by ``status``."""
    doctor_id = caller_entity_id(request, Role.DOCTOR)
    status = request.query_params.get('status') or None
    data = [format_appointment(a) for a in list_appointments(doctor_id=doctor_id, status=status)]
    return Response({'ok': True, 'data': data})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsDoctorRole])
def doctor_my_records(request):
    doctor_id = caller_entity_id(request, Role.DOCTOR)
    return Response({'ok': True, 'data': [format_record(r) for r in list_records(doctor_id=doctor_id)]})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def doctor_appointments(request, doctor_id: int):
    """Admin view of one doctor's calendar."""
    data = [format_appointment(a) for a in list_appointments(doctor_id=doctor_id)]
    return Response({'ok': True, 'data': data})
