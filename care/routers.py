"""
URL mappings for the clinic API.

Paths carry no trailing slash, like the rest of the front-end's
endpoint table.  Role checks live in the views, not here.
"""
from django.urls import path, include

from .views import accounts, admins, appointments, doctors, health, patients, records
from .auth_views import (
    login_view,
    me_view,
    jwt_refresh_view,
    jwt_logout_view,
    register_doctor_view,
    register_patient_view,
    register_admin_view,
)


urlpatterns = [
    path('metrics', include('django_prometheus.urls')),
    path('healthz', health.healthz, name='healthz'),
    # Authentication
    path('api/auth/login', login_view, name='login_view'),
    path('api/auth/refresh', jwt_refresh_view, name='jwt_refresh'),
    path('api/auth/logout', jwt_logout_view, name='jwt_logout'),
    path('api/auth/me', me_view, name='me'),
    # Registration
    path('api/register/doctor', register_doctor_view, name='register_doctor'),
    path('api/register/patient', register_patient_view, name='register_patient'),
    path('api/register/admin', register_admin_view, name='register_admin'),
    # Accounts
    path('api/accounts', accounts.account_list, name='account_list'),
    path('api/accounts/<str:account_id>', accounts.account_detail, name='account_detail'),
    # Doctors
    path('api/doctors', doctors.doctor_list, name='doctor_list'),
    path('api/doctors/profile', doctors.doctor_profile, name='doctor_profile'),
    path('api/doctors/appointments', doctors.doctor_my_appointments, name='doctor_my_appointments'),
    path('api/doctors/records', doctors.doctor_my_records, name='doctor_my_records'),
    path('api/doctors/<int:doctor_id>', doctors.doctor_detail, name='doctor_detail'),
    path('api/doctors/<int:doctor_id>/appointments', doctors.doctor_appointments, name='doctor_appointments'),
    # Patients
    path('api/patients', patients.patient_list, name='patient_list'),
    path('api/patients/profile', patients.patient_profile, name='patient_profile'),
    path('api/patients/appointments', patients.patient_my_appointments, name='patient_my_appointments'),
    path('api/patients/records', patients.patient_my_records, name='patient_my_records'),
    path('api/patients/<int:patient_id>', patients.patient_detail, name='patient_detail'),
    path('api/patients/<int:patient_id>/records', records.patient_records, name='patient_records'),
    # Admins
    path('api/admins', admins.admin_list, name='admin_list'),
    path('api/admins/profile', admins.admin_profile, name='admin_profile'),
    path('api/admins/<int:admin_id>', admins.admin_detail, name='admin_detail'),
    # Appointments
    path('api/appointments', appointments.appointments, name='appointments'),
    path('api/appointments/check-conflict', appointments.appointment_check_conflict, name='appointment_check_conflict'),
    path('api/appointments/stats', appointments.appointment_stats, name='appointment_stats'),
    path('api/appointments/<int:appointment_id>', appointments.appointment_detail, name='appointment_detail'),
    path('api/appointments/<int:appointment_id>/cancel', appointments.appointment_cancel, name='appointment_cancel'),
    path('api/appointments/<int:appointment_id>/history', appointments.appointment_history, name='appointment_history'),
    # Medical records
    path('api/records', records.records, name='records'),
    path('api/records/<int:record_id>', records.record_detail, name='record_detail'),
]
