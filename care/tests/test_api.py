"""
Integration tests for the clinic API.

These tests exercise the most critical behaviours of the system:
registration and login, role based access control, booking with
conflict detection, the appointment state machine and cascading
deletes.  They use Django REST Framework's APIClient within the
APITestCase base class.
"""
from django.contrib.auth import get_user_model
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient, APITestCase

from care.models import AppointmentStatus, MedicalRecord, Role
from care.services.identity import register
from care.services.scheduling import create_appointment
from care.tests.conftest import NINE_AM

Account = get_user_model()


class ClinicAPITests(APITestCase):
    def setUp(self) -> None:
        self.admin_account, self.admin = register(
            Role.ADMIN, email='admin@clinic.test', password='adminpass1', name='Ada Admin', phone='9000000000')
        self.doctor_account, self.doctor = register(
            Role.DOCTOR, email='house@clinic.test', password='doctorpass1', name='Gregory House',
            phone='5550000001', specialty='Diagnostics')
        self.surgeon_account, self.surgeon = register(
            Role.DOCTOR, email='grey@clinic.test', password='doctorpass1', name='Meredith Grey',
            phone='5550000002', specialty='Surgery')
        self.patient_account, self.patient = register(
            Role.PATIENT, email='roe@clinic.test', password='patientpass1', name='Jane Roe', phone='9000000001')
        self.other_account, self.other_patient = register(
            Role.PATIENT, email='doe@clinic.test', password='patientpass1', name='John Doe', phone='8000000002')

    def authenticate(self, account) -> APIClient:
        """Return an authenticated APIClient for the given account."""
        client = APIClient()
        client.force_authenticate(user=account)
        return client

    def book(self, client, when='2025-08-06T09:00:00Z', doctor_id=None):
        return client.post(
            '/api/appointments',
            {'doctorId': doctor_id or self.doctor.pk, 'scheduledAt': when},
            format='json',
        )

    # registration & login -------------------------------------------------

    def test_register_then_login(self):
        client = APIClient()
        response = client.post(reverse('register_patient'), {
            'email': 'New.Patient@Clinic.test',
            'password': 'longenough',
            'name': 'New Patient',
            'phone': '7000000003',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['data']['accountId'], 'P003')

        response = client.post(reverse('login_view'), {'email': 'new.patient@clinic.test', 'password': 'longenough'},
                               format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['role'], Role.PATIENT)
        self.assertEqual(response.data['entityId'], Account.objects.get(pk='P003').patient.pk)
        self.assertTrue(response.data['jwt_access'])

        client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['jwt_access']}")
        me = client.get(reverse('me'))
        self.assertEqual(me.status_code, status.HTTP_200_OK)
        self.assertEqual(me.data['accountId'], 'P003')

    def test_duplicate_email_is_conflict(self):
        response = APIClient().post(reverse('register_doctor'), {
            'email': 'HOUSE@clinic.test',
            'password': 'longenough',
            'name': 'Imposter',
            'phone': '5550000009',
            'specialty': 'Diagnostics',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error']['code'], 'conflict')

    def test_registration_validates_password_and_phone(self):
        response = APIClient().post(reverse('register_patient'), {
            'email': 'weak@clinic.test',
            'password': 'short',
            'name': 'Weak Password',
            'phone': '1234',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(response.data['ok'])
        self.assertIn('password', response.data['error']['message'])
        self.assertIn('phone', response.data['error']['message'])

    def test_wrong_password_is_rejected(self):
        response = APIClient().post(reverse('login_view'), {'email': 'roe@clinic.test', 'password': 'nope'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertFalse(response.data['ok'])
        self.assertEqual(response.data['error']['code'], 'invalid_credentials')

    def test_anonymous_request_is_unauthorized(self):
        response = APIClient().get('/api/appointments')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.data['error']['code'], 'not_authenticated')

    # access control -------------------------------------------------------

    def test_patient_cannot_list_patients(self):
        response = self.authenticate(self.patient_account).get('/api/patients')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_doctor_can_list_patients(self):
        response = self.authenticate(self.doctor_account).get('/api/patients')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual({p['id'] for p in response.data['data']}, {self.patient.pk, self.other_patient.pk})

    def test_patient_cannot_edit_another_patient(self):
        client = self.authenticate(self.patient_account)
        response = client.put(f'/api/patients/{self.other_patient.pk}', {'name': 'Hacked'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        response = client.put(f'/api/patients/{self.patient.pk}', {'name': 'Jane Q. Roe'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['name'], 'Jane Q. Roe')

    def test_profile_email_is_the_login_email(self):
        client = self.authenticate(self.patient_account)
        response = client.put(f'/api/patients/{self.patient.pk}', {'email': 'doe@clinic.test'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error']['code'], 'conflict')

        response = client.put(f'/api/patients/{self.patient.pk}', {'email': 'jane.roe@clinic.test'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.patient_account.refresh_from_db()
        self.assertEqual(self.patient_account.email, 'jane.roe@clinic.test')
        response = APIClient().post(reverse('login_view'), {'email': 'jane.roe@clinic.test', 'password': 'patientpass1'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_account_email_change_reaches_the_profile(self):
        response = self.authenticate(self.admin_account).put(
            f'/api/accounts/{self.doctor_account.pk}', {'email': 'g.house@clinic.test'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.doctor.refresh_from_db()
        self.assertEqual(self.doctor.email, 'g.house@clinic.test')

    def test_doctor_directory_filters_by_specialty(self):
        client = self.authenticate(self.patient_account)
        response = client.get('/api/doctors', {'specialty': 'surgery'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([d['id'] for d in response.data['data']], [self.surgeon.pk])

    def test_doctor_directory_sees_profile_updates(self):
        client = self.authenticate(self.admin_account)
        self.assertEqual(len(client.get('/api/doctors', {'specialty': 'Cardiology'}).data['data']), 0)
        response = client.put(f'/api/doctors/{self.surgeon.pk}', {'specialty': 'Cardiology'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(client.get('/api/doctors', {'specialty': 'Cardiology'}).data['data']), 1)

    # appointments ---------------------------------------------------------

    def test_patient_books_for_themself(self):
        response = self.book(self.authenticate(self.patient_account))
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['data']['patientId'], self.patient.pk)
        self.assertEqual(response.data['data']['doctorName'], 'Gregory House')
        self.assertEqual(response.data['data']['status'], AppointmentStatus.SCHEDULED)

    def test_overlapping_booking_is_conflict(self):
        first = self.book(self.authenticate(self.patient_account))
        self.assertEqual(first.status_code, status.HTTP_201_CREATED)
        client = self.authenticate(self.other_account)
        response = self.book(client, when='2025-08-06T09:20:00Z')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error']['code'], 'conflict')
        self.assertEqual(response.data['error']['conflictingId'], first.data['data']['id'])
        response = self.book(client, when='2025-08-06T09:30:00Z')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        response = self.book(client, when='2025-08-06T09:20:00Z', doctor_id=self.surgeon.pk)
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_booking_unknown_doctor_is_not_found(self):
        response = self.book(self.authenticate(self.patient_account), doctor_id=9999)
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_doctor_cannot_book(self):
        response = self.book(self.authenticate(self.doctor_account))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_check_conflict_endpoint(self):
        create_appointment(doctor_id=self.doctor.pk, patient_id=self.patient.pk, scheduled_at=NINE_AM)
        client = self.authenticate(self.other_account)
        response = client.get('/api/appointments/check-conflict',
                              {'doctorId': self.doctor.pk, 'at': '2025-08-06T09:25:00Z'})
        self.assertTrue(response.data['conflict'])
        response = client.get('/api/appointments/check-conflict',
                              {'doctorId': self.doctor.pk, 'at': '2025-08-06T09:35:00Z'})
        self.assertFalse(response.data['conflict'])

    def test_appointments_are_scoped_to_the_caller(self):
        mine = create_appointment(doctor_id=self.doctor.pk, patient_id=self.patient.pk, scheduled_at=NINE_AM)
        create_appointment(doctor_id=self.surgeon.pk, patient_id=self.other_patient.pk, scheduled_at=NINE_AM)

        response = self.authenticate(self.patient_account).get('/api/appointments')
        self.assertEqual([a['id'] for a in response.data['data']], [mine.pk])
        response = self.authenticate(self.doctor_account).get('/api/doctors/appointments')
        self.assertEqual([a['id'] for a in response.data['data']], [mine.pk])
        response = self.authenticate(self.admin_account).get('/api/appointments')
        self.assertEqual(len(response.data['data']), 2)

        response = self.authenticate(self.other_account).get(f'/api/appointments/{mine.pk}')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_status_changes_follow_the_state_machine(self):
        appointment = create_appointment(doctor_id=self.doctor.pk, patient_id=self.patient.pk, scheduled_at=NINE_AM)
        url = f'/api/appointments/{appointment.pk}'

        response = self.authenticate(self.patient_account).put(url, {'status': 'Completed'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        doctor = self.authenticate(self.doctor_account)
        response = doctor.put(url, {'status': 'Completed', 'reason': 'seen'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['status'], AppointmentStatus.COMPLETED)

        response = doctor.post(f'{url}/cancel', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error']['code'], 'invalid_transition')
        self.assertEqual(response.data['error']['current'], AppointmentStatus.COMPLETED)

        history = doctor.get(f'{url}/history').data['data']
        self.assertEqual([h['to'] for h in history], [AppointmentStatus.SCHEDULED, AppointmentStatus.COMPLETED])

    def test_patient_can_cancel_own_appointment(self):
        appointment = create_appointment(doctor_id=self.doctor.pk, patient_id=self.patient.pk, scheduled_at=NINE_AM)
        response = self.authenticate(self.other_account).post(f'/api/appointments/{appointment.pk}/cancel')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        response = self.authenticate(self.patient_account).post(f'/api/appointments/{appointment.pk}/cancel')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        appointment.refresh_from_db()
        self.assertEqual(appointment.status, AppointmentStatus.CANCELLED)
        # the slot is free again
        self.assertEqual(self.book(self.authenticate(self.other_account)).status_code, status.HTTP_201_CREATED)

    def test_admin_reschedule_conflict(self):
        create_appointment(doctor_id=self.doctor.pk, patient_id=self.patient.pk, scheduled_at=NINE_AM)
        response = self.authenticate(self.admin_account).post('/api/appointments', {
            'doctorId': self.doctor.pk,
            'patientId': self.other_patient.pk,
            'scheduledAt': '2025-08-06T11:00:00Z',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        response = self.authenticate(self.admin_account).put(
            f"/api/appointments/{response.data['data']['id']}", {'scheduledAt': '2025-08-06T09:10:00Z'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    # deletes --------------------------------------------------------------

    def test_admin_deletes_doctor_and_account(self):
        appointment = create_appointment(doctor_id=self.doctor.pk, patient_id=self.patient.pk, scheduled_at=NINE_AM)
        response = self.authenticate(self.doctor_account).delete(f'/api/doctors/{self.doctor.pk}')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        response = self.authenticate(self.admin_account).delete(f'/api/doctors/{self.doctor.pk}')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(Account.objects.filter(pk=self.doctor_account.pk).exists())

        response = self.authenticate(self.patient_account).get(f'/api/appointments/{appointment.pk}')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIsNone(response.data['data']['doctorId'])
        self.assertEqual(response.data['data']['doctorName'], 'Unknown')

    def test_admin_deletes_account_with_entity(self):
        response = self.authenticate(self.admin_account).delete(f'/api/accounts/{self.other_account.pk}')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(Account.objects.filter(pk=self.other_account.pk).exists())
        response = self.authenticate(self.admin_account).get(f'/api/patients/{self.other_patient.pk}')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    # medical records -------------------------------------------------------

    def test_doctor_writes_record_patient_reads_own(self):
        response = self.authenticate(self.doctor_account).post('/api/records', {
            'patientId': self.patient.pk,
            'diagnosis': 'Lupus <script>alert(1)</script>',
            'treatment': 'Rest',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['data']['doctorId'], self.doctor.pk)
        self.assertNotIn('<script>', response.data['data']['diagnosis'])

        client = self.authenticate(self.patient_account)
        response = client.get('/api/patients/records')
        self.assertEqual(len(response.data['data']), 1)
        response = client.get(f'/api/patients/{self.other_patient.pk}/records')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_patient_cannot_write_records(self):
        response = self.authenticate(self.patient_account).post('/api/records', {
            'patientId': self.patient.pk, 'diagnosis': 'Self', 'treatment': 'Self'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(MedicalRecord.objects.count(), 0)
