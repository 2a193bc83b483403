import logging
from unittest import mock

import pytest
from django.contrib.auth import get_user_model
from django.db import DatabaseError

from care.models import Doctor, Patient, Role
from care.services.identity import (
    DuplicateEmail,
    change_email,
    delete_account,
    delete_entity,
    next_account_id,
    register,
    resolve_entity,
    resolve_entity_id,
)

pytestmark = pytest.mark.django_db

Account = get_user_model()


def test_registration_assigns_prefixed_ids():
    doc_account, doctor = register(Role.DOCTOR, email='house@clinic.test', password='s3cret-pass',
                                   name='Gregory House', phone='5550000001', specialty='Diagnostics')
    pat_account, patient = register(Role.PATIENT, email='roe@clinic.test', password='s3cret-pass',
                                    name='Jane Roe', phone='9000000001')
    assert doc_account.id == 'D001'
    assert pat_account.id == 'P001'
    assert doctor.account_id == 'D001'
    assert doc_account.check_password('s3cret-pass')
    assert next_account_id(Role.DOCTOR) == 'D002'


def test_next_id_follows_the_highest_number():
    Account.objects.create_user(email='a@clinic.test', password='x', role=Role.DOCTOR, id='D007')
    Account.objects.create_user(email='b@clinic.test', password='x', role=Role.DOCTOR, id='D002')
    assert next_account_id(Role.DOCTOR) == 'D008'
    assert next_account_id(Role.ADMIN) == 'A001'


def test_resolves_account_to_entity(doctor, patient):
    assert resolve_entity_id(doctor.account_id) == doctor.pk
    assert resolve_entity_id(patient.account_id) == patient.pk
    assert isinstance(resolve_entity(doctor.account_id), Doctor)


def test_unknown_account_resolves_to_none(db):
    assert resolve_entity_id('X999') is None


def test_role_is_matched_case_insensitively(doctor):
    Account.objects.filter(pk=doctor.account_id).update(role='doctor')
    assert resolve_entity_id(doctor.account_id) == doctor.pk


def test_unrecognized_role_resolves_to_none(doctor, caplog):
    Account.objects.filter(pk=doctor.account_id).update(role='Nurse')
    with caplog.at_level(logging.WARNING, logger='care.services.identity'):
        assert resolve_entity_id(doctor.account_id) is None
    assert 'unrecognized role' in caplog.text


def test_account_without_entity_resolves_to_none(db):
    account = Account.objects.create_user(email='lonely@clinic.test', password='x', role=Role.PATIENT)
    assert resolve_entity_id(account.id) is None


def test_duplicate_email_is_rejected_ignoring_case(patient):
    with pytest.raises(DuplicateEmail):
        register(Role.PATIENT, email=patient.account.email.upper(), password='s3cret-pass',
                 name='Copy Cat', phone='9000000009')
    assert Patient.objects.count() == 1


def test_unknown_role_cannot_be_created(db):
    with pytest.raises(ValueError):
        Account.objects.create_user(email='n@clinic.test', password='x', role='Nurse')


def test_delete_entity_removes_account(doctor):
    account_id = doctor.account_id
    assert delete_entity(Role.DOCTOR, doctor.pk) is True
    assert not Account.objects.filter(pk=account_id).exists()
    assert resolve_entity_id(account_id) is None
    assert delete_entity(Role.DOCTOR, doctor.pk) is False


def test_delete_account_removes_entity(patient):
    account_id = patient.account_id
    assert delete_account(account_id) is True
    assert not Patient.objects.filter(pk=patient.pk).exists()
    assert delete_account(account_id) is False


def test_register_rolls_back_account_when_entity_insert_fails(db):
    with mock.patch.object(Patient.objects, 'create', side_effect=DatabaseError('insert failed')):
        with pytest.raises(DatabaseError):
            register(Role.PATIENT, email='roe@clinic.test', password='s3cret-pass',
                     name='Jane Roe', phone='9000000001')
    assert not Account.objects.filter(email__iexact='roe@clinic.test').exists()
    assert next_account_id(Role.PATIENT) == 'P001'


def test_delete_entity_rolls_back_when_account_delete_fails(doctor):
    with mock.patch.object(Account.objects, 'filter', side_effect=DatabaseError('delete failed')):
        with pytest.raises(DatabaseError):
            delete_entity(Role.DOCTOR, doctor.pk)
    assert Doctor.objects.filter(pk=doctor.pk).exists()
    assert resolve_entity_id(doctor.account_id) == doctor.pk


def test_delete_account_rolls_back_entity_delete(patient):
    with mock.patch.object(Account, 'delete', side_effect=DatabaseError('delete failed')):
        with pytest.raises(DatabaseError):
            delete_account(patient.account_id)
    assert Patient.objects.filter(pk=patient.pk).exists()
    assert resolve_entity_id(patient.account_id) == patient.pk


def test_change_email_updates_account_and_entity(patient):
    assert change_email(patient.account_id, 'jane.q@clinic.test') == 'jane.q@clinic.test'
    patient.refresh_from_db()
    assert patient.email == 'jane.q@clinic.test'
    assert Account.objects.get(pk=patient.account_id).email == 'jane.q@clinic.test'


def test_change_email_rejects_taken_address(patient, doctor):
    with pytest.raises(DuplicateEmail):
        change_email(patient.account_id, doctor.account.email.upper())
    patient.refresh_from_db()
    assert patient.email == patient.account.email
