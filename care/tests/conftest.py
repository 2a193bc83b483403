import itertools
from datetime import datetime, timezone as dt_timezone

import pytest
from django.core.cache import cache

from care.models import Role
from care.services.identity import register

_seq = itertools.count(1)

# Wednesday 6 August 2025, 09:00 UTC
NINE_AM = datetime(2025, 8, 6, 9, 0, tzinfo=dt_timezone.utc)


@pytest.fixture(autouse=True)
def _clear_cache():
    cache.clear()
    yield
    cache.clear()


def _email(prefix: str) -> str:
    return f'{prefix}{next(_seq)}@clinic.test'


@pytest.fixture
def make_doctor(db):
    def _make(name='Gregory House', specialty='Diagnostics'):
        _, doctor = register(Role.DOCTOR, email=_email('doc'), password='s3cret-pass',
                             name=name, phone='5550000001', specialty=specialty)
        return doctor
    return _make


@pytest.fixture
def make_patient(db):
    def _make(name='Jane Roe'):
        _, patient = register(Role.PATIENT, email=_email('pat'), password='s3cret-pass',
                              name=name, phone='9000000001')
        return patient
    return _make


@pytest.fixture
def doctor(make_doctor):
    return make_doctor()


@pytest.fixture
def patient(make_patient):
    return make_patient()
