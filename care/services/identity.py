"""
Identity resolution and account lifecycle.

An authenticated request carries an account id (for example ``'D001'``).
Most endpoints need the id of the role entity behind that account
instead, so that a doctor asking for "my appointments" never has to
send their own numeric doctor id.  This module maps one to the other
and owns the write paths that must keep the account/entity pair
consistent: registration and cascading deletion.
"""
from __future__ import annotations

import logging
import re
from typing import Optional

from django.contrib.auth import get_user_model
from django.db import transaction

from care.models import Admin, Doctor, Patient, Role

logger = logging.getLogger(__name__)

Account = get_user_model()

ROLE_MODELS = {
    Role.DOCTOR: Doctor,
    Role.PATIENT: Patient,
    Role.ADMIN: Admin,
}

_DIGITS = re.compile(r'\d+')


class DuplicateEmail(Exception):
    """Raised when registering with an email that already has an account."""

    def __init__(self, email: str):
        super().__init__(f'an account with email {email} already exists')
        self.email = email


def role_of(account) -> Optional[Role]:
    """Return the role of ``account`` (matched case-insensitively) or None."""
    if account is None:
        return None
    return Role.parse(getattr(account, 'role', None))


def entity_model(role: Role):
    return ROLE_MODELS[role]


def resolve_entity(account_id: str):
    """Return the Doctor/Patient/Admin row owned by ``account_id`` or None."""
    account = Account.objects.filter(pk=account_id).only('id', 'role').first()
    if account is None:
        return None
    role = role_of(account)
    if role is None:
        logger.warning('account %s has unrecognized role %r', account_id, account.role)
        return None
    entity = entity_model(role).objects.filter(account_id=account_id).first()
    if entity is None:
        logger.warning('account %s has role %s but no %s row', account_id, role.value, role.value.lower())
    return entity


def resolve_entity_id(account_id: str) -> Optional[int]:
    """Return the primary key of the role entity owned by ``account_id``.

    None covers every kind of absence: unknown account, a role value that
    matches none of :class:`Role`, or an account whose entity row is
    missing.  The lookup is read-only.
    """
    entity = resolve_entity(account_id)
    return entity.pk if entity is not None else None


def next_account_id(role: Role) -> str:
    """Return the next sequential account id for ``role`` (``D001``, ``D002``...).

    The numeric part is one more than the largest number found among the
    existing ids carrying the role prefix.  Two registrations racing for
    the same id collide on the primary key and the second one fails.
    """
    prefix = role.id_prefix
    highest = 0
    for existing in Account.objects.filter(id__startswith=prefix).values_list('id', flat=True):
        digits = ''.join(_DIGITS.findall(existing[len(prefix):]))
        if digits:
            highest = max(highest, int(digits))
    return f'{prefix}{highest + 1:03d}'


def register(role: Role, *, email: str, password: str, name: str, phone: str = '', specialty: Optional[str] = None):
    """Create an account and its role entity together.

    Returns ``(account, entity)``.  Raises :class:`DuplicateEmail` when
    the email is already registered.
    """
    email = Account.objects.normalize_email(email)
    with transaction.atomic():
        if Account.objects.filter(email__iexact=email).exists():
            raise DuplicateEmail(email)
        account = Account.objects.create_user(
            email=email, password=password, role=role, id=next_account_id(role), first_name=name
        )
        fields = {'account': account, 'name': name, 'phone': phone or '', 'email': email}
        if role == Role.DOCTOR:
            fields['specialty'] = specialty or ''
        entity = entity_model(role).objects.create(**fields)
    logger.info('registered %s account %s', role.value, account.id)
    return account, entity


def change_email(account_id: str, email: str) -> str:
    """Set the login email of an account and of its role entity together.

    Returns the normalized email.  Raises :class:`DuplicateEmail` when
    another account already uses it.
    """
    email = Account.objects.normalize_email(email)
    with transaction.atomic():
        if Account.objects.filter(email__iexact=email).exclude(pk=account_id).exists():
            raise DuplicateEmail(email)
        Account.objects.filter(pk=account_id).update(email=email)
        for model in ROLE_MODELS.values():
            model.objects.filter(account_id=account_id).update(email=email)
    return email


def delete_entity(role: Role, entity_id: int) -> bool:
    """Delete a role entity and the account that owns it.

    Both deletes run in one transaction so a failure cannot leave an
    account without its entity.  Appointments and medical records that
    referenced the entity survive with a null reference.  Returns False
    when no such entity exists.
    """
    model = entity_model(role)
    with transaction.atomic():
        entity = model.objects.select_for_update().filter(pk=entity_id).first()
        if entity is None:
            return False
        account_id = entity.account_id
        entity.delete()
        Account.objects.filter(pk=account_id).delete()
    logger.info('deleted %s %s with account %s', role.value.lower(), entity_id, account_id)
    return True


def delete_account(account_id: str) -> bool:
    """Delete an account, removing its role entity first when it has one."""
    with transaction.atomic():
        account = Account.objects.select_for_update().filter(pk=account_id).first()
        if account is None:
            return False
        for model in ROLE_MODELS.values():
            model.objects.filter(account_id=account_id).delete()
        account.delete()
    logger.info('deleted account %s', account_id)
    return True
