from typing import Optional
import bleach
from django.core.cache import cache
from django.db import transaction
from django.db.models import Q
from care.models import Role, Doctor
from care.services.identity import change_email, entity_model

DOCTORS_CACHE_VERSION_KEY = 'doctors:version'


def doctors_cache_key(*, specialty: Optional[str], q: Optional[str], page: Optional[int], page_size: Optional[int]) -> str:
    version = cache.get(DOCTORS_CACHE_VERSION_KEY, 1)
    return f"doctors:v={version}:s={(specialty or '').lower()}:q={q or ''}:p={page}:ps={page_size}"


def invalidate_doctors_cache():
    try:
        cache.incr(DOCTORS_CACHE_VERSION_KEY)
    except ValueError:
        cache.set(DOCTORS_CACHE_VERSION_KEY, 2, None)


def list_doctors(*, specialty: Optional[str]=None, q: Optional[str]=None,
                 page: Optional[int]=None, page_size: Optional[int]=None) -> tuple[list[dict], int]:
    qs = Doctor.objects.all()
    if specialty:
        qs = qs.filter(specialty__iexact=specialty)
    if q:
        qs = qs.filter(Q(name__icontains=q) | Q(specialty__icontains=q))
    total = qs.count()
    qs = qs.order_by('id')
    if page and page_size:
        start = (page-1)*page_size
        qs = qs[start:start + page_size]
    return [format_entity(Role.DOCTOR, d) for d in qs], total


def list_entities(role: Role) -> list[dict]:
    return [format_entity(role, e) for e in entity_model(role).objects.order_by('id')]


def format_entity(role: Role, entity) -> dict:
    data = {
        'id': entity.id,
        'accountId': entity.account_id,
        'name': entity.name,
        'phone': entity.phone,
        'email': entity.email,
        'role': role.value,
    }
    if role == Role.DOCTOR:
        data['specialty'] = entity.specialty
    return data


def update_entity(role: Role, entity_id: int, **fields):
    """Update profile fields of a role entity; returns None when it does not exist.

    A new email is also the new login email of the owning account.
    Raises :class:`~care.services.identity.DuplicateEmail` when it is taken.
    """
    with transaction.atomic():
        entity = entity_model(role).objects.filter(pk=entity_id).first()
        if entity is None:
            return None
        allowed = ['name', 'phone'] + (['specialty'] if role == Role.DOCTOR else [])
        changed = []
        for key in allowed:
            value = fields.get(key)
            if value is None:
                continue
            if key in ('name', 'specialty'):
                value = bleach.clean(value.strip(), tags=set(), strip=True)
            setattr(entity, key, value)
            changed.append(key)
        if changed:
            entity.save(update_fields=changed)
        if fields.get('email') is not None:
            entity.email = change_email(entity.account_id, fields['email'])
            changed.append('email')
    if changed and role == Role.DOCTOR:
        invalidate_doctors_cache()
    return entity
