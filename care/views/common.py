"""
Helpers shared by the doctor, patient and admin views.

Each role exposes the same shape of endpoints (list, detail with
GET/PUT/DELETE, and the caller's own profile), so the handlers here are
parameterized by :class:`~care.models.Role` and the update serializer.
"""
from __future__ import annotations

from rest_framework.exceptions import NotFound, PermissionDenied
from rest_framework.response import Response

from care.exceptions import Conflict
from care.models import Role
from care.permissions import account_role
from care.services.audit import log_action
from care.services.identity import DuplicateEmail, delete_entity, entity_model, resolve_entity_id
from care.services.profiles import format_entity, invalidate_doctors_cache, update_entity


def caller_entity_id(request, role: Role) -> int:
    """Return the caller's entity id for ``role`` or raise 404."""
    entity_id = resolve_entity_id(request.user.id) if account_role(request) == role else None
    if entity_id is None:
        raise NotFound(f'{role.value.lower()} profile not found for this account')
    return entity_id


def get_entity_or_404(role: Role, entity_id: int):
    entity = entity_model(role).objects.filter(pk=entity_id).first()
    if entity is None:
        raise NotFound(f'{role.value.lower()} not found')
    return entity


def is_self(request, role: Role, entity_id: int) -> bool:
    return account_role(request) == role and resolve_entity_id(request.user.id) == entity_id


def entity_detail(request, role: Role, entity_id: int, update_serializer, *, can_view):
    """GET/PUT/DELETE one role entity.

    ``can_view`` is a callable ``(request, entity_id) -> bool`` deciding
    read access.  Updates are allowed to admins and to the owner of the
    entity; deletes (which also remove the owning account) to admins only.
    """
    entity = get_entity_or_404(role, entity_id)
    is_admin = account_role(request) == Role.ADMIN

    if request.method == 'GET':
        if not can_view(request, entity_id):
            raise PermissionDenied(f'forbidden for this {role.value.lower()}')
        return Response({'ok': True, 'data': format_entity(role, entity)})

    if request.method == 'PUT':
        if not (is_admin or is_self(request, role, entity_id)):
            raise PermissionDenied(f'forbidden for this {role.value.lower()}')
        s = update_serializer(data=request.data)
        s.is_valid(raise_exception=True)
        try:
            entity = update_entity(role, entity_id, **s.validated_data)
        except DuplicateEmail as e:
            raise Conflict('A user with this email address already exists.') from e
        if entity is None:
            raise NotFound(f'{role.value.lower()} not found')
        log_action(account=request.user, action='update', object_type=role.value.lower(),
                   object_id=entity_id, detail={'fields': sorted(s.validated_data)})
        return Response({'ok': True, 'data': format_entity(role, entity)})

    # DELETE
    if not is_admin:
        raise PermissionDenied('only administrators can delete accounts')
    if not delete_entity(role, entity_id):
        raise NotFound(f'{role.value.lower()} not found')
    if role == Role.DOCTOR:
        invalidate_doctors_cache()
    log_action(account=request.user, action='delete', object_type=role.value.lower(), object_id=entity_id)
    return Response({'ok': True, 'detail': f'{role.value} deleted successfully'})


def own_profile(request, role: Role):
    entity = get_entity_or_404(role, caller_entity_id(request, role))
    return Response({'ok': True, 'data': format_entity(role, entity)})
