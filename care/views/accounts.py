from django.contrib.auth import get_user_model
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import NotFound
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from care.exceptions import Conflict
from care.models import Role
from care.permissions import IsAdminRole
from care.serializers.profiles import AccountUpdateSerializer
from care.services.audit import log_action
from care.services.identity import DuplicateEmail, change_email, delete_account, resolve_entity_id
from care.services.profiles import invalidate_doctors_cache

Account = get_user_model()


def _format_account(account) -> dict:
    return {
        'id': account.id,
        'email': account.email,
        'role': account.role,
        'isActive': account.is_active,
        'entityId': resolve_entity_id(account.id),
        'dateJoined': account.date_joined.isoformat() if account.date_joined else None,
    }


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def account_list(request):
    role = request.query_params.get('role')
    qs = Account.objects.order_by('id')
    if role:
        qs = qs.filter(role__iexact=role)
    return Response({'ok': True, 'data': [_format_account(a) for a in qs]})


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([IsAuthenticated, IsAdminRole])
def account_detail(request, account_id: str):
    account = Account.objects.filter(pk=account_id).first()
    if account is None:
        raise NotFound('account not found')

    if request.method == 'GET':
        return Response({'ok': True, 'data': _format_account(account)})

    if request.method == 'PUT':
        s = AccountUpdateSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        v = s.validated_data
        if 'email' in v:
            try:
                account.email = change_email(account.id, v['email'])
            except DuplicateEmail as e:
                raise Conflict('A user with this email address already exists.') from e
            if Role.parse(account.role) == Role.DOCTOR:
                invalidate_doctors_cache()
        if v.get('password'):
            account.set_password(v['password'])
        if 'isActive' in v:
            account.is_active = v['isActive']
        account.save()
        log_action(account=request.user, action='update', object_type='account', object_id=account.id,
                   detail={'fields': sorted(v)})
        return Response({'ok': True, 'data': _format_account(account)})

    role = Role.parse(account.role)
    delete_account(account.id)
    if role == Role.DOCTOR:
        invalidate_doctors_cache()
    log_action(account=request.user, action='delete', object_type='account', object_id=account_id)
    return Response({'ok': True, 'detail': 'Account deleted successfully'})
