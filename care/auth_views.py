"""
Authentication and registration views.

This module defines the login endpoint used by the front-end, the three
self-registration endpoints and the JWT refresh/logout helpers.  Token
issuance is delegated to ``rest_framework_simplejwt``; everything else
in the code base only consumes the verified account placed on
``request.user``.
"""
from __future__ import annotations

from django.contrib.auth import authenticate
from rest_framework_simplejwt.tokens import RefreshToken
from rest_framework_simplejwt.views import TokenRefreshView
from rest_framework_simplejwt.token_blacklist.models import BlacklistedToken, OutstandingToken
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework.authtoken.models import Token
from rest_framework.decorators import api_view, permission_classes, throttle_classes
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.throttling import ScopedRateThrottle

from care.exceptions import Conflict, InvalidCredentials
from care.models import Role
from care.serializers.auth import (
    LoginSerializer,
    PatientRegisterSerializer,
    DoctorRegisterSerializer,
    AdminRegisterSerializer,
)
from care.services.audit import log_action
from care.services.identity import DuplicateEmail, register, resolve_entity_id, role_of
from care.services.profiles import format_entity, invalidate_doctors_cache


def issue_tokens(account) -> dict:
    """Return the JWT pair and the legacy token for ``account``."""
    token_obj, _ = Token.objects.get_or_create(user=account)
    refresh = RefreshToken.for_user(account)
    refresh['role'] = account.role
    return {
        'token': token_obj.key,
        'jwt_access': str(refresh.access_token),
        'jwt_refresh': str(refresh),
    }


# ---------------------------------------------------------------------
# Email/password login
# ---------------------------------------------------------------------
@api_view(['POST'])
@permission_classes([AllowAny])
@throttle_classes([ScopedRateThrottle])
def login_view(request):
    """
    Login with email/password.
    Returns the JWT pair, the legacy token, the role and the id of the
    caller's Doctor/Patient/Admin record.
    """
    s = LoginSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    email = s.validated_data['email']

    account = authenticate(request, email=email, password=s.validated_data['password'])
    if not account:
        log_action(account=None, action='login', object_type='account',
                   detail={'result': 'fail', 'email': email, 'ip': request.META.get('REMOTE_ADDR')})
        raise InvalidCredentials()

    log_action(account=account, action='login', object_type='account', object_id=account.id,
               detail={'result': 'ok', 'ip': request.META.get('REMOTE_ADDR')})

    payload: dict[str, object] = {
        'ok': True,
        **issue_tokens(account),
        'role': account.role,
        'account': {
            'id': account.id,
            'email': account.email,
            'role': account.role,
        },
        'entityId': resolve_entity_id(account.id),
    }
    return Response(payload, status=200)

# ScopedRateThrottle reads the scope from the generated view class
login_view.cls.throttle_scope = 'login'


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def me_view(request):
    """Return the caller's account id, role and role entity id."""
    account = request.user
    role = role_of(account)
    return Response({
        'ok': True,
        'accountId': account.id,
        'email': account.email,
        'role': role.value if role else account.role,
        'entityId': resolve_entity_id(account.id),
    })


# ---------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------
def _register(request, role: Role, serializer_class):
    s = serializer_class(data=request.data)
    s.is_valid(raise_exception=True)
    v = s.validated_data
    try:
        account, entity = register(
            role,
            email=v['email'],
            password=v['password'],
            name=v['name'],
            phone=v['phone'],
            specialty=v.get('specialty'),
        )
    except DuplicateEmail as e:
        raise Conflict('A user with this email address already exists.') from e
    log_action(account=account, action='register', object_type=role.value.lower(), object_id=entity.id)
    if role == Role.DOCTOR:
        invalidate_doctors_cache()
    return Response({
        'ok': True,
        'message': f'{role.value} registration successful.',
        'data': format_entity(role, entity),
    }, status=201)


@api_view(['POST'])
@permission_classes([AllowAny])
def register_doctor_view(request):
    return _register(request, Role.DOCTOR, DoctorRegisterSerializer)


@api_view(['POST'])
@permission_classes([AllowAny])
def register_patient_view(request):
    return _register(request, Role.PATIENT, PatientRegisterSerializer)


@api_view(['POST'])
@permission_classes([AllowAny])
def register_admin_view(request):
    return _register(request, Role.ADMIN, AdminRegisterSerializer)


# ---------------------------------------------------------------------
# JWT: refresh & logout
# ---------------------------------------------------------------------
@api_view(['POST'])
@permission_classes([AllowAny])
def jwt_refresh_view(request):
    """Return a new access token from refresh token."""
    view = TokenRefreshView.as_view()
    resp = view(request._request)
    if isinstance(resp, Response):
        data = dict(resp.data)
        if 'access' in data and 'jwt_access' not in data:
            data['jwt_access'] = data.pop('access')
        return Response(data, status=resp.status_code)
    return resp


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def jwt_logout_view(request):
    """Blacklist the caller's refresh tokens (all or a given one) and drop the legacy token."""
    refresh = request.data.get('refresh')
    count = 0
    if refresh:
        try:
            RefreshToken(refresh).blacklist()
            count = 1
        except TokenError as e:
            raise ValidationError({'refresh': [str(e)]}) from e
    else:
        for token in OutstandingToken.objects.filter(user=request.user):
            _, created = BlacklistedToken.objects.get_or_create(token=token)
            count += int(created)
    Token.objects.filter(user=request.user).delete()
    return Response({'ok': True, 'blacklisted': count})
