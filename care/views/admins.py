from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from care.models import Role
from care.permissions import IsAdminRole
from care.serializers.profiles import AdminUpdateSerializer
from care.services.profiles import list_entities
from care.views.common import entity_detail, own_profile


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def admin_list(request):
    return Response({'ok': True, 'data': list_entities(Role.ADMIN)})


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([IsAuthenticated, IsAdminRole])
def admin_detail(request, admin_id: int):
    return entity_detail(request, Role.ADMIN, admin_id, AdminUpdateSerializer, can_view=lambda request, pk: True)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def admin_profile(request):
    return own_profile(request, Role.ADMIN)
