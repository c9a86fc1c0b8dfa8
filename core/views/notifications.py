from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from ..services import notifications as svc
from .common import bool_param, current_user, int_param


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def notifications_list(request):
    user = current_user(request)
    items = svc.list_for_user(
        user,
        unread_only=bool(bool_param(request, 'unread')),
        limit=int_param(request, 'limit', 50, maximum=200),
    )
    return Response({
        'items': [svc.serialize_notification(n) for n in items],
        'unread': svc.unread_count(user),
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def notification_read(request, pk: int):
    user = current_user(request)
    return Response({'ok': svc.mark_read(user, pk)})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def notifications_read_all(request):
    user = current_user(request)
    return Response({'ok': True, 'updated': svc.mark_all_read(user)})
