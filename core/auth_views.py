"""
Authentication views.

Username/password login returns both the legacy DRF token (used by
older clients) and a JWT pair.  Refresh and logout wrap simplejwt so the
response shape stays the same for every client.  Kept apart from
``core.authentication`` so DRF can import the authentication class
without pulling in views.
"""
from __future__ import annotations

from django.contrib.auth import authenticate
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.tokens import RefreshToken
from rest_framework_simplejwt.views import TokenRefreshView
from rest_framework_simplejwt.token_blacklist.models import BlacklistedToken, OutstandingToken
from rest_framework.authtoken.models import Token
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response

from core.exceptions import CareAppError, ErrorType
from core.serializers.auth import LoginSerializer
from core.services.audit import client_ip, log_action

from .models import User


def serialize_user(user: User) -> dict:
    return {
        'id': user.id,
        'username': user.username,
        'name': user.display_name(),
        'email': user.email,
        'role': user.role,
        'isSaasAdmin': user.is_saas_admin,
        'organizationId': user.organization_id,
        'teamId': user.team_id,
    }


@api_view(['POST'])
@permission_classes([AllowAny])
def login_view(request):
    """
    Login with username/password.
    Accepts fields:
      - account or username
      - password
    """
    s = LoginSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    username = s.validated_data['username']
    ip = client_ip(request)

    user = authenticate(request, username=username, password=s.validated_data['password'])
    if not user:
        # failed attempts are recorded by username only
        log_action(user=None, action='login', object_type='user',
                   detail={'result': 'fail', 'username': username}, ip=ip)
        raise CareAppError('Invalid username or password', ErrorType.AUTHENTICATION)

    log_action(user=user, action='login', object_type='user', object_id=user.id, detail={'result': 'ok'}, ip=ip)

    token_obj, _ = Token.objects.get_or_create(user=user)
    refresh = RefreshToken.for_user(user)
    return Response({
        'ok': True,
        'token': token_obj.key,
        'jwt_access': str(refresh.access_token),
        'jwt_refresh': str(refresh),
        'role': user.role,
        'user': serialize_user(user),
    }, status=200)

# ScopedRateThrottle reads the scope from the wrapped APIView class
login_view.cls.throttle_scope = 'login'


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def me_view(request):
    return Response(serialize_user(request.user))


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
    """Blacklist current user's refresh tokens (all or a given one)."""
    refresh = request.data.get('refresh')
    count = 0
    if refresh:
        try:
            RefreshToken(refresh).blacklist()
        except TokenError as e:
            raise CareAppError(str(e), ErrorType.VALIDATION)
        count = 1
    else:
        for token in OutstandingToken.objects.filter(user=request.user):
            _, created = BlacklistedToken.objects.get_or_create(token=token)
            count += int(created)
    Token.objects.filter(user=request.user).delete()
    log_action(user=request.user, action='logout', object_type='user', object_id=request.user.id,
               ip=client_ip(request))
    return Response({'ok': True, 'blacklisted': count})
