"""
Authentication REST API views.

Implements endpoints for:
- User registration
- Login (username or email)
- Token refresh
- User profile management
"""
import json

from rest_framework import status
from rest_framework.views import APIView
from rest_framework.response import Response
from django_ratelimit.decorators import ratelimit
from django.utils.decorators import method_decorator
from drf_spectacular.utils import extend_schema, OpenApiExample
from drf_spectacular.types import OpenApiTypes

from apps.core.exceptions import AuthenticationError
from apps.core.logging import SecurityLogger
from apps.core.permissions import HasPermissions
from apps.rbac.models import User
from apps.rbac.services import AuthService, UserService
from apps.rbac.serializers import (
    RegistrationSerializer, LoginSerializer, ProfileUpdateSerializer, UserSerializer
)


def _profile(user):
    user = User.objects.prefetch_related('roles__permissions', 'permissions').get(pk=user.pk)
    return UserSerializer(user).data


def login_rate_key(group, request):
    """
    Rate limit key for login attempts: the lowercased login plus the client IP.

    The body is read from the Django request before DRF parses it, so both
    JSON and form payloads are handled here.
    """
    login = ''
    if request.content_type == 'application/json':
        try:
            payload = json.loads(request.body or b'{}')
        except ValueError:
            payload = {}
        if isinstance(payload, dict):
            login = payload.get('login') or ''
    else:
        login = request.POST.get('login', '')

    return f"{str(login).strip().lower()}|{request.META.get('REMOTE_ADDR', '')}"


def _rate_limited_response(request, limit, retry_after):
    SecurityLogger.log_rate_limit_exceeded(
        endpoint=request.path,
        ip_address=request.META.get('REMOTE_ADDR', 'unknown'),
        limit=limit
    )
    response = Response(
        {
            'error': {
                'code': 'RATE_LIMIT_EXCEEDED',
                'message': 'Rate limit exceeded. Please try again later.',
            },
            'retry_after': retry_after
        },
        status=status.HTTP_429_TOO_MANY_REQUESTS
    )
    response['Retry-After'] = str(retry_after)
    return response


@extend_schema(
    tags=['Authentication'],
    summary='Register new user',
    description='''
Register a new account. The account starts unverified and holds the
`member` role.

Returns a JWT token for immediate login.

**No authentication required** - this is a public endpoint.

**Rate limit**: 3 requests/hour per IP
    ''',
    request=RegistrationSerializer,
    responses={
        201: OpenApiTypes.OBJECT,
        400: OpenApiTypes.OBJECT,
        429: OpenApiTypes.OBJECT,
    },
    examples=[
        OpenApiExample(
            'Registration Request',
            value={
                'name': 'Ada Lovelace',
                'username': 'ada',
                'email': 'ada@example.com',
                'password': 'SecurePass123!',
                'password_confirmation': 'SecurePass123!'
            },
            request_only=True
        ),
    ]
)
@method_decorator(ratelimit(key='ip', rate='3/h', method='POST', block=False), name='dispatch')
class RegistrationView(APIView):
    """
    POST /v1/auth/register

    No authentication required.
    Rate limited to 3 requests per hour per IP.
    """
    authentication_classes = []
    permission_classes = []

    def post(self, request):
        """Register new user."""
        if getattr(request, 'limited', False):
            return _rate_limited_response(request, '3/hour per IP', 3600)

        serializer = RegistrationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = AuthService.register_user(**serializer.validated_data)

        return Response(
            {
                'user': _profile(result['user']),
                'token': result['token'],
            },
            status=status.HTTP_201_CREATED
        )


@extend_schema(
    tags=['Authentication'],
    summary='Login',
    description='''
Authenticate with a username or an email and a password.

Returns a JWT token to send as `Authorization: Bearer <token>`.

**Rate limit**: 5 requests/minute per login and IP
    ''',
    request=LoginSerializer,
    responses={
        200: OpenApiTypes.OBJECT,
        401: OpenApiTypes.OBJECT,
        429: OpenApiTypes.OBJECT,
    },
    examples=[
        OpenApiExample(
            'Login Request',
            value={'login': 'ada', 'password': 'SecurePass123!'},
            request_only=True
        ),
    ]
)
@method_decorator(ratelimit(key=login_rate_key, rate='5/m', method='POST', block=False), name='dispatch')
class LoginView(APIView):
    """
    POST /v1/auth/login

    No authentication required.
    Rate limited to 5 requests per minute per login and IP address.
    """
    authentication_classes = []
    permission_classes = []

    def post(self, request):
        """Login user."""
        if getattr(request, 'limited', False):
            return _rate_limited_response(request, '5/min per login and IP', 60)

        serializer = LoginSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = AuthService.login(
            login=serializer.validated_data['login'],
            password=serializer.validated_data['password'],
            request=request
        )

        if not result:
            SecurityLogger.log_failed_login(
                login=serializer.validated_data['login'],
                ip_address=request.META.get('REMOTE_ADDR', 'unknown'),
                user_agent=request.META.get('HTTP_USER_AGENT', 'unknown'),
                reason='Invalid credentials'
            )
            raise AuthenticationError('Invalid login or password')

        return Response(
            {
                'user': _profile(result['user']),
                'token': result['token'],
            },
            status=status.HTTP_200_OK
        )


@extend_schema(
    tags=['Authentication'],
    summary='Refresh token',
    description='Issue a fresh JWT token for the authenticated user.',
    request=None,
    responses={200: OpenApiTypes.OBJECT, 401: OpenApiTypes.OBJECT}
)
class RefreshTokenView(APIView):
    """
    POST /v1/auth/refresh

    Requires JWT authentication.
    """
    permission_classes = [HasPermissions]

    def post(self, request):
        """Refresh token."""
        return Response(
            {
                'token': AuthService.generate_jwt(request.user),
                'message': 'Token refreshed successfully'
            },
            status=status.HTTP_200_OK
        )


class UserProfileView(APIView):
    """
    GET /v1/auth/me
    PUT /v1/auth/me

    The authenticated user's own profile with roles and effective
    permissions.
    """
    permission_classes = [HasPermissions]

    @extend_schema(
        tags=['Authentication'],
        summary='Get current user profile',
        responses={200: UserSerializer, 401: OpenApiTypes.OBJECT}
    )
    def get(self, request):
        return Response(_profile(request.user))

    @extend_schema(
        tags=['Authentication'],
        summary='Update current user profile',
        description='Update name, username, email or password. Roles and permissions cannot be changed here.',
        request=ProfileUpdateSerializer,
        responses={200: UserSerializer, 400: OpenApiTypes.OBJECT, 401: OpenApiTypes.OBJECT}
    )
    def put(self, request):
        serializer = ProfileUpdateSerializer(instance=request.user, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)

        user = UserService.update(request.user, serializer.validated_data)
        return Response(_profile(user))
