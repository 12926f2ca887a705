"""
Authentication REST API views.

Implements endpoints for:
- Login (email and password, returns a JWT)
- The current principal and its effective permissions
"""
from datetime import datetime, timezone as dt_timezone
from django.conf import settings
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import extend_schema, OpenApiExample
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.core.exceptions import AuthenticationError
from apps.core.logging import SecurityLogger
from apps.rbac.serializers import CurrentUserSerializer, LoginSerializer, UserSerializer
from apps.rbac.services import AuthService


@extend_schema(
    tags=['Authentication'],
    summary='Obtain a bearer token',
    description='''
Exchange staff credentials for a JWT.

The token names the principal and its clinic. Send it as
`Authorization: Bearer <token>`; the clinic is then resolved from the
token when no `X-Tenant-ID` header or clinic subdomain is given.

Logging in does not check the clinic's subscription. Requests made with the
token against a suspended clinic are refused with `TENANT_INACTIVE`.
    ''',
    request=LoginSerializer,
    responses={200: OpenApiTypes.OBJECT, 400: OpenApiTypes.OBJECT, 401: OpenApiTypes.OBJECT},
    examples=[
        OpenApiExample(
            'Clinic staff',
            value={'email': 'dentist@bright-smiles.example', 'password': 'Sup3r-secret!'},
            request_only=True,
        ),
    ],
)
class LoginView(APIView):
    """
    POST /v1/auth/login
    """
    authentication_classes = []
    permission_classes = []

    def post(self, request):
        serializer = LoginSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        email = serializer.validated_data['email']
        ip_address = request.META.get('REMOTE_ADDR')

        result = AuthService.login(email=email, password=serializer.validated_data['password'], ip_address=ip_address)
        if result is None:
            SecurityLogger.log_event('login_failed', email=email, ip_address=ip_address)
            raise AuthenticationError('Invalid email or password')

        return Response({
            'token': result['token'],
            'token_type': 'Bearer',
            'expires_in': settings.JWT_EXPIRATION_HOURS * 3600,
            'user': UserSerializer(result['user']).data,
        })


@extend_schema(
    tags=['Authentication'],
    summary='Current user',
    description='The authenticated principal, including its effective permission names and token expiry.',
    responses={200: CurrentUserSerializer, 401: OpenApiTypes.OBJECT},
)
class CurrentUserView(APIView):
    """
    GET /v1/auth/me
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        data = CurrentUserSerializer(request.user).data
        claims = request.auth or {}
        if claims.get('exp'):
            data['token_expires_at'] = datetime.fromtimestamp(claims['exp'], tz=dt_timezone.utc).isoformat()
        return Response(data)
