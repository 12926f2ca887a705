"""
DRF adapter for the bearer-token middleware.
"""
from rest_framework.authentication import BaseAuthentication


class MiddlewareAuthentication(BaseAuthentication):
    """
    Expose the principal resolved by ``JWTAuthenticationMiddleware`` to DRF.

    ``request.user`` is the principal and ``request.auth`` the decoded token
    claims. Token parsing happens once, in the middleware, because tenant
    resolution needs the principal before any view runs.
    """
    keyword = 'Bearer'

    def authenticate(self, request):
        principal = getattr(request._request, 'user', None)
        if principal is None or not principal.is_authenticated:
            return None
        return principal, getattr(request._request, 'auth_claims', None)

    def authenticate_header(self, request):
        return self.keyword
