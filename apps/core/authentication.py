"""
Custom DRF authentication classes.
"""
from rest_framework.authentication import BaseAuthentication


class MiddlewareAuthentication(BaseAuthentication):
    """
    DRF authentication class that uses the principal set by PrincipalMiddleware.

    The middleware verifies the bearer credential and attaches
    request.principal; this class simply hands that principal to DRF so
    it becomes request.user inside views.
    """

    def authenticate(self, request):
        """
        Return the principal from the middleware if present.

        Returns:
            tuple: (principal, None) if a principal is attached, None otherwise
        """
        # Get the underlying Django request (DRF wraps it)
        django_request = request._request

        principal = getattr(django_request, 'principal', None)
        if principal is not None:
            return (principal, None)

        return None

    def authenticate_header(self, request):
        return 'Bearer'
