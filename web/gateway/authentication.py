"""Authentication for requests forwarded by the edge proxy.

The proxy terminates the user session and forwards the authenticated user's
id in the ``X-User-Id`` header. This backend resolves it to an active Django
user; staff users are treated as privileged callers by the views.
"""

from django.contrib.auth import get_user_model
from rest_framework import authentication, exceptions

from apps.orders.domain import Caller


class ForwardedUserAuthentication(authentication.BaseAuthentication):
    HEADER = "HTTP_X_USER_ID"

    def authenticate(self, request):
        raw = request.META.get(self.HEADER)
        if not raw:
            return None
        if not raw.isdigit():
            raise exceptions.AuthenticationFailed("Invalid user id")
        user = get_user_model().objects.filter(pk=int(raw), is_active=True).first()
        if user is None:
            raise exceptions.AuthenticationFailed("Unknown or inactive user")
        return (user, None)

    def authenticate_header(self, request):
        # A non-empty value makes DRF answer 401 instead of 403.
        return "X-User-Id"


def caller_for(request) -> Caller:
    """Build the domain ``Caller`` for an authenticated request."""
    return Caller(user_id=request.user.pk, is_privileged=bool(request.user.is_staff))
