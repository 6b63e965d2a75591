import logging

from django.conf import settings
from rest_framework_simplejwt.authentication import JWTAuthentication
from rest_framework_simplejwt.exceptions import InvalidToken, AuthenticationFailed
from rest_framework_simplejwt.tokens import AccessToken

logger = logging.getLogger(__name__)


def sign_token(user):
    """Issue the signed session token stored in the auth cookie."""
    token = AccessToken.for_user(user)
    token['email'] = user.email
    token['role'] = user.role
    return str(token)


def set_auth_cookie(response, token):
    response.set_cookie(
        settings.AUTH_COOKIE_NAME,
        token,
        max_age=settings.AUTH_COOKIE_MAX_AGE,
        httponly=True,
        secure=settings.AUTH_COOKIE_SECURE,
        samesite='Lax',
        path='/',
    )
    return response


def clear_auth_cookie(response):
    response.delete_cookie(settings.AUTH_COOKIE_NAME, path='/', samesite='Lax')
    return response


class CookieJWTAuthentication(JWTAuthentication):
    """
    Reads the session JWT from the httpOnly auth cookie, falling back to the
    standard `Authorization: Bearer <token>` header.

    A stale or tampered cookie leaves the request anonymous instead of failing
    it, so public endpoints (login, feedback) keep working.
    """

    def authenticate(self, request):
        raw_token = request.COOKIES.get(settings.AUTH_COOKIE_NAME)
        if not raw_token:
            return super().authenticate(request)

        try:
            validated_token = self.get_validated_token(raw_token)
            return self.get_user(validated_token), validated_token
        except (InvalidToken, AuthenticationFailed) as e:
            logger.warning(f"Ignoring invalid auth cookie: {e}")
            return None
