from datetime import datetime, timezone
from django.utils.timezone import now
from django.conf import settings
from rest_framework_simplejwt.tokens import RefreshToken, AccessToken
from rest_framework_simplejwt.exceptions import TokenError


class JWTAuthCookieMiddleware:
    """
    Get JWT from httpOnly cookies and (if needed) inject into Authorization header.
    If access is expired but refresh is valid, auto-issue a new access token and set cookie.
    An explicit Authorization header sent by the client always wins.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        if request.META.get('HTTP_AUTHORIZATION'):
            return self.get_response(request)

        access_token = request.COOKIES.get('access_token')
        refresh_token = request.COOKIES.get('refresh_token')

        if access_token:
            try:
                token = AccessToken(access_token)
                if token['exp'] < now().timestamp():
                    raise TokenError("Access token expired")
                request.META['HTTP_AUTHORIZATION'] = f'Bearer {access_token}'
                return self.get_response(request)
            except TokenError:
                pass  # expired or tampered, try refresh

        if refresh_token:
            try:
                new_access = RefreshToken(refresh_token).access_token
            except TokenError:
                return self.get_response(request)

            request.META['HTTP_AUTHORIZATION'] = f'Bearer {new_access}'
            response = self.get_response(request)
            response.set_cookie(
                key='access_token',
                value=str(new_access),
                httponly=True,
                secure=getattr(settings, 'AUTH_COOKIE_SECURE', not settings.DEBUG),
                samesite=getattr(settings, 'AUTH_COOKIE_SAMESITE', 'Lax'),
                expires=datetime.fromtimestamp(new_access['exp'], tz=timezone.utc),
                path=getattr(settings, 'AUTH_COOKIE_PATH', '/'),
                domain=getattr(settings, 'AUTH_COOKIE_DOMAIN', None),
            )
            return response

        return self.get_response(request)
