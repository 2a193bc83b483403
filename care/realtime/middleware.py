"""
WebSocket authentication.

Browsers cannot set an ``Authorization`` header on a WebSocket
handshake, so the JWT access token is accepted from the ``token`` query
string parameter.  Connections without a valid token keep whatever user
the session middleware placed in the scope (usually anonymous).
"""
from urllib.parse import parse_qs

from channels.auth import AuthMiddlewareStack
from channels.db import database_sync_to_async
from channels.middleware import BaseMiddleware
from django.contrib.auth import get_user_model
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.settings import api_settings
from rest_framework_simplejwt.tokens import AccessToken


@database_sync_to_async
def _account_for(account_id):
    return get_user_model().objects.filter(pk=account_id, is_active=True).first()


class JWTQueryAuthMiddleware(BaseMiddleware):
    async def __call__(self, scope, receive, send):
        params = parse_qs((scope.get('query_string') or b'').decode())
        raw = (params.get('token') or [None])[0]
        if raw:
            try:
                token = AccessToken(raw)
            except TokenError:
                token = None
            if token is not None:
                account = await _account_for(token.get(api_settings.USER_ID_CLAIM))
                if account is not None:
                    scope = dict(scope, user=account)
        return await super().__call__(scope, receive, send)


def JWTAuthMiddlewareStack(inner):
    return AuthMiddlewareStack(JWTQueryAuthMiddleware(inner))
