"""
Custom authentication backend for token-based auth.

JWTs issued by :mod:`care.auth_views` are the primary credential and
are verified by ``rest_framework_simplejwt``.  The DRF token issued
alongside them is kept for clients that still send
``Authorization: Token <key>``.  Either way the verified account ends
up on ``request.user`` and the rest of the code only reads its id and
role from there.
"""
from __future__ import annotations

from rest_framework import authentication


class TokenAuthentication(authentication.TokenAuthentication):
    """Token authentication using the ``Token`` keyword.

    Exists to provide a stable import path for the project's
    configuration and to allow later customisation.
    """

    keyword = 'Token'
