"""DRF authentication backed by the admin session store."""

from __future__ import annotations

from typing import Optional, Tuple

from django.contrib.auth import get_user_model
from rest_framework import exceptions
from rest_framework.authentication import BaseAuthentication, get_authorization_header
from rest_framework.request import Request

from modules.accounts.sessions import AdminSessionStore, admin_sessions

KEYWORD = "Bearer"


def extract_token(request: Request) -> Optional[str]:
    """Return the token from ``Authorization: Bearer <token>`` or a bare token."""
    header = get_authorization_header(request).decode("latin-1").strip()
    if not header:
        return None
    parts = header.split()
    if len(parts) == 1:
        return parts[0]
    if len(parts) == 2 and parts[0].lower() == KEYWORD.lower():
        return parts[1]
    raise exceptions.AuthenticationFailed("Invalid Authorization header.")


class AdminTokenAuthentication(BaseAuthentication):
    """Resolves an admin session token to its staff ``User``.

    No header means anonymous; a header with an unknown token is a 401.
    """

    store: AdminSessionStore = admin_sessions

    def authenticate(self, request: Request) -> Optional[Tuple[object, str]]:
        token = extract_token(request)
        if token is None:
            return None

        session = self.store.resolve(token)
        if session is None:
            raise exceptions.AuthenticationFailed("Invalid or expired token.")

        user = (
            get_user_model()
            .objects.filter(username=session.username, is_active=True, is_staff=True)
            .first()
        )
        if user is None:
            self.store.revoke(token)
            raise exceptions.AuthenticationFailed("Invalid or expired token.")
        return user, token

    def authenticate_header(self, request: Request) -> str:
        return KEYWORD


class OptionalAdminTokenAuthentication(AdminTokenAuthentication):
    """For public endpoints: an unknown or revoked token reads as anonymous.

    A customer whose browser still holds a stale admin token can place and
    read orders; a live token still unlocks the admin view.
    """

    def authenticate(self, request: Request) -> Optional[Tuple[object, str]]:
        try:
            return super().authenticate(request)
        except exceptions.AuthenticationFailed:
            return None
