"""Admin account use cases: login, logout, password change, default admin."""

from __future__ import annotations

from typing import Tuple

import structlog
from django.conf import settings
from django.contrib.auth import authenticate, get_user_model, password_validation
from django.contrib.auth.models import AbstractBaseUser
from django.core.exceptions import ValidationError
from django.db import transaction

from modules.accounts.exceptions import InvalidCredentials, PasswordRejected
from modules.accounts.sessions import AdminSessionStore, admin_sessions

logger = structlog.get_logger(__name__)


class AccountService:
    def __init__(self, store: AdminSessionStore = admin_sessions) -> None:
        self._store = store

    def login(self, username: str, password: str) -> Tuple[str, AbstractBaseUser]:
        """Check the credentials of a staff account and open a session.

        Raises:
            InvalidCredentials: unknown user, wrong password or not staff.
        """
        user = authenticate(username=username, password=password)
        if user is None or not user.is_staff:
            logger.warning("auth.login_failed", username=username)
            raise InvalidCredentials("Invalid credentials.")

        token = self._store.issue(user.get_username())
        logger.info("auth.login", username=user.get_username())
        return token, user

    def logout(self, token: str) -> bool:
        revoked = self._store.revoke(token)
        logger.info("auth.logout", revoked=revoked)
        return revoked

    @transaction.atomic
    def change_password(
        self,
        user: AbstractBaseUser,
        current_password: str,
        new_password: str,
        keep_token: str = "",
    ) -> None:
        """Replace the password; every other session of the admin is closed.

        Raises:
            InvalidCredentials: ``current_password`` does not match.
            PasswordRejected: ``new_password`` fails the validators.
        """
        if not user.check_password(current_password):
            logger.warning("auth.password_change_denied", username=user.get_username())
            raise InvalidCredentials("Current password is incorrect.")
        try:
            password_validation.validate_password(new_password, user)
        except ValidationError as exc:
            raise PasswordRejected(list(exc.messages)) from exc

        user.set_password(new_password)
        user.save(update_fields=["password"])

        username = user.get_username()
        closed = self._store.revoke_user(username, keep=keep_token or None)
        logger.info("auth.password_changed", username=username, closed_sessions=closed)


def ensure_default_admin() -> bool:
    """Create the configured default admin when no staff account exists.

    Returns ``True`` if an account was created.
    """
    User = get_user_model()
    if User.objects.filter(is_staff=True).exists():
        return False

    username = settings.DEFAULT_ADMIN["USERNAME"]
    User.objects.create_superuser(
        username=username,
        email="",
        password=settings.DEFAULT_ADMIN["PASSWORD"],
    )
    logger.warning("auth.default_admin_created", username=username)
    return True
