"""Admin session endpoints."""

from __future__ import annotations

from rest_framework import status
from rest_framework.decorators import (
    api_view,
    authentication_classes,
    permission_classes,
    throttle_classes,
)
from rest_framework.permissions import AllowAny, IsAdminUser
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.throttling import SimpleRateThrottle

from modules.accounts.authentication import extract_token
from modules.accounts.exceptions import InvalidCredentials, PasswordRejected
from modules.accounts.serializers import ChangePasswordSerializer, LoginSerializer
from modules.accounts.services import AccountService


class LoginRateThrottle(SimpleRateThrottle):
    scope = "login"

    def get_cache_key(self, request, view):
        return self.cache_format % {"scope": self.scope, "ident": self.get_ident(request)}


@api_view(["POST"])
@authentication_classes([])
@permission_classes([AllowAny])
@throttle_classes([LoginRateThrottle])
def login(request: Request) -> Response:
    """POST /api/v1/auth/login/ -> ``{token, username}``"""
    serializer = LoginSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    try:
        token, user = AccountService().login(**serializer.validated_data)
    except InvalidCredentials as exc:
        return Response({"detail": str(exc)}, status=status.HTTP_401_UNAUTHORIZED)
    return Response({"token": token, "username": user.get_username()})


@api_view(["POST"])
@authentication_classes([])
@permission_classes([AllowAny])
def logout(request: Request) -> Response:
    """POST /api/v1/auth/logout/

    Always succeeds; an unknown token is simply not in the store.
    """
    token = extract_token(request)
    if token:
        AccountService().logout(token)
    return Response({"detail": "Logged out."})


@api_view(["GET"])
@permission_classes([IsAdminUser])
def verify(request: Request) -> Response:
    """GET /api/v1/auth/verify/"""
    return Response({"valid": True, "username": request.user.get_username()})


@api_view(["POST"])
@permission_classes([IsAdminUser])
def change_password(request: Request) -> Response:
    """POST /api/v1/auth/change-password/"""
    serializer = ChangePasswordSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    try:
        AccountService().change_password(
            request.user,
            serializer.validated_data["current_password"],
            serializer.validated_data["new_password"],
            keep_token=request.auth or "",
        )
    except InvalidCredentials as exc:
        return Response({"detail": str(exc)}, status=status.HTTP_401_UNAUTHORIZED)
    except PasswordRejected as exc:
        return Response(
            {"detail": str(exc), "errors": exc.messages},
            status=status.HTTP_400_BAD_REQUEST,
        )
    return Response({"detail": "Password changed."})
