"""Admin auth URL configuration."""

from __future__ import annotations

from django.urls import path

from modules.accounts.views import change_password, login, logout, verify

urlpatterns = [
    path("auth/login/", login, name="auth-login"),
    path("auth/logout/", logout, name="auth-logout"),
    path("auth/verify/", verify, name="auth-verify"),
    path("auth/change-password/", change_password, name="auth-change-password"),
]
