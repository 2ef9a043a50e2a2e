"""Stripe URL configuration."""

from __future__ import annotations

from django.urls import path

from modules.payments.views import (
    create_checkout_session,
    session_status,
    stripe_config,
    stripe_webhook,
)

urlpatterns = [
    path("stripe/config/", stripe_config, name="stripe-config"),
    path(
        "stripe/checkout-session/",
        create_checkout_session,
        name="stripe-checkout-session",
    ),
    path(
        "stripe/session/<str:session_id>/",
        session_status,
        name="stripe-session-status",
    ),
    path("stripe/webhook/", stripe_webhook, name="stripe-webhook"),
]
