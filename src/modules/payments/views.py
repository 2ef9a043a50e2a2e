"""Stripe Checkout endpoints.

``checkout-session`` opens a hosted session for a card order, ``session``
is the redirect-back poll, and ``webhook`` receives provider events.  The
webhook is a plain Django view: the signature covers the raw body, which
must be read before any parsing.
"""

from __future__ import annotations

import structlog
from django.conf import settings
from django.http import HttpRequest, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST
from pydantic import ValidationError as PydanticValidationError
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes, throttle_classes
from rest_framework.permissions import AllowAny
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.throttling import SimpleRateThrottle

from modules.orders.exceptions import ProductNotFound, ProductUnavailable
from modules.orders.serializers import PlaceOrderSerializer
from modules.orders.views import build_order_service, cart_error_response
from modules.payments.exceptions import (
    GatewayError,
    PaymentsNotConfigured,
    SignatureVerificationFailed,
)
from modules.payments.gateways import get_payment_gateway

logger = structlog.get_logger(__name__)

SIGNATURE_HEADER = "HTTP_STRIPE_SIGNATURE"


def _gateway_error_response(exc: GatewayError) -> Response:
    if isinstance(exc, PaymentsNotConfigured):
        return Response(
            {"detail": "Payments are not configured."},
            status=status.HTTP_503_SERVICE_UNAVAILABLE,
        )
    return Response(
        {"detail": "Payment provider error. Please try again."},
        status=status.HTTP_502_BAD_GATEWAY,
    )


@api_view(["GET"])
@permission_classes([AllowAny])
def stripe_config(request: Request) -> Response:
    """GET /api/v1/stripe/config/"""
    gateway = get_payment_gateway()
    return Response(
        {
            "publishableKey": settings.STRIPE["PUBLISHABLE_KEY"],
            "isConfigured": gateway.is_configured,
        }
    )


class CheckoutRateThrottle(SimpleRateThrottle):
    """Per-client limit on session creation, shared with manual orders."""

    scope = "checkout"

    def get_cache_key(self, request, view):
        return self.cache_format % {"scope": self.scope, "ident": self.get_ident(request)}


@api_view(["POST"])
@permission_classes([AllowAny])
@throttle_classes([CheckoutRateThrottle])
def create_checkout_session(request: Request) -> Response:
    """POST /api/v1/stripe/checkout-session/

    Returns ``{sessionId, url, orderId}``; the client redirects to ``url``.
    """
    serializer = PlaceOrderSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    try:
        dto = serializer.to_dto()
    except PydanticValidationError as exc:
        return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)

    service = build_order_service(payment_gateway=get_payment_gateway())
    try:
        result = service.start_checkout(dto)
    except (ProductNotFound, ProductUnavailable) as exc:
        return cart_error_response(exc)
    except GatewayError as exc:
        return _gateway_error_response(exc)

    return Response(
        {
            "sessionId": result.session.session_id,
            "url": result.session.redirect_url,
            "orderId": str(result.order.id),
        },
        status=status.HTTP_201_CREATED,
    )


@api_view(["GET"])
@permission_classes([AllowAny])
def session_status(request: Request, session_id: str) -> Response:
    """GET /api/v1/stripe/session/{session_id}/

    Fallback confirmation path when the webhook is late or lost.
    """
    service = build_order_service(payment_gateway=get_payment_gateway())
    try:
        session = service.sync_session(session_id)
    except GatewayError as exc:
        return _gateway_error_response(exc)

    return Response(
        {
            "status": session.payment_status,
            "customerEmail": session.customer_email,
            "amountTotal": session.amount_total,
        }
    )


@csrf_exempt
@require_POST
def stripe_webhook(request: HttpRequest) -> JsonResponse:
    """POST /api/v1/stripe/webhook/

    Authentic events are always acknowledged with 200, including ones that
    match no order, so the provider stops retrying them.
    """
    service = build_order_service(payment_gateway=get_payment_gateway())
    try:
        service.handle_webhook(request.body, request.META.get(SIGNATURE_HEADER))
    except SignatureVerificationFailed as exc:
        logger.warning("payments.webhook_rejected", error=str(exc))
        return JsonResponse({"detail": str(exc)}, status=400)
    return JsonResponse({"received": True})
