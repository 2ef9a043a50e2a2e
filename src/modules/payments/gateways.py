"""Payment session gateway.

``IPaymentGateway`` is the contract ``OrderService`` talks to;
``StripeCheckoutGateway`` implements it with hosted Stripe Checkout.
Every ``stripe.StripeError`` leaves this module as ``GatewayError``.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Dict, List, Optional
from uuid import UUID

import stripe
import structlog
from django.conf import settings

from modules.payments.dtos import CheckoutSessionDTO, SessionStatusDTO
from modules.payments.exceptions import (
    GatewayError,
    PaymentsNotConfigured,
    SignatureVerificationFailed,
)

if TYPE_CHECKING:
    from modules.orders.dtos import OrderDraft, OrderLineDTO

logger = structlog.get_logger(__name__)

SHIPPING_LINE_NAME = "Frakt"
SHIPPING_LINE_DESCRIPTION = "Leverans inom 2-5 arbetsdagar"
DEFAULT_ORIGIN = "Blandning"
PLACEHOLDER_KEY_PREFIX = "sk_test_PLACEHOLDER"
# Signatures older than this many seconds are rejected (replay window)
WEBHOOK_TOLERANCE_SECONDS = 300


class IPaymentGateway(ABC):
    @property
    @abstractmethod
    def is_configured(self) -> bool:
        """``True`` when sessions can be created."""

    @abstractmethod
    def create_session(
        self, order_id: UUID, draft: OrderDraft, customer_email: str
    ) -> CheckoutSessionDTO:
        """Open a hosted checkout session for a priced order."""

    @abstractmethod
    def retrieve_session(self, session_id: str) -> SessionStatusDTO:
        """Fetch the provider's current view of a session."""

    @abstractmethod
    def parse_webhook(self, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        """Authenticate and decode a raw webhook body."""


class StripeCheckoutGateway(IPaymentGateway):
    """Stripe Checkout adapter.

    Keys are passed per request (``api_key=``) instead of through the
    module-global ``stripe.api_key``.
    """

    def __init__(
        self,
        secret_key: Optional[str] = None,
        webhook_secret: Optional[str] = None,
        frontend_url: Optional[str] = None,
    ) -> None:
        conf = settings.STRIPE
        self._secret_key = conf["SECRET_KEY"] if secret_key is None else secret_key
        self._webhook_secret = (
            conf["WEBHOOK_SECRET"] if webhook_secret is None else webhook_secret
        )
        self._frontend_url = (
            frontend_url if frontend_url is not None else settings.SHOP["FRONTEND_URL"]
        ).rstrip("/")
        self._currency = conf["CURRENCY"]
        self._locale = conf["LOCALE"]
        self._payment_method_types = list(conf["PAYMENT_METHOD_TYPES"])
        self._allowed_countries = list(conf["ALLOWED_SHIPPING_COUNTRIES"])

    @property
    def is_configured(self) -> bool:
        key = self._secret_key or ""
        return bool(key) and not key.startswith(PLACEHOLDER_KEY_PREFIX)

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def create_session(
        self, order_id: UUID, draft: OrderDraft, customer_email: str
    ) -> CheckoutSessionDTO:
        log = logger.bind(order_id=str(order_id))
        if not self.is_configured:
            log.error("payments.not_configured")
            raise PaymentsNotConfigured("Payment provider is not configured.")

        try:
            session = stripe.checkout.Session.create(
                api_key=self._secret_key,
                idempotency_key=f"checkout_{order_id}",
                mode="payment",
                payment_method_types=self._payment_method_types,
                line_items=self._line_items(draft),
                success_url=(
                    f"{self._frontend_url}/success.html"
                    f"?session_id={{CHECKOUT_SESSION_ID}}&order_id={order_id}"
                ),
                cancel_url=f"{self._frontend_url}/?cancelled=true",
                customer_email=customer_email,
                metadata={"order_id": str(order_id)},
                shipping_address_collection={
                    "allowed_countries": self._allowed_countries,
                },
                locale=self._locale,
            )
        except stripe.StripeError as exc:
            log.error(
                "payments.session_create_failed",
                error=str(exc),
                error_type=type(exc).__name__,
            )
            raise GatewayError(str(exc) or "Payment provider error.") from exc

        log.info("payments.session_created", session_id=session.id)
        return CheckoutSessionDTO(session_id=session.id, redirect_url=session.url)

    def retrieve_session(self, session_id: str) -> SessionStatusDTO:
        log = logger.bind(session_id=session_id)
        if not self.is_configured:
            raise PaymentsNotConfigured("Payment provider is not configured.")

        try:
            session = stripe.checkout.Session.retrieve(
                session_id, api_key=self._secret_key
            )
        except stripe.StripeError as exc:
            log.error("payments.session_retrieve_failed", error=str(exc))
            raise GatewayError(str(exc) or "Payment provider error.") from exc

        details = getattr(session, "customer_details", None)
        payment_intent = getattr(session, "payment_intent", None)
        if payment_intent is not None and not isinstance(payment_intent, str):
            # expanded PaymentIntent object
            payment_intent = payment_intent.id
        return SessionStatusDTO(
            session_id=session.id,
            payment_status=session.payment_status,
            customer_email=getattr(details, "email", None) if details else None,
            amount_total_minor=getattr(session, "amount_total", None),
            payment_intent=payment_intent,
        )

    def _line_items(self, draft: OrderDraft) -> List[Dict[str, Any]]:
        items = [self._line_item(line) for line in draft.lines]
        if draft.shipping > 0:
            items.append(
                {
                    "price_data": {
                        "currency": self._currency,
                        "product_data": {
                            "name": SHIPPING_LINE_NAME,
                            "description": SHIPPING_LINE_DESCRIPTION,
                        },
                        "unit_amount": draft.shipping * 100,
                    },
                    "quantity": 1,
                }
            )
        return items

    def _line_item(self, line: OrderLineDTO) -> Dict[str, Any]:
        return {
            "price_data": {
                "currency": self._currency,
                "product_data": {
                    "name": line.name,
                    "description": f"{line.weight} - {line.origin or DEFAULT_ORIGIN}",
                },
                "unit_amount": line.price * 100,
            },
            "quantity": line.quantity,
        }

    # ------------------------------------------------------------------
    # Webhooks
    # ------------------------------------------------------------------

    def parse_webhook(self, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        """Verify the raw body, then decode it.

        Without a webhook secret the body is trusted as-is; that mode is
        meant for local development only.

        Raises:
            SignatureVerificationFailed: bad or missing signature, or a body
                that is not a JSON object.
        """
        if self._webhook_secret:
            if not signature:
                logger.warning("payments.webhook_signature_missing")
                raise SignatureVerificationFailed("Missing Stripe-Signature header.")
            try:
                stripe.WebhookSignature.verify_header(
                    payload,
                    signature,
                    self._webhook_secret,
                    tolerance=WEBHOOK_TOLERANCE_SECONDS,
                )
            except stripe.SignatureVerificationError as exc:
                logger.warning("payments.webhook_signature_invalid", error=str(exc))
                raise SignatureVerificationFailed("Invalid signature.") from exc
        else:
            logger.warning("payments.webhook_unverified")

        try:
            event = json.loads(payload)
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            logger.warning("payments.webhook_invalid_payload", error=str(exc))
            raise SignatureVerificationFailed("Invalid payload.") from exc
        if not isinstance(event, dict):
            raise SignatureVerificationFailed("Invalid payload.")
        return event


def get_payment_gateway() -> IPaymentGateway:
    return StripeCheckoutGateway()
