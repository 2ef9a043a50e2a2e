"""Payment DTOs exchanged between the gateway adapter and the order service."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict


class CheckoutSessionDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    session_id: str
    redirect_url: str


class SessionStatusDTO(BaseModel):
    """Provider view of a checkout session.

    ``amount_total_minor`` is in öre, as reported by the provider.
    """

    model_config = ConfigDict(frozen=True)

    session_id: str
    payment_status: str
    customer_email: Optional[str] = None
    amount_total_minor: Optional[int] = None
    payment_intent: Optional[str] = None

    @property
    def is_paid(self) -> bool:
        return self.payment_status == "paid"

    @property
    def amount_total(self) -> Optional[float]:
        if self.amount_total_minor is None:
            return None
        return self.amount_total_minor / 100
