"""Payment provider exceptions.

Raised by the gateway adapter; views translate them into HTTP responses.
"""

from __future__ import annotations


class GatewayError(Exception):
    """The payment provider rejected or failed a request."""


class PaymentsNotConfigured(GatewayError):
    """No provider secret key is configured."""


class SignatureVerificationFailed(Exception):
    """A webhook payload could not be authenticated or decoded."""
