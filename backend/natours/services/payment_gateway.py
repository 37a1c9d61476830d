"""
Natours Backend — Payment Gateway
==================================

What:  Creates checkout sessions for a tour and verifies the signed webhook
       the payment provider sends once a session completes.
How:   `PaymentAdapter` is the interface route handlers depend on;
       `SignedPaymentGateway` is the HMAC implementation wired into the app.

Webhook signature:
    X-Payment-Signature: base64(HMAC-SHA256(secret, raw_body))

The signature covers the exact bytes the provider sent, which is why the
webhook route receives the raw body rather than parsed JSON.
"""

import base64
import hashlib
import hmac
import json
import logging
import uuid
from abc import ABC, abstractmethod
from typing import Any, Dict, Mapping, TypedDict

from natours.config import Settings
from natours.exceptions import WebhookSignatureError

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "x-payment-signature"
CHECKOUT_COMPLETED = "checkout.session.completed"


class CheckoutSession(TypedDict):
    id: str
    url: str
    client_reference_id: str
    customer_email: str
    amount_total: int
    currency: str
    success_url: str
    cancel_url: str
    line_items: list


class PaymentAdapter(ABC):
    @abstractmethod
    def create_session(
        self,
        *,
        tour: Any,
        customer_email: str,
        success_url: str,
        cancel_url: str,
    ) -> CheckoutSession: ...

    @abstractmethod
    def verify_webhook(self, payload: bytes, headers: Mapping[str, str]) -> Dict[str, Any]: ...


class SignedPaymentGateway(PaymentAdapter):
    def __init__(self, secret: str, currency: str = "usd", checkout_url: str = ""):
        self.secret = secret
        self.currency = currency
        self.checkout_url = checkout_url.rstrip("/")

    @classmethod
    def from_settings(cls, settings: Settings) -> "SignedPaymentGateway":
        return cls(
            secret=settings.payment_webhook_secret,
            currency=settings.payment_currency,
            checkout_url=settings.payment_checkout_url,
        )

    def create_session(
        self,
        *,
        tour: Any,
        customer_email: str,
        success_url: str,
        cancel_url: str,
    ) -> CheckoutSession:
        session_id = f"cs_{uuid.uuid4().hex}"
        # Amounts travel in minor units (cents)
        amount = int(round(tour.price * 100))
        logger.info("Checkout session %s created for tour %s", session_id, tour.id)
        return {
            "id": session_id,
            "url": f"{self.checkout_url}/{session_id}",
            "client_reference_id": str(tour.id),
            "customer_email": customer_email,
            "amount_total": amount,
            "currency": self.currency,
            "success_url": success_url,
            "cancel_url": cancel_url,
            "line_items": [
                {
                    "name": f"{tour.name} Tour",
                    "description": tour.summary,
                    "amount": amount,
                    "quantity": 1,
                }
            ],
        }

    def sign(self, payload: bytes) -> str:
        mac = hmac.new(self.secret.encode(), payload, hashlib.sha256).digest()
        return base64.b64encode(mac).decode()

    def verify_webhook(self, payload: bytes, headers: Mapping[str, str]) -> Dict[str, Any]:
        signature = headers.get(SIGNATURE_HEADER)
        if not signature:
            raise WebhookSignatureError("missing signature")
        if not hmac.compare_digest(self.sign(payload).encode(), signature.encode()):
            raise WebhookSignatureError("invalid signature")
        try:
            event = json.loads(payload.decode())
        except (UnicodeDecodeError, json.JSONDecodeError):
            raise WebhookSignatureError("invalid JSON payload")
        if not isinstance(event, dict):
            raise WebhookSignatureError("invalid event")
        return event
