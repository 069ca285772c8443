# src/infrastructure/payments/razorpay_gateway.py

import logging
from typing import Protocol

from src.config import settings

logger = logging.getLogger(__name__)


class PaymentGateway(Protocol):
    def create_order(self, amount: int, currency: str, receipt: str) -> str | None:
        """Open a gateway order for `amount` minor units and return its id."""
        ...


class RazorpayGateway:

    def __init__(self, key_id: str, key_secret: str):
        # Importing razorpay requires pkg_resources.
        import razorpay

        self.key_id = key_id
        self.client = razorpay.Client(auth=(key_id, key_secret))

    def create_order(self, amount: int, currency: str, receipt: str) -> str | None:
        order = self.client.order.create(
            {
                "amount": amount,
                "currency": currency,
                "receipt": receipt,
            }
        )
        order_id = order.get("id")
        logger.info("Gateway order %s created for receipt %s", order_id, receipt)
        return order_id


def get_payment_gateway() -> PaymentGateway | None:
    if not settings.RAZORPAY_KEY_ID or not settings.RAZORPAY_KEY_SECRET:
        return None
    return RazorpayGateway(settings.RAZORPAY_KEY_ID, settings.RAZORPAY_KEY_SECRET)
