"""
Razorpay Orders client.

Only the two calls the booking core needs: create an order for an appointment
and fetch an order back to check whether it has been paid. Amounts are sent in
the smallest currency unit (paise for INR), as Razorpay expects.
"""
import logging

import httpx

from slotbook.core import config
from slotbook.services.errors import UpstreamFailure

logger = logging.getLogger(__name__)

PAID_STATUS = 'paid'


class PaymentAuthority:
    """Thin synchronous wrapper around the Razorpay Orders REST API."""

    def __init__(
        self,
        key_id: str,
        key_secret: str,
        api_url: str = config.RAZORPAY_API_URL,
        timeout: float = config.PAYMENT_TIMEOUT_SECONDS,
        transport: httpx.BaseTransport | None = None,
    ):
        self._client = httpx.Client(
            base_url=api_url,
            auth=(key_id, key_secret),
            timeout=timeout,
            transport=transport,
        )

    def create_order(self, amount: int, currency: str, reconciliation_key: str) -> dict:
        """
        Create an order for ``amount`` minor units.

        The reconciliation key is sent as the receipt and in the notes so the
        order can be traced back to its appointment.
        """
        payload = {
            'amount': amount,
            'currency': currency,
            'receipt': reconciliation_key,
            'notes': {'appointment_id': reconciliation_key},
        }
        try:
            response = self._client.post('/orders', json=payload)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.error(f"Failed to create payment order for {reconciliation_key}: {exc}")
            raise UpstreamFailure('Payment provider is unavailable. Try again later.') from exc

        return response.json()

    def fetch_order(self, reference: str) -> dict | None:
        """Return the order, or None when Razorpay does not know the reference."""
        try:
            response = self._client.get(f'/orders/{reference}')
        except httpx.HTTPError as exc:
            logger.error(f"Failed to fetch payment order {reference}: {exc}")
            raise UpstreamFailure('Payment provider is unavailable. Try again later.') from exc

        if response.status_code in (400, 404):
            logger.warning(f"Payment order {reference} not found: {response.text}")
            return None

        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.error(f"Payment order lookup for {reference} failed: {response.text}")
            raise UpstreamFailure('Payment provider is unavailable. Try again later.') from exc

        return response.json()

    def close(self) -> None:
        self._client.close()


def reconciliation_key(order: dict) -> str | None:
    notes = order.get('notes')
    if isinstance(notes, dict) and notes.get('appointment_id'):
        return notes['appointment_id']
    return order.get('receipt')


def get_payment_authority():
    authority = PaymentAuthority(config.RAZORPAY_KEY_ID, config.RAZORPAY_KEY_SECRET)
    try:
        yield authority
    finally:
        authority.close()
