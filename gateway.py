"""Razorpay client: order creation over the REST API and signature checks."""
import hashlib
import hmac
import logging

import requests
from fastapi import Request

from errors import UpstreamUnavailable

logger = logging.getLogger(__name__)


def to_paise(amount: float) -> int:
    return int(round(amount * 100))


class RazorpayGateway:
    def __init__(self, key_id, key_secret, api_url="https://api.razorpay.com/v1", session=None, timeout=10):
        self.key_id = key_id
        self.key_secret = key_secret
        self.api_url = api_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout

    def create_order(self, amount: float, currency: str, receipt: str) -> dict:
        payload = {"amount": to_paise(amount), "currency": currency, "receipt": receipt}
        try:
            resp = self.session.post(
                f"{self.api_url}/orders",
                auth=(self.key_id or "", self.key_secret or ""),
                json=payload,
                timeout=self.timeout,
            )
            resp.raise_for_status()
            return resp.json()
        except requests.RequestException as exc:
            logger.error("Order creation error: %s", exc)
            raise UpstreamUnavailable("Order creation failed", status_code=502)

    def signature_for(self, order_id: str, payment_id: str) -> str:
        return hmac.new(
            (self.key_secret or "").encode(),
            f"{order_id}|{payment_id}".encode(),
            hashlib.sha256,
        ).hexdigest()

    def verify_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        if not self.key_secret:
            logger.error("RAZORPAY_KEY_SECRET missing, refusing to verify payment")
            return False
        expected = self.signature_for(order_id, payment_id)
        return hmac.compare_digest(expected.encode(), (signature or "").encode())

    def close(self):
        self.session.close()


def get_gateway(request: Request):
    return request.app.state.gateway
