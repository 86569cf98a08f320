"""
Razorpay REST client (orders API) and checkout signature helpers.

Checkout returns razorpay_order_id, razorpay_payment_id and razorpay_signature;
signature = hex(HMAC_SHA256(key_secret, "{order_id}|{payment_id}")).
"""
import base64
import hashlib
import hmac
import json
import logging
from urllib.error import HTTPError, URLError
from urllib.request import Request as UrlRequest
from urllib.request import urlopen

from playoga.core.config import settings

log = logging.getLogger("playoga.razorpay")


class GatewayError(Exception):
    """Razorpay could not be reached or rejected the call."""


def expected_signature(order_id: str, payment_id: str, key_secret: str) -> str:
    message = f"{order_id}|{payment_id}".encode("utf-8")
    return hmac.new(key_secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def verify_signature(order_id: str, payment_id: str, signature: str, key_secret: str) -> bool:
    """Constant-time compare of the checkout signature."""
    if not signature or not key_secret:
        return False
    expected = expected_signature(order_id, payment_id, key_secret)
    return hmac.compare_digest(expected.encode("utf-8"), signature.encode("utf-8"))


class RazorpayClient:
    def __init__(self, key_id: str, key_secret: str, api_url: str | None = None, timeout: int | None = None):
        self.key_id = key_id
        self.key_secret = key_secret
        self.api_url = (api_url or settings.razorpay_api_url).rstrip("/")
        self.timeout = timeout or settings.razorpay_timeout_seconds

    def _auth_header(self) -> str:
        raw = f"{self.key_id}:{self.key_secret}".encode()
        return "Basic " + base64.b64encode(raw).decode()

    def _call(self, method: str, path: str, payload: dict | None = None) -> dict:
        data = json.dumps(payload).encode() if payload is not None else None
        req = UrlRequest(
            f"{self.api_url}{path}",
            data=data,
            method=method,
            headers={"Content-Type": "application/json", "Authorization": self._auth_header()},
        )
        try:
            with urlopen(req, timeout=self.timeout) as resp:
                return json.loads(resp.read().decode())
        except HTTPError as e:
            body = e.read().decode(errors="replace")[:500]
            log.error("Razorpay %s %s failed: status=%s body=%s", method, path, e.code, body)
            raise GatewayError(f"Razorpay returned {e.code}") from e
        except (URLError, TimeoutError, ValueError) as e:
            log.error("Razorpay %s %s failed: %s", method, path, e)
            raise GatewayError("Razorpay connection error") from e

    def create_order(self, amount: int, currency: str, receipt: str, notes: dict) -> dict:
        """amount in minor units (paise). Notes values must be strings (max 256 chars each)."""
        return self._call(
            "POST",
            "/orders",
            {"amount": amount, "currency": currency, "receipt": receipt, "notes": notes},
        )

    def fetch_order(self, order_id: str) -> dict:
        return self._call("GET", f"/orders/{order_id}")
