"""
Razorpay API Client
Creates payment orders and verifies checkout signatures
"""
import hashlib
import hmac
from typing import Optional, Dict, Any

import httpx

from ..config import settings


class RazorpayError(RuntimeError):
    pass


class RazorpayClient:
    """Client for the Razorpay orders API"""

    def __init__(self, key_id: Optional[str] = None, key_secret: Optional[str] = None):
        self.key_id = key_id or settings.razorpay_key_id
        self.key_secret = key_secret or settings.razorpay_key_secret
        self.base_url = settings.razorpay_base_url.rstrip("/")

        if not self.key_id or not self.key_secret:
            raise ValueError("Razorpay key id and secret are required")

    def _request(self, method: str, endpoint: str, **kwargs) -> Any:
        url = f"{self.base_url}/{endpoint.lstrip('/')}"
        try:
            # Razorpay uses the key id/secret pair as HTTP Basic credentials
            with httpx.Client(timeout=30.0, auth=(self.key_id, self.key_secret)) as client:
                response = client.request(method, url, **kwargs)
                response.raise_for_status()
                return response.json()
        except httpx.HTTPError as e:
            raise RazorpayError(str(e)) from e

    def create_order(self, amount: int, currency: str, receipt: str, notes: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        payload = {"amount": amount, "currency": currency, "receipt": receipt, "notes": notes or {}}
        return self._request("POST", "/orders", json=payload)

    def verify_payment_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        body = f"{order_id}|{payment_id}".encode("utf-8")
        expected = hmac.new(self.key_secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
        return hmac.compare_digest(expected, signature)
