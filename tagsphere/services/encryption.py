"""
Phone number protection.

Phones are stored twice: AES-256-GCM ciphertext for the rare cases the
number has to be shown, and a SHA-256 hash used for lookups and the
uniqueness constraint.
"""
import base64
import hashlib
import hmac
import os
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from ..config import settings


NONCE_SIZE = 12


class DecryptionError(ValueError):
    pass


def _key() -> bytes:
    return hashlib.sha256(settings.encryption_key.encode("utf-8")).digest()


def encrypt(text: Optional[str]) -> Optional[str]:
    if not text:
        return text
    nonce = os.urandom(NONCE_SIZE)
    ct = AESGCM(_key()).encrypt(nonce, text.encode("utf-8"), None)
    return base64.urlsafe_b64encode(nonce + ct).decode("ascii")


def decrypt(token: Optional[str]) -> Optional[str]:
    if not token:
        return token
    try:
        raw = base64.urlsafe_b64decode(token.encode("ascii"))
        nonce, ct = raw[:NONCE_SIZE], raw[NONCE_SIZE:]
        return AESGCM(_key()).decrypt(nonce, ct, None).decode("utf-8")
    except (InvalidTag, ValueError) as e:
        raise DecryptionError("Could not decrypt value") from e


def hash_value(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def anonymize_ip(ip: Optional[str]) -> Optional[str]:
    """Keyed hash so scanner IPs can be correlated but not recovered."""
    if not ip:
        return None
    return hmac.new(_key(), ip.encode("utf-8"), hashlib.sha256).hexdigest()


def mask_phone(phone: str) -> str:
    return f"{phone[:2]}****{phone[-2:]}"


def format_masked(phone: str) -> str:
    return f"+91 {mask_phone(phone)}"
