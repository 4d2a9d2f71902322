"""
One-time codes for phone login.

Codes are six random digits, stored only as a hash, valid for
OTP_TTL_MINUTES and for at most OTP_MAX_ATTEMPTS guesses.
"""
import secrets
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

import httpx
import structlog
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from ..config import settings
from ..db import utcnow, as_utc
from ..models.models import OTPCode
from .encryption import hash_value


logger = structlog.get_logger(__name__)

otp_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

PURPOSES = ("registration", "login", "reset")


class OTPDeliveryError(RuntimeError):
    pass


@dataclass
class OTPResult:
    valid: bool
    error: Optional[str] = None


def generate_otp(db: Session, phone: str, purpose: str = "login") -> str:
    phone_hash = hash_value(phone)
    db.query(OTPCode).filter(OTPCode.phone_hash == phone_hash, OTPCode.purpose == purpose).delete()
    code = f"{secrets.randbelow(900000) + 100000}"
    db.add(OTPCode(
        phone_hash=phone_hash,
        code_hash=otp_context.hash(code),
        purpose=purpose,
        max_attempts=settings.otp_max_attempts,
        expires_at=utcnow() + timedelta(minutes=settings.otp_ttl_minutes),
    ))
    db.commit()
    return code


def check_code(otp: OTPCode, code: str, consume: bool = True) -> OTPResult:
    """
    Apply one verification attempt to a stored code. Caller commits.

    With consume=False a correct code stays usable, so a new user can
    submit it again together with their name. The attempt still counts.
    """
    if otp.is_used:
        return OTPResult(False, "OTP already used")
    if otp.attempts >= otp.max_attempts:
        return OTPResult(False, "Maximum attempts exceeded")
    if utcnow() > as_utc(otp.expires_at):
        return OTPResult(False, "OTP expired")

    otp.attempts += 1

    if not otp_context.verify(code, otp.code_hash):
        return OTPResult(False, "Invalid OTP")

    if consume:
        otp.is_used = True
    return OTPResult(True)


def verify_otp(db: Session, phone: str, code: str, purpose: str = "login", consume: bool = True) -> OTPResult:
    otp = (
        db.query(OTPCode)
        .filter(
            OTPCode.phone_hash == hash_value(phone),
            OTPCode.purpose == purpose,
            OTPCode.is_used.is_(False),
            OTPCode.expires_at > utcnow(),
        )
        .order_by(OTPCode.created_at.desc())
        .first()
    )
    if not otp:
        return OTPResult(False, "OTP not found or expired")
    result = check_code(otp, code, consume)
    db.commit()
    return result


def _deliver_via_webhook(phone: str, code: str) -> None:
    message = f"Your {settings.app_name} OTP is: {code}"
    try:
        with httpx.Client(timeout=10.0) as client:
            response = client.post(settings.sms_webhook_url, json={"phone": phone, "message": message})
            response.raise_for_status()
    except httpx.HTTPError as e:
        logger.warning("otp_delivery_failed", error=str(e))
        raise OTPDeliveryError("Failed to send OTP") from e


def send_otp(db: Session, phone: str, purpose: str = "login") -> Optional[str]:
    """Create and deliver a code. Returns the code in mock mode, else None."""
    code = generate_otp(db, phone, purpose)
    if settings.otp_service == "mock":
        logger.info("otp_sent_mock", phone=phone, otp=code, purpose=purpose)
        return code
    _deliver_via_webhook(phone, code)
    logger.info("otp_sent", purpose=purpose)
    return None
