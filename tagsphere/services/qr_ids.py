import secrets
import time
from typing import List, Optional, Dict

import structlog
from sqlalchemy.orm import Session

from ..config import settings
from ..models.models import QRCode


logger = structlog.get_logger(__name__)

# No 0, O, I or l: stickers get read aloud and typed by hand
ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZ"
QR_ID_LENGTH = 7
PIN_LENGTH = 6
QR_ID_PATTERN = r"^[1-9A-HJ-NP-Z]{7}$"


def generate_qr_id() -> str:
    return "".join(secrets.choice(ALPHABET) for _ in range(QR_ID_LENGTH))


def generate_pin() -> str:
    return "".join(secrets.choice("0123456789") for _ in range(PIN_LENGTH))


def generate_batch(count: int = 100) -> List[Dict[str, str]]:
    batch = []
    seen = set()
    while len(batch) < count:
        qr_id = generate_qr_id()
        if qr_id in seen:
            continue
        seen.add(qr_id)
        batch.append({"qr_id": qr_id, "activation_pin": generate_pin()})
    return batch


def sticker_url(qr_id: str) -> str:
    return f"{settings.public_base_url.rstrip('/')}/v/{qr_id}"


def create_qr_batch(db: Session, count: int, batch_id: Optional[str] = None) -> List[QRCode]:
    """Insert a batch of fresh codes, skipping ids already in the database."""
    batch = generate_batch(count)
    batch_id = batch_id or f"BATCH-{int(time.time() * 1000)}"

    existing = {
        row.qr_id
        for row in db.query(QRCode.qr_id).filter(QRCode.qr_id.in_([b["qr_id"] for b in batch])).all()
    }
    fresh = [b for b in batch if b["qr_id"] not in existing]
    if len(fresh) < count:
        logger.warning("qr_batch_duplicates_skipped", skipped=count - len(fresh), batch_id=batch_id)

    codes = [QRCode(qr_id=b["qr_id"], activation_pin=b["activation_pin"], batch_id=batch_id) for b in fresh]
    db.add_all(codes)
    db.commit()
    logger.info("qr_batch_created", batch_id=batch_id, count=len(codes))
    return codes
