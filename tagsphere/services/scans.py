"""
Scan logging and the contact relay between scanners and owners.

Scanners never see the owner's number on a plain scan. Calls and emergency
contact requests hand out a dialable link plus a masked number for display.
"""
from typing import Optional
import uuid

from sqlalchemy.orm import Session
from starlette.requests import Request

from ..config import settings
from ..db import utcnow
from ..models.models import ScanLog, Vehicle
from .encryption import anonymize_ip


def find_active_vehicle(db: Session, qr_id: Optional[str] = None, vehicle_number: Optional[str] = None) -> Optional[Vehicle]:
    query = db.query(Vehicle).filter(Vehicle.is_active.is_(True))
    if qr_id is not None:
        query = query.filter(Vehicle.qr_code_id == qr_id)
    if vehicle_number is not None:
        query = query.filter(Vehicle.vehicle_number == vehicle_number.upper())
    return query.first()


def coarse_location(lat: Optional[float], lng: Optional[float]):
    # Two decimals is roughly a 1 km cell
    if lat is None or lng is None:
        return None, None
    if not (-90 <= lat <= 90 and -180 <= lng <= 180):
        return None, None
    return round(lat, 2), round(lng, 2)


def log_action(
    db: Session,
    vehicle: Vehicle,
    action: str,
    request: Optional[Request] = None,
    lookup_source: str = "qr",
    lat: Optional[float] = None,
    lng: Optional[float] = None,
    alert_message: Optional[str] = None,
) -> ScanLog:
    ip = request.client.host if request is not None and request.client else None
    user_agent = request.headers.get("user-agent") if request is not None else None
    latitude, longitude = coarse_location(lat, lng)
    entry = ScanLog(
        qr_code_id=vehicle.qr_code_id,
        vehicle_id=vehicle.id,
        action=action,
        lookup_source=lookup_source,
        scanner_ip_hash=anonymize_ip(ip),
        user_agent=user_agent[:255] if user_agent else None,
        latitude=latitude,
        longitude=longitude,
        alert_message=alert_message,
    )
    db.add(entry)
    db.commit()
    return entry


def record_scan(db: Session, vehicle_id: uuid.UUID) -> None:
    """Single UPDATE so concurrent scans never lose an increment."""
    db.query(Vehicle).filter(Vehicle.id == vehicle_id).update(
        {Vehicle.total_scans: Vehicle.total_scans + 1, Vehicle.last_scanned_at: utcnow()},
        synchronize_session=False,
    )
    db.commit()


def dial_link(phone: str) -> dict:
    if settings.call_bridge_number:
        return {"phone": f"tel:{settings.call_bridge_number}", "call_method": "bridge"}
    return {"phone": f"tel:+91{phone}", "call_method": "direct"}
