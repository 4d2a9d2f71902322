"""
Public endpoints hit by whoever scans a sticker.

The owner's phone number is never part of a scan response. It is only
handed out as a dial link by the call endpoint, and only for premium owners.
"""
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Path, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ..config import settings
from ..db import get_db
from ..limits import limiter, SCAN_LIMIT, CALL_LIMIT, ALERT_LIMIT
from ..models.models import Vehicle
from ..schemas.common import VEHICLE_NUMBER_RE
from ..schemas.scan import AlertRequest, AlertType, ScanResponse, CallResponse, EmergencyContactResponse
from ..services.encryption import format_masked
from ..services.notifications import notify_owner
from ..services.qr_ids import QR_ID_PATTERN
from ..services.scans import find_active_vehicle, log_action, record_scan, dial_link
from ..services.subscriptions import get_subscription, has_call_access, has_notification_access


logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/scan", tags=["scan"])

ALERT_MESSAGES = {
    AlertType.parked_wrong: "Someone reported your vehicle is parked incorrectly",
    AlertType.lights_on: "Someone noticed your vehicle lights are on",
    AlertType.emergency: "Emergency alert for your vehicle",
}
DEFAULT_ALERT_MESSAGE = "Someone wants to contact you about your vehicle"


def _get_vehicle_or_404(db: Session, qr_id: str, detail: str = "Vehicle not found") -> Vehicle:
    vehicle = find_active_vehicle(db, qr_id=qr_id)
    if not vehicle:
        raise HTTPException(status_code=404, detail=detail)
    return vehicle


def _scan_view(db: Session, vehicle: Vehicle, request: Request, source: str, lat: Optional[float], lng: Optional[float]) -> dict:
    owner = vehicle.user
    log_action(db, vehicle, "view", request, lookup_source=source, lat=lat, lng=lng)
    record_scan(db, vehicle.id)

    sub = get_subscription(db, owner.id)
    if has_notification_access(sub):
        if source == "number":
            title, message = "Vehicle Number Lookup", f"Someone looked up your vehicle {vehicle.vehicle_number}"
        else:
            title, message = "QR Code Scanned", f"Someone scanned your vehicle {vehicle.vehicle_number}"
        notify_owner(db, owner, vehicle, "scan", title, message)

    logger.info("vehicle_scanned", qr_id=vehicle.qr_code_id, source=source)
    return {
        "vehicle_number": vehicle.vehicle_number,
        "vehicle_type": vehicle.vehicle_type,
        "vehicle_color": vehicle.vehicle_color,
        "owner_name": owner.name or "Vehicle Owner",
        "qr_code_id": vehicle.qr_code_id,
        "can_call": settings.enable_calls and has_call_access(sub),
        "calls_enabled": settings.enable_calls,
        "can_alert": True,
        "has_emergency_contact": owner.has_emergency_contact,
    }


@router.get("/vehicle/{vehicle_number}", response_model=ScanResponse)
@limiter.limit(SCAN_LIMIT)
def lookup_by_number(
    request: Request,
    vehicle_number: str,
    lat: Optional[float] = Query(None),
    lng: Optional[float] = Query(None),
    db: Session = Depends(get_db),
):
    number = vehicle_number.strip().upper()
    if not VEHICLE_NUMBER_RE.match(number):
        raise HTTPException(status_code=400, detail="Invalid vehicle number format")
    vehicle = find_active_vehicle(db, vehicle_number=number)
    if not vehicle:
        raise HTTPException(status_code=404, detail="Vehicle not found or not registered")
    return _scan_view(db, vehicle, request, "number", lat, lng)


@router.get("/{qr_id}", response_model=ScanResponse)
@limiter.limit(SCAN_LIMIT)
def scan_qr(
    request: Request,
    qr_id: str = Path(..., pattern=QR_ID_PATTERN),
    lat: Optional[float] = Query(None),
    lng: Optional[float] = Query(None),
    db: Session = Depends(get_db),
):
    vehicle = _get_vehicle_or_404(db, qr_id, "Vehicle not found or QR code not activated")
    return _scan_view(db, vehicle, request, "qr", lat, lng)


@router.post("/{qr_id}/call", response_model=CallResponse)
@limiter.limit(CALL_LIMIT)
def call_owner(request: Request, qr_id: str = Path(..., pattern=QR_ID_PATTERN), db: Session = Depends(get_db)):
    if not settings.enable_calls:
        return JSONResponse(status_code=503, content={"detail": "Direct calls are not enabled yet", "calls_enabled": False})

    vehicle = _get_vehicle_or_404(db, qr_id)
    owner = vehicle.user
    if not has_call_access(get_subscription(db, owner.id)):
        return JSONResponse(status_code=403, content={"detail": "Call not available for this vehicle", "can_alert": True})

    log_action(db, vehicle, "call", request)
    notify_owner(
        db,
        owner,
        vehicle,
        "call",
        "Call Initiated",
        f"Someone is calling you about vehicle {vehicle.vehicle_number}",
        push_title="Incoming Call",
    )
    phone = owner.get_phone()
    return {"success": True, "masked_phone": format_masked(phone), **dial_link(phone)}


@router.post("/{qr_id}/alert")
@limiter.limit(ALERT_LIMIT)
def send_alert(request: Request, req: AlertRequest, qr_id: str = Path(..., pattern=QR_ID_PATTERN), db: Session = Depends(get_db)):
    vehicle = _get_vehicle_or_404(db, qr_id)
    content = ALERT_MESSAGES.get(req.alert_type) or (req.message or "").strip() or DEFAULT_ALERT_MESSAGE

    log_action(db, vehicle, "alert", request, alert_message=content)
    # Alerts reach owners on every plan
    notify_owner(db, vehicle.user, vehicle, "alert", "Vehicle Alert", content)
    logger.info("vehicle_alert_sent", qr_id=qr_id, alert_type=req.alert_type.value)
    return {"success": True, "message": "Alert sent to vehicle owner"}


@router.post("/{qr_id}/emergency-contact", response_model=EmergencyContactResponse)
@limiter.limit(ALERT_LIMIT)
def emergency_contact(request: Request, qr_id: str = Path(..., pattern=QR_ID_PATTERN), db: Session = Depends(get_db)):
    vehicle = _get_vehicle_or_404(db, qr_id)
    owner = vehicle.user
    if not owner.has_emergency_contact:
        raise HTTPException(status_code=404, detail="No emergency contact set for this vehicle")

    log_action(db, vehicle, "emergency_contact_request", request)
    notify_owner(
        db,
        owner,
        vehicle,
        "alert",
        "Emergency Contact Requested",
        f"Someone requested emergency contact info for vehicle {vehicle.vehicle_number}",
        push_type="emergency",
    )
    phone = owner.get_emergency_phone()
    return {
        "success": True,
        "emergency_contact": {
            "name": owner.emergency_contact_name,
            "masked_phone": format_masked(phone),
            "phone": f"tel:+91{phone}",
        },
    }
