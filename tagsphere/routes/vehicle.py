import secrets
import uuid
from typing import List

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..auth.security import get_current_user
from ..db import get_db, utcnow
from ..limits import limiter, REGISTER_LIMIT, WRITE_LIMIT
from ..models.models import QRCode, ScanLog, User, Vehicle
from ..schemas.vehicle import (
    VehicleRegister,
    VehicleUpdate,
    VehicleResponse,
    VehicleListResponse,
    ScanLogResponse,
)
from ..services.qr_ids import sticker_url
from ..services.qr_print import qr_png


logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/vehicle", tags=["vehicle"])


def _owned_vehicle(db: Session, vehicle_id: uuid.UUID, user: User, active_only: bool = True) -> Vehicle:
    query = db.query(Vehicle).filter(Vehicle.id == vehicle_id, Vehicle.user_id == user.id)
    if active_only:
        query = query.filter(Vehicle.is_active.is_(True))
    vehicle = query.first()
    if not vehicle:
        raise HTTPException(status_code=404, detail="Vehicle not found")
    return vehicle


def _number_in_use(db: Session, vehicle_number: str) -> bool:
    return (
        db.query(Vehicle.id)
        .filter(Vehicle.vehicle_number == vehicle_number, Vehicle.is_active.is_(True))
        .first()
    ) is not None


@router.post("/register", status_code=status.HTTP_201_CREATED)
@limiter.limit(REGISTER_LIMIT)
def register_vehicle(request: Request, req: VehicleRegister, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    qr = db.query(QRCode).filter(QRCode.qr_id == req.qr_id).first()
    if not qr or qr.status != "available":
        raise HTTPException(status_code=400, detail="QR code not found or already activated")
    if not secrets.compare_digest(qr.activation_pin, req.activation_pin):
        logger.info("qr_activation_rejected", qr_id=req.qr_id, reason="pin")
        raise HTTPException(status_code=400, detail="Invalid activation PIN")

    if _number_in_use(db, req.vehicle_number):
        raise HTTPException(status_code=400, detail="Vehicle number already registered")

    now = utcnow()
    # Only one request can flip a code out of "available"
    claimed = (
        db.query(QRCode)
        .filter(QRCode.qr_id == req.qr_id, QRCode.status == "available")
        .update(
            {QRCode.status: "activated", QRCode.activated_at: now, QRCode.activated_by: user.id},
            synchronize_session=False,
        )
    )
    if claimed != 1:
        db.rollback()
        raise HTTPException(status_code=409, detail="QR code already activated or disabled")

    vehicle = Vehicle(
        vehicle_number=req.vehicle_number,
        qr_code_id=req.qr_id,
        user_id=user.id,
        vehicle_type=req.vehicle_type.value,
        vehicle_color=req.vehicle_color,
        activated_at=now,
    )
    db.add(vehicle)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="QR code already activated or disabled")
    db.refresh(vehicle)
    logger.info("vehicle_registered", vehicle_id=str(vehicle.id), qr_id=vehicle.qr_code_id)
    return {
        "success": True,
        "message": "Vehicle registered successfully",
        "vehicle": VehicleResponse.model_validate(vehicle).model_dump(mode="json"),
    }


@router.get("/my-vehicles", response_model=VehicleListResponse)
def my_vehicles(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    vehicles = (
        db.query(Vehicle)
        .filter(Vehicle.user_id == user.id, Vehicle.is_active.is_(True))
        .order_by(Vehicle.created_at.desc())
        .all()
    )
    return {"vehicles": vehicles}


@router.get("/{vehicle_id}", response_model=VehicleResponse)
def get_vehicle(vehicle_id: uuid.UUID, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return _owned_vehicle(db, vehicle_id, user, active_only=False)


@router.put("/{vehicle_id}", response_model=VehicleResponse)
@limiter.limit(WRITE_LIMIT)
def update_vehicle(request: Request, vehicle_id: uuid.UUID, req: VehicleUpdate, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    vehicle = _owned_vehicle(db, vehicle_id, user)
    if req.vehicle_type is not None:
        vehicle.vehicle_type = req.vehicle_type.value
    if req.vehicle_color is not None:
        vehicle.vehicle_color = req.vehicle_color or None
    db.commit()
    db.refresh(vehicle)
    return vehicle


@router.delete("/{vehicle_id}")
@limiter.limit(WRITE_LIMIT)
def delete_vehicle(request: Request, vehicle_id: uuid.UUID, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    vehicle = _owned_vehicle(db, vehicle_id, user)
    vehicle.is_active = False
    vehicle.deactivated_at = utcnow()
    db.query(QRCode).filter(QRCode.qr_id == vehicle.qr_code_id).update(
        {QRCode.status: "disabled"}, synchronize_session=False
    )
    db.commit()
    logger.info("vehicle_deactivated", vehicle_id=str(vehicle.id), qr_id=vehicle.qr_code_id)
    return {"success": True, "message": "Vehicle deactivated successfully"}


@router.get("/{vehicle_id}/scans", response_model=List[ScanLogResponse])
def vehicle_scans(
    vehicle_id: uuid.UUID,
    limit: int = Query(50, ge=1, le=100),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    vehicle = _owned_vehicle(db, vehicle_id, user, active_only=False)
    return (
        db.query(ScanLog)
        .filter(ScanLog.vehicle_id == vehicle.id)
        .order_by(ScanLog.created_at.desc())
        .limit(limit)
        .all()
    )


@router.get("/{vehicle_id}/qr.png")
def vehicle_qr_image(vehicle_id: uuid.UUID, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    vehicle = _owned_vehicle(db, vehicle_id, user)
    return Response(content=qr_png(sticker_url(vehicle.qr_code_id)), media_type="image/png")
