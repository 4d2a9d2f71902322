import math
from datetime import timedelta
from typing import Optional, Literal

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Path, Response
from sqlalchemy.orm import Session

from ..auth.security import require_admin
from ..db import get_db, utcnow
from ..models.models import QRCode, ScanLog, User, Vehicle
from ..schemas.admin import QRGenerateRequest, QRCodeResponse
from ..services.qr_ids import QR_ID_PATTERN, create_qr_batch, sticker_url
from ..services.qr_print import batch_to_csv, batch_to_pdf


logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"], dependencies=[Depends(require_admin)])


def _pagination(page: int, limit: int, total: int) -> dict:
    return {"page": page, "limit": limit, "total": total, "pages": math.ceil(total / limit)}


@router.get("/stats")
def stats(db: Session = Depends(get_db)):
    qr_counts = {
        name: db.query(QRCode).filter(QRCode.status == name).count()
        for name in ("available", "activated", "disabled")
    }
    since = utcnow() - timedelta(days=7)
    return {
        "users": {"total": db.query(User).count()},
        "vehicles": {
            "total": db.query(Vehicle).count(),
            "active": db.query(Vehicle).filter(Vehicle.is_active.is_(True)).count(),
        },
        "qr_codes": {**qr_counts, "total": sum(qr_counts.values())},
        "scans": {
            "total": db.query(ScanLog).count(),
            "last_7_days": db.query(ScanLog).filter(ScanLog.created_at >= since).count(),
        },
    }


@router.post("/qr-codes/generate", status_code=201)
def generate_qr_codes(req: QRGenerateRequest, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    codes = create_qr_batch(db, req.count, (req.batch_id or "").strip() or None)
    logger.info("admin_qr_generated", admin_id=str(admin.id), count=len(codes))
    return {
        "success": True,
        "generated": len(codes),
        "batch_id": codes[0].batch_id if codes else None,
        "qr_codes": [
            {"qr_id": qr.qr_id, "activation_pin": qr.activation_pin, "url": sticker_url(qr.qr_id)}
            for qr in codes
        ],
    }


@router.get("/qr-codes")
def list_qr_codes(
    status: Optional[Literal["available", "activated", "disabled"]] = None,
    batch_id: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    db: Session = Depends(get_db),
):
    query = db.query(QRCode)
    if status:
        query = query.filter(QRCode.status == status)
    if batch_id:
        query = query.filter(QRCode.batch_id == batch_id.strip())
    total = query.count()
    rows = query.order_by(QRCode.created_at.desc()).offset((page - 1) * limit).limit(limit).all()
    return {
        "qr_codes": [QRCodeResponse.model_validate(r).model_dump(mode="json") for r in rows],
        "pagination": _pagination(page, limit, total),
    }


@router.get("/qr-codes/export")
def export_qr_codes(
    batch_id: Optional[str] = None,
    format: Literal["csv", "pdf"] = "csv",
    db: Session = Depends(get_db),
):
    query = db.query(QRCode)
    if batch_id:
        query = query.filter(QRCode.batch_id == batch_id.strip())
    codes = query.order_by(QRCode.created_at.asc(), QRCode.qr_id.asc()).all()
    name = f"qr-codes-{batch_id or 'all'}"
    if format == "pdf":
        return Response(
            content=batch_to_pdf(codes),
            media_type="application/pdf",
            headers={"Content-Disposition": f'attachment; filename="{name}.pdf"'},
        )
    return Response(
        content=batch_to_csv(codes),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{name}.csv"'},
    )


@router.post("/qr-codes/{qr_id}/disable")
def disable_qr_code(qr_id: str = Path(..., pattern=QR_ID_PATTERN), db: Session = Depends(get_db)):
    qr = db.query(QRCode).filter(QRCode.qr_id == qr_id).first()
    if not qr:
        raise HTTPException(status_code=404, detail="QR code not found")
    qr.status = "disabled"
    now = utcnow()
    vehicle = db.query(Vehicle).filter(Vehicle.qr_code_id == qr_id, Vehicle.is_active.is_(True)).first()
    if vehicle:
        vehicle.is_active = False
        vehicle.deactivated_at = now
    db.commit()
    logger.info("qr_code_disabled", qr_id=qr_id, vehicle_deactivated=vehicle is not None)
    return {"success": True, "qr_id": qr_id, "status": qr.status}


@router.get("/users")
def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    db: Session = Depends(get_db),
):
    query = db.query(User)
    total = query.count()
    users = query.order_by(User.created_at.desc()).offset((page - 1) * limit).limit(limit).all()
    return {
        "users": [
            {
                "id": str(u.id),
                "name": u.name,
                "is_verified": u.is_verified,
                "is_active": u.is_active,
                "role": u.role,
                "created_at": u.created_at,
            }
            for u in users
        ],
        "pagination": _pagination(page, limit, total),
    }


@router.get("/vehicles")
def list_vehicles(
    active: Optional[bool] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    db: Session = Depends(get_db),
):
    query = db.query(Vehicle)
    if active is not None:
        query = query.filter(Vehicle.is_active.is_(active))
    total = query.count()
    vehicles = query.order_by(Vehicle.created_at.desc()).offset((page - 1) * limit).limit(limit).all()
    return {
        "vehicles": [
            {
                "id": str(v.id),
                "vehicle_number": v.vehicle_number,
                "qr_code_id": v.qr_code_id,
                "vehicle_type": v.vehicle_type,
                "owner_name": v.user.name if v.user else None,
                "is_active": v.is_active,
                "total_scans": v.total_scans,
                "created_at": v.created_at,
            }
            for v in vehicles
        ],
        "pagination": _pagination(page, limit, total),
    }


@router.get("/scan-logs")
def list_scan_logs(
    qr_code_id: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    db: Session = Depends(get_db),
):
    query = db.query(ScanLog)
    if qr_code_id:
        query = query.filter(ScanLog.qr_code_id == qr_code_id.strip().upper())
    total = query.count()
    logs = query.order_by(ScanLog.created_at.desc()).offset((page - 1) * limit).limit(limit).all()
    return {
        "scan_logs": [
            {
                "id": str(s.id),
                "qr_code_id": s.qr_code_id,
                "vehicle_number": s.vehicle.vehicle_number if s.vehicle else None,
                "action": s.action,
                "lookup_source": s.lookup_source,
                "user_agent": s.user_agent,
                "latitude": s.latitude,
                "longitude": s.longitude,
                "alert_message": s.alert_message,
                "created_at": s.created_at,
            }
            for s in logs
        ],
        "pagination": _pagination(page, limit, total),
    }
