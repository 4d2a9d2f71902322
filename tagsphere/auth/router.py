import uuid
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request, status
from firebase_admin import auth as firebase_auth
from sqlalchemy.orm import Session

from ..config import settings
from ..db import get_db, utcnow
from ..limits import limiter, AUTH_VERIFY_LIMIT, WRITE_LIMIT
from ..models.models import User
from ..schemas.auth import (
    SendOTPRequest,
    VerifyOTPRequest,
    FirebaseVerifyRequest,
    RefreshRequest,
    AuthResponse,
    MeResponse,
    ProfileUpdate,
    EmergencyContactInput,
    PushTokenInput,
    PushTokenRemove,
)
from ..services import firebase
from ..services.encryption import hash_value, mask_phone
from ..services.otp import send_otp as deliver_otp, verify_otp as check_otp, OTPDeliveryError
from ..services.push import register_token, remove_token
from .security import decode_token, get_current_user, issue_tokens


logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])

NEW_USER_MESSAGE = "New user. Please provide your name to complete registration."


def _user_out(user: User) -> dict:
    return {
        "id": str(user.id),
        "name": user.name,
        "phone": user.get_phone(),
        "is_verified": user.is_verified,
    }


def _login_response(user: User, is_new_user: bool) -> dict:
    return {
        "success": True,
        "is_new_user": is_new_user,
        **issue_tokens(user),
        "user": _user_out(user),
    }


def _create_user(db: Session, phone: str, name: str, firebase_uid: Optional[str] = None) -> User:
    user = User(name=name, is_verified=True, firebase_uid=firebase_uid, last_login_at=utcnow())
    user.set_phone(phone)
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("user_registered", user_id=str(user.id), via="firebase" if firebase_uid else "otp")
    return user


@router.get("/config")
def auth_config():
    return {"auth_mode": "firebase" if settings.enable_firebase else "otp"}


@router.post("/send-otp")
@limiter.limit(AUTH_VERIFY_LIMIT)
def send_otp(request: Request, req: SendOTPRequest, db: Session = Depends(get_db)):
    if settings.enable_firebase:
        raise HTTPException(status_code=503, detail="OTP login is disabled. Use Firebase phone auth.")
    try:
        code = deliver_otp(db, req.phone, req.purpose)
    except OTPDeliveryError:
        raise HTTPException(status_code=502, detail="Failed to send OTP. Please try again.")
    is_new_user = db.query(User).filter(User.phone_hash == hash_value(req.phone)).first() is None
    body = {"success": True, "message": "OTP sent successfully", "is_new_user": is_new_user}
    if code and not settings.is_production:
        body["dev_otp"] = code
    return body


@router.post("/verify-otp", response_model=AuthResponse, response_model_exclude_none=True)
@limiter.limit(AUTH_VERIFY_LIMIT)
def verify_otp(request: Request, req: VerifyOTPRequest, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.phone_hash == hash_value(req.phone)).first()
    # A new user without a name keeps the code for the follow-up call that carries it
    result = check_otp(db, req.phone, req.otp, req.purpose, consume=user is not None or bool(req.name))
    if not result.valid:
        raise HTTPException(status_code=400, detail=result.error)

    if user is None:
        if not req.name:
            return {"success": True, "is_new_user": True, "message": NEW_USER_MESSAGE}
        user = _create_user(db, req.phone, req.name)
        return _login_response(user, is_new_user=True)

    if not user.is_active:
        raise HTTPException(status_code=403, detail="Account is disabled")
    user.is_verified = True
    user.last_login_at = utcnow()
    db.commit()
    logger.info("user_login", user_id=str(user.id), via="otp")
    return _login_response(user, is_new_user=False)


@router.post("/firebase-verify", response_model=AuthResponse, response_model_exclude_none=True)
@limiter.limit(AUTH_VERIFY_LIMIT)
def firebase_verify(request: Request, req: FirebaseVerifyRequest, db: Session = Depends(get_db)):
    if not settings.enable_firebase:
        raise HTTPException(status_code=503, detail="Firebase auth is not enabled")
    try:
        claims = firebase.verify_id_token(req.id_token)
    except firebase_auth.ExpiredIdTokenError:
        raise HTTPException(status_code=401, detail="Firebase token expired. Please try again.")
    except (firebase_auth.RevokedIdTokenError, firebase_auth.InvalidIdTokenError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid Firebase token.")

    phone_number = claims.get("phone_number")
    if not phone_number:
        raise HTTPException(status_code=400, detail="Phone number not found in Firebase token")
    phone = phone_number[3:] if phone_number.startswith("+91") else phone_number
    uid = claims.get("uid") or claims.get("sub")

    user = db.query(User).filter(User.firebase_uid == uid).first() if uid else None
    if user is None:
        user = db.query(User).filter(User.phone_hash == hash_value(phone)).first()
    if user is None:
        if not req.name:
            return {"success": True, "is_new_user": True, "message": NEW_USER_MESSAGE}
        user = _create_user(db, phone, req.name, firebase_uid=uid)
        return _login_response(user, is_new_user=True)

    if not user.is_active:
        raise HTTPException(status_code=403, detail="Account is disabled")
    if uid and user.firebase_uid != uid:
        user.firebase_uid = uid
    user.is_verified = True
    user.last_login_at = utcnow()
    db.commit()
    logger.info("user_login", user_id=str(user.id), via="firebase")
    return _login_response(user, is_new_user=False)


def _parse_sub(sub) -> uuid.UUID:
    try:
        return uuid.UUID(str(sub))
    except ValueError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid subject")


@router.post("/refresh")
def refresh(req: RefreshRequest, db: Session = Depends(get_db)):
    payload = decode_token(req.refresh_token)
    if payload.get("type") != "refresh":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token type")
    user = db.query(User).filter(User.id == _parse_sub(payload.get("sub"))).first()
    if user is None or not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not active")
    return issue_tokens(user)


@router.get("/me", response_model=MeResponse)
def me(user: User = Depends(get_current_user)):
    return {
        **_user_out(user),
        "role": user.role,
        "has_emergency_contact": user.has_emergency_contact,
        "emergency_contact_name": user.emergency_contact_name,
    }


@router.put("/profile")
@limiter.limit(WRITE_LIMIT)
def update_profile(request: Request, req: ProfileUpdate, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    user.name = req.name
    db.commit()
    db.refresh(user)
    return {"success": True, "user": _user_out(user)}


@router.put("/emergency-contact")
@limiter.limit(WRITE_LIMIT)
def set_emergency_contact(request: Request, req: EmergencyContactInput, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    user.set_emergency_contact(req.name, req.phone)
    db.commit()
    return {
        "success": True,
        "emergency_contact": {"name": user.emergency_contact_name, "masked_phone": mask_phone(req.phone)},
    }


@router.delete("/emergency-contact")
def delete_emergency_contact(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    user.clear_emergency_contact()
    db.commit()
    return {"success": True}


@router.post("/fcm-token")
@limiter.limit(WRITE_LIMIT)
def add_fcm_token(request: Request, req: PushTokenInput, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    register_token(db, user, req.token, platform=req.platform)
    return {"success": True, "token_count": len(user.push_tokens)}


@router.delete("/fcm-token")
def delete_fcm_token(req: PushTokenRemove, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    removed = remove_token(db, user, req.token)
    return {"success": True, "removed": removed}
