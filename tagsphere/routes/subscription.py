import time

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..auth.security import get_current_user
from ..config import settings
from ..db import get_db, utcnow
from ..limits import limiter, WRITE_LIMIT
from ..models.models import PaymentOrder, User
from ..schemas.subscription import CreateOrderRequest, VerifyPaymentRequest, OrderResponse, MyPlanResponse
from ..services.razorpay_client import RazorpayClient, RazorpayError
from ..services.subscriptions import (
    FREE_PLAN,
    PLANS,
    activate_plan,
    expire_if_lapsed,
    get_or_create_subscription,
    is_active,
)


logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/subscription", tags=["subscription"])


def _require_payments() -> None:
    if not settings.enable_razorpay:
        raise HTTPException(status_code=503, detail="Payments not configured")


@router.get("/plans")
def list_plans():
    return {
        "payments_enabled": settings.enable_razorpay,
        "calls_enabled": settings.enable_calls,
        "notifications_enabled": settings.enable_notifications,
        "plans": {"free": FREE_PLAN, **PLANS},
    }


@router.get("/my-plan", response_model=MyPlanResponse)
def my_plan(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    sub = expire_if_lapsed(db, get_or_create_subscription(db, user.id))
    return {
        "plan": sub.plan,
        "status": sub.status,
        "amount": sub.amount,
        "current_period_start": sub.current_period_start,
        "current_period_end": sub.current_period_end,
        "is_active": sub.plan == "free" or is_active(sub),
    }


@router.post("/create-order", response_model=OrderResponse)
@limiter.limit(WRITE_LIMIT)
def create_order(request: Request, req: CreateOrderRequest, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    _require_payments()
    plan = PLANS.get(req.plan or "")
    if plan is None:
        raise HTTPException(status_code=400, detail="Invalid plan. Choose basic or premium.")

    client = RazorpayClient()
    # Razorpay caps receipts at 40 characters
    receipt = f"sub_{user.id.hex[:12]}_{int(time.time() * 1000)}"
    try:
        order = client.create_order(plan["amount"], plan["currency"], receipt, notes={"user_id": str(user.id), "plan": req.plan})
    except RazorpayError as e:
        logger.error("razorpay_order_failed", user_id=str(user.id), error=str(e))
        raise HTTPException(status_code=502, detail="Failed to create payment order")

    amount = order.get("amount", plan["amount"])
    currency = order.get("currency", plan["currency"])
    db.add(PaymentOrder(
        user_id=user.id,
        razorpay_order_id=order["id"],
        plan=req.plan,
        amount=amount,
        currency=currency,
    ))
    db.commit()

    logger.info("razorpay_order_created", user_id=str(user.id), order_id=order["id"], plan=req.plan)
    return {
        "order_id": order["id"],
        "amount": amount,
        "currency": currency,
        "key": client.key_id,
    }


@router.post("/verify-payment")
@limiter.limit(WRITE_LIMIT)
def verify_payment(request: Request, req: VerifyPaymentRequest, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    """
    Settle a checkout and activate the plan it paid for.

    The signature only covers order_id|payment_id, so the plan, owner and
    amount are taken from the order recorded by create-order. Each order
    and each payment id activates a plan once.
    """
    _require_payments()
    if not (req.razorpay_order_id and req.razorpay_payment_id and req.razorpay_signature):
        raise HTTPException(status_code=400, detail="Missing payment verification fields")
    if req.plan not in PLANS:
        raise HTTPException(status_code=400, detail="Invalid plan")

    client = RazorpayClient()
    if not client.verify_payment_signature(req.razorpay_order_id, req.razorpay_payment_id, req.razorpay_signature):
        logger.warning("razorpay_signature_mismatch", user_id=str(user.id), order_id=req.razorpay_order_id)
        raise HTTPException(status_code=400, detail="Payment verification failed")

    order = db.query(PaymentOrder).filter(PaymentOrder.razorpay_order_id == req.razorpay_order_id).first()
    if not order or order.user_id != user.id:
        logger.warning("razorpay_order_unknown", user_id=str(user.id), order_id=req.razorpay_order_id)
        raise HTTPException(status_code=400, detail="Payment verification failed")
    if order.plan != req.plan or order.amount != PLANS[order.plan]["amount"]:
        logger.warning("razorpay_order_mismatch", user_id=str(user.id), order_id=order.razorpay_order_id, plan=req.plan, order_plan=order.plan)
        raise HTTPException(status_code=400, detail="Plan does not match the payment order")

    used = db.query(PaymentOrder).filter(PaymentOrder.razorpay_payment_id == req.razorpay_payment_id).first()
    if used:
        raise HTTPException(status_code=409, detail="Payment already processed")

    try:
        # Conditional so that two concurrent verifications settle the order once
        settled = (
            db.query(PaymentOrder)
            .filter(PaymentOrder.id == order.id, PaymentOrder.status == "created")
            .update(
                {"status": "paid", "razorpay_payment_id": req.razorpay_payment_id, "paid_at": utcnow()},
                synchronize_session=False,
            )
        )
        if settled != 1:
            db.rollback()
            raise HTTPException(status_code=409, detail="Payment already processed")
        sub = activate_plan(db, user.id, order.plan, order.razorpay_order_id, req.razorpay_payment_id)
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="Payment already processed")
    logger.info("subscription_activated", user_id=str(user.id), plan=sub.plan, order_id=order.razorpay_order_id)
    return {
        "success": True,
        "message": f"Subscribed to {PLANS[sub.plan]['name']} plan",
        "subscription": {
            "plan": sub.plan,
            "status": sub.status,
            "current_period_end": sub.current_period_end,
        },
    }
