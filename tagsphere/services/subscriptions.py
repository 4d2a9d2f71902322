"""
Plan table and subscription access checks.

Paid plans give the owner scan notifications (basic, premium) and direct
calls from scanners (premium). Alerts reach every owner regardless of plan.
"""
from datetime import timedelta
from typing import Optional
import uuid

from sqlalchemy.orm import Session

from ..db import utcnow, as_utc
from ..models.models import Subscription


PERIOD_DAYS = 30

FREE_PLAN = {
    "name": "Free",
    "amount": 0,
    "currency": "INR",
    "credits": {"notifications": 0, "calls": 0},
    "features": ["Register vehicles", "QR code generation", "Basic scan alerts"],
}

PLANS = {
    "basic": {
        "name": "Basic",
        "amount": 14900,  # paise
        "currency": "INR",
        "credits": {"notifications": 25, "calls": 25},
        "features": ["25 notification credits/month", "25 call credits/month", "Scan activity history"],
    },
    "premium": {
        "name": "Premium",
        "amount": 29900,
        "currency": "INR",
        "credits": {"notifications": 50, "calls": 50},
        "features": ["50 notification credits/month", "50 call credits/month", "Priority support", "Advanced scan analytics"],
    },
}


def is_active(sub: Optional[Subscription]) -> bool:
    if sub is None or sub.status != "active" or sub.plan == "free":
        return False
    period_end = as_utc(sub.current_period_end)
    return period_end is not None and period_end > utcnow()


def has_call_access(sub: Optional[Subscription]) -> bool:
    return is_active(sub) and sub.plan == "premium"


def has_notification_access(sub: Optional[Subscription]) -> bool:
    return is_active(sub) and sub.plan in ("basic", "premium")


def get_subscription(db: Session, user_id: uuid.UUID) -> Optional[Subscription]:
    return db.query(Subscription).filter(Subscription.user_id == user_id).first()


def get_or_create_subscription(db: Session, user_id: uuid.UUID) -> Subscription:
    sub = get_subscription(db, user_id)
    if sub is None:
        sub = Subscription(user_id=user_id, plan="free", status="active")
        db.add(sub)
        db.commit()
        db.refresh(sub)
    return sub


def expire_if_lapsed(db: Session, sub: Subscription) -> Subscription:
    period_end = as_utc(sub.current_period_end)
    if sub.plan != "free" and sub.status == "active" and period_end and period_end < utcnow():
        sub.status = "expired"
        db.commit()
    return sub


def activate_plan(db: Session, user_id: uuid.UUID, plan: str, order_id: str, payment_id: str) -> Subscription:
    now = utcnow()
    sub = get_subscription(db, user_id)
    if sub is None:
        sub = Subscription(user_id=user_id)
        db.add(sub)
    sub.plan = plan
    sub.status = "active"
    sub.razorpay_order_id = order_id
    sub.razorpay_payment_id = payment_id
    sub.amount = PLANS[plan]["amount"]
    sub.current_period_start = now
    sub.current_period_end = now + timedelta(days=PERIOD_DAYS)
    db.commit()
    db.refresh(sub)
    return sub
