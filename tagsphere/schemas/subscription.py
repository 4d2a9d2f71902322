from datetime import datetime
from typing import Optional, Literal

from pydantic import BaseModel


class CreateOrderRequest(BaseModel):
    plan: Optional[str] = None


class VerifyPaymentRequest(BaseModel):
    razorpay_order_id: Optional[str] = None
    razorpay_payment_id: Optional[str] = None
    razorpay_signature: Optional[str] = None
    plan: Optional[str] = None


class OrderResponse(BaseModel):
    order_id: str
    amount: int
    currency: str
    key: str


class MyPlanResponse(BaseModel):
    plan: Literal["free", "basic", "premium"]
    status: str
    amount: Optional[int] = None
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    is_active: bool
