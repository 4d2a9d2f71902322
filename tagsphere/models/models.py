import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    String,
    DateTime,
    Boolean,
    ForeignKey,
    Integer,
    Float,
    UniqueConstraint,
    Index,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship, Mapped, mapped_column

from ..db import Base, utcnow
from ..services.encryption import encrypt, decrypt, hash_value


def uuid_pk() -> Mapped[uuid.UUID]:
    return mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = uuid_pk()
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    phone_encrypted: Mapped[str] = mapped_column(String(255), nullable=False)
    phone_hash: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    firebase_uid: Mapped[Optional[str]] = mapped_column(String(128), unique=True)
    is_verified: Mapped[bool] = mapped_column(Boolean, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    role: Mapped[str] = mapped_column(String(20), default="user")  # user|admin
    # Emergency contact, phone stored encrypted + hashed like the owner phone
    emergency_contact_name: Mapped[Optional[str]] = mapped_column(String(100))
    emergency_phone_encrypted: Mapped[Optional[str]] = mapped_column(String(255))
    emergency_phone_hash: Mapped[Optional[str]] = mapped_column(String(64))
    last_login_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), onupdate=utcnow)

    push_tokens = relationship(
        "PushToken", back_populates="user", cascade="all, delete-orphan", order_by="PushToken.created_at"
    )
    vehicles = relationship("Vehicle", back_populates="user")

    def set_phone(self, phone: str) -> None:
        self.phone_hash = hash_value(phone)
        self.phone_encrypted = encrypt(phone)

    def get_phone(self) -> str:
        return decrypt(self.phone_encrypted)

    def set_emergency_contact(self, name: str, phone: str) -> None:
        self.emergency_contact_name = name
        self.emergency_phone_hash = hash_value(phone)
        self.emergency_phone_encrypted = encrypt(phone)

    def clear_emergency_contact(self) -> None:
        self.emergency_contact_name = None
        self.emergency_phone_hash = None
        self.emergency_phone_encrypted = None

    def get_emergency_phone(self) -> Optional[str]:
        if not self.emergency_phone_encrypted:
            return None
        return decrypt(self.emergency_phone_encrypted)

    @property
    def has_emergency_contact(self) -> bool:
        return bool(self.emergency_phone_hash)

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


class PushToken(Base):
    """FCM registration tokens per device"""
    __tablename__ = "push_tokens"

    id: Mapped[uuid.UUID] = uuid_pk()
    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    token: Mapped[str] = mapped_column(String(512), nullable=False)
    platform: Mapped[str] = mapped_column(String(20), default="web")  # web|android|ios
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    user = relationship("User", back_populates="push_tokens")

    __table_args__ = (
        UniqueConstraint("user_id", "token", name="uq_push_token_user"),
    )


class QRCode(Base):
    """Pre-printed sticker codes, generated in batches"""
    __tablename__ = "qr_codes"

    id: Mapped[uuid.UUID] = uuid_pk()
    qr_id: Mapped[str] = mapped_column(String(7), unique=True, nullable=False, index=True)
    activation_pin: Mapped[str] = mapped_column(String(6), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="available", index=True)  # available|activated|disabled
    batch_id: Mapped[Optional[str]] = mapped_column(String(50), index=True)
    generated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    activated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    activated_by: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class Vehicle(Base):
    __tablename__ = "vehicles"

    id: Mapped[uuid.UUID] = uuid_pk()
    vehicle_number: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    qr_code_id: Mapped[str] = mapped_column(String(7), ForeignKey("qr_codes.qr_id"), unique=True, nullable=False, index=True)
    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    activated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    deactivated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    vehicle_type: Mapped[str] = mapped_column(String(20), default="car")  # car|bike|truck|auto|other
    vehicle_color: Mapped[Optional[str]] = mapped_column(String(50))
    total_scans: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_scanned_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), onupdate=utcnow)

    user = relationship("User", back_populates="vehicles")

    __table_args__ = (
        Index("idx_vehicle_user_active", "user_id", "is_active"),
    )


class ScanLog(Base):
    """Append-only record of scanner actions"""
    __tablename__ = "scan_logs"

    id: Mapped[uuid.UUID] = uuid_pk()
    qr_code_id: Mapped[str] = mapped_column(String(7), nullable=False, index=True)
    vehicle_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("vehicles.id", ondelete="SET NULL"))
    action: Mapped[str] = mapped_column(String(40), default="view")  # view|call|alert|emergency_contact_request
    lookup_source: Mapped[str] = mapped_column(String(10), default="qr")  # qr|number
    scanner_ip_hash: Mapped[Optional[str]] = mapped_column(String(64))
    user_agent: Mapped[Optional[str]] = mapped_column(String(255))
    latitude: Mapped[Optional[float]] = mapped_column(Float)
    longitude: Mapped[Optional[float]] = mapped_column(Float)
    alert_message: Mapped[Optional[str]] = mapped_column(String(500))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    vehicle = relationship("Vehicle")

    __table_args__ = (
        Index("idx_scan_logs_created", "created_at"),
        Index("idx_scan_logs_vehicle_created", "vehicle_id", "created_at"),
    )


class Subscription(Base):
    __tablename__ = "subscriptions"

    id: Mapped[uuid.UUID] = uuid_pk()
    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    plan: Mapped[str] = mapped_column(String(20), default="free")  # free|basic|premium
    status: Mapped[str] = mapped_column(String(20), default="active")  # active|expired|cancelled
    razorpay_order_id: Mapped[Optional[str]] = mapped_column(String(100))
    razorpay_payment_id: Mapped[Optional[str]] = mapped_column(String(100))
    amount: Mapped[Optional[int]] = mapped_column(Integer)  # paise
    current_period_start: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    current_period_end: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), onupdate=utcnow)


class PaymentOrder(Base):
    """Razorpay order created for a plan purchase. Settled at most once."""
    __tablename__ = "payment_orders"

    id: Mapped[uuid.UUID] = uuid_pk()
    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    razorpay_order_id: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    razorpay_payment_id: Mapped[Optional[str]] = mapped_column(String(100), unique=True)
    plan: Mapped[str] = mapped_column(String(20), nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)  # paise
    currency: Mapped[str] = mapped_column(String(3), default="INR")
    status: Mapped[str] = mapped_column(String(20), default="created")  # created|paid
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))


class Notification(Base):
    """Owner inbox entries created by scan, call and alert events"""
    __tablename__ = "notifications"

    id: Mapped[uuid.UUID] = uuid_pk()
    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    type: Mapped[str] = mapped_column(String(20), nullable=False)  # scan|call|alert
    title: Mapped[Optional[str]] = mapped_column(String(255))
    message: Mapped[Optional[str]] = mapped_column(String(500))
    vehicle_number: Mapped[Optional[str]] = mapped_column(String(20))
    qr_code_id: Mapped[Optional[str]] = mapped_column(String(7))
    is_read: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        Index("idx_notifications_user_read", "user_id", "is_read"),
        Index("idx_notifications_created", "created_at"),
    )


class OTPCode(Base):
    __tablename__ = "otp_codes"

    id: Mapped[uuid.UUID] = uuid_pk()
    phone_hash: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    code_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    purpose: Mapped[str] = mapped_column(String(20), default="login")  # registration|login|reset
    attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    max_attempts: Mapped[int] = mapped_column(Integer, default=3, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    is_used: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
