"""
Owner notifications: inbox entries plus push delivery.
"""
from typing import Optional, Dict
import uuid

from sqlalchemy.orm import Session

from ..models.models import Notification, User, Vehicle
from .push import send_push


def create_notification(
    db: Session,
    user_id: uuid.UUID,
    notification_type: str,
    title: str,
    message: str,
    vehicle_number: Optional[str] = None,
    qr_code_id: Optional[str] = None,
) -> Notification:
    """
    Create an inbox entry for a user.

    Args:
        db: Database session
        user_id: Owner to notify
        notification_type: scan|call|alert
        title: Short heading shown in the inbox and the push
        message: Body text
        vehicle_number: Vehicle the event is about
        qr_code_id: Sticker the event came from

    Returns:
        The created Notification
    """
    notification = Notification(
        user_id=user_id,
        type=notification_type,
        title=title,
        message=message,
        vehicle_number=vehicle_number,
        qr_code_id=qr_code_id,
    )
    db.add(notification)
    db.commit()
    db.refresh(notification)
    return notification


def notify_owner(
    db: Session,
    owner: User,
    vehicle: Vehicle,
    notification_type: str,
    title: str,
    message: str,
    push_title: Optional[str] = None,
    push_type: Optional[str] = None,
    extra: Optional[Dict] = None,
) -> Notification:
    """Store the inbox entry, then push the same event to the owner's devices."""
    notification = create_notification(
        db,
        owner.id,
        notification_type,
        title,
        message,
        vehicle_number=vehicle.vehicle_number,
        qr_code_id=vehicle.qr_code_id,
    )
    data = {"type": push_type or notification_type, "vehicleNumber": vehicle.vehicle_number}
    if extra:
        data.update(extra)
    send_push(db, owner, push_title or title, message, data)
    return notification
