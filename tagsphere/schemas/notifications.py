import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class NotificationResponse(BaseModel):
    id: uuid.UUID
    type: str
    title: Optional[str] = None
    message: Optional[str] = None
    vehicle_number: Optional[str] = None
    qr_code_id: Optional[str] = None
    is_read: bool
    created_at: datetime

    class Config:
        from_attributes = True
