import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class QRGenerateRequest(BaseModel):
    count: int = Field(ge=1, le=1000)
    batch_id: Optional[str] = Field(default=None, max_length=50)


class QRCodeResponse(BaseModel):
    qr_id: str
    activation_pin: str
    status: str
    batch_id: Optional[str] = None
    generated_at: Optional[datetime] = None
    activated_at: Optional[datetime] = None
    activated_by: Optional[uuid.UUID] = None

    class Config:
        from_attributes = True


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int
